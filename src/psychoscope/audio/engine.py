"""
Audio engine: five-voice procedural sequencer driven by a condition profile.

Voice layout (instrument -> effect send):

- left_eye:   violin  (FM)             -> reverb
- right_eye:  cello   (AM, triangle)   -> reverb, one octave down
- mouth:      trumpet (8-partial saw)  -> delay
- left_brow:  flute   (sine)           -> reverb, one octave up
- right_brow: oboe    (FM)             -> delay

The delay feeds the reverb, the reverb feeds the output. Each voice walks the
profile's scale from its own offset and is staggered by 0.1 s so the five
voices never attack together.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple, Union

import numpy as np

from psychoscope.audio.context import DEFAULT_SAMPLE_RATE, AudioContext
from psychoscope.audio.notes import transpose_note
from psychoscope.audio.output import AudioOutput, SoundDeviceOutput
from psychoscope.audio.synth import Envelope, FeedbackDelay, InstrumentSpec, PolySynth, Reverb
from psychoscope.audio.transport import DEFAULT_LOOKAHEAD, Loop
from psychoscope.errors import AudioInitError
from psychoscope.profiles import PROFILES, Condition, ConditionProfile, resolve_condition

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Voices and instruments
# ---------------------------------------------------------------------------

class VoiceRole(str, Enum):
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    MOUTH = "mouth"
    LEFT_BROW = "left_brow"
    RIGHT_BROW = "right_brow"


INSTRUMENT_SPECS: Mapping[VoiceRole, InstrumentSpec] = MappingProxyType(
    {
        VoiceRole.LEFT_EYE: InstrumentSpec(
            "violin", kind="fm", harmonicity=3.01, modulation_index=2.0,
            envelope=Envelope(0.15, 0.3, 0.6, 0.8), volume_db=-8.0,
        ),
        VoiceRole.RIGHT_EYE: InstrumentSpec(
            "cello", kind="am", oscillator="triangle", harmonicity=2.0,
            envelope=Envelope(0.2, 0.4, 0.7, 1.0), volume_db=-10.0,
        ),
        VoiceRole.MOUTH: InstrumentSpec(
            "trumpet", kind="basic", oscillator="sawtooth", partials=8,
            envelope=Envelope(0.05, 0.2, 0.5, 0.4), volume_db=-12.0,
        ),
        VoiceRole.LEFT_BROW: InstrumentSpec(
            "flute", kind="basic", oscillator="sine",
            envelope=Envelope(0.1, 0.1, 0.8, 0.6), volume_db=-14.0,
        ),
        VoiceRole.RIGHT_BROW: InstrumentSpec(
            "oboe", kind="fm", harmonicity=1.5, modulation_index=4.0,
            envelope=Envelope(0.08, 0.15, 0.5, 0.5), volume_db=-13.0,
        ),
    }
)

VOICE_SEMITONES: Mapping[VoiceRole, int] = MappingProxyType(
    {
        VoiceRole.LEFT_EYE: 0,
        VoiceRole.RIGHT_EYE: -12,
        VoiceRole.MOUTH: 0,
        VoiceRole.LEFT_BROW: 12,
        VoiceRole.RIGHT_BROW: 0,
    }
)

REVERB_ROLES = frozenset({VoiceRole.LEFT_EYE, VoiceRole.RIGHT_EYE, VoiceRole.LEFT_BROW})

VOICE_STAGGER = 0.1  # seconds between successive voices' first ticks
NOTE_STRIDE = 2  # scale steps between successive voices


@dataclass
class Voice:
    """One scheduled melodic line."""

    index: int
    role: VoiceRole
    semitones: int = 0
    cursor: int = 0
    loop: Optional[Loop] = None

    @property
    def note_offset(self) -> int:
        return NOTE_STRIDE * self.index

    @property
    def start_offset(self) -> float:
        return VOICE_STAGGER * self.index

    def scale_index(self, n: int) -> int:
        return (self.cursor + self.note_offset) % n

    def advance(self, n: int) -> int:
        """Return the current scale index and step the cursor."""
        index = self.scale_index(n)
        self.cursor += 1
        return index


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

@dataclass
class EngineConfig:
    """Configuration for the audio engine."""

    sample_rate: int = DEFAULT_SAMPLE_RATE
    blocksize: int = 512
    latency: Union[str, float] = "low"
    lookahead: float = DEFAULT_LOOKAHEAD
    max_polyphony: int = 32
    seed: Optional[int] = None

    # Shared effects
    reverb_decay: float = 3.0
    reverb_wet: float = 0.35
    delay_time: str = "8n"
    delay_feedback: float = 0.15
    delay_wet: float = 0.2


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    IDLE = "idle"
    PLAYING = "playing"
    DISPOSED = "disposed"


class AudioEngine:
    """
    Lifecycle: ``UNINITIALIZED -> IDLE <-> PLAYING``, ``DISPOSED`` from
    anywhere and terminal.

    Playback calls before :meth:`init` and every call after :meth:`dispose`
    are logged no-ops. Unknown condition names always raise.
    """

    def __init__(self, output: Optional[AudioOutput] = None, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        if output is None:
            output = SoundDeviceOutput(self.config.blocksize, self.config.latency)
        self.output = output

        self._state = EngineState.UNINITIALIZED
        self._context: Optional[AudioContext] = None
        self._instruments: Dict[VoiceRole, PolySynth] = {}
        self._reverb: Optional[Reverb] = None
        self._delay: Optional[FeedbackDelay] = None
        self._voices: Tuple[Voice, ...] = ()
        self._current_condition: Optional[Condition] = None
        self._profile: Optional[ConditionProfile] = None
        self._rng = np.random.default_rng(self.config.seed)
        self.dropped_notes = 0

    # -- read-only state ----------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._state in (EngineState.IDLE, EngineState.PLAYING)

    @property
    def playing(self) -> bool:
        return self._state == EngineState.PLAYING

    @property
    def current_condition(self) -> Optional[Condition]:
        return self._current_condition

    @property
    def voices(self) -> Tuple[Voice, ...]:
        return self._voices

    @property
    def context(self) -> Optional[AudioContext]:
        return self._context

    @property
    def instruments(self) -> Mapping[VoiceRole, PolySynth]:
        return MappingProxyType(self._instruments)

    # -- lifecycle ----------------------------------------------------------

    def _build_graph(self, context: AudioContext):
        cfg = self.config
        self._reverb = Reverb(context, decay=cfg.reverb_decay, wet=cfg.reverb_wet)
        self._reverb.connect(context.destination)
        self._delay = FeedbackDelay(
            context,
            delay_time=context.transport.to_seconds(cfg.delay_time),
            feedback=cfg.delay_feedback,
            wet=cfg.delay_wet,
        )
        self._delay.connect(self._reverb)

        for role in VoiceRole:
            synth = PolySynth(context, INSTRUMENT_SPECS[role], max_polyphony=cfg.max_polyphony)
            synth.connect(self._reverb if role in REVERB_ROLES else self._delay)
            self._instruments[role] = synth

    def _teardown_graph(self):
        for synth in self._instruments.values():
            synth.dispose()
        self._instruments = {}
        for effect in (self._delay, self._reverb):
            if effect is not None:
                effect.dispose()
        self._delay = None
        self._reverb = None
        self._context = None

    def init(self) -> bool:
        """
        Acquire the output device and build the instrument graph.

        Idempotent. On failure everything partially built is released and the
        engine stays uninitialised, so the call may be retried.

        Returns:
            True when the engine is initialised, False if it was disposed.

        Raises:
            AudioInitError: the output backend could not be started.
        """
        if self._state == EngineState.DISPOSED:
            logger.debug("init() ignored: engine disposed")
            return False
        if self.initialized:
            return True

        context = AudioContext(self.config.sample_rate, lookahead=self.config.lookahead)
        self._context = context
        try:
            self._build_graph(context)
            self.output.start(context)
        except AudioInitError as e:
            logger.warning("Audio initialisation failed: %s", e)
            self._teardown_graph()
            raise

        self._state = EngineState.IDLE
        logger.info("Audio engine initialised (%d Hz, %d voices)", context.sample_rate, len(self._instruments))
        return True

    def play_condition(self, condition: Union[Condition, str]):
        """Replace whatever is playing with ``condition``'s five voices."""
        condition = resolve_condition(condition)
        if not self.initialized:
            logger.debug("play_condition(%s) ignored: engine %s", condition, self._state.value)
            return

        profile = PROFILES[condition]
        context = self._context
        with context.lock:
            self.stop_all()
            transport = context.transport
            transport.bpm = profile.tempo
            self._current_condition = condition
            self._profile = profile

            voices = []
            for index, role in enumerate(VoiceRole):
                voice = Voice(index, role, VOICE_SEMITONES[role])
                voice.loop = transport.schedule_repeat(
                    partial(self._tick, voice), profile.note_len, start=voice.start_offset
                )
                voices.append(voice)
            self._voices = tuple(voices)

            transport.start()
            self._state = EngineState.PLAYING
        logger.info("Playing %s at %d bpm, note length %s", condition, profile.tempo, profile.note_len)

    def _tick(self, voice: Voice, time: float):
        """Trigger ``voice``'s next note at context ``time``."""
        profile = self._profile
        notes = profile.notes
        index = voice.advance(len(notes))
        try:
            note = transpose_note(notes[index], voice.semitones)
            chaos = profile.chaos
            u1, u2 = self._rng.random(2)
            velocity = min(1.0, 0.3 + 0.4 * chaos + u1 * 0.3 * chaos)
            duration = self._context.transport.to_seconds(profile.note_len) * (1.0 + (u2 - 0.5) * chaos)
            self._instruments[voice.role].trigger_attack_release(note, duration, time, velocity)
        except Exception:
            self.dropped_notes += 1
            logger.debug("Dropped note for %s at %.3fs", voice.role.value, time, exc_info=True)

    def stop_all(self):
        """Silence every voice and rewind the transport. Safe in any state."""
        context = self._context
        if context is None:
            return
        with context.lock:
            for voice in self._voices:
                if voice.loop is not None:
                    voice.loop.stop()
                    voice.loop.dispose()
                    voice.loop = None
            self._voices = ()
            for synth in self._instruments.values():
                synth.release_all()
            context.transport.stop()
            if self._state == EngineState.PLAYING:
                self._state = EngineState.IDLE
                logger.info("Playback stopped")

    def toggle(self, condition: Union[Condition, str]) -> bool:
        """
        Stop if ``condition`` is what is playing, otherwise play it.

        Returns:
            Whether the engine is playing afterwards.
        """
        condition = resolve_condition(condition)
        if self.playing and self._current_condition == condition:
            self.stop_all()
        else:
            self.play_condition(condition)
        return self.playing

    def dispose(self):
        """Stop everything and release the output. Terminal."""
        if self._state == EngineState.DISPOSED:
            logger.debug("dispose() ignored: engine already disposed")
            return
        if self._context is not None:
            self.stop_all()
            self.output.stop()
            self._teardown_graph()
        self._state = EngineState.DISPOSED
        logger.info("Audio engine disposed")
