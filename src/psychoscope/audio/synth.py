"""
Synthesis nodes: polyphonic instruments and the two shared effects.

Instruments pre-render each triggered note (oscillator or FM/AM pair shaped
by an ADSR envelope) and mix it into the block stream starting on the exact
sample of its scheduled time. Effects are block-stateful so their tails run
continuously across blocks.
"""

from dataclasses import dataclass, field
from typing import List

import numpy as np
from scipy import signal as scipy_signal

from psychoscope.audio.context import AudioContext, AudioNode
from psychoscope.audio.notes import note_to_frequency

TWO_PI = 2.0 * np.pi

# Shortest attack/release to avoid clicks
MIN_ATTACK = 0.005
MIN_RELEASE = 0.01


# ---------------------------------------------------------------------------
# Instrument description
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Envelope:
    attack: float = 0.01
    decay: float = 0.1
    sustain: float = 0.5
    release: float = 0.5


@dataclass(frozen=True)
class InstrumentSpec:
    """Static description of one instrument's timbre."""

    name: str
    kind: str = "basic"  # "basic", "fm", "am"
    oscillator: str = "sine"  # "sine", "triangle", "sawtooth", "square"
    partials: int = 0  # additive partial count for sawtooth/square (0 = naive)
    harmonicity: float = 1.0
    modulation_index: float = 0.0
    envelope: Envelope = field(default_factory=Envelope)
    volume_db: float = 0.0

    @property
    def gain(self) -> float:
        return 10.0 ** (self.volume_db / 20.0)


# ---------------------------------------------------------------------------
# DSP primitives
# ---------------------------------------------------------------------------

def oscillator(shape: str, phase: np.ndarray, partials: int = 0) -> np.ndarray:
    """Evaluate a waveform at ``phase`` (radians)."""
    if shape == "sine":
        return np.sin(phase)
    if shape == "triangle":
        return (2.0 / np.pi) * np.arcsin(np.sin(phase))
    if shape == "sawtooth":
        if partials > 0:
            k = np.arange(1, partials + 1)[:, None]
            series = ((-1.0) ** (k + 1)) * np.sin(k * phase[None, :]) / k
            return (2.0 / np.pi) * series.sum(axis=0)
        return scipy_signal.sawtooth(phase)
    if shape == "square":
        if partials > 0:
            k = np.arange(1, 2 * partials, 2)[:, None]
            series = np.sin(k * phase[None, :]) / k
            return (4.0 / np.pi) * series.sum(axis=0)
        return scipy_signal.square(phase)
    raise ValueError(f"Unknown oscillator shape: {shape!r}")


def adsr(duration: float, envelope: Envelope, sr: int) -> np.ndarray:
    """
    Gate-length ADSR: attack/decay/sustain for ``duration`` seconds, then a
    release from whatever level the gate ended on.
    """
    attack = max(envelope.attack, MIN_ATTACK)
    decay = max(envelope.decay, 1e-6)
    release = max(envelope.release, MIN_RELEASE)
    sustain = float(np.clip(envelope.sustain, 0.0, 1.0))

    gate_samples = max(1, int(round(duration * sr)))
    release_samples = max(1, int(round(release * sr)))

    t = np.arange(gate_samples) / sr
    gate = np.where(
        t < attack,
        t / attack,
        np.where(t < attack + decay, 1.0 - (1.0 - sustain) * (t - attack) / decay, sustain),
    )
    end_level = gate[-1]
    tail = end_level * (1.0 - np.arange(release_samples) / release_samples)
    return np.concatenate((gate, tail))


def render_note(spec: InstrumentSpec, freq: float, duration: float, velocity: float, sr: int) -> np.ndarray:
    """Render one note including its release tail."""
    env = adsr(duration, spec.envelope, sr)
    t = np.arange(len(env)) / sr
    carrier_phase = TWO_PI * freq * t

    if spec.kind == "fm":
        modulator = np.sin(TWO_PI * freq * spec.harmonicity * t)
        wave = oscillator(spec.oscillator, carrier_phase + spec.modulation_index * modulator, spec.partials)
    elif spec.kind == "am":
        modulator = 0.5 + 0.5 * np.sin(TWO_PI * freq * spec.harmonicity * t)
        wave = oscillator(spec.oscillator, carrier_phase, spec.partials) * modulator
    elif spec.kind == "basic":
        wave = oscillator(spec.oscillator, carrier_phase, spec.partials)
    else:
        raise ValueError(f"Unknown instrument kind: {spec.kind!r}")

    return wave * env * spec.gain * velocity


# ---------------------------------------------------------------------------
# Instruments
# ---------------------------------------------------------------------------

@dataclass
class _ScheduledNote:
    start: int  # context frame of the first sample
    buffer: np.ndarray

    @property
    def end(self) -> int:
        return self.start + len(self.buffer)


class PolySynth(AudioNode):
    """Polyphonic instrument built from an :class:`InstrumentSpec`."""

    def __init__(self, context: AudioContext, spec: InstrumentSpec, max_polyphony: int = 32):
        super().__init__(context)
        self.spec = spec
        self.max_polyphony = max_polyphony
        self._notes: List[_ScheduledNote] = []

    @property
    def active_notes(self) -> int:
        return len(self._notes)

    def trigger_attack_release(self, note: str, duration: float, time: float, velocity: float = 1.0):
        """
        Schedule ``note`` to sound for ``duration`` seconds at context ``time``.

        Raises:
            ValueError: invalid pitch, non-positive duration or velocity
                outside [0, 1].
            RuntimeError: the instrument has been disposed.
        """
        if self.disposed:
            raise RuntimeError(f"{self.spec.name} has been disposed")
        if not duration > 0:
            raise ValueError(f"Note duration must be positive, got {duration}")
        if not 0.0 <= velocity <= 1.0:
            raise ValueError(f"Velocity must be in [0, 1], got {velocity}")

        freq = note_to_frequency(note)
        sr = self.context.sample_rate
        buffer = render_note(self.spec, freq, duration, velocity, sr)
        start = max(int(round(time * sr)), self.context.frame)

        with self.context.lock:
            self._notes.append(_ScheduledNote(start, buffer))
            while len(self._notes) > self.max_polyphony:
                self._notes.pop(0)

    def release_all(self):
        """Drop pending notes and fade sounding ones over the release time."""
        with self.context.lock:
            now = self.context.frame
            fade = max(1, int(round(max(self.spec.envelope.release, MIN_RELEASE) * self.context.sample_rate)))
            kept = []
            for note in self._notes:
                if note.start >= now:
                    continue
                elapsed = now - note.start
                if elapsed >= len(note.buffer):
                    continue
                buffer = note.buffer[: elapsed + fade].copy()
                tail = len(buffer) - elapsed
                buffer[elapsed:] *= np.linspace(1.0, 0.0, tail, endpoint=False)
                kept.append(_ScheduledNote(note.start, buffer))
            self._notes = kept

    def pull(self, start: int, frames: int) -> np.ndarray:
        out = np.zeros(frames, dtype=np.float64)
        end = start + frames
        remaining = []
        for note in self._notes:
            if note.start < end:
                j0 = max(0, start - note.start)
                j1 = min(len(note.buffer), end - note.start)
                if j1 > j0:
                    offset = note.start + j0 - start
                    out[offset:offset + (j1 - j0)] += note.buffer[j0:j1]
            if note.end > end:
                remaining.append(note)
        self._notes = remaining
        return out

    def dispose(self):
        with self.context.lock:
            self._notes = []
        super().dispose()


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

class _DelayFilter:
    """
    IIR filter over a single delay ``D`` whose state carries across blocks.

    ``b`` and ``a`` are given as ``{lag: coefficient}`` and expanded to
    dense coefficient vectors for ``scipy_signal.lfilter``.
    """

    def __init__(self, b: dict, a: dict):
        order = max(max(b), max(a))
        self.b = np.zeros(order + 1)
        self.a = np.zeros(order + 1)
        for lag, coef in b.items():
            self.b[lag] = coef
        for lag, coef in a.items():
            self.a[lag] = coef
        self.state = np.zeros(order)

    def process(self, x: np.ndarray) -> np.ndarray:
        y, self.state = scipy_signal.lfilter(self.b, self.a, x, zi=self.state)
        return y


def comb_filter(delay: int, gain: float) -> _DelayFilter:
    """Feedback comb ``y[n] = x[n] + g*y[n-D]``."""
    return _DelayFilter({0: 1.0}, {0: 1.0, delay: -gain})


def allpass_filter(delay: int, gain: float = 0.5) -> _DelayFilter:
    """Schroeder all-pass ``y[n] = -g*x[n] + x[n-D] + g*y[n-D]``."""
    return _DelayFilter({0: -gain, delay: 1.0}, {0: 1.0, delay: -gain})


class Reverb(AudioNode):
    """
    Schroeder reverb: four parallel feedback combs into two series all-passes.

    Comb gains are derived from ``decay`` (RT60 in seconds) and each comb is
    normalised to unit energy gain.
    """

    COMB_DELAYS = (1557, 1617, 1491, 1422)  # samples at 44.1 kHz
    ALLPASS_DELAYS = (556, 441)

    def __init__(self, context: AudioContext, decay: float = 3.0, wet: float = 0.35):
        super().__init__(context)
        if decay <= 0:
            raise ValueError(f"Reverb decay must be positive, got {decay}")
        self.decay = decay
        self.wet = float(np.clip(wet, 0.0, 1.0))

        ratio = context.sample_rate / 44100.0
        self._combs = []
        self._comb_norm = []
        for base in self.COMB_DELAYS:
            delay = max(1, int(round(base * ratio)))
            gain = 10.0 ** (-3.0 * delay / (decay * context.sample_rate))
            self._combs.append(comb_filter(delay, gain))
            self._comb_norm.append(np.sqrt(1.0 - gain ** 2))
        self._allpasses = [allpass_filter(max(1, int(round(d * ratio)))) for d in self.ALLPASS_DELAYS]

    def pull(self, start: int, frames: int) -> np.ndarray:
        dry = self._pull_inputs(start, frames)
        wet_signal = np.zeros_like(dry)
        for comb, norm in zip(self._combs, self._comb_norm):
            wet_signal += comb.process(dry) * norm
        wet_signal /= len(self._combs)
        for allpass in self._allpasses:
            wet_signal = allpass.process(wet_signal)
        return (1.0 - self.wet) * dry + self.wet * wet_signal


class FeedbackDelay(AudioNode):
    """Delay line whose output is fed back into its input."""

    def __init__(self, context: AudioContext, delay_time: float = 0.25, feedback: float = 0.15, wet: float = 0.2):
        super().__init__(context)
        if delay_time <= 0:
            raise ValueError(f"Delay time must be positive, got {delay_time}")
        if not 0.0 <= feedback < 1.0:
            raise ValueError(f"Feedback must be in [0, 1), got {feedback}")
        self.delay_time = delay_time
        self.feedback = feedback
        self.wet = float(np.clip(wet, 0.0, 1.0))
        self.delay = max(1, int(round(delay_time * context.sample_rate)))
        # d[n] = x[n-D] + feedback*d[n-D]
        self._line = _DelayFilter({self.delay: 1.0}, {0: 1.0, self.delay: -feedback})

    def pull(self, start: int, frames: int) -> np.ndarray:
        dry = self._pull_inputs(start, frames)
        return (1.0 - self.wet) * dry + self.wet * self._line.process(dry)
