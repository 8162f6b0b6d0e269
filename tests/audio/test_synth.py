"""Tests for instruments and effects."""

import numpy as np
import pytest

from psychoscope.audio.context import AudioContext, AudioNode
from psychoscope.audio.synth import (
    Envelope,
    FeedbackDelay,
    InstrumentSpec,
    PolySynth,
    Reverb,
    adsr,
    oscillator,
    render_note,
)

SINE = InstrumentSpec("test", kind="basic", oscillator="sine", envelope=Envelope(0.01, 0.05, 0.5, 0.1))


class Impulse(AudioNode):
    """Emits a single unit sample at context frame 0."""

    def pull(self, start, frames):
        block = np.zeros(frames)
        if start == 0:
            block[0] = 1.0
        return block


def _render(ctx: AudioContext, frames: int, blocksize: int = 64) -> np.ndarray:
    out = []
    while frames > 0:
        n = min(blocksize, frames)
        out.append(ctx.render(n))
        frames -= n
    return np.concatenate(out)


class TestPrimitives:
    @pytest.mark.parametrize("shape", ["sine", "triangle", "sawtooth", "square"])
    def test_oscillators_bounded(self, shape):
        phase = np.linspace(0, 8 * np.pi, 2000)
        wave = oscillator(shape, phase)
        assert np.abs(wave).max() <= 1.0 + 1e-9
        assert wave.std() > 0.3

    def test_additive_sawtooth_near_unit(self):
        phase = np.linspace(0, 4 * np.pi, 4000)
        wave = oscillator("sawtooth", phase, partials=8)
        assert 0.8 < np.abs(wave).max() < 1.3

    def test_unknown_shape(self):
        with pytest.raises(ValueError):
            oscillator("noise", np.zeros(4))

    def test_adsr_shape(self):
        sr = 1000
        env = adsr(0.5, Envelope(0.1, 0.1, 0.5, 0.2), sr)
        assert len(env) == 700
        assert env[0] == 0.0
        assert env[99] == pytest.approx(0.99)
        assert env[300] == pytest.approx(0.5)
        assert env[499] == pytest.approx(0.5)
        assert env[-1] < 0.01
        assert np.all(np.diff(env[500:]) <= 0)

    def test_adsr_short_gate_releases_from_current_level(self):
        env = adsr(0.05, Envelope(0.1, 0.1, 0.5, 0.1), 1000)
        assert len(env) == 150
        assert env[49] == pytest.approx(0.49)
        assert env.max() < 0.5

    def test_render_note_scales_with_velocity_and_volume(self):
        loud = render_note(SINE, 440.0, 0.2, 1.0, 8000)
        soft = render_note(SINE, 440.0, 0.2, 0.5, 8000)
        np.testing.assert_allclose(soft, loud * 0.5)
        quiet = InstrumentSpec("q", envelope=SINE.envelope, volume_db=-20.0)
        np.testing.assert_allclose(render_note(quiet, 440.0, 0.2, 1.0, 8000), loud * 0.1, atol=1e-12)

    @pytest.mark.parametrize("kind, osc", [("fm", "sine"), ("am", "triangle"), ("basic", "sawtooth")])
    def test_render_note_kinds(self, kind, osc):
        spec = InstrumentSpec("x", kind=kind, oscillator=osc, harmonicity=2.0, modulation_index=3.0)
        note = render_note(spec, 220.0, 0.1, 0.8, 8000)
        assert np.all(np.isfinite(note))
        assert np.abs(note).max() > 0.05

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            render_note(InstrumentSpec("x", kind="granular"), 220.0, 0.1, 1.0, 8000)


class TestPolySynth:
    def test_note_starts_on_scheduled_sample(self, sample_rate):
        ctx = AudioContext(sample_rate)
        synth = PolySynth(ctx, SINE).connect(ctx.destination)
        start = int(round(0.1 * sample_rate))
        synth.trigger_attack_release("A4", 0.1, 0.1)
        out = _render(ctx, int(0.3 * sample_rate))
        assert np.all(out[:start] == 0.0)
        assert np.abs(out[start:start + 200]).max() > 0.0

    def test_note_ends_after_release(self, sample_rate):
        ctx = AudioContext(sample_rate)
        synth = PolySynth(ctx, SINE).connect(ctx.destination)
        synth.trigger_attack_release("C4", 0.05, 0.0)
        _render(ctx, int(0.2 * sample_rate))
        assert synth.active_notes == 0

    @pytest.mark.parametrize(
        "note, duration, velocity",
        [("H2", 0.1, 0.5), ("C4", 0.0, 0.5), ("C4", -1.0, 0.5), ("C4", 0.1, 1.5), ("C4", 0.1, -0.1)],
    )
    def test_invalid_trigger(self, context, note, duration, velocity):
        synth = PolySynth(context, SINE)
        with pytest.raises(ValueError):
            synth.trigger_attack_release(note, duration, 0.0, velocity)
        assert synth.active_notes == 0

    def test_polyphony_cap_drops_oldest(self, context):
        synth = PolySynth(context, SINE, max_polyphony=2)
        for note in ("C4", "E4", "G4"):
            synth.trigger_attack_release(note, 0.5, 1.0)
        assert synth.active_notes == 2

    def test_release_all(self, sample_rate):
        ctx = AudioContext(sample_rate)
        synth = PolySynth(ctx, SINE).connect(ctx.destination)
        synth.trigger_attack_release("A4", 2.0, 0.0)
        synth.trigger_attack_release("E5", 1.0, 1.0)  # not started yet
        _render(ctx, int(0.1 * sample_rate))

        synth.release_all()
        assert synth.active_notes == 1
        out = _render(ctx, int(0.3 * sample_rate))
        release = int(SINE.envelope.release * sample_rate)
        assert np.abs(out[:release // 2]).max() > 0.0
        assert np.all(out[release:] == 0.0)

    def test_dispose(self, context):
        synth = PolySynth(context, SINE).connect(context.destination)
        synth.trigger_attack_release("A4", 0.5, 0.0)
        synth.dispose()
        assert synth.active_notes == 0
        assert synth not in context.destination._inputs
        with pytest.raises(RuntimeError):
            synth.trigger_attack_release("A4", 0.5, 0.0)


class TestEffects:
    def test_feedback_delay_echoes(self):
        ctx = AudioContext(sample_rate=1000)
        delay = FeedbackDelay(ctx, delay_time=0.1, feedback=0.15, wet=0.2).connect(ctx.destination)
        Impulse(ctx).connect(delay)
        out = _render(ctx, 350)
        assert out[0] == pytest.approx(0.8)
        assert out[100] == pytest.approx(0.2)
        assert out[200] == pytest.approx(0.2 * 0.15)
        assert out[300] == pytest.approx(0.2 * 0.15 ** 2)
        others = np.delete(out, [0, 100, 200, 300])
        assert np.allclose(others, 0.0)

    def test_delay_validation(self, context):
        with pytest.raises(ValueError):
            FeedbackDelay(context, delay_time=0.0)
        with pytest.raises(ValueError):
            FeedbackDelay(context, feedback=1.0)

    def test_reverb_tail_outlasts_input(self, sample_rate):
        ctx = AudioContext(sample_rate)
        reverb = Reverb(ctx, decay=3.0, wet=0.35).connect(ctx.destination)
        Impulse(ctx).connect(reverb)
        out = _render(ctx, sample_rate, blocksize=512)
        assert out[0] == pytest.approx(0.65, abs=0.05)
        tail = out[int(0.5 * sample_rate):]
        assert np.abs(tail).max() > 1e-4
        assert np.abs(out).max() <= 1.0

    def test_reverb_shorter_decay_dies_faster(self, sample_rate):
        energies = []
        for decay in (0.5, 3.0):
            ctx = AudioContext(sample_rate)
            reverb = Reverb(ctx, decay=decay, wet=1.0).connect(ctx.destination)
            Impulse(ctx).connect(reverb)
            out = _render(ctx, sample_rate, blocksize=512)
            energies.append(np.sum(out[sample_rate // 2:] ** 2))
        assert energies[0] < energies[1]

    def test_dry_reverb_passes_through(self, context):
        reverb = Reverb(context, wet=0.0).connect(context.destination)
        Impulse(context).connect(reverb)
        out = _render(context, 4000)
        assert out[0] == pytest.approx(1.0)
        assert np.allclose(out[1:], 0.0)

    def test_reverb_validation(self, context):
        with pytest.raises(ValueError):
            Reverb(context, decay=0.0)
