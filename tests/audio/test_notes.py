"""Tests for pitch and duration helpers."""

import pytest

from psychoscope.audio.notes import (
    duration_to_seconds,
    is_valid_duration,
    midi_to_note,
    note_to_frequency,
    note_to_midi,
    transpose_note,
)


class TestPitch:
    @pytest.mark.parametrize(
        "note, midi",
        [("C4", 60), ("A4", 69), ("C3", 48), ("Bb4", 70), ("F#5", 78), ("Eb5", 75), ("c-1", 0)],
    )
    def test_note_to_midi(self, note, midi):
        assert note_to_midi(note) == midi

    @pytest.mark.parametrize("bad", ["H4", "C", "4C", "", "C#x"])
    def test_invalid_pitch_rejected(self, bad):
        with pytest.raises(ValueError):
            note_to_midi(bad)

    def test_midi_to_note_uses_sharps(self):
        assert midi_to_note(70) == "A#4"
        assert midi_to_note(60) == "C4"

    def test_frequency(self):
        assert note_to_frequency("A4") == pytest.approx(440.0)
        assert note_to_frequency("A3") == pytest.approx(220.0)
        assert note_to_frequency("C4") == pytest.approx(261.6256, rel=1e-5)

    def test_transpose(self):
        assert transpose_note("C4", -12) == "C3"
        assert transpose_note("F#5", 12) == "F#6"
        assert transpose_note("Bb4", 0) == "A#4"


class TestDurations:
    @pytest.mark.parametrize(
        "token, bpm, seconds",
        [
            ("4n", 120, 0.5),
            ("8n", 120, 0.25),
            ("16n", 170, 60 / 170 / 4),
            ("1n", 60, 4.0),
            ("8t", 120, 0.25 * 2 / 3),
            ("4n.", 120, 0.75),
            (0.3, 90, 0.3),
            ("0.3", 90, 0.3),
        ],
    )
    def test_duration_to_seconds(self, token, bpm, seconds):
        assert duration_to_seconds(token, bpm) == pytest.approx(seconds)

    @pytest.mark.parametrize("bad", ["3n", "4x", "quarter", -1.0, None])
    def test_invalid_duration(self, bad):
        with pytest.raises(ValueError):
            duration_to_seconds(bad, 120)
        assert not is_valid_duration(bad)

    def test_bpm_must_be_positive(self):
        with pytest.raises(ValueError):
            duration_to_seconds("4n", 0)
