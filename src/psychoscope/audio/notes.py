"""
Pitch and musical-time helpers.

Pitch names follow scientific notation (``C3``, ``Bb4``, ``F#5``) with
A4 = 440 Hz. Durations use the transport's token notation: ``"4n"`` is a
quarter note, ``"8t"`` an eighth-note triplet, ``"4n."`` a dotted quarter.
"""

import re
from typing import Union

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

_PITCH_CLASSES = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}
_NOTE_RE = re.compile(r"^([A-Ga-g])([#b]*)(-?\d+)$")
_DURATION_RE = re.compile(r"^(\d+)([nt])(\.?)$")
_SUBDIVISIONS = (1, 2, 4, 8, 16, 32, 64)

A4_MIDI = 69
A4_FREQ = 440.0

Duration = Union[str, float, int]


def note_to_midi(note: str) -> int:
    """Convert a pitch name to a MIDI note number (C4 = 60)."""
    match = _NOTE_RE.match(note.strip()) if isinstance(note, str) else None
    if match is None:
        raise ValueError(f"Invalid pitch name: {note!r}")
    letter, accidentals, octave = match.groups()
    shift = accidentals.count("#") - accidentals.count("b")
    return (int(octave) + 1) * 12 + _PITCH_CLASSES[letter.upper()] + shift


def midi_to_note(midi: int) -> str:
    """Convert a MIDI note number to a pitch name, spelling with sharps."""
    midi = int(midi)
    return f"{NOTE_NAMES[midi % 12]}{midi // 12 - 1}"


def midi_to_frequency(midi: float) -> float:
    return A4_FREQ * 2.0 ** ((midi - A4_MIDI) / 12.0)


def note_to_frequency(note: str) -> float:
    """Frequency in Hz of a pitch name."""
    return midi_to_frequency(note_to_midi(note))


def transpose_note(note: str, semitones: int) -> str:
    """Shift a pitch name by whole semitones."""
    return midi_to_note(note_to_midi(note) + int(semitones))


def duration_to_seconds(duration: Duration, bpm: float) -> float:
    """
    Convert a duration token or a number of seconds to seconds.

    Args:
        duration: Token such as ``"16n"``, ``"8t"``, ``"4n."`` or seconds.
        bpm: Tempo in quarter notes per minute.

    Returns:
        Duration in seconds.
    """
    if bpm <= 0:
        raise ValueError(f"bpm must be positive, got {bpm}")

    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        if duration < 0:
            raise ValueError(f"Duration must be non-negative, got {duration}")
        return float(duration)

    if not isinstance(duration, str):
        raise ValueError(f"Invalid duration: {duration!r}")

    match = _DURATION_RE.match(duration.strip())
    if match is None:
        try:
            return duration_to_seconds(float(duration), bpm)
        except ValueError:
            raise ValueError(f"Invalid duration token: {duration!r}") from None

    subdivision, kind, dotted = match.groups()
    subdivision = int(subdivision)
    if subdivision not in _SUBDIVISIONS:
        raise ValueError(f"Unsupported subdivision in {duration!r}")

    quarter = 60.0 / bpm
    seconds = quarter * 4.0 / subdivision
    if kind == "t":
        seconds *= 2.0 / 3.0
    if dotted:
        seconds *= 1.5
    return seconds


def is_valid_duration(duration: Duration) -> bool:
    try:
        duration_to_seconds(duration, 120.0)
    except ValueError:
        return False
    return True
