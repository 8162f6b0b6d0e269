"""
Condition profiles.

Each of the five conditions owns one immutable parameter bundle that drives
both the trajectory geometry (amplitudes, frequency, chaos, velocity) and the
music (scale, tempo, note length).
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple, Union

from psychoscope.audio.notes import is_valid_duration, note_to_midi
from psychoscope.errors import InvalidProfileError, UnknownConditionError


class Condition(str, Enum):
    """The closed set of conditions, in display order."""

    CATATONIA = "catatonia"
    DEPRESSION = "depression"
    PARANOID = "paranoid"
    MANIA = "mania"
    HEALTHY = "healthy"

    def __str__(self) -> str:
        return self.value


CONDITIONS: Tuple[Condition, ...] = tuple(Condition)


@dataclass(frozen=True)
class ConditionProfile:
    """Synthesis and visual parameters for one condition."""

    name: Condition

    # Visual
    eye_amp: float
    eye_freq: float
    mouth_amp: float
    brow_amp: float
    chaos: float
    vel: float

    # Audio
    notes: Tuple[str, ...]
    tempo: int
    note_len: str

    def __post_init__(self):
        for field_name in ("eye_amp", "eye_freq", "mouth_amp", "brow_amp", "chaos", "vel"):
            value = getattr(self, field_name)
            if value < 0:
                raise InvalidProfileError(f"{self.name}: {field_name} must be >= 0, got {value}")

        if not self.notes:
            raise InvalidProfileError(f"{self.name}: notes must not be empty")
        for note in self.notes:
            try:
                note_to_midi(note)
            except ValueError as exc:
                raise InvalidProfileError(f"{self.name}: {exc}") from exc

        if self.tempo <= 0:
            raise InvalidProfileError(f"{self.name}: tempo must be positive, got {self.tempo}")
        if not is_valid_duration(self.note_len):
            raise InvalidProfileError(f"{self.name}: invalid note length {self.note_len!r}")


PROFILES: Mapping[Condition, ConditionProfile] = MappingProxyType(
    {
        Condition.CATATONIA: ConditionProfile(
            Condition.CATATONIA, eye_amp=0.12, eye_freq=0.25, mouth_amp=0.04, brow_amp=0.06,
            chaos=0.08, vel=0.15, notes=("C3", "D3", "E3"), tempo=40, note_len="4n",
        ),
        Condition.DEPRESSION: ConditionProfile(
            Condition.DEPRESSION, eye_amp=0.22, eye_freq=0.45, mouth_amp=0.10, brow_amp=0.13,
            chaos=0.20, vel=0.35, notes=("D3", "F3", "A3", "C4"), tempo=55, note_len="4n",
        ),
        Condition.PARANOID: ConditionProfile(
            Condition.PARANOID, eye_amp=0.55, eye_freq=1.6, mouth_amp=0.30, brow_amp=0.40,
            chaos=0.65, vel=1.1, notes=("E4", "G4", "Bb4", "C5", "Eb5"), tempo=140, note_len="16n",
        ),
        Condition.MANIA: ConditionProfile(
            Condition.MANIA, eye_amp=0.75, eye_freq=2.0, mouth_amp=0.45, brow_amp=0.50,
            chaos=0.80, vel=1.5, notes=("C4", "E4", "G4", "B4", "D5", "F#5"), tempo=170, note_len="16n",
        ),
        Condition.HEALTHY: ConditionProfile(
            Condition.HEALTHY, eye_amp=0.35, eye_freq=0.90, mouth_amp=0.18, brow_amp=0.22,
            chaos=0.30, vel=0.65, notes=("C4", "E4", "G4", "A4", "C5"), tempo=90, note_len="8n",
        ),
    }
)

# Read-only display tables
CONDITION_COLORS: Mapping[Condition, str] = MappingProxyType(
    {
        Condition.CATATONIA: "#00f5d4",
        Condition.DEPRESSION: "#457b9d",
        Condition.PARANOID: "#e63946",
        Condition.MANIA: "#ffbe0b",
        Condition.HEALTHY: "#06d6a0",
    }
)

CONDITION_DESCRIPTIONS: Mapping[Condition, str] = MappingProxyType(
    {
        Condition.CATATONIA: "Minimal movement, rigid pattern, low entropy",
        Condition.DEPRESSION: "Slow, damped oscillation, downward gaze tendency",
        Condition.PARANOID: "Fast scanning, irregular saccades, high vigilance",
        Condition.MANIA: "Hyperkinetic, wide range, maximum entropy",
        Condition.HEALTHY: "Balanced dynamics, regular saccadic rhythm",
    }
)


def resolve_condition(name: Union[Condition, str]) -> Condition:
    """Map a condition name to the enum, failing fast on unknown names."""
    if isinstance(name, Condition):
        return name
    try:
        return Condition(str(name).strip().lower())
    except ValueError:
        valid = ", ".join(c.value for c in CONDITIONS)
        raise UnknownConditionError(f"Unknown condition {name!r}. Valid: {valid}") from None


def get_profile(name: Union[Condition, str]) -> ConditionProfile:
    return PROFILES[resolve_condition(name)]


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    """Convert ``#rrggbb`` to an (r, g, b) tuple."""
    color = color.lstrip("#")
    if len(color) != 6:
        raise ValueError(f"Expected #rrggbb, got {color!r}")
    return (int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16))


def condition_rgb(name: Union[Condition, str]) -> Tuple[int, int, int]:
    return hex_to_rgb(CONDITION_COLORS[resolve_condition(name)])
