"""
Parametric 3D trajectory generators.

Three geometries share one signature ``(time, profile, count) -> (count, 4)``
array with columns ``x, y, z, s``. ``s`` is the normalised position along the
sequence (``i / count``); it orders the points and keys the glow shimmer but
never enters the geometry.

Profile mapping:
  Lissajous  - eye_freq drives the x/y sweep, mouth_amp the z sweep,
               chaos adds secondary sinusoidal phase jitter.
  Attractor  - Lorenz system; sigma from chaos, rho from eye_amp, beta from vel.
  Torus knot - knot order p from chaos, q from eye_freq; vel drifts the phase.

All generators are pure: no randomness and no hidden state, so identical
arguments give bit-identical output.
"""

import logging
import math
from enum import Enum
from typing import Iterator, NamedTuple, Optional, Tuple, Union

import numpy as np

from psychoscope.errors import TrajectoryError
from psychoscope.profiles import ConditionProfile

logger = logging.getLogger(__name__)

GOLDEN_RATIO = 1.618

LORENZ_DT = 0.005
LORENZ_SEED = (0.1, 0.0, 0.0)


class VizVariant(str, Enum):
    LISSAJOUS = "lissajous"
    ATTRACTOR = "attractor"
    TORUS = "torus"

    def __str__(self) -> str:
        return self.value


DEFAULT_COUNTS = {
    VizVariant.LISSAJOUS: 350,
    VizVariant.ATTRACTOR: 500,
    VizVariant.TORUS: 400,
}


class TrajectoryPoint(NamedTuple):
    x: float
    y: float
    z: float
    s: float


def as_points(trajectory: np.ndarray) -> Iterator[TrajectoryPoint]:
    """Iterate a ``(n, 4)`` trajectory array as TrajectoryPoint records."""
    for x, y, z, s in trajectory:
        yield TrajectoryPoint(float(x), float(y), float(z), float(s))


def _check_args(time: float, count: int):
    if count < 2:
        raise TrajectoryError(f"count must be >= 2 to draw lines, got {count}")
    if time < 0:
        raise TrajectoryError(f"time must be >= 0, got {time}")


def _sequence_positions(count: int) -> np.ndarray:
    return np.arange(count, dtype=np.float64) / count


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

def lissajous(time: float, profile: ConditionProfile, count: int = 350) -> np.ndarray:
    """Lissajous-like curve with chaos-weighted phase jitter."""
    _check_args(time, count)
    p = profile
    seq = _sequence_positions(count)
    s = seq * math.pi * 4.0 + time * p.vel

    out = np.empty((count, 4), dtype=np.float64)
    out[:, 0] = np.sin(s * p.eye_freq + p.chaos * np.sin(s * 3.7)) * p.eye_amp
    out[:, 1] = np.sin(s * p.eye_freq * GOLDEN_RATIO + p.chaos * np.cos(s * 2.3)) * p.brow_amp
    out[:, 2] = np.cos(s * p.mouth_amp * 5.0 + p.chaos * np.sin(s * 1.9)) * 0.5
    out[:, 3] = seq
    return out


def lorenz_coefficients(profile: ConditionProfile) -> Tuple[float, float, float]:
    """(sigma, rho, beta) for a profile. This linear mapping is fixed."""
    sigma = 10.0 * profile.chaos + 5.0
    rho = 28.0 * profile.eye_amp + 10.0
    beta = (8.0 / 3.0) * profile.vel + 1.0
    return sigma, rho, beta


def attractor(time: float, profile: ConditionProfile, count: int = 500) -> np.ndarray:
    """
    Lorenz attractor integrated with explicit Euler from a fixed seed.

    The trajectory depends only on the profile; ``time`` is accepted for the
    shared signature and validated but does not move the curve (rotation
    supplies the motion).
    """
    _check_args(time, count)
    p = profile
    sigma, rho, beta = lorenz_coefficients(p)
    dt = LORENZ_DT

    raw = np.empty((count, 3), dtype=np.float64)
    x, y, z = LORENZ_SEED
    for i in range(count):
        dx = sigma * (y - x)
        dy = x * (rho - z) - y
        dz = x * y - beta * z
        x += dx * dt
        y += dy * dt
        z += dz * dt
        raw[i, 0] = x
        raw[i, 1] = y
        raw[i, 2] = z

    out = np.empty((count, 4), dtype=np.float64)
    out[:, 0] = raw[:, 0] * 0.02 * p.eye_amp
    out[:, 1] = raw[:, 1] * 0.02 * p.brow_amp
    out[:, 2] = raw[:, 2] * 0.015 * p.mouth_amp
    out[:, 3] = _sequence_positions(count)
    return out


def torus_knot_order(profile: ConditionProfile) -> Tuple[int, int]:
    """Knot winding numbers (p, q) for a profile."""
    return (
        _round_half_up(2.0 + profile.chaos * 3.0),
        _round_half_up(3.0 + profile.eye_freq * 2.0),
    )


def torus_knot(time: float, profile: ConditionProfile, count: int = 400) -> np.ndarray:
    """Closed (p, q) torus knot whose radius breathes with cos(q*phi)."""
    _check_args(time, count)
    p = profile
    knot_p, knot_q = torus_knot_order(p)
    seq = _sequence_positions(count)
    phi = seq * math.pi * 2.0 + time * p.vel * 0.3
    r = 0.5 + 0.2 * np.cos(knot_q * phi)

    out = np.empty((count, 4), dtype=np.float64)
    out[:, 0] = r * np.cos(knot_p * phi) * p.eye_amp
    out[:, 1] = r * np.sin(knot_p * phi) * p.brow_amp
    out[:, 2] = 0.2 * np.sin(knot_q * phi) * p.mouth_amp * 3.0
    out[:, 3] = seq
    return out


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def resolve_variant(variant: Union[VizVariant, str]) -> VizVariant:
    """
    Map a variant name to the enum.

    Unknown names fall back to Lissajous (with a warning) so a bad UI value
    still draws something.
    """
    if isinstance(variant, VizVariant):
        return variant
    try:
        return VizVariant(str(variant).strip().lower())
    except ValueError:
        logger.warning("Unknown visualisation variant %r, falling back to lissajous", variant)
        return VizVariant.LISSAJOUS


def generate_trajectory(
    variant: Union[VizVariant, str],
    time: float,
    profile: ConditionProfile,
    count: Optional[int] = None,
) -> np.ndarray:
    """Generate the trajectory for a variant; ``count=None`` uses its default."""
    variant = resolve_variant(variant)
    if count is None:
        count = DEFAULT_COUNTS[variant]

    if variant is VizVariant.ATTRACTOR:
        return attractor(time, profile, count)
    elif variant is VizVariant.TORUS:
        return torus_knot(time, profile, count)
    else:
        return lissajous(time, profile, count)
