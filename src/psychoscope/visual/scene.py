"""
Scene renderer.

Draws one condition's trajectory as a depth-sorted, glowing point cloud:

- Background wash, brighter while audio is playing (pulse)
- Faint reference grid
- Line segments between depth-neighbours that are also sequence-neighbours
- Radial glow + solid marker per point, scaled by perspective

Pulse shimmer is keyed to the caller's visual clock and each point's ``s``
value, never to audio events.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
import pygame
import pygame.gfxdraw

from psychoscope.profiles import Condition, condition_rgb, get_profile
from psychoscope.visual.projector import project_array
from psychoscope.visual.trajectory import VizVariant, generate_trajectory

MAX_INDEX_GAP = 2


@dataclass
class SceneConfig:
    """Configuration for the scene renderer."""

    width: int = 650
    height: int = 500
    scale_factor: float = 0.34  # world unit -> fraction of min(width, height)
    grid_divisions: int = 4  # lines each side of centre
    grid_extent: float = 0.7  # grid half-size as a fraction of scale
    grid_alpha: float = 0.025
    line_width: int = 2
    glow_steps: int = 4  # concentric discs approximating the radial glow
    idle_brightness: float = 0.02
    pulse_brightness: float = 0.06


def _alpha(value: float) -> int:
    return int(round(255 * min(1.0, max(0.0, value))))


class SceneRenderer:
    """
    Stateless per-frame renderer for condition trajectories.

    The renderer keeps only its configuration; each call to :meth:`draw`
    is a full redraw from the supplied time, rotation and condition.
    """

    def __init__(self, config: SceneConfig | None = None):
        self.config = config or SceneConfig()

    def background_color(self, pulse: bool) -> Tuple[int, int, int]:
        b = self.config.pulse_brightness if pulse else self.config.idle_brightness
        return (
            min(255, int(round(b * 255))),
            min(255, int(round(b * 200))),
            min(255, int(round(b * 255 + 8))),
        )

    def _draw_background(self, surface: pygame.Surface, pulse: bool):
        surface.fill(self.background_color(pulse))

    def _draw_grid(self, surface: pygame.Surface, center: Tuple[float, float], scale: float):
        cfg = self.config
        cx, cy = center
        half = scale * cfg.grid_extent
        color = (255, 255, 255, _alpha(cfg.grid_alpha))
        n = cfg.grid_divisions
        if color[3] == 0 or n <= 0:
            return

        for i in range(-n, n + 1):
            gx = int(round(cx + (i / n) * half))
            gy = int(round(cy + (i / n) * half))
            pygame.gfxdraw.vline(surface, gx, int(round(cy - half)), int(round(cy + half)), color)
            pygame.gfxdraw.hline(surface, int(round(cx - half)), int(round(cx + half)), gy, color)

    def _draw_lines(
        self,
        surface: pygame.Surface,
        pts: np.ndarray,
        rgb: Tuple[int, int, int],
        time: float,
        pulse: bool,
    ):
        if len(pts) < 2:
            return
        shimmer = 1.0 + math.sin(time * 8.0) * 0.15 if pulse else 1.0
        gaps = np.abs(np.diff(pts[:, 4]))
        width = max(1, self.config.line_width)

        for i in np.nonzero(gaps <= MAX_INDEX_GAP)[0]:
            p0 = pts[i]
            p1 = pts[i + 1]
            alpha = _alpha((0.12 + p1[3] * 0.35) * shimmer)
            if alpha == 0:
                continue
            color = (*rgb, alpha)
            x0, y0 = int(round(p0[0])), int(round(p0[1]))
            x1, y1 = int(round(p1[0])), int(round(p1[1]))
            for k in range(width):
                pygame.gfxdraw.line(surface, x0, y0 + k, x1, y1 + k, color)

    def _draw_points(
        self,
        surface: pygame.Surface,
        pts: np.ndarray,
        seq: np.ndarray,
        rgb: Tuple[int, int, int],
        time: float,
        pulse: bool,
    ):
        steps = max(1, self.config.glow_steps)
        for row in pts:
            px, py, _, p, idx = row
            s = seq[int(idx)]
            alpha = 0.25 + p * 0.5
            size = 1.0 + p * 2.5
            if pulse:
                size *= 1.0 + math.sin(time * 10.0 + s * 20.0) * 0.2

            x, y = int(round(px)), int(round(py))

            # Glow: stacked discs give a roughly linear falloff from alpha*0.6 to 0
            glow_alpha = _alpha(alpha * 0.6 / steps)
            if glow_alpha > 0:
                for k in range(steps, 0, -1):
                    radius = int(round(size * 3.0 * k / steps))
                    if radius > 0:
                        pygame.gfxdraw.filled_circle(surface, x, y, radius, (*rgb, glow_alpha))

            pygame.gfxdraw.filled_circle(surface, x, y, max(1, int(round(size))), (*rgb, _alpha(alpha)))

    def draw(
        self,
        surface: pygame.Surface,
        time: float,
        condition: Union[Condition, str],
        variant: Union[VizVariant, str],
        rotation_x: float,
        rotation_y: float,
        pulse: bool = False,
        count: Optional[int] = None,
    ) -> np.ndarray:
        """
        Draw a full frame into ``surface``.

        Args:
            surface: Caller-owned drawing surface; its size sets the centre.
            time: Visual clock value (seconds-like, >= 0).
            condition: Condition whose profile and colour are drawn.
            variant: Trajectory geometry.
            rotation_x, rotation_y: Camera rotation in radians.
            pulse: True while audio is playing.
            count: Number of trajectory points (variant default if None).

        Returns:
            The projected points sorted back-to-front, ``(n, 5)`` array of
            ``px, py, depth, perspective_scale, sequence_index``.
        """
        profile = get_profile(condition)
        rgb = condition_rgb(condition)

        w, h = surface.get_size()
        center = (w / 2.0, h / 2.0)
        scale = min(w, h) * self.config.scale_factor

        self._draw_background(surface, pulse)
        self._draw_grid(surface, center, scale)

        trajectory = generate_trajectory(variant, time, profile, count)
        projected = project_array(trajectory, rotation_x, rotation_y, scale, center[0], center[1])
        order = np.argsort(projected[:, 2], kind="stable")
        pts = projected[order]

        self._draw_lines(surface, pts, rgb, time, pulse)
        self._draw_points(surface, pts, trajectory[:, 3], rgb, time, pulse)
        return pts

    def render_frame(
        self,
        time: float,
        condition: Union[Condition, str],
        variant: Union[VizVariant, str],
        rotation_x: float,
        rotation_y: float,
        pulse: bool = False,
    ) -> pygame.Surface:
        """Draw into a new Surface of the configured size."""
        surface = pygame.Surface((self.config.width, self.config.height))
        self.draw(surface, time, condition, variant, rotation_x, rotation_y, pulse)
        return surface

    def surface_to_array(self, surface: pygame.Surface) -> np.ndarray:
        """Convert pygame surface to numpy array for video encoding."""
        # pygame uses (width, height) but numpy expects (height, width)
        arr = pygame.surfarray.array3d(surface)
        arr = np.transpose(arr, (1, 0, 2))
        return np.ascontiguousarray(arr)
