"""Tests for the scene renderer."""

import numpy as np
import pygame
import pytest

from psychoscope.profiles import CONDITIONS, condition_rgb
from psychoscope.visual.scene import SceneConfig, SceneRenderer
from psychoscope.visual.trajectory import DEFAULT_COUNTS, VizVariant


@pytest.fixture
def renderer():
    return SceneRenderer(SceneConfig(width=160, height=120))


class TestSceneRenderer:
    @pytest.mark.parametrize("variant", list(VizVariant))
    def test_draw_returns_depth_sorted_points(self, renderer, surface, variant):
        pts = renderer.draw(surface, 1.0, "healthy", variant, 0.3, 0.4)
        assert pts.shape == (DEFAULT_COUNTS[variant], 5)
        assert np.all(np.diff(pts[:, 2]) >= 0)

    def test_draws_in_condition_colour(self, renderer, surface):
        renderer.draw(surface, 0.5, "mania", "lissajous", 0.3, 0.0)
        arr = renderer.surface_to_array(surface)
        r, g, b = condition_rgb("mania")
        # Solid point cores carry the hue: strong red and green, weak blue
        bright = arr[(arr[..., 0] > 120) & (arr[..., 1] > 90)]
        assert len(bright) > 0
        assert bright[..., 2].mean() < bright[..., 0].mean()

    def test_pulse_brightens_background(self, renderer):
        idle = renderer.background_color(False)
        pulse = renderer.background_color(True)
        assert sum(pulse) > sum(idle)

    def test_background_fills_corners(self, renderer, surface):
        renderer.draw(surface, 0.0, "catatonia", "torus", 0.3, 0.0, pulse=True)
        assert tuple(surface.get_at((0, 0)))[:3] == renderer.background_color(True)

    def test_explicit_count(self, renderer, surface):
        pts = renderer.draw(surface, 0.0, "paranoid", "lissajous", 0.3, 0.0, count=40)
        assert len(pts) == 40

    def test_every_condition_renders(self, renderer):
        for condition in CONDITIONS:
            frame = renderer.render_frame(2.0, condition, "attractor", 0.3, 0.2)
            assert frame.get_size() == (160, 120)

    def test_surface_to_array_layout(self, renderer):
        frame = renderer.render_frame(0.0, "healthy", "lissajous", 0.3, 0.0)
        arr = renderer.surface_to_array(frame)
        assert arr.shape == (120, 160, 3)
        assert arr.dtype == np.uint8
        assert arr.flags["C_CONTIGUOUS"]

    def test_unknown_condition_raises(self, renderer, surface):
        with pytest.raises(KeyError):
            renderer.draw(surface, 0.0, "bliss", "lissajous", 0.3, 0.0)

    def test_draw_is_stateless(self, renderer):
        a = pygame.Surface((160, 120))
        b = pygame.Surface((160, 120))
        renderer.draw(a, 3.0, "depression", "torus", 0.5, 0.9, pulse=True)
        renderer.draw(pygame.Surface((160, 120)), 9.0, "mania", "attractor", 0.1, 0.1)
        renderer.draw(b, 3.0, "depression", "torus", 0.5, 0.9, pulse=True)
        np.testing.assert_array_equal(pygame.surfarray.array3d(a), pygame.surfarray.array3d(b))
