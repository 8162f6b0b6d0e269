"""Tests for the command line interface."""

import numpy as np
import pytest

from psychoscope.cli import RENDER_PROFILES, build_parser, main, render_audio, render_frames
from psychoscope.encoder import ffmpeg_available
from psychoscope.visual.scene import SceneConfig, SceneRenderer


class TestParser:
    def test_render_defaults(self):
        args = build_parser().parse_args(["render", "mania"])
        assert args.condition == "mania"
        assert args.profile == "medium"
        assert args.viz == "lissajous"
        assert args.width is None

    def test_live_rejects_unknown_condition(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["live", "--condition", "bliss"])

    def test_presets(self):
        assert RENDER_PROFILES["low"]["width"] == 640
        assert RENDER_PROFILES["high"]["fps"] == 60

    def test_non_positive_duration(self):
        with pytest.raises(SystemExit):
            main(["render", "mania", "--duration", "0"])


class TestCommands:
    def test_profiles_table(self, capsys):
        assert main(["profiles"]) == 0
        out = capsys.readouterr().out
        for name in ("catatonia", "depression", "paranoid", "mania", "healthy"):
            assert name in out
        assert "F#5" in out

    def test_render_unknown_condition(self, capsys):
        assert main(["render", "bliss"]) == 1
        assert "bliss" in capsys.readouterr().err

    @pytest.mark.skipif(not ffmpeg_available(), reason="ffmpeg not installed")
    def test_render_end_to_end(self, tmp_path):
        out = tmp_path / "clip.mp4"
        code = main([
            "render", "healthy", "-o", str(out), "-p", "low",
            "--width", "160", "--height", "120", "--duration", "0.5", "--seed", "3", "-q", "fast",
        ])
        assert code == 0
        assert out.stat().st_size > 0


class TestOfflineRendering:
    def test_render_frames(self):
        renderer = SceneRenderer(SceneConfig(width=96, height=64))
        frames = list(render_frames(renderer, "mania", "torus", 4, 30))
        assert len(frames) == 4
        assert frames[0].shape == (64, 96, 3)
        assert not np.array_equal(frames[0], frames[-1])

    def test_render_audio(self):
        audio = render_audio("catatonia", 0.5, seed=1, sample_rate=22050)
        assert audio.shape == (11025,)
        assert np.abs(audio).max() > 0.0
