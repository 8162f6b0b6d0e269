"""
CLI entry point.

Usage:
    psychoscope live [--condition healthy] [--viz lissajous] [options]
    psychoscope render <condition> [-o out.mp4] [options]
    psychoscope profiles
    python -m psychoscope <command> [options]
"""

import argparse
import logging
import sys
import tempfile
import time
from pathlib import Path
from typing import Iterator

import numpy as np
import soundfile as sf

from psychoscope.app import AppConfig, FrameClock, SonificationApp
from psychoscope.audio.engine import AudioEngine, EngineConfig
from psychoscope.audio.output import OfflineOutput
from psychoscope.encoder import QUALITY_PRESETS, encode_video
from psychoscope.errors import PsychoscopeError
from psychoscope.profiles import CONDITION_DESCRIPTIONS, CONDITIONS, PROFILES, resolve_condition
from psychoscope.visual.scene import SceneConfig, SceneRenderer
from psychoscope.visual.trajectory import VizVariant

logger = logging.getLogger(__name__)

# Render presets
RENDER_PROFILES = {
    "low": {"width": 640, "height": 480, "fps": 30, "quality": "fast"},
    "medium": {"width": 1280, "height": 720, "fps": 30, "quality": "medium"},
    "high": {"width": 1920, "height": 1080, "fps": 60, "quality": "high"},
}

# The visual clock steps once per frame at this rate; other frame rates scale the step
REFERENCE_FPS = 60


def _progress_bar(current: int, total: int, width: int = 35):
    """Print a progress bar to stdout."""
    pct = current / max(total, 1) * 100
    filled = int(width * current / max(total, 1))
    bar = "#" * filled + "-" * (width - filled)
    if sys.stdout.isatty():
        sys.stdout.write(f"\r[{bar}] {pct:5.1f}%  frame {current}/{total}")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    else:
        if current % max(1, total // 20) == 0 or current >= total:
            print(f"{pct:5.1f}%  frame {current}/{total}", flush=True)


def _configure_logging(verbosity: int):
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# ---------------------------------------------------------------------------
# Offline rendering
# ---------------------------------------------------------------------------

def render_frames(
    renderer: SceneRenderer,
    condition,
    variant,
    n_frames: int,
    fps: int,
) -> Iterator[np.ndarray]:
    """Yield ``n_frames`` (H, W, 3) uint8 frames of one condition."""
    step = REFERENCE_FPS / fps
    clock = FrameClock(time_step=0.008 * step, spin_step=0.002 * step)
    for _ in range(n_frames):
        surface = renderer.render_frame(clock.time, condition, variant, clock.rotation_x, clock.rotation_y)
        yield renderer.surface_to_array(surface)
        clock.tick()


def render_audio(condition, duration: float, seed=None, sample_rate: int = 44100) -> np.ndarray:
    """Play ``condition`` through an offline engine and return the mono mix."""
    output = OfflineOutput()
    engine = AudioEngine(output=output, config=EngineConfig(sample_rate=sample_rate, seed=seed))
    try:
        engine.init()
        engine.play_condition(condition)
        return output.record(duration)
    finally:
        engine.dispose()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_live(args) -> int:
    config = AppConfig(
        width=args.width,
        height=args.height,
        fps=args.fps,
        condition=args.condition,
        variant=args.viz,
        layout=args.layout,
        audio=not args.no_audio,
        seed=args.seed,
    )
    SonificationApp(config).run()
    return 0


def cmd_render(args) -> int:
    condition = resolve_condition(args.condition)

    p_cfg = RENDER_PROFILES[args.profile]
    width = args.width or p_cfg["width"]
    height = args.height or p_cfg["height"]
    fps = args.fps or p_cfg["fps"]
    quality = args.quality or p_cfg["quality"]

    output = args.output
    if output is None:
        output = Path(f"{condition}_{args.viz}.mp4")

    total_frames = max(1, int(round(args.duration * fps)))
    renderer = SceneRenderer(SceneConfig(width=width, height=height))

    print(f"Rendering {condition} ({args.viz}): {total_frames} frames at {width}x{height} @ {fps}fps")
    print(f"  Profile: {args.profile}, Quality: {quality}")
    t0 = time.time()

    with tempfile.TemporaryDirectory(prefix="psychoscope_") as tmp:
        audio_path = None
        if not args.no_audio:
            sr = 44100
            audio = render_audio(condition, args.duration, seed=args.seed, sample_rate=sr)
            audio_path = Path(tmp) / "audio.wav"
            sf.write(audio_path, audio, sr)
            print(f"  Audio: {len(audio) / sr:.1f}s rendered")

        encode_video(
            frame_iterator=render_frames(renderer, condition, args.viz, total_frames, fps),
            output_path=output,
            width=width,
            height=height,
            fps=fps,
            quality=quality,
            audio_path=audio_path,
            duration=args.duration,
            total_frames=total_frames,
            progress_callback=_progress_bar,
        )

    elapsed = time.time() - t0
    file_size_mb = output.stat().st_size / 1024 / 1024
    print(f"\nDone! {file_size_mb:.1f} MB")
    print(f"  Render+encode took {elapsed:.1f}s ({total_frames / max(elapsed, 0.01):.1f} fps)")
    print(f"  Output: {output}")
    return 0


def cmd_profiles(args) -> int:
    header = f"{'condition':<11} {'tempo':>5} {'len':>4} {'chaos':>5} {'vel':>5}  notes"
    print(header)
    print("-" * len(header))
    for condition in CONDITIONS:
        p = PROFILES[condition]
        print(f"{condition.value:<11} {p.tempo:>5} {p.note_len:>4} {p.chaos:>5.2f} {p.vel:>5.2f}  {' '.join(p.notes)}")
        print(f"{'':<11} {CONDITION_DESCRIPTIONS[condition]}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="psychoscope",
        description="Generative 3D trajectories and procedural music from condition profiles",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    condition_names = [c.value for c in CONDITIONS]
    variant_names = [v.value for v in VizVariant]

    # live
    live = sub.add_parser("live", help="Open the interactive window")
    live.add_argument("--condition", type=str, default="healthy", choices=condition_names)
    live.add_argument("--viz", type=str, default="lissajous", choices=variant_names, help="Trajectory variant")
    live.add_argument("--layout", type=str, default="grid", choices=["grid", "single"])
    live.add_argument("--width", type=int, default=1000, help="Window width")
    live.add_argument("--height", type=int, default=520, help="Window height")
    live.add_argument("-f", "--fps", type=int, default=60, help="Frame rate cap")
    live.add_argument("--no-audio", action="store_true", help="Disable sound")
    live.add_argument("--seed", type=int, default=None, help="Seed for note humanisation")
    live.set_defaults(func=cmd_live)

    # render
    render = sub.add_parser("render", help="Render one condition to MP4")
    render.add_argument("condition", type=str, help=f"One of: {', '.join(condition_names)}")
    render.add_argument("-o", "--output", type=Path, default=None, help="Output MP4 path (default: <condition>_<viz>.mp4)")
    render.add_argument("--viz", type=str, default="lissajous", choices=variant_names, help="Trajectory variant")
    render.add_argument("-d", "--duration", type=float, default=10.0, help="Clip length in seconds (default: 10)")
    render.add_argument(
        "-p", "--profile", type=str, default="medium",
        choices=list(RENDER_PROFILES),
        help="Target profile (low: 480p 30fps, medium: 720p 30fps, high: 1080p 60fps)",
    )
    render.add_argument("--width", type=int, default=None, help="Video width (overrides profile)")
    render.add_argument("--height", type=int, default=None, help="Video height (overrides profile)")
    render.add_argument("-f", "--fps", type=int, default=None, help="Frames per second (overrides profile)")
    render.add_argument("--no-audio", action="store_true", help="Render a silent video")
    render.add_argument("--seed", type=int, default=None, help="Seed for note humanisation")
    render.add_argument(
        "-q", "--quality", type=str, default=None,
        choices=list(QUALITY_PRESETS),
        help="Encoding quality (defaults to profile quality)",
    )
    render.set_defaults(func=cmd_render)

    # profiles
    profiles = sub.add_parser("profiles", help="Print the condition profiles")
    profiles.set_defaults(func=cmd_profiles)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if getattr(args, "duration", 1.0) <= 0:
        parser.error("--duration must be positive")

    try:
        return args.func(args)
    except PsychoscopeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
