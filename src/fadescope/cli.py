"""Command-line entry point: live preview or offline PNG rendering of the demo signal."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from fadescope.config import Orientation, VisualizerConfig
from fadescope.demo import build_demo_source
from fadescope.engine import VisualizerEngine
from fadescope.styles import style_names


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fading real-time spectrum visualizer.",
    )
    parser.add_argument("--preview", action="store_true", help="Open a live pygame window")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("fadescope_frames"),
        help="Directory for rendered PNG frames (default: fadescope_frames)",
    )
    parser.add_argument("--frames", type=int, default=None, help="Cap on rendered frames")
    parser.add_argument("--style", choices=style_names(), default=None, help="Colour preset")
    parser.add_argument("--width", type=int, default=640)
    parser.add_argument("--height", type=int, default=360)
    parser.add_argument("--fps", type=int, default=30, help="Render rate (default: 30)")
    parser.add_argument("--duration", type=float, default=12.0, help="Demo signal length in seconds")
    parser.add_argument("--divisions", type=int, default=16, help="FFT byte stride per band")
    parser.add_argument("--threshold", type=float, default=3.0, help="Rise detection threshold")
    parser.add_argument(
        "--orientation",
        choices=[o.value for o in Orientation],
        default=Orientation.TOP.value,
    )
    parser.add_argument("--waveform", action="store_true", help="Also draw the waveform trace")
    parser.add_argument("--marker", type=Path, default=None, help="Image used for rise markers")
    parser.add_argument("--flash-every", type=float, default=None, help="Seconds between flashes (offline)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def config_from_args(args: argparse.Namespace) -> VisualizerConfig:
    overrides = dict(
        width=args.width,
        height=args.height,
        divisions=args.divisions,
        rise_threshold=args.threshold,
        orientation=Orientation(args.orientation),
        show_waveform=args.waveform,
        marker_path=str(args.marker) if args.marker else None,
    )
    if args.style:
        return VisualizerConfig.from_style(args.style, **overrides)
    return VisualizerConfig(**overrides)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}")

    source = build_demo_source(duration=args.duration)
    engine = VisualizerEngine(config)

    if args.preview:
        from fadescope.preview import run_preview

        run_preview(engine, source, fps=args.fps)
        return

    from fadescope.render_frames import render_frames

    def report(current: int, total: int) -> None:
        if sys.stdout.isatty():
            sys.stdout.write(f"\rRendering frame {current}/{total}")
            sys.stdout.flush()
            if current >= total:
                sys.stdout.write("\n")

    render_frames(
        engine,
        source,
        args.output,
        fps=args.fps,
        max_frames=args.frames,
        flash_every=args.flash_every,
        progress_callback=report,
    )


if __name__ == "__main__":
    main()
