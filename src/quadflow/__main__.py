from __future__ import annotations

import argparse
import logging
import sys
from typing import get_args

import numpy as np

from .api import load_ply, saddle_field_mesh, uniform_field_mesh, vortex_field_mesh
from .errors import QuadflowError
from .logging_config import setup_logging
from .viewer import DisplayMode, Viewer, ViewerConfig, run_animation

logger = logging.getLogger(__name__)

DEMOS = {
    "vortex": vortex_field_mesh,
    "saddle": saddle_field_mesh,
    "uniform": uniform_field_mesh,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="quadflow", description="Visualize 2D vector fields on quad meshes.")
    p.add_argument("paths", nargs="*", help="PLY files with vx, vy (and optional s) vertex properties")
    p.add_argument("--demo", choices=sorted(DEMOS), help="use a built-in field instead of PLY files")
    p.add_argument("--mode", choices=get_args(DisplayMode), default="ibfv")
    p.add_argument("--size", type=int, default=512, help="window width and height in pixels")
    p.add_argument("--grid", type=int, default=21, help="vertices per side for --demo meshes")
    p.add_argument("--frames", type=int, default=200, help="frames to write with --save")
    p.add_argument("--fps", type=int, default=30)
    p.add_argument("--seed", type=int, default=None, help="noise generator seed")
    p.add_argument("--save", default=None, help="write an IBFV animation (.mp4 or .gif) instead of opening a window")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.add_argument("--log-file", default=None)
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    if args.demo is None and not args.paths:
        logger.error("give at least one PLY path or --demo")
        return 2
    try:
        mesh = DEMOS[args.demo](n=args.grid) if args.demo else load_ply(args.paths[0])
        cfg = ViewerConfig(width=args.size, height=args.size, mode=args.mode, fps=args.fps)
        rng = np.random.default_rng(args.seed)
        if args.save:
            run_animation(mesh, args.frames, config=cfg, rng=rng, save_path=args.save, fps=args.fps)
        else:
            Viewer(mesh, cfg, rng=rng, datasets=args.paths).show()
    except (OSError, QuadflowError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
