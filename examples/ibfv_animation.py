from __future__ import annotations

import numpy as np

from quadflow import ViewerConfig, run_animation, saddle_field_mesh, setup_logging
from quadflow.ibfv import IBFVConfig


def main() -> None:
    setup_logging()
    mesh = saddle_field_mesh(n=31, strength=0.5)
    cfg = ViewerConfig(width=256, height=256, ibfv=IBFVConfig(scale=3.0))
    run_animation(
        mesh,
        240,
        config=cfg,
        rng=np.random.default_rng(42),
        save_path=None,  # e.g. "saddle.gif"
        fps=30,
    )


if __name__ == "__main__":
    main()
