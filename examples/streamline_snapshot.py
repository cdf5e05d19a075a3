from __future__ import annotations

from quadflow import (
    GlyphConfig,
    GlyphSampler,
    StreamlineConfig,
    StreamlineIntegrator,
    plot_field_interactive,
    plot_snapshot,
    vortex_field_mesh,
)


def main() -> None:
    mesh = vortex_field_mesh(n=41, center=(1.0, -2.0))
    lines_cfg = StreamlineConfig(step_size=0.2, max_steps=400, seed_stride=37)

    plot_snapshot(mesh, mode="streamlines", streamline_config=lines_cfg)
    plot_snapshot(mesh, mode="glyphs", glyph_config=GlyphConfig(threshold=2.0, length_scale=0.8))

    fig = plot_field_interactive(
        mesh,
        streamlines=StreamlineIntegrator(mesh, config=lines_cfg).gather(),
        glyphs=GlyphSampler(mesh, config=GlyphConfig(threshold=2.0, length_scale=0.8)).sample(),
    )
    fig.show()


if __name__ == "__main__":
    main()
