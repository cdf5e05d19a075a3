from __future__ import annotations

import pytest

pytest.importorskip("plotly")

from quadflow import GlyphSampler, StreamlineIntegrator, plot_field_interactive, vortex_field_mesh
from quadflow.plotly_viz import PlotlySnapshotConfig


def test_interactive_figure_traces(tmp_path) -> None:
    m = vortex_field_mesh(n=9)
    lines = StreamlineIntegrator(m).gather()
    glyphs = GlyphSampler(m).sample()
    out = tmp_path / "field.html"
    fig = plot_field_interactive(
        m, streamlines=lines, glyphs=glyphs,
        config=PlotlySnapshotConfig(show_mesh=True), save_html=str(out),
    )
    names = [t.name for t in fig.data]
    assert names == ["vertices", "mesh", "glyphs", "streamlines"]
    # None-separated segments: three entries per glyph
    assert len(fig.data[2].x) == 3 * len(glyphs)
    assert out.exists()


def test_vertices_only() -> None:
    fig = plot_field_interactive(vortex_field_mesh(n=5))
    assert len(fig.data) == 1
