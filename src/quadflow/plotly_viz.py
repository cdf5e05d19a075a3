from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from collections.abc import Iterable, Sequence

import numpy as np

try:
    import plotly.graph_objects as go
    _PLOTLY = True
except Exception:  # pragma: no cover
    _PLOTLY = False

from .mesh import QuadMesh
from .streamlines import LineSegment, PolyLine


@dataclass(slots=True)
class PlotlySnapshotConfig:
    colorscale: str = "Viridis"
    marker_size: int = 4
    glyph_color: str = "black"
    streamline_color: str = "white"
    cbar_label: str = "scalar"
    show_mesh: bool = False

    def __post_init__(self) -> None:
        if self.marker_size < 1:
            raise ValueError("marker_size must be positive.")


def _segment_traces(segments: Iterable[np.ndarray]) -> tuple[list[float | None], list[float | None]]:
    """Return x, y for a Plotly multi-segment line trace (None breaks the line)."""
    xs: list[float | None] = []
    ys: list[float | None] = []
    for seg in segments:
        xs.extend([float(seg[0, 0]), float(seg[1, 0]), None])
        ys.extend([float(seg[0, 1]), float(seg[1, 1]), None])
    return xs, ys


def _polyline_traces(lines: Iterable[PolyLine]) -> tuple[list[float | None], list[float | None]]:
    """One None-separated run per direction of each streamline."""
    xs: list[float | None] = []
    ys: list[float | None] = []
    for line in lines:
        for part in (line.forward, line.backward):
            if not part:
                continue
            xs.append(float(part[0].start[0]))
            ys.append(float(part[0].start[1]))
            for seg in part:
                xs.append(float(seg.end[0]))
                ys.append(float(seg.end[1]))
            xs.append(None)
            ys.append(None)
    return xs, ys


def _mesh_edges(mesh: QuadMesh) -> tuple[list[float | None], list[float | None]]:
    pos = mesh.positions
    edges = np.stack([mesh.quads, np.roll(mesh.quads, -1, axis=1)], axis=-1).reshape(-1, 2)
    return _segment_traces(pos[edges])


def plot_field_interactive(
    mesh: QuadMesh,
    *,
    streamlines: Sequence[PolyLine] | None = None,
    glyphs: Sequence[LineSegment] | None = None,
    config: PlotlySnapshotConfig | None = None,
    save_html: str | None = None,
) -> Any:
    """Interactive view with Plotly (pan/zoom, hover on vertex scalars). Returns the Figure."""
    if not _PLOTLY:
        raise RuntimeError("plotly is not installed. `pip install plotly`")

    cfg = config or PlotlySnapshotConfig()
    pos = mesh.positions
    fig = go.Figure(
        data=[
            go.Scattergl(
                x=pos[:, 0], y=pos[:, 1], mode="markers",
                marker=dict(size=cfg.marker_size, color=mesh.scalars, colorscale=cfg.colorscale,
                            colorbar=dict(title=cfg.cbar_label)),
                customdata=mesh.vectors,
                hovertemplate="x=%{x:.3g}<br>y=%{y:.3g}<br>s=%{marker.color:.3g}"
                              "<br>v=(%{customdata[0]:.3g}, %{customdata[1]:.3g})<extra></extra>",
                name="vertices",
            )
        ]
    )

    if cfg.show_mesh:
        ex, ey = _mesh_edges(mesh)
        fig.add_trace(go.Scatter(x=ex, y=ey, mode="lines", line=dict(width=0.5, color="lightgray"),
                                 name="mesh", hoverinfo="skip"))
    if glyphs:
        gx, gy = _segment_traces(g.as_array() for g in glyphs)
        fig.add_trace(go.Scatter(x=gx, y=gy, mode="lines", line=dict(width=1, color=cfg.glyph_color),
                                 name="glyphs"))
    if streamlines:
        sx, sy = _polyline_traces(streamlines)
        fig.add_trace(go.Scatter(x=sx, y=sy, mode="lines", line=dict(width=1, color=cfg.streamline_color),
                                 name="streamlines"))

    b = mesh.bounds
    fig.update_layout(
        title=f"{mesh.n_vertices} vertices, {mesh.n_quads} quads",
        xaxis_title="x",
        yaxis_title="y",
        xaxis=dict(scaleanchor="y", scaleratio=1, range=[b.minx, b.maxx]),
        yaxis=dict(range=[b.miny, b.maxy]),
        template="plotly_white",
        legend=dict(x=0.01, y=0.99),
    )

    if save_html:
        fig.write_html(save_html, include_plotlyjs="cdn")
    return fig
