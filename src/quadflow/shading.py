from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from .mesh import QuadMesh

FloatArray = NDArray[np.float64]
Color = tuple[float, float, float]

BLACK: Color = (0.0, 0.0, 0.0)
WHITE: Color = (1.0, 1.0, 1.0)
RED: Color = (1.0, 0.0, 0.0)
BLUE: Color = (0.0, 0.0, 1.0)

CHECKER_TILES = 30  # checkerboard tiles across the mesh diameter


def scalar_bounds(mesh: QuadMesh) -> tuple[float, float]:
    s = mesh.scalars
    return float(s.min()), float(s.max())


def _normalized_scalars(mesh: QuadMesh, bounds: tuple[float, float] | None) -> FloatArray:
    lower, upper = scalar_bounds(mesh) if bounds is None else bounds
    span = upper - lower
    if span == 0.0:
        return np.zeros(mesh.n_vertices)
    return np.clip((mesh.scalars - lower) / span, 0.0, 1.0)


def bicolor(
    mesh: QuadMesh,
    lower_color: Sequence[float] = RED,
    upper_color: Sequence[float] = BLUE,
    bounds: tuple[float, float] | None = None,
) -> FloatArray:
    """Per-vertex colours blended linearly from lower_color to upper_color by scalar."""
    t = _normalized_scalars(mesh, bounds)[:, None]
    lo = np.asarray(lower_color, dtype=np.float64)
    hi = np.asarray(upper_color, dtype=np.float64)
    return np.asarray(lo * (1.0 - t) + hi * t, dtype=np.float64)


def grayscale(mesh: QuadMesh, bounds: tuple[float, float] | None = None) -> FloatArray:
    return bicolor(mesh, BLACK, WHITE, bounds)


def height_map(mesh: QuadMesh, peak: float, bounds: tuple[float, float] | None = None) -> FloatArray:
    """Vertex positions with z replaced by peak times the normalised scalar."""
    out = mesh.positions.copy()
    out[:, 2] = peak * _normalized_scalars(mesh, bounds)
    return out


def checkerboard(mesh: QuadMesh) -> FloatArray:
    """Red/green/yellow/black checks of side diameter/30, from vertex x and y."""
    tile = (2.0 * mesh.radius) / CHECKER_TILES if mesh.radius > 0.0 else 1.0
    cells = np.trunc(mesh.positions[:, :2] / tile).astype(np.int64)
    even = (cells % 2) == 0
    out = np.zeros((mesh.n_vertices, 3), dtype=np.float64)
    out[:, 0] = even[:, 0]
    out[:, 1] = even[:, 1]
    return out


def apply_colors(mesh: QuadMesh, colors: np.ndarray) -> None:
    c = np.asarray(colors, dtype=np.float64)
    if c.shape != (mesh.n_vertices, 3):
        raise ValueError(f"colors must have shape ({mesh.n_vertices}, 3).")
    mesh.colors[...] = np.clip(c, 0.0, 1.0)


def quad_face_colors(mesh: QuadMesh) -> FloatArray:
    """Flat per-quad colours: mean of the quad's vertex colours."""
    return np.asarray(mesh.colors[mesh.quads].mean(axis=1), dtype=np.float64)
