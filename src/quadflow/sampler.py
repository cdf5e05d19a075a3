from __future__ import annotations

from typing import Protocol
from collections.abc import Sequence

import logging
import math
import numpy as np
from numpy.typing import NDArray

from .errors import DegenerateField, PointOutsideMesh
from .mesh import FloatArray, QuadMesh

logger = logging.getLogger(__name__)

PointLike = np.ndarray | Sequence[float]


# ---------------------------
# Point location
# ---------------------------
class PointLocatable(Protocol):
    def locate(self, x: float, y: float) -> int | None: ...


class LinearScanLocator:
    """Reference locator: first quad in index order whose closed rectangle holds the point.

    A point on an edge shared by several quads resolves to the lowest quad index.
    """

    def __init__(self, mesh: QuadMesh) -> None:
        self._qmin = mesh.quad_min
        self._qmax = mesh.quad_max

    def locate(self, x: float, y: float) -> int | None:
        hit = np.flatnonzero(
            (self._qmin[:, 0] <= x) & (x <= self._qmax[:, 0])
            & (self._qmin[:, 1] <= y) & (y <= self._qmax[:, 1])
        )
        return int(hit[0]) if hit.size else None


class GridLocator:
    """Uniform bucket grid over the mesh bounds.

    Each bucket lists, in ascending order, every quad whose closed rectangle
    overlaps the bucket. The bucket holding a point therefore contains every
    quad that contains the point, in scan order, and results match
    ``LinearScanLocator`` exactly, edge ties included.
    """

    def __init__(self, mesh: QuadMesh, nx: int | None = None, ny: int | None = None) -> None:
        side = max(1, int(math.ceil(math.sqrt(mesh.n_quads))))
        self._nx = int(nx) if nx else side
        self._ny = int(ny) if ny else side
        if self._nx < 1 or self._ny < 1:
            raise ValueError("grid resolution must be positive.")
        b = mesh.bounds
        self._x0, self._y0 = b.minx, b.miny
        self._cw = (b.maxx - b.minx) / self._nx
        self._ch = (b.maxy - b.miny) / self._ny
        self._qmin = mesh.quad_min
        self._qmax = mesh.quad_max

        i0 = self._cell_x(self._qmin[:, 0])
        i1 = self._cell_x(self._qmax[:, 0])
        j0 = self._cell_y(self._qmin[:, 1])
        j1 = self._cell_y(self._qmax[:, 1])
        buckets: list[list[int]] = [[] for _ in range(self._nx * self._ny)]
        for q in range(mesh.n_quads):
            for j in range(j0[q], j1[q] + 1):
                for i in range(i0[q], i1[q] + 1):
                    buckets[j * self._nx + i].append(q)
        self._buckets = [np.asarray(bk, dtype=np.int64) for bk in buckets]
        logger.debug("bucket grid %dx%d over %d quads", self._nx, self._ny, mesh.n_quads)

    def _cell_x(self, x: np.ndarray | float) -> np.ndarray:
        c = np.floor((np.asarray(x) - self._x0) / self._cw).astype(np.int64)
        return np.clip(c, 0, self._nx - 1)

    def _cell_y(self, y: np.ndarray | float) -> np.ndarray:
        c = np.floor((np.asarray(y) - self._y0) / self._ch).astype(np.int64)
        return np.clip(c, 0, self._ny - 1)

    def locate(self, x: float, y: float) -> int | None:
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        cand = self._buckets[int(self._cell_y(y)) * self._nx + int(self._cell_x(x))]
        if cand.size == 0:
            return None
        qmin = self._qmin[cand]
        qmax = self._qmax[cand]
        hit = np.flatnonzero(
            (qmin[:, 0] <= x) & (x <= qmax[:, 0]) & (qmin[:, 1] <= y) & (y <= qmax[:, 1])
        )
        return int(cand[hit[0]]) if hit.size else None


# ---------------------------
# Field sampling
# ---------------------------
class FieldSampler:
    """Bilinear interpolation of the per-vertex vector field inside the containing quad."""

    def __init__(self, mesh: QuadMesh, locator: PointLocatable | None = None) -> None:
        self._mesh = mesh
        self._locator: PointLocatable = locator or LinearScanLocator(mesh)

    @property
    def mesh(self) -> QuadMesh: return self._mesh

    @property
    def locator(self) -> PointLocatable: return self._locator

    def locate(self, x: float, y: float) -> int | None:
        return self._locator.locate(float(x), float(y))

    def _interpolate(self, q: int, x: float, y: float) -> FloatArray:
        m = self._mesh
        x1, y1 = m.quad_min[q]
        x2, y2 = m.quad_max[q]
        k = int(m.min_corner[q])
        verts = m.quads[q][(k + np.arange(4)) % 4]
        f = m.vectors[verts]                                     # (4,2): (x1,y1),(x2,y1),(x2,y2),(x1,y2)
        area = (x2 - x1) * (y2 - y1)
        p1 = (x2 - x) * (y2 - y) / area
        p2 = (x - x1) * (y2 - y) / area
        p3 = (x2 - x) * (y - y1) / area
        p4 = (x - x1) * (y - y1) / area
        return np.asarray(p1 * f[0] + p2 * f[1] + p4 * f[2] + p3 * f[3], dtype=np.float64)

    def try_sample(self, point: PointLike) -> FloatArray | None:
        """Field vector (vx, vy) at ``point``, or None when no quad contains it."""
        x, y = float(point[0]), float(point[1])
        q = self._locator.locate(x, y)
        if q is None:
            return None
        return self._interpolate(q, x, y)

    def sample(self, point: PointLike) -> FloatArray:
        x, y = float(point[0]), float(point[1])
        q = self._locator.locate(x, y)
        if q is None:
            raise PointOutsideMesh(x, y)
        return self._interpolate(q, x, y)

    def sample_many(self, points: np.ndarray | Sequence[Sequence[float]]) -> NDArray[np.float64]:
        """Sample each row of an (M,2+) array; rows outside the mesh come back as NaN."""
        pts = np.asarray(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] < 2:
            raise ValueError("points must have shape (M,2) or (M,3).")
        out = np.full((pts.shape[0], 2), np.nan, dtype=np.float64)
        for i, (x, y) in enumerate(pts[:, :2]):
            v = self.try_sample((x, y))
            if v is not None:
                out[i] = v
        return out


def normalize(v: np.ndarray) -> FloatArray:
    """Unit vector along ``v``; raises DegenerateField for a zero vector."""
    arr = np.asarray(v, dtype=np.float64)
    n = float(np.linalg.norm(arr))
    if n == 0.0 or not math.isfinite(n):
        raise DegenerateField(f"cannot normalize vector {arr.tolist()}")
    return arr / n
