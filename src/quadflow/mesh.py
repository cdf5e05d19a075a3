from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Sequence

import math
import numpy as np
from numpy.typing import NDArray

from .errors import MeshValidationError

FloatArray = NDArray[np.float64]
IntArray = NDArray[np.int64]

# Corner codes of a quad vertex: bit 0 set -> x at max, bit 1 set -> y at max.
# Walking counter-clockwise from the min corner visits (x1,y1),(x2,y1),(x2,y2),(x1,y2).
_CCW_CODES = np.array([0, 1, 3, 2], dtype=np.int64)


# ---------------------------
# Utility
# ---------------------------
def _as_float_array(x: np.ndarray | Sequence, name: str, shape: tuple[int | None, ...]) -> FloatArray:
    """Convert to contiguous float64 and check the trailing dimensions."""
    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim != len(shape) or any(s is not None and s != n for s, n in zip(shape, arr.shape)):
        raise MeshValidationError(f"{name} must have shape {shape}, got {arr.shape}.")
    if not np.isfinite(arr).all():
        raise MeshValidationError(f"{name} contains non-finite values.")
    return np.ascontiguousarray(arr)


@dataclass(slots=True, frozen=True)
class BoundingBox:
    minx: float
    maxx: float
    miny: float
    maxy: float

    def contains(self, x: float, y: float) -> bool:
        return self.minx <= x <= self.maxx and self.miny <= y <= self.maxy

    @property
    def width(self) -> float: return self.maxx - self.minx

    @property
    def height(self) -> float: return self.maxy - self.miny


# ---------------------------
# Mesh
# ---------------------------
class QuadMesh:
    """Quad surface mesh carrying a planar vector field and a scalar per vertex.

    Every quad must be an axis-aligned rectangle in the (x, y) plane whose four
    vertices are listed counter-clockwise starting anywhere: the vertex at local
    index k holds the minimum corner, k+1 holds (maxx, miny), k+2 holds the
    maximum corner and k+3 holds (minx, maxy), all indices mod 4. The field
    sampler relies on this winding, so it is checked here rather than at
    sampling time.
    """

    def __init__(
        self,
        positions: np.ndarray | Sequence[Sequence[float]],
        vectors: np.ndarray | Sequence[Sequence[float]],
        quads: np.ndarray | Sequence[Sequence[int]],
        scalars: np.ndarray | Sequence[float] | None = None,
        *,
        check: bool = True,
    ) -> None:
        pos = _as_float_array(positions, "positions", (None, 3))
        n = pos.shape[0]
        vec = _as_float_array(vectors, "vectors", (n, 2))
        sca = np.zeros(n) if scalars is None else _as_float_array(scalars, "scalars", (n,))
        q = np.asarray(quads)
        if q.ndim != 2 or q.shape[1] != 4:
            raise MeshValidationError(f"quads must have shape (Q,4), got {q.shape}.")
        if q.shape[0] == 0:
            raise MeshValidationError("mesh has no quads.")
        q = np.ascontiguousarray(q, dtype=np.int64)
        if q.min() < 0 or q.max() >= n:
            raise MeshValidationError("quad vertex index out of range.")

        self._pos: FloatArray = pos.copy()
        self._vec: FloatArray = vec.copy()
        self._scalar: FloatArray = sca.copy()
        self._quads: IntArray = q.copy()
        self.colors: FloatArray = np.ones((n, 3), dtype=np.float64)

        corners = self._pos[self._quads, :2]                    # (Q,4,2)
        self._qmin: FloatArray = corners.min(axis=1)
        self._qmax: FloatArray = corners.max(axis=1)
        self._kmin: IntArray = self._find_min_corners(corners, check=check)

        self._bounds = BoundingBox(
            float(self._pos[:, 0].min()), float(self._pos[:, 0].max()),
            float(self._pos[:, 1].min()), float(self._pos[:, 1].max()),
        )
        lo = self._pos.min(axis=0)
        hi = self._pos.max(axis=0)
        self._center: FloatArray = 0.5 * (lo + hi)
        self._radius = float(np.linalg.norm(self._pos - self._center, axis=1).max(initial=0.0))
        # geometry and field are fixed once loaded; only colors may change
        for arr in (self._pos, self._vec, self._scalar, self._quads, self._qmin, self._qmax, self._kmin, self._center):
            arr.flags.writeable = False

    def _find_min_corners(self, corners: FloatArray, *, check: bool) -> IntArray:
        at_min_x = corners[..., 0] == self._qmin[:, None, 0]
        at_min_y = corners[..., 1] == self._qmin[:, None, 1]
        codes = (~at_min_x).astype(np.int64) + 2 * (~at_min_y).astype(np.int64)   # (Q,4)
        kmin = np.argmax(codes == 0, axis=1).astype(np.int64)
        if not check:
            return kmin

        flat = (self._qmax[:, 0] <= self._qmin[:, 0]) | (self._qmax[:, 1] <= self._qmin[:, 1])
        off_axis = ~(at_min_x | (corners[..., 0] == self._qmax[:, None, 0])) \
            | ~(at_min_y | (corners[..., 1] == self._qmax[:, None, 1]))
        rolled = np.take_along_axis(codes, (kmin[:, None] + np.arange(4)) % 4, axis=1)
        bad = flat | off_axis.any(axis=1) | (rolled != _CCW_CODES).any(axis=1)
        if bad.any():
            first = int(np.flatnonzero(bad)[0])
            raise MeshValidationError(
                f"{int(bad.sum())} quad(s) are not counter-clockwise axis-aligned rectangles "
                f"(first: quad {first}, vertices {self._quads[first].tolist()})."
            )
        return kmin

    @classmethod
    def from_grid(
        cls,
        xs: np.ndarray | Sequence[float],
        ys: np.ndarray | Sequence[float],
        vx: np.ndarray,
        vy: np.ndarray,
        scalars: np.ndarray | None = None,
        *,
        z: float = 0.0,
    ) -> QuadMesh:
        """Structured mesh on the tensor grid xs × ys, vertices stored row major.

        Field arrays have shape (len(ys), len(xs)); vertex (i, j) has index j*nx + i.
        """
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        nx, ny = xs.size, ys.size
        if nx < 2 or ny < 2:
            raise MeshValidationError("grid needs at least two coordinates per axis.")
        X, Y = np.meshgrid(xs, ys, indexing="xy")
        positions = np.stack([X.ravel(), Y.ravel(), np.full(nx * ny, float(z))], axis=1)
        vectors = np.stack([np.asarray(vx, dtype=np.float64).reshape(ny, nx).ravel(),
                            np.asarray(vy, dtype=np.float64).reshape(ny, nx).ravel()], axis=1)
        ii, jj = np.meshgrid(np.arange(nx - 1), np.arange(ny - 1), indexing="xy")
        v00 = (jj * nx + ii).ravel()
        quads = np.stack([v00, v00 + 1, v00 + nx + 1, v00 + nx], axis=1)
        s = None if scalars is None else np.asarray(scalars, dtype=np.float64).reshape(ny, nx).ravel()
        return cls(positions, vectors, quads, s)

    # -------- properties --------
    @property
    def positions(self) -> FloatArray: return self._pos

    @property
    def vectors(self) -> FloatArray: return self._vec

    @property
    def scalars(self) -> FloatArray: return self._scalar

    @property
    def quads(self) -> IntArray: return self._quads

    @property
    def n_vertices(self) -> int: return int(self._pos.shape[0])

    @property
    def n_quads(self) -> int: return int(self._quads.shape[0])

    @property
    def bounds(self) -> BoundingBox: return self._bounds

    @property
    def quad_min(self) -> FloatArray: return self._qmin

    @property
    def quad_max(self) -> FloatArray: return self._qmax

    @property
    def min_corner(self) -> IntArray:
        """Local index (0..3) of each quad's minimum-corner vertex."""
        return self._kmin

    @property
    def center(self) -> FloatArray: return self._center

    @property
    def radius(self) -> float: return self._radius

    # -------- structured-grid checks --------
    @property
    def row_length(self) -> int:
        return math.isqrt(self.n_vertices)

    @property
    def is_structured(self) -> bool:
        """True when vertices form a square row-major grid (rows share y, or share x)."""
        row = self.row_length
        if row < 3 or row * row != self.n_vertices:
            return False
        grid = self._pos[:, :2].reshape(row, row, 2)
        rows_share_y = bool(np.all(grid[:, :, 1] == grid[:, :1, 1]))
        rows_share_x = bool(np.all(grid[:, :, 0] == grid[:, :1, 0]))
        return rows_share_y or rows_share_x

    def require_structured(self) -> int:
        """Return the row length, or raise if the vertices are not a square row-major grid."""
        if not self.is_structured:
            raise MeshValidationError(
                f"{self.n_vertices} vertices do not form a square row-major grid."
            )
        return self.row_length

    def __repr__(self) -> str:
        b = self._bounds
        return (f"QuadMesh(n_vertices={self.n_vertices}, n_quads={self.n_quads}, "
                f"bounds=({b.minx:g}, {b.maxx:g}, {b.miny:g}, {b.maxy:g}))")
