from __future__ import annotations

from typing import Any
from collections.abc import Mapping

import logging
import os
import meshio
import numpy as np

from .errors import MeshValidationError
from .mesh import QuadMesh

logger = logging.getLogger(__name__)

Extent = tuple[float, float, float, float]

_SCALAR_KEYS = ("s", "scalar", "scalars")


# ----------------------
# PLY I/O (meshio)
# ----------------------

def load_ply(path: str | os.PathLike[str]) -> QuadMesh:
    """Read a quad mesh with per-vertex ``vx``, ``vy`` and optional scalar ``s``.

    Raises MeshValidationError when the file lacks quads or the field properties,
    or when its quads break the axis-aligned rectangle layout.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"{path}: no such file.")
    try:
        data = meshio.read(os.fspath(path))
    except meshio.ReadError as exc:
        raise MeshValidationError(f"{path}: {exc}") from exc
    quads = data.cells_dict.get("quad")
    if quads is None or len(quads) == 0:
        raise MeshValidationError(f"{path}: no quad faces found.")
    pd = data.point_data
    missing = [k for k in ("vx", "vy") if k not in pd]
    if missing:
        raise MeshValidationError(f"{path}: missing vertex properties {missing}.")
    points = np.asarray(data.points, dtype=np.float64)
    if points.shape[1] == 2:
        points = np.concatenate([points, np.zeros((points.shape[0], 1))], axis=1)
    scalars = next((np.asarray(pd[k], dtype=np.float64) for k in _SCALAR_KEYS if k in pd), None)
    mesh = QuadMesh(
        positions=points,
        vectors=np.stack([np.asarray(pd["vx"]), np.asarray(pd["vy"])], axis=1),
        quads=np.asarray(quads, dtype=np.int64),
        scalars=scalars,
    )
    logger.info("loaded %s: %r", path, mesh)
    return mesh


def save_ply(mesh: QuadMesh, path: str | os.PathLike[str], *, binary: bool = False) -> None:
    out = meshio.Mesh(
        points=mesh.positions,
        cells=[("quad", mesh.quads)],
        point_data={"vx": mesh.vectors[:, 0], "vy": mesh.vectors[:, 1], "s": mesh.scalars},
    )
    meshio.write(os.fspath(path), out, file_format="ply", binary=binary)


# ----------------------
# Snapshot I/O (.npz)
# ----------------------

_SCHEMA_VERSION = 1


def save_npz(mesh: QuadMesh, path: str, metadata: Mapping[str, Any] | None = None) -> None:
    """Save a mesh to .npz with schema versioning.

    Arrays stored:
      - positions: float64 [N,3]
      - vectors:   float64 [N,2]
      - scalars:   float64 [N]
      - quads:     int64   [Q,4]
    Scalars:
      - schema_version
      - metadata (optional dict, stored as an object array)
    """
    data: dict[str, Any] = {
        "positions": mesh.positions,
        "vectors": mesh.vectors,
        "scalars": mesh.scalars,
        "quads": mesh.quads,
        "schema_version": int(_SCHEMA_VERSION),
    }
    if metadata:
        data["metadata"] = np.array(dict(metadata), dtype=object)
    np.savez(path, **data)


def load_npz(path: str) -> QuadMesh:
    """Load a mesh saved by ``save_npz``. Requires a compatible schema_version."""
    with np.load(path, allow_pickle=True) as npz:
        schema = int(npz.get("schema_version", np.array(0)))
        if schema != _SCHEMA_VERSION:
            raise ValueError(f"Incompatible schema_version {schema}; expected {_SCHEMA_VERSION}.")
        return QuadMesh(
            positions=np.asarray(npz["positions"], dtype=np.float64),
            vectors=np.asarray(npz["vectors"], dtype=np.float64),
            quads=np.asarray(npz["quads"], dtype=np.int64),
            scalars=np.asarray(npz["scalars"], dtype=np.float64),
        )


# ----------------------
# Demo fields
# ----------------------

def _grid(n: int, extent: Extent) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    if n < 3:
        raise ValueError("n must be at least 3.")
    xmin, xmax, ymin, ymax = extent
    xs = np.linspace(xmin, xmax, n)
    ys = np.linspace(ymin, ymax, n)
    X, Y = np.meshgrid(xs, ys, indexing="xy")
    return xs, ys, X, Y


def uniform_field_mesh(
    n: int = 21,
    extent: Extent = (-10.0, 10.0, -10.0, 10.0),
    direction: tuple[float, float] = (1.0, 0.0),
    scalar: float = 0.0,
) -> QuadMesh:
    """Constant field on an n x n grid."""
    xs, ys, X, _ = _grid(n, extent)
    vx = np.full_like(X, float(direction[0]))
    vy = np.full_like(X, float(direction[1]))
    return QuadMesh.from_grid(xs, ys, vx, vy, np.full_like(X, float(scalar)))


def vortex_field_mesh(
    n: int = 21,
    extent: Extent = (-10.0, 10.0, -10.0, 10.0),
    center: tuple[float, float] = (0.0, 0.0),
    strength: float = 0.3,
) -> QuadMesh:
    """Solid-body rotation u = strength * (-(y-cy), x-cx); scalar is the speed."""
    xs, ys, X, Y = _grid(n, extent)
    vx = -strength * (Y - center[1])
    vy = strength * (X - center[0])
    return QuadMesh.from_grid(xs, ys, vx, vy, np.hypot(vx, vy))


def saddle_field_mesh(
    n: int = 21,
    extent: Extent = (-10.0, 10.0, -10.0, 10.0),
    strength: float = 0.3,
) -> QuadMesh:
    """Hyperbolic point at the origin, u = strength * (x, -y); scalar is the speed."""
    xs, ys, X, Y = _grid(n, extent)
    vx = strength * X
    vy = -strength * Y
    return QuadMesh.from_grid(xs, ys, vx, vy, np.hypot(vx, vy))
