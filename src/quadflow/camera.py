from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from .mesh import QuadMesh

Matrix4 = NDArray[np.float64]

ZOOM_SPEED = 0.9
EYE_DISTANCE = 3.0
FILL = 0.9  # fraction of the half view the mesh radius is scaled to


def ortho(left: float, right: float, bottom: float, top: float, near: float, far: float) -> Matrix4:
    m = np.eye(4)
    m[0, 0] = 2.0 / (right - left)
    m[1, 1] = 2.0 / (top - bottom)
    m[2, 2] = -2.0 / (far - near)
    m[0, 3] = -(right + left) / (right - left)
    m[1, 3] = -(top + bottom) / (top - bottom)
    m[2, 3] = -(far + near) / (far - near)
    return m


def translate(tx: float, ty: float, tz: float) -> Matrix4:
    m = np.eye(4)
    m[:3, 3] = (tx, ty, tz)
    return m


def scale(s: float) -> Matrix4:
    return np.diag([s, s, s, 1.0])


def rotation_x(degrees: float) -> Matrix4:
    a = np.radians(degrees)
    c, s = np.cos(a), np.sin(a)
    m = np.eye(4)
    m[1, 1], m[1, 2] = c, -s
    m[2, 1], m[2, 2] = s, c
    return m


@dataclass(slots=True)
class Camera:
    """Orthographic view of a mesh, framed on its bounding sphere.

    Matrices use the column-vector convention: window = viewport(P @ MV @ p).
    """
    width: int = 512
    height: int = 512
    zoom: float = 1.0
    translation: tuple[float, float] = (0.0, 0.0)
    rotation: Matrix4 = field(default_factory=lambda: np.eye(4))

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError("viewport must be at least 1x1.")
        if not self.zoom > 0.0:
            raise ValueError("zoom must be positive.")

    @property
    def aspect(self) -> float: return self.width / self.height

    @property
    def viewport(self) -> tuple[int, int, int, int]: return (0, 0, self.width, self.height)

    def resize(self, width: int, height: int) -> None:
        if width < 1 or height < 1:
            raise ValueError("viewport must be at least 1x1.")
        self.width, self.height = int(width), int(height)

    def zoom_by(self, steps: int) -> None:
        """Positive steps zoom in, negative zoom out."""
        self.zoom *= ZOOM_SPEED ** steps

    def pan(self, dx: float, dy: float) -> None:
        self.translation = (self.translation[0] + dx, self.translation[1] + dy)

    def reset(self) -> None:
        self.zoom = 1.0
        self.translation = (0.0, 0.0)
        self.rotation = np.eye(4)

    def projection(self) -> Matrix4:
        z = self.zoom
        a = self.aspect
        if a >= 1.0:
            return ortho(-z * a, z * a, -z, z, -1000.0, 1000.0)
        return ortho(-z, z, -z / a, z / a, -1000.0, 1000.0)

    def modelview(self, mesh: QuadMesh) -> Matrix4:
        r = mesh.radius if mesh.radius > 0.0 else 1.0
        c = mesh.center
        return (
            translate(self.translation[0], self.translation[1], -EYE_DISTANCE)
            @ self.rotation
            @ scale(FILL / r)
            @ translate(-c[0], -c[1], -c[2])
        )

    def project(self, mesh: QuadMesh, points: np.ndarray | None = None) -> NDArray[np.float64]:
        """Window coordinates (x, y, depth) of ``points`` (default: all mesh vertices)."""
        pts = mesh.positions if points is None else np.asarray(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError("points must have shape (N,3).")
        hom = np.concatenate([pts, np.ones((pts.shape[0], 1))], axis=1)
        clip = hom @ (self.projection() @ self.modelview(mesh)).T
        ndc = clip[:, :3] / clip[:, 3:4]
        x0, y0, w, h = self.viewport
        out = np.empty_like(ndc)
        out[:, 0] = x0 + w * (ndc[:, 0] + 1.0) / 2.0
        out[:, 1] = y0 + h * (ndc[:, 1] + 1.0) / 2.0
        out[:, 2] = (ndc[:, 2] + 1.0) / 2.0
        return out
