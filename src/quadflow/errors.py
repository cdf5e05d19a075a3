from __future__ import annotations


class QuadflowError(Exception):
    """Base class for errors raised by quadflow."""


class MeshValidationError(QuadflowError, ValueError):
    """Mesh violates a shape precondition (raised at load time, before sampling)."""


class PointOutsideMesh(QuadflowError, LookupError):
    """No quad of the mesh contains the query point."""

    def __init__(self, x: float, y: float) -> None:
        super().__init__(f"point ({x:.6g}, {y:.6g}) is not inside any quad")
        self.x = float(x)
        self.y = float(y)


class DegenerateField(QuadflowError, ArithmeticError):
    """Zero-magnitude direction where a unit direction is required."""


class ResizeDuringAdvection(QuadflowError, RuntimeError):
    """Framebuffer size changed while a frame was being advected.

    The pixel buffer has already been reset to ``(width, height)`` when this
    is raised; callers skip the frame and carry on.
    """

    def __init__(self, width: int, height: int) -> None:
        super().__init__(f"viewport resized to {width}x{height} during advection")
        self.width = int(width)
        self.height = int(height)
