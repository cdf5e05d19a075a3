"""Image based flow visualization (van Wijk, 2002) over a quad mesh.

The previous frame is kept as a texture, pulled along the flow by drawing the
mesh with texture coordinates offset by the local field direction, then mixed
with a fresh noise tile and read back to seed the next frame. No particles are
tracked.
"""
from __future__ import annotations

from dataclasses import dataclass, field

import logging
import numpy as np
from numpy.typing import NDArray

from .camera import Camera
from .canvas import ByteArray, RenderBackend
from .errors import ResizeDuringAdvection
from .mesh import QuadMesh
from .noise import NoisePatternSet

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.float64]


@dataclass(slots=True)
class IBFVConfig:
    """Advection controls.

    scale: flow offset per frame is at most scale/width in texture units, and the
        noise tile repeats every scale*tile_size pixels
    background: grey level used to clear the framebuffer and reset the pixel buffer
    """
    scale: float = 4.0
    background: int = 255

    def __post_init__(self) -> None:
        if not (np.isfinite(self.scale) and self.scale > 0.0):
            raise ValueError("scale must be positive.")
        if not 0 <= self.background <= 255:
            raise ValueError("background must be a byte value.")


@dataclass(slots=True)
class PixelBuffer:
    """Persistent RGB raster carried from one frame to the next (rows bottom-up)."""
    width: int
    height: int
    fill: int = 255
    data: ByteArray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError("pixel buffer must be at least 1x1.")
        self.data = np.full((self.height, self.width, 3), self.fill, dtype=np.uint8)

    def reset(self) -> None:
        self.data[...] = self.fill


@dataclass(slots=True, frozen=True)
class FrameGeometry:
    window: FloatArray   # (Q,4,2) projected vertex positions in pixels
    base: FloatArray     # (Q,4,2) texture coordinates of the unperturbed projection
    offset: FloatArray   # (Q,4,2) base shifted along the clamped field direction


class FlowTextureAdvector:
    """Owns the pixel buffer and frame counter; one ``step`` per displayed frame.

    Frames must not be run concurrently on the same instance.
    """

    def __init__(
        self,
        mesh: QuadMesh,
        patterns: NoisePatternSet,
        width: int,
        height: int,
        config: IBFVConfig | None = None,
    ) -> None:
        self._cfg = config or IBFVConfig()
        self._mesh = mesh
        self._patterns = patterns
        self._frame = 0
        self._buffer = PixelBuffer(int(width), int(height), fill=self._cfg.background)

    # -------- properties --------
    @property
    def frame_counter(self) -> int: return self._frame

    @property
    def pixels(self) -> PixelBuffer: return self._buffer

    @property
    def patterns(self) -> NoisePatternSet: return self._patterns

    @property
    def config(self) -> IBFVConfig: return self._cfg

    @property
    def dmax(self) -> float:
        """Largest texture-space offset applied per frame."""
        return self._cfg.scale / self._buffer.width

    @property
    def tmax(self) -> float:
        """Noise texture repeat count across the viewport."""
        return self._buffer.width / (self._cfg.scale * self._patterns.size)

    # -------- state changes --------
    def resize(self, width: int, height: int) -> bool:
        """Reallocate a white buffer when the size changes; returns True if it did."""
        if (int(width), int(height)) == (self._buffer.width, self._buffer.height):
            return False
        self._buffer = PixelBuffer(int(width), int(height), fill=self._cfg.background)
        logger.info("pixel buffer reset to %dx%d", width, height)
        return True

    def reload(self, mesh: QuadMesh, patterns: NoisePatternSet) -> None:
        self._mesh = mesh
        self._patterns = patterns
        self._buffer.reset()
        logger.info("advector reloaded: %r", mesh)

    # -------- per frame --------
    def _vertex_offsets(self) -> FloatArray:
        v = self._mesh.vectors
        n = np.linalg.norm(v, axis=1)
        unit = np.divide(v, n[:, None], out=np.zeros_like(v), where=n[:, None] > 0.0)
        # unit vectors are longer than dmax for any practical viewport; zero stays zero
        r = np.linalg.norm(unit, axis=1)
        dmax = self.dmax
        shrink = np.where(r > dmax, dmax / np.where(r > 0.0, r, 1.0), 1.0)
        return np.asarray(unit * shrink[:, None], dtype=np.float64)

    def texture_coordinates(self, camera: Camera) -> FrameGeometry:
        w, h = self._buffer.width, self._buffer.height
        win = camera.project(self._mesh)[:, :2]
        base = win / np.array([w, h], dtype=np.float64)
        quads = self._mesh.quads
        return FrameGeometry(
            window=win[quads],
            base=base[quads],
            offset=(base + self._vertex_offsets())[quads],
        )

    def _noise_quad(self) -> tuple[FloatArray, FloatArray]:
        w, h = self._buffer.width, self._buffer.height
        t = self.tmax
        window = np.array([[[0.0, 0.0], [w, 0.0], [w, h], [0.0, h]]], dtype=np.float64)
        tex = np.array([[[0.0, 0.0], [t, 0.0], [t, t], [0.0, t]]], dtype=np.float64)
        return window, tex

    def step(self, backend: RenderBackend, camera: Camera) -> ByteArray:
        """Advance the animation one frame and return the displayed image (H,W,3)."""
        self.resize(camera.width, camera.height)
        backend.resize(self._buffer.width, self._buffer.height)
        bg = (self._cfg.background,) * 3

        # 1. project and offset texture coordinates along the field
        geom = self.texture_coordinates(camera)
        # 2. pull last frame's image along the flow
        backend.clear(bg)
        backend.draw_textured_quads(geom.window, geom.offset, self._buffer.data)
        # 3. inject noise
        win, tex = self._noise_quad()
        backend.draw_textured_quads(win, tex, self._patterns.tile(self._frame), blend=True)
        # 4. feed the composite back
        fb = backend.read_pixels()
        if fb.shape != self._buffer.data.shape:
            height, width = fb.shape[:2]
            self.resize(width, height)
            raise ResizeDuringAdvection(width, height)
        self._buffer.data[...] = fb
        # 5. draw what is shown, without the flow offset
        backend.clear(bg)
        backend.draw_textured_quads(geom.window, geom.base, self._buffer.data)
        self._frame += 1
        return backend.read_pixels()
