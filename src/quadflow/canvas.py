from __future__ import annotations

from typing import Protocol

import math
import numpy as np
from numpy.typing import NDArray

ByteArray = NDArray[np.uint8]
FloatArray = NDArray[np.float64]

# Quads are split into these two triangles, as fixed-function GL does.
_QUAD_TRIANGLES = ((0, 1, 2), (0, 2, 3))
# Vertices snap to 1/256 pixel and coverage is tested in integers, so edge
# tests are exact and a shared edge gives opposite signs in its two triangles.
_SUBPIXEL = 256
_COORD_LIMIT = 1.0e6


def _edge(ax: int, ay: int, bx: int, by: int, px: np.ndarray, py: np.ndarray) -> np.ndarray:
    """Twice the signed area of (a, b, p); positive when p lies left of a->b."""
    return (bx - ax) * (py - ay) - (by - ay) * (px - ax)


def _owns(e: np.ndarray, ax: int, ay: int, bx: int, by: int) -> np.ndarray:
    """Top-left fill rule for a counter-clockwise triangle in y-up window space.

    Pixels strictly inside pass; pixels exactly on the edge pass only for left
    edges (running down) and top edges (horizontal, running left).
    """
    dx, dy = bx - ax, by - ay
    top_left = dy < 0 or (dy == 0 and dx < 0)
    return (e > 0) | ((e == 0) & top_left)


class RenderBackend(Protocol):
    """Minimal immediate-mode surface used by the flow texture advector.

    Framebuffer rows are stored bottom-up: row 0 is window y in [0, 1).
    """

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def resize(self, width: int, height: int) -> None: ...

    def clear(self, color: tuple[int, int, int] = (255, 255, 255)) -> None: ...

    def draw_textured_quads(
        self,
        window_xy: np.ndarray,
        texcoords: np.ndarray,
        texture: np.ndarray,
        *,
        blend: bool = False,
    ) -> None: ...

    def read_pixels(self) -> ByteArray: ...


def sample_texture(texture: np.ndarray, u: np.ndarray, v: np.ndarray) -> FloatArray:
    """Bilinear lookup with repeat wrapping (GL_LINEAR, GL_REPEAT); returns (K,C) floats."""
    th, tw = texture.shape[:2]
    x = np.asarray(u, dtype=np.float64) * tw - 0.5
    y = np.asarray(v, dtype=np.float64) * th - 0.5
    x0 = np.floor(x)
    y0 = np.floor(y)
    fx = (x - x0)[:, None]
    fy = (y - y0)[:, None]
    i0 = x0.astype(np.int64) % tw
    j0 = y0.astype(np.int64) % th
    i1 = (i0 + 1) % tw
    j1 = (j0 + 1) % th
    tex = texture.astype(np.float64, copy=False)
    return np.asarray(
        tex[j0, i0] * ((1.0 - fx) * (1.0 - fy)) + tex[j0, i1] * (fx * (1.0 - fy))
        + tex[j1, i0] * ((1.0 - fx) * fy) + tex[j1, i1] * (fx * fy),
        dtype=np.float64,
    )


class NumpyCanvas:
    """Software rasterizer: textured quads, alpha blending and framebuffer readback.

    Coverage is tested at pixel centres under a top-left fill rule, so a pixel
    on an edge shared by two triangles is drawn once. Texture coordinates are
    interpolated affinely, which is exact for the orthographic views used here.
    """

    def __init__(self, width: int, height: int) -> None:
        self._fb: ByteArray = np.empty((0, 0, 3), dtype=np.uint8)
        self.resize(width, height)

    @property
    def width(self) -> int: return int(self._fb.shape[1])

    @property
    def height(self) -> int: return int(self._fb.shape[0])

    def resize(self, width: int, height: int) -> None:
        if width < 1 or height < 1:
            raise ValueError("canvas must be at least 1x1.")
        if (height, width) != self._fb.shape[:2]:
            self._fb = np.full((int(height), int(width), 3), 255, dtype=np.uint8)

    def clear(self, color: tuple[int, int, int] = (255, 255, 255)) -> None:
        self._fb[...] = np.asarray(color, dtype=np.uint8)

    def read_pixels(self) -> ByteArray:
        return self._fb.copy()

    def draw_textured_quads(
        self,
        window_xy: np.ndarray,
        texcoords: np.ndarray,
        texture: np.ndarray,
        *,
        blend: bool = False,
    ) -> None:
        """Draw (Q,4,2) window-space quads with (Q,4,2) texture coordinates.

        Without ``blend`` the texel colour replaces the pixel; with it an RGBA
        texture is composited as src*alpha + dst*(1-alpha).
        """
        xy = np.asarray(window_xy, dtype=np.float64)
        uv = np.asarray(texcoords, dtype=np.float64)
        if xy.shape != uv.shape or xy.ndim != 3 or xy.shape[1:] != (4, 2):
            raise ValueError("window_xy and texcoords must both have shape (Q,4,2).")
        tex = np.asarray(texture)
        if tex.ndim != 3 or tex.shape[2] not in (3, 4):
            raise ValueError("texture must have shape (H,W,3) or (H,W,4).")
        if blend and tex.shape[2] != 4:
            raise ValueError("blending needs an RGBA texture.")
        tex = tex.astype(np.float64)
        for q in range(xy.shape[0]):
            for tri in _QUAD_TRIANGLES:
                self._raster_triangle(xy[q, tri], uv[q, tri], tex, blend)

    def _raster_triangle(self, p: FloatArray, t: FloatArray, tex: FloatArray, blend: bool) -> None:
        h, w = self._fb.shape[:2]
        s = _SUBPIXEL
        snapped = np.rint(np.clip(p, -_COORD_LIMIT, _COORD_LIMIT) * s).astype(np.int64)
        (x0, y0), (x1, y1), (x2, y2) = ((int(a), int(b)) for a, b in snapped)
        area2 = _edge(x0, y0, x1, y1, np.int64(x2), np.int64(y2))
        if area2 == 0:
            return
        if area2 < 0:
            # wind counter-clockwise so the fill rule sees consistent edges
            x1, y1, x2, y2 = x2, y2, x1, y1
            t = t[[0, 2, 1]]
            area2 = -area2

        xmin = max(math.floor(min(x0, x1, x2) / s), 0)
        xmax = min(math.ceil(max(x0, x1, x2) / s), w - 1)
        ymin = max(math.floor(min(y0, y1, y2) / s), 0)
        ymax = min(math.ceil(max(y0, y1, y2) / s), h - 1)
        if xmin > xmax or ymin > ymax:
            return

        cols, rows = np.meshgrid(np.arange(xmin, xmax + 1), np.arange(ymin, ymax + 1), indexing="xy")
        px = cols.astype(np.int64) * s + s // 2      # pixel centres in subpixel units
        py = rows.astype(np.int64) * s + s // 2
        e0 = _edge(x1, y1, x2, y2, px, py)
        e1 = _edge(x2, y2, x0, y0, px, py)
        e2 = _edge(x0, y0, x1, y1, px, py)
        inside = _owns(e0, x1, y1, x2, y2) & _owns(e1, x2, y2, x0, y0) & _owns(e2, x0, y0, x1, y1)
        if not inside.any():
            return
        b = np.stack([e0[inside], e1[inside], e2[inside]], axis=1) / float(area2)    # (K,3)
        uv = b @ t                                                    # (K,2)
        color = sample_texture(tex, uv[:, 0], uv[:, 1])
        r = rows[inside]
        c = cols[inside]
        if blend:
            alpha = color[:, 3:4] / 255.0
            out = color[:, :3] * alpha + self._fb[r, c].astype(np.float64) * (1.0 - alpha)
        else:
            out = color[:, :3]
        self._fb[r, c] = np.clip(np.rint(out), 0, 255).astype(np.uint8)
