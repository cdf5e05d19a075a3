from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, get_args
from collections.abc import Sequence

import logging
import os
import numpy as np
import matplotlib.pyplot as plt
from matplotlib import animation
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.collections import LineCollection, PolyCollection
from matplotlib.colors import LinearSegmentedColormap
from matplotlib.figure import Figure
from matplotlib.tri import Triangulation

from .api import load_ply
from .camera import Camera, rotation_x
from .canvas import ByteArray, NumpyCanvas
from .errors import MeshValidationError, ResizeDuringAdvection
from .glyphs import GlyphConfig, GlyphSampler
from .ibfv import FlowTextureAdvector, IBFVConfig
from .mesh import QuadMesh
from .noise import NoiseConfig, make_patterns
from .sampler import FieldSampler, GridLocator
from .shading import BLUE, RED, Color, apply_colors, bicolor, checkerboard, grayscale, height_map, quad_face_colors
from .streamlines import LineSegment, PolyLine, StreamlineConfig, StreamlineIntegrator

logger = logging.getLogger(__name__)

DisplayMode = Literal[
    "solid", "wireframe", "checkerboard", "height", "ibfv", "scalar", "glyphs", "streamlines", "grayscale",
]
MODE_KEYS: dict[str, DisplayMode] = {
    "1": "solid",
    "2": "wireframe",
    "3": "checkerboard",
    "4": "height",
    "5": "ibfv",
    "6": "scalar",
    "7": "glyphs",
    "8": "streamlines",
    "9": "grayscale",
}
PAN_STEP = 0.05
HEIGHT_TILT = -60.0  # degrees about x for the height view
# power-of-two dpi keeps width/dpi*dpi exact, so offscreen renders are exactly width x height
_RENDER_DPI = 64


@dataclass(slots=True)
class ViewerConfig:
    width: int = 512
    height: int = 512
    mode: DisplayMode = "ibfv"
    fps: int = 30
    zoom: float = 1.0
    interval_ms: float | None = None
    lower_color: Color = RED
    upper_color: Color = BLUE
    glyph_color: str = "white"
    streamline_color: str = "white"
    height_scale: float = 0.25  # peak height as a fraction of the mesh radius
    use_grid_index: bool = True
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    ibfv: IBFVConfig = field(default_factory=IBFVConfig)
    streamlines: StreamlineConfig = field(default_factory=StreamlineConfig)
    glyphs: GlyphConfig = field(default_factory=GlyphConfig)

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError("width and height must be positive.")
        if self.mode not in get_args(DisplayMode):
            raise ValueError(f"Unknown display mode: {self.mode}")
        if self.fps < 1:
            raise ValueError("fps must be positive.")
        if not (np.isfinite(self.zoom) and self.zoom > 0.0):
            raise ValueError("zoom must be positive.")
        if self.interval_ms is not None and self.interval_ms <= 0.0:
            raise ValueError("interval_ms must be positive.")
        if not (np.isfinite(self.height_scale) and self.height_scale >= 0.0):
            raise ValueError("height_scale must be non-negative.")

    @property
    def interval(self) -> float:
        """Milliseconds between animation frames."""
        return self.interval_ms if self.interval_ms is not None else 1000.0 / self.fps


class Viewer:
    """Display-mode driven viewer: IBFV animation, streamlines, glyphs and scalar shading.

    Every mode is drawn in window coordinates through one ``Camera`` so the
    frames of all modes line up. Streamlines and glyphs are computed on first
    use and cached until the next ``load``.
    """

    def __init__(
        self,
        mesh: QuadMesh,
        config: ViewerConfig | None = None,
        *,
        rng: np.random.Generator | None = None,
        datasets: Sequence[str | os.PathLike[str]] | None = None,
    ) -> None:
        self._cfg = config or ViewerConfig()
        self._rng = np.random.default_rng() if rng is None else rng
        self._datasets = list(datasets or [])
        self._dataset_index = 0
        self.camera = Camera(self._cfg.width, self._cfg.height, zoom=self._cfg.zoom)
        self.canvas = NumpyCanvas(self._cfg.width, self._cfg.height)
        self._mode: DisplayMode = self._cfg.mode
        self._advector: FlowTextureAdvector | None = None
        self._image: Any | None = None
        self._title: Any | None = None
        self._streamlines: list[PolyLine] | None = None
        self._glyphs: list[LineSegment] | None = None
        self.load(mesh)

    # -------- properties --------
    @property
    def mesh(self) -> QuadMesh: return self._mesh

    @property
    def mode(self) -> DisplayMode: return self._mode

    @property
    def advector(self) -> FlowTextureAdvector:
        if self._advector is None:
            raise RuntimeError("viewer has no mesh loaded.")
        return self._advector

    @property
    def sampler(self) -> FieldSampler: return self._sampler

    # -------- data --------
    def load(self, mesh: QuadMesh) -> None:
        """Swap in a new mesh; noise, pixel buffer and cached geometry are rebuilt.

        Raises MeshValidationError, leaving the viewer unchanged, when glyph mode
        is active and the mesh is not a square grid.
        """
        if self._mode == "glyphs":
            mesh.require_structured()
        cfg = self._cfg
        self._mesh = mesh
        locator = GridLocator(mesh) if cfg.use_grid_index else None
        self._sampler = FieldSampler(mesh, locator)
        patterns = make_patterns(cfg.noise.n_patterns, cfg.noise.size, self._rng, alpha=cfg.noise.alpha)
        if self._advector is None:
            self._advector = FlowTextureAdvector(mesh, patterns, self.camera.width, self.camera.height, cfg.ibfv)
        else:
            self._advector.reload(mesh, patterns)
        self.invalidate()
        if not mesh.is_structured:
            logger.warning("mesh is not a square row-major grid; glyph mode is unavailable")
        self._apply_mode_colors()
        logger.info("viewer loaded %r", mesh)

    def next_dataset(self) -> None:
        if not self._datasets:
            logger.info("no datasets to cycle through")
            return
        self._dataset_index = (self._dataset_index + 1) % len(self._datasets)
        path = self._datasets[self._dataset_index]
        try:
            self.load(load_ply(path))
        except (OSError, MeshValidationError) as exc:
            logger.error("could not load %s: %s", path, exc)

    def streamlines(self) -> list[PolyLine]:
        if self._streamlines is None:
            integrator = StreamlineIntegrator(self._mesh, self._sampler, self._cfg.streamlines)
            self._streamlines = integrator.gather()
        return self._streamlines

    def glyphs(self) -> list[LineSegment]:
        """Glyph segments; raises MeshValidationError for meshes that are not square grids."""
        if self._glyphs is None:
            self._glyphs = GlyphSampler(self._mesh, self._sampler, self._cfg.glyphs).sample()
        return self._glyphs

    def invalidate(self) -> None:
        """Drop cached streamlines and glyphs."""
        self._streamlines = None
        self._glyphs = None

    def set_mode(self, mode: DisplayMode) -> None:
        if mode not in get_args(DisplayMode):
            raise ValueError(f"Unknown display mode: {mode}")
        if mode == "glyphs":
            self.glyphs()
        elif mode == "streamlines":
            self.streamlines()
        self._mode = mode
        self._apply_mode_colors()
        logger.info("display mode: %s", mode)

    def _apply_mode_colors(self) -> None:
        if self._mode == "checkerboard":
            apply_colors(self._mesh, checkerboard(self._mesh))
        elif self._mode in ("scalar", "height"):
            apply_colors(self._mesh, bicolor(self._mesh, self._cfg.lower_color, self._cfg.upper_color))
        elif self._mode == "grayscale":
            apply_colors(self._mesh, grayscale(self._mesh))

    # -------- rendering --------
    def render(self, mode: DisplayMode | None = None) -> ByteArray:
        """One frame as an (H,W,3) uint8 image, rows bottom-up.

        ``mode`` switches the display mode first; glyph mode raises
        MeshValidationError on meshes that are not square grids.
        """
        if mode is not None and mode != self._mode:
            self.set_mode(mode)
        if self._mode == "ibfv":
            try:
                return self.advector.step(self.canvas, self.camera)
            except ResizeDuringAdvection as exc:
                logger.info("frame skipped: %s", exc)
                return self.advector.pixels.data.copy()
        return self._render_geometry()

    def _project_segments(self, segments: np.ndarray) -> np.ndarray:
        if segments.size == 0:
            return np.zeros((0, 2, 2))
        win = self.camera.project(self._mesh, segments.reshape(-1, 3))[:, :2]
        return win.reshape(-1, 2, 2)

    def _render_geometry(self) -> ByteArray:
        w, h = self.camera.width, self.camera.height
        mode = self._mode
        fig = Figure(figsize=(w / _RENDER_DPI, h / _RENDER_DPI), dpi=_RENDER_DPI)
        FigureCanvasAgg(fig)
        ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
        ax.set_xlim(0, w)
        ax.set_ylim(0, h)
        ax.set_axis_off()

        mesh = self._mesh
        win = self.camera.project(mesh)[:, :2]
        polys = win[mesh.quads]
        dark = mode in ("glyphs", "streamlines")
        fig.patch.set_facecolor("black" if dark else "white")

        if mode == "solid":
            ax.add_collection(PolyCollection(polys, facecolors=(1.0, 1.0, 0.0), edgecolors="none"))
        elif mode == "wireframe":
            ax.add_collection(PolyCollection(polys, facecolors="none", edgecolors="black", linewidths=0.5))
        elif mode in ("checkerboard", "grayscale"):
            ax.add_collection(PolyCollection(polys, facecolors=quad_face_colors(mesh), edgecolors="none"))
        elif mode == "height":
            raised = height_map(mesh, self._cfg.height_scale * mesh.radius)
            tilted = replace(self.camera, rotation=self.camera.rotation @ rotation_x(HEIGHT_TILT))
            hwin = tilted.project(mesh, raised)
            # painter's order: farthest quads first
            order = np.argsort(-hwin[mesh.quads, 2].mean(axis=1), kind="stable")
            ax.add_collection(PolyCollection(
                hwin[:, :2][mesh.quads][order], facecolors=quad_face_colors(mesh)[order], edgecolors="none",
            ))
        elif mode == "scalar":
            tri = Triangulation(win[:, 0], win[:, 1], np.concatenate([mesh.quads[:, :3], mesh.quads[:, [0, 2, 3]]]))
            cmap = LinearSegmentedColormap.from_list("bicolor", [self._cfg.lower_color, self._cfg.upper_color])
            ax.tripcolor(tri, mesh.scalars, shading="gouraud", cmap=cmap)
        else:
            ax.add_collection(PolyCollection(polys, facecolors="black", edgecolors="none"))
            if mode == "glyphs":
                segs = np.array([s.as_array() for s in self.glyphs()]).reshape(-1, 2, 3)
                color, width = self._cfg.glyph_color, 0.5
            else:
                lines = self.streamlines()
                segs = np.concatenate([pl.as_array() for pl in lines]) if lines else np.zeros((0, 2, 3))
                color, width = self._cfg.streamline_color, 1.0
            ax.add_collection(LineCollection(self._project_segments(segs), colors=color, linewidths=width))

        fig.canvas.draw()
        rgba = np.asarray(fig.canvas.buffer_rgba())
        return np.ascontiguousarray(rgba[::-1, :, :3])

    # -------- interaction --------
    def _on_key(self, event: Any) -> None:
        key = event.key
        if key in MODE_KEYS:
            try:
                self.set_mode(MODE_KEYS[key])
            except MeshValidationError as exc:
                logger.warning("cannot switch to %s: %s", MODE_KEYS[key], exc)
        elif key == "r":
            self.camera.reset()
        elif key in ("+", "="):
            self.camera.zoom_by(1)
        elif key == "-":
            self.camera.zoom_by(-1)
        elif key in ("left", "right", "up", "down"):
            dx = {"left": -PAN_STEP, "right": PAN_STEP}.get(key, 0.0)
            dy = {"down": -PAN_STEP, "up": PAN_STEP}.get(key, 0.0)
            self.camera.pan(dx, dy)
        elif key == "x":
            self.next_dataset()

    def _on_scroll(self, event: Any) -> None:
        self.camera.zoom_by(1 if event.button == "up" else -1)

    def _on_resize(self, event: Any) -> None:
        if self._image is None:
            return
        bbox = self._image.axes.get_window_extent()
        self.camera.resize(max(1, int(bbox.width)), max(1, int(bbox.height)))

    def _update(self, _i: int) -> list[Any]:
        img = self.render()
        h, w = img.shape[:2]
        self._image.set_data(img)
        self._image.set_extent((0, w, 0, h))
        self._title.set_text(f"{self._mode} | frame {self.advector.frame_counter}")
        return [self._image, self._title]

    def show(self) -> animation.FuncAnimation:
        """Open an interactive window; keys 1-9 switch modes, r resets, x loads the next dataset."""
        w, h = self.camera.width, self.camera.height
        fig, ax = plt.subplots(figsize=(w / 100.0, h / 100.0))
        ax.set_axis_off()
        self._image = ax.imshow(self.render(), origin="lower", extent=(0, w, 0, h), interpolation="nearest")
        self._title = ax.set_title(self._mode)
        fig.canvas.mpl_connect("key_press_event", self._on_key)
        fig.canvas.mpl_connect("scroll_event", self._on_scroll)
        fig.canvas.mpl_connect("resize_event", self._on_resize)
        anim = animation.FuncAnimation(
            fig, self._update, interval=self._cfg.interval, blit=False, cache_frame_data=False,
        )
        plt.show()
        return anim


# ------------------------------
# Plot helpers
# ------------------------------

def plot_snapshot(
    mesh: QuadMesh,
    *,
    mode: Literal["streamlines", "glyphs"] = "streamlines",
    streamline_config: StreamlineConfig | None = None,
    glyph_config: GlyphConfig | None = None,
    figsize: tuple[float, float] = (7.0, 7.0),
    show: bool = True,
) -> Figure:
    """Static view in mesh coordinates: scalar field underlay with streamlines or glyphs."""
    sampler = FieldSampler(mesh, GridLocator(mesh))
    if mode == "streamlines":
        lines = StreamlineIntegrator(mesh, sampler, streamline_config).gather()
        segs = np.concatenate([pl.as_array() for pl in lines]) if lines else np.zeros((0, 2, 3))
    elif mode == "glyphs":
        glyphs = GlyphSampler(mesh, sampler, glyph_config).sample()
        segs = np.array([g.as_array() for g in glyphs]).reshape(-1, 2, 3)
    else:
        raise ValueError("mode must be 'streamlines' or 'glyphs'.")

    fig, ax = plt.subplots(figsize=figsize)
    pos = mesh.positions
    tri = Triangulation(pos[:, 0], pos[:, 1], np.concatenate([mesh.quads[:, :3], mesh.quads[:, [0, 2, 3]]]))
    tpc = ax.tripcolor(tri, mesh.scalars, shading="gouraud", cmap="viridis")
    fig.colorbar(tpc, ax=ax, fraction=0.046, pad=0.04).set_label("scalar")
    ax.add_collection(LineCollection(segs[:, :, :2], colors="white", linewidths=0.8))

    b = mesh.bounds
    ax.set_xlim(b.minx, b.maxx)
    ax.set_ylim(b.miny, b.maxy)
    ax.set_aspect("equal", adjustable="box")
    ax.set_title(f"{mode}: {len(segs)} segments")
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    if show:
        plt.show()
    return fig


def run_animation(
    mesh: QuadMesh,
    frames: int,
    *,
    config: ViewerConfig | None = None,
    rng: np.random.Generator | None = None,
    save_path: str | None = None,
    fps: int = 30,
) -> animation.FuncAnimation:
    """IBFV animation of ``mesh``; shown, or written to .mp4/.gif when ``save_path`` is set."""
    viewer = Viewer(mesh, config, rng=rng)
    viewer.set_mode("ibfv")
    w, h = viewer.camera.width, viewer.camera.height

    fig, ax = plt.subplots(figsize=(w / 100.0, h / 100.0))
    ax.set_axis_off()
    image = ax.imshow(viewer.render(), origin="lower", extent=(0, w, 0, h), interpolation="nearest")
    ttl = ax.set_title("frame 0")

    def _update(_i: int) -> list[Any]:
        image.set_data(viewer.render())
        ttl.set_text(f"frame {viewer.advector.frame_counter}")
        return [image, ttl]

    anim = animation.FuncAnimation(fig, _update, frames=frames, interval=1000 / fps, blit=False)

    if save_path:
        if save_path.lower().endswith(".mp4"):
            Writer = animation.FFMpegWriter
            writer = Writer(fps=fps, metadata={"artist": "quadflow"}, bitrate=1800)
            anim.save(save_path, writer=writer, dpi=100)
        elif save_path.lower().endswith(".gif"):
            anim.save(save_path, writer="pillow", fps=fps, dpi=100)
        else:
            raise ValueError("Unsupported extension. Use .mp4 or .gif")
        logger.info("saved %d frames to %s", frames, save_path)
    else:
        plt.show()
    return anim
