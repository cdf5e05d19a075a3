from .errors import (
    QuadflowError,
    MeshValidationError,
    PointOutsideMesh,
    DegenerateField,
    ResizeDuringAdvection,
)
from .mesh import BoundingBox, QuadMesh
from .sampler import FieldSampler, GridLocator, LinearScanLocator, normalize
from .streamlines import LineSegment, PolyLine, StreamlineConfig, StreamlineIntegrator
from .glyphs import GlyphConfig, GlyphSampler
from .noise import NoiseConfig, NoisePatternSet, make_patterns
from .camera import Camera
from .canvas import NumpyCanvas, RenderBackend
from .ibfv import FlowTextureAdvector, IBFVConfig, PixelBuffer
from .shading import bicolor, checkerboard, grayscale, height_map, apply_colors
from .api import (
    load_ply, save_ply,
    save_npz, load_npz,
    uniform_field_mesh, vortex_field_mesh, saddle_field_mesh,
)
from .viewer import Viewer, ViewerConfig, plot_snapshot, run_animation
from .plotly_viz import plot_field_interactive, PlotlySnapshotConfig
from .logging_config import setup_logging

__all__ = [
    "QuadflowError", "MeshValidationError", "PointOutsideMesh", "DegenerateField", "ResizeDuringAdvection",
    "BoundingBox", "QuadMesh",
    "FieldSampler", "GridLocator", "LinearScanLocator", "normalize",
    "LineSegment", "PolyLine", "StreamlineConfig", "StreamlineIntegrator",
    "GlyphConfig", "GlyphSampler",
    "NoiseConfig", "NoisePatternSet", "make_patterns",
    "Camera", "NumpyCanvas", "RenderBackend",
    "FlowTextureAdvector", "IBFVConfig", "PixelBuffer",
    "bicolor", "checkerboard", "grayscale", "height_map", "apply_colors",
    "load_ply", "save_ply", "save_npz", "load_npz",
    "uniform_field_mesh", "vortex_field_mesh", "saddle_field_mesh",
    "Viewer", "ViewerConfig", "plot_snapshot", "run_animation",
    "plot_field_interactive", "PlotlySnapshotConfig",
    "setup_logging",
]
