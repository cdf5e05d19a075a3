from __future__ import annotations

from dataclasses import dataclass

import logging
import numpy as np

from .errors import DegenerateField, PointOutsideMesh
from .mesh import QuadMesh
from .sampler import FieldSampler, normalize
from .streamlines import LineSegment

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GlyphConfig:
    """Arrow glyph selection.

    threshold: only vertices with scalar strictly above this get a glyph
    length_scale: glyph length for the vertex holding the largest scalar
    """
    threshold: float = 1.0
    length_scale: float = 1.5

    def __post_init__(self) -> None:
        if not np.isfinite(self.threshold):
            raise ValueError("threshold must be finite.")
        if not (np.isfinite(self.length_scale) and self.length_scale > 0.0):
            raise ValueError("length_scale must be positive.")


class GlyphSampler:
    """Sparse direction glyphs at the interior vertices of a structured mesh.

    The mesh must store its vertices as a square row-major grid; this is checked
    when the sampler is built.
    """

    def __init__(
        self,
        mesh: QuadMesh,
        sampler: FieldSampler | None = None,
        config: GlyphConfig | None = None,
    ) -> None:
        self._row = mesh.require_structured()
        self._mesh = mesh
        self._sampler = sampler or FieldSampler(mesh)
        self._cfg = config or GlyphConfig()

    @property
    def config(self) -> GlyphConfig: return self._cfg

    def sample(self) -> list[LineSegment]:
        m = self._mesh
        row = self._row
        n = m.n_vertices
        pos = m.positions
        scalars = m.scalars
        max_scalar = float(scalars.max())

        out: list[LineSegment] = []
        skipped = 0
        # interior rows only; the first and last vertex of each row are skipped too
        for i in range(row + 1, n - row - 1):
            if i % row == 0 or (i + 1) % row == 0:
                continue
            s = float(scalars[i])
            if not s > self._cfg.threshold:
                continue
            length = (s / max_scalar) * self._cfg.length_scale
            x, y, z = (float(c) for c in pos[i])
            try:
                d = normalize(self._sampler.sample((x, y)))
            except (PointOutsideMesh, DegenerateField) as exc:
                logger.debug("no glyph at vertex %d: %s", i, exc)
                skipped += 1
                continue
            out.append(LineSegment((x, y, z), (x + float(d[0]) * length, y + float(d[1]) * length, z)))
        logger.info("sampled %d glyphs (%d skipped)", len(out), skipped)
        return out
