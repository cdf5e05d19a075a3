from __future__ import annotations

from dataclasses import dataclass, field
from collections.abc import Iterable, Iterator, Sequence

import logging
import numpy as np
from numpy.typing import NDArray

from .errors import DegenerateField
from .mesh import QuadMesh
from .sampler import FieldSampler, normalize

logger = logging.getLogger(__name__)

Point3 = tuple[float, float, float]


def _as_point3(p: np.ndarray | Sequence[float]) -> Point3:
    arr = np.asarray(p, dtype=np.float64).ravel()
    if arr.size == 2:
        return (float(arr[0]), float(arr[1]), 0.0)
    if arr.size != 3:
        raise ValueError("points must have 2 or 3 coordinates.")
    return (float(arr[0]), float(arr[1]), float(arr[2]))


# ---------------------------
# Geometry
# ---------------------------
@dataclass(slots=True, frozen=True)
class LineSegment:
    start: Point3
    end: Point3

    @classmethod
    def between(cls, start: np.ndarray | Sequence[float], end: np.ndarray | Sequence[float]) -> LineSegment:
        return cls(_as_point3(start), _as_point3(end))

    @property
    def length(self) -> float:
        return float(np.linalg.norm(np.subtract(self.end, self.start)))

    def as_array(self) -> NDArray[np.float64]:
        return np.array([self.start, self.end], dtype=np.float64)


@dataclass(slots=True)
class PolyLine:
    """Segments of one trace: the forward pass first, then the backward pass.

    Within each pass every segment ends where the next one starts; both passes
    start at the seed.
    """
    segments: list[LineSegment] = field(default_factory=list)
    n_forward: int = 0

    def __len__(self) -> int: return len(self.segments)

    def __iter__(self) -> Iterator[LineSegment]: return iter(self.segments)

    def __getitem__(self, i: int) -> LineSegment: return self.segments[i]

    @property
    def forward(self) -> list[LineSegment]: return self.segments[: self.n_forward]

    @property
    def backward(self) -> list[LineSegment]: return self.segments[self.n_forward:]

    def as_array(self) -> NDArray[np.float64]:
        """(S,2,3) array of segment endpoints."""
        if not self.segments:
            return np.zeros((0, 2, 3), dtype=np.float64)
        return np.stack([s.as_array() for s in self.segments])

    def is_connected(self) -> bool:
        return all(
            a.end == b.start
            for part in (self.forward, self.backward)
            for a, b in zip(part, part[1:])
        )


# ---------------------------
# Integration
# ---------------------------
@dataclass(slots=True)
class StreamlineConfig:
    """Fixed-step streamline tracing controls.

    step_size: distance advanced per accepted step
    max_steps: step budget per pass (forward and backward each)
    seed_stride: seed every n-th vertex when gathering streamlines over the mesh
    """
    step_size: float = 0.25
    max_steps: int = 1500
    seed_stride: int = 3

    def __post_init__(self) -> None:
        if not (np.isfinite(self.step_size) and self.step_size > 0.0):
            raise ValueError("step_size must be positive.")
        if self.max_steps < 0:
            raise ValueError("max_steps must be non-negative.")
        if self.seed_stride < 1:
            raise ValueError("seed_stride must be at least 1.")


class StreamlineIntegrator:
    """Euler streamline tracing along the normalised field, forward then backward."""

    def __init__(
        self,
        mesh: QuadMesh,
        sampler: FieldSampler | None = None,
        config: StreamlineConfig | None = None,
    ) -> None:
        self._mesh = mesh
        self._sampler = sampler or FieldSampler(mesh)
        self._cfg = config or StreamlineConfig()

    @property
    def config(self) -> StreamlineConfig: return self._cfg

    def _trace_pass(self, seed: Point3, sign: float, step: float, max_steps: int) -> list[LineSegment]:
        bounds = self._mesh.bounds
        x, y, z = seed
        out: list[LineSegment] = []
        for _ in range(max_steps):
            if not bounds.contains(x, y):
                break
            v = self._sampler.try_sample((x, y))
            if v is None:
                # inside the bounds but over a hole in the mesh
                break
            try:
                d = normalize(sign * v)
            except DegenerateField:
                logger.debug("stationary point at (%g, %g), pass stopped", x, y)
                break
            nx = x + step * float(d[0])
            ny = y + step * float(d[1])
            if not bounds.contains(nx, ny):
                break
            out.append(LineSegment((x, y, z), (nx, ny, z)))
            x, y = nx, ny
        return out

    def trace(
        self,
        seed: np.ndarray | Sequence[float],
        step_size: float | None = None,
        max_steps: int | None = None,
    ) -> PolyLine:
        """Trace from ``seed``; segments leaving the mesh bounds are not emitted."""
        step = self._cfg.step_size if step_size is None else float(step_size)
        n = self._cfg.max_steps if max_steps is None else int(max_steps)
        if not (np.isfinite(step) and step > 0.0):
            raise ValueError("step_size must be positive.")
        p = _as_point3(seed)
        if not self._mesh.bounds.contains(p[0], p[1]):
            return PolyLine()
        fwd = self._trace_pass(p, +1.0, step, n)
        bwd = self._trace_pass(p, -1.0, step, n)
        return PolyLine(fwd + bwd, n_forward=len(fwd))

    def gather(self, seeds: Iterable[Sequence[float]] | None = None) -> list[PolyLine]:
        """Trace from each seed (default: every ``seed_stride``-th vertex), dropping empty traces."""
        if seeds is None:
            seeds = self._mesh.positions[:: self._cfg.seed_stride]
        lines = [self.trace(s) for s in seeds]
        kept = [pl for pl in lines if len(pl)]
        logger.info("traced %d streamlines (%d empty)", len(kept), len(lines) - len(kept))
        return kept
