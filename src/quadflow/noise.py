from __future__ import annotations

from dataclasses import dataclass

import logging
import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

ByteArray = NDArray[np.uint8]


@dataclass(slots=True)
class NoiseConfig:
    """Noise tiles injected by IBFV.

    n_patterns: length of the tile cycle
    size: tile resolution (size x size)
    alpha: constant tile opacity in [0, 1]
    """
    n_patterns: int = 32
    size: int = 64
    alpha: float = 0.12

    def __post_init__(self) -> None:
        if self.n_patterns < 1:
            raise ValueError("n_patterns must be at least 1.")
        if self.size < 1:
            raise ValueError("size must be at least 1.")
        if not 0.0 <= self.alpha <= 1.0:
            raise ValueError("alpha must lie in [0, 1].")


@dataclass(slots=True, frozen=True)
class NoisePatternSet:
    tiles: ByteArray      # (Npat, size, size, 4) RGBA
    phase: NDArray[np.int64]   # (size, size) in [0, 256)

    def __len__(self) -> int: return int(self.tiles.shape[0])

    @property
    def size(self) -> int: return int(self.tiles.shape[1])

    def tile(self, frame: int) -> ByteArray:
        """Tile shown at ``frame``; the set repeats every ``len(self)`` frames."""
        return self.tiles[frame % len(self)]


def make_patterns(
    n_patterns: int = 32,
    size: int = 64,
    rng: np.random.Generator | None = None,
    *,
    alpha: float = 0.12,
) -> NoisePatternSet:
    """Cycle of binary noise tiles sharing one random phase per pixel.

    Tile k thresholds ``(k*256//n_patterns + phase) % 255`` at 127, so each pixel
    blinks with its own phase as k advances. Alpha is constant: int(alpha*255).
    """
    NoiseConfig(n_patterns=n_patterns, size=size, alpha=alpha)  # argument checks
    rng = np.random.default_rng() if rng is None else rng
    phase = np.asarray(rng.integers(0, 256, size=(size, size)), dtype=np.int64)

    lut = np.where(np.arange(256) < 127, 0, 255).astype(np.uint8)
    t = (np.arange(n_patterns, dtype=np.int64) * 256) // n_patterns       # (Npat,)
    lum = lut[(t[:, None, None] + phase[None, :, :]) % 255]               # (Npat,size,size)

    tiles = np.empty((n_patterns, size, size, 4), dtype=np.uint8)
    tiles[..., 0] = lum
    tiles[..., 1] = lum
    tiles[..., 2] = lum
    tiles[..., 3] = int(alpha * 255)
    logger.info("generated %d noise tiles of %dx%d", n_patterns, size, size)
    return NoisePatternSet(tiles=tiles, phase=phase)
