from __future__ import annotations

import numpy as np
import pytest

from quadflow import (
    Camera,
    FlowTextureAdvector,
    IBFVConfig,
    NumpyCanvas,
    ResizeDuringAdvection,
    make_patterns,
    uniform_field_mesh,
    vortex_field_mesh,
)


class RecordingBackend:
    """Duck-typed render backend that logs calls and serves a fixed readback."""

    def __init__(self, width: int, height: int, readback: tuple[int, int] | None = None) -> None:
        self.width = width
        self.height = height
        self.calls: list[tuple] = []
        self._readback = readback

    def resize(self, width: int, height: int) -> None:
        self.calls.append(("resize", width, height))
        self.width, self.height = width, height

    def clear(self, color: tuple[int, int, int] = (255, 255, 255)) -> None:
        self.calls.append(("clear", color))

    def draw_textured_quads(self, window_xy, texcoords, texture, *, blend: bool = False) -> None:
        self.calls.append(("draw", np.array(texcoords), np.array(texture), blend))

    def read_pixels(self) -> np.ndarray:
        self.calls.append(("read",))
        w, h = self._readback or (self.width, self.height)
        return np.full((h, w, 3), 7, dtype=np.uint8)


def make_advector(mesh=None, size: int = 32, n_patterns: int = 4) -> FlowTextureAdvector:
    mesh = mesh or vortex_field_mesh(n=5)
    patterns = make_patterns(n_patterns, 8, np.random.default_rng(0))
    return FlowTextureAdvector(mesh, patterns, size, size)


def test_zero_field_offsets_equal_base() -> None:
    adv = make_advector(uniform_field_mesh(n=4, direction=(0.0, 0.0)))
    geom = adv.texture_coordinates(Camera(32, 32))
    assert np.array_equal(geom.offset, geom.base)


def test_offsets_clamped_to_dmax() -> None:
    adv = make_advector(vortex_field_mesh(n=5), size=64)
    geom = adv.texture_coordinates(Camera(64, 64))
    shift = np.linalg.norm(geom.offset - geom.base, axis=-1)
    assert adv.dmax == pytest.approx(4.0 / 64)
    assert np.all(shift <= adv.dmax + 1e-12)
    # the vortex centre is stationary
    centre = np.all(np.isclose(adv.texture_coordinates(Camera(64, 64)).window, 32.0), axis=-1)
    assert np.all(shift[centre] == 0.0)


def test_step_order_and_counter() -> None:
    adv = make_advector(size=16)
    backend = RecordingBackend(16, 16)
    img = adv.step(backend, Camera(16, 16))
    kinds = [c[0] for c in backend.calls]
    assert kinds == ["resize", "clear", "draw", "draw", "read", "clear", "draw", "read"]
    draws = [c for c in backend.calls if c[0] == "draw"]
    assert [d[3] for d in draws] == [False, True, False]
    # the noise pass uses tile 0 on the first frame
    assert np.array_equal(draws[1][2], adv.patterns.tiles[0])
    assert adv.frame_counter == 1
    assert np.all(adv.pixels.data == 7)
    assert img.shape == (16, 16, 3)


def test_noise_tile_follows_frame_counter() -> None:
    adv = make_advector(size=8, n_patterns=3)
    cam = Camera(8, 8)
    for frame in range(4):
        backend = RecordingBackend(8, 8)
        adv.step(backend, cam)
        noise = [c for c in backend.calls if c[0] == "draw" and c[3]][0]
        assert np.array_equal(noise[2], adv.patterns.tiles[frame % 3])


def test_resize_resets_buffer_to_white() -> None:
    adv = make_advector(size=16)
    adv.pixels.data[...] = 0
    assert adv.resize(20, 10)
    assert adv.pixels.data.shape == (10, 20, 3)
    assert np.all(adv.pixels.data == 255)
    assert not adv.resize(20, 10)


def test_resize_during_advection_raises_and_resets() -> None:
    adv = make_advector(size=16)
    backend = RecordingBackend(16, 16, readback=(12, 9))
    with pytest.raises(ResizeDuringAdvection) as ei:
        adv.step(backend, Camera(16, 16))
    assert (ei.value.width, ei.value.height) == (12, 9)
    assert adv.pixels.data.shape == (9, 12, 3)
    assert np.all(adv.pixels.data == 255)
    assert adv.frame_counter == 0


def test_reload_resets_pixels() -> None:
    adv = make_advector(size=8)
    adv.pixels.data[...] = 3
    adv.reload(uniform_field_mesh(n=3), make_patterns(2, 4, np.random.default_rng(1)))
    assert np.all(adv.pixels.data == 255)


def test_numpy_canvas_frames_develop_noise() -> None:
    adv = make_advector(vortex_field_mesh(n=5), size=24)
    canvas = NumpyCanvas(24, 24)
    cam = Camera(24, 24)
    for _ in range(5):
        img = adv.step(canvas, cam)
    assert img.shape == (24, 24, 3)
    assert adv.frame_counter == 5
    # noise injection darkens some of the white start
    assert img.min() < 255


def test_config_validation() -> None:
    with pytest.raises(ValueError):
        IBFVConfig(scale=0.0)
    with pytest.raises(ValueError):
        IBFVConfig(background=300)
