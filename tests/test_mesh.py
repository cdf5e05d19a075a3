from __future__ import annotations

import numpy as np
import pytest

from quadflow import MeshValidationError, QuadMesh, vortex_field_mesh


def unit_square(order: list[int] | None = None) -> QuadMesh:
    pos = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
    vec = np.array([[1.0, 0.0], [1.0, 0.0], [1.0, 0.0], [1.0, 0.0]])
    return QuadMesh(pos, vec, [order or [0, 1, 2, 3]])


def test_from_grid_layout() -> None:
    xs = np.linspace(0.0, 2.0, 3)
    ys = np.linspace(0.0, 1.0, 2)
    Z = np.zeros((2, 3))
    m = QuadMesh.from_grid(xs, ys, Z, Z)
    assert m.n_vertices == 6
    assert m.n_quads == 2
    assert m.quads.tolist() == [[0, 1, 4, 3], [1, 2, 5, 4]]
    assert np.allclose(m.positions[4], [1.0, 1.0, 0.0])
    assert np.allclose(m.scalars, 0.0)


def test_bounds_center_radius() -> None:
    m = unit_square()
    b = m.bounds
    assert (b.minx, b.maxx, b.miny, b.maxy) == (0.0, 1.0, 0.0, 1.0)
    assert b.contains(1.0, 0.5)
    assert not b.contains(1.0001, 0.5)
    assert np.allclose(m.center, [0.5, 0.5, 0.0])
    assert m.radius == pytest.approx(np.sqrt(0.5))


@pytest.mark.parametrize("order", [[0, 1, 2, 3], [1, 2, 3, 0], [2, 3, 0, 1]])
def test_ccw_rotations_are_accepted(order: list[int]) -> None:
    m = unit_square(order)
    assert m.quads[0, m.min_corner[0]] == 0


@pytest.mark.parametrize("order", [[0, 3, 2, 1], [0, 2, 1, 3]])
def test_clockwise_or_crossed_quads_rejected(order: list[int]) -> None:
    with pytest.raises(MeshValidationError):
        unit_square(order)


def test_non_rectangular_quad_rejected() -> None:
    pos = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.2, 1.0, 0.0], [0.0, 1.0, 0.0]])
    with pytest.raises(MeshValidationError):
        QuadMesh(pos, np.zeros((4, 2)), [[0, 1, 2, 3]])


def test_unchecked_mesh_skips_winding() -> None:
    pos = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
    m = QuadMesh(pos, np.zeros((4, 2)), [[0, 3, 2, 1]], check=False)
    assert m.n_quads == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(quads=np.zeros((0, 4), dtype=int)),
        dict(quads=[[0, 1, 2, 7]]),
        dict(vectors=np.zeros((3, 2))),
        dict(scalars=[0.0, 1.0, np.nan, 0.0]),
    ],
)
def test_shape_and_value_errors(kwargs: dict) -> None:
    base = dict(
        positions=np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]),
        vectors=np.zeros((4, 2)),
        quads=[[0, 1, 2, 3]],
    )
    base.update(kwargs)
    with pytest.raises(MeshValidationError):
        QuadMesh(**base)


def test_validation_error_is_value_error() -> None:
    assert issubclass(MeshValidationError, ValueError)


def test_structured_detection() -> None:
    assert vortex_field_mesh(n=5).is_structured
    assert vortex_field_mesh(n=5).require_structured() == 5

    xs = np.linspace(0.0, 1.0, 4)
    ys = np.linspace(0.0, 1.0, 3)
    Z = np.zeros((3, 4))
    rect = QuadMesh.from_grid(xs, ys, Z, Z)
    assert not rect.is_structured
    with pytest.raises(MeshValidationError):
        rect.require_structured()


def test_colors_default_white_and_writable() -> None:
    m = unit_square()
    assert m.colors.shape == (4, 3)
    assert np.all(m.colors == 1.0)
    m.colors[0] = (1.0, 0.0, 0.0)
    assert m.colors[0, 1] == 0.0


def test_loaded_field_and_geometry_are_read_only() -> None:
    m = vortex_field_mesh(n=5)
    with pytest.raises(ValueError):
        m.vectors[...] = 0.0
    with pytest.raises(ValueError):
        m.positions[:, 0] *= 100.0
    with pytest.raises(ValueError):
        m.scalars[0] = 1.0
    with pytest.raises(ValueError):
        m.quads[0, 0] = 3
    assert m.bounds.maxx == 10.0


def test_caller_arrays_stay_writable() -> None:
    pos = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
    quads = np.array([[0, 1, 2, 3]], dtype=np.int64)
    QuadMesh(pos, np.zeros((4, 2)), quads)
    pos[0, 0] = -1.0
    quads[0, 0] = 0
