from __future__ import annotations

import numpy as np
import pytest

from quadflow import (
    DegenerateField,
    FieldSampler,
    GridLocator,
    LinearScanLocator,
    PointOutsideMesh,
    QuadMesh,
    normalize,
    uniform_field_mesh,
    vortex_field_mesh,
)


def linear_field_mesh(n: int = 6) -> QuadMesh:
    # v = (x + 2y, 3 - y) is bilinear, so interpolation reproduces it exactly
    xs = np.linspace(-1.0, 2.0, n)
    ys = np.linspace(0.0, 4.0, n)
    X, Y = np.meshgrid(xs, ys, indexing="xy")
    return QuadMesh.from_grid(xs, ys, X + 2.0 * Y, 3.0 - Y)


@pytest.mark.parametrize("seed", range(6))
@pytest.mark.parametrize("locator", [LinearScanLocator, GridLocator])
def test_constant_field_is_reproduced_everywhere(seed: int, locator: type) -> None:
    rng = np.random.default_rng(seed)
    direction = rng.uniform(-5.0, 5.0, size=2)
    m = uniform_field_mesh(n=int(rng.integers(3, 12)), direction=(direction[0], direction[1]))
    s = FieldSampler(m, locator(m))
    pts = rng.uniform(-10.0, 10.0, size=(200, 2))
    out = s.sample_many(pts)
    assert np.allclose(out, direction)


def test_corner_values_are_exact() -> None:
    m = vortex_field_mesh(n=6)
    s = FieldSampler(m)
    for i in range(m.n_vertices):
        assert np.allclose(s.sample(m.positions[i]), m.vectors[i], atol=1e-12)


def test_linear_field_interior() -> None:
    m = linear_field_mesh()
    s = FieldSampler(m)
    x, y = 0.37, 2.9
    assert np.allclose(s.sample((x, y)), [x + 2.0 * y, 3.0 - y])


def test_rotated_vertex_order_samples_the_same() -> None:
    pos = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [2.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
    vec = np.array([[1.0, 0.0], [2.0, 0.0], [3.0, 0.0], [4.0, 0.0]])
    a = FieldSampler(QuadMesh(pos, vec, [[0, 1, 2, 3]]))
    b = FieldSampler(QuadMesh(pos, vec, [[2, 3, 0, 1]]))
    p = (0.5, 0.25)
    assert np.allclose(a.sample(p), b.sample(p))


def test_outside_point() -> None:
    s = FieldSampler(uniform_field_mesh(n=4))
    assert s.try_sample((10.5, 0.0)) is None
    with pytest.raises(PointOutsideMesh) as ei:
        s.sample((10.5, 0.0))
    assert ei.value.x == 10.5
    out = s.sample_many([[0.0, 0.0], [11.0, 11.0]])
    assert np.all(np.isfinite(out[0]))
    assert np.all(np.isnan(out[1]))


def test_shared_edge_resolves_to_lowest_quad() -> None:
    m = uniform_field_mesh(n=3)
    # x = 0 is the edge between quads 0 and 1
    assert LinearScanLocator(m).locate(0.0, -5.0) == 0
    assert GridLocator(m).locate(0.0, -5.0) == 0


def test_grid_locator_matches_linear_scan() -> None:
    m = vortex_field_mesh(n=9, extent=(-3.0, 5.0, 1.0, 2.0))
    lin = LinearScanLocator(m)
    grid = GridLocator(m)
    rng = np.random.default_rng(3)
    pts = rng.uniform([-3.5, 0.5], [5.5, 2.5], size=(500, 2))
    # vertices and edge midpoints hit the tie-break path
    pts = np.vstack([pts, m.positions[:, :2], 0.5 * (m.positions[:-1, :2] + m.positions[1:, :2])])
    for x, y in pts:
        assert grid.locate(float(x), float(y)) == lin.locate(float(x), float(y))


def test_grid_locator_handles_holes() -> None:
    pos = np.array([
        [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0],
        [2.0, 2.0, 0.0], [3.0, 2.0, 0.0], [3.0, 3.0, 0.0], [2.0, 3.0, 0.0],
    ])
    m = QuadMesh(pos, np.ones((8, 2)), [[0, 1, 2, 3], [4, 5, 6, 7]])
    g = GridLocator(m)
    assert g.locate(1.5, 1.5) is None
    assert g.locate(2.5, 2.5) == 1
    assert g.locate(float("nan"), 0.0) is None


def test_normalize() -> None:
    assert np.allclose(normalize(np.array([3.0, 4.0])), [0.6, 0.8])
    with pytest.raises(DegenerateField):
        normalize(np.zeros(2))
