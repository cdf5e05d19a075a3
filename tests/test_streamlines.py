from __future__ import annotations

import math

import numpy as np
import pytest

from quadflow import (
    LineSegment,
    StreamlineConfig,
    StreamlineIntegrator,
    uniform_field_mesh,
    vortex_field_mesh,
)


def test_uniform_field_forward_count() -> None:
    m = uniform_field_mesh(n=11, direction=(1.0, 0.0))
    integ = StreamlineIntegrator(m, config=StreamlineConfig(step_size=0.25, max_steps=1000))
    x0 = -3.3
    pl = integ.trace((x0, 1.0))
    expected = math.floor((m.bounds.maxx - x0) / 0.25)
    assert abs(len(pl.forward) - expected) <= 1
    # backward pass runs to the left edge
    assert abs(len(pl.backward) - math.floor((x0 - m.bounds.minx) / 0.25)) <= 1
    assert all(seg.end[0] <= m.bounds.maxx for seg in pl)


def test_segments_are_connected_and_follow_field() -> None:
    m = uniform_field_mesh(n=5, direction=(1.0, 1.0))
    pl = StreamlineIntegrator(m).trace((0.0, 0.0), step_size=0.5)
    assert pl.is_connected()
    for seg in pl.forward:
        assert seg.length == pytest.approx(0.5)
        d = np.subtract(seg.end, seg.start)
        assert d[0] == pytest.approx(d[1])
        assert d[0] > 0.0
    assert pl.forward[0].start == pl.backward[0].start == (0.0, 0.0, 0.0)


def test_seed_outside_gives_empty_polyline() -> None:
    m = uniform_field_mesh(n=5)
    pl = StreamlineIntegrator(m).trace((50.0, 0.0))
    assert len(pl) == 0
    assert pl.as_array().shape == (0, 2, 3)


def test_max_steps_bounds_each_pass() -> None:
    m = uniform_field_mesh(n=5)
    pl = StreamlineIntegrator(m).trace((0.0, 0.0), step_size=0.1, max_steps=7)
    assert len(pl.forward) == 7
    assert len(pl.backward) == 7
    assert StreamlineIntegrator(m).trace((0.0, 0.0), max_steps=0).segments == []


def test_stationary_point_stops_quietly() -> None:
    m = uniform_field_mesh(n=5, direction=(0.0, 0.0))
    assert len(StreamlineIntegrator(m).trace((0.0, 0.0))) == 0


def test_vortex_streamline_stays_on_circle() -> None:
    m = vortex_field_mesh(n=41)
    pl = StreamlineIntegrator(m).trace((5.0, 0.0), step_size=0.05, max_steps=100)
    r = np.linalg.norm(pl.as_array()[:, 1, :2], axis=1)
    # explicit Euler drifts outward slowly
    assert np.all(np.abs(r - 5.0) < 0.1)


def test_gather_uses_stride_and_drops_empty() -> None:
    m = uniform_field_mesh(n=4)
    integ = StreamlineIntegrator(m, config=StreamlineConfig(seed_stride=2))
    lines = integ.gather()
    assert 0 < len(lines) <= len(m.positions[::2])
    assert all(len(pl) > 0 for pl in lines)
    assert integ.gather([(99.0, 99.0)]) == []


def test_line_segment_from_2d() -> None:
    seg = LineSegment.between((0.0, 0.0), (3.0, 4.0))
    assert seg.end == (3.0, 4.0, 0.0)
    assert seg.length == 5.0


@pytest.mark.parametrize("kwargs", [dict(step_size=0.0), dict(max_steps=-1), dict(seed_stride=0)])
def test_config_validation(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        StreamlineConfig(**kwargs)
