"""
Tests for the geometry primitives.
"""

import numpy as np
import pytest
from evacsim.floorplan import Door
from evacsim.geometry import (
    segments_intersect, closest_point_on_segment, point_segment_distance,
    in_passage_zone, midpoint, point_on_segment
)


def test_crossing_segments_intersect():
    assert segments_intersect((0, 0), (10, 10), (0, 10), (10, 0)) is True


def test_disjoint_segments():
    assert segments_intersect((0, 0), (1, 0), (0, 5), (1, 5)) is False
    assert segments_intersect((0, 0), (4, 4), (6, 0), (6, 10)) is False


def test_parallel_and_collinear_segments_do_not_intersect():
    assert segments_intersect((0, 0), (10, 0), (0, 1), (10, 1)) is False
    assert segments_intersect((0, 0), (10, 0), (5, 0), (15, 0)) is False


def test_touching_endpoint_counts_as_intersection():
    assert segments_intersect((0, 0), (1, 0), (1, 0), (1, 1)) is True


def test_closest_point_projection():
    point, t = closest_point_on_segment(np.array([5.0, 5.0]), np.array([0.0, 0.0]), np.array([10.0, 0.0]))
    assert np.allclose(point, [5.0, 0.0])
    assert t == pytest.approx(0.5)


def test_closest_point_clamps_to_segment():
    point, t = closest_point_on_segment((20.0, 3.0), (0.0, 0.0), (10.0, 0.0))
    assert np.allclose(point, [10.0, 0.0])
    assert t == 1.0


def test_zero_length_segment():
    point, t = closest_point_on_segment((3.0, 4.0), (0.0, 0.0), (0.0, 0.0))
    assert np.allclose(point, [0.0, 0.0])
    assert t == 0.0
    assert point_segment_distance((3.0, 4.0), (0.0, 0.0), (0.0, 0.0)) == pytest.approx(5.0)


def test_point_segment_distance():
    assert point_segment_distance((5.0, 7.0), (0.0, 0.0), (10.0, 0.0)) == pytest.approx(7.0)


def test_passage_zone_radius():
    door = Door('d', 100, 100, width=40)
    # radius = 40 / 2 + 40 = 60, strict
    assert in_passage_zone((150, 100), [door]) is True
    assert in_passage_zone((160, 100), [door]) is False
    assert in_passage_zone((161, 100), [door]) is False
    assert in_passage_zone((100, 100), []) is False


def test_passage_zone_custom_margin():
    door = Door('d', 0, 0, width=20)
    assert in_passage_zone((25, 0), [door], margin=20) is True
    assert in_passage_zone((25, 0), [door], margin=10) is False


def test_midpoint():
    assert np.allclose(midpoint((0, 0), (10, 4)), [5, 2])


def test_point_on_segment():
    assert point_on_segment((5, 5), (0, 0), (10, 10))
    assert point_on_segment((10, 10), (0, 0), (10, 10))
    assert not point_on_segment((11, 11), (0, 0), (10, 10))
    assert not point_on_segment((5, 6), (0, 0), (10, 10))
    assert point_on_segment((3, 4), (3, 4), (3, 4))
