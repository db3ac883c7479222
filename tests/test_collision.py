"""
Tests for wall collision resolution.
"""

import numpy as np
from evacsim.collision import resolve_step, wall_normal
from evacsim.floorplan import Wall, Door, Floor


def test_free_move_is_unchanged():
    floor = Floor(1, walls=[Wall(400, 0, 400, 700)])
    new = np.array([350.0, 100.0])
    result = resolve_step(np.array([340.0, 100.0]), new, floor)
    assert np.allclose(result, new)
    assert result is not new


def test_crossing_slides_back_along_normal():
    floor = Floor(1, walls=[Wall(400, 0, 400, 700)])
    result = resolve_step(np.array([395.0, 100.0]), np.array([405.0, 100.0]), floor)
    assert np.allclose(result, [385.0, 100.0])


def test_normal_points_to_the_side_of_origin():
    wall = Wall(400, 0, 400, 700)
    assert np.allclose(wall_normal(wall, (395.0, 100.0)), [-1.0, 0.0])
    assert np.allclose(wall_normal(wall, (405.0, 100.0)), [1.0, 0.0])


def test_crossing_inside_door_zone_is_allowed():
    floor = Floor(
        1,
        walls=[Wall(400, 0, 400, 700)],
        doors=[Door('d', 400, 100, width=40, orientation='vertical')]
    )
    new = np.array([405.0, 110.0])
    result = resolve_step(np.array([395.0, 110.0]), new, floor)
    assert np.allclose(result, new)


def test_first_wall_in_order_wins():
    floor = Floor(1, walls=[Wall(100, 0, 100, 200), Wall(0, 100, 200, 100)])
    result = resolve_step(np.array([95.0, 95.0]), np.array([105.0, 105.0]), floor)
    assert np.allclose(result, [85.0, 95.0])


def test_zero_length_wall_is_ignored():
    floor = Floor(1, walls=[Wall(400, 100, 400, 100)])
    assert np.allclose(wall_normal(floor.walls[0], (0, 0)), [0.0, 0.0])
    result = resolve_step(np.array([395.0, 100.0]), np.array([405.0, 100.0]), floor)
    assert np.allclose(result, [405.0, 100.0])
    assert not np.any(np.isnan(result))


def test_slide_into_another_wall_stays_put():
    floor = Floor(1, walls=[Wall(400, 0, 400, 700), Wall(390, 90, 380, 110)])
    old = np.array([395.0, 100.0])
    result = resolve_step(old, np.array([405.0, 100.0]), floor)
    assert np.allclose(result, old)
    assert result is not old
