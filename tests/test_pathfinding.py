"""
Tests for the GridPathfinder class.
"""

import numpy as np
import pytest
from evacsim.floorplan import Wall, Door, ExitMarker, Floor
from evacsim.geometry import segments_intersect, in_passage_zone
from evacsim.pathfinding import GridPathfinder, path_is_legal


@pytest.fixture
def open_floor():
    return Floor(1, exits=[ExitMarker(300, 100, 1)])


@pytest.fixture
def door_floor():
    """Full-height wall at x=400 with a single door in the middle."""
    return Floor(
        1,
        walls=[Wall(400, 0, 400, 700)],
        doors=[Door('gap', 400, 350, width=40, orientation='vertical')]
    )


@pytest.fixture
def pathfinder():
    return GridPathfinder({'grid_size': 20, 'goal_tolerance': 2})


def assert_crossings_use_door(path, floor):
    wall = floor.walls[0]
    crossings = 0
    for a, b in zip(path, path[1:]):
        if segments_intersect(a, b, wall.start, wall.end):
            crossings += 1
            assert in_passage_zone((a + b) / 2, floor.doors)
    return crossings


def test_straight_path_on_open_floor(pathfinder, open_floor):
    path = pathfinder.find_path(np.array([100.0, 100.0]), np.array([300.0, 100.0]), open_floor)
    xs = [p[0] for p in path]
    assert all(p[1] == 100.0 for p in path)
    assert xs == [100.0 + 20 * i for i in range(10)]


def test_path_starts_at_snapped_start(pathfinder, open_floor):
    path = pathfinder.find_path(np.array([205.0, 347.0]), np.array([600.0, 340.0]), open_floor)
    assert np.allclose(path[0], [200.0, 340.0])


def test_path_ends_near_goal(pathfinder, door_floor):
    goal = np.array([600.0, 350.0])
    path = pathfinder.find_path(np.array([200.0, 350.0]), goal, door_floor)
    assert len(path) > 1
    assert np.linalg.norm(path[-1] - goal) < 40.0


def test_wall_with_door_routing(pathfinder, door_floor):
    """Paths from both sides pass the wall only through the door."""
    left_to_right = pathfinder.find_path(np.array([200.0, 350.0]), np.array([600.0, 350.0]), door_floor)
    right_to_left = pathfinder.find_path(np.array([600.0, 150.0]), np.array([200.0, 550.0]), door_floor)

    assert assert_crossings_use_door(left_to_right, door_floor) >= 1
    assert assert_crossings_use_door(right_to_left, door_floor) >= 1
    assert path_is_legal(left_to_right, door_floor)
    assert path_is_legal(right_to_left, door_floor)


def test_wall_without_door_is_not_crossed(pathfinder):
    floor = Floor(1, walls=[Wall(400, 0, 400, 700)])
    goal = np.array([600.0, 350.0])
    path = pathfinder.find_path(np.array([200.0, 350.0]), goal, floor)
    assert len(path) == 1
    assert np.allclose(path[0], goal)


def test_enclosed_goal_falls_back_to_direct_waypoint(pathfinder):
    walls = [
        Wall(450, 300, 550, 300), Wall(550, 300, 550, 400),
        Wall(550, 400, 450, 400), Wall(450, 400, 450, 300)
    ]
    floor = Floor(1, walls=walls)
    path = pathfinder.find_path(np.array([100.0, 100.0]), np.array([500.0, 350.0]), floor)
    assert len(path) == 1
    assert np.allclose(path[0], [500.0, 350.0])


def test_deterministic(door_floor):
    first = GridPathfinder().find_path(np.array([150.0, 90.0]), np.array([620.0, 610.0]), door_floor)
    second = GridPathfinder().find_path(np.array([150.0, 90.0]), np.array([620.0, 610.0]), door_floor)
    assert len(first) == len(second)
    assert all(np.array_equal(a, b) for a, b in zip(first, second))


def test_cache_reuses_search_for_same_start_cell(pathfinder, door_floor):
    goal = np.array([600.0, 350.0])
    first = pathfinder.find_path(np.array([200.0, 350.0]), goal, door_floor)
    second = pathfinder.find_path(np.array([203.0, 352.0]), goal, door_floor)
    assert pathfinder.searches == 1
    assert pathfinder.cache_hits == 1
    assert all(np.array_equal(a, b) for a, b in zip(first, second))

    # Cached paths are handed out as fresh arrays
    second[0][0] = -1.0
    third = pathfinder.find_path(np.array([200.0, 350.0]), goal, door_floor)
    assert third[0][0] == 200.0

    pathfinder.clear_cache()
    pathfinder.find_path(np.array([200.0, 350.0]), goal, door_floor)
    assert pathfinder.searches == 2


def test_cache_can_be_disabled(door_floor):
    pf = GridPathfinder({'cache': False})
    pf.find_path(np.array([200.0, 350.0]), np.array([600.0, 350.0]), door_floor)
    pf.find_path(np.array([200.0, 350.0]), np.array([600.0, 350.0]), door_floor)
    assert pf.searches == 2
    assert pf.cache_hits == 0


def test_neighbors_stay_inside_plane(pathfinder, open_floor):
    neighbors = pathfinder.get_neighbors((0, 0), 20.0, open_floor)
    cells = {cell for cell, _ in neighbors}
    assert cells == {(1, 0), (0, 1), (1, 1)}
    costs = dict(neighbors)
    assert costs[(1, 0)] == pytest.approx(20.0)
    assert costs[(1, 1)] == pytest.approx(20.0 * np.sqrt(2))


def test_move_blocked_only_outside_door(pathfinder, door_floor):
    assert pathfinder.is_move_blocked((390, 100), (410, 100), door_floor) is True
    assert pathfinder.is_move_blocked((390, 350), (410, 350), door_floor) is False
    assert pathfinder.is_move_blocked((300, 100), (320, 100), door_floor) is False


@pytest.fixture
def box_floor():
    """Closed room 100..900 x 100..600 with a single door in the north wall."""
    walls = [
        Wall(100, 100, 900, 100), Wall(900, 100, 900, 600),
        Wall(900, 600, 100, 600), Wall(100, 600, 100, 100)
    ]
    return Floor(1, walls=walls, doors=[Door('north', 500, 100, width=60, orientation='horizontal')])


def test_start_next_to_wall_is_not_placed_on_it(pathfinder, box_floor):
    start = np.array([152.0, 593.0])
    goal = np.array([500.0, 50.0])
    path = pathfinder.find_path(start, goal, box_floor)

    assert len(path) > 1
    assert np.allclose(path[0], [160.0, 580.0])
    assert not pathfinder.is_move_blocked(start, path[0], box_floor)
    assert path_is_legal(path, box_floor)
    assert path[-1][1] < 100.0
    assert np.linalg.norm(path[-1] - goal) < 40.0


def test_route_never_runs_along_a_wall(pathfinder, box_floor):
    """An exit behind a doorless wall is reached around the outside, through the door."""
    start = np.array([105.0, 352.0])
    goal = np.array([80.0, 350.0])
    path = pathfinder.find_path(start, goal, box_floor)

    assert len(path) > 1
    assert path_is_legal(path, box_floor)
    assert not any(pathfinder.is_node_blocked(p, box_floor) for p in path)
    assert any(p[1] < 100.0 for p in path)
    assert not pathfinder.is_move_blocked(path[-1], goal, box_floor)


def test_nodes_on_walls_are_blocked_outside_doors(pathfinder, box_floor):
    assert pathfinder.is_node_blocked((300.0, 100.0), box_floor) is True
    assert pathfinder.is_node_blocked((500.0, 100.0), box_floor) is False
    assert pathfinder.is_node_blocked((300.0, 120.0), box_floor) is False


def test_start_node_prefers_reachable_side(pathfinder, door_floor):
    # Nearest node (400, 100) lies on the wall; the next one is across it
    assert pathfinder.start_node((395.0, 100.0), 20.0, door_floor) == (19, 5)
    assert pathfinder.start_node((405.0, 100.0), 20.0, door_floor) == (21, 5)
