"""
Collision Resolution
Corrects proposed agent steps that would cross a wall
"""

import numpy as np

from .geometry import segments_intersect, in_passage_zone, midpoint


def wall_normal(wall, side_point: np.ndarray) -> np.ndarray:
    """
    Unit normal of a wall pointing toward the side ``side_point`` lies on.

    Returns a zero vector for zero-length walls.
    """
    direction = wall.end - wall.start
    length = np.linalg.norm(direction)
    if length == 0:
        return np.zeros(2)

    normal = np.array([-direction[1], direction[0]]) / length
    if np.dot(np.asarray(side_point, dtype=float) - wall.start, normal) < 0:
        normal = -normal
    return normal


def resolve_step(old_pos: np.ndarray, new_pos: np.ndarray, floor,
                 passage_margin: float = 40.0, slide_distance: float = 10.0) -> np.ndarray:
    """
    Correct a proposed move old_pos -> new_pos against the floor's walls.

    Moves whose midpoint is inside a door passage zone pass unchanged. Otherwise
    the first wall (in floor order) crossed by the move pushes the agent
    ``slide_distance`` along the wall normal from its old position, on the
    side it came from. A slide that would cross another wall leaves the
    agent where it was.

    Args:
        old_pos: Position before the move
        new_pos: Proposed position
        floor: Floor providing walls and doors
        passage_margin: Extra radius added to half the door width
        slide_distance: Length of the corrective slide

    Returns:
        Corrected position (a new array)
    """
    old_pos = np.asarray(old_pos, dtype=float)
    new_pos = np.asarray(new_pos, dtype=float)

    if in_passage_zone(midpoint(old_pos, new_pos), floor.doors, passage_margin):
        return new_pos.copy()

    for wall in floor.walls:
        if wall.length == 0:
            continue
        if segments_intersect(old_pos, new_pos, wall.start, wall.end):
            slid = old_pos + wall_normal(wall, old_pos) * slide_distance
            # At a corner the slide may cross the neighbouring wall
            if _crosses_other_wall(old_pos, slid, floor, wall):
                return old_pos.copy()
            return slid

    return new_pos.copy()


def _crosses_other_wall(a: np.ndarray, b: np.ndarray, floor, skip) -> bool:
    return any(wall is not skip and wall.length > 0 and segments_intersect(a, b, wall.start, wall.end)
               for wall in floor.walls)
