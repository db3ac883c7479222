"""
Grid Pathfinding
A* search over an implicit grid; walls block moves except inside door passage zones
"""

import heapq
import itertools
import logging
import math
import numpy as np
from collections import defaultdict
from typing import Dict, List, Tuple

from .geometry import segments_intersect, point_on_segment, in_passage_zone

logger = logging.getLogger(__name__)

# Axis-aligned moves first, then diagonals
DIRECTIONS = (
    (1, 0), (-1, 0), (0, 1), (0, -1),
    (1, 1), (-1, -1), (1, -1), (-1, 1)
)


class GridPathfinder:
    """
    A* pathfinding on a lazily generated grid.

    Nodes are grid intersections spaced ``grid_size`` apart over the
    ``width x height`` plane and are keyed by their integer indices. Edges
    connect each node to its 8 neighbours; an edge is pruned when it crosses
    a wall, unless the edge midpoint lies in a door passage zone. Nodes lying
    on a wall outside every passage zone are never entered.

    Open set ordering is (f, h, insertion order): lowest f first, then the
    node closer to the goal, then first inserted.
    """

    def __init__(self, config: dict = None, width: float = 1000.0, height: float = 700.0,
                 passage_margin: float = 40.0):
        config = config or {}
        self.grid_size = float(config.get('grid_size', 20.0))
        self.goal_tolerance = float(config.get('goal_tolerance', 2.0))
        self.use_cache = config.get('cache', True)
        self.width = float(width)
        self.height = float(height)
        self.passage_margin = float(passage_margin)

        self._cache: Dict[tuple, Tuple[Tuple[float, float], ...]] = {}
        self.searches = 0
        self.cache_hits = 0

    def clear_cache(self):
        """Forget cached paths (floors may have changed between runs)."""
        self._cache.clear()

    def heuristic(self, a: Tuple[float, float], b: Tuple[float, float]) -> float:
        """Euclidean distance heuristic."""
        return math.hypot(b[0] - a[0], b[1] - a[1])

    def snap(self, position, grid_size: float) -> Tuple[int, int]:
        """Nearest grid node to a world position, kept inside the plane."""
        ix = int(math.floor(position[0] / grid_size + 0.5))
        iy = int(math.floor(position[1] / grid_size + 0.5))
        max_ix = int(self.width // grid_size)
        max_iy = int(self.height // grid_size)
        return min(max(ix, 0), max_ix), min(max(iy, 0), max_iy)

    def start_node(self, position, grid_size: float, floor) -> Tuple[int, int]:
        """
        Grid node a search starts from.

        The nearest node around ``position`` that is off every wall and can be
        reached from it in a straight line. When none can, the nearest node off
        every wall, and as a last resort the snapped node.
        """
        cx, cy = self.snap(position, grid_size)
        max_ix = int(self.width // grid_size)
        max_iy = int(self.height // grid_size)

        candidates = []
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                ix, iy = cx + dx, cy + dy
                if 0 <= ix <= max_ix and 0 <= iy <= max_iy:
                    dist = math.hypot(ix * grid_size - position[0], iy * grid_size - position[1])
                    # Ties go to the rounded node
                    candidates.append((dist, abs(dx) + abs(dy), ix, iy))
        candidates.sort()

        off_wall = None
        for _, _, ix, iy in candidates:
            point = (ix * grid_size, iy * grid_size)
            if self.is_node_blocked(point, floor):
                continue
            if off_wall is None:
                off_wall = (ix, iy)
            if not self.is_move_blocked(position, point, floor):
                return ix, iy

        if off_wall is None:
            logger.debug("No free grid node around %s on floor %s", tuple(position), floor.id)
            return cx, cy
        return off_wall

    def is_node_blocked(self, point, floor) -> bool:
        """A node lying on a wall is impassable unless it is inside a door passage zone."""
        for wall in floor.walls:
            if point_on_segment(point, (wall.x1, wall.y1), (wall.x2, wall.y2)):
                return not in_passage_zone(point, floor.doors, self.passage_margin)
        return False

    def is_move_blocked(self, a, b, floor) -> bool:
        """
        Check whether the straight move a -> b crosses a wall outside every
        door passage zone.
        """
        crossing = False
        for wall in floor.walls:
            if segments_intersect(a, b, (wall.x1, wall.y1), (wall.x2, wall.y2)):
                crossing = True
                break
        if not crossing:
            return False

        mid = ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)
        return not in_passage_zone(mid, floor.doors, self.passage_margin)

    def get_neighbors(self, node: Tuple[int, int], grid_size: float, floor) -> List[Tuple[Tuple[int, int], float]]:
        """Reachable neighbour nodes of a grid node with their step cost."""
        x, y = node
        here = (x * grid_size, y * grid_size)
        neighbors = []

        for dx, dy in DIRECTIONS:
            nx, ny = x + dx, y + dy
            there = (nx * grid_size, ny * grid_size)
            if not (0 <= there[0] <= self.width and 0 <= there[1] <= self.height):
                continue
            if self.is_node_blocked(there, floor) or self.is_move_blocked(here, there, floor):
                continue
            cost = grid_size if dx == 0 or dy == 0 else grid_size * math.sqrt(2)
            neighbors.append(((nx, ny), cost))

        return neighbors

    def find_path(self, start: np.ndarray, goal: np.ndarray, floor, grid_size: float = None) -> List[np.ndarray]:
        """
        Find a path from start to the vicinity of goal.

        Args:
            start: Start position in world coordinates
            goal: Goal position in world coordinates
            floor: Floor whose walls and doors constrain the search
            grid_size: Node spacing (defaults to the configured size)

        Returns:
            List of waypoints from the start node to the first node within
            ``goal_tolerance`` cells of the goal with an unobstructed line to
            it. When the frontier is exhausted, a single waypoint at the goal.
        """
        grid = float(grid_size or self.grid_size)
        goal_xy = (float(goal[0]), float(goal[1]))
        start_cell = self.start_node(start, grid, floor)

        key = (floor.id, start_cell, goal_xy, grid)
        if self.use_cache and key in self._cache:
            self.cache_hits += 1
            return [np.array(p) for p in self._cache[key]]

        path = self._search(start_cell, goal_xy, floor, grid)
        if self.use_cache:
            self._cache[key] = tuple((float(p[0]), float(p[1])) for p in path)
        return path

    def _search(self, start_cell: Tuple[int, int], goal: Tuple[float, float], floor, grid: float) -> List[np.ndarray]:
        self.searches += 1
        tolerance = self.goal_tolerance * grid
        counter = itertools.count()

        start_h = self.heuristic((start_cell[0] * grid, start_cell[1] * grid), goal)
        open_set = [(start_h, start_h, next(counter), start_cell)]
        came_from = {}
        g_score = defaultdict(lambda: float('inf'))
        g_score[start_cell] = 0.0
        closed = set()

        while open_set:
            _, h, _, current = heapq.heappop(open_set)

            # Stale entry for a node already finalised with a lower g
            if current in closed:
                continue
            closed.add(current)

            if h < tolerance and not self.is_move_blocked(
                    (current[0] * grid, current[1] * grid), goal, floor):
                return self._reconstruct_path(came_from, current, grid)

            for neighbor, step_cost in self.get_neighbors(current, grid, floor):
                if neighbor in closed:
                    continue

                tentative_g = g_score[current] + step_cost
                if tentative_g < g_score[neighbor]:
                    came_from[neighbor] = current
                    g_score[neighbor] = tentative_g
                    neighbor_h = self.heuristic((neighbor[0] * grid, neighbor[1] * grid), goal)
                    heapq.heappush(open_set, (tentative_g + neighbor_h, neighbor_h, next(counter), neighbor))

        logger.debug("No route on floor %s from %s to %s, using direct waypoint",
                     floor.id, start_cell, goal)
        return [np.array(goal, dtype=float)]

    def _reconstruct_path(self, came_from: dict, current: Tuple[int, int], grid: float) -> List[np.ndarray]:
        path = [np.array([current[0] * grid, current[1] * grid])]
        while current in came_from:
            current = came_from[current]
            path.append(np.array([current[0] * grid, current[1] * grid]))
        path.reverse()
        return path


def path_is_legal(path: List[np.ndarray], floor, passage_margin: float = 40.0) -> bool:
    """
    Check that no consecutive waypoint pair crosses a wall outside a door
    passage zone.
    """
    checker = GridPathfinder(passage_margin=passage_margin)
    for a, b in zip(path, path[1:]):
        if checker.is_move_blocked(a, b, floor):
            return False
    return True
