"""
Motion Models: Social Force Model and Motion Controller
Per-tick crowd movement with path following, repulsion, crowd drift and floor transitions
"""

import logging
import numpy as np
from typing import Dict, List, Optional, Tuple
from scipy.spatial import cKDTree

from .agent import Agent
from .collision import resolve_step
from .floorplan import usable_markers, nearest_marker
from .geometry import closest_point_on_segment, in_passage_zone

logger = logging.getLogger(__name__)

EVACUATED = 'evacuated'
FLOOR_CHANGE = 'floor_change'
ASSEMBLED = 'assembled'


class SocialForceModel:
    """
    Simplified social force model.

    Forces are expressed in canvas units per tick. The total force drives
    the velocity through exponential smoothing rather than raw integration:
    ``v' = damping * v + (1 - damping) * F``.
    """

    def __init__(self, config: dict, passage_margin: float = 40.0):
        self.passage_margin = passage_margin
        self.base_speed = config.get('base_speed', 2.0)
        self.panic_speed_factor = config.get('panic_speed_factor', 0.5)
        self.damping = config.get('damping', 0.8)
        self.max_speed_factor = config.get('max_speed_factor', 2.0)

        repulsion = config.get('agent_repulsion', {})
        self.agent_range = repulsion.get('range', 30.0)
        self.agent_strength = repulsion.get('strength', 50.0)

        drift = config.get('crowd_drift', {})
        self.drift_range = drift.get('range', 80.0)
        self.drift_min_neighbors = drift.get('min_neighbors', 3)
        self.drift_factor = drift.get('factor', 0.1)

        walls = config.get('wall_repulsion', {})
        self.wall_range = walls.get('range', 20.0)
        self.wall_strength = walls.get('strength', 100.0)

    @property
    def neighbor_radius(self) -> float:
        """Largest radius any agent-agent term looks at."""
        return max(self.agent_range, self.drift_range)

    def driving_force(self, agent: Agent, target: np.ndarray, sim_speed: float) -> np.ndarray:
        """Attraction toward the target with mobility and panic scaled magnitude."""
        direction = np.asarray(target, dtype=float) - agent.position
        dist = np.linalg.norm(direction)
        if dist == 0:
            return np.zeros(2)
        speed = agent.desired_speed(self.base_speed, sim_speed, self.panic_speed_factor)
        return direction / dist * speed

    def agent_repulsion(self, agent: Agent, neighbors: List[Agent]) -> np.ndarray:
        """Inverse-square repulsion from agents closer than ``agent_range``."""
        force = np.zeros(2)
        for other in neighbors:
            diff = agent.position - other.position
            dist = np.linalg.norm(diff)
            # Coincident agents exert no force
            if 0 < dist < self.agent_range:
                force += diff / dist * (self.agent_strength / dist ** 2)
        return force

    def crowd_drift(self, agent: Agent, neighbors: List[Agent]) -> np.ndarray:
        """Being swept along: a fraction of nearby velocities in dense crowds."""
        nearby = []
        for other in neighbors:
            dist = np.linalg.norm(agent.position - other.position)
            if 0 < dist < self.drift_range:
                nearby.append(other.velocity)

        if len(nearby) <= self.drift_min_neighbors:
            return np.zeros(2)
        return np.sum(nearby, axis=0) * self.drift_factor

    def wall_repulsion(self, position: np.ndarray, floor) -> np.ndarray:
        """
        Repulsion from walls closer than ``wall_range``.

        Wall points inside a door passage zone are part of the opening and
        do not repel.
        """
        force = np.zeros(2)
        for wall in floor.walls:
            closest, _ = closest_point_on_segment(position, wall.start, wall.end)
            if in_passage_zone(closest, floor.doors, self.passage_margin):
                continue
            diff = position - closest
            dist = np.linalg.norm(diff)
            if 0 < dist < self.wall_range:
                force += diff / dist * (self.wall_strength / (dist + 1))
        return force

    def compute_force(self, agent: Agent, target: np.ndarray, neighbors: List[Agent],
                      floor, sim_speed: float) -> np.ndarray:
        """
        Total force on an agent.

        Args:
            agent: Agent as of the previous tick
            target: Current waypoint or marker
            neighbors: Other active agents on the same floor, previous tick
            floor: Agent's floor
            sim_speed: Speed multiplier

        Returns:
            Force vector
        """
        return (
            self.driving_force(agent, target, sim_speed)
            + self.agent_repulsion(agent, neighbors)
            + self.crowd_drift(agent, neighbors)
            + self.wall_repulsion(agent.position, floor)
        )

    def integrate(self, velocity: np.ndarray, force: np.ndarray) -> np.ndarray:
        """Damped velocity update."""
        return velocity * self.damping + force * (1.0 - self.damping)

    def limit(self, velocity: np.ndarray, sim_speed: float) -> np.ndarray:
        """Cap the speed at ``max_speed_factor`` times the unscaled base speed."""
        cap = self.max_speed_factor * self.base_speed * sim_speed
        speed = np.linalg.norm(velocity)
        if speed > cap:
            return velocity / speed * cap
        return velocity


class MotionController:
    """
    Advances every agent by one tick.

    Chooses targets (path waypoints, then the nearest usable marker), handles
    arrival at exits and stairs, recomputes paths on floor transitions, runs
    the social force model, resolves wall collisions and moves evacuated
    agents to the assembly point when that phase is enabled.

    ``step`` never mutates its input agents: every output agent is a copy
    computed only from the input list.
    """

    def __init__(self, config: dict, pathfinder):
        motion = config.get('motion', {})
        environment = config.get('environment', {})
        assembly = config.get('assembly', {})

        self.passage_margin = config.get('doors', {}).get('passage_margin', 40.0)
        self.sfm = SocialForceModel(motion, self.passage_margin)
        self.pathfinder = pathfinder

        self.waypoint_radius = motion.get('waypoint_radius', 25.0)
        self.arrival_radius = motion.get('arrival_radius', 20.0)
        self.stuck_distance = motion.get('stuck_distance', 10.0)
        self.replan_ticks = motion.get('replan_ticks', 60)

        margin = environment.get('margin', 10.0)
        self.x_bounds = (margin, environment.get('width', 1000.0) - margin)
        self.y_bounds = (margin, environment.get('height', 700.0) - margin)

        self.slide_distance = config.get('collision', {}).get('slide_distance', 10.0)

        self.assembly_enabled = assembly.get('enabled', False)
        self.assembly_point = np.array(assembly.get('point', [500.0, 760.0]), dtype=float)
        self.assembly_speed = assembly.get('speed', 3.0)
        self.assembly_radius = assembly.get('radius', 20.0)

        self._warned_floors = set()

    def plan_path(self, agent: Agent, floor, floor_ids) -> Optional[object]:
        """
        Compute a path from the agent's position to the nearest usable marker
        on its floor and assign it.

        Returns:
            The targeted marker, or None when the floor has no usable marker
        """
        marker, _ = nearest_marker(agent.position, usable_markers(floor, floor_ids))
        if marker is None:
            agent.set_path([])
            return None
        agent.set_path(self.pathfinder.find_path(agent.position, marker.position, floor))
        return marker

    def clamp(self, position: np.ndarray) -> np.ndarray:
        """Keep a position inside the floor plane."""
        return np.array([
            np.clip(position[0], *self.x_bounds),
            np.clip(position[1], *self.y_bounds)
        ])

    def step(self, agents: List[Agent], floors: Dict[int, object], current_time: float,
             sim_speed: float) -> Tuple[List[Agent], List[dict]]:
        """
        Compute the next tick.

        Args:
            agents: Agents as of the previous tick (not modified)
            floors: Floors keyed by id
            current_time: Simulated time of the tick being computed
            sim_speed: Speed multiplier

        Returns:
            Tuple of (new agent list, events raised this tick)
        """
        floor_ids = set(floors)
        index = self._build_neighbor_index(agents)
        new_agents = []
        events = []

        for agent in agents:
            updated = agent.copy()

            if agent.evacuated:
                if self.assembly_enabled and not agent.reached_assembly:
                    self._move_to_assembly(updated, current_time, sim_speed, events)
                new_agents.append(updated)
                continue

            floor = floors.get(agent.floor)
            if floor is None:
                if agent.floor not in self._warned_floors:
                    logger.debug("Agent %s references unknown floor %s; holding position",
                                 agent.id, agent.floor)
                    self._warned_floors.add(agent.floor)
                new_agents.append(updated)
                continue

            marker, dist = nearest_marker(agent.position, usable_markers(floor, floor_ids))
            if marker is None:
                new_agents.append(updated)
                continue

            if dist < self.arrival_radius:
                self._arrive(updated, marker, floors, floor_ids, current_time, events)
                new_agents.append(updated)
                continue

            target = self._next_target(updated, floor, floor_ids)
            if target is None:
                target = marker.position

            neighbors = self._neighbors(index, agent)
            force = self.sfm.compute_force(agent, target, neighbors, floor, sim_speed)
            velocity = self.sfm.limit(self.sfm.integrate(agent.velocity, force), sim_speed)

            proposed = self.clamp(agent.position + velocity)
            corrected = resolve_step(agent.position, proposed, floor,
                                     self.passage_margin, self.slide_distance)
            updated.velocity = velocity
            updated.position = self.clamp(corrected)

            if updated.record_progress(self.stuck_distance) >= self.replan_ticks:
                logger.debug("Agent %s made no progress for %d ticks; replanning",
                             agent.id, updated.idle_ticks)
                self._replan(updated, floor, floor_ids)
            new_agents.append(updated)

        return new_agents, events

    def _next_target(self, agent: Agent, floor, floor_ids: set) -> Optional[np.ndarray]:
        """
        Current waypoint of the agent's path. A waypoint hidden behind a wall
        (the agent was pushed off its route) triggers a new plan from where
        the agent stands.
        """
        def blocked(a, b):
            return self.pathfinder.is_move_blocked(a, b, floor)

        target = agent.advance_waypoints(self.waypoint_radius, blocked)
        # Single-waypoint paths are the unreachable-goal fallback
        if target is not None and len(agent.path) > 1 and blocked(agent.position, target):
            self._replan(agent, floor, floor_ids)
            target = agent.advance_waypoints(self.waypoint_radius, blocked)
        return target

    def _replan(self, agent: Agent, floor, floor_ids: set):
        self.plan_path(agent, floor, floor_ids)
        agent.anchor = agent.position.copy()
        agent.idle_ticks = 0

    def _arrive(self, agent: Agent, marker, floors: dict, floor_ids: set, current_time: float,
                events: List[dict]):
        if marker.is_exit:
            agent.mark_evacuated(current_time, marker)
            events.append({'type': EVACUATED, 'agent': agent.id, 'time': current_time,
                           'floor': agent.floor, 'marker': marker})
            return

        # Stairs are only usable when the floor below exists
        lower = floors[agent.floor - 1]
        from_floor = agent.floor
        agent.floor = lower.id
        agent.position = marker.position.copy()
        agent.velocity = np.zeros(2)
        self._replan(agent, lower, floor_ids)
        events.append({'type': FLOOR_CHANGE, 'agent': agent.id, 'time': current_time,
                       'from_floor': from_floor, 'floor': lower.id})

    def _move_to_assembly(self, agent: Agent, current_time: float, sim_speed: float,
                          events: List[dict]):
        offset = self.assembly_point - agent.position
        dist = np.linalg.norm(offset)
        step = self.assembly_speed * sim_speed

        if dist > 0:
            travel = min(step, dist)
            agent.velocity = offset / dist * travel
            agent.position = agent.position + agent.velocity
            dist -= travel

        if dist < self.assembly_radius:
            agent.mark_assembled(current_time)
            events.append({'type': ASSEMBLED, 'agent': agent.id, 'time': current_time})

    def _build_neighbor_index(self, agents: List[Agent]) -> Dict[int, Tuple[cKDTree, List[Agent]]]:
        """KD-tree of active agents per floor, built from the previous tick."""
        by_floor: Dict[int, List[Agent]] = {}
        for agent in agents:
            if agent.active:
                by_floor.setdefault(agent.floor, []).append(agent)

        index = {}
        for floor_id, members in by_floor.items():
            positions = np.array([a.position for a in members])
            index[floor_id] = (cKDTree(positions), members)
        return index

    def _neighbors(self, index: dict, agent: Agent) -> List[Agent]:
        entry = index.get(agent.floor)
        if entry is None:
            return []
        tree, members = entry
        hits = tree.query_ball_point(agent.position, r=self.sfm.neighbor_radius)
        return [members[i] for i in sorted(hits) if members[i] is not agent]
