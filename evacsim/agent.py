"""
Simulation Agent
Transient per-run state of a person moving through the building
"""

import numpy as np
from typing import Callable, List, Optional


class Agent:
    """
    A person extended with live simulation state.

    Agents are treated as values during a tick: the motion model reads the
    previous tick's agents and produces updated copies, so one agent's update
    is never visible to another agent within the same tick.

    Attributes:
        id: Person identifier
        name: Person name
        mobility: 0-100, scales base walking speed linearly
        panic_level: 0-100, scales walking speed upward
        connections: Ids of connected people
        position: Current [x, y] position
        floor: Current floor id
        velocity: Current [vx, vy] per tick
        evacuated: Whether the agent has left through an exit
        evacuation_time: Simulated time of leaving
        exit_marker: Exit marker used to leave
        reached_assembly: Whether the agent reached the assembly point
        assembly_time: Simulated time of reaching the assembly point
        path: Planned waypoints on the current floor
        path_index: Index of the next unconsumed waypoint
        anchor: Position at the last observed progress
        idle_ticks: Ticks spent within reach of ``anchor``
    """

    def __init__(self, person, position: np.ndarray, floor: int):
        self.id = person.id
        self.name = person.name
        self.mobility = person.mobility
        self.panic_level = person.panic_level
        self.connections = tuple(person.connections)
        self.disabilities = tuple(person.disabilities)

        self.position = np.array(position, dtype=float)
        self.floor = int(floor)
        self.velocity = np.zeros(2, dtype=float)

        self.evacuated = False
        self.evacuation_time: Optional[float] = None
        self.exit_marker = None
        self.reached_assembly = False
        self.assembly_time: Optional[float] = None

        self.path = ()
        self.path_index = 0
        self.anchor = self.position.copy()
        self.idle_ticks = 0

    def copy(self) -> 'Agent':
        """Shallow state copy with fresh position and velocity arrays."""
        clone = Agent.__new__(Agent)
        clone.__dict__.update(self.__dict__)
        clone.position = self.position.copy()
        clone.velocity = self.velocity.copy()
        return clone

    @property
    def active(self) -> bool:
        """Still inside the building."""
        return not self.evacuated

    def is_done(self, assembly_required: bool) -> bool:
        """Whether the agent satisfies the run's completion criterion."""
        if assembly_required:
            return self.reached_assembly
        return self.evacuated

    def desired_speed(self, base_speed: float, sim_speed: float, panic_speed_factor: float = 0.5) -> float:
        """Attraction magnitude: mobility-scaled base speed times the panic factor."""
        speed = base_speed * (self.mobility / 100.0) * sim_speed
        return speed * self.panic_factor(panic_speed_factor)

    def panic_factor(self, panic_speed_factor: float = 0.5) -> float:
        return 1.0 + (self.panic_level / 100.0) * panic_speed_factor

    def set_path(self, path: List[np.ndarray]):
        """Set planned path to follow."""
        self.path = tuple(np.array(p, dtype=float) for p in path)
        self.path_index = 0

    def advance_waypoints(self, radius: float,
                          is_blocked: Optional[Callable[[np.ndarray, np.ndarray], bool]] = None) -> Optional[np.ndarray]:
        """
        Consume every waypoint already within ``radius`` and return the next
        one, or None when the path is exhausted.

        A waypoint behind a wall (``is_blocked(position, waypoint)``) is
        never consumed, however close it is.
        """
        while self.path_index < len(self.path):
            waypoint = self.path[self.path_index]
            if np.linalg.norm(self.position - waypoint) < radius:
                if is_blocked is None or not is_blocked(self.position, waypoint):
                    self.path_index += 1
                    continue
            return waypoint
        return None

    def record_progress(self, distance: float) -> int:
        """
        Count a tick without progress unless the agent moved more than
        ``distance`` from its anchor, which then moves to the agent.

        Returns:
            Consecutive ticks without progress
        """
        if np.linalg.norm(self.position - self.anchor) > distance:
            self.anchor = self.position.copy()
            self.idle_ticks = 0
        else:
            self.idle_ticks += 1
        return self.idle_ticks

    def mark_evacuated(self, time: float, marker):
        if self.evacuated:
            return
        self.evacuated = True
        self.evacuation_time = time
        self.exit_marker = marker
        self.velocity = np.zeros(2)

    def mark_assembled(self, time: float):
        if self.reached_assembly:
            return
        self.reached_assembly = True
        self.assembly_time = time
        self.velocity = np.zeros(2)

    def to_snapshot(self) -> dict:
        """Read-only view of the agent for live rendering."""
        return {
            'id': self.id,
            'name': self.name,
            'x': float(self.position[0]),
            'y': float(self.position[1]),
            'floor': self.floor,
            'vx': float(self.velocity[0]),
            'vy': float(self.velocity[1]),
            'evacuated': self.evacuated,
            'reached_assembly': self.reached_assembly,
            'panic_level': self.panic_level
        }

    def __repr__(self) -> str:
        if self.reached_assembly:
            status = "assembled"
        elif self.evacuated:
            status = "evacuated"
        else:
            status = "active"
        return f"Agent({self.id}, floor={self.floor}, pos={self.position}, {status})"
