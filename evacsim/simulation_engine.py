"""
Simulation Engine
Simulation clock, run lifecycle and per-tick coordination
"""

import logging
import numpy as np
from typing import Callable, List, Optional

from .agent import Agent
from .analytics import AnalyticsCollector, SimulationResult
from .config import DEFAULT_CONFIG, merge_config
from .floorplan import floor_lookup, usable_markers
from .motion_models import MotionController, EVACUATED, FLOOR_CHANGE
from .pathfinding import GridPathfinder

logger = logging.getLogger(__name__)

IDLE = 'idle'
INITIALIZING = 'initializing'
RUNNING = 'running'
PAUSED = 'paused'
COMPLETED = 'completed'
STALLED = 'stalled'

TERMINAL_STATES = (COMPLETED, STALLED)


class SimulationEngine:
    """
    Main simulation engine that coordinates all components.

    Lifecycle: idle -> initializing -> running <-> paused -> completed.
    A run that can no longer finish (time limit reached or every remaining
    agent stranded) ends in ``stalled`` with an incomplete result. ``stop()``
    returns to idle from any state without producing a result.
    """

    def __init__(self, config: dict = None, floors: List = None, people: List = None):
        self.config = merge_config(DEFAULT_CONFIG, config)
        sim_config = self.config['simulation']
        self.frame_step = sim_config.get('frame_step', 0.016)
        self.min_speed = sim_config.get('min_speed', 0.5)
        self.max_speed = sim_config.get('max_speed', 5.0)
        self.max_time = sim_config.get('max_time', 600.0)
        self.seed = sim_config.get('seed', 42)
        self.speed = float(np.clip(sim_config.get('speed', 1.0), self.min_speed, self.max_speed))

        env_config = self.config['environment']
        placement = self.config['placement']
        self.x_range = tuple(placement.get('x_range', [100.0, 800.0]))
        self.y_range = tuple(placement.get('y_range', [100.0, 600.0]))
        self.assembly_required = self.config['assembly'].get('enabled', False)

        passage_margin = self.config['doors'].get('passage_margin', 40.0)
        self.pathfinder = GridPathfinder(
            self.config['pathfinding'],
            width=env_config.get('width', 1000.0),
            height=env_config.get('height', 700.0),
            passage_margin=passage_margin
        )
        self.motion_controller = MotionController(self.config, self.pathfinder)
        self.analytics = AnalyticsCollector(
            self.config['analytics'],
            self.config['heatmap'],
            passage_margin=passage_margin
        )

        self.floors = list(floors or [])
        self.people = list(people or [])

        self.state = IDLE
        self.agents: List[Agent] = []
        self.current_time = 0.0
        self.tick_count = 0
        self.result: Optional[SimulationResult] = None
        self._floor_map = {}
        self._callbacks: List[Callable[[SimulationResult], None]] = []

    def load(self, floors: List, people: List):
        """Replace the building and population used by the next run."""
        if self.state not in (IDLE,) + TERMINAL_STATES:
            logger.warning("Cannot load a scenario while %s", self.state)
            return False
        self.floors = list(floors)
        self.people = list(people)
        return True

    def on_complete(self, callback: Callable[[SimulationResult], None]):
        """Register a callback invoked with the result when a run ends."""
        self._callbacks.append(callback)

    def _set_state(self, state: str):
        logger.info("Simulation %s -> %s", self.state, state)
        self.state = state

    def start(self) -> bool:
        """
        Initialise a new run and enter the running state.

        Raises:
            ValueError: No people, no floors, or duplicate floor ids
        """
        if self.state not in (IDLE,) + TERMINAL_STATES:
            logger.warning("Cannot start while %s", self.state)
            return False

        if not self.people:
            raise ValueError("Cannot start a simulation without people")
        if not self.floors:
            raise ValueError("Cannot start a simulation without floors")
        floor_ids = [f.id for f in self.floors]
        if len(set(floor_ids)) != len(floor_ids):
            raise ValueError(f"Duplicate floor ids: {sorted(floor_ids)}")

        self._set_state(INITIALIZING)
        floors = sorted(self.floors, key=lambda f: f.id)
        self._floor_map = floor_lookup(floors)

        # Floor geometry may have changed since the last run
        self.pathfinder.clear_cache()
        self.analytics.reset(floors)
        self.current_time = 0.0
        self.tick_count = 0
        self.result = None
        self.agents = self._create_agents(floors)

        logger.info("Starting evacuation of %d people across %d floor(s)",
                    len(self.agents), len(floors))
        self._set_state(RUNNING)
        return True

    def _create_agents(self, floors: List) -> List[Agent]:
        """Create agents at their stored positions, or scattered on the lowest floor."""
        rng = np.random.RandomState(self.seed)
        lowest = floors[0].id
        floor_ids = set(self._floor_map)
        agents = []

        for person in self.people:
            if person.position is not None:
                x, y, floor_id = person.position
                position = np.array([x, y])
            else:
                position = np.array([rng.uniform(*self.x_range), rng.uniform(*self.y_range)])
                floor_id = lowest

            agent = Agent(person, position, floor_id)
            floor = self._floor_map.get(floor_id)
            if floor is not None:
                self.motion_controller.plan_path(agent, floor, floor_ids)
            agents.append(agent)

        return agents

    def step(self) -> bool:
        """
        Execute a single simulation tick.

        Returns:
            True if a tick was executed (only possible while running)
        """
        if self.state != RUNNING:
            return False

        self.current_time += self.frame_step * self.speed
        self.tick_count += 1

        self.agents, events = self.motion_controller.step(
            self.agents, self._floor_map, self.current_time, self.speed
        )
        for event in events:
            self.analytics.record_event(event)
            if event['type'] == EVACUATED:
                logger.debug("%s evacuated at %.2fs", event['agent'], event['time'])
            elif event['type'] == FLOOR_CHANGE:
                logger.debug("%s took the stairs from floor %d to %d",
                             event['agent'], event['from_floor'], event['floor'])

        # Positions are final for this tick
        self.analytics.update(self.agents, self.current_time)

        self._check_termination()
        return True

    def _check_termination(self):
        remaining = [a for a in self.agents if not a.is_done(self.assembly_required)]
        if not remaining:
            self._finish(COMPLETED, completed=True)
        elif self.current_time >= self.max_time:
            logger.warning("Time limit of %.0fs reached with %d people remaining",
                           self.max_time, len(remaining))
            self._finish(STALLED, completed=False)
        elif all(a.active and self._is_stranded(a) for a in remaining):
            logger.warning("%d people have no reachable exit", len(remaining))
            self._finish(STALLED, completed=False)

    def _is_stranded(self, agent: Agent) -> bool:
        floor = self._floor_map.get(agent.floor)
        if floor is None:
            return True
        return not usable_markers(floor, self._floor_map)

    def _finish(self, state: str, completed: bool):
        self.result = self.analytics.build_result(self.agents, self.current_time, completed)
        logger.info("Run finished after %.2fs: %d/%d evacuated",
                    self.current_time, self.result.evacuated_count, self.result.people_count)
        self._set_state(state)
        for callback in self._callbacks:
            callback(self.result)

    def run(self, max_ticks: int = None, on_tick: Callable[['SimulationEngine'], None] = None) -> Optional[SimulationResult]:
        """
        Drive the simulation synchronously.

        Starts a new run unless one is already running. Stops when the run
        ends, is paused or stopped (e.g. from ``on_tick``), or after
        ``max_ticks`` ticks.

        Args:
            max_ticks: Optional tick limit for this call
            on_tick: Called with the engine after every tick

        Returns:
            The result when the run ended, otherwise None
        """
        if self.state in (IDLE,) + TERMINAL_STATES:
            self.start()

        ticks = 0
        while self.state == RUNNING and (max_ticks is None or ticks < max_ticks):
            self.step()
            ticks += 1
            if on_tick is not None:
                on_tick(self)

        return self.result

    def pause(self) -> bool:
        if self.state != RUNNING:
            logger.warning("Cannot pause while %s", self.state)
            return False
        self._set_state(PAUSED)
        return True

    def resume(self) -> bool:
        if self.state != PAUSED:
            logger.warning("Cannot resume while %s", self.state)
            return False
        self._set_state(RUNNING)
        return True

    def stop(self):
        """Abort the run and discard its state without producing a result."""
        self.agents = []
        self.analytics.reset(sorted(self.floors, key=lambda f: f.id))
        self.current_time = 0.0
        self.tick_count = 0
        self.result = None
        if self.state != IDLE:
            self._set_state(IDLE)

    def set_speed(self, speed: float) -> float:
        """Set the speed multiplier, clamped to the configured range."""
        self.speed = float(np.clip(speed, self.min_speed, self.max_speed))
        return self.speed

    def snapshot(self) -> List[dict]:
        """Agent states for rendering; a new list on every call."""
        return [agent.to_snapshot() for agent in self.agents]

    @property
    def heatmap(self) -> np.ndarray:
        return self.analytics.heatmap.snapshot()

    @property
    def evacuated_count(self) -> int:
        return sum(1 for a in self.agents if a.evacuated)
