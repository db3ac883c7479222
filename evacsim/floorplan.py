"""
Floor Plan Data Model
Walls, doors, exit/stairs markers, floors and people, plus project file I/O
"""

import json
import numpy as np
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Dict, Tuple, Optional

EXIT = 'exit'
STAIRS = 'stairs'
MARKER_TYPES = (EXIT, STAIRS)

DOOR_ORIENTATIONS = ('horizontal', 'vertical')
DOOR_DIRECTIONS = ('inward', 'outward', 'both')

PROJECT_VERSION = '1.0'


def _require(data: dict, key: str, kind: str):
    if not isinstance(data, dict):
        raise ValueError(f"{kind} entry must be an object, got {type(data).__name__}")
    if key not in data:
        raise ValueError(f"{kind} entry is missing required field '{key}'")
    return data[key]


def _number(data: dict, key: str, kind: str) -> float:
    value = _require(data, key, kind)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{kind} field '{key}' must be a number, got {value!r}") from None


class Wall:
    """An undirected wall segment on a floor."""

    def __init__(self, x1: float, y1: float, x2: float, y2: float):
        self.x1 = float(x1)
        self.y1 = float(y1)
        self.x2 = float(x2)
        self.y2 = float(y2)
        self.start = np.array([self.x1, self.y1])
        self.end = np.array([self.x2, self.y2])

    @property
    def length(self) -> float:
        return float(np.hypot(self.x2 - self.x1, self.y2 - self.y1))

    def to_dict(self) -> dict:
        return {'x1': self.x1, 'y1': self.y1, 'x2': self.x2, 'y2': self.y2}

    @classmethod
    def from_dict(cls, data: dict) -> 'Wall':
        return cls(*(_number(data, k, 'Wall') for k in ('x1', 'y1', 'x2', 'y2')))

    def __repr__(self) -> str:
        return f"Wall(({self.x1:g}, {self.y1:g}) -> ({self.x2:g}, {self.y2:g}))"


class Door:
    """
    A door placed on a wall.

    Doors never block movement. They open a gap in nearby walls: within
    ``width / 2 + margin`` of the door centre, wall crossings are allowed.

    Attributes:
        id: Door identifier
        x, y: Door centre
        width: Opening width
        capacity: Nominal number of people passing side by side
        orientation: 'horizontal' or 'vertical' (axis spanned by the width)
        throughput: Capacity in people per second
        direction: 'inward', 'outward' or 'both'
        auto_open: Whether the door opens automatically
        current_queue: Live number of people waiting in the passage zone
    """

    def __init__(
        self,
        door_id: str,
        x: float,
        y: float,
        width: float = 60.0,
        capacity: int = 2,
        orientation: str = 'horizontal',
        throughput: float = 1.2,
        direction: str = 'both',
        auto_open: bool = False,
        current_queue: int = 0
    ):
        if orientation not in DOOR_ORIENTATIONS:
            raise ValueError(f"Unknown door orientation: {orientation!r}")
        if direction not in DOOR_DIRECTIONS:
            raise ValueError(f"Unknown door direction: {direction!r}")
        if width <= 0:
            raise ValueError(f"Door width must be positive, got {width}")

        self.id = str(door_id)
        self.x = float(x)
        self.y = float(y)
        self.width = float(width)
        self.capacity = int(capacity)
        self.orientation = orientation
        self.throughput = float(throughput)
        self.direction = direction
        self.auto_open = bool(auto_open)
        self.current_queue = int(current_queue)
        self.position = np.array([self.x, self.y])

    def passage_radius(self, margin: float) -> float:
        """Radius of the zone in which walls are passable."""
        return self.width / 2 + margin

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'capacity': self.capacity,
            'orientation': self.orientation,
            'throughput': self.throughput,
            'direction': self.direction,
            'autoOpen': self.auto_open,
            'currentQueue': self.current_queue
        }

    @classmethod
    def from_dict(cls, data: dict, default_id: str = '') -> 'Door':
        return cls(
            door_id=data.get('id', default_id) if isinstance(data, dict) else default_id,
            x=_number(data, 'x', 'Door'),
            y=_number(data, 'y', 'Door'),
            width=float(data.get('width', 60.0)),
            capacity=int(data.get('capacity', 2)),
            orientation=data.get('orientation', 'horizontal'),
            throughput=float(data.get('throughput', 1.2)),
            direction=data.get('direction', 'both'),
            auto_open=bool(data.get('autoOpen', False)),
            current_queue=int(data.get('currentQueue', 0))
        )

    def __repr__(self) -> str:
        return f"Door({self.id!r}, ({self.x:g}, {self.y:g}), width={self.width:g})"


class ExitMarker:
    """An exit (leads outside) or stairs (leads one floor down) marker."""

    def __init__(self, x: float, y: float, floor: int, marker_type: str = EXIT):
        if marker_type not in MARKER_TYPES:
            raise ValueError(f"Unknown exit marker type: {marker_type!r}")
        self.x = float(x)
        self.y = float(y)
        self.floor = int(floor)
        self.type = marker_type
        self.position = np.array([self.x, self.y])

    @property
    def is_exit(self) -> bool:
        return self.type == EXIT

    @property
    def is_stairs(self) -> bool:
        return self.type == STAIRS

    def to_dict(self) -> dict:
        return {'x': self.x, 'y': self.y, 'floor': self.floor, 'type': self.type}

    @classmethod
    def from_dict(cls, data: dict, floor_id: int) -> 'ExitMarker':
        return cls(
            x=_number(data, 'x', 'Exit'),
            y=_number(data, 'y', 'Exit'),
            floor=int(data.get('floor', floor_id)),
            marker_type=data.get('type', EXIT)
        )

    def __repr__(self) -> str:
        return f"ExitMarker({self.type}, ({self.x:g}, {self.y:g}), floor={self.floor})"


class Floor:
    """
    A single building floor.

    Floor N connects to floor N-1 through its stairs markers. Geometry is
    treated as read-only while a simulation is running.
    """

    def __init__(
        self,
        floor_id: int,
        walls: Optional[List[Wall]] = None,
        doors: Optional[List[Door]] = None,
        exits: Optional[List[ExitMarker]] = None
    ):
        self.id = int(floor_id)
        self.walls = tuple(walls or ())
        self.doors = tuple(doors or ())
        self.exits = tuple(exits or ())

    @property
    def exit_markers(self) -> List[ExitMarker]:
        return [m for m in self.exits if m.is_exit]

    @property
    def stairs_markers(self) -> List[ExitMarker]:
        return [m for m in self.exits if m.is_stairs]

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'walls': [w.to_dict() for w in self.walls],
            'doors': [d.to_dict() for d in self.doors],
            'exits': [e.to_dict() for e in self.exits]
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Floor':
        floor_id = int(_number(data, 'id', 'Floor'))
        try:
            walls = [Wall.from_dict(w) for w in data.get('walls', [])]
            doors = [Door.from_dict(d, default_id=f"door-{floor_id}-{i}")
                     for i, d in enumerate(data.get('doors', []))]
            exits = [ExitMarker.from_dict(e, floor_id) for e in data.get('exits', [])]
        except ValueError as e:
            raise ValueError(f"Floor {floor_id}: {e}") from e
        return cls(floor_id, walls, doors, exits)

    def __repr__(self) -> str:
        return (f"Floor({self.id}, walls={len(self.walls)}, doors={len(self.doors)}, "
                f"exits={len(self.exits)})")


class Person:
    """
    Static person record as maintained by the people database.

    Attributes:
        id: Unique identifier
        name: Display name
        age: Age in years
        mobility: 0-100 (0 = wheelchair-bound, 100 = fully mobile)
        panic_level: 0-100, increases walking speed
        volume: Social volume
        disabilities: List of disability tags
        connections: Ids of connected people (group affiliation)
        position: Optional initial (x, y, floor)
    """

    def __init__(
        self,
        person_id: str,
        name: str = '',
        age: int = 30,
        mobility: float = 100.0,
        panic_level: float = 0.0,
        volume: float = 50.0,
        disabilities: Optional[List[str]] = None,
        connections: Optional[List[str]] = None,
        position: Optional[Tuple[float, float, int]] = None
    ):
        if not 0 <= mobility <= 100:
            raise ValueError(f"Mobility must be within 0-100, got {mobility}")
        if not 0 <= panic_level <= 100:
            raise ValueError(f"Panic level must be within 0-100, got {panic_level}")

        self.id = str(person_id)
        self.name = name or self.id
        self.age = int(age)
        self.mobility = float(mobility)
        self.panic_level = float(panic_level)
        self.volume = float(volume)
        self.disabilities = list(disabilities or [])
        self.connections = list(connections or [])
        if position is not None:
            x, y, floor = position
            position = (float(x), float(y), int(floor))
        self.position = position

    def to_dict(self) -> dict:
        data = {
            'id': self.id,
            'name': self.name,
            'age': self.age,
            'mobility': self.mobility,
            'panicLevel': self.panic_level,
            'volume': self.volume,
            'disabilities': list(self.disabilities),
            'connections': list(self.connections)
        }
        if self.position is not None:
            x, y, floor = self.position
            data['position'] = {'x': x, 'y': y, 'floor': floor}
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Person':
        person_id = _require(data, 'id', 'Person')
        position = data.get('position')
        if position is not None:
            position = (
                _number(position, 'x', 'Person position'),
                _number(position, 'y', 'Person position'),
                int(position.get('floor', 1))
            )
        try:
            return cls(
                person_id=person_id,
                name=data.get('name', ''),
                age=int(data.get('age', 30)),
                mobility=float(data.get('mobility', 100)),
                panic_level=float(data.get('panicLevel', 0)),
                volume=float(data.get('volume', 50)),
                disabilities=data.get('disabilities', []),
                connections=data.get('connections', []),
                position=position
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"Person {person_id}: {e}") from e

    def __repr__(self) -> str:
        return f"Person({self.id!r}, mobility={self.mobility:g}, panic={self.panic_level:g})"


def floors_from_dicts(items: List[dict]) -> List[Floor]:
    """Build floors from dicts, sorted by id; duplicate ids are rejected."""
    floors = [Floor.from_dict(item) for item in items]
    ids = [f.id for f in floors]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate floor ids: {sorted(ids)}")
    return sorted(floors, key=lambda f: f.id)


def load_project(file_path: str) -> Tuple[List[Floor], List[Person]]:
    """
    Load a project exported by the floor plan editor.

    Args:
        file_path: Path to the JSON project file

    Returns:
        Tuple of (floors sorted by id, people)
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Project file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            project = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid project file {path}: {e}") from e

    if not isinstance(project, dict):
        raise ValueError(f"Invalid project file {path}: top level must be an object")

    floors = floors_from_dicts(project.get('floors', []))
    people = [Person.from_dict(p) for p in project.get('people', [])]
    return floors, people


def save_project(file_path: str, floors: List[Floor], people: List[Person]):
    """Write floors and people in the editor's project format."""
    project = {
        'floors': [f.to_dict() for f in floors],
        'people': [p.to_dict() for p in people],
        'version': PROJECT_VERSION,
        'exportedAt': datetime.now(timezone.utc).isoformat()
    }
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(project, f, indent=2, ensure_ascii=False)


def floor_lookup(floors: List[Floor]) -> Dict[int, Floor]:
    """Map floor id to floor."""
    return {floor.id: floor for floor in floors}


def usable_markers(floor: Floor, floor_ids) -> List[ExitMarker]:
    """
    Markers an agent on this floor can actually use.

    Exits are always usable. Stairs only lead somewhere when the floor above
    ground has an existing floor directly below it.
    """
    has_lower = floor.id > 1 and (floor.id - 1) in floor_ids
    return [m for m in floor.exits if m.is_exit or (m.is_stairs and has_lower)]


def nearest_marker(position: np.ndarray, markers: List[ExitMarker]) -> Tuple[Optional[ExitMarker], float]:
    """Nearest marker to a position and its distance; (None, inf) when there are none."""
    best = None
    best_dist = float('inf')
    for marker in markers:
        dist = float(np.hypot(marker.x - position[0], marker.y - position[1]))
        if dist < best_dist:
            best_dist = dist
            best = marker
    return best, best_dist
