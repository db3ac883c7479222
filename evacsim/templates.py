"""
Building Templates
Ready-made floor plans for quick experiments
"""

from typing import Dict, List

from .floorplan import Wall, Door, ExitMarker, Floor, EXIT, STAIRS


def _box(x1: float, y1: float, x2: float, y2: float) -> List[tuple]:
    """Outer walls of an axis-aligned rectangle, clockwise."""
    return [(x1, y1, x2, y1), (x2, y1, x2, y2), (x2, y2, x1, y2), (x1, y2, x1, y1)]


def _floor(floor_id: int, walls: List[tuple], doors: List[tuple], exits: List[tuple]) -> Floor:
    """
    Build a floor from compact tuples.

    Args:
        floor_id: Floor number
        walls: (x1, y1, x2, y2)
        doors: (id, x, y, width, capacity, orientation, throughput)
        exits: (x, y, type)
    """
    return Floor(
        floor_id,
        walls=[Wall(*w) for w in walls],
        doors=[Door(d[0], d[1], d[2], width=d[3], capacity=d[4], orientation=d[5], throughput=d[6])
               for d in doors],
        exits=[ExitMarker(x, y, floor_id, kind) for x, y, kind in exits]
    )


def _office() -> List[Floor]:
    ground = _floor(
        1,
        _box(100, 100, 900, 600) + [
            (300, 100, 300, 300), (700, 100, 700, 300),
            (300, 400, 300, 600), (700, 400, 700, 600)
        ],
        [
            ('door-1', 500, 100, 60, 2, 'horizontal', 1.2),
            ('door-2', 100, 350, 60, 2, 'vertical', 1.2),
            ('door-3', 900, 350, 60, 2, 'vertical', 1.2),
            ('door-4', 300, 350, 60, 2, 'vertical', 1.2),
            ('door-5', 700, 350, 60, 2, 'vertical', 1.2)
        ],
        [(500, 50, EXIT), (80, 350, EXIT), (920, 350, EXIT), (180, 200, STAIRS), (820, 200, STAIRS)]
    )
    upper = _floor(
        2,
        _box(100, 100, 900, 600) + [(500, 100, 500, 600)],
        [('door-6', 500, 350, 60, 2, 'vertical', 1.2)],
        [(180, 200, STAIRS), (820, 200, STAIRS)]
    )
    return [ground, upper]


def _mall() -> List[Floor]:
    return [_floor(
        1,
        _box(50, 50, 950, 650) + [
            (350, 200, 350, 500), (650, 200, 650, 500),
            (350, 200, 650, 200), (350, 500, 650, 500)
        ],
        [
            ('door-1', 500, 50, 80, 3, 'horizontal', 1.5),
            ('door-2', 950, 350, 80, 3, 'vertical', 1.5),
            ('door-3', 500, 650, 80, 3, 'horizontal', 1.5),
            ('door-4', 50, 350, 80, 3, 'vertical', 1.5),
            ('door-5', 500, 200, 80, 3, 'horizontal', 1.5),
            ('door-6', 500, 500, 80, 3, 'horizontal', 1.5)
        ],
        [(500, 20, EXIT), (980, 350, EXIT), (500, 680, EXIT), (20, 350, EXIT)]
    )]


def _school() -> List[Floor]:
    corridor = [(100, 300, 400, 300), (600, 300, 900, 300)]
    stairs = [(150, 500, STAIRS), (850, 500, STAIRS)]
    ground = _floor(
        1,
        _box(100, 100, 900, 600) + corridor + [(100, 400, 400, 400), (600, 400, 900, 400)],
        [
            ('door-1', 500, 100, 60, 2, 'horizontal', 1.2),
            ('door-2', 500, 600, 60, 2, 'horizontal', 1.2),
            ('door-3', 200, 300, 60, 2, 'horizontal', 1.2),
            ('door-4', 700, 300, 60, 2, 'horizontal', 1.2),
            ('door-5', 200, 400, 60, 2, 'horizontal', 1.2),
            ('door-6', 700, 400, 60, 2, 'horizontal', 1.2)
        ],
        [(500, 70, EXIT), (500, 630, EXIT)] + stairs
    )
    second = _floor(
        2,
        _box(100, 100, 900, 600) + corridor,
        [
            ('door-7', 200, 300, 60, 2, 'horizontal', 1.2),
            ('door-8', 700, 300, 60, 2, 'horizontal', 1.2)
        ],
        stairs
    )
    third = _floor(
        3,
        _box(100, 100, 900, 600) + [(500, 100, 500, 300)],
        [('door-9', 500, 300, 60, 2, 'vertical', 1.2)],
        stairs
    )
    return [ground, second, third]


def _shop() -> List[Floor]:
    shelves = [(400, 300, 600, 300), (400, 400, 600, 400)]
    return [_floor(
        1,
        _box(200, 200, 800, 500) + shelves,
        [('door-1', 500, 200, 60, 2, 'horizontal', 1.2)],
        [(500, 170, EXIT)]
    )]


def _conference_hall() -> List[Floor]:
    return [_floor(
        1,
        _box(150, 150, 850, 550) + [(400, 150, 400, 250), (600, 150, 600, 250)],
        [
            ('door-1', 150, 350, 60, 2, 'vertical', 1.2),
            ('door-2', 850, 350, 60, 2, 'vertical', 1.2),
            ('door-3', 500, 150, 60, 2, 'horizontal', 1.2),
            ('door-4', 400, 250, 60, 2, 'vertical', 1.2),
            ('door-5', 600, 250, 60, 2, 'vertical', 1.2)
        ],
        [(120, 350, EXIT), (880, 350, EXIT), (500, 120, EXIT)]
    )]


TEMPLATES: Dict[str, dict] = {
    'office': {
        'name': 'Office building (2 floors)',
        'description': 'Open-plan office with two staircases',
        'build': _office
    },
    'mall': {
        'name': 'Shopping mall (1 floor)',
        'description': 'Large hall with several exits and wide aisles',
        'build': _mall
    },
    'school': {
        'name': 'School (3 floors)',
        'description': 'Classrooms along corridors',
        'build': _school
    },
    'shop': {
        'name': 'Small shop',
        'description': 'Compact room with a single entrance',
        'build': _shop
    },
    'conference': {
        'name': 'Conference hall',
        'description': 'Large hall with side exits',
        'build': _conference_hall
    }
}


def list_templates() -> List[dict]:
    """Key, name and description of every template."""
    return [{'key': key, 'name': t['name'], 'description': t['description']}
            for key, t in TEMPLATES.items()]


def get_template(key: str) -> List[Floor]:
    """
    Floors of a template, freshly built on every call.

    Raises:
        KeyError: Unknown template key
    """
    if key not in TEMPLATES:
        raise KeyError(f"Unknown template {key!r}; choose from {', '.join(TEMPLATES)}")
    return TEMPLATES[key]['build']()
