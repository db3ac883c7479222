"""
Configuration
Default simulation parameters and YAML loading
"""

import copy
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_CONFIG: Dict[str, Any] = {
    'simulation': {
        'frame_step': 0.016,         # Simulated seconds per tick at speed 1x
        'speed': 1.0,                # Speed multiplier
        'min_speed': 0.5,
        'max_speed': 5.0,
        'max_time': 600.0,           # Simulated seconds before a run is declared stalled
        'seed': 42
    },
    'environment': {
        'width': 1000.0,
        'height': 700.0,
        'margin': 10.0               # Agents are kept this far from the plane border
    },
    'motion': {
        'base_speed': 2.0,           # Units per tick for mobility 100 at speed 1x
        'panic_speed_factor': 0.5,   # Extra speed at panic level 100
        'waypoint_radius': 25.0,
        'arrival_radius': 20.0,
        'damping': 0.8,              # v' = damping * v + (1 - damping) * F
        'max_speed_factor': 2.0,     # Speed cap relative to base_speed
        'stuck_distance': 10.0,      # Movement that counts as progress
        'replan_ticks': 60,          # Ticks without progress before replanning
        'agent_repulsion': {
            'range': 30.0,
            'strength': 50.0
        },
        'crowd_drift': {
            'range': 80.0,
            'min_neighbors': 3,
            'factor': 0.1
        },
        'wall_repulsion': {
            'range': 20.0,
            'strength': 100.0
        }
    },
    'doors': {
        'passage_margin': 40.0
    },
    'collision': {
        'slide_distance': 10.0
    },
    'pathfinding': {
        'grid_size': 20.0,
        'goal_tolerance': 2.0,       # In grid cells
        'cache': True
    },
    'heatmap': {
        'rows': 35,
        'cols': 50,
        'cell_size': 20.0,
        'decay': 0.95
    },
    'analytics': {
        'enabled': True,
        'sampling_rate': 0.5,
        'bottleneck_threshold': 50.0,
        'max_bottlenecks': 5,
        'csv_path': 'output/analytics.csv'
    },
    'assembly': {
        'enabled': False,
        'point': [500.0, 760.0],
        'speed': 3.0,
        'radius': 20.0
    },
    'placement': {
        'x_range': [100.0, 800.0],
        'y_range': [100.0, 600.0]
    }
}


def merge_config(base: dict, overrides: Optional[dict]) -> dict:
    """
    Recursively merge overrides into a copy of base.

    Args:
        base: Base configuration
        overrides: Partial configuration whose values take precedence

    Returns:
        New merged configuration dict
    """
    merged = copy.deepcopy(base)
    if not overrides:
        return merged

    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def default_config() -> dict:
    """Fresh copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(config_path: str) -> dict:
    """Load configuration from a YAML file, merged over the defaults."""
    path = Path(config_path)
    with open(path, 'r') as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return merge_config(DEFAULT_CONFIG, config)
