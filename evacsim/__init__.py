"""
Evacuation Simulation Engine
Multi-floor crowd evacuation with grid pathfinding, social forces and congestion analytics
"""

__version__ = "1.0.0"

from .floorplan import Wall, Door, ExitMarker, Floor, Person, load_project, save_project
from .agent import Agent
from .pathfinding import GridPathfinder
from .collision import resolve_step
from .motion_models import SocialForceModel, MotionController
from .analytics import AnalyticsCollector, Heatmap, Bottleneck, SimulationResult, result_to_dict
from .simulation_engine import SimulationEngine
from .templates import get_template, list_templates
from .config import DEFAULT_CONFIG, load_config, merge_config

__all__ = [
    'Wall',
    'Door',
    'ExitMarker',
    'Floor',
    'Person',
    'load_project',
    'save_project',
    'Agent',
    'GridPathfinder',
    'resolve_step',
    'SocialForceModel',
    'MotionController',
    'AnalyticsCollector',
    'Heatmap',
    'Bottleneck',
    'SimulationResult',
    'result_to_dict',
    'SimulationEngine',
    'get_template',
    'list_templates',
    'DEFAULT_CONFIG',
    'load_config',
    'merge_config'
]
