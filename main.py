"""
Main Application Entry Point
Command-line interface for running evacuation simulations
"""

import sys
import json
import logging
import argparse
import numpy as np
from pathlib import Path

from evacsim.analytics import result_to_dict
from evacsim.config import DEFAULT_CONFIG, load_config, merge_config
from evacsim.floorplan import Person, load_project
from evacsim.simulation_engine import SimulationEngine, COMPLETED
from evacsim.templates import get_template, list_templates

DEFAULT_CONFIG_FILE = 'config.yaml'


def generate_people(count: int, seed: int = 42) -> list:
    """Random population without stored positions; the engine scatters them on the lowest floor."""
    rng = np.random.RandomState(seed)
    people = []
    for i in range(count):
        people.append(Person(
            person_id=f"person-{i + 1}",
            name=f"Person {i + 1}",
            age=int(rng.randint(18, 70)),
            mobility=float(rng.uniform(50, 100)),
            panic_level=float(rng.uniform(0, 100))
        ))
    return people


def build_config(args) -> dict:
    """
    Load the configuration file and apply command-line overrides.

    A missing default file falls back to the built-in defaults; a missing
    file named on the command line is an error.
    """
    config_path = Path(args.config)
    if config_path.exists():
        print(f"Loading configuration: {config_path}")
        config = load_config(str(config_path))
    elif args.config != DEFAULT_CONFIG_FILE:
        raise FileNotFoundError(f"Configuration file '{config_path}' not found.")
    else:
        config = merge_config(DEFAULT_CONFIG, None)

    if args.speed is not None:
        config['simulation']['speed'] = args.speed
    if args.max_time is not None:
        config['simulation']['max_time'] = args.max_time
    if args.seed is not None:
        config['simulation']['seed'] = args.seed
    if args.assembly:
        config['assembly']['enabled'] = True

    output_dir = Path(args.output)
    config['analytics']['csv_path'] = str(output_dir / 'analytics.csv')
    return config


def load_scenario(args, config: dict):
    """Floors and people from a project file or a template."""
    if args.project:
        print(f"Loading project: {args.project}")
        floors, people = load_project(args.project)
    else:
        print(f"Loading template: {args.template}")
        floors, people = get_template(args.template), []

    if args.people:
        people = generate_people(args.people, config['simulation'].get('seed', 42))
    return floors, people


def main():
    """Main application entry point."""
    parser = argparse.ArgumentParser(
        description='Multi-floor Building Evacuation Simulator',
        epilog='Examples:\n'
               '  python main.py project.json\n'
               '  python main.py --template office --people 80\n'
               '  python main.py --template school --people 200 --speed 3 --assembly',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        'project',
        type=str,
        nargs='?',
        help='Path to a project JSON file exported by the floor plan editor'
    )
    parser.add_argument(
        '--template',
        type=str,
        choices=[t['key'] for t in list_templates()],
        help='Use a built-in building template instead of a project file'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=DEFAULT_CONFIG_FILE,
        help='Path to a YAML configuration file (built-in defaults when the default file is absent)'
    )
    parser.add_argument(
        '--people',
        type=int,
        help='Replace the population with N randomly generated people'
    )
    parser.add_argument(
        '--speed',
        type=float,
        help='Simulation speed multiplier (0.5 - 5)'
    )
    parser.add_argument(
        '--max-time',
        type=float,
        help='Simulated seconds before the run is declared stalled'
    )
    parser.add_argument(
        '--assembly',
        action='store_true',
        help='Require evacuees to reach the assembly point'
    )
    parser.add_argument(
        '--seed',
        type=int,
        help='Random seed for placement and generated people'
    )
    parser.add_argument(
        '--output',
        type=str,
        default='output',
        help='Directory for result.json and the analytics CSV'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    if not args.project and not args.template:
        parser.error('provide a project file or --template')

    try:
        config = build_config(args)
        floors, people = load_scenario(args, config)
    except (FileNotFoundError, ValueError, KeyError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print("Starting Evacuation Simulation")
    print("=" * 60)
    print(f"Floors: {len(floors)}, People: {len(people)}")
    print(f"Speed: {config['simulation']['speed']}x, Time limit: {config['simulation']['max_time']:.0f}s")
    print("=" * 60)

    engine = SimulationEngine(config, floors, people)
    progress_every = max(1, int(5.0 / (engine.frame_step * engine.speed)))

    def report_progress(eng):
        if eng.tick_count % progress_every == 0:
            active = sum(1 for a in eng.agents if a.active)
            print(f"Time: {eng.current_time:.1f}s | Active: {active} | Evacuated: {eng.evacuated_count}")

    try:
        result = engine.run(on_tick=report_progress)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nSimulation interrupted by user.")
        engine.stop()
        sys.exit(1)

    print()
    print(engine.analytics.generate_summary_report(result))

    result_path = output_dir / 'result.json'
    with open(result_path, 'w', encoding='utf-8') as f:
        json.dump(result_to_dict(result), f, indent=2)
    print(f"\nResult written to {result_path}")

    csv_path = engine.analytics.export_to_csv()
    if csv_path is not None:
        print(f"Time series data exported to {csv_path}")

    if engine.state != COMPLETED:
        sys.exit(2)


if __name__ == '__main__':
    main()
