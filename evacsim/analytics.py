"""
Analytics Collection and Computation
Occupancy heatmap, bottleneck extraction, evacuation KPIs and the final simulation result
"""

import csv
import numpy as np
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Bottleneck:
    """Heatmap cell whose decayed density exceeds the bottleneck threshold."""
    floor: int
    row: int
    col: int
    x: float
    y: float
    density: float


@dataclass(frozen=True)
class ExitStatistic:
    floor: int
    x: float
    y: float
    count: int
    mean_time: Optional[float]


@dataclass(frozen=True)
class DoorStatistic:
    door_id: str
    floor: int
    peak_queue: int
    mean_queue: float


@dataclass(frozen=True, eq=False)
class SimulationResult:
    """
    Immutable summary of one simulation run.

    ``heatmap`` is a read-only array of shape (floors, rows, cols) whose
    first axis follows ``floor_ids``.
    """
    id: str
    timestamp: str
    evacuation_time: float
    bottlenecks: Tuple[Bottleneck, ...]
    exit_stats: Tuple[ExitStatistic, ...]
    heatmap: np.ndarray
    people_count: int
    floor_count: int
    completed: bool = True
    evacuated_count: int = 0
    assembled_count: int = 0
    floor_ids: Tuple[int, ...] = ()
    door_stats: Tuple[DoorStatistic, ...] = ()
    kpis: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> dict:
        """JSON-serialisable representation."""
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'evacuationTime': self.evacuation_time,
            'completed': self.completed,
            'bottlenecks': [
                {'x': b.x, 'y': b.y, 'density': b.density, 'floor': b.floor}
                for b in self.bottlenecks
            ],
            'exitStats': [
                {'exit': {'x': e.x, 'y': e.y, 'floor': e.floor, 'type': 'exit'},
                 'count': e.count, 'avgTime': e.mean_time}
                for e in self.exit_stats
            ],
            'doorStats': [
                {'id': d.door_id, 'floor': d.floor, 'peakQueue': d.peak_queue,
                 'meanQueue': d.mean_queue}
                for d in self.door_stats
            ],
            'heatmapData': self.heatmap.tolist(),
            'peopleCount': self.people_count,
            'floorCount': self.floor_count,
            'evacuatedCount': self.evacuated_count,
            'assembledCount': self.assembled_count,
            'kpis': dict(self.kpis)
        }


class Heatmap:
    """
    Per-floor grid of decaying occupancy counters.

    Every update first multiplies all cells by ``decay`` and then adds one
    for each agent still inside the building. Positions outside the grid and
    unknown floors are ignored.
    """

    def __init__(self, floor_ids: List[int], rows: int = 35, cols: int = 50,
                 cell_size: float = 20.0, decay: float = 0.95):
        self.floor_ids = tuple(floor_ids)
        self.rows = int(rows)
        self.cols = int(cols)
        self.cell_size = float(cell_size)
        self.decay = float(decay)
        self._floor_index = {floor_id: i for i, floor_id in enumerate(self.floor_ids)}
        self.data = np.zeros((len(self.floor_ids), self.rows, self.cols), dtype=float)

    @classmethod
    def from_config(cls, floor_ids: List[int], config: dict) -> 'Heatmap':
        return cls(
            floor_ids,
            rows=config.get('rows', 35),
            cols=config.get('cols', 50),
            cell_size=config.get('cell_size', 20.0),
            decay=config.get('decay', 0.95)
        )

    def cell_of(self, x: float, y: float) -> Optional[Tuple[int, int]]:
        """(row, col) of a world position, or None when outside the grid."""
        row = int(np.floor(y / self.cell_size))
        col = int(np.floor(x / self.cell_size))
        if 0 <= row < self.rows and 0 <= col < self.cols:
            return row, col
        return None

    def floor_grid(self, floor_id: int) -> Optional[np.ndarray]:
        idx = self._floor_index.get(floor_id)
        if idx is None:
            return None
        return self.data[idx]

    def update(self, agents: List):
        self.data *= self.decay
        for agent in agents:
            if agent.evacuated:
                continue
            idx = self._floor_index.get(agent.floor)
            if idx is None:
                continue
            cell = self.cell_of(agent.position[0], agent.position[1])
            if cell is not None:
                self.data[idx, cell[0], cell[1]] += 1.0

    def bottlenecks(self, threshold: float, limit: Optional[int] = None) -> List[Bottleneck]:
        """
        Cells with density above threshold, densest first.

        Ties keep (floor, row, col) order.
        """
        found = []
        for f, row, col in np.argwhere(self.data > threshold):
            found.append(Bottleneck(
                floor=self.floor_ids[f],
                row=int(row),
                col=int(col),
                x=float(col * self.cell_size),
                y=float(row * self.cell_size),
                density=float(self.data[f, row, col])
            ))
        found.sort(key=lambda b: b.density, reverse=True)
        if limit is not None:
            found = found[:limit]
        return found

    def snapshot(self) -> np.ndarray:
        """Read-only copy of the current grid."""
        data = self.data.copy()
        data.setflags(write=False)
        return data


class AnalyticsCollector:
    """
    Collects and computes simulation analytics.
    """

    def __init__(self, config: dict, heatmap_config: dict = None, passage_margin: float = 40.0):
        self.enabled = config.get('enabled', True)
        self.sampling_rate = config.get('sampling_rate', 0.5)
        self.csv_path = config.get('csv_path', 'output/analytics.csv')
        self.bottleneck_threshold = config.get('bottleneck_threshold', 50.0)
        self.max_bottlenecks = config.get('max_bottlenecks', 5)
        self.heatmap_config = heatmap_config or {}
        self.passage_margin = passage_margin
        self.reset([])

    def reset(self, floors: List):
        """Drop all collected data and allocate a zeroed heatmap."""
        self.floors = list(floors)
        self.heatmap = Heatmap.from_config([f.id for f in self.floors], self.heatmap_config)

        # Time series data
        self.timestamps = []
        self.active_counts = []
        self.evacuated_counts = []
        self.assembled_counts = []
        self.avg_speeds = []

        # Individual results
        self.evacuation_times: Dict[str, float] = {}
        self.assembly_times: Dict[str, float] = {}
        self.exit_counts: Dict[Tuple[int, float, float], List[float]] = {}
        self.floor_changes = 0
        self.trajectories: Dict[str, List[Tuple[float, int, float, float]]] = {}

        # Door queues keyed by (floor id, door id)
        self.door_queues: Dict[Tuple[int, str], int] = {}
        self.door_peaks: Dict[Tuple[int, str], int] = {}
        self.door_totals: Dict[Tuple[int, str], int] = {}
        self.ticks = 0

        self.kpis = {}
        self.last_sample_time = float('-inf')

    def update(self, agents: List, current_time: float):
        """
        Update analytics after a tick whose agent positions are final.

        Args:
            agents: Agents after the tick
            current_time: Simulated time of the tick
        """
        self.heatmap.update(agents)
        self._update_door_queues(agents)
        self.ticks += 1

        if self.enabled and current_time - self.last_sample_time >= self.sampling_rate:
            self._sample_metrics(agents, current_time)
            self.last_sample_time = current_time

    def _update_door_queues(self, agents: List):
        positions_by_floor: Dict[int, List[np.ndarray]] = {}
        for agent in agents:
            if not agent.evacuated:
                positions_by_floor.setdefault(agent.floor, []).append(agent.position)

        for floor in self.floors:
            positions = positions_by_floor.get(floor.id, [])
            for door in floor.doors:
                radius = door.passage_radius(self.passage_margin)
                queue = sum(1 for p in positions
                            if np.hypot(p[0] - door.x, p[1] - door.y) < radius)
                key = (floor.id, door.id)
                self.door_queues[key] = queue
                self.door_peaks[key] = max(self.door_peaks.get(key, 0), queue)
                self.door_totals[key] = self.door_totals.get(key, 0) + queue

    def _sample_metrics(self, agents: List, current_time: float):
        """Sample current metrics."""
        active = [a for a in agents if not a.evacuated]

        self.timestamps.append(current_time)
        self.active_counts.append(len(active))
        self.evacuated_counts.append(sum(1 for a in agents if a.evacuated))
        self.assembled_counts.append(sum(1 for a in agents if a.reached_assembly))
        if active:
            self.avg_speeds.append(float(np.mean([np.linalg.norm(a.velocity) for a in active])))
        else:
            self.avg_speeds.append(0.0)

        for agent in agents:
            track = self.trajectories.setdefault(agent.id, [])
            if agent.reached_assembly and track and track[-1][2:] == (agent.position[0], agent.position[1]):
                continue
            track.append((current_time, agent.floor, float(agent.position[0]), float(agent.position[1])))

    def record_event(self, event: dict):
        """Record a motion event (evacuation, floor change, assembly)."""
        kind = event['type']
        if kind == 'evacuated':
            self.evacuation_times[event['agent']] = event['time']
            marker = event['marker']
            self.exit_counts.setdefault((marker.floor, marker.x, marker.y), []).append(event['time'])
        elif kind == 'assembled':
            self.assembly_times[event['agent']] = event['time']
        elif kind == 'floor_change':
            self.floor_changes += 1

    def detect_bottlenecks(self) -> List[Bottleneck]:
        return self.heatmap.bottlenecks(self.bottleneck_threshold, self.max_bottlenecks)

    def exit_statistics(self) -> List[ExitStatistic]:
        """Usage of each exit marker, in floor order."""
        stats = []
        for floor in self.floors:
            for marker in floor.exit_markers:
                times = self.exit_counts.get((marker.floor, marker.x, marker.y), [])
                stats.append(ExitStatistic(
                    floor=marker.floor,
                    x=marker.x,
                    y=marker.y,
                    count=len(times),
                    mean_time=float(np.mean(times)) if times else None
                ))
        return stats

    def door_statistics(self) -> List[DoorStatistic]:
        stats = []
        for floor in self.floors:
            for door in floor.doors:
                key = (floor.id, door.id)
                total = self.door_totals.get(key, 0)
                stats.append(DoorStatistic(
                    door_id=door.id,
                    floor=floor.id,
                    peak_queue=self.door_peaks.get(key, 0),
                    mean_queue=total / self.ticks if self.ticks else 0.0
                ))
        return stats

    def compute_kpis(self, total_agents: int, total_time: float) -> dict:
        """
        Compute Key Performance Indicators.

        Args:
            total_agents: Total number of agents
            total_time: Total simulated time
        """
        evacuated = len(self.evacuation_times)
        self.kpis = {
            'total_agents': total_agents,
            'total_evacuated': evacuated,
            'total_assembled': len(self.assembly_times),
            'evacuation_rate': evacuated / total_agents if total_agents > 0 else 0.0,
            'floor_changes': self.floor_changes,
            'simulation_time': total_time
        }

        if self.evacuation_times:
            sorted_times = sorted(self.evacuation_times.values())
            n = len(sorted_times)
            self.kpis['T50'] = sorted_times[int(n * 0.5)] if n > 1 else sorted_times[0]
            self.kpis['T90'] = sorted_times[min(int(n * 0.9), n - 1)]
            self.kpis['T95'] = sorted_times[min(int(n * 0.95), n - 1)]
            self.kpis['mean_evacuation_time'] = float(np.mean(sorted_times))
            self.kpis['max_evacuation_time'] = max(sorted_times)
        else:
            self.kpis['T50'] = None
            self.kpis['T90'] = None
            self.kpis['T95'] = None
            self.kpis['mean_evacuation_time'] = None
            self.kpis['max_evacuation_time'] = None

        return self.kpis

    def build_result(self, agents: List, evacuation_time: float, completed: bool,
                     result_id: Optional[str] = None) -> SimulationResult:
        """Assemble the immutable result of a finished run."""
        now = datetime.now(timezone.utc)
        kpis = self.compute_kpis(len(agents), evacuation_time)
        return SimulationResult(
            id=result_id or f"sim-{int(now.timestamp() * 1000)}",
            timestamp=now.isoformat(),
            evacuation_time=evacuation_time,
            bottlenecks=tuple(self.detect_bottlenecks()),
            exit_stats=tuple(self.exit_statistics()),
            heatmap=self.heatmap.snapshot(),
            people_count=len(agents),
            floor_count=len(self.floors),
            completed=completed,
            evacuated_count=sum(1 for a in agents if a.evacuated),
            assembled_count=sum(1 for a in agents if a.reached_assembly),
            floor_ids=self.heatmap.floor_ids,
            door_stats=tuple(self.door_statistics()),
            kpis=MappingProxyType(dict(kpis))
        )

    def export_to_csv(self, csv_path: Optional[str] = None) -> Optional[Path]:
        """Export time series data to CSV."""
        if not self.timestamps:
            return None

        path = Path(csv_path or self.csv_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['Time', 'Active_Agents', 'Evacuated', 'Assembled', 'Avg_Speed'])
            for i in range(len(self.timestamps)):
                writer.writerow([
                    f"{self.timestamps[i]:.2f}",
                    self.active_counts[i],
                    self.evacuated_counts[i],
                    self.assembled_counts[i],
                    f"{self.avg_speeds[i]:.3f}"
                ])
        return path

    def generate_summary_report(self, result: SimulationResult) -> str:
        """
        Generate text summary of a simulation result.

        Returns:
            Formatted summary string
        """
        report = []
        report.append("=" * 60)
        report.append("EVACUATION SIMULATION SUMMARY REPORT")
        report.append("=" * 60)
        report.append("")

        report.append("OVERALL STATISTICS:")
        report.append(f"  Status: {'completed' if result.completed else 'incomplete (stalled)'}")
        report.append(f"  People: {result.people_count} on {result.floor_count} floor(s)")
        report.append(f"  Evacuated: {result.evacuated_count}")
        if result.assembled_count:
            report.append(f"  Reached assembly point: {result.assembled_count}")
        report.append(f"  Evacuation Time: {result.evacuation_time:.1f}s")
        report.append("")

        kpis = result.kpis
        if kpis.get('T50') is not None:
            report.append("EVACUATION TIME PERCENTILES:")
            report.append(f"  T50: {kpis['T50']:.1f}s")
            report.append(f"  T90: {kpis['T90']:.1f}s")
            report.append(f"  T95: {kpis['T95']:.1f}s")
            report.append(f"  Mean Evacuation Time: {kpis['mean_evacuation_time']:.1f}s")
            report.append("")

        if result.exit_stats:
            report.append("EXITS:")
            for stat in result.exit_stats:
                mean = f"{stat.mean_time:.1f}s" if stat.mean_time is not None else "-"
                report.append(f"  Floor {stat.floor} ({stat.x:.0f}, {stat.y:.0f}): "
                              f"{stat.count} people, mean time {mean}")
            report.append("")

        if result.bottlenecks:
            report.append("BOTTLENECKS:")
            for i, bn in enumerate(result.bottlenecks):
                report.append(f"  {i + 1}. Floor {bn.floor} ({bn.x:.0f}, {bn.y:.0f}), "
                              f"density {bn.density:.1f}")
            report.append("")

        report.append("=" * 60)
        return "\n".join(report)


def result_to_dict(result: SimulationResult) -> dict:
    """JSON-ready dict of a simulation result, in the editor's key style."""
    return result.to_dict()
