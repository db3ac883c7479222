"""
Tests for the heatmap and analytics collector.
"""

import numpy as np
import pytest
from evacsim.agent import Agent
from evacsim.analytics import Heatmap, AnalyticsCollector, result_to_dict
from evacsim.config import default_config
from evacsim.floorplan import Door, ExitMarker, Floor, Person


def make_agent(x, y, floor=1, person_id='p'):
    return Agent(Person(person_id), np.array([x, y]), floor)


@pytest.fixture
def floor():
    return Floor(
        1,
        doors=[Door('main', 400, 350, width=40, orientation='vertical')],
        exits=[ExitMarker(300, 350, 1), ExitMarker(900, 100, 1)]
    )


@pytest.fixture
def collector(floor):
    config = default_config()
    analytics = AnalyticsCollector(config['analytics'], config['heatmap'])
    analytics.reset([floor])
    return analytics


def test_heatmap_shape():
    heatmap = Heatmap([1, 2, 3])
    assert heatmap.data.shape == (3, 35, 50)
    assert np.all(heatmap.data == 0)


def test_heatmap_decay_converges():
    heatmap = Heatmap([1])
    agent = make_agent(105, 105)
    for _ in range(300):
        heatmap.update([agent])
    # Geometric series 1 / (1 - 0.95)
    assert heatmap.data[0, 5, 5] == pytest.approx(20.0, abs=1e-3)
    assert heatmap.data.sum() == pytest.approx(heatmap.data[0, 5, 5])

    agent.evacuated = True
    for _ in range(300):
        heatmap.update([agent])
    assert heatmap.data[0, 5, 5] < 1e-4


def test_heatmap_cell_indexing():
    heatmap = Heatmap([1])
    assert heatmap.cell_of(0.0, 0.0) == (0, 0)
    assert heatmap.cell_of(999.9, 699.9) == (34, 49)
    assert heatmap.cell_of(1000.0, 100.0) is None
    assert heatmap.cell_of(100.0, 700.0) is None
    assert heatmap.cell_of(-0.1, 100.0) is None


def test_heatmap_ignores_out_of_range_agents_and_unknown_floors():
    heatmap = Heatmap([1, 2])
    agents = [
        make_agent(-5, 10, person_id='a'),
        make_agent(1000, 700, person_id='b'),
        make_agent(100, 100, floor=9, person_id='c'),
        make_agent(100, 100, floor=2, person_id='d')
    ]
    heatmap.update(agents)
    assert heatmap.data.sum() == 1.0
    assert heatmap.data[1, 5, 5] == 1.0
    assert heatmap.floor_grid(2)[5, 5] == 1.0
    assert heatmap.floor_grid(9) is None


def test_bottleneck_ranking():
    heatmap = Heatmap([1, 2])
    heatmap.data[0, 1, 2] = 60.0
    heatmap.data[0, 3, 4] = 80.0
    heatmap.data[0, 5, 5] = 40.0
    heatmap.data[1, 2, 2] = 60.0

    bottlenecks = heatmap.bottlenecks(threshold=50.0)
    assert [b.density for b in bottlenecks] == [80.0, 60.0, 60.0]
    assert (bottlenecks[0].x, bottlenecks[0].y, bottlenecks[0].floor) == (80.0, 60.0, 1)
    # Equal densities keep floor order
    assert [b.floor for b in bottlenecks[1:]] == [1, 2]

    assert len(heatmap.bottlenecks(threshold=50.0, limit=1)) == 1
    assert heatmap.bottlenecks(threshold=100.0) == []


def test_snapshot_is_read_only_copy():
    heatmap = Heatmap([1])
    snapshot = heatmap.snapshot()
    with pytest.raises(ValueError):
        snapshot[0, 0, 0] = 1.0
    heatmap.data[0, 0, 0] = 5.0
    assert snapshot[0, 0, 0] == 0.0


def test_door_queue_tracking(collector):
    crowd = [make_agent(400, 350, person_id='a'), make_agent(420, 360, person_id='b'),
             make_agent(700, 600, person_id='c')]
    collector.update(crowd, 0.016)
    assert collector.door_queues[(1, 'main')] == 2

    collector.update([make_agent(700, 600, person_id='c')], 0.032)
    assert collector.door_queues[(1, 'main')] == 0
    stats = collector.door_statistics()
    assert stats[0].peak_queue == 2
    assert stats[0].mean_queue == pytest.approx(1.0)


def test_time_series_sampling(collector):
    agents = [make_agent(100, 100)]
    for tick in range(1, 101):
        collector.update(agents, tick * 0.016)
    # First tick, then every 0.5 s
    assert len(collector.timestamps) == 4
    assert collector.active_counts == [1, 1, 1, 1]
    assert len(collector.trajectories['p']) == 4


def test_kpis_and_exit_statistics(collector, floor):
    exit_marker = floor.exits[0]
    for i, t in enumerate([1.0, 2.0, 3.0, 4.0]):
        collector.record_event({'type': 'evacuated', 'agent': f"p{i}", 'time': t, 'floor': 1,
                                'marker': exit_marker})

    kpis = collector.compute_kpis(total_agents=5, total_time=4.0)
    assert kpis['total_evacuated'] == 4
    assert kpis['evacuation_rate'] == pytest.approx(0.8)
    assert kpis['T50'] == 3.0
    assert kpis['max_evacuation_time'] == 4.0
    assert kpis['mean_evacuation_time'] == pytest.approx(2.5)

    stats = collector.exit_statistics()
    assert [s.count for s in stats] == [4, 0]
    assert stats[0].mean_time == pytest.approx(2.5)
    assert stats[1].mean_time is None


def test_build_result(collector):
    agents = [make_agent(100, 100, person_id='a'), make_agent(120, 100, person_id='b')]
    agents[0].mark_evacuated(2.0, None)
    collector.update(agents, 2.0)

    result = collector.build_result(agents, evacuation_time=2.0, completed=False)
    assert result.id.startswith('sim-')
    assert result.people_count == 2
    assert result.floor_count == 1
    assert result.evacuated_count == 1
    assert result.completed is False
    assert result.heatmap.shape == (1, 35, 50)
    with pytest.raises(ValueError):
        result.heatmap[0, 0, 0] = 1.0

    data = result_to_dict(result)
    assert data['evacuationTime'] == 2.0
    assert data['peopleCount'] == 2
    assert len(data['heatmapData'][0]) == 35
    assert data['doorStats'][0]['id'] == 'main'


def test_export_to_csv(collector, tmp_path):
    collector.update([make_agent(100, 100)], 0.016)
    path = collector.export_to_csv(str(tmp_path / 'series.csv'))
    lines = path.read_text().strip().splitlines()
    assert lines[0] == 'Time,Active_Agents,Evacuated,Assembled,Avg_Speed'
    assert len(lines) == 2


def test_export_without_samples_writes_nothing(collector, tmp_path):
    assert collector.export_to_csv(str(tmp_path / 'series.csv')) is None
