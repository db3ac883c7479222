"""
Tests for configuration loading.
"""

import pytest
from evacsim.config import DEFAULT_CONFIG, default_config, load_config, merge_config


def test_merge_keeps_unrelated_keys():
    merged = merge_config(DEFAULT_CONFIG, {'motion': {'agent_repulsion': {'range': 40.0}}})
    assert merged['motion']['agent_repulsion']['range'] == 40.0
    assert merged['motion']['agent_repulsion']['strength'] == 50.0
    assert merged['motion']['damping'] == 0.8


def test_merge_does_not_touch_defaults():
    merged = merge_config(DEFAULT_CONFIG, {'simulation': {'speed': 3.0}})
    merged['heatmap']['rows'] = 1
    assert DEFAULT_CONFIG['simulation']['speed'] == 1.0
    assert DEFAULT_CONFIG['heatmap']['rows'] == 35


def test_default_config_is_a_copy():
    config = default_config()
    config['assembly']['enabled'] = True
    assert DEFAULT_CONFIG['assembly']['enabled'] is False


def test_load_config(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text("simulation:\n  speed: 2.5\nassembly:\n  enabled: true\n")
    config = load_config(str(path))
    assert config['simulation']['speed'] == 2.5
    assert config['simulation']['frame_step'] == 0.016
    assert config['assembly']['enabled'] is True


def test_empty_config_file_gives_defaults(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text("")
    assert load_config(str(path)) == DEFAULT_CONFIG


def test_config_must_be_mapping(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_repository_config_matches_defaults():
    from pathlib import Path
    config = load_config(str(Path(__file__).parent.parent / 'config.yaml'))
    assert config == DEFAULT_CONFIG
