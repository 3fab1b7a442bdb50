import json

import pytest

from polyhue.config_manager import ConfigManager
from polyhue.models import QuantizationConfig


@pytest.fixture
def manager(tmp_path):
    return ConfigManager(tmp_path / "config.json")


def test_missing_file_gives_defaults(manager):
    assert manager.load() == QuantizationConfig()


def test_save_then_load(manager, capsys):
    config = QuantizationConfig(max_colors=6, algorithm="median-cut", merge_threshold=0)

    assert manager.save(config) == (True, None)
    loaded = manager.load()

    assert loaded == config
    assert "Loaded configuration" in capsys.readouterr().out


def test_partial_file_keeps_other_defaults(manager):
    manager.config_path.write_text(json.dumps({"match_method": "hue-match", "unknown": 1}))

    loaded = manager.load()

    assert loaded.match_method == "hue-match"
    assert loaded.max_colors == QuantizationConfig().max_colors
    assert not hasattr(loaded, "unknown")


def test_corrupt_file_warns_and_resets(manager, capsys):
    manager.config_path.write_text("{not json")

    loaded = manager.load()

    assert loaded == QuantizationConfig()
    assert "Warning: Could not load config file" in capsys.readouterr().out


def test_save_reports_failure(tmp_path):
    manager = ConfigManager(tmp_path / "missing" / "config.json")
    ok, error = manager.save(QuantizationConfig())
    assert not ok
    assert error


def test_unusable_values_fall_back_to_defaults(manager, capsys):
    manager.config_path.write_text(
        json.dumps({"algorithm": "octree", "match_method": "rgb-distance", "max_colors": 0})
    )

    loaded = manager.load()

    assert loaded.algorithm == "kmeans"
    assert loaded.match_method == "rgb-distance"
    assert loaded.max_colors == 4
    out = capsys.readouterr().out
    assert "Unknown algorithm 'octree'" in out
    assert "Invalid max_colors 0" in out


def test_non_object_file_is_rejected(manager, capsys):
    manager.config_path.write_text("[1, 2]")
    assert manager.load() == QuantizationConfig()
    assert "expected a JSON object" in capsys.readouterr().out


@pytest.mark.parametrize(
    "name, value",
    [
        ("request_timeout", "30"),
        ("request_timeout", 0),
        ("merge_threshold", "8"),
        ("merge_threshold", None),
        ("good_match_threshold", [10]),
        ("random_seed", "42"),
        ("random_seed", 1.5),
        ("auto_assign_filaments", "yes"),
    ],
)
def test_mistyped_values_fall_back_to_defaults(manager, capsys, name, value):
    manager.config_path.write_text(json.dumps({name: value}))

    loaded = manager.load()

    assert getattr(loaded, name) == getattr(QuantizationConfig(), name)
    assert f"Warning: Invalid {name}" in capsys.readouterr().out


def test_non_finite_timeout_is_rejected(manager):
    manager.config_path.write_text('{"request_timeout": Infinity}')
    assert manager.load().request_timeout == QuantizationConfig().request_timeout


def test_valid_numbers_are_kept(manager, capsys):
    manager.config_path.write_text(
        json.dumps({"request_timeout": 5, "merge_threshold": 0, "random_seed": 7})
    )

    loaded = manager.load()

    assert (loaded.request_timeout, loaded.merge_threshold, loaded.random_seed) == (5, 0, 7)
    assert "Warning" not in capsys.readouterr().out
