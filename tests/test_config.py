from __future__ import annotations

from pathlib import Path

import pytest

from lingua_assess.config import load_settings
from lingua_assess.config.loader import OVERRIDES_ENV, merge_dicts


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(OVERRIDES_ENV, raising=False)
    settings = load_settings()
    assert settings.grading.score_precision == 2
    assert settings.proficiency.blend_weight == 0.3
    assert settings.paths.profiles_dir == Path("data/profiles")
    assert settings.logging.json_output is False


def test_yaml_file_and_env_overrides(tmp_path, monkeypatch):
    config = tmp_path / "config.yaml"
    config.write_text(
        "grading:\n  score_precision: 1\nlogging:\n  level: debug\n  json: true\n",
        encoding="utf-8",
    )
    monkeypatch.setenv(OVERRIDES_ENV, '{"proficiency": {"blend_weight": 0.5}}')
    settings = load_settings(config)
    assert settings.grading.score_precision == 1
    assert settings.logging.level == "DEBUG"
    assert settings.logging.json_output is True
    assert settings.proficiency.blend_weight == 0.5
    assert settings.proficiency.excellence_threshold == 90


def test_bad_overrides_are_reported(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(OVERRIDES_ENV, "{not json")
    with pytest.raises(ValueError):
        load_settings()
    monkeypatch.setenv(OVERRIDES_ENV, '{"proficiency": {"blend_weight": 2}}')
    with pytest.raises(ValueError):
        load_settings()


def test_explicit_path_must_exist(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "missing.yaml")


def test_merge_dicts_is_recursive():
    merged = merge_dicts({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"b": 3}})
    assert merged == {"a": {"b": 3, "c": 2}, "d": 1}
