"""Tests for config module."""

import json

from asha_autoconnect.config import LOG_LEVEL_ENV, OPTIONS_ENV, AppConfig


def test_defaults():
    config = AppConfig()
    assert config.log_level == "info"
    assert config.bt_adapter == "auto"
    assert config.short_backoff_seconds < config.long_backoff_seconds


def test_load_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    config = AppConfig.load(str(tmp_path / "missing.json"))
    assert config == AppConfig()


def test_load_from_file(tmp_path, monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    path = tmp_path / "options.json"
    path.write_text(json.dumps({
        "log_level": "debug",
        "bt_adapter": "hci1",
        "long_backoff_seconds": 120,
    }))
    config = AppConfig.load(str(path))
    assert config.log_level == "debug"
    assert config.bt_adapter == "hci1"
    assert config.long_backoff_seconds == 120
    assert config.short_backoff_seconds == 5


def test_load_path_from_env(tmp_path, monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    path = tmp_path / "options.json"
    path.write_text(json.dumps({"bt_adapter": "hci2"}))
    monkeypatch.setenv(OPTIONS_ENV, str(path))
    assert AppConfig.load().bt_adapter == "hci2"


def test_load_invalid_json_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    path = tmp_path / "options.json"
    path.write_text("{not json")
    assert AppConfig.load(str(path)) == AppConfig()


def test_env_log_level_override(tmp_path, monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "warning")
    config = AppConfig.load(str(tmp_path / "missing.json"))
    assert config.log_level == "warning"
