from __future__ import annotations

import json

import pytest

from parkfinder import config
from parkfinder.config import Settings, load_settings


def test_defaults_when_file_missing(tmp_path) -> None:
    settings = load_settings(str(tmp_path / "config.json"))
    assert settings == Settings()
    assert settings.use_mock is True
    assert settings.api_base == "http://localhost:4000/api/v1"


def test_config_file_uses_browser_keys(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"useMock": False, "apiBase": "http://parking.test/api/v1", "debounce_ms": 100}))

    settings = load_settings(str(path))
    assert settings.use_mock is False
    assert settings.api_base == "http://parking.test/api/v1"
    assert settings.debounce_ms == 100


def test_unreadable_config_file_keeps_defaults(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert load_settings(str(path)) == Settings()


def test_query_string_overrides_file(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"useMock": True}))

    settings = load_settings(str(path), "?mock=0&api=http://override.test/api/v1")
    assert settings.use_mock is False
    assert settings.api_base == "http://override.test/api/v1"

    assert load_settings(str(path), {"mock": "1"}).use_mock is True


def test_environment_overrides_file(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"apiBase": "http://file.test"}))
    monkeypatch.setenv("PARKFINDER_USE_MOCK", "false")
    monkeypatch.setenv("PARKFINDER_API_BASE", "http://env.test")

    settings = load_settings(str(path))
    assert settings.use_mock is False
    assert settings.api_base == "http://env.test"

    assert load_settings(str(path), "api=http://query.test").api_base == "http://query.test"


def test_no_import_time_settings_instance() -> None:
    assert not hasattr(config, "settings")
