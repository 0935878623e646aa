"""Tests for settings loading and environment overrides."""
import pytest
from pydantic import ValidationError

from relay.config import AppSettings, get_config, load_config, reset_config


def test_defaults_when_file_missing(tmp_path):
    cfg = load_config(settings_path=tmp_path / "missing.yaml", environ={})
    assert cfg == AppSettings()
    assert cfg.server.port == 3001
    assert cfg.buffer.capacity == 50
    assert cfg.buffer.retention_ms == 3_600_000
    assert cfg.buffer.sync_window_ms == 600_000


def test_values_loaded_from_yaml(tmp_path):
    settings_file = tmp_path / "relay.settings.yaml"
    settings_file.write_text(
        "server:\n"
        "  port: 4000\n"
        "  allowed_origins: ['http://localhost:5173']\n"
        "logging:\n"
        "  level: DEBUG\n"
        "buffer:\n"
        "  capacity: 10\n"
        "  retention_ms: 1000\n"
        "  sync_window_ms: 500\n",
        encoding="utf-8",
    )

    cfg = load_config(settings_path=settings_file, environ={})
    assert cfg.server.port == 4000
    assert cfg.server.allowed_origins == ["http://localhost:5173"]
    assert cfg.logging.level == "debug"
    assert cfg.buffer.capacity == 10
    assert cfg.buffer.retention_ms == 1000
    assert cfg.buffer.sync_window_ms == 500


def test_port_env_overrides_file(tmp_path):
    settings_file = tmp_path / "relay.settings.yaml"
    settings_file.write_text("server:\n  port: 4000\n", encoding="utf-8")

    cfg = load_config(settings_path=settings_file, environ={"PORT": "8080"})
    assert cfg.server.port == 8080


def test_settings_path_from_env(tmp_path):
    settings_file = tmp_path / "custom.yaml"
    settings_file.write_text("buffer:\n  capacity: 7\n", encoding="utf-8")

    cfg = load_config(environ={"RELAY_SETTINGS": str(settings_file)})
    assert cfg.buffer.capacity == 7


def test_invalid_port_env_rejected(tmp_path):
    with pytest.raises(ValidationError):
        load_config(settings_path=tmp_path / "missing.yaml", environ={"PORT": "not-a-port"})


@pytest.mark.parametrize("body", [
    "buffer:\n  capacity: 0\n",
    "buffer:\n  retention_ms: 0\n",
    "buffer:\n  sync_window_ms: -1\n",
    "logging:\n  level: chatty\n",
])
def test_invalid_values_rejected(tmp_path, body):
    settings_file = tmp_path / "relay.settings.yaml"
    settings_file.write_text(body, encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(settings_path=settings_file, environ={})


def test_get_config_is_cached(monkeypatch, tmp_path):
    monkeypatch.setenv("RELAY_SETTINGS", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("PORT", "5050")
    reset_config()
    try:
        first = get_config()
        assert first.server.port == 5050
        assert get_config() is first
    finally:
        reset_config()
