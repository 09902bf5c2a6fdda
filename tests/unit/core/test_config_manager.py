"""Tests for the config manager (load_config + save_section)."""

import json

import pytest
from pydantic import ValidationError

from cncsim.config.config_manager import load_config, save_section
from cncsim.core.models.config import SimConfig


class TestLoadConfig:
    def test_load_default_config(self):
        """The shipped sim_config.json should load without errors."""
        cfg = load_config()
        assert isinstance(cfg, SimConfig)
        assert cfg.leds.count_y == 700

    def test_load_custom_config(self, tmp_path):
        config_file = tmp_path / "test_config.json"
        config_file.write_text(
            json.dumps(
                {
                    "table": {"rail_x": 800},
                    "system": {"webui_port": 9090, "log_level": "DEBUG"},
                }
            )
        )
        cfg = load_config(config_file)
        assert cfg.table.rail_x == 800
        assert cfg.system.webui_port == 9090
        assert cfg.system.log_level == "DEBUG"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.json")

    def test_invalid_values_raise(self, tmp_path):
        config_file = tmp_path / "cfg.json"
        config_file.write_text(json.dumps({"watchdog": {"timeout_seconds": 0}}))
        with pytest.raises(ValidationError):
            load_config(config_file)

    def test_config_file_env_var(self, tmp_path, monkeypatch):
        config_file = tmp_path / "elsewhere.json"
        config_file.write_text(json.dumps({"system": {"webui_port": 7000}}))
        monkeypatch.setenv("CNCSIM_CONFIG_FILE", str(config_file))
        assert load_config().system.webui_port == 7000

    def test_env_override_log_level(self, tmp_path, monkeypatch):
        config_file = tmp_path / "cfg.json"
        config_file.write_text(json.dumps({"system": {"log_level": "INFO"}}))
        monkeypatch.setenv("CNCSIM_LOG_LEVEL", "DEBUG")
        cfg = load_config(config_file)
        assert cfg.system.log_level == "DEBUG"

    def test_env_override_webui_port(self, tmp_path, monkeypatch):
        config_file = tmp_path / "cfg.json"
        config_file.write_text(json.dumps({}))
        monkeypatch.setenv("CNCSIM_WEBUI_PORT", "3000")
        cfg = load_config(config_file)
        assert cfg.system.webui_port == 3000

    @pytest.mark.parametrize("raw, expected", [("1", True), ("yes", True), ("0", False), ("off", False)])
    def test_env_override_watchdog_enabled(self, tmp_path, monkeypatch, raw, expected):
        config_file = tmp_path / "cfg.json"
        config_file.write_text(json.dumps({"watchdog": {"enabled": not expected}}))
        monkeypatch.setenv("CNCSIM_WATCHDOG_ENABLED", raw)
        assert load_config(config_file).watchdog.enabled is expected

    def test_env_override_watchdog_timeout(self, tmp_path, monkeypatch):
        config_file = tmp_path / "cfg.json"
        config_file.write_text(json.dumps({}))
        monkeypatch.setenv("CNCSIM_WATCHDOG_TIMEOUT", "15")
        assert load_config(config_file).watchdog.timeout_seconds == 15


class TestSaveSection:
    def test_save_merges_and_persists(self, tmp_path):
        cfg_file = tmp_path / "cfg.json"
        cfg_file.write_text(json.dumps({"leds": {"count_x": 10, "chase_enabled": True}}))

        updated = save_section("leds", {"chase_enabled": False}, cfg_file)

        assert updated.leds.chase_enabled is False
        assert updated.leds.count_x == 10
        reloaded = load_config(cfg_file)
        assert reloaded.leds.chase_enabled is False
        assert reloaded.leds.count_x == 10

    def test_unknown_section(self, tmp_path):
        cfg_file = tmp_path / "cfg.json"
        cfg_file.write_text(json.dumps({}))
        with pytest.raises(KeyError):
            save_section("hardware", {"x": 1}, cfg_file)

    def test_invalid_values_not_written(self, tmp_path):
        cfg_file = tmp_path / "cfg.json"
        original = json.dumps({"watchdog": {"timeout_seconds": 30}})
        cfg_file.write_text(original)
        with pytest.raises(ValidationError):
            save_section("watchdog", {"timeout_seconds": 0}, cfg_file)
        assert cfg_file.read_text() == original

    def test_no_temp_files_left_behind(self, tmp_path):
        cfg_file = tmp_path / "cfg.json"
        cfg_file.write_text(json.dumps({}))
        save_section("table", {"rail_z": 150}, cfg_file)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["cfg.json"]
