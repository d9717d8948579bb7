"""
Unit tests for ConfigurationManager
Tests YAML loading, path resolution, catalog loading and logging setup
"""

import logging

import pytest
import yaml
from pydantic import ValidationError

from plantstage.config import LoggingConfig, StagingConfig
from plantstage.config_manager import (
    CONFIG_ENV_VAR, ConfigurationManager, configure_logging, resolve_config_path,
)


class TestResolveConfigPath:
    """Test config path precedence"""

    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.yaml"))
        assert resolve_config_path(str(tmp_path / "cli.yaml")) == (tmp_path / "cli.yaml").resolve()

    def test_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.yaml"))
        assert resolve_config_path() == (tmp_path / "env.yaml").resolve()

    def test_default_next_to_package(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        path = resolve_config_path()
        assert path.name == "config.yaml"
        assert (path.parent / "plantstage").is_dir()


class TestConfigurationManager:
    """Test ConfigurationManager functionality"""

    @pytest.fixture
    def config_file(self, tmp_path):
        """Write a small configuration file"""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "logging": {"level": "DEBUG"},
            "editor": {"default_device_status": "OFFLINE"},
            "plant": {"timezone": "Europe/London"},
            "catalog_file": "templates.yaml",
        }))
        return path

    def test_load_from_file(self, config_file):
        """Test loading configuration from file"""
        manager = ConfigurationManager(str(config_file))
        config = manager.load_config()

        assert isinstance(config, StagingConfig)
        assert config.logging.level == "DEBUG"
        assert config.editor.default_device_status == "OFFLINE"
        assert config.plant.timezone == "Europe/London"

    def test_config_is_cached(self, config_file):
        manager = ConfigurationManager(str(config_file))
        first = manager.load_config()
        config_file.write_text("logging: {level: ERROR}\n")

        assert manager.load_config() is first
        assert manager.reload().logging.level == "ERROR"

    def test_missing_file_uses_defaults(self, tmp_path):
        manager = ConfigurationManager(str(tmp_path / "absent.yaml"))
        assert manager.load_config() == StagingConfig()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert ConfigurationManager(str(path)).load_config() == StagingConfig()

    def test_unknown_plant_timezone(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("plant: {timezone: Mars/Olympus}\n")
        with pytest.raises(ValidationError):
            ConfigurationManager(str(path)).load_config()

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            ConfigurationManager(str(path)).load_config()

    def test_load_catalog_relative_to_config(self, config_file):
        (config_file.parent / "templates.yaml").write_text(yaml.safe_dump({
            "templates": [
                {"id": "tpl-inv", "name": "Inverter", "shortform": "INV",
                 "tags": [{"id": "inv-ac-power", "displayName": "AC Power", "unit": "kW"}]},
            ]
        }))
        catalog = ConfigurationManager(str(config_file)).load_catalog()

        assert len(catalog) == 1
        assert catalog.get("tpl-inv").tags[0].display_name == "AC Power"

    def test_load_catalog_list_file(self, tmp_path):
        (tmp_path / "templates.yaml").write_text(yaml.safe_dump([
            {"id": "tpl-str", "name": "String", "shortform": "STR"},
        ]))
        (tmp_path / "config.yaml").write_text("catalog_file: templates.yaml\n")

        catalog = ConfigurationManager(str(tmp_path / "config.yaml")).load_catalog()
        assert "tpl-str" in catalog

    def test_missing_catalog_file(self, config_file):
        with pytest.raises(FileNotFoundError):
            ConfigurationManager(str(config_file)).load_catalog()

    def test_no_catalog_configured(self, tmp_path):
        catalog = ConfigurationManager(str(tmp_path / "absent.yaml")).load_catalog()
        assert len(catalog) == 0

    def test_get_config_dict(self, config_file):
        data = ConfigurationManager(str(config_file)).get_config_dict()
        assert data["plant"]["timezone"] == "Europe/London"


class TestConfigureLogging:
    """Test logging setup"""

    @pytest.fixture(autouse=True)
    def restore_levels(self):
        names = ["", "plantstage", "plantstage.hierarchy"]
        levels = {name: logging.getLogger(name).level for name in names}
        yield
        for name, level in levels.items():
            logging.getLogger(name).setLevel(level)

    def test_levels(self):
        configure_logging(LoggingConfig(level="warning"))

        assert logging.getLogger("plantstage").level == logging.WARNING
        assert logging.getLogger().level == logging.WARNING

    def test_hierarchy_debug(self):
        configure_logging(LoggingConfig(level="INFO", hierarchy_debug=True))

        assert logging.getLogger("plantstage").level == logging.INFO
        assert logging.getLogger("plantstage.hierarchy").level == logging.DEBUG
