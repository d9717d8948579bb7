"""
Configuration Manager for plant staging

Loads the staging configuration from config.yaml (falling back to built-in
defaults when no file exists), the optional template catalog file it points
to, and applies the logging settings.
"""

import os
import sys
import yaml
import logging
from typing import Any, Dict, Optional
from pathlib import Path
from plantstage.catalog import TemplateCatalog
from plantstage.config import LoggingConfig, StagingConfig

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PLANTSTAGE_CONFIG"


def resolve_config_path(cli_path: Optional[str] = None) -> Path:
    """
    Resolve config path with the following precedence:
    1) Explicit path argument
    2) ENV: PLANTSTAGE_CONFIG=/path/to/config.yaml
    3) Default: <project_root>/config.yaml  (parent of the 'plantstage' package dir)
    """
    if cli_path:
        return Path(cli_path).expanduser().resolve()

    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser().resolve()

    return Path(__file__).resolve().parents[1] / "config.yaml"


def configure_logging(log_config: LoggingConfig):
    """Configure logging based on config settings."""
    root_logger = logging.getLogger()
    log_level = getattr(logging, log_config.level.upper())
    root_logger.setLevel(log_level)

    # Configure console handler if not already configured
    if not root_logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(log_config.format))
        root_logger.addHandler(console_handler)

    logging.getLogger("plantstage").setLevel(log_level)

    if log_config.hierarchy_debug:
        logging.getLogger("plantstage.hierarchy").setLevel(logging.DEBUG)


class ConfigurationManager:
    """Loads staging configuration and the template catalog from YAML."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = resolve_config_path(config_path)
        self._config_cache: Optional[StagingConfig] = None

    def load_config(self) -> StagingConfig:
        """Load configuration from config.yaml, or defaults when the file is absent."""
        if self._config_cache is not None:
            return self._config_cache

        if self.config_path.exists():
            log.info(f"Loading configuration from {self.config_path}")
            config = self._load_from_file()
        else:
            log.info(f"No configuration file at {self.config_path}, using defaults")
            config = StagingConfig()

        self._config_cache = config
        return config

    def reload(self) -> StagingConfig:
        self._config_cache = None
        return self.load_config()

    def _load_from_file(self) -> StagingConfig:
        """Load configuration from config.yaml file."""
        with open(self.config_path, 'r') as f:
            config_dict = yaml.safe_load(f)

        # An empty file parses to None
        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ValueError(f"Configuration file {self.config_path} must contain a mapping")

        return StagingConfig.model_validate(config_dict)

    def load_catalog(self, config: Optional[StagingConfig] = None) -> TemplateCatalog:
        """
        Load device templates from the catalog file named in the configuration.

        The file holds either a list of template records or a mapping with a
        ``templates`` list. Relative paths are resolved against the directory
        of the configuration file. Returns an empty catalog when no file is
        configured.
        """
        config = config or self.load_config()
        if not config.catalog_file:
            return TemplateCatalog()

        catalog_path = Path(config.catalog_file).expanduser()
        if not catalog_path.is_absolute():
            catalog_path = self.config_path.parent / catalog_path
        if not catalog_path.exists():
            raise FileNotFoundError(f"Template catalog file not found: {catalog_path}")

        with open(catalog_path, 'r') as f:
            data: Any = yaml.safe_load(f) or []

        if isinstance(data, dict):
            data = data.get('templates', [])
        log.info(f"Loading template catalog from {catalog_path}")
        return TemplateCatalog.from_records(data)

    def get_config_dict(self) -> Dict[str, Any]:
        """Current configuration as a plain dictionary."""
        return self.load_config().model_dump()
