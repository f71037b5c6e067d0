import os
import re
import yaml
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional
from dotenv import load_dotenv
import structlog
from pydantic import ValidationError

from periodicos.models.config import HarvesterSettings

logger = structlog.get_logger()

# Environment variable -> (section, key); section None means top level
ENV_OVERRIDES = {
    "ZYTE_API_KEY": ("proxy", "api_key"),
    "QUALIS_DB_PATH": (None, "qualis_db_path"),
    "OPENALEX_MAILTO": ("openalex", "mailto"),
}


UNRESOLVED_VAR = re.compile(r"^\$\{\w+\}$")


def _drop_unresolved(data: Dict[str, Any]) -> Dict[str, Any]:
    """Remove keys whose value is a ${VAR} reference with no value set"""
    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            cleaned[key] = _drop_unresolved(value)
        elif isinstance(value, str) and UNRESOLVED_VAR.match(value):
            logger.debug("config_variable_unset", key=key, reference=value)
        else:
            cleaned[key] = value
    return cleaned


class ConfigValidationError(Exception):
    """Configuration validation failed"""

    pass


class ConfigManager:
    """Loads harvester settings from YAML, .env and the environment"""

    def __init__(self, config_path: Optional[str] = "config/harvester.yaml"):
        self.config_path = Path(config_path) if config_path else None
        self.env_loaded = False
        self._settings: Optional[HarvesterSettings] = None

    def load_settings(self) -> HarvesterSettings:
        """Load and validate settings

        The YAML file is optional; when the path does not exist, defaults
        plus environment overrides are used. Callers that require the file
        (the CLI with an explicit --config) check for it before loading.
        """
        if self._settings:
            return self._settings

        # 1. Load environment
        if not self.env_loaded:  # pragma: no cover
            load_dotenv()
            self.env_loaded = True

        # 2. Read YAML if present
        config_data: Dict[str, Any] = {}
        if self.config_path is not None and self.config_path.exists():
            config_data = self._read_yaml(self.config_path)
        elif self.config_path is not None:
            logger.debug("config_file_absent", path=str(self.config_path))

        # 3. Environment overrides
        self._apply_env_overrides(config_data)

        # 4. Validate with Pydantic
        try:
            self._settings = HarvesterSettings(**config_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            path=str(self.config_path) if self.config_path else None,
            proxy_enabled=self._settings.proxy.enabled,
        )
        return self._settings

    def _read_yaml(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                raw_content = f.read()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        try:
            # safe_substitute leaves unknown ${VAR} references untouched
            template = Template(raw_content)
            substituted_content = template.safe_substitute(os.environ)
            config_data = yaml.safe_load(substituted_content)
        except yaml.YAMLError as e:
            raise ConfigValidationError(
                f"Failed to parse YAML or substitute variables: {e}"
            )

        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")
        return _drop_unresolved(config_data)

    @staticmethod
    def _apply_env_overrides(config_data: Dict[str, Any]) -> None:
        for env_var, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if not value:
                continue
            if section is None:
                config_data[key] = value
            else:
                target = config_data.get(section)
                if not isinstance(target, dict):
                    target = {}
                    config_data[section] = target
                target[key] = value
