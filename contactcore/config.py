"""Configuration management for contactcore."""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError as ModelValidationError

from .error_handling import ConfigurationError
from .models import Config

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages configuration loading and validation."""

    DEFAULT_CONFIG = {
        "codec": {
            "vcard_version": "3.0",
            "max_photo_size": 100000,
            "default_charset": "utf-8",
            "fallback_charset": "latin-1",
        },
        "dedupe": {
            "fuzzy_threshold": 80,
            "threshold_min": 50,
            "threshold_max": 100,
            "weights": {"phone": 50, "email": 30, "name": 20},
        },
        "imports": {
            "max_upload_size": 10 * 1024 * 1024,
            "allowed_extensions": ["vcf"],
        },
        "manager": {
            "history_limit": 100,
        },
        "logging": {
            "format": "text",
            "level": "INFO",
            "log_file": None,
        },
    }

    # Environment variable -> (section, key, parser)
    ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
        "CONTACTCORE_LOG_LEVEL": ("logging", "level", str.upper),
        "CONTACTCORE_LOG_FORMAT": ("logging", "format", str.lower),
        "CONTACTCORE_LOG_FILE": ("logging", "log_file", str),
        "CONTACTCORE_FUZZY_THRESHOLD": ("dedupe", "fuzzy_threshold", int),
        "CONTACTCORE_MAX_PHOTO_SIZE": ("codec", "max_photo_size", int),
        "CONTACTCORE_MAX_UPLOAD_SIZE": ("imports", "max_upload_size", int),
        "CONTACTCORE_HISTORY_LIMIT": ("manager", "history_limit", int),
    }

    def __init__(self, config_path: Optional[str] = None, use_dotenv: bool = True):
        """Initialize config manager.

        Args:
            config_path: Path to a JSON config file. If None, uses defaults + env vars
            use_dotenv: Load a ``.env`` file from the working directory first
        """
        self.config_path = Path(config_path) if config_path else None
        self.use_dotenv = use_dotenv
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from defaults, file and environment.

        Raises:
            ConfigurationError: If the file cannot be read or a value is invalid
        """
        if self._config:
            return self._config

        if self.use_dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path:
            if not self.config_path.exists():
                raise ConfigurationError(
                    f"Config file not found: {self.config_path}",
                    config_key="config_path",
                )
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(
                    f"Config file is not valid JSON: {e}",
                    config_key="config_path",
                    context={"path": str(self.config_path)},
                ) from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(
                    "Config file must contain a JSON object",
                    config_key="config_path",
                )
            config_dict = self._deep_merge(config_dict, file_config)

        config_dict = self._apply_env_overrides(config_dict)

        try:
            self._config = Config(**config_dict)
        except ModelValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(
                f"Invalid configuration value for '{key}': {first['msg']}",
                config_key=key,
            ) from e

        self._check_ranges(self._config)
        logger.debug("Configuration loaded", extra={"config_file": str(self.config_path or "")})
        return self._config

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        for env_key, (section, key, parse) in self.ENV_OVERRIDES.items():
            raw = os.getenv(env_key)
            if raw is None or raw == "":
                continue
            try:
                value = parse(raw.strip())
            except ValueError as e:
                raise ConfigurationError(
                    f"{env_key} has an invalid value: {raw!r}",
                    config_key=f"{section}.{key}",
                ) from e
            config.setdefault(section, {})[key] = value

        return config

    @staticmethod
    def _check_ranges(config: Config) -> None:
        dedupe = config.dedupe
        if dedupe.threshold_min > dedupe.threshold_max:
            raise ConfigurationError(
                "dedupe.threshold_min must not exceed dedupe.threshold_max",
                config_key="dedupe.threshold_min",
            )
        if config.logging.format not in ("json", "text"):
            raise ConfigurationError(
                f"Unknown log format '{config.logging.format}' (expected json or text)",
                config_key="logging.format",
            )

    def save_template(self, path: str) -> Path:
        """Save a configuration template file with every default filled in."""
        target = Path(path)
        with open(target, "w", encoding="utf-8") as f:
            json.dump(self.DEFAULT_CONFIG, f, indent=2)

        logger.info(f"Configuration template saved to: {target}")
        return target

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            self._config = self.load()
        return self._config
