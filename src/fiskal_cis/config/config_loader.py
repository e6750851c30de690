"""
Configuration loader

Sources are merged in increasing priority: file, environment, then
programmatic values. ``None`` never overrides an earlier value.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from fiskal_cis.config.config_validator import ConfigValidator
from fiskal_cis.config.fiskal_config import (
    ENV_VAR_MAPPING,
    ConfigDefaults,
    FiskalConfig,
    FiskalEnvironment,
)
from fiskal_cis.exceptions import ConfigError

# Path fields resolved against the config file's directory
RELATIVE_PATH_FIELDS = ("keystore_path", "ca_bundle", "audit_log_path")


class ConfigLoader:
    """Loads and merges configuration from files, environment and dicts"""

    def __init__(self) -> None:
        self._validator = ConfigValidator()

    def from_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load configuration from a JSON file

        Raises:
            ConfigError: If the file is missing or not valid JSON
        """
        file_path = Path(path).resolve()

        if not file_path.exists():
            raise ConfigError(
                f"Configuration file not found: {file_path}",
                code="CONFIG_FILE_NOT_FOUND"
            )

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in configuration file: {file_path}",
                code="CONFIG_PARSE_ERROR"
            ) from e

        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration file must contain a JSON object: {file_path}",
                code="CONFIG_PARSE_ERROR"
            )
        return self._resolve_relative_paths(config, file_path.parent)

    def from_environment(self) -> Dict[str, Any]:
        """Load configuration from FISKAL_* environment variables"""
        config: Dict[str, Any] = {}

        for env_var, config_key in ENV_VAR_MAPPING.items():
            value = os.environ.get(env_var)
            if value is not None and value != "":
                config[config_key] = self._parse_env_value(config_key, value)

        return config

    def from_dict(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return config.copy()

    def merge(self, *sources: Dict[str, Any]) -> Dict[str, Any]:
        """Merge sources; later ones override earlier ones"""
        merged: Dict[str, Any] = {}

        for source in sources:
            merged.update(self._filter_none(source))

        return merged

    def resolve(self, config: Dict[str, Any]) -> FiskalConfig:
        """
        Validate a merged dictionary and build the config object

        Raises:
            ValidationError: If the configuration is invalid
        """
        self._validator.validate_or_raise(config)
        return FiskalConfig(**config)

    def load(
        self,
        file: Optional[Union[str, Path]] = None,
        env: bool = True,
        config: Optional[Dict[str, Any]] = None,
    ) -> FiskalConfig:
        """
        Load, merge, and resolve configuration from multiple sources

        Args:
            file: Path to JSON configuration file (optional)
            env: Whether to read environment variables (default: True)
            config: Programmatic configuration dictionary (optional)
        """
        sources: List[Dict[str, Any]] = []

        if file is not None:
            sources.append(self.from_file(file))

        if env:
            sources.append(self.from_environment())

        if config is not None:
            sources.append(self.from_dict(config))

        return self.resolve(self.merge(*sources))

    def create_template(self, path: Union[str, Path]) -> None:
        """Write a configuration template file"""
        template = {
            "keystore_path": "./certs/fiskal.p12",
            "keystore_password": "",
            "environment": ConfigDefaults.ENVIRONMENT.value,
            "timeout": ConfigDefaults.TIMEOUT,
            "ca_bundle": None,
            "verify_tls": ConfigDefaults.VERIFY_TLS,
            "enable_audit_log": ConfigDefaults.ENABLE_AUDIT_LOG,
            "audit_log_path": "./logs/fiskal-audit.jsonl",
        }

        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(template, f, indent=2)

    def _parse_env_value(self, key: str, value: str) -> Any:
        if key in ("verify_tls", "enable_audit_log"):
            return value.lower() in ("true", "1", "yes")

        if key == "timeout":
            try:
                return int(value)
            except ValueError:
                return value

        if key == "environment":
            try:
                return FiskalEnvironment(value.lower())
            except ValueError:
                return value

        return value

    def _resolve_relative_paths(
        self, config: Dict[str, Any], base_path: Path
    ) -> Dict[str, Any]:
        processed = config.copy()

        for key in RELATIVE_PATH_FIELDS:
            value = processed.get(key)
            if isinstance(value, str) and value:
                candidate = Path(value)
                if not candidate.is_absolute():
                    processed[key] = str(base_path / candidate)

        return processed

    def _filter_none(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in config.items() if v is not None}
