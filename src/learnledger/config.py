"""Configuration loading for learnledger."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_FILE = "learnledger.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid."""


@dataclass
class Settings:
    """Runtime settings.

    Time windows are expressed in days/hours so they can be tuned per deployment;
    the defaults match the platform's published policy.
    """

    db_path: str = "learnledger.db"
    currency: str = "INR"
    grace_period_days: int = 7
    unenroll_window_days: int = 7
    payment_expiry_hours: int = 24
    analytics_default_days: int = 30
    notification_url: str | None = None
    notification_timeout: float = 10.0
    organization_name: str = "Learning Dashboard"
    organization_contact: str = "support@learningdashboard.com"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create settings from a dictionary.

        Args:
            data: Mapping of setting name to value (e.g. parsed YAML).

        Returns:
            Parsed settings.

        Raises:
            ConfigError: If a key is unknown or a value has the wrong type.
        """
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

        values: dict[str, Any] = {}
        for name, value in data.items():
            values[name] = _coerce(name, value, cls.__dataclass_fields__[name].type)
        return cls(**values)


def _coerce(name: str, value: Any, type_name: Any) -> Any:
    if value is None:
        if "None" in str(type_name):
            return None
        raise ConfigError(f"Setting '{name}' cannot be empty")
    try:
        if type_name == "int":
            return int(value)
        if type_name == "float":
            return float(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for '{name}': {value!r}") from e


ENV_OVERRIDES = {
    "LEARNLEDGER_DB_PATH": "db_path",
    "LEARNLEDGER_CURRENCY": "currency",
    "LEARNLEDGER_NOTIFY_URL": "notification_url",
}


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from YAML and environment.

    Precedence (lowest to highest): defaults, YAML file, environment variables.

    Args:
        path: Config file path. Defaults to $LEARNLEDGER_CONFIG, then
              'learnledger.yaml' in the current directory if it exists.

    Returns:
        Loaded settings.

    Raises:
        ConfigError: If the file is unreadable or invalid.
    """
    if path is None:
        path = os.environ.get("LEARNLEDGER_CONFIG", DEFAULT_CONFIG_FILE)
    config_path = Path(path)

    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
        data.update(loaded or {})

    for env_name, setting in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if env_value:
            data[setting] = env_value

    return Settings.from_dict(data)
