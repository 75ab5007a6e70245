"""
Planner Configuration

Loads settings from config/config.yaml and the environment.
"""

import logging
import os
from datetime import date
from typing import Optional

import yaml

from .errors import ConfigurationError
from .models import (
    DEFAULT_CAPACITY_WEEKS,
    DEFAULT_SPRINT_ANCHOR,
    DEFAULT_SPRINT_LENGTH_WEEKS,
    DEFAULT_TEAM_NAME,
    Preferences,
)


DEFAULT_CONFIG_PATH = "config/config.yaml"
DEFAULT_WEEKS_IN_QUARTER = 13


class Config:
    """Load configuration from config.yaml and environment."""

    ENV_MAPPING = {
        "PLANNER_TEAM_NAME": ("planner", "team_name"),
        "PLANNER_SPRINT_ANCHOR": ("planner", "sprint_anchor_date"),
        "PLANNER_SPRINT_LENGTH": ("planner", "sprint_length_weeks"),
        "PLANNER_DEFAULT_CAPACITY": ("planner", "default_capacity"),
        "PLANNER_WEEKS_IN_QUARTER": ("planner", "weeks_in_quarter"),
        "PLANNER_LOG_LEVEL": ("logging", "level"),
        "PLANNER_CORS_ORIGINS": ("api", "cors_origins"),
    }

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.getenv("PLANNER_CONFIG", DEFAULT_CONFIG_PATH)
        self.config = {}

        if os.path.exists(self.config_path):
            with open(self.config_path) as f:
                try:
                    self.config = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Cannot parse {self.config_path}: {e}") from e

        # Override with environment variables
        self._load_env()

    def _load_env(self):
        """Load configuration from environment variables."""
        for env_var, (section, key) in self.ENV_MAPPING.items():
            value = os.getenv(env_var)
            if value:
                self.config.setdefault(section, {})[key] = value

    def get(self, section: str, key: str, default=None):
        """Get configuration value."""
        return (self.config.get(section) or {}).get(key, default)

    def _get_int(self, section: str, key: str, default: int) -> int:
        value = self.get(section, key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{section}.{key} must be an integer, got {value!r}") from None

    def _get_float(self, section: str, key: str, default: float) -> float:
        value = self.get(section, key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{section}.{key} must be a number, got {value!r}") from None

    @property
    def team_name(self) -> str:
        return str(self.get("planner", "team_name", DEFAULT_TEAM_NAME))

    @property
    def sprint_anchor_date(self) -> date:
        value = self.get("planner", "sprint_anchor_date", DEFAULT_SPRINT_ANCHOR)
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value))
        except ValueError:
            raise ConfigurationError(f"planner.sprint_anchor_date is not an ISO date: {value!r}") from None

    @property
    def sprint_length_weeks(self) -> int:
        return self._get_int("planner", "sprint_length_weeks", DEFAULT_SPRINT_LENGTH_WEEKS)

    @property
    def default_capacity(self) -> float:
        return self._get_float("planner", "default_capacity", DEFAULT_CAPACITY_WEEKS)

    @property
    def weeks_in_quarter(self) -> int:
        return self._get_int("planner", "weeks_in_quarter", DEFAULT_WEEKS_IN_QUARTER)

    @property
    def log_level(self) -> str:
        return str(self.get("logging", "level", "INFO")).upper()

    @property
    def cors_origins(self) -> list[str]:
        origins = self.get("api", "cors_origins", ["*"])
        if isinstance(origins, str):
            return [o.strip() for o in origins.split(",") if o.strip()]
        return list(origins)

    def default_preferences(self) -> Preferences:
        """
        Preferences built from configuration, with an empty roster.

        Raises:
            ConfigurationError: a value is malformed or out of range
        """
        preferences = Preferences(
            team_name=self.team_name,
            sprint_anchor_date=self.sprint_anchor_date,
            sprint_length_weeks=self.sprint_length_weeks,
            default_capacity=self.default_capacity
        )
        preferences.validate()
        return preferences

    def configure_logging(self):
        logging.basicConfig(
            level=self.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )
