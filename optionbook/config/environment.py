"""
Environment Management for the Portfolio Engine

Manages the runtime environments (development, test, production) with
environment-specific settings and logging configuration.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import yaml

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Available environments."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


@dataclass
class EnvironmentSettings:
    """Settings specific to an environment."""

    name: Environment

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Additional settings
    extra: Dict[str, Any] = field(default_factory=dict)


# Default settings for each environment
DEFAULT_SETTINGS: Dict[Environment, Dict[str, Any]] = {
    Environment.DEVELOPMENT: {
        "log_level": "DEBUG",
    },
    Environment.TEST: {
        "log_level": "DEBUG",
    },
    Environment.PRODUCTION: {
        "log_level": "WARNING",
    },
}


class EnvironmentManager:
    """Manages environment configuration and settings."""

    # Environment variables
    ENV_VAR = "OPTIONBOOK_ENV"
    CONFIG_DIR_VAR = "OPTIONBOOK_CONFIG_DIR"

    # Settings file search paths, after OPTIONBOOK_CONFIG_DIR
    CONFIG_PATHS: List[Path] = [
        Path.cwd() / "config",
        Path.cwd() / ".config",
        Path.home() / ".optionbook",
    ]

    _current_env: Optional[Environment] = None
    _settings: Optional[EnvironmentSettings] = None

    @classmethod
    def get_environment(cls) -> Environment:
        """
        Get the current environment.

        Priority:
        1. Explicitly set via set_environment()
        2. OPTIONBOOK_ENV environment variable
        3. Default to DEVELOPMENT
        """
        if cls._current_env is not None:
            return cls._current_env

        env_str = os.environ.get(cls.ENV_VAR, "development").lower()

        try:
            return Environment(env_str)
        except ValueError:
            logger.warning(
                f"Unknown environment '{env_str}', defaulting to development"
            )
            return Environment.DEVELOPMENT

    @classmethod
    def set_environment(cls, env: Environment) -> None:
        """
        Set the current environment.

        Args:
            env: Environment to use
        """
        cls._current_env = env
        cls._settings = None  # Reset cached settings
        logger.info(f"Environment set to: {env.value}")

    @classmethod
    def get_settings(cls) -> EnvironmentSettings:
        """
        Get settings for the current environment.

        Loads from config file if available, otherwise uses defaults.
        """
        if cls._settings is not None:
            return cls._settings

        env = cls.get_environment()

        config_data = cls._load_config_file(env)

        # Merge with defaults
        defaults = DEFAULT_SETTINGS.get(env, {})
        merged = {**defaults, **(config_data or {})}

        cls._settings = EnvironmentSettings(
            name=env,
            log_level=merged.get("log_level", "INFO"),
            log_file=merged.get("log_file"),
            extra=merged.get("extra", {}),
        )

        return cls._settings

    @classmethod
    def _search_paths(cls) -> List[Path]:
        paths = list(cls.CONFIG_PATHS)
        config_dir = os.environ.get(cls.CONFIG_DIR_VAR)
        if config_dir:
            paths.insert(0, Path(config_dir).expanduser())
        return paths

    @classmethod
    def _find_settings_file(cls, env: Environment) -> Optional[Path]:
        """First existing settings file, environment-specific names first."""
        names = [f"{env.value}.yaml", f"{env.value}.yml", "optionbook.yaml", "optionbook.yml"]
        for base_path in cls._search_paths():
            for name in names:
                candidate = base_path / name
                if candidate.is_file():
                    return candidate
        return None

    @classmethod
    def _load_config_file(cls, env: Environment) -> Optional[Dict[str, Any]]:
        """
        Load environment settings from YAML.

        A shared optionbook.yaml may hold one section per environment;
        the section for the current environment wins when present.
        """
        config_path = cls._find_settings_file(env)
        if config_path is None:
            return None

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load {config_path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring {config_path}: expected a mapping")
            return None

        logger.debug(f"Loaded environment settings from {config_path}")
        section = data.get(env.value)
        return section if isinstance(section, dict) else data

    @classmethod
    def reset(cls) -> None:
        """Reset environment manager state."""
        cls._current_env = None
        cls._settings = None

    @classmethod
    def is_development(cls) -> bool:
        return cls.get_environment() == Environment.DEVELOPMENT

    @classmethod
    def is_production(cls) -> bool:
        return cls.get_environment() == Environment.PRODUCTION

    @classmethod
    def is_test(cls) -> bool:
        return cls.get_environment() == Environment.TEST


def get_environment() -> Environment:
    """Get current environment."""
    return EnvironmentManager.get_environment()


def get_settings() -> EnvironmentSettings:
    """Get current environment settings."""
    return EnvironmentManager.get_settings()


def set_environment(env: Environment) -> None:
    """Set current environment."""
    EnvironmentManager.set_environment(env)


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the optionbook package logger from the environment settings.

    Args:
        level: Log level name overriding the environment's log_level

    Returns:
        The configured "optionbook" logger
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    package_logger = logging.getLogger("optionbook")
    package_logger.setLevel(log_level)

    formatter = logging.Formatter(LOG_FORMAT)

    # Reconfiguring replaces our own handlers instead of stacking them
    for handler in list(package_logger.handlers):
        if getattr(handler, "_optionbook_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        handler._optionbook_handler = True
        package_logger.addHandler(handler)

    package_logger.debug(
        f"Logging configured for {settings.name.value} environment at {level_name}"
    )
    return package_logger
