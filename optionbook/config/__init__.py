"""
Configuration Package for the Portfolio Engine

Provides portfolio configuration files (YAML/JSON), their schema and
validation, and environment-aware logging setup.

Usage:
    from optionbook.config import load_config, configure_logging

    configure_logging()
    config = load_config("portfolio.yaml")
    print(config.settings.initial_capital, len(config.structures))
"""

from optionbook.config.config_schema import (
    # Enums
    Broker,
    # Config Classes
    PortfolioSettings,
    PortfolioConfig,
    # Validation
    ConfigValidator,
    ConfigValidationError,
)

from optionbook.config.config_loader import (
    ConfigLoader,
    load_config,
    load_config_string,
    dump_config,
)

from optionbook.config.environment import (
    Environment,
    EnvironmentSettings,
    EnvironmentManager,
    get_environment,
    get_settings,
    set_environment,
    configure_logging,
)

__all__ = [
    # Schema
    "Broker",
    "PortfolioSettings",
    "PortfolioConfig",
    "ConfigValidator",
    "ConfigValidationError",
    # Loader
    "ConfigLoader",
    "load_config",
    "load_config_string",
    "dump_config",
    # Environment
    "Environment",
    "EnvironmentSettings",
    "EnvironmentManager",
    "get_environment",
    "get_settings",
    "set_environment",
    "configure_logging",
]
