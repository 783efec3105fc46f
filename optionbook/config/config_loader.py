"""
Configuration Loader for Portfolio Definitions

Loads portfolio configurations from YAML and JSON files,
validates them, and converts them to PortfolioConfig objects.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union
import logging

import yaml

from optionbook.config.config_schema import (
    Broker,
    ConfigValidationError,
    ConfigValidator,
    PortfolioConfig,
    PortfolioSettings,
)
from optionbook.core.market import MarketSnapshot
from optionbook.core.structure import Structure

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and parses portfolio configuration files."""

    @classmethod
    def load(cls, path: Union[str, Path]) -> PortfolioConfig:
        """
        Load configuration from file.

        Args:
            path: Path to YAML or JSON configuration file

        Returns:
            Parsed and validated PortfolioConfig

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigValidationError: If configuration is invalid
            ValueError: If file format is unsupported
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        raw_data = cls._load_file(path)
        config = cls._parse_config(raw_data)

        errors = ConfigValidator.validate(config)
        if errors:
            raise ConfigValidationError(
                f"Configuration validation failed: {path}", errors=errors
            )

        logger.info(
            f"Loaded portfolio '{config.name}' with {len(config.structures)} structures from {path}"
        )
        return config

    @classmethod
    def load_from_string(cls, content: str, format: str = "yaml") -> PortfolioConfig:
        """
        Load configuration from string content.

        Args:
            content: YAML or JSON string
            format: "yaml" or "json"

        Returns:
            Parsed and validated PortfolioConfig
        """
        if format.lower() == "yaml":
            raw_data = yaml.safe_load(content)
        elif format.lower() == "json":
            raw_data = json.loads(content)
        else:
            raise ValueError(f"Unsupported format: {format}")

        config = cls._parse_config(raw_data)

        errors = ConfigValidator.validate(config)
        if errors:
            raise ConfigValidationError(
                "Configuration validation failed", errors=errors
            )

        return config

    @classmethod
    def _load_file(cls, path: Path) -> Dict[str, Any]:
        """Load raw data from file."""
        suffix = path.suffix.lower()

        with open(path, "r") as f:
            if suffix in (".yaml", ".yml"):
                return yaml.safe_load(f)
            elif suffix == ".json":
                return json.load(f)
            else:
                raise ValueError(f"Unsupported file format: {suffix}")

    @classmethod
    def _parse_config(cls, data: Dict[str, Any]) -> PortfolioConfig:
        """Parse raw dictionary into PortfolioConfig."""
        if not isinstance(data, dict):
            raise ConfigValidationError(
                "Configuration root must be a mapping",
                errors=[f"Expected a mapping, got {type(data).__name__}"],
            )

        settings = PortfolioSettings()
        if "settings" in data:
            settings = cls._parse_settings(data["settings"] or {})

        # Collect record errors across all structures
        structures = []
        errors = []
        for index, structure_data in enumerate(data.get("structures") or []):
            try:
                structures.append(Structure.from_dict(structure_data))
            except (KeyError, TypeError, ValueError) as e:
                errors.append(f"Structure [{index}]: {e}")

        market = None
        if data.get("market"):
            try:
                market = MarketSnapshot.from_dict(data["market"])
            except (KeyError, TypeError, ValueError) as e:
                errors.append(f"Market: {e}")

        if errors:
            raise ConfigValidationError("Configuration parsing failed", errors=errors)

        return PortfolioConfig(
            name=data.get("name", "Portfolio"),
            settings=settings,
            structures=structures,
            market=market,
        )

    @classmethod
    def _parse_settings(cls, data: Dict[str, Any]) -> PortfolioSettings:
        """Parse portfolio settings."""
        broker = data.get("broker", Broker.AVA_OPTIONS.value)

        # Handle string enum conversion
        if isinstance(broker, str):
            try:
                broker = Broker(broker)
            except ValueError as e:
                raise ConfigValidationError(
                    "Invalid settings", errors=[f"Unknown broker '{broker}'"]
                ) from e

        numbers = {
            "initial_capital": (float, 10000.0),
            "default_multiplier": (int, 5),
            "default_opening_commission": (float, 0.0),
            "default_closing_commission": (float, 0.0),
        }
        values: Dict[str, Any] = {}
        errors: List[str] = []
        for key, (convert, default) in numbers.items():
            raw = data.get(key, default)
            try:
                values[key] = convert(raw)
            except (TypeError, ValueError):
                errors.append(f"{key} must be a number, got {raw!r}")

        if errors:
            raise ConfigValidationError("Invalid settings", errors=errors)

        return PortfolioSettings(broker=broker, **values)


def load_config(path: Union[str, Path]) -> PortfolioConfig:
    """
    Convenience function to load a configuration file.

    Args:
        path: Path to YAML or JSON config file

    Returns:
        Validated PortfolioConfig
    """
    return ConfigLoader.load(path)


def load_config_string(content: str, format: str = "yaml") -> PortfolioConfig:
    """
    Convenience function to load configuration from string.

    Args:
        content: YAML or JSON string
        format: "yaml" or "json"

    Returns:
        Validated PortfolioConfig
    """
    return ConfigLoader.load_from_string(content, format)


def dump_config(config: PortfolioConfig, format: str = "yaml") -> str:
    """
    Serialize a PortfolioConfig to a YAML or JSON string.

    The output loads back through load_config_string.
    """
    data = config.to_dict()
    if format.lower() == "yaml":
        return yaml.safe_dump(data, sort_keys=False)
    elif format.lower() == "json":
        return json.dumps(data, indent=2)
    raise ValueError(f"Unsupported format: {format}")
