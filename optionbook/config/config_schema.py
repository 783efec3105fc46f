"""
Configuration Schema for Portfolio Definitions

Defines the schema for YAML/JSON portfolio files: the portfolio settings
(initial capital, broker, default multiplier and commissions), the
structures held and an optional market snapshot, plus validation logic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

import numpy as np

from optionbook.core.market import MarketSnapshot
from optionbook.core.structure import Multiplier, Structure

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)


class Broker(str, Enum):
    """Supported brokers."""

    AVA_OPTIONS = "AvaOptions"
    INTERACTIVE_BROKERS = "Interactive Brokers"
    WEBANK = "Webank"
    BG_SAXO = "BGSaxo"


@dataclass
class PortfolioSettings:
    """Portfolio-wide settings."""

    initial_capital: float = 10000.0
    broker: Broker = Broker.AVA_OPTIONS
    default_multiplier: int = int(Multiplier.INDEX)
    default_opening_commission: float = 0.0  # Per contract
    default_closing_commission: float = 0.0  # Per contract

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial_capital": self.initial_capital,
            "broker": self.broker.value,
            "default_multiplier": self.default_multiplier,
            "default_opening_commission": self.default_opening_commission,
            "default_closing_commission": self.default_closing_commission,
        }


@dataclass
class PortfolioConfig:
    """Complete portfolio configuration."""

    name: str = "Portfolio"
    settings: PortfolioSettings = field(default_factory=PortfolioSettings)
    structures: List[Structure] = field(default_factory=list)
    market: Optional[MarketSnapshot] = None

    @property
    def active_structures(self) -> List[Structure]:
        return [s for s in self.structures if s.is_active]

    @property
    def closed_structures(self) -> List[Structure]:
        return [s for s in self.structures if s.is_closed]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "settings": self.settings.to_dict(),
            "structures": [s.to_dict() for s in self.structures],
        }
        if self.market is not None:
            data["market"] = self.market.to_dict()
        return data


class ConfigValidator:
    """Validates portfolio configuration."""

    @classmethod
    def validate(cls, config: PortfolioConfig) -> List[str]:
        """
        Validate a portfolio configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not config.name:
            errors.append("Portfolio name is required")

        errors.extend(cls._validate_settings(config.settings))

        # Structure ids must be unique across the portfolio
        seen = set()
        for structure in config.structures:
            if structure.id in seen:
                errors.append(f"Duplicate structure id '{structure.id}'")
            seen.add(structure.id)
            errors.extend(cls._validate_structure(structure))

        return errors

    @classmethod
    def _validate_settings(cls, settings: PortfolioSettings) -> List[str]:
        """Validate portfolio settings."""
        errors = []

        if settings.initial_capital is None or not np.isfinite(settings.initial_capital):
            errors.append("Initial capital must be a finite number")
        elif settings.initial_capital <= 0:
            errors.append("Initial capital must be positive")

        valid_multipliers = [m.value for m in Multiplier]
        if settings.default_multiplier not in valid_multipliers:
            errors.append(
                f"Default multiplier must be one of {valid_multipliers}, "
                f"got {settings.default_multiplier}"
            )

        if settings.default_opening_commission < 0:
            errors.append("Opening commission cannot be negative")

        if settings.default_closing_commission < 0:
            errors.append("Closing commission cannot be negative")

        return errors

    @classmethod
    def _validate_structure(cls, structure: Structure) -> List[str]:
        """Validate one structure."""
        errors = []
        prefix = f"Structure '{structure.id}'"

        if not structure.tag or not structure.tag.strip():
            errors.append(f"{prefix}: tag is required")

        if not structure.legs:
            errors.append(f"{prefix}: must contain at least one leg")

        return errors
