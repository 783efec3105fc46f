"""
optionbook Package

Pricing and analytics engine for a portfolio of European index option
positions: Black-Scholes valuation and Greeks, realized/unrealized P&L,
payoff curves with time-decay simulation, and equity/drawdown statistics.

Modules:
    core: Pricing kernel and the immutable market/leg/structure records
    analytics: Valuation, P&L, Greeks, payoff curves and equity metrics
    config: Portfolio configuration files, environments and logging
"""

__version__ = "1.0.0"
__author__ = "optionbook developers"

from optionbook.config import (
    load_config,
    load_config_string,
    PortfolioConfig,
    PortfolioSettings,
    Environment,
    get_environment,
    set_environment,
    configure_logging,
)

__all__ = [
    "__version__",
    "__author__",
    "load_config",
    "load_config_string",
    "PortfolioConfig",
    "PortfolioSettings",
    "Environment",
    "get_environment",
    "set_environment",
    "configure_logging",
]
