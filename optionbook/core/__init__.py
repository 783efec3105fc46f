"""
Core Module for the Portfolio Engine

This module provides the building blocks every analytic is computed from:
the Black-Scholes pricing kernel and the immutable records describing the
market and the positions.

Components:
    - pricing: Black-Scholes prices, Greeks and the day-count convention
    - market: MarketSnapshot (spot, rate, volatility proxy)
    - leg: Leg, a single option position
    - structure: Structure, a named group of legs with a multiplier

Usage:
    from optionbook.core import (
        Leg,
        MarketSnapshot,
        OptionSide,
        Structure,
        price_option,
        year_fraction,
    )

    market = MarketSnapshot(spot=24500.0, risk_free_rate=0.0261)
    T = year_fraction(as_of, leg.expiry)
    pricing = price_option(market.spot, leg.strike, T, market.risk_free_rate, 0.15)
"""

from optionbook.core.pricing import (
    # Exceptions
    PricingError,
    InvalidPricingInputError,
    # Result types
    Greeks,
    OptionPricing,
    # Core pricing functions
    black_scholes_call,
    black_scholes_put,
    black_scholes_price,
    price_option,
    intrinsic_value,
    year_fraction,
    # Individual Greeks
    calculate_delta,
    calculate_gamma,
    calculate_theta,
    calculate_vega,
    calculate_greeks,
    # Vectorized functions
    black_scholes_call_vectorized,
    black_scholes_put_vectorized,
    black_scholes_price_vectorized,
    # Constants
    DAY_COUNT_BASIS,
    MIN_TIME_TO_EXPIRY,
)

from optionbook.core.market import (
    MarketSnapshot,
    MarketDataError,
)

from optionbook.core.leg import (
    Leg,
    LegError,
    LegValidationError,
    OptionSide,
    third_friday,
    default_expiry,
)

from optionbook.core.structure import (
    Structure,
    StructureError,
    StructureValidationError,
    StructureStateError,
    StructureStatus,
    Multiplier,
)

__all__ = [
    # =========================================================================
    # Pricing
    # =========================================================================
    "PricingError",
    "InvalidPricingInputError",
    "Greeks",
    "OptionPricing",
    "black_scholes_call",
    "black_scholes_put",
    "black_scholes_price",
    "price_option",
    "intrinsic_value",
    "year_fraction",
    "calculate_delta",
    "calculate_gamma",
    "calculate_theta",
    "calculate_vega",
    "calculate_greeks",
    "black_scholes_call_vectorized",
    "black_scholes_put_vectorized",
    "black_scholes_price_vectorized",
    "DAY_COUNT_BASIS",
    "MIN_TIME_TO_EXPIRY",
    # =========================================================================
    # Records
    # =========================================================================
    "MarketSnapshot",
    "MarketDataError",
    "Leg",
    "LegError",
    "LegValidationError",
    "OptionSide",
    "third_friday",
    "default_expiry",
    "Structure",
    "StructureError",
    "StructureValidationError",
    "StructureStateError",
    "StructureStatus",
    "Multiplier",
]
