"""
Options Pricing Module for the Portfolio Engine

This module provides closed-form European option valuation and analytical
Greeks using the Black-Scholes model. It is the only place in the package
that evaluates the pricing formula; every valuation, aggregation and payoff
curve goes through the functions defined here.

Mathematical Framework:
    The Black-Scholes model assumes:
    - European-style options (no early exercise)
    - Log-normal distribution of underlying returns
    - Constant volatility and risk-free rate
    - No dividends

Key Formulas:
    Call Price: C = S*N(d1) - K*exp(-rT)*N(d2)
    Put Price:  P = C - S + K*exp(-rT)

    where:
        d1 = [ln(S/K) + (r + sigma^2/2)*T] / (sigma*sqrt(T))
        d2 = d1 - sigma*sqrt(T)
        N(x) = cumulative standard normal distribution

Greeks:
    Delta: dV/dS
    Gamma: d2V/dS2
    Theta: dV/dt, reported per calendar day (annual / DAY_COUNT_BASIS)
    Vega:  dV/dsigma, reported per one volatility point (raw / 100)

Expiry Regime:
    When T <= MIN_TIME_TO_EXPIRY or sigma <= 0 the formula is bypassed and the
    option is worth its intrinsic value. All Greeks are zero in this regime
    except delta, which jumps to 1 (ITM call), -1 (ITM put) or 0 (OTM or
    exactly at the money). The jump is inherent to the model.

Usage:
    from optionbook.core.pricing import price_option, year_fraction

    T = year_fraction(datetime(2024, 1, 2), date(2024, 2, 16))
    pricing = price_option(S=24500, K=24500, T=T, r=0.0261, sigma=0.15)
    print(pricing.call_price, pricing.call_greeks.delta)

References:
    - Black, F., & Scholes, M. (1973). The Pricing of Options and Corporate Liabilities.
    - Hull, J. C. (2018). Options, Futures, and Other Derivatives.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Union

import numpy as np
from scipy.stats import norm

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class PricingError(Exception):
    """Exception raised when pricing calculation fails."""
    pass


class InvalidPricingInputError(PricingError, ValueError):
    """Exception raised when pricing inputs are outside the model's domain."""
    pass


# =============================================================================
# Constants
# =============================================================================

# Day-count basis used for every year fraction and for daily theta
DAY_COUNT_BASIS = 365.25
SECONDS_PER_DAY = 86400.0

# Below this many years the option is valued at intrinsic
MIN_TIME_TO_EXPIRY = 0.001

CALL = 'call'
PUT = 'put'


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class Greeks:
    """
    First and second order sensitivities of a single option.

    Attributes:
        delta: Change in option value per 1.0 change in spot
        gamma: Change in delta per 1.0 change in spot
        theta: Change in option value per calendar day
        vega: Change in option value per one volatility point
    """

    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0

    def scaled(self, factor: float) -> 'Greeks':
        """Return the Greeks multiplied by a position size."""
        return Greeks(
            delta=self.delta * factor,
            gamma=self.gamma * factor,
            theta=self.theta * factor,
            vega=self.vega * factor,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            'delta': self.delta,
            'gamma': self.gamma,
            'theta': self.theta,
            'vega': self.vega,
        }


@dataclass(frozen=True)
class OptionPricing:
    """Call and put prices plus Greeks for one (S, K, T, r, sigma) tuple."""

    call_price: float
    put_price: float
    call_greeks: Greeks
    put_greeks: Greeks


# =============================================================================
# Helper Functions
# =============================================================================

def _validate_inputs(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float
) -> None:
    """
    Validate pricing inputs for numerical stability and financial validity.

    Args:
        S: Spot price
        K: Strike price
        T: Time to expiration in years
        r: Risk-free rate
        sigma: Volatility

    Raises:
        InvalidPricingInputError: If any input is invalid
    """
    if S is None or K is None or T is None or r is None or sigma is None:
        raise InvalidPricingInputError(
            "All pricing parameters must be provided (none can be None)"
        )

    if not np.isfinite(S) or S <= 0:
        raise InvalidPricingInputError(f"Spot price (S) must be positive and finite, got {S}")

    if not np.isfinite(K) or K <= 0:
        raise InvalidPricingInputError(f"Strike price (K) must be positive and finite, got {K}")

    if not np.isfinite(T):
        raise InvalidPricingInputError(f"Time to expiration (T) must be finite, got {T}")

    if not np.isfinite(r):
        raise InvalidPricingInputError(f"Risk-free rate (r) must be finite, got {r}")

    if not np.isfinite(sigma):
        raise InvalidPricingInputError(f"Volatility (sigma) must be finite, got {sigma}")


def _is_intrinsic_regime(T: float, sigma: float) -> bool:
    return T <= MIN_TIME_TO_EXPIRY or sigma <= 0


def _normalize_option_type(option_type: str) -> str:
    option_type_lower = option_type.lower().strip()
    if option_type_lower in ('call', 'c'):
        return CALL
    if option_type_lower in ('put', 'p'):
        return PUT
    raise ValueError(f"option_type must be 'call' or 'put', got '{option_type}'")


def _calculate_d1_d2(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float
) -> tuple:
    """
    Calculate d1 and d2 parameters for Black-Scholes formula.

    Only called outside the intrinsic regime, so T and sigma are positive.
    """
    sigma_sqrt_T = sigma * math.sqrt(T)

    d1 = (math.log(S / K) + (r + 0.5 * sigma ** 2) * T) / sigma_sqrt_T
    d2 = d1 - sigma_sqrt_T

    return d1, d2


def intrinsic_value(S: float, K: float, option_type: str = CALL) -> float:
    """
    Intrinsic value of an option at spot S.

    Call: max(0, S - K); Put: max(0, K - S).
    """
    if _normalize_option_type(option_type) == CALL:
        return max(0.0, S - K)
    return max(0.0, K - S)


def _intrinsic_delta(S: float, K: float, option_type: str) -> float:
    if option_type == CALL:
        return 1.0 if S > K else 0.0
    return -1.0 if S < K else 0.0


def _as_datetime(value: Union[date, datetime], tz_source: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    tzinfo = tz_source.tzinfo if isinstance(tz_source, datetime) else None
    return datetime(value.year, value.month, value.day, tzinfo=tzinfo)


def year_fraction(start: Union[date, datetime], end: Union[date, datetime]) -> float:
    """
    Year fraction between two instants on the DAY_COUNT_BASIS calendar.

    Calendar dates are taken at midnight. The result is negative when end
    precedes start (an expired option).

    Args:
        start: Valuation instant ("as of")
        end: Target instant, usually an expiry date

    Returns:
        (end - start) expressed in years of DAY_COUNT_BASIS days

    Example:
        >>> year_fraction(date(2024, 1, 1), date(2024, 1, 31))
        0.08213552361396304
    """
    start_dt = _as_datetime(start, end)
    end_dt = _as_datetime(end, start)
    seconds = (end_dt - start_dt).total_seconds()
    return seconds / (DAY_COUNT_BASIS * SECONDS_PER_DAY)


# =============================================================================
# Black-Scholes Pricing Functions
# =============================================================================

def black_scholes_call(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float
) -> float:
    """
    Calculate European call option price using Black-Scholes formula.

        C = S * N(d1) - K * exp(-r*T) * N(d2)

    Args:
        S: Current spot price of the underlying.
        K: Strike price of the option.
        T: Time to expiration in years.
        r: Risk-free interest rate (annualized, e.g., 0.0261).
        sigma: Volatility of the underlying (annualized, e.g., 0.15).

    Returns:
        Call option price in index points.

    Raises:
        InvalidPricingInputError: If any input parameter is invalid.

    Edge Cases:
        - T <= MIN_TIME_TO_EXPIRY: Returns intrinsic value max(S - K, 0)
        - sigma <= 0: Returns intrinsic value max(S - K, 0)

    Example:
        >>> price = black_scholes_call(S=100, K=100, T=0.25, r=0.05, sigma=0.20)
        >>> print(f"Call price: {price:.2f}")
        Call price: 4.61
    """
    _validate_inputs(S, K, T, r, sigma)

    if _is_intrinsic_regime(T, sigma):
        return max(S - K, 0.0)

    d1, d2 = _calculate_d1_d2(S, K, T, r, sigma)

    call_price = S * norm.cdf(d1) - K * math.exp(-r * T) * norm.cdf(d2)

    # Ensure non-negative price (numerical precision)
    return max(float(call_price), 0.0)


def black_scholes_put(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float
) -> float:
    """
    Calculate European put option price using Black-Scholes formula.

        P = K * exp(-r*T) * N(-d2) - S * N(-d1)

    which is algebraically identical to put-call parity P = C - S + K*exp(-rT).

    Args:
        S: Current spot price of the underlying.
        K: Strike price of the option.
        T: Time to expiration in years.
        r: Risk-free interest rate (annualized).
        sigma: Volatility of the underlying (annualized).

    Returns:
        Put option price in index points.

    Raises:
        InvalidPricingInputError: If any input parameter is invalid.

    Edge Cases:
        - T <= MIN_TIME_TO_EXPIRY: Returns intrinsic value max(K - S, 0)
        - sigma <= 0: Returns intrinsic value max(K - S, 0)
    """
    _validate_inputs(S, K, T, r, sigma)

    if _is_intrinsic_regime(T, sigma):
        return max(K - S, 0.0)

    d1, d2 = _calculate_d1_d2(S, K, T, r, sigma)

    put_price = K * math.exp(-r * T) * norm.cdf(-d2) - S * norm.cdf(-d1)

    return max(float(put_price), 0.0)


def black_scholes_price(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float,
    option_type: str = CALL
) -> float:
    """
    Calculate European option price using Black-Scholes formula.

    Dispatches to black_scholes_call or black_scholes_put.

    Raises:
        ValueError: If option_type is not 'call' or 'put'.
    """
    if _normalize_option_type(option_type) == CALL:
        return black_scholes_call(S, K, T, r, sigma)
    return black_scholes_put(S, K, T, r, sigma)


# =============================================================================
# Greeks Calculations
# =============================================================================

def calculate_delta(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float,
    option_type: str = CALL
) -> float:
    """
    Calculate option delta.

    Formula:
        Call Delta = N(d1)
        Put Delta = N(d1) - 1

    In the intrinsic regime delta is 1/0 for calls and -1/0 for puts
    depending on whether the option is strictly in the money.

    Example:
        >>> calculate_delta(S=100, K=100, T=0.25, r=0.05, sigma=0.20)
        0.5695...
    """
    _validate_inputs(S, K, T, r, sigma)
    option_type = _normalize_option_type(option_type)

    if _is_intrinsic_regime(T, sigma):
        return _intrinsic_delta(S, K, option_type)

    d1, _ = _calculate_d1_d2(S, K, T, r, sigma)

    if option_type == CALL:
        return float(norm.cdf(d1))
    return float(norm.cdf(d1) - 1.0)


def calculate_gamma(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float
) -> float:
    """
    Calculate option gamma (identical for calls and puts).

    Formula:
        Gamma = N'(d1) / (S * sigma * sqrt(T))

    Returns 0 in the intrinsic regime.
    """
    _validate_inputs(S, K, T, r, sigma)

    if _is_intrinsic_regime(T, sigma):
        return 0.0

    d1, _ = _calculate_d1_d2(S, K, T, r, sigma)

    return float(norm.pdf(d1) / (S * sigma * math.sqrt(T)))


def calculate_theta(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float,
    option_type: str = CALL,
    per_day: bool = True
) -> float:
    """
    Calculate option theta - value decay with the passage of time.

    Formula (per year):
        Call Theta = -S*N'(d1)*sigma/(2*sqrt(T)) - r*K*exp(-rT)*N(d2)
        Put Theta  = -S*N'(d1)*sigma/(2*sqrt(T)) + r*K*exp(-rT)*N(-d2)

    Args:
        S: Spot price
        K: Strike price
        T: Time to expiration in years
        r: Risk-free rate (annualized)
        sigma: Volatility (annualized)
        option_type: 'call' or 'put'
        per_day: If True, divide the annual figure by DAY_COUNT_BASIS.

    Returns:
        Theta value (typically negative for long options); 0 in the
        intrinsic regime.
    """
    _validate_inputs(S, K, T, r, sigma)
    option_type = _normalize_option_type(option_type)

    if _is_intrinsic_regime(T, sigma):
        return 0.0

    d1, d2 = _calculate_d1_d2(S, K, T, r, sigma)

    discount_factor = math.exp(-r * T)

    # Time decay component (always negative)
    time_decay = -S * norm.pdf(d1) * sigma / (2 * math.sqrt(T))

    if option_type == CALL:
        theta_annual = time_decay - r * K * discount_factor * norm.cdf(d2)
    else:
        theta_annual = time_decay + r * K * discount_factor * norm.cdf(-d2)

    theta_annual = float(theta_annual)
    return theta_annual / DAY_COUNT_BASIS if per_day else theta_annual


def calculate_vega(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float,
    per_point: bool = True
) -> float:
    """
    Calculate option vega (identical for calls and puts).

    Formula (per 1.00 change in sigma):
        Vega = S * N'(d1) * sqrt(T)

    Args:
        per_point: If True, returns vega per one volatility point (divided
                   by 100).

    Returns:
        Vega value (always non-negative); 0 in the intrinsic regime.
    """
    _validate_inputs(S, K, T, r, sigma)

    if _is_intrinsic_regime(T, sigma):
        return 0.0

    d1, _ = _calculate_d1_d2(S, K, T, r, sigma)

    vega_per_unit = float(S * norm.pdf(d1) * math.sqrt(T))

    return vega_per_unit / 100.0 if per_point else vega_per_unit


def calculate_greeks(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float,
    option_type: str = CALL
) -> Greeks:
    """
    Calculate delta, gamma, theta (per day) and vega (per point) together.

    Example:
        >>> greeks = calculate_greeks(S=100, K=100, T=0.25, r=0.05, sigma=0.20)
        >>> print(f"Delta: {greeks.delta:.4f}")
    """
    return Greeks(
        delta=calculate_delta(S, K, T, r, sigma, option_type),
        gamma=calculate_gamma(S, K, T, r, sigma),
        theta=calculate_theta(S, K, T, r, sigma, option_type),
        vega=calculate_vega(S, K, T, r, sigma),
    )


def price_option(
    S: float,
    K: float,
    T: float,
    r: float,
    sigma: float
) -> OptionPricing:
    """
    Price both sides of an option and compute their Greeks in one pass.

    Args:
        S: Spot price (> 0)
        K: Strike price (> 0)
        T: Time to expiration in years
        r: Risk-free rate (annualized)
        sigma: Volatility (annualized)

    Returns:
        OptionPricing with call/put prices and call/put Greeks

    Raises:
        InvalidPricingInputError: If any input is outside the model's domain
    """
    _validate_inputs(S, K, T, r, sigma)

    if _is_intrinsic_regime(T, sigma):
        logger.debug(f"Intrinsic regime for S={S}, K={K}, T={T}, sigma={sigma}")
        return OptionPricing(
            call_price=max(S - K, 0.0),
            put_price=max(K - S, 0.0),
            call_greeks=Greeks(delta=_intrinsic_delta(S, K, CALL)),
            put_greeks=Greeks(delta=_intrinsic_delta(S, K, PUT)),
        )

    d1, d2 = _calculate_d1_d2(S, K, T, r, sigma)
    sqrt_T = math.sqrt(T)
    discount_factor = math.exp(-r * T)
    pdf_d1 = float(norm.pdf(d1))
    cdf_d1 = float(norm.cdf(d1))
    cdf_d2 = float(norm.cdf(d2))

    call_price = max(S * cdf_d1 - K * discount_factor * cdf_d2, 0.0)
    put_price = max(K * discount_factor * float(norm.cdf(-d2)) - S * float(norm.cdf(-d1)), 0.0)

    gamma = pdf_d1 / (S * sigma * sqrt_T)
    vega = S * pdf_d1 * sqrt_T / 100.0
    time_decay = -S * pdf_d1 * sigma / (2 * sqrt_T)
    call_theta = (time_decay - r * K * discount_factor * cdf_d2) / DAY_COUNT_BASIS
    put_theta = (time_decay + r * K * discount_factor * (1.0 - cdf_d2)) / DAY_COUNT_BASIS

    return OptionPricing(
        call_price=call_price,
        put_price=put_price,
        call_greeks=Greeks(delta=cdf_d1, gamma=gamma, theta=call_theta, vega=vega),
        put_greeks=Greeks(delta=cdf_d1 - 1.0, gamma=gamma, theta=put_theta, vega=vega),
    )


# =============================================================================
# Vectorized Pricing
# =============================================================================

def _validate_vector_inputs(S: np.ndarray, K: float, T: float, r: float, sigma: float) -> None:
    if S.size and (not np.all(np.isfinite(S)) or np.any(S <= 0)):
        raise InvalidPricingInputError("Spot prices (S) must be positive and finite")
    _validate_inputs(1.0, K, T, r, sigma)


def black_scholes_call_vectorized(
    S: np.ndarray,
    K: float,
    T: float,
    r: float,
    sigma: float
) -> np.ndarray:
    """
    Black-Scholes call prices for an array of spot prices.

    The payoff sampler evaluates one leg over a whole price grid at once;
    strike, time, rate and volatility are scalars. The intrinsic regime
    applies to the whole array.

    Example:
        >>> S = np.array([95.0, 100.0, 105.0])
        >>> prices = black_scholes_call_vectorized(S, K=100, T=0.25, r=0.05, sigma=0.20)
    """
    S = np.asarray(S, dtype=np.float64)
    _validate_vector_inputs(S, K, T, r, sigma)

    if _is_intrinsic_regime(T, sigma):
        return np.maximum(S - K, 0.0)

    sigma_sqrt_T = sigma * np.sqrt(T)
    d1 = (np.log(S / K) + (r + 0.5 * sigma ** 2) * T) / sigma_sqrt_T
    d2 = d1 - sigma_sqrt_T

    call_prices = S * norm.cdf(d1) - K * np.exp(-r * T) * norm.cdf(d2)

    return np.maximum(call_prices, 0.0)


def black_scholes_put_vectorized(
    S: np.ndarray,
    K: float,
    T: float,
    r: float,
    sigma: float
) -> np.ndarray:
    """Black-Scholes put prices for an array of spot prices."""
    S = np.asarray(S, dtype=np.float64)
    _validate_vector_inputs(S, K, T, r, sigma)

    if _is_intrinsic_regime(T, sigma):
        return np.maximum(K - S, 0.0)

    sigma_sqrt_T = sigma * np.sqrt(T)
    d1 = (np.log(S / K) + (r + 0.5 * sigma ** 2) * T) / sigma_sqrt_T
    d2 = d1 - sigma_sqrt_T

    put_prices = K * np.exp(-r * T) * norm.cdf(-d2) - S * norm.cdf(-d1)

    return np.maximum(put_prices, 0.0)


def black_scholes_price_vectorized(
    S: np.ndarray,
    K: float,
    T: float,
    r: float,
    sigma: float,
    option_type: str = CALL
) -> np.ndarray:
    """Dispatch to the vectorized call or put pricer."""
    if _normalize_option_type(option_type) == CALL:
        return black_scholes_call_vectorized(S, K, T, r, sigma)
    return black_scholes_put_vectorized(S, K, T, r, sigma)
