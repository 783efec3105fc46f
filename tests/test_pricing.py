"""
Unit Tests for the Pricing Kernel

Tests for the Black-Scholes pricing functions, the Greeks and the
day-count convention.

Test Categories:
    1. Black-Scholes Pricing Tests
        - Known analytical solutions
        - Put-call parity
        - Intrinsic regime (T <= epsilon, sigma <= 0, expired)

    2. Greeks Tests
        - Sign invariants and call/put symmetry
        - Per-day theta and per-point vega scaling
        - Delta convention in the intrinsic regime

    3. Input Validation Tests
        - Non-positive spot/strike and non-finite inputs

    4. Vectorized and Day-Count Tests
"""

import math
from datetime import date, datetime, timedelta, timezone

import numpy as np
import pytest
from scipy.stats import norm

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from optionbook.core.pricing import (
    DAY_COUNT_BASIS,
    MIN_TIME_TO_EXPIRY,
    Greeks,
    InvalidPricingInputError,
    PricingError,
    black_scholes_call,
    black_scholes_call_vectorized,
    black_scholes_price,
    black_scholes_price_vectorized,
    black_scholes_put,
    black_scholes_put_vectorized,
    calculate_delta,
    calculate_gamma,
    calculate_greeks,
    calculate_theta,
    calculate_vega,
    intrinsic_value,
    price_option,
    year_fraction,
)


# =============================================================================
# Test Fixtures and Constants
# =============================================================================

SPOT = 100.0
STRIKE = 100.0
TIME = 0.25
RATE = 0.05
SIGMA = 0.20

PRICE_TOL = 1e-4
GREEK_TOL = 1e-4
PARITY_TOL = 1e-8


@pytest.fixture
def standard_params():
    """Standard option parameters for testing."""
    return {
        'S': SPOT,
        'K': STRIKE,
        'T': TIME,
        'r': RATE,
        'sigma': SIGMA
    }


@pytest.fixture
def index_atm_params():
    """At-the-money index option, 30 calendar days to expiry."""
    return {
        'S': 24500.0,
        'K': 24500.0,
        'T': 30 / 365.25,
        'r': 0.0261,
        'sigma': 0.15
    }


# =============================================================================
# Black-Scholes Pricing Tests
# =============================================================================

class TestBlackScholesPricing:
    """Tests for black_scholes_call / black_scholes_put."""

    def test_atm_call_price(self, standard_params):
        """Call price matches the closed-form expression."""
        price = black_scholes_call(**standard_params)

        d1 = (np.log(SPOT / STRIKE) + (RATE + 0.5 * SIGMA ** 2) * TIME) / (SIGMA * np.sqrt(TIME))
        d2 = d1 - SIGMA * np.sqrt(TIME)
        expected = SPOT * norm.cdf(d1) - STRIKE * np.exp(-RATE * TIME) * norm.cdf(d2)

        assert abs(price - expected) < PRICE_TOL

    def test_atm_put_price(self, standard_params):
        """Put price matches the closed-form expression."""
        price = black_scholes_put(**standard_params)

        d1 = (np.log(SPOT / STRIKE) + (RATE + 0.5 * SIGMA ** 2) * TIME) / (SIGMA * np.sqrt(TIME))
        d2 = d1 - SIGMA * np.sqrt(TIME)
        expected = STRIKE * np.exp(-RATE * TIME) * norm.cdf(-d2) - SPOT * norm.cdf(-d1)

        assert abs(price - expected) < PRICE_TOL

    @pytest.mark.parametrize("S,K,T,r,sigma", [
        (100.0, 100.0, 0.25, 0.05, 0.20),
        (120.0, 100.0, 0.50, 0.02, 0.35),
        (80.0, 100.0, 1.00, 0.00, 0.15),
        (24500.0, 25000.0, 0.10, 0.0261, 0.18),
    ])
    def test_put_call_parity(self, S, K, T, r, sigma):
        """call - put == S - K*exp(-rT)."""
        call = black_scholes_call(S, K, T, r, sigma)
        put = black_scholes_put(S, K, T, r, sigma)

        assert call - put == pytest.approx(S - K * math.exp(-r * T), abs=1e-6)

    def test_dispatch_by_option_type(self, standard_params):
        """black_scholes_price dispatches on the option type."""
        assert black_scholes_price(**standard_params, option_type='call') == \
            black_scholes_call(**standard_params)
        assert black_scholes_price(**standard_params, option_type='P') == \
            black_scholes_put(**standard_params)

    def test_invalid_option_type(self, standard_params):
        with pytest.raises(ValueError):
            black_scholes_price(**standard_params, option_type='straddle')

    def test_prices_non_negative(self):
        """Deep out-of-the-money options never price below zero."""
        assert black_scholes_call(S=50, K=100, T=0.05, r=0.05, sigma=0.10) >= 0.0
        assert black_scholes_put(S=200, K=100, T=0.05, r=0.05, sigma=0.10) >= 0.0


class TestIntrinsicRegime:
    """Tests for the T <= epsilon / sigma <= 0 fallback."""

    def test_zero_time_returns_intrinsic(self):
        assert black_scholes_call(S=110, K=100, T=0, r=0.05, sigma=0.20) == 10.0
        assert black_scholes_put(S=110, K=100, T=0, r=0.05, sigma=0.20) == 0.0
        assert black_scholes_put(S=90, K=100, T=0, r=0.05, sigma=0.20) == 10.0

    def test_negative_time_treated_as_expired(self):
        """An expired option is worth its intrinsic value, not an error."""
        assert black_scholes_call(S=110, K=100, T=-0.5, r=0.05, sigma=0.20) == 10.0
        assert black_scholes_put(S=110, K=100, T=-0.5, r=0.05, sigma=0.20) == 0.0

    def test_time_below_epsilon(self):
        T = MIN_TIME_TO_EXPIRY / 2
        assert black_scholes_call(S=105, K=100, T=T, r=0.05, sigma=0.20) == 5.0

    def test_zero_volatility_returns_intrinsic(self):
        """Zero volatility is handled like zero time (no time value)."""
        assert black_scholes_call(S=110, K=100, T=0.25, r=0.05, sigma=0) == 10.0
        assert black_scholes_put(S=90, K=100, T=0.25, r=0.05, sigma=0) == 10.0
        assert black_scholes_call(S=90, K=100, T=0.25, r=0.05, sigma=-0.1) == 0.0

    def test_converges_to_intrinsic_near_expiry(self):
        """Just above the epsilon the price is close to intrinsic."""
        T = MIN_TIME_TO_EXPIRY * 2
        call = black_scholes_call(S=110, K=100, T=T, r=0.05, sigma=0.20)
        put = black_scholes_put(S=90, K=100, T=T, r=0.05, sigma=0.20)

        assert call == pytest.approx(10.0, abs=0.05)
        assert put == pytest.approx(10.0, abs=0.05)

    def test_greeks_zero_except_delta(self):
        greeks = calculate_greeks(S=110, K=100, T=0, r=0.05, sigma=0.20, option_type='call')

        assert greeks == Greeks(delta=1.0, gamma=0.0, theta=0.0, vega=0.0)

    @pytest.mark.parametrize("S,option_type,expected", [
        (110.0, 'call', 1.0),
        (90.0, 'call', 0.0),
        (100.0, 'call', 0.0),
        (90.0, 'put', -1.0),
        (110.0, 'put', 0.0),
        (100.0, 'put', 0.0),
    ])
    def test_delta_convention(self, S, option_type, expected):
        """Delta jumps to 1/-1 only when strictly in the money."""
        assert calculate_delta(S, 100.0, 0.0, 0.05, 0.20, option_type) == expected

    def test_intrinsic_value(self):
        assert intrinsic_value(110, 100, 'call') == 10.0
        assert intrinsic_value(90, 100, 'call') == 0.0
        assert intrinsic_value(90, 100, 'put') == 10.0
        assert intrinsic_value(110, 100, 'put') == 0.0


# =============================================================================
# Greeks Tests
# =============================================================================

class TestGreeks:
    """Tests for the Greeks functions."""

    def test_call_delta_is_n_d1(self, standard_params):
        d1 = (np.log(SPOT / STRIKE) + (RATE + 0.5 * SIGMA ** 2) * TIME) / (SIGMA * np.sqrt(TIME))
        assert calculate_delta(**standard_params) == pytest.approx(norm.cdf(d1), abs=GREEK_TOL)

    def test_put_delta_is_call_delta_minus_one(self, standard_params):
        call_delta = calculate_delta(**standard_params, option_type='call')
        put_delta = calculate_delta(**standard_params, option_type='put')
        assert put_delta == pytest.approx(call_delta - 1.0, abs=1e-12)

    @pytest.mark.parametrize("S", [60.0, 90.0, 100.0, 110.0, 160.0])
    def test_sign_invariants(self, S):
        call = calculate_greeks(S, 100.0, 0.3, 0.03, 0.25, 'call')
        put = calculate_greeks(S, 100.0, 0.3, 0.03, 0.25, 'put')

        assert 0.0 <= call.delta <= 1.0
        assert -1.0 <= put.delta <= 0.0
        assert call.gamma >= 0.0 and put.gamma >= 0.0
        assert call.vega >= 0.0 and put.vega >= 0.0

    def test_gamma_and_vega_same_for_call_and_put(self, standard_params):
        call = calculate_greeks(**standard_params, option_type='call')
        put = calculate_greeks(**standard_params, option_type='put')

        assert call.gamma == put.gamma
        assert call.vega == put.vega

    def test_theta_per_calendar_day(self, standard_params):
        annual = calculate_theta(**standard_params, per_day=False)
        daily = calculate_theta(**standard_params)

        assert daily == pytest.approx(annual / DAY_COUNT_BASIS, rel=1e-12)
        assert daily < 0

    def test_vega_per_volatility_point(self, standard_params):
        raw = calculate_vega(**standard_params, per_point=False)
        per_point = calculate_vega(**standard_params)

        assert per_point == pytest.approx(raw / 100.0, rel=1e-12)

    def test_vega_matches_finite_difference(self, standard_params):
        """One volatility point changes the price by about vega."""
        bumped = dict(standard_params, sigma=SIGMA + 0.01)
        diff = black_scholes_call(**bumped) - black_scholes_call(**standard_params)

        assert diff == pytest.approx(calculate_vega(**standard_params), rel=1e-2)

    def test_scaled_by_position_size(self):
        greeks = Greeks(delta=0.5, gamma=0.01, theta=-2.0, vega=3.0)

        assert greeks.scaled(-2) == Greeks(delta=-1.0, gamma=-0.02, theta=4.0, vega=-6.0)
        assert greeks.scaled(1) == greeks

    def test_gamma_formula(self, standard_params):
        d1 = (np.log(SPOT / STRIKE) + (RATE + 0.5 * SIGMA ** 2) * TIME) / (SIGMA * np.sqrt(TIME))
        expected = norm.pdf(d1) / (SPOT * SIGMA * np.sqrt(TIME))

        assert calculate_gamma(**standard_params) == pytest.approx(expected, abs=GREEK_TOL)


class TestPriceOption:
    """Tests for price_option (both sides in one call)."""

    def test_matches_individual_functions(self, standard_params):
        pricing = price_option(**standard_params)

        assert pricing.call_price == pytest.approx(black_scholes_call(**standard_params), abs=1e-9)
        assert pricing.put_price == pytest.approx(black_scholes_put(**standard_params), abs=1e-9)
        assert pricing.call_greeks.delta == pytest.approx(
            calculate_delta(**standard_params, option_type='call'), abs=1e-12)
        assert pricing.put_greeks.theta == pytest.approx(
            calculate_theta(**standard_params, option_type='put'), abs=1e-12)
        assert pricing.put_greeks.vega == pytest.approx(calculate_vega(**standard_params), abs=1e-12)

    def test_index_atm_scenario(self, index_atm_params):
        """30-day at-the-money index option."""
        pricing = price_option(**index_atm_params)
        S, K, T, r = (index_atm_params[k] for k in ('S', 'K', 'T', 'r'))
        forward_gap = S - K * math.exp(-r * T)

        assert pricing.call_price > 0
        assert pricing.put_price > 0
        assert pricing.call_price - pricing.put_price == pytest.approx(forward_gap, abs=PARITY_TOL)
        assert forward_gap == pytest.approx(52.2, abs=0.5)
        assert 0.52 <= pricing.call_greeks.delta <= 0.56

    def test_intrinsic_regime(self):
        pricing = price_option(S=90.0, K=100.0, T=0.0, r=0.05, sigma=0.2)

        assert pricing.call_price == 0.0
        assert pricing.put_price == 10.0
        assert pricing.call_greeks == Greeks()
        assert pricing.put_greeks == Greeks(delta=-1.0)

    @pytest.mark.parametrize('S, K', [
        (30000.0, 10000.0),   # call deep in the money, put worthless
        (10000.0, 30000.0),   # put deep in the money, call worthless
        (24000.0, 24500.0),   # call out of the money
    ])
    def test_prices_never_negative(self, S, K):
        params = dict(S=S, K=K, T=0.01, r=0.03, sigma=0.15)
        pricing = price_option(**params)

        assert pricing.call_price >= 0.0
        assert pricing.put_price >= 0.0
        assert pricing.call_price == pytest.approx(black_scholes_call(**params), abs=1e-9)
        assert pricing.put_price == pytest.approx(black_scholes_put(**params), abs=1e-9)

    def test_idempotent(self, index_atm_params):
        assert price_option(**index_atm_params) == price_option(**index_atm_params)


# =============================================================================
# Input Validation Tests
# =============================================================================

class TestInputValidation:
    """Invalid numeric input fails fast."""

    @pytest.mark.parametrize("overrides", [
        {'S': 0.0},
        {'S': -10.0},
        {'K': 0.0},
        {'K': -1.0},
        {'S': float('nan')},
        {'K': float('inf')},
        {'T': float('nan')},
        {'r': float('inf')},
        {'sigma': float('nan')},
        {'S': None},
    ])
    def test_invalid_inputs_raise(self, standard_params, overrides):
        params = dict(standard_params, **overrides)

        with pytest.raises(InvalidPricingInputError):
            black_scholes_call(**params)
        with pytest.raises(InvalidPricingInputError):
            price_option(**params)

    def test_error_hierarchy(self):
        assert issubclass(InvalidPricingInputError, PricingError)
        assert issubclass(InvalidPricingInputError, ValueError)

    def test_greeks_validate_inputs(self, standard_params):
        with pytest.raises(InvalidPricingInputError):
            calculate_greeks(**dict(standard_params, S=0.0))


# =============================================================================
# Vectorized and Day-Count Tests
# =============================================================================

class TestVectorized:
    """Tests for the array pricers used by the payoff sampler."""

    def test_matches_scalar(self):
        spots = np.array([80.0, 95.0, 100.0, 105.0, 130.0])
        calls = black_scholes_call_vectorized(spots, 100.0, TIME, RATE, SIGMA)
        puts = black_scholes_put_vectorized(spots, 100.0, TIME, RATE, SIGMA)

        for i, S in enumerate(spots):
            assert calls[i] == pytest.approx(black_scholes_call(S, 100.0, TIME, RATE, SIGMA), abs=1e-9)
            assert puts[i] == pytest.approx(black_scholes_put(S, 100.0, TIME, RATE, SIGMA), abs=1e-9)

    def test_intrinsic_regime(self):
        spots = np.array([90.0, 100.0, 110.0])

        np.testing.assert_array_equal(
            black_scholes_price_vectorized(spots, 100.0, 0.0, RATE, SIGMA, 'call'),
            np.array([0.0, 0.0, 10.0]),
        )
        np.testing.assert_array_equal(
            black_scholes_price_vectorized(spots, 100.0, 0.25, RATE, 0.0, 'put'),
            np.array([10.0, 0.0, 0.0]),
        )

    def test_non_positive_spot_raises(self):
        with pytest.raises(InvalidPricingInputError):
            black_scholes_call_vectorized(np.array([0.0, 100.0]), 100.0, TIME, RATE, SIGMA)


class TestYearFraction:
    """Tests for the 365.25-day calendar."""

    def test_dates(self):
        assert year_fraction(date(2024, 1, 1), date(2024, 1, 31)) == pytest.approx(30 / 365.25)

    def test_negative_when_reversed(self):
        assert year_fraction(date(2024, 1, 31), date(2024, 1, 1)) == pytest.approx(-30 / 365.25)

    def test_datetime_against_date_uses_midnight(self):
        as_of = datetime(2024, 1, 1, 12, 0)
        assert year_fraction(as_of, date(2024, 1, 2)) == pytest.approx(0.5 / 365.25)

    def test_aware_datetime_against_date(self):
        as_of = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert year_fraction(as_of, date(2024, 1, 11)) == pytest.approx(10 / 365.25)

    def test_one_basis_of_days_is_one_year(self):
        start = datetime(2024, 1, 1)
        assert year_fraction(start, start + timedelta(days=365.25)) == pytest.approx(1.0)
