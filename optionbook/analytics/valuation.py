"""
Position Valuator

Applies the pricing kernel to a single leg. A closed leg is valued at its
frozen closing price and never reaches the kernel; an open leg is priced
from the injected ``as_of`` instant to its expiry with its own implied
volatility, or with an explicit volatility override when one is given.

P&L per leg:
    price_diff  = current_price - trade_price
    points_pnl  = price_diff * quantity
    gross_pnl   = points_pnl * multiplier
    commissions = (opening_commission + closing_commission) * |quantity|
    net_pnl     = gross_pnl - commissions

Greeks in a LegValuation are per unit (one contract, in points). The
aggregators scale them by quantity and multiplier.

Usage:
    from optionbook.analytics.valuation import value_leg

    valuation = value_leg(leg, market, as_of=datetime(2024, 2, 1, 17, 30),
                          multiplier=5, volatility_override=market.live_volatility())
    print(valuation.net_pnl)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from optionbook.core.leg import Leg, OptionSide, default_expiry
from optionbook.core.market import MarketSnapshot
from optionbook.core.pricing import Greeks, calculate_greeks, black_scholes_price, year_fraction
from optionbook.config.config_schema import PortfolioSettings

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Strike grid for index options
STRIKE_STEP = 25

# Implied volatility assigned to a freshly drafted leg
DEFAULT_DRAFT_VOLATILITY = 0.15


# =============================================================================
# Result Type
# =============================================================================

@dataclass(frozen=True)
class LegValuation:
    """
    Valuation of one leg at one instant.

    Attributes:
        leg_id: Id of the valued leg
        quantity: Signed quantity of the leg
        current_price: Closing price (closed leg) or kernel price (open leg)
        volatility_used: Volatility fed to the kernel, None for closed legs
        points_pnl: (current_price - trade_price) * quantity
        gross_pnl: points_pnl * multiplier
        commissions: Round-trip commissions for the whole quantity
        net_pnl: gross_pnl - commissions
        delta, gamma, theta, vega: Per-unit Greeks; zero for closed legs
        is_closed: Whether the leg is closed
        enabled: Whether the leg takes part in aggregation
    """

    leg_id: str
    quantity: int
    current_price: float
    volatility_used: Optional[float]
    points_pnl: float
    gross_pnl: float
    commissions: float
    net_pnl: float
    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    is_closed: bool = False
    enabled: bool = True

    @property
    def greeks(self) -> Greeks:
        return Greeks(delta=self.delta, gamma=self.gamma, theta=self.theta, vega=self.vega)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'leg_id': self.leg_id,
            'quantity': self.quantity,
            'current_price': self.current_price,
            'volatility_used': self.volatility_used,
            'points_pnl': self.points_pnl,
            'gross_pnl': self.gross_pnl,
            'commissions': self.commissions,
            'net_pnl': self.net_pnl,
            'delta': self.delta,
            'gamma': self.gamma,
            'theta': self.theta,
            'vega': self.vega,
            'is_closed': self.is_closed,
            'enabled': self.enabled,
        }


# =============================================================================
# Valuation
# =============================================================================

def _volatility_for(leg: Leg, volatility_override: Optional[float]) -> float:
    if volatility_override:
        return volatility_override
    return leg.implied_volatility


def leg_current_price(
    leg: Leg,
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    volatility_override: Optional[float] = None
) -> float:
    """
    Current price of one contract of the leg.

    Args:
        leg: Leg to value
        market: Market snapshot supplying spot and rate
        as_of: Valuation instant (real or simulated "now")
        volatility_override: Market-wide volatility replacing the leg IV
                             when given and non-zero

    Returns:
        The frozen closing price for a closed leg, otherwise the kernel price
    """
    if leg.is_closed:
        return leg.closing_price

    T = year_fraction(as_of, leg.expiry)
    sigma = _volatility_for(leg, volatility_override)
    return black_scholes_price(market.spot, leg.strike, T, market.risk_free_rate,
                               sigma, leg.side.value)


def fair_value(leg: Leg, market: MarketSnapshot, as_of: Union[date, datetime]) -> float:
    """Kernel price of the leg with its own IV, ignoring any closing price."""
    T = year_fraction(as_of, leg.expiry)
    return black_scholes_price(market.spot, leg.strike, T, market.risk_free_rate,
                               leg.implied_volatility, leg.side.value)


def value_leg(
    leg: Leg,
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    multiplier: int,
    volatility_override: Optional[float] = None
) -> LegValuation:
    """
    Value one leg: current price, P&L decomposition and per-unit Greeks.

    Closed legs keep their P&L (realized) but carry zero Greeks since they
    have no forward risk.

    Raises:
        InvalidPricingInputError: Propagated from the kernel for invalid inputs
    """
    commissions = leg.total_commission_per_contract * abs(leg.quantity)

    if leg.is_closed:
        current_price = leg.closing_price
        volatility_used = None
        greeks = Greeks()
    else:
        T = year_fraction(as_of, leg.expiry)
        volatility_used = _volatility_for(leg, volatility_override)
        if volatility_used != leg.implied_volatility:
            logger.debug(
                f"Leg {leg.id}: volatility override {volatility_used} "
                f"replaces IV {leg.implied_volatility}"
            )
        current_price = black_scholes_price(market.spot, leg.strike, T,
                                            market.risk_free_rate, volatility_used,
                                            leg.side.value)
        greeks = calculate_greeks(market.spot, leg.strike, T, market.risk_free_rate,
                                  volatility_used, leg.side.value)

    points_pnl = (current_price - leg.trade_price) * leg.quantity
    gross_pnl = points_pnl * multiplier

    return LegValuation(
        leg_id=leg.id,
        quantity=leg.quantity,
        current_price=current_price,
        volatility_used=volatility_used,
        points_pnl=points_pnl,
        gross_pnl=gross_pnl,
        commissions=commissions,
        net_pnl=gross_pnl - commissions,
        delta=greeks.delta,
        gamma=greeks.gamma,
        theta=greeks.theta,
        vega=greeks.vega,
        is_closed=leg.is_closed,
        enabled=leg.enabled,
    )


# =============================================================================
# Drafting
# =============================================================================

def with_fair_trade_price(leg: Leg, market: MarketSnapshot, as_of: Union[date, datetime]) -> Leg:
    """Return a copy of the leg whose trade price is its current fair value."""
    return leg.with_changes(trade_price=fair_value(leg, market, as_of))


def draft_leg(
    leg_id: str,
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    settings: Optional[PortfolioSettings] = None,
    side: OptionSide = OptionSide.CALL
) -> Leg:
    """
    Draft a new one-lot leg near the money.

    The strike is the spot rounded to the nearest STRIKE_STEP, the expiry is
    the third Friday of the following month, the IV is
    DEFAULT_DRAFT_VOLATILITY and the trade price is the fair value.
    Commissions come from PortfolioSettings when given.

    Example:
        >>> leg = draft_leg('leg-1', MarketSnapshot(spot=24512.0), datetime(2024, 2, 1))
        >>> leg.strike, leg.expiry
        (24500.0, datetime.date(2024, 3, 15))
    """
    settings = settings or PortfolioSettings()
    opening_date = as_of.date() if isinstance(as_of, datetime) else as_of

    leg = Leg(
        id=leg_id,
        side=side,
        strike=float(max(round(market.spot / STRIKE_STEP), 1) * STRIKE_STEP),
        expiry=default_expiry(as_of),
        quantity=1,
        trade_price=0.0,
        implied_volatility=DEFAULT_DRAFT_VOLATILITY,
        opening_commission=settings.default_opening_commission,
        closing_commission=settings.default_closing_commission,
        opening_date=opening_date,
    )
    return with_fair_trade_price(leg, market, as_of)
