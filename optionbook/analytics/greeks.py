"""
Greeks Aggregator

Sums per-unit leg Greeks scaled by quantity across the open, enabled legs
of a structure or of every active structure in a portfolio. Closed legs
carry no forward risk and contribute nothing.

Units:
    delta, gamma, theta, vega: index points (theta per calendar day,
                               vega per volatility point)
    theta_currency, vega_currency: the same figures times the multiplier
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Union

from optionbook.analytics.valuation import LegValuation, value_leg
from optionbook.core.market import MarketSnapshot
from optionbook.core.structure import Structure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionGreeks:
    """Net Greeks of a structure or portfolio."""

    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    theta_currency: float = 0.0
    vega_currency: float = 0.0

    def __add__(self, other: 'PositionGreeks') -> 'PositionGreeks':
        return PositionGreeks(
            delta=self.delta + other.delta,
            gamma=self.gamma + other.gamma,
            theta=self.theta + other.theta,
            vega=self.vega + other.vega,
            theta_currency=self.theta_currency + other.theta_currency,
            vega_currency=self.vega_currency + other.vega_currency,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            'delta': self.delta,
            'gamma': self.gamma,
            'theta': self.theta,
            'vega': self.vega,
            'theta_currency': self.theta_currency,
            'vega_currency': self.vega_currency,
        }


def aggregate_greeks(valuations: Iterable[LegValuation], multiplier: int) -> PositionGreeks:
    """
    Sum greek * quantity over open, enabled leg valuations.

    Args:
        valuations: Leg valuations of one structure
        multiplier: Currency value of one point for that structure

    Returns:
        PositionGreeks in points plus theta/vega in currency
    """
    delta = gamma = theta = vega = 0.0
    for valuation in valuations:
        if not valuation.enabled or valuation.is_closed:
            continue
        position = valuation.greeks.scaled(valuation.quantity)
        delta += position.delta
        gamma += position.gamma
        theta += position.theta
        vega += position.vega

    return PositionGreeks(
        delta=delta,
        gamma=gamma,
        theta=theta,
        vega=vega,
        theta_currency=theta * multiplier,
        vega_currency=vega * multiplier,
    )


def structure_greeks(
    structure: Structure,
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    volatility_override: Optional[float] = None
) -> PositionGreeks:
    """Net Greeks of one structure's open, enabled legs."""
    valuations = [
        value_leg(leg, market, as_of, structure.multiplier, volatility_override)
        for leg in structure.open_legs
    ]
    return aggregate_greeks(valuations, structure.multiplier)


def portfolio_greeks(
    structures: Iterable[Structure],
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    volatility_override: Optional[float] = None
) -> PositionGreeks:
    """
    Net Greeks over every ACTIVE structure.

    Point Greeks are summed as is; currency Greeks are scaled by each
    structure's own multiplier before summing.
    """
    total = PositionGreeks()
    for structure in structures:
        if not structure.is_active:
            continue
        total = total + structure_greeks(structure, market, as_of, volatility_override)
    return total
