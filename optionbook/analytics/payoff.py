"""
Payoff Curve Sampler

Builds a dense, non-uniform price grid around a structure's strikes and
evaluates two P&L profiles across it:

    expiry:    P&L at the earliest expiry among the open, enabled legs.
               Legs expiring then are worth their intrinsic value; later
               legs keep their remaining time value (kernel price).
    simulated: P&L after a fraction of the time to that expiry has
               elapsed, each leg priced with its own reduced time.

Grid construction:
    1. Domain [lo, hi] spans every enabled strike and the spot.
    2. spread = max(hi - lo, 1% of spot)
    3. padding = lerp(0.1 * spread, max(5 * spread, 0.3 * spot), zoom)
    4. Bounds floor(lo - padding) and ceil(hi + padding), kept positive
    5. SAMPLE_COUNT evenly spaced intervals, plus critical points at the
       spot and at each strike +-0.5 so payoff kinks stay sharp
    6. Sort and drop points within MIN_POINT_SPACING of the last kept one

P&L is in currency (points x multiplier) and gross of commissions. A
CLOSED structure renders as a flat line at its realized P&L.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from optionbook.core.leg import Leg
from optionbook.core.market import MarketSnapshot
from optionbook.core.pricing import black_scholes_price_vectorized, year_fraction
from optionbook.core.structure import Structure

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SAMPLE_COUNT = 150
MIN_POINT_SPACING = 0.1

# Minimum domain width as a fraction of spot
MIN_SPREAD_FRACTION = 0.01

# Padding at zoom = 0 (fraction of spread)
MIN_PADDING_FRACTION = 0.1

# Padding at zoom = 1: max(spread multiple, spot fraction)
MAX_PADDING_SPREAD_MULTIPLE = 5.0
MAX_PADDING_SPOT_FRACTION = 0.3

# Offset of the critical points placed on either side of each strike
STRIKE_KINK_OFFSET = 0.5


class PayoffError(ValueError):
    """Exception raised for invalid payoff sampling parameters."""
    pass


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class PayoffPoint:
    """P&L of a structure at one underlying price."""

    spot: float
    pnl_expiry: float
    pnl_simulated: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'spot': self.spot,
            'pnl_expiry': self.pnl_expiry,
            'pnl_simulated': self.pnl_simulated,
        }


@dataclass(frozen=True)
class PayoffCurve:
    """
    Sampled payoff profile of a structure.

    Attributes:
        points: PayoffPoints in strictly increasing spot order
        earliest_expiry: Expiry the expiry profile refers to
        is_flat: True for a CLOSED structure rendered at its realized P&L
        time_fraction: Fraction of time to expiry used for the simulation
    """

    points: Tuple[PayoffPoint, ...] = ()
    earliest_expiry: Optional[date] = None
    is_flat: bool = False
    time_fraction: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.points

    @property
    def spots(self) -> np.ndarray:
        return np.array([p.spot for p in self.points], dtype=np.float64)

    @property
    def expiry_pnl(self) -> np.ndarray:
        return np.array([p.pnl_expiry for p in self.points], dtype=np.float64)

    @property
    def simulated_pnl(self) -> np.ndarray:
        return np.array([p.pnl_simulated for p in self.points], dtype=np.float64)

    @property
    def max_profit(self) -> Optional[float]:
        """Highest expiry P&L across the sampled range."""
        if self.is_empty:
            return None
        return float(self.expiry_pnl.max())

    @property
    def max_loss(self) -> Optional[float]:
        """Lowest expiry P&L across the sampled range."""
        if self.is_empty:
            return None
        return float(self.expiry_pnl.min())

    def value_at(self, spot: float) -> Optional[PayoffPoint]:
        """Sample nearest to the given spot (first one on ties)."""
        if self.is_empty:
            return None
        index = int(np.argmin(np.abs(self.spots - spot)))
        return self.points[index]

    def breakeven_points(self, simulated: bool = False) -> List[float]:
        """
        Underlying prices where the P&L crosses zero.

        Crossings between two samples are located by linear interpolation;
        a sample exactly at zero is reported as is.

        Args:
            simulated: Use the simulated profile instead of the expiry one
        """
        if self.is_empty or self.is_flat:
            return []

        spots = self.spots
        values = self.simulated_pnl if simulated else self.expiry_pnl

        breakevens = []
        for i in range(len(values)):
            if values[i] == 0:
                breakevens.append(float(spots[i]))
                continue
            if i + 1 < len(values) and values[i + 1] != 0 and values[i] * values[i + 1] < 0:
                weight = values[i] / (values[i] - values[i + 1])
                breakevens.append(float(spots[i] + weight * (spots[i + 1] - spots[i])))

        return breakevens

    def to_frame(self) -> pd.DataFrame:
        """DataFrame indexed by spot with expiry and simulated P&L columns."""
        return pd.DataFrame(
            {'pnl_expiry': self.expiry_pnl, 'pnl_simulated': self.simulated_pnl},
            index=pd.Index(self.spots, name='spot'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'points': [p.to_dict() for p in self.points],
            'earliest_expiry': self.earliest_expiry.isoformat() if self.earliest_expiry else None,
            'is_flat': self.is_flat,
            'time_fraction': self.time_fraction,
        }


# =============================================================================
# Grid Sampling
# =============================================================================

def sample_price_grid(strikes: Sequence[float], spot: float, zoom: float = 0.2) -> np.ndarray:
    """
    Build the strictly increasing price grid for a payoff chart.

    Args:
        strikes: Strikes of the legs to chart
        spot: Current underlying price (> 0)
        zoom: Fraction in [0, 1]; 0 hugs the strikes, 1 zooms out

    Returns:
        numpy array of prices, first element the padded lower bound and
        last element the padded upper bound

    Raises:
        PayoffError: If spot is not positive or zoom is outside [0, 1]

    Example:
        >>> grid = sample_price_grid([24000, 25000], spot=24500, zoom=0.2)
        >>> bool(np.all(np.diff(grid) > 0))
        True
    """
    if spot is None or not np.isfinite(spot) or spot <= 0:
        raise PayoffError(f"spot must be positive and finite, got {spot}")
    if zoom is None or not (0.0 <= zoom <= 1.0):
        raise PayoffError(f"zoom must be within [0, 1], got {zoom}")

    anchors = [float(k) for k in strikes] + [float(spot)]
    lo = min(anchors)
    hi = max(anchors)

    spread = max(hi - lo, spot * MIN_SPREAD_FRACTION)
    min_padding = spread * MIN_PADDING_FRACTION
    max_padding = max(spread * MAX_PADDING_SPREAD_MULTIPLE, spot * MAX_PADDING_SPOT_FRACTION)
    padding = min_padding + (max_padding - min_padding) * zoom

    x_min = float(math.floor(lo - padding))
    x_max = float(math.ceil(hi + padding))
    if x_min <= 0:
        # Prices must stay positive for the kernel
        x_min = lo / 2.0

    base_points = np.linspace(x_min, x_max, SAMPLE_COUNT + 1)
    critical_points = [float(spot)]
    for strike in strikes:
        critical_points.extend([strike, strike - STRIKE_KINK_OFFSET, strike + STRIKE_KINK_OFFSET])

    candidates = np.concatenate([base_points, np.asarray(critical_points, dtype=np.float64)])
    candidates = np.sort(candidates[(candidates >= x_min) & (candidates <= x_max)], kind='stable')

    kept = [float(candidates[0])]
    for price in candidates[1:]:
        if price - kept[-1] > MIN_POINT_SPACING:
            kept.append(float(price))

    # The upper bound survives deduplication
    if kept[-1] < x_max:
        if len(kept) > 1:
            kept[-1] = x_max
        else:
            kept.append(x_max)

    return np.asarray(kept, dtype=np.float64)


# =============================================================================
# Payoff Evaluation
# =============================================================================

def _leg_points_pnl(leg: Leg, values: np.ndarray) -> np.ndarray:
    return (values - leg.trade_price) * leg.quantity


def _intrinsic_values(leg: Leg, spots: np.ndarray) -> np.ndarray:
    if leg.is_call:
        return np.maximum(spots - leg.strike, 0.0)
    return np.maximum(leg.strike - spots, 0.0)


def build_payoff_curve(
    structure: Structure,
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    zoom: float = 0.2,
    time_fraction: float = 0.0
) -> PayoffCurve:
    """
    Sample the expiry and simulated payoff of a structure.

    Args:
        structure: Structure to chart
        market: Market snapshot (spot and rate)
        as_of: Valuation instant the simulation starts from
        zoom: Grid zoom fraction in [0, 1]
        time_fraction: Fraction in [0, 1] of the time to the earliest
                       expiry that has elapsed in the simulated profile

    Returns:
        PayoffCurve; empty when the structure has no enabled legs

    Raises:
        PayoffError: If zoom or time_fraction is outside [0, 1]
    """
    if time_fraction is None or not (0.0 <= time_fraction <= 1.0):
        raise PayoffError(f"time_fraction must be within [0, 1], got {time_fraction}")

    legs = structure.enabled_legs
    if not legs:
        return PayoffCurve(time_fraction=time_fraction)

    spots = sample_price_grid(structure.strikes, market.spot, zoom)

    if structure.is_closed:
        flat = tuple(
            PayoffPoint(spot=float(s), pnl_expiry=structure.realized_pnl,
                        pnl_simulated=structure.realized_pnl)
            for s in spots
        )
        return PayoffCurve(points=flat, earliest_expiry=structure.earliest_expiry,
                           is_flat=True, time_fraction=time_fraction)

    open_legs = [leg for leg in legs if not leg.is_closed]
    earliest_expiry = min(leg.expiry for leg in open_legs) if open_legs else structure.earliest_expiry

    time_to_earliest = max(year_fraction(as_of, earliest_expiry), 0.0)
    elapsed = time_to_earliest * time_fraction

    expiry_points = np.zeros_like(spots)
    simulated_points = np.zeros_like(spots)

    for leg in legs:
        if leg.is_closed:
            frozen = (leg.closing_price - leg.trade_price) * leg.quantity
            expiry_points += frozen
            simulated_points += frozen
            continue

        if leg.expiry == earliest_expiry:
            at_expiry = _intrinsic_values(leg, spots)
        else:
            remaining = year_fraction(earliest_expiry, leg.expiry)
            at_expiry = black_scholes_price_vectorized(
                spots, leg.strike, remaining, market.risk_free_rate,
                leg.implied_volatility, leg.side.value
            )

        remaining_sim = max(year_fraction(as_of, leg.expiry) - elapsed, 0.0)
        simulated = black_scholes_price_vectorized(
            spots, leg.strike, remaining_sim, market.risk_free_rate,
            leg.implied_volatility, leg.side.value
        )

        expiry_points += _leg_points_pnl(leg, at_expiry)
        simulated_points += _leg_points_pnl(leg, simulated)

    multiplier = int(structure.multiplier)
    points = tuple(
        PayoffPoint(spot=float(s), pnl_expiry=float(e * multiplier), pnl_simulated=float(m * multiplier))
        for s, e, m in zip(spots, expiry_points, simulated_points)
    )

    logger.debug(
        f"Payoff for {structure.id}: {len(points)} points, expiry {earliest_expiry}, "
        f"elapsed {elapsed:.4f}y"
    )
    return PayoffCurve(points=points, earliest_expiry=earliest_expiry,
                       is_flat=False, time_fraction=time_fraction)
