"""
PnL Aggregator

Combines leg valuations into structure and portfolio P&L, split into a
realized bucket (closed legs) and an unrealized bucket (open legs). Only
enabled legs take part.

Closed structures:
    The realized_pnl frozen on a CLOSED structure is the authoritative
    total; the leg-level figures are still recomputed so the point P&L can
    be displayed. At portfolio level CLOSED structures never reach the
    pricing kernel.

Usage:
    from optionbook.analytics.pnl import aggregate_portfolio_pnl

    result = aggregate_portfolio_pnl(structures, market, as_of)
    print(result.active_net_pnl, result.total_realized_pnl)
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from optionbook.analytics.valuation import LegValuation, value_leg
from optionbook.core.market import MarketSnapshot
from optionbook.core.structure import Structure, StructureStatus

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class PnlBreakdown:
    """
    Point, gross, commission and net P&L of a set of legs.

    Attributes:
        points: Sum of (current - trade) * quantity
        gross: points * multiplier, in currency
        commissions: Commissions paid, in currency
        net: gross - commissions
    """

    points: float = 0.0
    gross: float = 0.0
    commissions: float = 0.0
    net: float = 0.0

    @classmethod
    def from_valuation(cls, valuation: LegValuation) -> 'PnlBreakdown':
        return cls(
            points=valuation.points_pnl,
            gross=valuation.gross_pnl,
            commissions=valuation.commissions,
            net=valuation.net_pnl,
        )

    def __add__(self, other: 'PnlBreakdown') -> 'PnlBreakdown':
        return PnlBreakdown(
            points=self.points + other.points,
            gross=self.gross + other.gross,
            commissions=self.commissions + other.commissions,
            net=self.net + other.net,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            'points': self.points,
            'gross': self.gross,
            'commissions': self.commissions,
            'net': self.net,
        }


@dataclass(frozen=True)
class StructurePnl:
    """
    P&L of one structure.

    Attributes:
        structure_id: Id of the structure
        status: Structure status at valuation time
        legs: Valuations of the enabled legs, in leg order
        realized: Closed enabled legs
        unrealized: Open enabled legs
        total: realized + unrealized
        net_pnl: Frozen realized_pnl for a CLOSED structure, else total.net
        total_points: total.points, always recomputed from legs
    """

    structure_id: str
    status: StructureStatus
    legs: Tuple[LegValuation, ...]
    realized: PnlBreakdown
    unrealized: PnlBreakdown
    total: PnlBreakdown
    net_pnl: float
    total_points: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'structure_id': self.structure_id,
            'status': self.status.value,
            'legs': [leg.to_dict() for leg in self.legs],
            'realized': self.realized.to_dict(),
            'unrealized': self.unrealized.to_dict(),
            'total': self.total.to_dict(),
            'net_pnl': self.net_pnl,
            'total_points': self.total_points,
        }


@dataclass(frozen=True)
class PortfolioPnl:
    """
    P&L of a portfolio.

    Attributes:
        realized: Closed legs of ACTIVE structures
        unrealized: Open legs of ACTIVE structures
        active_net_pnl: realized.net + unrealized.net
        active_points: realized.points + unrealized.points
        closed_structures_pnl: Sum of the frozen realized_pnl of CLOSED structures
        total_realized_pnl: realized.net + closed_structures_pnl
        structures: Per-structure results for the ACTIVE structures
    """

    realized: PnlBreakdown = field(default_factory=PnlBreakdown)
    unrealized: PnlBreakdown = field(default_factory=PnlBreakdown)
    active_net_pnl: float = 0.0
    active_points: float = 0.0
    closed_structures_pnl: float = 0.0
    total_realized_pnl: float = 0.0
    structures: Tuple[StructurePnl, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'realized': self.realized.to_dict(),
            'unrealized': self.unrealized.to_dict(),
            'active_net_pnl': self.active_net_pnl,
            'active_points': self.active_points,
            'closed_structures_pnl': self.closed_structures_pnl,
            'total_realized_pnl': self.total_realized_pnl,
            'structures': [s.to_dict() for s in self.structures],
        }


# =============================================================================
# Aggregation
# =============================================================================

def aggregate_structure_pnl(
    structure: Structure,
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    volatility_override: Optional[float] = None
) -> StructurePnl:
    """
    Aggregate the P&L of one structure over its enabled legs.

    Args:
        structure: Structure to value
        market: Market snapshot
        as_of: Valuation instant
        volatility_override: Optional market-wide volatility for open legs

    Returns:
        StructurePnl with realized/unrealized buckets
    """
    valuations = tuple(
        value_leg(leg, market, as_of, structure.multiplier, volatility_override)
        for leg in structure.enabled_legs
    )

    realized = PnlBreakdown()
    unrealized = PnlBreakdown()
    for valuation in valuations:
        if valuation.is_closed:
            realized = realized + PnlBreakdown.from_valuation(valuation)
        else:
            unrealized = unrealized + PnlBreakdown.from_valuation(valuation)

    total = realized + unrealized
    net_pnl = structure.realized_pnl if structure.is_closed else total.net

    return StructurePnl(
        structure_id=structure.id,
        status=structure.status,
        legs=valuations,
        realized=realized,
        unrealized=unrealized,
        total=total,
        net_pnl=net_pnl,
        total_points=total.points,
    )


def aggregate_portfolio_pnl(
    structures: Iterable[Structure],
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    volatility_override: Optional[float] = None
) -> PortfolioPnl:
    """
    Aggregate portfolio P&L.

    ACTIVE structures are valued leg by leg into the realized/unrealized
    buckets; CLOSED structures contribute their frozen realized_pnl only.
    """
    realized = PnlBreakdown()
    unrealized = PnlBreakdown()
    closed_structures_pnl = 0.0
    results = []

    for structure in structures:
        if structure.is_closed:
            closed_structures_pnl += structure.realized_pnl
            continue
        result = aggregate_structure_pnl(structure, market, as_of, volatility_override)
        realized = realized + result.realized
        unrealized = unrealized + result.unrealized
        results.append(result)

    return PortfolioPnl(
        realized=realized,
        unrealized=unrealized,
        active_net_pnl=realized.net + unrealized.net,
        active_points=realized.points + unrealized.points,
        closed_structures_pnl=closed_structures_pnl,
        total_realized_pnl=realized.net + closed_structures_pnl,
        structures=tuple(results),
    )


def close_structure(
    structure: Structure,
    market: MarketSnapshot,
    as_of: Union[date, datetime],
    closing_date: Optional[date] = None
) -> Structure:
    """
    Close a structure, freezing its current net P&L as realized_pnl.

    Every leg must already carry a closing price, so the frozen figure is
    the realized P&L of the enabled legs net of commissions.

    Raises:
        StructureStateError: If the structure is closed or has open legs
    """
    result = aggregate_structure_pnl(structure, market, as_of)
    closed = structure.close(result.net_pnl, closing_date)
    logger.info(f"Structure {structure.id} closed with net P&L {result.net_pnl:.2f}")
    return closed
