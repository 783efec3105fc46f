"""
Equity and Drawdown Analytics over Closed Structures

This module turns the frozen realized P&L of CLOSED structures into an
equity curve, a drawdown series and summary trade statistics.

Ordering:
    Structures are ordered by the serial number embedded in their tag
    ("Trade 12" -> 12) when every structure carries one; otherwise by
    effective closing date (latest leg closing date, else the structure's
    own), with undated structures first. The sort is stable so ties keep
    their input order.

Formulas:
    Equity(0)     = initial capital
    Equity(i)     = Equity(i-1) + realized_pnl(i)
    Drawdown(i)   = Equity(i) - max(Equity(0..i))       (always <= 0)
    Max Drawdown  = min(Drawdown), 0 with fewer than two points
    Win Rate      = winners / trades                    (fraction, 0 without trades)
    Profit Factor = gross profit / |gross loss|         (inf when gross loss is 0)

Usage:
    from optionbook.analytics.metrics import build_equity_curve, calculate_key_metrics

    curve = build_equity_curve(structures, initial_capital=10000.0)
    metrics = calculate_key_metrics(structures, initial_capital=10000.0)
    print(f"Max drawdown: {metrics.max_drawdown:.2f}")
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from optionbook.core.structure import Structure

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

INITIAL_POINT_LABEL = "Initial capital"

# Minimum points for a meaningful drawdown
MIN_POINTS_FOR_DRAWDOWN = 2


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class EquityPoint:
    """
    One point of the equity curve.

    Attributes:
        sequence: Position in the curve, 0 for the starting point
        label: Structure tag, or INITIAL_POINT_LABEL for the starting point
        equity: Capital after this structure's realized P&L
        drawdown: equity - running peak (<= 0)
        structure_id: Id of the structure, None for the starting point
        closing_date: Effective closing date of the structure
    """

    sequence: int
    label: str
    equity: float
    drawdown: float
    structure_id: Optional[str] = None
    closing_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sequence': self.sequence,
            'label': self.label,
            'equity': self.equity,
            'drawdown': self.drawdown,
            'structure_id': self.structure_id,
            'closing_date': self.closing_date.isoformat() if self.closing_date else None,
        }


@dataclass(frozen=True)
class KeyMetrics:
    """Summary statistics over CLOSED structures."""

    total_net_pnl: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    profit_factor: float = float(np.inf)
    average_win: float = 0.0
    average_loss: float = 0.0  # Positive magnitude
    max_drawdown: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_net_pnl': self.total_net_pnl,
            'total_trades': self.total_trades,
            'winning_trades': self.winning_trades,
            'losing_trades': self.losing_trades,
            'win_rate': self.win_rate,
            'profit_factor': self.profit_factor,
            'average_win': self.average_win,
            'average_loss': self.average_loss,
            'max_drawdown': self.max_drawdown,
        }


# =============================================================================
# Ordering
# =============================================================================

def _closing_sort_key(structure: Structure) -> Tuple[int, date]:
    closing = structure.effective_closing_date
    if closing is None:
        return (0, date.min)
    return (1, closing)


def order_closed_structures(structures: Iterable[Structure]) -> List[Structure]:
    """
    CLOSED structures in equity order.

    By serial number when every closed structure has one, otherwise by
    effective closing date with undated structures first. Stable.
    """
    closed = [s for s in structures if s.is_closed]
    if closed and all(s.serial_number is not None for s in closed):
        return sorted(closed, key=lambda s: s.serial_number)
    return sorted(closed, key=_closing_sort_key)


# =============================================================================
# Equity Curve
# =============================================================================

def build_equity_curve(
    structures: Iterable[Structure],
    initial_capital: float
) -> Tuple[EquityPoint, ...]:
    """
    Build the equity curve of the CLOSED structures.

    Args:
        structures: Structures of the portfolio; ACTIVE ones are ignored
        initial_capital: Starting capital

    Returns:
        Tuple of EquityPoint, the synthetic starting point first

    Example:
        >>> curve = build_equity_curve([closed_structure], 10000.0)
        >>> [p.equity for p in curve]
        [10000.0, 9879.5]
    """
    ordered = order_closed_structures(structures)

    equity_values = [float(initial_capital)]
    cumulative_pnl = 0.0
    for structure in ordered:
        cumulative_pnl += structure.realized_pnl
        equity_values.append(float(initial_capital) + cumulative_pnl)

    # Running peak includes the starting capital
    equity = pd.Series(equity_values, dtype=np.float64)
    running_max = equity.expanding().max()
    drawdowns = (equity - running_max).tolist()

    points = [EquityPoint(sequence=0, label=INITIAL_POINT_LABEL,
                          equity=equity_values[0], drawdown=drawdowns[0])]
    for i, structure in enumerate(ordered, start=1):
        points.append(EquityPoint(
            sequence=i,
            label=structure.tag,
            equity=equity_values[i],
            drawdown=drawdowns[i],
            structure_id=structure.id,
            closing_date=structure.effective_closing_date,
        ))

    return tuple(points)


def equity_curve_frame(points: Sequence[EquityPoint]) -> pd.DataFrame:
    """Equity curve as a DataFrame indexed by sequence."""
    frame = pd.DataFrame(
        [p.to_dict() for p in points],
        columns=['sequence', 'label', 'equity', 'drawdown', 'structure_id', 'closing_date'],
    )
    return frame.set_index('sequence')


# =============================================================================
# Trade Statistics
# =============================================================================

def calculate_key_metrics(
    structures: Iterable[Structure],
    initial_capital: float
) -> KeyMetrics:
    """
    Summary statistics over the CLOSED structures.

    Note:
        profit_factor is infinite when there is no losing trade (including
        no trades at all) and 0 when there are losses but no wins.
        average_loss is reported as a positive magnitude.
    """
    structures = list(structures)
    closed = [s for s in structures if s.is_closed]
    pnls = np.array([s.realized_pnl for s in closed], dtype=np.float64)

    wins = pnls[pnls > 0]
    losses = pnls[pnls < 0]
    gross_profit = float(wins.sum())
    gross_loss = float(abs(losses.sum()))

    total_trades = len(closed)
    profit_factor = gross_profit / gross_loss if gross_loss > 0 else float(np.inf)

    curve = build_equity_curve(closed, initial_capital)
    if len(curve) >= MIN_POINTS_FOR_DRAWDOWN:
        max_drawdown = min(p.drawdown for p in curve)
    else:
        max_drawdown = 0.0

    return KeyMetrics(
        total_net_pnl=float(pnls.sum()),
        total_trades=total_trades,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / total_trades if total_trades > 0 else 0.0,
        profit_factor=profit_factor,
        average_win=gross_profit / len(wins) if len(wins) > 0 else 0.0,
        average_loss=gross_loss / len(losses) if len(losses) > 0 else 0.0,
        max_drawdown=max_drawdown,
    )


def calculate_monthly_pnl(structures: Iterable[Structure]) -> pd.Series:
    """
    Realized P&L of CLOSED structures grouped by closing month.

    Returns:
        Series indexed by 'YYYY-MM' in ascending order. Structures without
        any closing date are left out.
    """
    totals: Dict[str, float] = {}
    for structure in structures:
        if not structure.is_closed:
            continue
        closing = structure.effective_closing_date
        if closing is None:
            logger.debug(f"Structure {structure.id} has no closing date, not in monthly P&L")
            continue
        key = f"{closing.year:04d}-{closing.month:02d}"
        totals[key] = totals.get(key, 0.0) + structure.realized_pnl

    series = pd.Series(totals, dtype=np.float64, name='pnl')
    series.index.name = 'month'
    return series.sort_index()


def trade_pnl_series(structures: Iterable[Structure]) -> pd.Series:
    """Realized P&L per CLOSED structure, keyed by tag, in equity order."""
    ordered = order_closed_structures(structures)
    return pd.Series(
        [s.realized_pnl for s in ordered],
        index=pd.Index([s.tag for s in ordered], name='tag'),
        dtype=np.float64,
        name='pnl',
    )
