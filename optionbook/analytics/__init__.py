"""
Analytics Module for the Portfolio Engine

Valuation and aggregation on top of the core records. Every function is
pure: inputs are immutable snapshots plus an explicit ``as_of`` instant,
outputs are immutable result objects.

Components:
    - valuation: per-leg price, P&L and Greeks; leg drafting
    - pnl: structure and portfolio P&L, realized vs unrealized
    - greeks: structure and portfolio net Greeks
    - payoff: adaptive price grid and expiry/simulated payoff curves
    - metrics: equity curve, drawdown and trade statistics
"""

from optionbook.analytics.valuation import (
    LegValuation,
    leg_current_price,
    value_leg,
    fair_value,
    with_fair_trade_price,
    draft_leg,
    STRIKE_STEP,
)

from optionbook.analytics.pnl import (
    PnlBreakdown,
    StructurePnl,
    PortfolioPnl,
    aggregate_structure_pnl,
    aggregate_portfolio_pnl,
    close_structure,
)

from optionbook.analytics.greeks import (
    PositionGreeks,
    aggregate_greeks,
    structure_greeks,
    portfolio_greeks,
)

from optionbook.analytics.payoff import (
    PayoffError,
    PayoffPoint,
    PayoffCurve,
    sample_price_grid,
    build_payoff_curve,
    SAMPLE_COUNT,
    MIN_POINT_SPACING,
)

from optionbook.analytics.metrics import (
    EquityPoint,
    KeyMetrics,
    order_closed_structures,
    build_equity_curve,
    equity_curve_frame,
    calculate_key_metrics,
    calculate_monthly_pnl,
    trade_pnl_series,
)

__all__ = [
    # Valuation
    "LegValuation",
    "leg_current_price",
    "value_leg",
    "fair_value",
    "with_fair_trade_price",
    "draft_leg",
    "STRIKE_STEP",
    # PnL
    "PnlBreakdown",
    "StructurePnl",
    "PortfolioPnl",
    "aggregate_structure_pnl",
    "aggregate_portfolio_pnl",
    "close_structure",
    # Greeks
    "PositionGreeks",
    "aggregate_greeks",
    "structure_greeks",
    "portfolio_greeks",
    # Payoff
    "PayoffError",
    "PayoffPoint",
    "PayoffCurve",
    "sample_price_grid",
    "build_payoff_curve",
    "SAMPLE_COUNT",
    "MIN_POINT_SPACING",
    # Metrics
    "EquityPoint",
    "KeyMetrics",
    "order_closed_structures",
    "build_equity_curve",
    "equity_curve_frame",
    "calculate_key_metrics",
    "calculate_monthly_pnl",
    "trade_pnl_series",
]
