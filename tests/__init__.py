"""
Test Suite for optionbook

Unit tests for the pricing kernel, the leg/structure records and the
portfolio analytics, organized by module.

Test modules:
    - test_pricing: Black-Scholes prices, Greeks and the intrinsic regime
    - test_leg: Leg validation, close/reopen and expiry helpers
    - test_structure: Structure invariants, edits and lifecycle
    - test_valuation: Per-leg valuation, volatility override and drafting
    - test_pnl: Realized/unrealized P&L per structure and portfolio
    - test_greeks: Net Greeks in points and currency
    - test_payoff: Price grid sampling and payoff profiles
    - test_metrics: Equity curve, drawdown and trade statistics
    - test_config: Portfolio files, environments and logging

Run all tests:
    pytest tests/ -v

Run specific test file:
    pytest tests/test_payoff.py -v

Run with coverage:
    pytest tests/ --cov=optionbook --cov-report=term-missing
"""
