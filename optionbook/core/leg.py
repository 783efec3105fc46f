"""
Option Leg for the Portfolio Engine

This module provides the Leg value object representing a single option
position (one side/strike/expiry/quantity) inside a structure. Legs are
immutable: every edit returns a new Leg, so valuation functions can never
have observable side effects on the records they read.

Key Features:
    - Signed quantity (positive = long, negative = short)
    - Closed/open state derived from the closing price
    - Enabled flag (disabled legs are kept but excluded from aggregation)
    - Serialization support (to_dict / from_dict)
    - Default expiry helpers (third Friday of the month)

P&L Conventions:
    points P&L = (current_price - trade_price) * quantity
    The single signed expression covers both long and short legs because
    the quantity carries the sign.

Usage:
    from datetime import date
    from optionbook.core.leg import Leg, OptionSide

    leg = Leg(
        id='leg-1',
        side=OptionSide.CALL,
        strike=24500.0,
        expiry=date(2024, 3, 15),
        quantity=-2,
        trade_price=310.0,
        implied_volatility=0.15,
    )
    closed = leg.close(closing_price=120.0, closing_date=date(2024, 3, 1))
    assert closed.is_closed and not leg.is_closed
"""

import calendar
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

import numpy as np

from optionbook.core.pricing import intrinsic_value

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class LegError(Exception):
    """Base exception for Leg errors."""
    pass


class LegValidationError(LegError, ValueError):
    """Exception raised when leg validation fails."""
    pass


# =============================================================================
# Enums and Helpers
# =============================================================================

class OptionSide(str, Enum):
    """Option side."""

    CALL = "call"
    PUT = "put"

    @classmethod
    def parse(cls, value: Union[str, 'OptionSide']) -> 'OptionSide':
        if isinstance(value, OptionSide):
            return value
        normalized = str(value).lower().strip()
        if normalized in ('call', 'c'):
            return cls.CALL
        if normalized in ('put', 'p'):
            return cls.PUT
        raise LegValidationError(f"side must be 'call' or 'put', got '{value}'")


def third_friday(year: int, month: int) -> date:
    """
    Return the third Friday of a month (standard index option expiry).

    Example:
        >>> third_friday(2024, 3)
        datetime.date(2024, 3, 15)
    """
    first_weekday = date(year, month, 1).weekday()
    offset = (calendar.FRIDAY - first_weekday) % 7
    return date(year, month, 1 + offset + 14)


def default_expiry(as_of: Union[date, datetime]) -> date:
    """Third Friday of the month following as_of."""
    if as_of.month == 12:
        return third_friday(as_of.year + 1, 1)
    return third_friday(as_of.year, as_of.month + 1)


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# =============================================================================
# Leg
# =============================================================================

@dataclass(frozen=True)
class Leg:
    """
    A single option position within a structure.

    Attributes:
        id: Opaque identity of the leg
        side: OptionSide.CALL or OptionSide.PUT
        strike: Strike price (> 0)
        expiry: Expiration date
        quantity: Signed number of contracts (positive = long, negative = short)
        trade_price: Cost basis in points
        implied_volatility: Leg-specific annualized volatility as a decimal
        opening_commission: Commission per contract paid to open (>= 0)
        closing_commission: Commission per contract paid to close (>= 0)
        closing_price: Price the leg was closed at; a non-zero value closes it
        closing_date: Date the leg was closed
        opening_date: Date the leg was opened
        enabled: Disabled legs are excluded from every aggregation

    Properties:
        is_closed (bool): True when closing_price is set and non-zero
        is_long (bool): True when quantity > 0
        is_short (bool): True when quantity < 0
    """

    id: str
    side: OptionSide
    strike: float
    expiry: date
    quantity: int
    trade_price: float
    implied_volatility: float
    opening_commission: float = 0.0
    closing_commission: float = 0.0
    closing_price: Optional[float] = None
    closing_date: Optional[date] = None
    opening_date: Optional[date] = None
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.id:
            raise LegValidationError("id must be a non-empty string")

        object.__setattr__(self, 'side', OptionSide.parse(self.side))

        if self.strike is None or not np.isfinite(self.strike) or self.strike <= 0:
            raise LegValidationError(f"strike must be positive and finite, got {self.strike}")

        if not isinstance(self.expiry, date):
            raise LegValidationError(
                f"expiry must be a date object, got {type(self.expiry)}"
            )
        if isinstance(self.expiry, datetime):
            object.__setattr__(self, 'expiry', self.expiry.date())

        if isinstance(self.quantity, bool) or not isinstance(self.quantity, (int, np.integer)):
            raise LegValidationError(
                f"quantity must be an integer, got {type(self.quantity)}"
            )
        if self.quantity == 0:
            raise LegValidationError("quantity must be non-zero")
        object.__setattr__(self, 'quantity', int(self.quantity))

        if self.trade_price is None or not np.isfinite(self.trade_price):
            raise LegValidationError(f"trade_price must be finite, got {self.trade_price}")

        if (self.implied_volatility is None or not np.isfinite(self.implied_volatility)
                or self.implied_volatility < 0):
            raise LegValidationError(
                f"implied_volatility must be non-negative and finite, got {self.implied_volatility}"
            )

        for name in ('opening_commission', 'closing_commission'):
            value = getattr(self, name)
            if value is None or not np.isfinite(value) or value < 0:
                raise LegValidationError(f"{name} must be non-negative, got {value}")

        if self.closing_price is not None and not np.isfinite(self.closing_price):
            raise LegValidationError(
                f"closing_price must be finite, got {self.closing_price}"
            )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_closed(self) -> bool:
        """A leg with a non-zero closing price is closed and frozen."""
        return self.closing_price is not None and self.closing_price != 0

    @property
    def is_long(self) -> bool:
        return self.quantity > 0

    @property
    def is_short(self) -> bool:
        return self.quantity < 0

    @property
    def is_call(self) -> bool:
        return self.side == OptionSide.CALL

    @property
    def is_put(self) -> bool:
        return self.side == OptionSide.PUT

    @property
    def total_commission_per_contract(self) -> float:
        return self.opening_commission + self.closing_commission

    def intrinsic_value(self, spot: float) -> float:
        """Intrinsic value of one contract at the given spot."""
        return intrinsic_value(spot, self.strike, self.side.value)

    # =========================================================================
    # Edits (each returns a new Leg)
    # =========================================================================

    def with_changes(self, **changes: Any) -> 'Leg':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def close(self, closing_price: float, closing_date: Optional[date] = None) -> 'Leg':
        """
        Return a closed copy of the leg.

        An existing closing date is kept; otherwise the supplied date is used.

        Raises:
            LegValidationError: If closing_price is zero or missing
        """
        if closing_price is None or closing_price == 0:
            raise LegValidationError(
                f"closing_price must be non-zero to close leg {self.id}"
            )
        logger.debug(f"Closing leg {self.id} at {closing_price}")
        return replace(
            self,
            closing_price=float(closing_price),
            closing_date=self.closing_date or closing_date,
        )

    def reopen(self) -> 'Leg':
        """Return an open copy of the leg with closing data cleared."""
        return replace(self, closing_price=None, closing_date=None)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'side': self.side.value,
            'strike': self.strike,
            'expiry': _format_date(self.expiry),
            'quantity': self.quantity,
            'trade_price': self.trade_price,
            'implied_volatility': self.implied_volatility,
            'opening_commission': self.opening_commission,
            'closing_commission': self.closing_commission,
            'closing_price': self.closing_price,
            'closing_date': _format_date(self.closing_date),
            'opening_date': _format_date(self.opening_date),
            'enabled': self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Leg':
        """
        Create a Leg from a dictionary.

        Missing commissions default to 0 and a missing enabled flag to True.
        """
        closing_price = data.get('closing_price')
        return cls(
            id=str(data['id']),
            side=OptionSide.parse(data['side']),
            strike=float(data['strike']),
            expiry=_parse_date(data['expiry']),
            quantity=int(data['quantity']),
            trade_price=float(data['trade_price']),
            implied_volatility=float(data['implied_volatility']),
            opening_commission=float(data.get('opening_commission') or 0.0),
            closing_commission=float(data.get('closing_commission') or 0.0),
            closing_price=float(closing_price) if closing_price is not None else None,
            closing_date=_parse_date(data.get('closing_date')),
            opening_date=_parse_date(data.get('opening_date')),
            enabled=bool(data.get('enabled', True)),
        )

    def __str__(self) -> str:
        direction = 'LONG' if self.is_long else 'SHORT'
        state = f" closed @ {self.closing_price:.2f}" if self.is_closed else ''
        return (
            f"{direction} {abs(self.quantity)} {self.strike:g} {self.side.value.upper()} "
            f"exp {self.expiry.isoformat()} @ {self.trade_price:.2f}{state}"
        )
