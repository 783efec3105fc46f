"""
Option Structure for the Portfolio Engine

A Structure is a named group of legs traded together (a strangle, an iron
condor, a calendar) sharing one contract multiplier. Structures are
immutable; every edit and lifecycle transition returns a new Structure.

Lifecycle:
    ACTIVE --close(realized_pnl)--> CLOSED --reopen()--> ACTIVE

    A structure can only be closed once every leg carries a non-zero
    closing price. Closing freezes the realized P&L on the structure;
    reopening clears it together with the closing date.

Ordering helpers:
    serial_number: integer suffix of the tag ("Trade 12" -> 12)
    effective_closing_date: latest leg closing date, falling back to the
                            structure's own closing date

Usage:
    from optionbook.core.structure import Structure, Multiplier

    structure = Structure(id='s-1', tag='Strangle 1', legs=(call_leg, put_leg),
                          multiplier=Multiplier.INDEX)
    structure = structure.with_tag('Strangle 2')
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from optionbook.core.leg import Leg, _format_date, _parse_date

# Configure module logger
logger = logging.getLogger(__name__)

_SERIAL_PATTERN = re.compile(r'(\d+)$')


# =============================================================================
# Exceptions
# =============================================================================

class StructureError(Exception):
    """Base exception for Structure errors."""
    pass


class StructureValidationError(StructureError, ValueError):
    """Exception raised when structure validation fails."""
    pass


class StructureStateError(StructureError):
    """Exception raised for an edit or transition not allowed in the current status."""
    pass


# =============================================================================
# Enums
# =============================================================================

class Multiplier(IntEnum):
    """Currency value of one index point per contract."""

    CFD = 1
    INDEX = 5
    FUTURE = 25


class StructureStatus(str, Enum):
    """Lifecycle status of a structure."""

    ACTIVE = "Active"
    CLOSED = "Closed"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


# =============================================================================
# Structure
# =============================================================================

@dataclass(frozen=True)
class Structure:
    """
    Named group of option legs with a shared multiplier.

    Attributes:
        id: Opaque identity of the structure
        tag: Display name; a trailing integer is used as serial number
        legs: Tuple of Leg objects (order is preserved)
        multiplier: Multiplier.CFD, Multiplier.INDEX or Multiplier.FUTURE
        status: StructureStatus.ACTIVE or StructureStatus.CLOSED
        realized_pnl: Frozen net P&L in currency, set only when CLOSED
        closing_date: Date the structure was closed
        created_at: When the structure was created (informational)
    """

    id: str
    tag: str
    legs: Tuple[Leg, ...] = ()
    multiplier: Multiplier = Multiplier.INDEX
    status: StructureStatus = StructureStatus.ACTIVE
    realized_pnl: Optional[float] = None
    closing_date: Optional[date] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise StructureValidationError("id must be a non-empty string")

        object.__setattr__(self, 'legs', tuple(self.legs))
        for leg in self.legs:
            if not isinstance(leg, Leg):
                raise StructureValidationError(
                    f"legs must contain Leg objects, got {type(leg)}"
                )

        leg_ids = [leg.id for leg in self.legs]
        if len(set(leg_ids)) != len(leg_ids):
            raise StructureValidationError(f"duplicate leg ids in structure {self.id}")

        try:
            object.__setattr__(self, 'multiplier', Multiplier(int(self.multiplier)))
        except (TypeError, ValueError) as e:
            raise StructureValidationError(
                f"multiplier must be one of {[m.value for m in Multiplier]}, "
                f"got {self.multiplier}"
            ) from e

        try:
            object.__setattr__(self, 'status', StructureStatus(self.status))
        except ValueError as e:
            raise StructureValidationError(f"invalid status: {self.status}") from e

        if self.status == StructureStatus.CLOSED:
            if self.realized_pnl is None or not np.isfinite(self.realized_pnl):
                raise StructureValidationError(
                    f"closed structure {self.id} must carry a finite realized_pnl"
                )
        elif self.realized_pnl is not None:
            raise StructureValidationError(
                f"active structure {self.id} cannot carry a realized_pnl"
            )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_closed(self) -> bool:
        return self.status == StructureStatus.CLOSED

    @property
    def is_active(self) -> bool:
        return self.status == StructureStatus.ACTIVE

    @property
    def enabled_legs(self) -> Tuple[Leg, ...]:
        return tuple(leg for leg in self.legs if leg.enabled)

    @property
    def open_legs(self) -> Tuple[Leg, ...]:
        """Enabled legs that are not closed."""
        return tuple(leg for leg in self.enabled_legs if not leg.is_closed)

    @property
    def closed_legs(self) -> Tuple[Leg, ...]:
        """Enabled legs that are closed."""
        return tuple(leg for leg in self.enabled_legs if leg.is_closed)

    @property
    def strikes(self) -> List[float]:
        """Strikes of the enabled legs, in leg order."""
        return [leg.strike for leg in self.enabled_legs]

    @property
    def earliest_expiry(self) -> Optional[date]:
        """Earliest expiry among enabled legs, None without enabled legs."""
        expiries = [leg.expiry for leg in self.enabled_legs]
        return min(expiries) if expiries else None

    @property
    def serial_number(self) -> Optional[int]:
        match = _SERIAL_PATTERN.search(self.tag or '')
        return int(match.group(1)) if match else None

    @property
    def effective_closing_date(self) -> Optional[date]:
        """Latest leg closing date, else the structure's closing date."""
        leg_dates = [leg.closing_date for leg in self.legs if leg.closing_date is not None]
        if leg_dates:
            return max(leg_dates)
        return self.closing_date

    def get_leg(self, leg_id: str) -> Leg:
        for leg in self.legs:
            if leg.id == leg_id:
                return leg
        raise KeyError(f"leg {leg_id} not found in structure {self.id}")

    # =========================================================================
    # Edits
    # =========================================================================

    def _require_active(self, action: str) -> None:
        if self.is_closed:
            raise StructureStateError(f"cannot {action}: structure {self.id} is closed")

    def add_leg(self, leg: Leg) -> 'Structure':
        self._require_active('add leg')
        return replace(self, legs=self.legs + (leg,))

    def replace_leg(self, leg: Leg) -> 'Structure':
        """Replace the leg with the same id."""
        self._require_active('replace leg')
        self.get_leg(leg.id)
        return replace(
            self,
            legs=tuple(leg if existing.id == leg.id else existing for existing in self.legs),
        )

    def remove_leg(self, leg_id: str) -> 'Structure':
        self._require_active('remove leg')
        self.get_leg(leg_id)
        return replace(self, legs=tuple(leg for leg in self.legs if leg.id != leg_id))

    def with_legs(self, legs: Iterable[Leg]) -> 'Structure':
        self._require_active('edit legs')
        return replace(self, legs=tuple(legs))

    def with_tag(self, tag: str) -> 'Structure':
        self._require_active('rename')
        return replace(self, tag=tag)

    def with_multiplier(self, multiplier: int) -> 'Structure':
        self._require_active('change multiplier')
        return replace(self, multiplier=Multiplier(int(multiplier)))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self, realized_pnl: float, closing_date: Optional[date] = None) -> 'Structure':
        """
        Return a CLOSED copy of the structure carrying the frozen P&L.

        Every leg (enabled or not) must carry a non-zero closing price.

        Args:
            realized_pnl: Net P&L in currency to freeze on the structure
            closing_date: Closing date; defaults to the latest leg closing date

        Raises:
            StructureStateError: If already closed or any leg is still open
        """
        if self.is_closed:
            raise StructureStateError(f"structure {self.id} is already closed")

        open_ids = [leg.id for leg in self.legs if not leg.is_closed]
        if open_ids:
            raise StructureStateError(
                f"cannot close structure {self.id}: legs without closing price: "
                f"{', '.join(open_ids)}"
            )

        if not self.enabled_legs:
            logger.warning(f"Closing structure {self.id} with no enabled legs")

        closed = replace(
            self,
            status=StructureStatus.CLOSED,
            realized_pnl=float(realized_pnl),
            closing_date=closing_date or self.effective_closing_date,
        )
        logger.debug(f"Closed structure {self.id} with realized P&L {realized_pnl:.2f}")
        return closed

    def reopen(self) -> 'Structure':
        """Return an ACTIVE copy with realized P&L and closing date cleared."""
        if self.is_active:
            raise StructureStateError(f"structure {self.id} is not closed")
        logger.debug(f"Reopened structure {self.id}")
        return replace(
            self,
            status=StructureStatus.ACTIVE,
            realized_pnl=None,
            closing_date=None,
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tag': self.tag,
            'legs': [leg.to_dict() for leg in self.legs],
            'multiplier': int(self.multiplier),
            'status': self.status.value,
            'realized_pnl': self.realized_pnl,
            'closing_date': _format_date(self.closing_date),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Structure':
        created_at = data.get('created_at')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        realized_pnl = data.get('realized_pnl')
        return cls(
            id=str(data['id']),
            tag=str(data.get('tag', '')),
            legs=tuple(Leg.from_dict(leg) for leg in data.get('legs', [])),
            multiplier=int(data.get('multiplier', Multiplier.INDEX)),
            status=StructureStatus(data.get('status', StructureStatus.ACTIVE.value)),
            realized_pnl=float(realized_pnl) if realized_pnl is not None else None,
            closing_date=_parse_date(data.get('closing_date')),
            created_at=created_at,
        )

    def __str__(self) -> str:
        return (
            f"Structure({self.tag!r}, {len(self.legs)} legs, "
            f"x{int(self.multiplier)}, {self.status.value})"
        )
