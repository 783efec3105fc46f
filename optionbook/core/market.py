"""
Market Snapshot for the Portfolio Engine

A MarketSnapshot is the immutable set of market inputs for a single
evaluation: underlying spot, risk-free rate and a market-wide volatility
proxy (e.g. a volatility index level expressed as a decimal). Callers
build a fresh snapshot on every market tick; the engine never caches one.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional

import numpy as np

# Configure module logger
logger = logging.getLogger(__name__)


class MarketDataError(ValueError):
    """Exception raised when a market snapshot is invalid."""
    pass


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Immutable market inputs for one evaluation.

    Attributes:
        spot: Underlying index price (> 0)
        risk_free_rate: Annualized risk-free rate as a decimal (e.g. 0.0261)
        volatility_proxy: Market-wide annualized volatility as a decimal.
                          0 means the proxy is unknown.
        timestamp: When the snapshot was taken (informational only)

    Example:
        >>> market = MarketSnapshot(spot=24500.0, risk_free_rate=0.0261, volatility_proxy=0.16)
        >>> market.live_volatility()
        0.16
    """

    spot: float
    risk_free_rate: float = 0.0
    volatility_proxy: float = 0.0
    timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.spot is None or not np.isfinite(self.spot) or self.spot <= 0:
            raise MarketDataError(f"spot must be positive and finite, got {self.spot}")
        if self.risk_free_rate is None or not np.isfinite(self.risk_free_rate):
            raise MarketDataError(
                f"risk_free_rate must be finite, got {self.risk_free_rate}"
            )
        if self.volatility_proxy is None or not np.isfinite(self.volatility_proxy):
            raise MarketDataError(
                f"volatility_proxy must be finite, got {self.volatility_proxy}"
            )
        if self.volatility_proxy < 0:
            raise MarketDataError(
                f"volatility_proxy must be non-negative, got {self.volatility_proxy}"
            )

    def live_volatility(self) -> Optional[float]:
        """Return the volatility proxy when known (> 0), otherwise None."""
        if self.volatility_proxy > 0:
            return self.volatility_proxy
        return None

    def with_spot(self, spot: float) -> 'MarketSnapshot':
        """Return a copy of the snapshot at a simulated spot price."""
        return replace(self, spot=spot)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'spot': self.spot,
            'risk_free_rate': self.risk_free_rate,
            'volatility_proxy': self.volatility_proxy,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MarketSnapshot':
        timestamp = data.get('timestamp')
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            spot=float(data['spot']),
            risk_free_rate=float(data.get('risk_free_rate', 0.0)),
            volatility_proxy=float(data.get('volatility_proxy', 0.0) or 0.0),
            timestamp=timestamp,
        )
