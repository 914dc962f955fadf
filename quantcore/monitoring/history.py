"""Rolling portfolio value history.

Keeps the last N total-asset snapshots taken by the evaluation cycle. The
window starts pre-filled with the initial cash value so that a freshly
started engine already has a flat baseline to plot against.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import pandas as pd


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Total asset value at a point in time."""

    total_assets: float
    timestamp: datetime = field(default_factory=datetime.now)


class PortfolioHistory:
    """Fixed-length window of portfolio snapshots.

    Example:
        >>> history = PortfolioHistory(initial_value=100_000_000, length=50)
        >>> history.record(101_000_000)
        >>> history.latest
        101000000.0
        >>> round(history.profit_rate(), 2)
        1.0
    """

    def __init__(self, initial_value: float, length: int = 50):
        """Initialize history.

        Args:
            initial_value: Starting portfolio value (baseline for profit rate)
            length: Number of snapshots kept

        Raises:
            ValueError: If length < 2 or initial_value < 0
        """
        if length < 2:
            raise ValueError(f"length must be >= 2, got {length}")
        if initial_value < 0:
            raise ValueError(f"initial_value must be non-negative, got {initial_value}")

        self.initial_value = float(initial_value)
        self.length = length
        self._lock = threading.Lock()
        self._snapshots: deque = deque(maxlen=length)
        self.reset()

    def reset(self) -> None:
        start = datetime.now()
        with self._lock:
            self._snapshots.clear()
            self._snapshots.extend(
                PortfolioSnapshot(self.initial_value, start) for _ in range(self.length)
            )

    def record(self, total_assets: float, timestamp: Optional[datetime] = None) -> None:
        """Append a snapshot, evicting the oldest."""
        snapshot = PortfolioSnapshot(
            total_assets=float(total_assets),
            timestamp=timestamp or datetime.now(),
        )
        with self._lock:
            self._snapshots.append(snapshot)

    @property
    def latest(self) -> float:
        with self._lock:
            return self._snapshots[-1].total_assets

    def snapshots(self) -> List[PortfolioSnapshot]:
        with self._lock:
            return list(self._snapshots)

    def to_series(self) -> pd.Series:
        """History as a float Series indexed by position, oldest first.

        Use ``to_frame`` when timestamps are needed.
        """
        values = [s.total_assets for s in self.snapshots()]
        return pd.Series(values, name="total_assets", dtype=float)

    def to_frame(self) -> pd.DataFrame:
        """History as a DataFrame with ``timestamp`` and ``total_assets`` columns."""
        snapshots = self.snapshots()
        return pd.DataFrame(
            {
                "timestamp": [s.timestamp for s in snapshots],
                "total_assets": [s.total_assets for s in snapshots],
            }
        )

    def profit_rate(self, current_value: Optional[float] = None) -> float:
        """Return vs. the initial value, in percent (0 for a zero baseline)."""
        if not self.initial_value:
            return 0.0
        value = self.latest if current_value is None else current_value
        return (value - self.initial_value) / self.initial_value * 100
