"""Market data types and the abstract market feed.

The allocation engine only consumes snapshots: a tuple of instruments with
their latest prices plus a scalar macro indicator (a VIX-like volatility
proxy). How snapshots are produced is up to the ``MarketFeed`` implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from quantcore.utils.exceptions import MarketDataError


class Sector(Enum):
    """Instrument sector."""

    IT = "IT"
    AUTO = "AUTO"
    BOND = "BOND"
    COMMODITY = "COMMODITY"
    HEDGE = "HEDGE"


class AssetClass(Enum):
    """Instrument class."""

    EQUITY = "EQUITY"  # Single stock
    FUND = "FUND"  # ETF / fund


@dataclass(frozen=True)
class Instrument:
    """A tradable instrument.

    Identity is immutable; a price update produces a new instance via
    ``with_price``.

    Attributes:
        instrument_id: Ticker / code (e.g. "A005930")
        name: Display name
        price: Latest price
        sector: Sector classification
        asset_class: EQUITY or FUND
        risk_grade: 1 (highest risk) .. 5 (lowest risk)
        per: Price/earnings ratio, 0 when not applicable
        pbr: Price/book ratio, 0 when not applicable
    """

    instrument_id: str
    name: str
    price: float
    sector: Sector
    asset_class: AssetClass
    risk_grade: int
    per: float = 0.0
    pbr: float = 0.0

    def __post_init__(self):
        """Validate instrument fields."""
        if not 1 <= self.risk_grade <= 5:
            raise ValueError(f"risk_grade must be in [1, 5], got {self.risk_grade}")
        if self.price < 0:
            raise ValueError(f"price must be non-negative, got {self.price}")

    @property
    def has_valuation(self) -> bool:
        """True when both valuation ratios are applicable (positive)."""
        return self.per > 0 and self.pbr > 0

    def with_price(self, price: float) -> "Instrument":
        """Return a copy of this instrument at a new price."""
        return replace(self, price=price)


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time view of the universe and macro indicators.

    Attributes:
        universe: Instruments with their latest prices, in a stable order
        macro_indicator: Volatility proxy (VIX) driving the macro sleeve
        rate: Reference interest rate (informational)
        timestamp: When the snapshot was produced
    """

    universe: Tuple[Instrument, ...]
    macro_indicator: float
    rate: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate snapshot contents."""
        if not self.universe:
            raise MarketDataError("Market snapshot has an empty universe")
        ids = [inst.instrument_id for inst in self.universe]
        if len(set(ids)) != len(ids):
            raise MarketDataError(f"Duplicate instrument ids in universe: {ids}")

    @property
    def prices(self) -> Dict[str, float]:
        """Latest prices keyed by instrument id."""
        return {inst.instrument_id: inst.price for inst in self.universe}

    def price_of(self, instrument_id: str) -> Optional[float]:
        """Latest price for one instrument, or None if not in the universe."""
        for inst in self.universe:
            if inst.instrument_id == instrument_id:
                return inst.price
        return None


class MarketFeed(ABC):
    """Abstract interface for market snapshot producers.

    Example:
        >>> feed = RandomWalkFeed(seed=7)
        >>> snapshot = feed.next_snapshot()
        >>> snapshot.universe[0].instrument_id
        'A005930'
    """

    @abstractmethod
    def next_snapshot(self) -> MarketSnapshot:
        """Advance the feed by one tick and return the new snapshot.

        Raises:
            MarketDataError: If the feed cannot produce a usable snapshot
        """
        pass

    @abstractmethod
    def current_snapshot(self) -> MarketSnapshot:
        """Return the latest snapshot without advancing the feed."""
        pass
