"""Market Layer - Instruments, snapshots and market feeds.

Components:
- Instrument / Sector / AssetClass: Universe data model
- MarketSnapshot: Prices plus macro indicator at a point in time
- MarketFeed: Abstract snapshot producer
- RandomWalkFeed: Seeded simulated feed
"""

from quantcore.market.base import (
    AssetClass,
    Instrument,
    MarketFeed,
    MarketSnapshot,
    Sector,
)
from quantcore.market.random_walk import RandomWalkFeed
from quantcore.market.universe import DEFAULT_UNIVERSE

__all__ = [
    "MarketFeed",
    "RandomWalkFeed",
    "MarketSnapshot",
    "Instrument",
    "Sector",
    "AssetClass",
    "DEFAULT_UNIVERSE",
]
