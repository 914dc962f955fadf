"""Random-walk market feed.

Simulates a VIX-driven market: equities and commodities drift down as
volatility rises, the inverse fund drifts up, bonds barely move. Intended for
demos and end-to-end runs; the core only depends on ``MarketFeed``.
"""

from datetime import datetime
from typing import Iterable, Optional

import numpy as np

from quantcore.market.base import Instrument, MarketFeed, MarketSnapshot, Sector
from quantcore.market.universe import DEFAULT_UNIVERSE
from quantcore.utils.logging import get_logger

logger = get_logger(__name__)

VIX_FLOOR = 10.0
VIX_NEUTRAL = 15.0


class RandomWalkFeed(MarketFeed):
    """Seeded random-walk price and VIX generator.

    Per tick:
        vix   <- max(10, vix + (u - 0.45) * 2)          u ~ U[0, 1)
        price <- round(price * (1 + trend + (u - 0.5) * volatility))

    with trend/volatility depending on sector:
        HEDGE: trend = (vix - 15) * 0.002, volatility = 0.01
        BOND:  trend = 0,                  volatility = 0.002
        other: trend = (15 - vix) * 0.001, volatility = 0.01

    Example:
        >>> feed = RandomWalkFeed(seed=42)
        >>> a = feed.next_snapshot()
        >>> b = RandomWalkFeed(seed=42).next_snapshot()
        >>> a.prices == b.prices
        True
    """

    def __init__(
        self,
        universe: Iterable[Instrument] = DEFAULT_UNIVERSE,
        initial_vix: float = 15.2,
        rate: float = 3.5,
        seed: Optional[int] = None,
    ):
        """Initialize the feed.

        Args:
            universe: Starting instruments and prices
            initial_vix: Starting macro indicator
            rate: Reference interest rate carried on every snapshot
            seed: RNG seed for reproducible runs
        """
        self._rng = np.random.default_rng(seed)
        self._rate = rate
        self._snapshot = MarketSnapshot(
            universe=tuple(universe),
            macro_indicator=max(VIX_FLOOR, initial_vix),
            rate=rate,
        )

        logger.debug(
            "RandomWalkFeed initialized: %d instruments, vix=%.2f, seed=%s",
            len(self._snapshot.universe),
            self._snapshot.macro_indicator,
            seed,
        )

    def current_snapshot(self) -> MarketSnapshot:
        return self._snapshot

    def next_snapshot(self) -> MarketSnapshot:
        vix = max(
            VIX_FLOOR,
            self._snapshot.macro_indicator + (self._rng.random() - 0.45) * 2,
        )

        universe = tuple(
            inst.with_price(self._step_price(inst, vix))
            for inst in self._snapshot.universe
        )

        self._snapshot = MarketSnapshot(
            universe=universe,
            macro_indicator=vix,
            rate=self._rate,
            timestamp=datetime.now(),
        )
        return self._snapshot

    def _step_price(self, inst: Instrument, vix: float) -> float:
        """Apply one random-walk step to an instrument price."""
        volatility = 0.01
        trend = 0.0

        if inst.sector == Sector.HEDGE:
            trend = (vix - VIX_NEUTRAL) * 0.002
        elif inst.sector == Sector.BOND:
            volatility = 0.002
        else:
            trend = (VIX_NEUTRAL - vix) * 0.001

        change = 1 + trend + (self._rng.random() - 0.5) * volatility
        # Round half up to whole won; never let a price collapse to zero
        return max(1.0, float(np.floor(inst.price * change + 0.5)))
