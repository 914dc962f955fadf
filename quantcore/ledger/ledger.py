"""Cash and holdings ledger.

The ledger owns cash and per-instrument holdings and applies fills with two
hard invariants:

- cash never goes negative (a BUY costing more than available cash is
  rejected with INSUFFICIENT_MARGIN)
- shares never go negative (a SELL for more than is held is rejected with
  NAKED_SHORT_BLOCKED; it is never clamped to the held quantity)

A rejected fill performs no mutation. An accepted fill replaces cash and the
affected holding together while holding the ledger lock, so concurrent
readers never observe one without the other.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Union

from quantcore.execution.base import Order, OrderSide
from quantcore.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)

DEFAULT_INITIAL_CASH = 100_000_000.0

PriceLookup = Union[Mapping[str, float], Callable[[str], Optional[float]]]


class FillStatus(Enum):
    """Outcome of applying a fill."""

    SETTLED = "settled"
    REJECTED = "rejected"


class RejectReason(Enum):
    """Why the ledger refused a fill."""

    INSUFFICIENT_MARGIN = "INSUFFICIENT_MARGIN"
    NAKED_SHORT_BLOCKED = "NAKED_SHORT_BLOCKED"


@dataclass(frozen=True)
class Holding:
    """A position in one instrument.

    Exists only while ``shares > 0``.

    Attributes:
        instrument_id: Instrument held
        shares: Number of shares (positive)
        avg_cost: Weighted average cost per share
    """

    instrument_id: str
    shares: int
    avg_cost: float

    @property
    def cost_basis(self) -> float:
        return self.shares * self.avg_cost


@dataclass(frozen=True)
class FillResult:
    """Result of ``Ledger.apply_fill``.

    Attributes:
        order_id: Order the fill belongs to
        instrument_id: Instrument traded
        side: BUY or SELL
        status: SETTLED or REJECTED
        reason: Rejection reason, None when settled
        quantity: Shares requested
        fill_price: Price used for the fill
        cash_after: Ledger cash once the fill was (or was not) applied
        shares_after: Shares held in the instrument afterwards
    """

    order_id: str
    instrument_id: str
    side: OrderSide
    status: FillStatus
    quantity: int
    fill_price: float
    cash_after: float
    shares_after: int
    reason: Optional[RejectReason] = None

    @property
    def accepted(self) -> bool:
        return self.status == FillStatus.SETTLED


@dataclass(frozen=True)
class LedgerSnapshot:
    """Consistent copy of ledger state.

    Attributes:
        cash: Cash balance
        holdings: Holdings keyed by instrument id
        timestamp: When the snapshot was taken
    """

    cash: float
    holdings: Dict[str, Holding]
    timestamp: datetime = field(default_factory=datetime.now)

    def shares_of(self, instrument_id: str) -> int:
        holding = self.holdings.get(instrument_id)
        return holding.shares if holding else 0

    def total_assets(self, prices: PriceLookup) -> float:
        """Cash plus holdings marked at ``prices``.

        Instruments without a live price contribute 0.
        """
        lookup = prices if callable(prices) else prices.get
        total = self.cash
        for instrument_id, holding in self.holdings.items():
            price = lookup(instrument_id)
            if price:
                total += holding.shares * price
        return total


class Ledger:
    """Thread-safe cash/holdings ledger.

    Example:
        >>> ledger = Ledger(initial_cash=100_000_000)
        >>> order = Order("o1", OrderSide.BUY, "A005930", 75000, 1333)
        >>> result = ledger.apply_fill(order)
        >>> result.accepted, ledger.cash
        (True, 97525000.0)
    """

    def __init__(self, initial_cash: float = DEFAULT_INITIAL_CASH):
        """Initialize ledger.

        Args:
            initial_cash: Starting cash balance

        Raises:
            ValueError: If initial_cash is negative
        """
        if initial_cash < 0:
            raise ValueError(f"initial_cash must be non-negative, got {initial_cash}")

        self.initial_cash = float(initial_cash)
        self._cash = self.initial_cash
        self._holdings: Dict[str, Holding] = {}
        self._lock = threading.RLock()

        logger.debug("Ledger initialized: cash=%.0f", self._cash)

    @property
    def cash(self) -> float:
        with self._lock:
            return self._cash

    @property
    def holdings(self) -> Dict[str, Holding]:
        """Copy of current holdings keyed by instrument id."""
        with self._lock:
            return dict(self._holdings)

    def shares_of(self, instrument_id: str) -> int:
        with self._lock:
            holding = self._holdings.get(instrument_id)
            return holding.shares if holding else 0

    def snapshot(self) -> LedgerSnapshot:
        """Take a consistent copy of cash and holdings."""
        with self._lock:
            return LedgerSnapshot(cash=self._cash, holdings=dict(self._holdings))

    def total_assets(self, prices: PriceLookup) -> float:
        """Cash plus holdings marked at ``prices`` (mapping or callable)."""
        return self.snapshot().total_assets(prices)

    def apply_fill(self, order: Order, fill_price: Optional[float] = None) -> FillResult:
        """Apply an order's fill to cash and holdings.

        Args:
            order: Order to settle
            fill_price: Execution price; defaults to ``order.limit_price``

        Returns:
            FillResult; rejected fills leave the ledger untouched
        """
        price = order.limit_price if fill_price is None else fill_price
        instrument_id = order.instrument_id
        quantity = order.quantity

        with self._lock:
            holding = self._holdings.get(instrument_id)
            held = holding.shares if holding else 0

            if order.side == OrderSide.BUY:
                cost = price * quantity
                if self._cash < cost:
                    return self._reject(order, price, held, RejectReason.INSUFFICIENT_MARGIN)

                old_cost = holding.cost_basis if holding else 0.0
                new_shares = held + quantity
                new_holding = Holding(
                    instrument_id=instrument_id,
                    shares=new_shares,
                    avg_cost=(old_cost + cost) / new_shares,
                )
                new_cash = self._cash - cost
            else:
                if held < quantity:
                    return self._reject(order, price, held, RejectReason.NAKED_SHORT_BLOCKED)

                new_shares = held - quantity
                new_holding = (
                    Holding(instrument_id, new_shares, holding.avg_cost)
                    if new_shares > 0
                    else None
                )
                new_cash = self._cash + price * quantity

            # Commit cash and holding together
            self._cash = new_cash
            if new_holding is None:
                del self._holdings[instrument_id]
            else:
                self._holdings[instrument_id] = new_holding

        log_with_context(
            logger,
            "info",
            "Fill settled",
            order_id=order.order_id,
            side=order.side.value,
            instrument=instrument_id,
            quantity=quantity,
            price=price,
            cash=f"{new_cash:.0f}",
        )

        return FillResult(
            order_id=order.order_id,
            instrument_id=instrument_id,
            side=order.side,
            status=FillStatus.SETTLED,
            quantity=quantity,
            fill_price=price,
            cash_after=new_cash,
            shares_after=new_shares,
        )

    def _reject(
        self,
        order: Order,
        price: float,
        held: int,
        reason: RejectReason,
    ) -> FillResult:
        """Build a rejection result. Caller holds the lock."""
        log_with_context(
            logger,
            "warning",
            "Fill rejected",
            order_id=order.order_id,
            reason=reason.value,
            side=order.side.value,
            instrument=order.instrument_id,
            quantity=order.quantity,
            held=held,
            cash=f"{self._cash:.0f}",
        )
        return FillResult(
            order_id=order.order_id,
            instrument_id=order.instrument_id,
            side=order.side,
            status=FillStatus.REJECTED,
            quantity=order.quantity,
            fill_price=price,
            cash_after=self._cash,
            shares_after=held,
            reason=reason,
        )

    def reset(self, initial_cash: Optional[float] = None) -> None:
        """Restore the starting cash and drop all holdings."""
        with self._lock:
            if initial_cash is not None:
                if initial_cash < 0:
                    raise ValueError(
                        f"initial_cash must be non-negative, got {initial_cash}"
                    )
                self.initial_cash = float(initial_cash)
            self._cash = self.initial_cash
            self._holdings.clear()

        logger.info("Ledger reset to initial state (cash=%.0f)", self.initial_cash)
