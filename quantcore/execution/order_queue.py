"""Rate-limited order queue with delayed settlement.

Orders wait in a FIFO queue. Each scheduling tick drains at most
``rate_limit`` of them (oldest first) and dispatches them; every dispatched
order settles against the ledger ``settlement_delay`` seconds after its
dispatch, independently of later ticks. Up to
``rate_limit * ceil(settlement_delay / tick_period)`` orders can therefore be
in flight at once.

The queue does not own a timer. ``tick`` hands each dispatched order and its
due time to ``on_dispatch`` so the owner can schedule ``settle(order_id)``;
synchronous drivers call ``settle_due(now)`` instead.
"""

import numbers
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Deque, List, Optional

from quantcore.execution.base import Order, OrderStatus
from quantcore.monitoring.events import EngineEventType, EventBus
from quantcore.utils.logging import get_logger

if TYPE_CHECKING:
    from quantcore.ledger.ledger import FillResult, Ledger

logger = get_logger(__name__)

DispatchCallback = Callable[[Order, float], None]


@dataclass(frozen=True)
class SettlementResult:
    """Terminal outcome of one dispatched order.

    Attributes:
        order: The settled order
        fill: Ledger result
        status: SETTLED or REJECTED
        dispatched_at: Clock time of dispatch
        settled_at: Clock time of settlement
    """

    order: Order
    fill: "FillResult"
    status: OrderStatus
    dispatched_at: float
    settled_at: float


@dataclass(frozen=True)
class _InFlight:
    order: Order
    dispatched_at: float
    due_at: float


class OrderQueueScheduler:
    """FIFO order queue drained at a fixed rate per tick.

    Configuration:
        rate_limit: Maximum orders dispatched per tick (default 5)
        settlement_delay: Seconds from dispatch to settlement (default 0.23)

    Example:
        >>> queue = OrderQueueScheduler(ledger, rate_limit=5, settlement_delay=0.23)
        >>> queue.enqueue(order)
        >>> dispatched = queue.tick(now=0.0)
        >>> results = queue.settle_due(now=0.23)
    """

    def __init__(
        self,
        ledger: "Ledger",
        rate_limit: int = 5,
        settlement_delay: float = 0.23,
        on_dispatch: Optional[DispatchCallback] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the queue.

        Args:
            ledger: Ledger settled orders are applied to
            rate_limit: Maximum orders dispatched per tick
            settlement_delay: Seconds between dispatch and settlement
            on_dispatch: Called with (order, due_at) for each dispatched order
            event_bus: Receives submitted/settled/rejected/usage events
            clock: Time source for dispatch and due times

        Raises:
            ValueError: If rate_limit is not an integer >= 1 or settlement_delay < 0
        """
        if isinstance(rate_limit, bool) or not isinstance(rate_limit, numbers.Integral):
            raise ValueError(f"rate_limit must be an integer, got {rate_limit!r}")
        if rate_limit < 1:
            raise ValueError(f"rate_limit must be >= 1, got {rate_limit}")
        if settlement_delay < 0:
            raise ValueError(
                f"settlement_delay must be non-negative, got {settlement_delay}"
            )

        self.ledger = ledger
        self.rate_limit = rate_limit
        self.settlement_delay = settlement_delay
        self.on_dispatch = on_dispatch
        self.event_bus = event_bus
        self._clock = clock

        self._pending: Deque[Order] = deque()
        self._in_flight: "OrderedDict[str, _InFlight]" = OrderedDict()
        self._usage = 0
        self._lock = threading.Lock()

        logger.debug(
            "OrderQueueScheduler initialized: rate_limit=%d, settlement_delay=%.3fs",
            rate_limit,
            settlement_delay,
        )

    @property
    def usage(self) -> int:
        """Number of orders drained by the most recent tick."""
        with self._lock:
            return self._usage

    @property
    def pending_orders(self) -> List[Order]:
        """Orders still waiting, oldest first."""
        with self._lock:
            return list(self._pending)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def enqueue(self, order: Order) -> None:
        """Append an order to the tail of the queue."""
        with self._lock:
            self._pending.append(order)
            depth = len(self._pending)

        logger.info(
            "Order queued: %s %s %s x%d (queue depth %d)",
            order.order_id,
            order.side.value,
            order.instrument_id,
            order.quantity,
            depth,
        )
        self._publish(
            EngineEventType.ORDER_SUBMITTED,
            order_id=order.order_id,
            side=order.side.value,
            instrument_id=order.instrument_id,
            quantity=order.quantity,
            limit_price=order.limit_price,
        )

    def tick(self, now: Optional[float] = None) -> List[Order]:
        """Drain up to ``rate_limit`` orders from the head of the queue.

        Args:
            now: Dispatch time; defaults to the clock

        Returns:
            Orders dispatched this tick, in FIFO order
        """
        now = self._clock() if now is None else now
        due_at = now + self.settlement_delay

        with self._lock:
            batch: List[Order] = []
            while self._pending and len(batch) < self.rate_limit:
                order = self._pending.popleft()
                self._in_flight[order.order_id] = _InFlight(order, now, due_at)
                batch.append(order)
            self._usage = len(batch)
            remaining = len(self._pending)

        self._publish(EngineEventType.TICK_USAGE, count=len(batch), remaining=remaining)

        if not batch:
            return batch

        logger.info(
            "Dispatched %d order(s) (limit %d, %d still pending)",
            len(batch),
            self.rate_limit,
            remaining,
        )

        if self.on_dispatch is not None:
            for order in batch:
                self.on_dispatch(order, due_at)

        return batch

    def settle(self, order_id: str, now: Optional[float] = None) -> Optional[SettlementResult]:
        """Settle one in-flight order against the ledger.

        Settlement uses the order's limit price. A rejection is terminal; the
        order is not re-queued.

        Args:
            order_id: Dispatched order to settle
            now: Settlement time; defaults to the clock

        Returns:
            SettlementResult, or None if the order is not in flight (already
            settled or abandoned by ``reset``)
        """
        with self._lock:
            entry = self._in_flight.pop(order_id, None)

        if entry is None:
            logger.debug("Settlement skipped, order %s not in flight", order_id)
            return None

        return self._apply(entry, self._clock() if now is None else now)

    def settle_due(self, now: Optional[float] = None) -> List[SettlementResult]:
        """Settle every in-flight order whose due time has passed.

        Orders settle in dispatch order.
        """
        now = self._clock() if now is None else now

        with self._lock:
            due = [e for e in self._in_flight.values() if e.due_at <= now]
            for entry in due:
                del self._in_flight[entry.order.order_id]

        return [self._apply(entry, now) for entry in due]

    def _apply(self, entry: _InFlight, now: float) -> SettlementResult:
        order = entry.order
        fill = self.ledger.apply_fill(order, order.limit_price)

        if fill.accepted:
            status = OrderStatus.SETTLED
            self._publish(
                EngineEventType.ORDER_SETTLED,
                order_id=order.order_id,
                side=order.side.value,
                instrument_id=order.instrument_id,
                quantity=order.quantity,
                fill_price=fill.fill_price,
            )
        else:
            status = OrderStatus.REJECTED
            self._publish(
                EngineEventType.ORDER_REJECTED,
                order_id=order.order_id,
                side=order.side.value,
                instrument_id=order.instrument_id,
                quantity=order.quantity,
                reason=fill.reason.value,
            )

        return SettlementResult(
            order=order,
            fill=fill,
            status=status,
            dispatched_at=entry.dispatched_at,
            settled_at=now,
        )

    def reset(self) -> int:
        """Drop pending orders and abandon in-flight ones without settling.

        Returns:
            Number of pending orders dropped
        """
        with self._lock:
            dropped = len(self._pending)
            abandoned = len(self._in_flight)
            self._pending.clear()
            self._in_flight.clear()
            self._usage = 0

        if dropped or abandoned:
            logger.warning(
                "Order queue reset: dropped %d pending, abandoned %d in flight",
                dropped,
                abandoned,
            )
        return dropped

    def _publish(self, event_type: EngineEventType, **payload) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event_type, **payload)
