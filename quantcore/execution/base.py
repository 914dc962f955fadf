"""Order types shared by the allocation, execution and ledger layers.

Order lifecycle:
    PENDING -> DISPATCHED -> SETTLED | REJECTED

An order is created by the engine from an allocation request, waits in the
pending queue, is dispatched by a rate-limited drain tick and settles against
the ledger after a fixed delay. Orders are immutable; lifecycle state is
tracked by the queue, never written onto the order.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class OrderSide(Enum):
    """Order direction."""

    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(Enum):
    """Order lifecycle states."""

    PENDING = "pending"  # Waiting in the queue
    DISPATCHED = "dispatched"  # Drained by a tick, settlement scheduled
    SETTLED = "settled"  # Fill applied to the ledger
    REJECTED = "rejected"  # Ledger refused the fill (terminal)

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.SETTLED, OrderStatus.REJECTED)


@dataclass(frozen=True)
class Order:
    """A queued trading order.

    Attributes:
        order_id: Unique identifier
        side: BUY or SELL
        instrument_id: Instrument to trade
        limit_price: Price at submission time, used as the fill price
        quantity: Number of shares (positive)
        submitted_at: When the order entered the queue
    """

    order_id: str
    side: OrderSide
    instrument_id: str
    limit_price: float
    quantity: int
    submitted_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate order fields."""
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")
        if self.limit_price < 0:
            raise ValueError(
                f"limit_price must be non-negative, got {self.limit_price}"
            )

    @property
    def notional(self) -> float:
        """Order value at the limit price."""
        return self.limit_price * self.quantity
