"""Execution Layer - Order types and the rate-limited order queue.

Orders flow PENDING -> DISPATCHED -> SETTLED | REJECTED through the
OrderQueueScheduler, which throttles dispatch per tick and settles each
dispatched order against the ledger after a fixed delay.
"""

from quantcore.execution.base import Order, OrderSide, OrderStatus
from quantcore.execution.order_queue import OrderQueueScheduler, SettlementResult

__all__ = [
    "OrderQueueScheduler",
    "SettlementResult",
    "Order",
    "OrderSide",
    "OrderStatus",
]
