"""Portfolio Allocation Layer.

Translates market snapshots and ledger state into blended target weights and
rebalancing order requests.

Components:
- MultiStrategyAllocator: Three-sleeve blended allocator
- AllocationConfig: Sleeve weights
- OrderRequest: Deterministic allocator output
- AllocationResult: Target weights, orders and metrics
- Sleeve pool functions: macro_pool, quality_pool, breakout_pool
"""

from quantcore.portfolio.base import AllocationConfig, AllocationResult, OrderRequest
from quantcore.portfolio.multi_strategy_allocator import MultiStrategyAllocator
from quantcore.portfolio.sleeves import (
    blend_target_weights,
    breakout_pool,
    macro_pool,
    quality_pool,
    spread_evenly,
)

__all__ = [
    "MultiStrategyAllocator",
    "AllocationConfig",
    "AllocationResult",
    "OrderRequest",
    "macro_pool",
    "quality_pool",
    "breakout_pool",
    "spread_evenly",
    "blend_target_weights",
]
