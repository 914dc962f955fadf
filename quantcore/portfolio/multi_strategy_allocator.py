"""Multi-strategy portfolio allocator.

Blends the macro, quality and breakout sleeves into target weights and turns
the gap between target and current holdings into order requests.

Algorithm:
1. Normalize sleeve weights by their sum (all zero -> no-op cycle)
2. Blend sleeve pools into per-instrument target weights
3. target_shares = floor(total_assets * weight / price)
4. Emit an order when the gap value exceeds the rebalance threshold, or when
   a held position's target drops to zero (liquidation ignores the threshold)
"""

import math
from typing import Dict, Iterable, List, Optional, Union

from quantcore.execution.base import OrderSide
from quantcore.ledger.ledger import Ledger, LedgerSnapshot
from quantcore.market.base import Instrument
from quantcore.portfolio.base import AllocationConfig, AllocationResult, OrderRequest
from quantcore.portfolio.sleeves import DEFAULT_RISK_THRESHOLD, blend_target_weights
from quantcore.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_REBALANCE_THRESHOLD = 500_000.0


class MultiStrategyAllocator:
    """Three-sleeve blended allocator.

    Evaluation is a pure function of its inputs: the same universe, indicator,
    ledger snapshot and config always produce the same order requests, in the
    same order.

    Configuration Parameters:
        risk_threshold: Macro indicator above which the macro sleeve goes
            defensive (default 20.0)
        rebalance_threshold: Minimum gap value that triggers an order
            (default 500,000)

    Example:
        >>> allocator = MultiStrategyAllocator()
        >>> requests = allocator.evaluate(
        ...     universe, 15.2, ledger, AllocationConfig(100, 0, 0)
        ... )
        >>> [(r.side.value, r.instrument_id, r.quantity) for r in requests]
        [('BUY', 'A005930', 666), ('BUY', 'A005380', 208)]
    """

    def __init__(self, config: Optional[Dict] = None):
        """Initialize allocator with configuration.

        Args:
            config: Configuration dictionary. Uses defaults if not provided.
        """
        config = config or {}

        self.risk_threshold = config.get("risk_threshold", DEFAULT_RISK_THRESHOLD)
        self.rebalance_threshold = config.get(
            "rebalance_threshold", DEFAULT_REBALANCE_THRESHOLD
        )

        self._validate_config()

    def _validate_config(self) -> None:
        """Validate configuration parameters."""
        if self.risk_threshold < 0:
            raise ValueError(
                f"risk_threshold must be non-negative, got {self.risk_threshold}"
            )
        if self.rebalance_threshold < 0:
            raise ValueError(
                f"rebalance_threshold must be non-negative, got {self.rebalance_threshold}"
            )

    def evaluate(
        self,
        universe: Iterable[Instrument],
        macro_indicator: float,
        ledger: Union[Ledger, LedgerSnapshot],
        config: AllocationConfig,
    ) -> List[OrderRequest]:
        """Compute the order requests for one evaluation cycle.

        Args:
            universe: Instruments with current prices
            macro_indicator: VIX-like volatility proxy
            ledger: Ledger or a snapshot of it
            config: Sleeve weights

        Returns:
            Order requests, sells first then buys, each in universe order
        """
        return self.allocate(universe, macro_indicator, ledger, config).orders

    def allocate(
        self,
        universe: Iterable[Instrument],
        macro_indicator: float,
        ledger: Union[Ledger, LedgerSnapshot],
        config: AllocationConfig,
    ) -> AllocationResult:
        """Compute target weights, order requests and metrics.

        Same inputs as ``evaluate``.
        """
        universe = list(universe)
        snapshot = ledger.snapshot() if isinstance(ledger, Ledger) else ledger

        prices = {inst.instrument_id: inst.price for inst in universe}
        total_assets = snapshot.total_assets(prices)

        if config.total_weight == 0:
            logger.debug("All sleeve weights are zero, skipping allocation")
            return AllocationResult(
                target_weights={inst.instrument_id: 0.0 for inst in universe},
                orders=[],
                metrics=self._calculate_metrics({}, [], total_assets),
            )

        target_weights, empty_pools = blend_target_weights(
            universe, macro_indicator, config, self.risk_threshold
        )
        for sleeve in empty_pools:
            logger.debug("Sleeve '%s' has an empty pool, its weight stays uninvested", sleeve)

        orders = self.generate_orders(universe, target_weights, snapshot, total_assets)

        return AllocationResult(
            target_weights=target_weights,
            orders=orders,
            metrics=self._calculate_metrics(target_weights, orders, total_assets),
            empty_pools=empty_pools,
        )

    def generate_orders(
        self,
        universe: List[Instrument],
        target_weights: Dict[str, float],
        snapshot: LedgerSnapshot,
        total_assets: float,
    ) -> List[OrderRequest]:
        """Turn target weights into order requests.

        Args:
            universe: Instruments with current prices
            target_weights: Target weight per instrument id
            snapshot: Current ledger state
            total_assets: Portfolio value the weights apply to

        Returns:
            Order requests, sells first then buys
        """
        sell_orders: List[OrderRequest] = []
        buy_orders: List[OrderRequest] = []

        for inst in universe:
            price = inst.price
            if price <= 0:
                logger.warning("Skipping %s: no usable price (%s)", inst.instrument_id, price)
                continue

            weight = target_weights.get(inst.instrument_id, 0.0)
            target_shares = math.floor(total_assets * weight / price)
            current_shares = snapshot.shares_of(inst.instrument_id)

            gap_shares = target_shares - current_shares
            gap_value = abs(gap_shares) * price
            liquidate = target_shares == 0 and current_shares > 0

            if gap_shares == 0:
                continue
            if gap_value <= self.rebalance_threshold and not liquidate:
                continue

            if gap_shares > 0:
                buy_orders.append(
                    OrderRequest(
                        side=OrderSide.BUY,
                        instrument_id=inst.instrument_id,
                        limit_price=price,
                        quantity=gap_shares,
                        reason=f"Increase position to {weight:.1%}",
                    )
                )
            else:
                sell_orders.append(
                    OrderRequest(
                        side=OrderSide.SELL,
                        instrument_id=inst.instrument_id,
                        limit_price=price,
                        quantity=-gap_shares,
                        reason="Liquidate position" if liquidate
                        else f"Reduce position to {weight:.1%}",
                    )
                )

        # Sells first, then buys (to free up cash)
        return sell_orders + buy_orders

    def _calculate_metrics(
        self,
        target_weights: Dict[str, float],
        orders: List[OrderRequest],
        total_assets: float,
    ) -> Dict[str, float]:
        """Calculate allocation metrics for monitoring."""
        total_order_value = sum(o.estimated_value for o in orders)
        invested_weight = sum(target_weights.values())

        return {
            "total_assets": total_assets,
            "invested_weight": invested_weight,
            "position_count": float(sum(1 for w in target_weights.values() if w > 0)),
            "turnover": total_order_value / total_assets if total_assets > 0 else 0.0,
            "order_count": float(len(orders)),
            "buy_order_count": float(sum(1 for o in orders if o.side == OrderSide.BUY)),
            "sell_order_count": float(sum(1 for o in orders if o.side == OrderSide.SELL)),
        }
