"""Portfolio allocation types.

The allocation layer sits between the market feed and the order queue: it
turns a universe snapshot, a macro indicator and the ledger state into
target weights, and target weights into order requests.
"""

import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from quantcore.execution.base import OrderSide
from quantcore.utils.exceptions import AllocationConfigError

SLEEVES = ("macro", "quality", "breakout")


@dataclass(frozen=True)
class AllocationConfig:
    """Sleeve weights for the multi-strategy blend.

    Weights need not sum to 100; they are normalized by their own sum at
    evaluation time. All-zero weights are valid and make evaluation a no-op.

    Attributes:
        weight_macro: Weight of the VIX regime sleeve
        weight_quality: Weight of the low PER/PBR sleeve
        weight_breakout: Weight of the risk-on breakout sleeve

    Raises:
        AllocationConfigError: If any weight is negative, non-finite or not a number
    """

    weight_macro: float = 40.0
    weight_quality: float = 30.0
    weight_breakout: float = 30.0

    def __post_init__(self):
        """Validate sleeve weights."""
        for name in ("weight_macro", "weight_quality", "weight_breakout"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise AllocationConfigError(
                    f"{name} must be a number, got {value!r}"
                )
            if not math.isfinite(value):
                raise AllocationConfigError(f"{name} must be finite, got {value}")
            if value < 0:
                raise AllocationConfigError(
                    f"{name} must be non-negative, got {value}"
                )

    @property
    def total_weight(self) -> float:
        return self.weight_macro + self.weight_quality + self.weight_breakout

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "AllocationConfig":
        """Build from ``{"macro": .., "quality": .., "breakout": ..}``.

        ``weight_``-prefixed keys are accepted too; missing sleeves default to 0.

        Raises:
            AllocationConfigError: On unknown keys or invalid weights
        """
        weights = {}
        for key, value in mapping.items():
            sleeve = key[len("weight_"):] if key.startswith("weight_") else key
            if sleeve not in SLEEVES:
                raise AllocationConfigError(f"Unknown allocation sleeve: {key}")
            weights[f"weight_{sleeve}"] = value

        for sleeve in SLEEVES:
            weights.setdefault(f"weight_{sleeve}", 0.0)

        return cls(**weights)

    def to_dict(self) -> Dict[str, float]:
        return {
            "macro": self.weight_macro,
            "quality": self.weight_quality,
            "breakout": self.weight_breakout,
        }


@dataclass(frozen=True)
class OrderRequest:
    """An order the allocator wants placed.

    Carries no id or timestamp so that evaluation output is fully
    determined by its inputs; the engine stamps both when enqueueing.

    Attributes:
        side: BUY or SELL
        instrument_id: Instrument to trade
        limit_price: Price at evaluation time
        quantity: Number of shares (positive)
        reason: Why the order was generated
    """

    side: OrderSide
    instrument_id: str
    limit_price: float
    quantity: int
    reason: str = ""

    def __post_init__(self):
        """Validate request fields."""
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")

    @property
    def estimated_value(self) -> float:
        return self.limit_price * self.quantity


@dataclass
class AllocationResult:
    """Result of one allocation evaluation.

    Attributes:
        target_weights: Blended target weight per instrument (not renormalized)
        orders: Order requests, sells first then buys
        metrics: Monitoring metrics (turnover, counts, ...)
        empty_pools: Sleeves that contributed nothing because no instrument was eligible
    """

    target_weights: Dict[str, float]
    orders: List[OrderRequest]
    metrics: Dict[str, float] = field(default_factory=dict)
    empty_pools: List[str] = field(default_factory=list)
