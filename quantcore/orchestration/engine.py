"""Trading engine - closes the loop between feed, allocator, queue and ledger.

Control flow per cycle:
    market tick -> allocator evaluation -> orders enqueued
    drain tick  -> up to rate_limit orders dispatched
    dispatch + settlement_delay -> fill applied to the ledger

Two periodic drivers (evaluation, drain) run at different fixed periods on a
TradingScheduler; each dispatched order gets its own one-shot settlement job
on the same scheduler, so all ledger and queue mutation happens on the
scheduler's single worker thread.
"""

import itertools
import math
import numbers
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from quantcore.execution.base import Order
from quantcore.execution.order_queue import OrderQueueScheduler
from quantcore.ledger.ledger import Holding, Ledger
from quantcore.market.base import MarketFeed, MarketSnapshot
from quantcore.monitoring.events import EngineEventType, EventBus, EventLog
from quantcore.monitoring.history import PortfolioHistory
from quantcore.orchestration.scheduler import DEFAULT_TIMEZONE, TradingScheduler
from quantcore.portfolio.base import AllocationConfig, OrderRequest
from quantcore.portfolio.multi_strategy_allocator import MultiStrategyAllocator
from quantcore.utils.config import Config
from quantcore.utils.exceptions import ConfigurationError, EngineStateError
from quantcore.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class EngineSettings:
    """Engine configuration.

    Attributes:
        initial_cash: Starting cash balance
        rate_limit: Maximum orders dispatched per drain tick
        drain_interval: Seconds between drain ticks
        settlement_delay: Seconds from dispatch to settlement
        evaluation_interval: Seconds between strategy evaluations
        risk_threshold: Macro sleeve risk-off cutoff
        rebalance_threshold: Minimum gap value that triggers an order
        history_length: Number of portfolio snapshots kept
        event_log_size: Number of recent events kept
        timezone: Scheduler timezone
    """

    initial_cash: float = 100_000_000.0
    rate_limit: int = 5
    drain_interval: float = 1.0
    settlement_delay: float = 0.23
    evaluation_interval: float = 2.0
    risk_threshold: float = 20.0
    rebalance_threshold: float = 500_000.0
    history_length: int = 50
    event_log_size: int = 40
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        """Validate settings."""
        if self.initial_cash <= 0:
            raise ConfigurationError(f"initial_cash must be positive, got {self.initial_cash}")
        if isinstance(self.rate_limit, bool) or not isinstance(self.rate_limit, numbers.Integral):
            raise ConfigurationError(
                f"rate_limit must be an integer, got {self.rate_limit!r}"
            )
        if self.rate_limit < 1:
            raise ConfigurationError(f"rate_limit must be >= 1, got {self.rate_limit}")
        for name in ("drain_interval", "evaluation_interval"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.settlement_delay < 0:
            raise ConfigurationError(
                f"settlement_delay must be non-negative, got {self.settlement_delay}"
            )
        if self.history_length < 2:
            raise ConfigurationError(f"history_length must be >= 2, got {self.history_length}")
        if self.event_log_size < 1:
            raise ConfigurationError(f"event_log_size must be >= 1, got {self.event_log_size}")
        if self.evaluation_interval < self.drain_interval:
            logger.warning(
                "evaluation_interval (%.2fs) is shorter than drain_interval (%.2fs); "
                "the queue may grow without bound",
                self.evaluation_interval,
                self.drain_interval,
            )

    @property
    def max_in_flight(self) -> int:
        """Upper bound on simultaneously unsettled orders."""
        return self.rate_limit * max(1, math.ceil(self.settlement_delay / self.drain_interval))

    @classmethod
    def from_config(cls, config: Config) -> "EngineSettings":
        """Build settings from the ``engine`` section of a Config.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        section = config.get("engine", {}) or {}
        known = set(cls.__dataclass_fields__)
        unknown = set(section) - known
        if unknown:
            raise ConfigurationError(f"Unknown engine settings: {sorted(unknown)}")
        try:
            return cls(**section)
        except TypeError as e:
            raise ConfigurationError(f"Invalid engine settings: {e}") from e


@dataclass
class EngineState:
    """Read-only view of the engine for presentation layers."""

    cash: float
    holdings: Dict[str, Holding]
    pending_orders: List[Order]
    in_flight: int
    total_assets: float
    api_usage: int
    macro_indicator: float
    profit_rate: float
    is_running: bool
    allocation: AllocationConfig
    timestamp: datetime = field(default_factory=datetime.now)


class TradingEngine:
    """Closed-loop allocation and execution engine.

    Example:
        >>> engine = TradingEngine(RandomWalkFeed(seed=1))
        >>> engine.set_allocation_config(AllocationConfig(40, 30, 30))
        >>> engine.start()
        >>> time.sleep(30)
        >>> engine.stop()
        >>> state = engine.get_state()
    """

    def __init__(
        self,
        feed: MarketFeed,
        settings: Optional[EngineSettings] = None,
        ledger: Optional[Ledger] = None,
        allocator: Optional[MultiStrategyAllocator] = None,
        event_bus: Optional[EventBus] = None,
        allocation: Optional[AllocationConfig] = None,
    ):
        """Initialize engine.

        Args:
            feed: Market snapshot source
            settings: Engine settings (defaults if None)
            ledger: Ledger to trade against (new one with settings.initial_cash if None)
            allocator: Allocator (built from settings if None)
            event_bus: Event channel (new one if None)
            allocation: Initial sleeve weights (40/30/30 if None)
        """
        self.settings = settings or EngineSettings()
        self.feed = feed
        self.ledger = ledger or Ledger(self.settings.initial_cash)
        self.allocator = allocator or MultiStrategyAllocator(
            {
                "risk_threshold": self.settings.risk_threshold,
                "rebalance_threshold": self.settings.rebalance_threshold,
            }
        )
        self.event_bus = event_bus or EventBus()
        self.event_log = EventLog(self.settings.event_log_size)
        self.event_bus.subscribe(self.event_log)

        self.queue = OrderQueueScheduler(
            ledger=self.ledger,
            rate_limit=self.settings.rate_limit,
            settlement_delay=self.settings.settlement_delay,
            on_dispatch=self._schedule_settlement,
            event_bus=self.event_bus,
        )
        self.portfolio_history = PortfolioHistory(
            initial_value=self.ledger.initial_cash,
            length=self.settings.history_length,
        )

        self._allocation = allocation or AllocationConfig()
        self._scheduler: Optional[TradingScheduler] = None
        self._running = False
        self._control_lock = threading.Lock()
        self._order_seq = itertools.count(1)

        logger.info(
            "TradingEngine initialized: cash=%.0f, rate_limit=%d/%.1fs, "
            "settlement_delay=%.3fs, evaluation every %.1fs",
            self.ledger.cash,
            self.settings.rate_limit,
            self.settings.drain_interval,
            self.settings.settlement_delay,
            self.settings.evaluation_interval,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def allocation(self) -> AllocationConfig:
        return self._allocation

    def start(self) -> None:
        """Start the evaluation and drain drivers.

        Raises:
            EngineStateError: If the engine is already running
        """
        with self._control_lock:
            if self._running:
                raise EngineStateError("Engine is already running")

            scheduler = TradingScheduler({"timezone": self.settings.timezone})
            scheduler.register_task(
                name="evaluate",
                func=self.run_evaluation_cycle,
                trigger="interval",
                trigger_args={"seconds": self.settings.evaluation_interval},
            )
            scheduler.register_task(
                name="drain",
                func=self.run_drain_cycle,
                trigger="interval",
                trigger_args={"seconds": self.settings.drain_interval},
            )

            self._scheduler = scheduler
            self._running = True
            self.event_bus.start_dispatcher()
            scheduler.start()

        self.event_bus.publish(
            EngineEventType.ENGINE_STARTED, allocation=self._allocation.to_dict()
        )
        logger.info("Engine started (allocation: %s)", self._allocation.to_dict())

    def stop(self) -> None:
        """Stop both drivers and drop orders still waiting in the queue.

        The fill in progress (if any) completes; pending orders are discarded
        without settling and unsettled dispatched orders are abandoned.
        Holdings and cash are kept.
        """
        with self._control_lock:
            if not self._running:
                logger.warning("Engine not running")
                return

            self._scheduler.stop(wait=True)
            self._scheduler = None
            self._running = False
            dropped = self.queue.reset()

        self.event_bus.publish(EngineEventType.ENGINE_STOPPED, dropped_orders=dropped)
        self.event_bus.stop_dispatcher()
        logger.info("Engine stopped (positions kept, %d pending order(s) dropped)", dropped)

    def set_allocation_config(
        self, config: Union[AllocationConfig, Mapping[str, Any]]
    ) -> AllocationConfig:
        """Replace the sleeve weights.

        Args:
            config: AllocationConfig or mapping of sleeve name to weight

        Returns:
            The validated AllocationConfig now in effect

        Raises:
            EngineStateError: If the engine is running
            AllocationConfigError: If the weights are invalid
        """
        if not isinstance(config, AllocationConfig):
            config = AllocationConfig.from_mapping(config)

        with self._control_lock:
            if self._running:
                raise EngineStateError(
                    "Allocation can only be changed while the engine is stopped"
                )
            self._allocation = config

        self.event_bus.publish(EngineEventType.ALLOCATION_CHANGED, **config.to_dict())
        logger.info("Allocation updated: %s", config.to_dict())
        return config

    def run_evaluation_cycle(self) -> List[Order]:
        """Advance the market feed, evaluate and enqueue the resulting orders.

        Returns:
            Orders enqueued this cycle
        """
        snapshot = self.feed.next_snapshot()
        ledger_snapshot = self.ledger.snapshot()
        total_assets = ledger_snapshot.total_assets(snapshot.prices)

        allocation = self._allocation
        if allocation.total_weight == 0:
            self.event_bus.publish(
                EngineEventType.EVALUATION_SKIPPED, reason="ZERO_ALLOCATION_WEIGHT"
            )
            requests: List[OrderRequest] = []
        else:
            requests = self.allocator.evaluate(
                snapshot.universe, snapshot.macro_indicator, ledger_snapshot, allocation
            )

        orders = [self._create_order(request, snapshot) for request in requests]
        for order in orders:
            self.queue.enqueue(order)

        self.portfolio_history.record(total_assets, snapshot.timestamp)

        logger.debug(
            "Evaluation cycle: vix=%.2f, total_assets=%.0f, %d order(s)",
            snapshot.macro_indicator,
            total_assets,
            len(orders),
        )
        return orders

    def run_drain_cycle(self) -> List[Order]:
        """Dispatch the next rate-limited batch from the queue."""
        return self.queue.tick()

    def _create_order(self, request: OrderRequest, snapshot: MarketSnapshot) -> Order:
        order_id = f"{next(self._order_seq):06d}-{uuid.uuid4().hex[:8]}"
        return Order(
            order_id=order_id,
            side=request.side,
            instrument_id=request.instrument_id,
            limit_price=request.limit_price,
            quantity=request.quantity,
            submitted_at=snapshot.timestamp,
        )

    def _schedule_settlement(self, order: Order, due_at: float) -> None:
        """Post the order's settlement to the owner thread at ``due_at``."""
        scheduler = self._scheduler
        if scheduler is None:
            # Driven synchronously (no scheduler): caller settles via queue.settle_due
            return
        scheduler.schedule_once(
            job_id=f"settle-{order.order_id}",
            func=self.queue.settle,
            delay=due_at - time.monotonic(),
            args=(order.order_id,),
        )

    def history(self) -> pd.Series:
        """Rolling total-asset history, oldest first."""
        return self.portfolio_history.to_series()

    def get_state(self) -> EngineState:
        """Consistent snapshot of engine state for presentation."""
        snapshot = self.feed.current_snapshot()
        ledger_snapshot = self.ledger.snapshot()
        total_assets = ledger_snapshot.total_assets(snapshot.prices)

        return EngineState(
            cash=ledger_snapshot.cash,
            holdings=ledger_snapshot.holdings,
            pending_orders=self.queue.pending_orders,
            in_flight=self.queue.in_flight_count,
            total_assets=total_assets,
            api_usage=self.queue.usage,
            macro_indicator=snapshot.macro_indicator,
            profit_rate=self.portfolio_history.profit_rate(total_assets),
            is_running=self._running,
            allocation=self._allocation,
        )
