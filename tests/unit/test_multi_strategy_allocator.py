"""Unit tests for MultiStrategyAllocator."""

import logging

import pytest

from quantcore.execution.base import OrderSide
from quantcore.ledger.ledger import Holding, Ledger, LedgerSnapshot
from quantcore.market.base import AssetClass, Instrument, Sector
from quantcore.market.universe import DEFAULT_UNIVERSE
from quantcore.portfolio.base import AllocationConfig
from quantcore.portfolio.multi_strategy_allocator import MultiStrategyAllocator


def as_tuples(requests):
    return [(r.side, r.instrument_id, r.quantity) for r in requests]


def snapshot(cash: float, **shares: int) -> LedgerSnapshot:
    holdings = {k: Holding(k, v, 1.0) for k, v in shares.items()}
    return LedgerSnapshot(cash=cash, holdings=holdings)


MACRO_ONLY = AllocationConfig(100, 0, 0)


class TestMultiStrategyAllocatorInit:
    """Test cases for allocator construction."""

    def test_defaults(self) -> None:
        """Test default thresholds."""
        allocator = MultiStrategyAllocator()

        assert allocator.risk_threshold == 20.0
        assert allocator.rebalance_threshold == 500_000.0

    def test_custom_config(self) -> None:
        """Test thresholds from config."""
        allocator = MultiStrategyAllocator({"risk_threshold": 25, "rebalance_threshold": 0})

        assert allocator.risk_threshold == 25
        assert allocator.rebalance_threshold == 0

    def test_negative_rebalance_threshold(self) -> None:
        """Test negative rebalance threshold is rejected."""
        with pytest.raises(ValueError, match="rebalance_threshold must be non-negative"):
            MultiStrategyAllocator({"rebalance_threshold": -1})

    def test_negative_risk_threshold(self) -> None:
        """Test negative risk threshold is rejected."""
        with pytest.raises(ValueError, match="risk_threshold must be non-negative"):
            MultiStrategyAllocator({"risk_threshold": -5})


class TestEvaluate:
    """Test cases for order generation."""

    @pytest.fixture
    def allocator(self) -> MultiStrategyAllocator:
        return MultiStrategyAllocator()

    def test_macro_only_calm_market(self, allocator: MultiStrategyAllocator) -> None:
        """Test macro-only from cash buys the two equities."""
        requests = allocator.evaluate(DEFAULT_UNIVERSE, 15.2, Ledger(), MACRO_ONLY)

        assert as_tuples(requests) == [
            (OrderSide.BUY, "A005930", 666),
            (OrderSide.BUY, "A005380", 208),
        ]
        assert requests[0].limit_price == 75000
        assert requests[0].reason == "Increase position to 50.0%"

    def test_single_equity_full_weight(self, allocator: MultiStrategyAllocator) -> None:
        """Test floor truncation of target shares."""
        universe = [DEFAULT_UNIVERSE[0], DEFAULT_UNIVERSE[2]]

        requests = allocator.evaluate(universe, 15.2, Ledger(100_000_000), MACRO_ONLY)

        # floor(100,000,000 / 75,000) = 1333
        assert as_tuples(requests) == [(OrderSide.BUY, "A005930", 1333)]

    def test_zero_weights_no_orders(self, allocator: MultiStrategyAllocator) -> None:
        """Test all-zero sleeve weights produce no orders even with holdings."""
        requests = allocator.evaluate(
            DEFAULT_UNIVERSE, 15.2, snapshot(1_000_000, A005930=100), AllocationConfig(0, 0, 0)
        )

        assert requests == []

    def test_below_rebalance_threshold_skipped(self, allocator: MultiStrategyAllocator) -> None:
        """Test small gaps do not generate orders."""
        universe = [DEFAULT_UNIVERSE[0]]
        # total 1,000,000 -> target 13 shares, gap 3 shares = 225,000
        state = snapshot(250_000, A005930=10)

        assert allocator.evaluate(universe, 15.2, state, MACRO_ONLY) == []

    def test_gap_exactly_at_threshold_skipped(self) -> None:
        """Test the rebalance threshold is exclusive."""
        allocator = MultiStrategyAllocator({"rebalance_threshold": 150_000})
        universe = [DEFAULT_UNIVERSE[0]]
        # total 1,000,000 -> target 13, gap 2 shares = 150,000
        state = snapshot(175_000, A005930=11)
        assert state.total_assets({"A005930": 75000}) == 1_000_000

        assert allocator.evaluate(universe, 15.2, state, MACRO_ONLY) == []

    def test_liquidation_ignores_threshold(self, allocator: MultiStrategyAllocator) -> None:
        """Test a held position with zero target is sold regardless of size."""
        state = snapshot(100_000_000, A114800=10)

        requests = allocator.evaluate(DEFAULT_UNIVERSE, 15.2, state, MACRO_ONLY)

        assert requests[0].side == OrderSide.SELL
        assert requests[0].instrument_id == "A114800"
        assert requests[0].quantity == 10
        assert requests[0].reason == "Liquidate position"
        assert requests[0].estimated_value == 42_000

    def test_sells_before_buys(self, allocator: MultiStrategyAllocator) -> None:
        """Test a regime switch emits sells first, then buys."""
        state = snapshot(25_000_000, A005930=1000)

        requests = allocator.evaluate(DEFAULT_UNIVERSE, 25.0, state, MACRO_ONLY)

        assert as_tuples(requests) == [
            (OrderSide.SELL, "A005930", 1000),
            (OrderSide.BUY, "A148070", 476),
            (OrderSide.BUY, "A114800", 11904),
        ]

    def test_partial_reduce(self, allocator: MultiStrategyAllocator) -> None:
        """Test an overweight position is reduced, not liquidated."""
        universe = [DEFAULT_UNIVERSE[0], DEFAULT_UNIVERSE[1]]
        # total 150,000,000 -> target 1000 x A005930; holding 1400 (105M) + 45M cash
        state = snapshot(45_000_000, A005930=1400)

        requests = allocator.evaluate(universe, 15.2, state, MACRO_ONLY)

        sell = requests[0]
        assert (sell.side, sell.instrument_id, sell.quantity) == (OrderSide.SELL, "A005930", 400)
        assert sell.reason == "Reduce position to 50.0%"

    def test_unpriced_instrument_skipped(self, allocator: MultiStrategyAllocator, caplog) -> None:
        """Test an instrument with price 0 never produces an order."""
        zero = Instrument("Z", "Zero", 0.0, Sector.IT, AssetClass.EQUITY, 3, 5.0, 0.5)

        with caplog.at_level(logging.WARNING):
            requests = allocator.evaluate([zero], 15.2, Ledger(), MACRO_ONLY)

        assert requests == []
        assert "no usable price" in caplog.text

    def test_deterministic(self, allocator: MultiStrategyAllocator) -> None:
        """Test identical inputs give identical requests."""
        state = snapshot(30_000_000, A005930=300, A130680=1000)

        first = allocator.evaluate(DEFAULT_UNIVERSE, 22.5, state, AllocationConfig())
        second = allocator.evaluate(DEFAULT_UNIVERSE, 22.5, state, AllocationConfig())

        assert first == second

    def test_ledger_not_mutated(self, allocator: MultiStrategyAllocator) -> None:
        """Test evaluation only reads the ledger."""
        ledger = Ledger(1_000_000)

        allocator.evaluate(DEFAULT_UNIVERSE, 15.2, ledger, AllocationConfig())

        assert ledger.cash == 1_000_000
        assert ledger.holdings == {}


class TestAllocate:
    """Test cases for the full allocation result."""

    @pytest.fixture
    def allocator(self) -> MultiStrategyAllocator:
        return MultiStrategyAllocator()

    def test_metrics(self, allocator: MultiStrategyAllocator) -> None:
        """Test monitoring metrics for a cash-only macro allocation."""
        result = allocator.allocate(DEFAULT_UNIVERSE, 15.2, Ledger(), MACRO_ONLY)

        metrics = result.metrics
        assert metrics["total_assets"] == 100_000_000
        assert metrics["invested_weight"] == pytest.approx(1.0)
        assert metrics["position_count"] == 2
        assert metrics["order_count"] == 2
        assert metrics["buy_order_count"] == 2
        assert metrics["sell_order_count"] == 0
        expected_value = 666 * 75000 + 208 * 240000
        assert metrics["turnover"] == pytest.approx(expected_value / 100_000_000)

    def test_empty_pool_reported(self, allocator: MultiStrategyAllocator) -> None:
        """Test sleeves with no eligible instrument are reported."""
        universe = [DEFAULT_UNIVERSE[0]]

        result = allocator.allocate(universe, 15.2, Ledger(), AllocationConfig(50, 50, 0))

        assert result.empty_pools == ["quality"]
        assert result.target_weights == pytest.approx({"A005930": 0.5})
        assert result.metrics["invested_weight"] == pytest.approx(0.5)
        # floor(50,000,000 / 75,000) = 666
        assert as_tuples(result.orders) == [(OrderSide.BUY, "A005930", 666)]

    def test_zero_weights_result(self, allocator: MultiStrategyAllocator) -> None:
        """Test zero weights return all-zero targets and no orders."""
        result = allocator.allocate(DEFAULT_UNIVERSE, 15.2, Ledger(), AllocationConfig(0, 0, 0))

        assert result.orders == []
        assert set(result.target_weights.values()) == {0.0}
        assert result.metrics["order_count"] == 0

    def test_orders_affordable_from_cash(self, allocator: MultiStrategyAllocator) -> None:
        """Test a cash-only allocation never asks to spend more than the cash."""
        for vix in (12.0, 18.0, 21.0, 30.0):
            result = allocator.allocate(DEFAULT_UNIVERSE, vix, Ledger(), AllocationConfig())
            spend = sum(o.estimated_value for o in result.orders)
            assert spend <= 100_000_000
