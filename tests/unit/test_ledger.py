"""Unit tests for Ledger."""

import threading

import numpy as np
import pytest

from quantcore.execution.base import Order, OrderSide
from quantcore.ledger.ledger import (
    FillStatus,
    Holding,
    Ledger,
    LedgerSnapshot,
    RejectReason,
)


def make_order(side: OrderSide, instrument_id: str, price: float, quantity: int, order_id: str = "o1") -> Order:
    """Create an order with a fixed id."""
    return Order(
        order_id=order_id,
        side=side,
        instrument_id=instrument_id,
        limit_price=price,
        quantity=quantity,
    )


class TestLedgerInit:
    """Test cases for Ledger construction."""

    def test_default_cash(self) -> None:
        """Test ledger starts with 100M cash and no holdings."""
        ledger = Ledger()

        assert ledger.cash == 100_000_000.0
        assert ledger.holdings == {}

    def test_negative_initial_cash(self) -> None:
        """Test negative starting cash is rejected."""
        with pytest.raises(ValueError, match="initial_cash must be non-negative"):
            Ledger(-1)


class TestBuyFills:
    """Test cases for BUY fills."""

    @pytest.fixture
    def ledger(self) -> Ledger:
        return Ledger(initial_cash=1_000_000)

    def test_buy_creates_holding(self, ledger: Ledger) -> None:
        """Test first buy creates a holding at the fill price."""
        result = ledger.apply_fill(make_order(OrderSide.BUY, "A005930", 75000, 10))

        assert result.accepted
        assert result.status == FillStatus.SETTLED
        assert result.reason is None
        assert ledger.cash == 250_000
        assert ledger.holdings["A005930"] == Holding("A005930", 10, 75000)

    def test_buy_updates_weighted_average_cost(self, ledger: Ledger) -> None:
        """Test additional buy recomputes the weighted average cost."""
        ledger.apply_fill(make_order(OrderSide.BUY, "A005930", 50000, 10, "o1"))
        ledger.apply_fill(make_order(OrderSide.BUY, "A005930", 80000, 5, "o2"))

        holding = ledger.holdings["A005930"]
        assert holding.shares == 15
        # (10 * 50000 + 5 * 80000) / 15 = 60000
        assert holding.avg_cost == pytest.approx(60000)
        assert ledger.cash == 1_000_000 - 500_000 - 400_000

    def test_buy_exactly_all_cash(self, ledger: Ledger) -> None:
        """Test buy costing exactly the available cash is accepted."""
        result = ledger.apply_fill(make_order(OrderSide.BUY, "X", 100_000, 10))

        assert result.accepted
        assert ledger.cash == 0

    def test_buy_insufficient_margin(self, ledger: Ledger) -> None:
        """Test buy costing more than cash is rejected without mutation."""
        result = ledger.apply_fill(make_order(OrderSide.BUY, "A005380", 240000, 5))

        assert not result.accepted
        assert result.status == FillStatus.REJECTED
        assert result.reason == RejectReason.INSUFFICIENT_MARGIN
        assert result.cash_after == 1_000_000
        assert ledger.cash == 1_000_000
        assert ledger.holdings == {}

    def test_explicit_fill_price_overrides_limit(self, ledger: Ledger) -> None:
        """Test an explicit fill price is used instead of the limit price."""
        result = ledger.apply_fill(make_order(OrderSide.BUY, "X", 1000, 10), fill_price=900)

        assert result.fill_price == 900
        assert ledger.cash == 1_000_000 - 9000


class TestSellFills:
    """Test cases for SELL fills."""

    @pytest.fixture
    def ledger(self) -> Ledger:
        ledger = Ledger(initial_cash=1_000_000)
        ledger.apply_fill(make_order(OrderSide.BUY, "A005930", 50000, 10, "seed"))
        return ledger

    def test_partial_sell(self, ledger: Ledger) -> None:
        """Test partial sell credits cash and keeps the average cost."""
        result = ledger.apply_fill(make_order(OrderSide.SELL, "A005930", 60000, 4))

        assert result.accepted
        assert result.shares_after == 6
        assert ledger.cash == 500_000 + 240_000
        assert ledger.holdings["A005930"].shares == 6
        assert ledger.holdings["A005930"].avg_cost == 50000

    def test_full_sell_removes_holding(self, ledger: Ledger) -> None:
        """Test selling every share deletes the holding entry."""
        result = ledger.apply_fill(make_order(OrderSide.SELL, "A005930", 55000, 10))

        assert result.accepted
        assert result.shares_after == 0
        assert "A005930" not in ledger.holdings
        assert ledger.shares_of("A005930") == 0
        assert ledger.cash == 500_000 + 550_000

    def test_naked_short_blocked(self, ledger: Ledger) -> None:
        """Test selling more than held is rejected, never clamped."""
        result = ledger.apply_fill(make_order(OrderSide.SELL, "A005930", 50000, 11))

        assert not result.accepted
        assert result.reason == RejectReason.NAKED_SHORT_BLOCKED
        assert ledger.holdings["A005930"].shares == 10
        assert ledger.cash == 500_000

    def test_naked_short_on_unheld_instrument(self, ledger: Ledger) -> None:
        """Test selling an instrument not held is rejected."""
        result = ledger.apply_fill(make_order(OrderSide.SELL, "A114800", 4200, 1))

        assert result.reason == RejectReason.NAKED_SHORT_BLOCKED
        assert result.shares_after == 0
        assert "A114800" not in ledger.holdings

    def test_naked_short_rejection_is_idempotent(self, ledger: Ledger) -> None:
        """Test repeated naked-short attempts leave state unchanged every time."""
        before = ledger.snapshot()

        for i in range(3):
            result = ledger.apply_fill(
                make_order(OrderSide.SELL, "A005930", 50000, 100, f"s{i}")
            )
            assert result.reason == RejectReason.NAKED_SHORT_BLOCKED

        after = ledger.snapshot()
        assert after.cash == before.cash
        assert after.holdings == before.holdings


class TestTotalAssets:
    """Test cases for total asset valuation."""

    @pytest.fixture
    def ledger(self) -> Ledger:
        ledger = Ledger(initial_cash=1_000_000)
        ledger.apply_fill(make_order(OrderSide.BUY, "A", 10000, 10, "a"))
        ledger.apply_fill(make_order(OrderSide.BUY, "B", 5000, 20, "b"))
        return ledger

    def test_total_assets_with_mapping(self, ledger: Ledger) -> None:
        """Test holdings are marked at the given prices."""
        total = ledger.total_assets({"A": 12000, "B": 4000})

        assert total == 800_000 + 120_000 + 80_000

    def test_total_assets_with_callable(self, ledger: Ledger) -> None:
        """Test price lookup may be a callable."""
        total = ledger.total_assets(lambda instrument_id: 1000)

        assert total == 800_000 + 10_000 + 20_000

    def test_missing_price_contributes_zero(self, ledger: Ledger) -> None:
        """Test instruments without a live price add nothing."""
        total = ledger.total_assets({"A": 10000})

        assert total == 800_000 + 100_000


class TestSnapshotAndReset:
    """Test cases for snapshots and reset."""

    def test_snapshot_is_a_copy(self) -> None:
        """Test later fills do not change an earlier snapshot."""
        ledger = Ledger(initial_cash=100_000)
        snapshot = ledger.snapshot()

        ledger.apply_fill(make_order(OrderSide.BUY, "A", 1000, 10))

        assert isinstance(snapshot, LedgerSnapshot)
        assert snapshot.cash == 100_000
        assert snapshot.holdings == {}
        assert snapshot.shares_of("A") == 0

    def test_reset(self) -> None:
        """Test reset restores cash and clears holdings."""
        ledger = Ledger(initial_cash=100_000)
        ledger.apply_fill(make_order(OrderSide.BUY, "A", 1000, 10))

        ledger.reset()

        assert ledger.cash == 100_000
        assert ledger.holdings == {}

    def test_reset_with_new_cash(self) -> None:
        """Test reset can change the starting cash."""
        ledger = Ledger(initial_cash=100_000)

        ledger.reset(initial_cash=5_000)

        assert ledger.cash == 5_000
        assert ledger.initial_cash == 5_000


class TestLedgerInvariants:
    """Randomized fill sequences never break the cash/share invariants."""

    @pytest.mark.parametrize("seed", range(20))
    def test_random_fill_sequences(self, seed: int) -> None:
        """Test cash and shares stay non-negative over random fills."""
        rng = np.random.default_rng(seed)
        ledger = Ledger(initial_cash=float(rng.integers(0, 2_000_000)))
        instruments = ["A", "B", "C"]

        for i in range(200):
            side = OrderSide.BUY if rng.random() < 0.5 else OrderSide.SELL
            order = make_order(
                side,
                instruments[int(rng.integers(0, len(instruments)))],
                float(rng.integers(1, 100_000)),
                int(rng.integers(1, 50)),
                f"o{i}",
            )
            before = ledger.snapshot()

            result = ledger.apply_fill(order)

            assert ledger.cash >= 0
            for holding in ledger.holdings.values():
                assert holding.shares > 0
            if not result.accepted:
                after = ledger.snapshot()
                assert after.cash == before.cash
                assert after.holdings == before.holdings

    def test_concurrent_buys_do_not_lose_updates(self) -> None:
        """Test concurrent fills on different instruments all deduct cash."""
        ledger = Ledger(initial_cash=1_000_000)
        instruments = [f"I{i}" for i in range(8)]

        def buy_many(instrument_id: str) -> None:
            for n in range(100):
                ledger.apply_fill(
                    make_order(OrderSide.BUY, instrument_id, 10, 1, f"{instrument_id}-{n}")
                )

        threads = [threading.Thread(target=buy_many, args=(i,)) for i in instruments]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert ledger.cash == 1_000_000 - 8 * 100 * 10
        assert all(ledger.shares_of(i) == 100 for i in instruments)
