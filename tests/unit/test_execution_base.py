"""Unit tests for order types."""

import dataclasses

import pytest

from quantcore.execution.base import Order, OrderSide, OrderStatus


class TestOrder:
    """Test cases for Order."""

    def test_notional(self) -> None:
        """Test notional is limit price times quantity."""
        order = Order("o1", OrderSide.BUY, "A005930", 75000, 1333)

        assert order.notional == 99_975_000

    def test_immutable(self) -> None:
        """Test orders cannot be modified after creation."""
        order = Order("o1", OrderSide.SELL, "A005930", 75000, 10)

        with pytest.raises(dataclasses.FrozenInstanceError):
            order.quantity = 20

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_non_positive_quantity(self, quantity: int) -> None:
        """Test orders need a positive quantity."""
        with pytest.raises(ValueError, match="quantity must be positive"):
            Order("o1", OrderSide.BUY, "A005930", 75000, quantity)

    def test_negative_price(self) -> None:
        """Test limit price cannot be negative."""
        with pytest.raises(ValueError, match="limit_price must be non-negative"):
            Order("o1", OrderSide.BUY, "A005930", -1, 1)


class TestOrderStatus:
    """Test cases for OrderStatus."""

    def test_terminal_states(self) -> None:
        """Test only settled and rejected are terminal."""
        assert OrderStatus.SETTLED.is_terminal
        assert OrderStatus.REJECTED.is_terminal
        assert not OrderStatus.PENDING.is_terminal
        assert not OrderStatus.DISPATCHED.is_terminal

    def test_side_values(self) -> None:
        """Test side values match the wire strings."""
        assert OrderSide.BUY.value == "BUY"
        assert OrderSide.SELL.value == "SELL"
