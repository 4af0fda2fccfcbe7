from decimal import Decimal

from core.trading.models import Position
from services.portfolio_manager.valuator import PortfolioValuator


def _positions():
    return [
        Position(instrument_id=2, ticker="PAMP", name="Pampa", quantity=Decimal("10"), total_value=Decimal("1000.00")),
        Position(instrument_id=3, ticker="METR", name="MetroGAS", quantity=Decimal("4"), total_value=Decimal("1000.00")),
    ]


def test_no_positions_value_equals_cash():
    valuator = PortfolioValuator()
    assert valuator.compute_total_account_value([], None, Decimal("123.45")) == Decimal("123.45")


def test_single_reference_price_applies_to_every_position():
    valuator = PortfolioValuator()
    positions = _positions()

    total = valuator.compute_total_account_value(positions, Decimal("110.00"), Decimal("8000.00"))

    assert total == Decimal("9540.00")  # 8000 + 1100 + 440
    assert positions[0].total_return == Decimal("10.00")
    assert positions[1].total_return == Decimal("-56.00")


def test_per_instrument_prices():
    valuator = PortfolioValuator()
    positions = _positions()

    total = valuator.compute_total_account_value(
        positions, {2: Decimal("110.00"), 3: Decimal("250.00")}, Decimal("8000.00")
    )

    assert total == Decimal("10100.00")
    assert positions[0].total_return == Decimal("10.00")
    assert positions[1].total_return == Decimal("0.00")


def test_zero_cost_basis_returns_zero_instead_of_raising():
    valuator = PortfolioValuator()
    positions = [Position(instrument_id=2, ticker="PAMP", name="Pampa",
                          quantity=Decimal("0"), total_value=Decimal("0.00"))]

    total = valuator.compute_total_account_value(positions, Decimal("100.00"), Decimal("50.00"))

    assert total == Decimal("50.00")
    assert positions[0].total_return == Decimal("0.00")


def test_missing_price_counts_as_zero():
    valuator = PortfolioValuator()
    positions = _positions()

    total = valuator.compute_total_account_value(positions, {2: Decimal("100.00")}, Decimal("0.00"))

    assert total == Decimal("1000.00")
    assert positions[1].total_return == Decimal("-100.00")


def test_return_is_rounded_half_up():
    valuator = PortfolioValuator()
    positions = [Position(instrument_id=2, ticker="PAMP", name="Pampa",
                          quantity=Decimal("3"), total_value=Decimal("300.00"))]

    # (100.015 * 3 - 300) / 300 * 100 = 0.015
    valuator.compute_total_account_value(positions, Decimal("100.015"), Decimal("0"))

    assert positions[0].total_return == Decimal("0.02")
