from decimal import Decimal

from domain.calculation import CalculationResult, LineItemRate
from domain.line_items import LineItemId

FIRST = LineItemId("42", "a")
SECOND = LineItemId("43", "b")


def _result() -> CalculationResult:
    return CalculationResult(
        freight_taxable=True,
        has_nexus=True,
        shipping_rate=Decimal("0"),
        line_item_rates={
            FIRST: LineItemRate(Decimal("0.1"), Decimal("10.00"), Decimal("100")),
            SECOND: LineItemRate(Decimal("0.05"), Decimal("0.50"), Decimal("10")),
        },
        rate_ids={FIRST: 1, SECOND: 1},
    )


def test_tax_override_matches_line_total_for_rate() -> None:
    result = _result()

    assert result.tax_override(1, Decimal("100.001")) == Decimal("10.00")
    assert result.tax_override(1, Decimal("10")) == Decimal("0.50")


def test_tax_override_ignores_other_rates_and_prices() -> None:
    result = _result()

    assert result.tax_override(2, Decimal("100")) is None
    assert result.tax_override(1, Decimal("55")) is None


def test_untaxed_line_items_empty_when_all_taxed() -> None:
    assert _result().untaxed_line_items() == []
