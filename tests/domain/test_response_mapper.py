import json
from decimal import Decimal

import pytest

from domain.calculation import ResponseMapper
from domain.errors import MalformedResponse
from domain.line_items import LineItemId


def test_breakdown_shipping_rate_overrides_envelope_rate() -> None:
    body = json.dumps(
        {
            "tax": {
                "has_nexus": True,
                "freight_taxable": True,
                "rate": 0.0,
                "breakdown": {"shipping": {"combined_tax_rate": 0.08}},
            }
        }
    )

    result = ResponseMapper().map(body)

    assert result.shipping_rate == Decimal("0.08")
    assert result.has_nexus is True
    assert result.freight_taxable is True


def test_envelope_rate_used_without_breakdown() -> None:
    result = ResponseMapper().map({"tax": {"has_nexus": 1, "freight_taxable": 0, "rate": 0.065}})

    assert result.shipping_rate == Decimal("0.065")
    assert result.freight_taxable is False
    assert result.line_item_rates == {}


def test_line_items_are_keyed_by_remote_id() -> None:
    body = {
        "tax": {
            "has_nexus": True,
            "freight_taxable": False,
            "rate": 0.08875,
            "breakdown": {
                "line_items": [
                    {"id": "42-a", "combined_tax_rate": 0.08875, "tax_collectable": 8.88, "taxable_amount": 100},
                    {"id": "43-b", "combined_tax_rate": 0, "tax_collectable": 0},
                ]
            },
        }
    }

    result = ResponseMapper().map(body)

    taxed = result.line_item_rates[LineItemId("42", "a")]
    assert taxed.combined_tax_rate == Decimal("0.08875")
    assert taxed.tax_collectable == Decimal("8.88")
    assert result.line_item_rates[LineItemId("43", "b")].combined_tax_rate == 0
    assert result.untaxed_line_items() == [LineItemId("43", "b")]


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        "[]",
        json.dumps({"rate": 0.1}),
        json.dumps({"tax": "nope"}),
        json.dumps({"tax": {"breakdown": ["x"]}}),
        json.dumps({"tax": {"breakdown": {"line_items": {"id": "1-a"}}}}),
        json.dumps({"tax": {"breakdown": {"line_items": [{"combined_tax_rate": 0.1}]}}}),
        json.dumps({"tax": {"rate": "abc"}}),
    ],
)
def test_malformed_responses_raise(body: str) -> None:
    with pytest.raises(MalformedResponse):
        ResponseMapper().map(body)


def test_line_ids_resolve_against_sent_ids_when_product_id_has_hyphen() -> None:
    sent = LineItemId("SKU-1", "a")
    body = {
        "tax": {
            "has_nexus": True,
            "freight_taxable": False,
            "rate": 0.05,
            "breakdown": {"line_items": [{"id": "SKU-1-a", "combined_tax_rate": 0.05, "tax_collectable": 1}]},
        }
    }

    result = ResponseMapper().map(body, [sent])

    assert list(result.line_item_rates) == [sent]
    assert result.line_item_rates[sent].combined_tax_rate == Decimal("0.05")
