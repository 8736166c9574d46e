from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any, Iterable, Sequence

from domain.address import Address
from domain.errors import InvalidRequest, MalformedResponse
from domain.line_items import LineItem, LineItemId

CACHE_KEY_PREFIX = "tj_tax_"


class ExemptionType(StrEnum):
    WHOLESALE = "wholesale"
    GOVERNMENT = "government"
    OTHER = "other"
    NON_EXEMPT = "non_exempt"


class SkipReason(StrEnum):
    ZERO_TOTAL = "zero_total"
    MISSING_DESTINATION = "missing_destination"
    NOTHING_TO_TAX = "nothing_to_tax"
    CUSTOMER_EXEMPT = "customer_exempt"
    INVALID_POSTAL_CODE = "invalid_postal_code"
    NO_NEXUS = "no_nexus"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    INVALID_REQUEST = "invalid_request"
    MALFORMED_RESPONSE = "malformed_response"


@dataclass(frozen=True)
class Skipped:
    """No tax from the remote service this time; not an error for the caller."""

    reason: SkipReason
    detail: str = ""


def normalize_destination(address: Address) -> Address:
    # Only the first of several comma separated postcodes is used.
    postal_code = address.postal_code.split(",", 1)[0].strip()
    if postal_code == address.postal_code:
        return address
    return address.model_copy(update={"postal_code": postal_code})


def _number(value: Decimal) -> float:
    return float(value)


def _optional(value: str) -> str | None:
    return value or None


@dataclass(frozen=True)
class CalculationRequest:
    from_address: Address
    to_address: Address
    shipping_amount: Decimal
    line_items: tuple[LineItem, ...]
    plugin: str
    customer_id: int | None = None
    exemption_type: ExemptionType | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "from_country": _optional(self.from_address.country),
            "from_state": _optional(self.from_address.state),
            "from_zip": _optional(self.from_address.postal_code),
            "from_city": _optional(self.from_address.city),
            "from_street": _optional(self.from_address.street),
            "to_country": self.to_address.country,
            "to_state": _optional(self.to_address.state),
            "to_zip": self.to_address.postal_code,
            "to_city": _optional(self.to_address.city),
            "to_street": _optional(self.to_address.street),
            "shipping": _number(self.shipping_amount),
            "plugin": self.plugin,
        }
        if self.customer_id is not None and self.customer_id > 0:
            payload["customer_id"] = self.customer_id
        if self.exemption_type is not None:
            payload["exemption_type"] = self.exemption_type.value

        # The service needs either `amount` or `line_items`, never both.
        if self.line_items:
            payload["line_items"] = [
                {
                    "id": str(item.id),
                    "quantity": item.quantity,
                    "product_tax_code": item.tax_code,
                    "unit_price": _number(item.unit_price),
                    "discount": _number(item.discount),
                }
                for item in self.line_items
            ]
        else:
            payload["amount"] = 0.0
        return payload

    def serialize(self) -> str:
        return json.dumps(self.to_payload(), sort_keys=True, separators=(",", ":"))

    def cache_key(self) -> str:
        return CACHE_KEY_PREFIX + hashlib.md5(self.serialize().encode("utf-8")).hexdigest()

    def line_item(self, line_item_id: LineItemId) -> LineItem | None:
        for item in self.line_items:
            if item.id == line_item_id:
                return item
        return None


class RequestBuilder:
    def __init__(self, *, plugin: str, strict_exemptions: bool = False) -> None:
        self.plugin = plugin
        self.strict_exemptions = strict_exemptions

    def build(
        self,
        from_address: Address,
        to_address: Address,
        shipping_amount: Decimal | None,
        line_items: Sequence[LineItem],
        customer_id: int | None = None,
        exemption_type: str | None = None,
    ) -> CalculationRequest:
        to_address = normalize_destination(to_address)
        shipping = shipping_amount if shipping_amount is not None else Decimal("0")

        if not to_address.country:
            raise InvalidRequest("Destination country is required", payload=to_address.model_dump())
        if not to_address.postal_code:
            raise InvalidRequest("Destination postal code is required", payload=to_address.model_dump())
        if not line_items and shipping == 0:
            raise InvalidRequest("Request has neither line items nor shipping")

        return CalculationRequest(
            from_address=from_address,
            to_address=to_address,
            shipping_amount=shipping,
            line_items=tuple(line_items),
            plugin=self.plugin,
            customer_id=customer_id,
            exemption_type=self._exemption_type(exemption_type),
        )

    def _exemption_type(self, raw: str | None) -> ExemptionType | None:
        if not raw:
            return None
        try:
            return ExemptionType(raw)
        except ValueError:
            if self.strict_exemptions:
                raise InvalidRequest(f"Unknown exemption type {raw!r}") from None
            return None


@dataclass(frozen=True)
class LineItemRate:
    combined_tax_rate: Decimal
    tax_collectable: Decimal
    line_total: Decimal


@dataclass
class CalculationResult:
    freight_taxable: bool
    has_nexus: bool
    shipping_rate: Decimal
    line_item_rates: dict[LineItemId, LineItemRate] = field(default_factory=dict)
    rate_ids: dict[LineItemId, int] = field(default_factory=dict)
    shipping_rate_id: int | None = None
    from_cache: bool = False
    rate_errors: list[str] = field(default_factory=list)

    def untaxed_line_items(self) -> list[LineItemId]:
        return [line_id for line_id, rate in self.line_item_rates.items() if not rate.combined_tax_rate]

    def tax_override(self, rate_id: int, price: Decimal) -> Decimal | None:
        """Remote tax for the line item taxed by ``rate_id`` whose total equals ``price``.

        Several line items can share one rate record while the service charged
        them differently (exemption thresholds); the host uses this to put the
        quoted tax back on the matching line.
        """
        target = round(price, 2)
        for line_id, line_rate in self.line_item_rates.items():
            if self.rate_ids.get(line_id) != rate_id:
                continue
            if round(line_rate.line_total, 2) == target:
                return line_rate.tax_collectable
        return None


def _decimal(value: Any, *, field_name: str, payload: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise MalformedResponse(f"Non-numeric {field_name} in tax response", payload=payload) from exc


class ResponseMapper:
    def map(
        self, raw_body: str | bytes | dict[str, Any], request_ids: Iterable[LineItemId] = ()
    ) -> CalculationResult:
        """Map a remote answer; ``request_ids`` resolves remote line ids to the ids that were sent."""
        payload = self._decode(raw_body)
        known_ids = {str(line_id): line_id for line_id in request_ids}
        tax = payload.get("tax")
        if not isinstance(tax, dict):
            raise MalformedResponse("Tax response is missing the tax envelope", payload=payload)

        result = CalculationResult(
            freight_taxable=bool(tax.get("freight_taxable")),
            has_nexus=bool(tax.get("has_nexus")),
            shipping_rate=_decimal(tax.get("rate"), field_name="rate", payload=payload),
        )

        breakdown = tax.get("breakdown")
        if not breakdown:
            return result
        if not isinstance(breakdown, dict):
            raise MalformedResponse("Tax response breakdown is not an object", payload=payload)

        shipping = breakdown.get("shipping")
        if shipping:
            if not isinstance(shipping, dict):
                raise MalformedResponse("Tax response shipping breakdown is not an object", payload=payload)
            result.shipping_rate = _decimal(
                shipping.get("combined_tax_rate"), field_name="shipping.combined_tax_rate", payload=payload
            )

        line_items = breakdown.get("line_items")
        if line_items:
            if not isinstance(line_items, list):
                raise MalformedResponse("Tax response line_items breakdown is not a list", payload=payload)
            for entry in line_items:
                line_id, line_rate = self._map_line_item(entry, payload, known_ids)
                result.line_item_rates[line_id] = line_rate
        return result

    @staticmethod
    def _decode(raw_body: str | bytes | dict[str, Any]) -> dict[str, Any]:
        if isinstance(raw_body, dict):
            return raw_body
        try:
            payload = json.loads(raw_body)
        except ValueError as exc:
            raise MalformedResponse("Tax response is not valid JSON", payload=raw_body) from exc
        if not isinstance(payload, dict):
            raise MalformedResponse("Tax response has unexpected payload type", payload=payload)
        return payload

    @staticmethod
    def _map_line_item(
        entry: Any, payload: Any, known_ids: dict[str, LineItemId]
    ) -> tuple[LineItemId, LineItemRate]:
        if not isinstance(entry, dict) or entry.get("id") in (None, ""):
            raise MalformedResponse("Tax response line item is missing its id", payload=payload)
        # Product ids may contain "-", so ids that were sent are matched whole.
        line_id = known_ids.get(str(entry["id"]))
        if line_id is None:
            try:
                line_id = LineItemId.parse(entry["id"])
            except ValueError as exc:
                raise MalformedResponse(str(exc), payload=payload) from exc
        return line_id, LineItemRate(
            combined_tax_rate=_decimal(entry.get("combined_tax_rate"), field_name="combined_tax_rate", payload=payload),
            tax_collectable=_decimal(entry.get("tax_collectable"), field_name="tax_collectable", payload=payload),
            line_total=_decimal(entry.get("line_total"), field_name="line_total", payload=payload),
        )


__all__ = [
    "CACHE_KEY_PREFIX",
    "CalculationRequest",
    "CalculationResult",
    "ExemptionType",
    "LineItemRate",
    "RequestBuilder",
    "ResponseMapper",
    "SkipReason",
    "Skipped",
    "normalize_destination",
]
