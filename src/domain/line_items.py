from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from domain.context import CartItem, OrderItem

NONTAXABLE_TAX_CODE = "99999"
ZERO_RATE_TAX_CLASS = "zero-rate"


@dataclass(frozen=True, order=True)
class LineItemId:
    """Correlates a remote line item with the cart or order entry it came from."""

    product_id: str
    slot: str

    def __str__(self) -> str:
        return f"{self.product_id}-{self.slot}"

    @classmethod
    def parse(cls, raw: str | int) -> LineItemId:
        product_id, sep, slot = str(raw).partition("-")
        if not sep or not product_id:
            msg = f"Line item id {raw!r} is not of the form <product>-<slot>"
            raise ValueError(msg)
        return cls(product_id=product_id, slot=slot)


@dataclass(frozen=True)
class LineItem:
    id: LineItemId
    quantity: int
    unit_price: Decimal
    discount: Decimal
    tax_code: str
    # Local tax class of the product, never sent to the remote service.
    tax_class: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity - self.discount


def tax_code_from_class(tax_class: str) -> str:
    return tax_class.split("-")[-1].upper()


def sanitize_title(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")


def _kept(line_items: Iterable[LineItem | None]) -> list[LineItem]:
    return [line_item for line_item in line_items if line_item is not None]


class LineItemProjector:
    def project(self, items: Sequence[CartItem | OrderItem]) -> list[LineItem]:
        projected: list[LineItem] = []
        for item in items:
            line_item = self._project_cart_item(item) if isinstance(item, CartItem) else self._project_order_item(item)
            if line_item is not None:
                projected.append(line_item)
        return projected

    def project_cart(self, items: Sequence[CartItem]) -> list[LineItem]:
        return _kept(self._project_cart_item(item) for item in items)

    def project_order(self, items: Sequence[OrderItem]) -> list[LineItem]:
        return _kept(self._project_order_item(item) for item in items)

    @staticmethod
    def _project_cart_item(item: CartItem) -> LineItem | None:
        tax_code = tax_code_from_class(item.tax_class)
        if not item.taxable or sanitize_title(item.tax_class) == ZERO_RATE_TAX_CLASS:
            tax_code = NONTAXABLE_TAX_CODE

        if not item.price or not item.line_subtotal:
            return None

        return LineItem(
            id=LineItemId(product_id=item.product_id, slot=item.key),
            quantity=item.quantity,
            unit_price=item.price,
            discount=item.line_subtotal - item.line_total,
            tax_code=tax_code,
            tax_class=item.tax_class,
        )

    @staticmethod
    def _project_order_item(item: OrderItem) -> LineItem | None:
        # Derived from the stored subtotal so edited historical prices survive.
        unit_price = item.subtotal / item.quantity
        tax_code = tax_code_from_class(item.tax_class)
        if item.tax_status != "taxable":
            tax_code = NONTAXABLE_TAX_CODE

        if not unit_price:
            return None

        return LineItem(
            id=LineItemId(product_id=item.product_id, slot=item.item_id),
            quantity=item.quantity,
            unit_price=unit_price,
            discount=item.subtotal - item.total,
            tax_code=tax_code,
            tax_class=item.tax_class,
        )


__all__ = [
    "LineItem",
    "LineItemId",
    "LineItemProjector",
    "NONTAXABLE_TAX_CODE",
    "sanitize_title",
    "tax_code_from_class",
]
