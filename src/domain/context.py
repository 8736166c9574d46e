"""Inputs handed over by the host commerce platform for one calculation."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from domain.address import Address


class Customer(BaseModel):
    id: int | None = None
    is_vat_exempt: bool = False
    billing: Address = Field(default_factory=Address)
    shipping: Address = Field(default_factory=Address)


class CartItem(BaseModel):
    key: str
    product_id: str
    quantity: int
    price: Decimal
    line_subtotal: Decimal
    line_total: Decimal
    tax_class: str = ""
    taxable: bool = True

    @model_validator(mode="after")
    def _validate_fields(self) -> CartItem:
        if self.quantity <= 0:
            raise ValueError("CartItem.quantity must be > 0")
        if self.price < 0:
            raise ValueError("CartItem.price must be >= 0")
        return self


class CartContext(BaseModel):
    items: list[CartItem] = Field(default_factory=list)
    shipping_total: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    customer: Customer | None = None
    chosen_shipping_methods: list[str] = Field(default_factory=list)
    exemption_type: str = ""

    def billing_address(self) -> Address | None:
        return self.customer.billing if self.customer is not None else None

    def shipping_address(self) -> Address | None:
        return self.customer.shipping if self.customer is not None else None

    @property
    def customer_id(self) -> int | None:
        return self.customer.id if self.customer is not None else None

    @property
    def is_vat_exempt(self) -> bool:
        return self.customer is not None and self.customer.is_vat_exempt


class OrderItem(BaseModel):
    item_id: str
    product_id: str
    quantity: int
    subtotal: Decimal
    total: Decimal
    tax_class: str = ""
    tax_status: str = "taxable"

    @model_validator(mode="after")
    def _validate_fields(self) -> OrderItem:
        if self.quantity <= 0:
            raise ValueError("OrderItem.quantity must be > 0")
        return self


class OrderContext(BaseModel):
    order_id: str
    items: list[OrderItem] = Field(default_factory=list)
    fee_totals: list[Decimal] = Field(default_factory=list)
    shipping_total: Decimal = Decimal("0")
    customer_id: int | None = None
    is_vat_exempt: bool = False
    shipping: Address = Field(default_factory=Address)
    billing: Address = Field(default_factory=Address)
    chosen_shipping_methods: list[str] = Field(default_factory=list)
    exemption_type: str = ""

    def billing_address(self) -> Address | None:
        return self.billing

    def shipping_address(self) -> Address | None:
        return self.shipping

    @property
    def total(self) -> Decimal:
        items_total = sum((item.total for item in self.items), Decimal("0"))
        return items_total + sum(self.fee_totals, Decimal("0")) + self.shipping_total


__all__ = ["CartContext", "CartItem", "Customer", "OrderContext", "OrderItem"]
