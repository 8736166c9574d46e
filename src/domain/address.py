from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Iterable

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from domain.context import CartContext, OrderContext


class TaxBasis(StrEnum):
    BASE = "base"
    BILLING = "billing"
    SHIPPING = "shipping"


class Address(BaseModel):
    """Destination or ship-from address.

    Every field may be empty; an empty country means the address cannot be
    used for a calculation.
    """

    model_config = ConfigDict(frozen=True)

    country: str = ""
    state: str = ""
    postal_code: str = ""
    city: str = ""
    street: str = ""

    @field_validator("country", "state", "postal_code", "city", "street", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def is_empty(self) -> bool:
        return not self.country


DEFAULT_LOCAL_PICKUP_METHODS = frozenset({"legacy_local_pickup", "local_pickup"})


class AddressResolver:
    def __init__(
        self,
        *,
        store_address: Address,
        apply_base_tax_for_local_pickup: bool = True,
        local_pickup_methods: Iterable[str] | None = None,
    ) -> None:
        self.store_address = store_address
        self.apply_base_tax_for_local_pickup = apply_base_tax_for_local_pickup
        self.local_pickup_methods = frozenset(local_pickup_methods or DEFAULT_LOCAL_PICKUP_METHODS)

    def resolve(self, tax_basis: TaxBasis, context: CartContext | OrderContext) -> Address:
        basis = TaxBasis.BASE if self.is_local_pickup(context.chosen_shipping_methods) else tax_basis

        if basis == TaxBasis.BASE:
            return self.store_address
        if basis == TaxBasis.BILLING:
            return context.billing_address() or Address()
        return context.shipping_address() or Address()

    def is_local_pickup(self, chosen_methods: Iterable[str]) -> bool:
        if not self.apply_base_tax_for_local_pickup:
            return False
        # Chosen methods carry an instance suffix, e.g. "local_pickup:3".
        method_ids = {method.split(":", 1)[0] for method in chosen_methods}
        return bool(method_ids & self.local_pickup_methods)


__all__ = ["Address", "AddressResolver", "DEFAULT_LOCAL_PICKUP_METHODS", "TaxBasis"]
