from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, Field, model_validator

from domain.address import Address


def sanitize_key(value: str) -> str:
    return re.sub(r"[^a-z0-9_\-]", "", value.lower())


def normalize_postcode(postcode: str) -> str:
    return re.sub(r"\s+", "", postcode).upper()


def wildcard_postcodes(postcode: str) -> list[str]:
    """Patterns a stored postcode may take to match ``postcode``: exact, ``*`` and prefixes."""
    normalized = normalize_postcode(postcode)
    patterns = ["*", normalized, f"{normalized}*"]
    for length in range(len(normalized) - 1, -1, -1):
        patterns.append(f"{normalized[:length]}*")
    return list(dict.fromkeys(patterns))


@dataclass(frozen=True)
class RateLocation:
    """Identity of a local rate record: where it applies and for which tax class."""

    country: str
    state: str
    postcode: str
    city: str
    tax_class: str = ""

    @classmethod
    def for_destination(cls, destination: Address, tax_class: str = "") -> RateLocation:
        return cls(
            country=destination.country.upper(),
            state=destination.state,
            postcode=destination.postal_code,
            city=destination.city,
            tax_class=tax_class,
        )

    @property
    def state_key(self) -> str:
        return sanitize_key(self.state)

    def lock_key(self) -> str:
        return "|".join(
            (self.country, self.state_key, normalize_postcode(self.postcode), self.city.upper(), self.tax_class)
        )


class TaxRateRecord(BaseModel):
    id: int | None = None
    country: str
    state: str = ""
    name: str = ""
    priority: int = 1
    compound: bool = False
    shipping_taxable: bool = True
    # Percentage, e.g. 8.875 for 8.875 %.
    rate: Decimal
    tax_class: str = ""
    postcodes: list[str] = Field(default_factory=list)
    cities: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_fields(self) -> TaxRateRecord:
        if not self.country:
            raise ValueError("TaxRateRecord.country must be non-empty")
        if self.rate < 0:
            raise ValueError("TaxRateRecord.rate must be >= 0")
        return self


class TaxRateStore(Protocol):
    def find_rates(self, location: RateLocation) -> list[TaxRateRecord]: ...

    def insert_rate(self, record: TaxRateRecord) -> int: ...

    def update_rate(self, rate_id: int, record: TaxRateRecord) -> None: ...

    def set_rate_postcodes(self, rate_id: int, patterns: list[str]) -> None: ...

    def set_rate_cities(self, rate_id: int, patterns: list[str]) -> None: ...


__all__ = [
    "RateLocation",
    "TaxRateRecord",
    "TaxRateStore",
    "normalize_postcode",
    "sanitize_key",
    "wildcard_postcodes",
]
