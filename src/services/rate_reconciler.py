from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Mapping

from domain.address import Address
from domain.calculation import LineItemRate
from domain.errors import RateStoreError
from domain.line_items import LineItemId
from domain.tax_rates import RateLocation, TaxRateRecord, TaxRateStore

from .keyed_locks import KeyedLocks

logger = logging.getLogger(__name__)

SHIPPING_KEY = "shipping"


@dataclass
class Reconciliation:
    rate_ids: dict[LineItemId, int] = field(default_factory=dict)
    shipping_rate_id: int | None = None
    errors: list[str] = field(default_factory=list)


class RateReconciler:
    """Mirrors remote rates onto local rate records, creating or overwriting them.

    Record identity is the location plus tax class; the rate value always comes
    from the latest remote answer. Find-or-create is not atomic across
    processes: concurrent passes for the same key can insert a duplicate or
    lose an update. ``locks`` serializes passes within one process.
    """

    def __init__(self, store: TaxRateStore, *, locks: KeyedLocks | None = None) -> None:
        self.store = store
        self.locks = locks

    def reconcile(
        self,
        destination: Address,
        line_item_rates: Mapping[LineItemId, LineItemRate],
        shipping_rate: Decimal,
        freight_taxable: bool,
        tax_class_of: Callable[[LineItemId], str],
        *,
        include_shipping: bool = True,
    ) -> Reconciliation:
        result = Reconciliation()

        for line_id, line_rate in line_item_rates.items():
            if not line_rate.combined_tax_rate:
                continue
            location = RateLocation.for_destination(destination, tax_class_of(line_id))
            try:
                result.rate_ids[line_id] = self.create_or_update(
                    location, line_rate.combined_tax_rate * 100, freight_taxable
                )
            except RateStoreError as exc:
                logger.error("Could not store tax rate for line item %s: %s", line_id, exc)
                result.errors.append(str(line_id))

        if include_shipping:
            location = RateLocation.for_destination(destination)
            try:
                result.shipping_rate_id = self.create_or_update(location, shipping_rate * 100, freight_taxable)
            except RateStoreError as exc:
                logger.error("Could not store shipping tax rate: %s", exc)
                result.errors.append(SHIPPING_KEY)

        return result

    def create_or_update(self, location: RateLocation, rate: Decimal, shipping_taxable: bool) -> int:
        record = TaxRateRecord(
            country=location.country,
            state=location.state,
            name=f"{location.state} Tax",
            priority=1,
            compound=False,
            shipping_taxable=shipping_taxable,
            rate=rate,
            tax_class=location.tax_class,
        )

        guard = self.locks.hold(location.lock_key()) if self.locks is not None else nullcontext()
        with guard:
            existing = self.store.find_rates(location)
            if existing and existing[0].id is not None:
                rate_id = existing[0].id
                logger.debug("Tax rate %s found for %s, updating rate to %s", rate_id, location, rate)
                self.store.update_rate(rate_id, record)
            else:
                logger.debug("Adding new tax rate for %s at %s", location, rate)
                rate_id = self.store.insert_rate(record)
                self.store.set_rate_postcodes(rate_id, [location.postcode])
                self.store.set_rate_cities(rate_id, [location.city])

        logger.debug("Tax rate id set for %s", rate_id)
        return rate_id


__all__ = ["RateReconciler", "Reconciliation", "SHIPPING_KEY"]
