from __future__ import annotations

import dataclasses
import logging
from decimal import Decimal
from typing import Callable, Sequence

from sqlalchemy.orm import Session

from config import AppSettings, ExemptionHandling
from db.repositories import TaxRateRepository
from db.transient_store import SqlTransientStore
from domain.address import Address, AddressResolver
from domain.calculation import (
    CalculationRequest,
    CalculationResult,
    RequestBuilder,
    ResponseMapper,
    SkipReason,
    Skipped,
    normalize_destination,
)
from domain.context import CartContext, OrderContext
from domain.errors import InvalidRequest, MalformedResponse, TransportFailure
from domain.line_items import LineItem, LineItemProjector
from domain.postal import is_postal_code_valid

from .calculation_cache import CalculationCache
from .keyed_locks import KeyedLocks
from .nexus import NexusChecker
from .rate_reconciler import RateReconciler
from .taxjar_client import TaxJarClient

logger = logging.getLogger(__name__)

Context = CartContext | OrderContext
PreRequestHook = Callable[[CalculationRequest, Context], CalculationRequest]
PostResponseHook = Callable[[CalculationResult, CalculationRequest], CalculationResult]
CalculationOutcome = CalculationResult | Skipped


class TaxCalculator:
    """Entry point for the host platform: one call per cart or order calculation.

    Every business rule short-circuit and every failure comes back as
    ``Skipped``; the host then leaves its own tax behaviour in place.
    Rate records written before a failure are kept, they only cache a rate.
    """

    def __init__(
        self,
        *,
        settings: AppSettings,
        cache: CalculationCache,
        reconciler: RateReconciler,
        nexus: NexusChecker | None = None,
        address_resolver: AddressResolver | None = None,
        projector: LineItemProjector | None = None,
        builder: RequestBuilder | None = None,
        mapper: ResponseMapper | None = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.reconciler = reconciler
        self.nexus = nexus or NexusChecker(settings.nexus_regions)
        self.address_resolver = address_resolver or AddressResolver(
            store_address=settings.store_address(),
            apply_base_tax_for_local_pickup=settings.apply_base_tax_for_local_pickup,
            local_pickup_methods=settings.local_pickup_methods,
        )
        self.projector = projector or LineItemProjector()
        self.builder = builder or RequestBuilder(
            plugin=settings.plugin_name,
            strict_exemptions=settings.exemption_handling == ExemptionHandling.STRICT,
        )
        self.mapper = mapper or ResponseMapper()
        self._pre_request_hooks: list[PreRequestHook] = []
        self._post_response_hooks: list[PostResponseHook] = []

    def register_pre_request(self, hook: PreRequestHook) -> None:
        self._pre_request_hooks.append(hook)

    def register_post_response(self, hook: PostResponseHook) -> None:
        self._post_response_hooks.append(hook)

    def should_calculate_cart(self, cart: CartContext) -> bool:
        return cart.total != 0

    def should_calculate_order(self, order: OrderContext) -> bool:
        return order.total > 0

    def calculate_for_cart(self, cart: CartContext) -> CalculationOutcome:
        if not self.should_calculate_cart(cart):
            return self._skip(SkipReason.ZERO_TOTAL, "cart total is zero")

        destination = self.address_resolver.resolve(self.settings.tax_basis, cart)
        return self._calculate(
            cart,
            destination=destination,
            line_items=self.projector.project_cart(cart.items),
            shipping_amount=cart.shipping_total,
            customer_id=cart.customer_id,
            exemption_type=cart.exemption_type,
            is_vat_exempt=cart.is_vat_exempt,
        )

    def calculate_for_order(self, order: OrderContext) -> CalculationOutcome:
        if not self.should_calculate_order(order):
            return self._skip(SkipReason.ZERO_TOTAL, f"order {order.order_id} total is not positive")

        destination = self.address_resolver.resolve(self.settings.tax_basis, order)
        return self._calculate(
            order,
            destination=destination,
            line_items=self.projector.project_order(order.items),
            shipping_amount=order.shipping_total,
            customer_id=order.customer_id,
            exemption_type=order.exemption_type,
            is_vat_exempt=order.is_vat_exempt,
        )

    def _calculate(
        self,
        context: Context,
        *,
        destination: Address,
        line_items: Sequence[LineItem],
        shipping_amount: Decimal,
        customer_id: int | None,
        exemption_type: str,
        is_vat_exempt: bool,
    ) -> CalculationOutcome:
        self._log(":::: Tax calculation requested ::::")
        destination = normalize_destination(destination)

        if not destination.country or not destination.postal_code:
            return self._skip(SkipReason.MISSING_DESTINATION, "destination country or postal code missing")
        if not line_items and shipping_amount == 0:
            return self._skip(SkipReason.NOTHING_TO_TAX, "no taxable line items and no shipping")
        if is_vat_exempt:
            return self._skip(SkipReason.CUSTOMER_EXEMPT, "customer is VAT exempt")
        if not is_postal_code_valid(destination.country, destination.state, destination.postal_code):
            return self._skip(
                SkipReason.INVALID_POSTAL_CODE,
                f"postal code {destination.postal_code} is invalid for country {destination.country}",
            )
        if not self.nexus.has_nexus(destination.country, destination.state):
            return self._skip(SkipReason.NO_NEXUS, "order not shipping to nexus area")

        try:
            request = self.builder.build(
                self.address_resolver.store_address,
                destination,
                shipping_amount,
                line_items,
                customer_id=customer_id,
                exemption_type=exemption_type,
            )
        except InvalidRequest as exc:
            logger.error("Invalid tax calculation request: %s", exc)
            return Skipped(SkipReason.INVALID_REQUEST, str(exc))

        for pre_hook in self._pre_request_hooks:
            request = pre_hook(request, context)

        self._log(":::: Tax API called ::::")
        try:
            response, from_cache = self.cache.get_or_compute(request, self.settings.cache_ttl_seconds)
        except TransportFailure as exc:
            logger.warning("Tax API unavailable: %s", exc)
            return Skipped(SkipReason.REMOTE_UNAVAILABLE, str(exc))

        if not response.ok:
            return self._skip(SkipReason.REMOTE_UNAVAILABLE, f"tax API answered with status {response.status_code}")

        self._log("Received%s: %s", " (cached)" if from_cache else "", response.body)
        try:
            result = self.mapper.map(response.body, [item.id for item in request.line_items])
        except MalformedResponse as exc:
            logger.error("Malformed tax API response: %s", exc)
            return Skipped(SkipReason.MALFORMED_RESPONSE, str(exc))

        result.from_cache = from_cache
        for line_id, line_rate in result.line_item_rates.items():
            local_item = request.line_item(line_id)
            if local_item is not None:
                result.line_item_rates[line_id] = dataclasses.replace(line_rate, line_total=local_item.line_total)

        for post_hook in self._post_response_hooks:
            result = post_hook(result, request)

        if result.has_nexus:
            self._reconcile(request, result)
        return result

    def _reconcile(self, request: CalculationRequest, result: CalculationResult) -> None:
        tax_classes = {item.id: item.tax_class for item in request.line_items}
        reconciliation = self.reconciler.reconcile(
            request.to_address,
            result.line_item_rates,
            result.shipping_rate,
            result.freight_taxable,
            lambda line_id: tax_classes.get(line_id, ""),
            include_shipping=result.freight_taxable,
        )
        result.rate_ids = reconciliation.rate_ids
        result.shipping_rate_id = reconciliation.shipping_rate_id
        result.rate_errors = reconciliation.errors
        if reconciliation.errors:
            logger.error("Tax rates could not be stored for: %s", ", ".join(reconciliation.errors))
        rate_ids = {str(line_id): rate_id for line_id, rate_id in result.rate_ids.items()}
        self._log("Rate ids: %s, shipping: %s", rate_ids, result.shipping_rate_id)

    def _skip(self, reason: SkipReason, detail: str) -> Skipped:
        self._log(":::: Calculation skipped (%s): %s ::::", reason.value, detail)
        return Skipped(reason, detail)

    def _log(self, message: str, *args: object) -> None:
        if self.settings.debug_logging:
            logger.info(message, *args)


def build_client(settings: AppSettings) -> TaxJarClient:
    return TaxJarClient(
        api_token=settings.taxjar_api_token,
        base_url=settings.taxjar_api_url,
        timeout=settings.taxjar_request_timeout,
        retry_attempts=settings.taxjar_retry_attempts,
    )


def build_tax_calculator(
    settings: AppSettings,
    session: Session,
    *,
    client: TaxJarClient | None = None,
    nexus: NexusChecker | None = None,
) -> TaxCalculator:
    client = client or build_client(settings)
    locks = KeyedLocks()
    cache = CalculationCache(
        client,
        SqlTransientStore(session),
        ttl_seconds=settings.cache_ttl_seconds,
        single_flight=locks.single_flight,
    )
    reconciler = RateReconciler(TaxRateRepository(session), locks=locks)
    return TaxCalculator(settings=settings, cache=cache, reconciler=reconciler, nexus=nexus)


__all__ = [
    "CalculationOutcome",
    "PostResponseHook",
    "PreRequestHook",
    "TaxCalculator",
    "build_client",
    "build_tax_calculator",
]
