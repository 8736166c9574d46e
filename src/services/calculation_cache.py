from __future__ import annotations

import logging
from typing import Callable, Protocol

from domain.calculation import CalculationRequest
from domain.errors import CacheStoreError

from .taxjar_client import RemoteResponse
from .transient_store import TransientStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600

CacheOutcome = tuple[RemoteResponse, bool]
SingleFlight = Callable[[str, Callable[[], CacheOutcome]], CacheOutcome]


class RemoteTaxClient(Protocol):
    def send(self, request: CalculationRequest) -> RemoteResponse: ...


class CalculationCache:
    """Remembers successful remote answers per request shape.

    A failing store degrades to a miss: the remote answer is still returned.
    Two concurrent misses for the same key both reach the client unless a
    ``single_flight`` wrapper (e.g. ``KeyedLocks.single_flight``) is given.
    """

    def __init__(
        self,
        client: RemoteTaxClient,
        store: TransientStore,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        single_flight: SingleFlight | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.single_flight = single_flight

    def get_or_compute(self, request: CalculationRequest, ttl_seconds: int | None = None) -> CacheOutcome:
        key = request.cache_key()
        cached = self._read(key)
        if cached is not None:
            return RemoteResponse(status_code=200, body=cached), True

        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        if self.single_flight is None:
            return self._compute(key, request, ttl)
        return self.single_flight(key, lambda: self._compute(key, request, ttl))

    def _compute(self, key: str, request: CalculationRequest, ttl: int) -> CacheOutcome:
        if self.single_flight is not None:
            # Another caller may have filled the entry while this one waited.
            cached = self._read(key)
            if cached is not None:
                return RemoteResponse(status_code=200, body=cached), True

        response = self.client.send(request)
        if response.ok:
            self._write(key, response.body, ttl)
        else:
            logger.debug("Not caching response with status %s for %s", response.status_code, key)
        return response, False

    def _read(self, key: str) -> str | None:
        try:
            return self.store.get(key)
        except CacheStoreError as exc:
            logger.warning("Tax cache unavailable, treating %s as a miss: %s", key, exc)
            return None

    def _write(self, key: str, body: str, ttl: int) -> None:
        try:
            self.store.set(key, body, ttl)
        except CacheStoreError as exc:
            logger.warning("Could not cache tax response for %s: %s", key, exc)


__all__ = ["CalculationCache", "DEFAULT_TTL_SECONDS", "RemoteTaxClient", "SingleFlight"]
