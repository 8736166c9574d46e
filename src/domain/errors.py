from __future__ import annotations

from typing import Any


class TaxCalculationError(RuntimeError):
    def __init__(self, message: str, *, payload: Any | None = None) -> None:
        super().__init__(message)
        self.payload = payload


class InvalidRequest(TaxCalculationError):
    pass


class MalformedResponse(TaxCalculationError):
    pass


class TransportFailure(TaxCalculationError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message, payload=payload)
        self.status_code = status_code


class RateStoreError(TaxCalculationError):
    pass


class CacheStoreError(TaxCalculationError):
    pass


__all__ = [
    "CacheStoreError",
    "InvalidRequest",
    "MalformedResponse",
    "RateStoreError",
    "TaxCalculationError",
    "TransportFailure",
]
