from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from domain.calculation import CalculationRequest
from domain.errors import TransportFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteResponse:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200


@dataclass(frozen=True)
class NexusRegion:
    country_code: str
    region_code: str | None = None

    def key(self) -> str:
        if self.region_code:
            return f"{self.country_code}-{self.region_code}".upper()
        return self.country_code.upper()


# Receives the serialized request body; returning a response skips the network call.
RequestOverride = Callable[[str], "RemoteResponse | None"]


class TaxJarClient:
    """Thin client for the remote sales tax API.

    HTTP error statuses are handed back as ``RemoteResponse`` so the caller can
    treat them as "no answer"; only transport level problems raise.
    """

    def __init__(
        self,
        *,
        api_token: str,
        base_url: str = "https://api.taxjar.com/v2",
        timeout: float = 10.0,
        session: requests.Session | None = None,
        retry_attempts: int = 2,
        retry_backoff_seconds: float = 0.5,
        request_override: RequestOverride | None = None,
    ) -> None:
        if not api_token and request_override is None:
            msg = "api_token must be provided"
            raise ValueError(msg)

        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.request_override = request_override
        self._session = session or requests.Session()

        retry = Retry(
            total=retry_attempts,
            backoff_factor=retry_backoff_seconds,
            status_forcelist={429, 502, 503, 504},
            allowed_methods={"GET", "POST"},
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def send(self, request: CalculationRequest) -> RemoteResponse:
        body = request.serialize()
        if self.request_override is not None:
            overridden = self.request_override(body)
            if overridden is not None:
                return overridden

        url = f"{self.base_url}/taxes"
        logger.debug("Requesting: %s - %s", url, body)
        response = self._request("POST", url, data=body)
        if not response.ok:
            logger.warning("Received (%s): %s", response.status_code, response.body)
        return response

    def get_nexus_regions(self) -> list[NexusRegion]:
        response = self._request("GET", f"{self.base_url}/nexus/regions")
        if not response.ok:
            raise TransportFailure(
                "Nexus regions request failed", status_code=response.status_code, payload=response.body
            )
        try:
            payload: Any = json.loads(response.body)
        except ValueError as exc:
            raise TransportFailure("Nexus regions response is not valid JSON", payload=response.body) from exc

        regions_raw = payload.get("regions") if isinstance(payload, dict) else None
        if not isinstance(regions_raw, list):
            raise TransportFailure("Nexus regions response is missing regions", payload=payload)
        return [
            NexusRegion(country_code=str(entry["country_code"]), region_code=entry.get("region_code"))
            for entry in regions_raw
            if isinstance(entry, dict) and entry.get("country_code")
        ]

    def _request(self, method: str, url: str, *, data: str | None = None) -> RemoteResponse:
        try:
            response = self._session.request(
                method,
                url,
                data=data,
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": "application/json",
                },
            )
        except requests.RequestException as exc:
            logger.warning("Tax API request to %s failed: %s", url, exc)
            raise TransportFailure("Tax API request failed") from exc
        return RemoteResponse(status_code=response.status_code, body=response.text)


__all__ = ["NexusRegion", "RemoteResponse", "RequestOverride", "TaxJarClient"]
