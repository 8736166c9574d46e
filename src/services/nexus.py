from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .taxjar_client import NexusRegion

logger = logging.getLogger(__name__)


class NexusRegionSource(Protocol):
    def get_nexus_regions(self) -> list[NexusRegion]: ...


class NexusChecker:
    """Local pre-filter keeping calls for destinations the seller does not collect in away from the API.

    Regions are ``"US"`` (whole country) or ``"US-CA"`` (country and region).
    With no regions configured every destination passes and the remote
    ``has_nexus`` answer decides.
    """

    def __init__(self, regions: Iterable[str] | None = None) -> None:
        self.regions = frozenset(region.strip().upper() for region in (regions or ()) if region.strip())

    def has_nexus(self, country: str, state: str | None) -> bool:
        if not self.regions:
            return True
        country_key = country.upper()
        if country_key in self.regions:
            return True
        return bool(state) and f"{country_key}-{state.upper()}" in self.regions

    @classmethod
    def from_source(cls, source: NexusRegionSource) -> NexusChecker:
        regions = [region.key() for region in source.get_nexus_regions()]
        logger.info("Loaded %d nexus regions", len(regions))
        return cls(regions)


__all__ = ["NexusChecker", "NexusRegionSource"]
