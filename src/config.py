from __future__ import annotations

from enum import StrEnum
from functools import cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.address import Address, TaxBasis


class ExemptionHandling(StrEnum):
    PERMISSIVE = "permissive"
    STRICT = "strict"


class AppSettings(BaseSettings):
    taxjar_api_token: str = ""
    taxjar_api_url: str = "https://api.taxjar.com/v2"
    taxjar_request_timeout: float = 10.0
    taxjar_retry_attempts: int = 2
    plugin_name: str = "python"

    tax_basis: TaxBasis = TaxBasis.SHIPPING
    debug_logging: bool = False
    cache_ttl_seconds: int = 3600
    nexus_regions: set[str] = set()
    exemption_handling: ExemptionHandling = ExemptionHandling.PERMISSIVE
    apply_base_tax_for_local_pickup: bool = True
    local_pickup_methods: set[str] = {"legacy_local_pickup", "local_pickup"}

    store_country: str = ""
    store_state: str = ""
    store_postcode: str = ""
    store_city: str = ""
    store_street: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def store_address(self) -> Address:
        return Address(
            country=self.store_country,
            state=self.store_state,
            postal_code=self.store_postcode,
            city=self.store_city,
            street=self.store_street,
        )


@cache
def config() -> AppSettings:
    return AppSettings()
