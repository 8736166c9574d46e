from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import models
from domain.errors import RateStoreError
from domain.tax_rates import RateLocation, TaxRateRecord, normalize_postcode, sanitize_key, wildcard_postcodes

POSTCODE = "postcode"
CITY = "city"


class TaxRateRepository:
    """Persistent tax rate store backed by SQLAlchemy."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_rates(self, location: RateLocation) -> list[TaxRateRecord]:
        stmt = (
            select(models.TaxRateOrm)
            .where(
                models.TaxRateOrm.country == location.country,
                models.TaxRateOrm.tax_class == location.tax_class,
            )
            .order_by(models.TaxRateOrm.priority.asc(), models.TaxRateOrm.id.asc())
        )
        try:
            candidates = self._session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise RateStoreError("Failed to look up tax rates", payload=location) from exc

        postcode_patterns = set(wildcard_postcodes(location.postcode)) if location.postcode else {"*"}
        city = location.city.upper()
        matched: list[tuple[int, models.TaxRateOrm]] = []
        for orm_rate in candidates:
            # Stored states keep their display form; both sides compare sanitized.
            if sanitize_key(orm_rate.state) != location.state_key:
                continue
            postcodes = self._codes(orm_rate, POSTCODE)
            cities = self._codes(orm_rate, CITY)
            if postcodes and not postcodes & postcode_patterns:
                continue
            if cities and city not in cities:
                continue
            # Records bound to a postcode or city win over broader ones.
            specificity = (2 if postcodes else 0) + (1 if cities else 0)
            matched.append((specificity, orm_rate))

        matched.sort(key=lambda pair: -pair[0])
        return [self._to_domain(orm_rate) for _, orm_rate in matched]

    def insert_rate(self, record: TaxRateRecord) -> int:
        orm_rate = models.TaxRateOrm(
            country=record.country,
            state=record.state,
            name=record.name,
            priority=record.priority,
            compound=record.compound,
            shipping_taxable=record.shipping_taxable,
            rate=record.rate,
            tax_class=record.tax_class,
        )
        try:
            self._session.add(orm_rate)
            self._session.commit()
            self._session.refresh(orm_rate)
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise RateStoreError("Failed to insert tax rate", payload=record) from exc
        return orm_rate.id

    def update_rate(self, rate_id: int, record: TaxRateRecord) -> None:
        orm_rate = self._get_orm(rate_id)
        orm_rate.country = record.country
        orm_rate.state = record.state
        orm_rate.name = record.name
        orm_rate.priority = record.priority
        orm_rate.compound = record.compound
        orm_rate.shipping_taxable = record.shipping_taxable
        orm_rate.rate = record.rate
        orm_rate.tax_class = record.tax_class
        self._commit(f"Failed to update tax rate {rate_id}", record)

    def set_rate_postcodes(self, rate_id: int, patterns: list[str]) -> None:
        self._set_locations(rate_id, POSTCODE, [normalize_postcode(pattern) for pattern in patterns])

    def set_rate_cities(self, rate_id: int, patterns: list[str]) -> None:
        self._set_locations(rate_id, CITY, [pattern.strip().upper() for pattern in patterns])

    def get(self, rate_id: int) -> TaxRateRecord | None:
        orm_rate = self._session.get(models.TaxRateOrm, rate_id)
        if orm_rate is None:
            return None
        return self._to_domain(orm_rate)

    def list(self) -> list[TaxRateRecord]:
        orm_rates = self._session.execute(select(models.TaxRateOrm).order_by(models.TaxRateOrm.id)).scalars().all()
        return [self._to_domain(orm_rate) for orm_rate in orm_rates]

    def _set_locations(self, rate_id: int, location_type: str, codes: list[str]) -> None:
        orm_rate = self._get_orm(rate_id)
        orm_rate.locations = [
            location for location in orm_rate.locations if location.location_type != location_type
        ] + [
            models.TaxRateLocationOrm(location_type=location_type, location_code=code)
            for code in dict.fromkeys(codes)
            if code
        ]
        self._commit(f"Failed to set {location_type} locations for tax rate {rate_id}", codes)

    def _get_orm(self, rate_id: int) -> models.TaxRateOrm:
        try:
            orm_rate = self._session.get(models.TaxRateOrm, rate_id)
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise RateStoreError(f"Failed to load tax rate {rate_id}") from exc
        if orm_rate is None:
            raise RateStoreError(f"Tax rate {rate_id} does not exist")
        return orm_rate

    def _commit(self, message: str, payload: object) -> None:
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise RateStoreError(message, payload=payload) from exc

    @staticmethod
    def _codes(orm_rate: models.TaxRateOrm, location_type: str) -> set[str]:
        return {location.location_code for location in orm_rate.locations if location.location_type == location_type}

    @staticmethod
    def _to_domain(orm_rate: models.TaxRateOrm) -> TaxRateRecord:
        return TaxRateRecord(
            id=orm_rate.id,
            country=orm_rate.country,
            state=orm_rate.state,
            name=orm_rate.name,
            priority=orm_rate.priority,
            compound=orm_rate.compound,
            shipping_taxable=orm_rate.shipping_taxable,
            rate=orm_rate.rate,
            tax_class=orm_rate.tax_class,
            postcodes=sorted(TaxRateRepository._codes(orm_rate, POSTCODE)),
            cities=sorted(TaxRateRepository._codes(orm_rate, CITY)),
        )
