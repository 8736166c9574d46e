from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class TaxRateOrm(Base):
    __tablename__ = "tax_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    country: Mapped[str] = mapped_column(String, nullable=False)
    state: Mapped[str] = mapped_column(String, nullable=False, default="")
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    compound: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    shipping_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rate: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    tax_class: Mapped[str] = mapped_column(String, nullable=False, default="")

    locations: Mapped[list["TaxRateLocationOrm"]] = relationship(
        cascade="all, delete-orphan", back_populates="tax_rate", lazy="selectin"
    )

    __table_args__ = (Index("ix_tax_rates_lookup", "country", "state", "tax_class"),)


class TaxRateLocationOrm(Base):
    __tablename__ = "tax_rate_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tax_rate_id: Mapped[int] = mapped_column(Integer, ForeignKey("tax_rates.id"), nullable=False)
    location_type: Mapped[str] = mapped_column(String, nullable=False)
    location_code: Mapped[str] = mapped_column(String, nullable=False)

    tax_rate: Mapped[TaxRateOrm] = relationship(back_populates="locations")

    __table_args__ = (Index("ix_tax_rate_locations_code", "location_type", "location_code"),)


class TransientOrm(Base):
    __tablename__ = "transients"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
