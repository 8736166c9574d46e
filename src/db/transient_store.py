from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import TransientOrm
from domain.errors import CacheStoreError


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SqlTransientStore:
    """Key/value store with expiry, persisted in the same SQLite database as the rates."""

    def __init__(self, session: Session, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self.session = session
        self._clock = clock

    def get(self, key: str) -> str | None:
        try:
            row = self.session.scalar(select(TransientOrm).where(TransientOrm.key == key))
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise CacheStoreError(f"Failed to read cache entry {key}", payload=key) from exc
        if row is None:
            return None
        expires_at = row.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= self._clock():
            return None
        return row.value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        stmt = sqlite_insert(TransientOrm).values(key=key, value=value, expires_at=expires_at)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded["value"], "expires_at": stmt.excluded["expires_at"]},
        )
        try:
            self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise CacheStoreError(f"Failed to write cache entry {key}", payload=key) from exc


__all__ = ["SqlTransientStore"]
