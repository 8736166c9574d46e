from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from config import AppSettings
from db.models import Base
from db.repositories import TaxRateRepository

engine: Engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def rate_repository(test_session: Session) -> TaxRateRepository:
    return TaxRateRepository(test_session)


@pytest.fixture(scope="function")
def settings() -> AppSettings:
    return AppSettings(
        _env_file=None,
        taxjar_api_token="token",
        debug_logging=True,
        store_country="US",
        store_state="CA",
        store_postcode="94107",
        store_city="San Francisco",
        store_street="600 Montgomery St",
    )
