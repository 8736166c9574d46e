from decimal import Decimal

import pytest

from db.repositories import TaxRateRepository
from domain.errors import RateStoreError
from domain.tax_rates import RateLocation, TaxRateRecord, wildcard_postcodes


def _record(**overrides: object) -> TaxRateRecord:
    fields: dict[str, object] = {
        "country": "US",
        "state": "CA",
        "name": "CA Tax",
        "rate": Decimal("7.25"),
        "tax_class": "",
    }
    fields.update(overrides)
    return TaxRateRecord.model_validate(fields)


def _location(**overrides: str) -> RateLocation:
    fields = {"country": "US", "state": "CA", "postcode": "94107", "city": "San Francisco", "tax_class": ""}
    fields.update(overrides)
    return RateLocation(**fields)


def test_insert_and_get_rate(rate_repository: TaxRateRepository) -> None:
    rate_id = rate_repository.insert_rate(_record())
    rate_repository.set_rate_postcodes(rate_id, ["94 107"])
    rate_repository.set_rate_cities(rate_id, ["San Francisco"])

    stored = rate_repository.get(rate_id)

    assert stored is not None
    assert stored.id == rate_id
    assert stored.rate == Decimal("7.25")
    assert stored.priority == 1
    assert stored.compound is False
    assert stored.postcodes == ["94107"]
    assert stored.cities == ["SAN FRANCISCO"]


def test_find_rates_matches_location(rate_repository: TaxRateRepository) -> None:
    rate_id = rate_repository.insert_rate(_record())
    rate_repository.set_rate_postcodes(rate_id, ["94107"])
    rate_repository.set_rate_cities(rate_id, ["San Francisco"])

    assert [rate.id for rate in rate_repository.find_rates(_location())] == [rate_id]
    assert [rate.id for rate in rate_repository.find_rates(_location(state="ca"))] == [rate_id]
    assert rate_repository.find_rates(_location(postcode="90210")) == []
    assert rate_repository.find_rates(_location(city="Oakland")) == []
    assert rate_repository.find_rates(_location(tax_class="reduced-rate")) == []


def test_find_rates_supports_wildcards_and_prefers_specific(rate_repository: TaxRateRepository) -> None:
    broad_id = rate_repository.insert_rate(_record())
    prefix_id = rate_repository.insert_rate(_record())
    rate_repository.set_rate_postcodes(prefix_id, ["941*"])

    found = rate_repository.find_rates(_location())

    assert [rate.id for rate in found] == [prefix_id, broad_id]


def test_update_rate_overwrites_fields(rate_repository: TaxRateRepository) -> None:
    rate_id = rate_repository.insert_rate(_record())

    rate_repository.update_rate(rate_id, _record(rate=Decimal("8.5"), shipping_taxable=False))

    stored = rate_repository.get(rate_id)
    assert stored is not None
    assert stored.rate == Decimal("8.5")
    assert stored.shipping_taxable is False


def test_set_postcodes_replaces_previous(rate_repository: TaxRateRepository) -> None:
    rate_id = rate_repository.insert_rate(_record())
    rate_repository.set_rate_postcodes(rate_id, ["94107"])
    rate_repository.set_rate_cities(rate_id, ["SF"])

    rate_repository.set_rate_postcodes(rate_id, ["94108", "94108"])

    stored = rate_repository.get(rate_id)
    assert stored is not None
    assert stored.postcodes == ["94108"]
    assert stored.cities == ["SF"]


def test_update_missing_rate_raises(rate_repository: TaxRateRepository) -> None:
    with pytest.raises(RateStoreError):
        rate_repository.update_rate(999, _record())


def test_wildcard_postcodes() -> None:
    assert wildcard_postcodes("941 07") == ["*", "94107", "94107*", "9410*", "941*", "94*", "9*"]


def test_tax_rate_record_validation() -> None:
    with pytest.raises(ValueError):
        _record(rate=Decimal("-1"))
    with pytest.raises(ValueError):
        _record(country="")


def test_find_rates_matches_states_with_spaces(rate_repository: TaxRateRepository) -> None:
    rate_id = rate_repository.insert_rate(_record(country="GB", state="Greater London", name="Greater London Tax"))

    location = _location(country="GB", state="Greater London", postcode="", city="")
    assert [rate.id for rate in rate_repository.find_rates(location)] == [rate_id]
    lower_case = _location(country="GB", state="greater london")
    assert [rate.id for rate in rate_repository.find_rates(lower_case)] == [rate_id]
