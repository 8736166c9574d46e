from services.nexus import NexusChecker
from services.taxjar_client import NexusRegion


def test_without_regions_every_destination_passes() -> None:
    assert NexusChecker().has_nexus("US", "TX")


def test_region_and_country_entries() -> None:
    checker = NexusChecker(["us-ca", "GB"])

    assert checker.has_nexus("US", "CA")
    assert checker.has_nexus("US", "ca")
    assert not checker.has_nexus("US", "NY")
    assert not checker.has_nexus("US", None)
    assert checker.has_nexus("GB", "")


class _Source:
    def get_nexus_regions(self) -> list[NexusRegion]:
        return [NexusRegion("US", "NY"), NexusRegion("CA")]


def test_from_source_loads_remote_regions() -> None:
    checker = NexusChecker.from_source(_Source())

    assert checker.regions == frozenset({"US-NY", "CA"})
    assert checker.has_nexus("CA", "ON")
