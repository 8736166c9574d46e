import pytest

from domain.postal import is_postal_code_valid


@pytest.mark.parametrize(
    ("country", "postal_code", "expected"),
    [
        ("US", "", False),
        ("US", "12345", True),
        ("US", "12345-6789", True),
        ("US", "1234", False),
        ("UK", "", True),
        ("UK", "SW1A 1AA", True),
        ("UK", "GIR 0AA", True),
        ("CA", "K1A 0B1", True),
        ("CA", "12345", False),
        ("NL", "1234 AB", True),
        ("DE", "1234", False),
        ("AU", "2000", True),
    ],
)
def test_postal_code_formats(country: str, postal_code: str, expected: bool) -> None:
    assert is_postal_code_valid(country, None, postal_code) is expected


def test_unknown_country_is_always_valid() -> None:
    assert is_postal_code_valid("BR", "SP", "")
    assert is_postal_code_valid("BR", "SP", "not-a-zip")
