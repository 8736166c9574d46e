from __future__ import annotations

import re

_UK_AREAS = (
    "AB|AL|B|BA|BB|BD|BH|BL|BN|BR|BS|BT|CA|CB|CF|CH|CM|CO|CR|CT|CV|CW|DA|DD|DE|DG|DH|DL|DN|DT|DY|E|EC|EH|EN|EX|"
    "FK|FY|G|GL|GY|GU|HA|HD|HG|HP|HR|HS|HU|HX|IG|IM|IP|IV|JE|KA|KT|KW|KY|L|LA|LD|LE|LL|LN|LS|LU|M|ME|MK|ML|N|NE|"
    "NG|NN|NP|NR|NW|OL|OX|PA|PE|PH|PL|PO|PR|RG|RH|RM|S|SA|SE|SG|SK|SL|SM|SN|SO|SP|SR|SS|ST|SW|SY|TA|TD|TF|TN|TQ|"
    "TR|TS|TW|UB|W|WA|WC|WD|WF|WN|WR|WS|WV|YO|ZE"
)

POSTAL_CODE_PATTERNS: dict[str, re.Pattern[str]] = {
    "US": re.compile(r"^\d{5}([ \-]\d{4})?$"),
    "CA": re.compile(r"^[ABCEGHJKLMNPRSTVXY]\d[ABCEGHJ-NPRSTV-Z][ ]?\d[ABCEGHJ-NPRSTV-Z]\d$"),
    # Only the GIR and BFPO alternatives are anchored; the area form may match anywhere.
    "UK": re.compile(rf"^GIR[ ]?0AA|(({_UK_AREAS})(\d[\dA-Z]?[ ]?\d[ABD-HJLN-UW-Z]{{2}}))|BFPO[ ]?\d{{1,4}}$"),
    "FR": re.compile(r"^\d{2}[ ]?\d{3}$"),
    "IT": re.compile(r"^\d{5}$"),
    "DE": re.compile(r"^\d{5}$"),
    "NL": re.compile(r"^\d{4}[ ]?[A-Z]{2}$"),
    "ES": re.compile(r"^\d{5}$"),
    "DK": re.compile(r"^\d{4}$"),
    "SE": re.compile(r"^\d{3}[ ]?\d{2}$"),
    "BE": re.compile(r"^\d{4}$"),
    "IN": re.compile(r"^\d{6}$"),
    "AU": re.compile(r"^\d{4}$"),
}


def is_postal_code_valid(country: str, state: str | None, postal_code: str | None) -> bool:
    """Cheap format check run before spending a remote call.

    Unknown countries always pass. An empty postal code only fails for the US,
    since the remote service accepts missing postal codes elsewhere.
    """
    pattern = POSTAL_CODE_PATTERNS.get(country)
    if pattern is None:
        return True
    if not postal_code:
        return country != "US"
    return pattern.search(postal_code) is not None


__all__ = ["POSTAL_CODE_PATTERNS", "is_postal_code_valid"]
