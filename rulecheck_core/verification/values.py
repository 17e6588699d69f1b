"""
Domain value conventions shared by the encoder and the model decoder.

Money is encoded as an integer number of cents. Dates are encoded as the
number of days since the base day, Jan 1, 1900.
"""

import re
from datetime import date, timedelta

BASE_DAY = date(1900, 1, 1)

_SEXPR_NEG = re.compile(r"^\(\s*-\s*(\d+)\s*\)$")


def date_to_int(d: date) -> int:
    """Number of days between the base day and `d` (negative before it)."""
    return (d - BASE_DAY).days


def nb_days_to_date(nb: int) -> date:
    """The date `nb` days after the base day."""
    return BASE_DAY + timedelta(days=nb)


def money_to_string(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    units, rest = divmod(abs(cents), 100)
    return f"{sign}{units}.{rest:02d} $"


def parse_z3_int(text: str) -> int:
    """
    Parse an integer as printed by Z3.

    Accepts the Python API form ("-150") as well as the SMT-LIB form
    ("(- 150)") that Z3 uses for negative numerals.
    """
    s = text.strip()
    m = _SEXPR_NEG.match(s)
    if m:
        return -int(m.group(1))
    if s.startswith("-"):
        return -int(s[1:].strip())
    return int(s)
