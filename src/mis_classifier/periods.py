# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for MIS Classifier.

Registers carry dates as free text ("01-04-2024", "2024/04/01", ...). The
MIS works on monthly periods identified by a ``YYYY-MM`` key and groups
months into Indian-style fiscal years starting in April by default
("FY 2024-25" runs from April 2024 to March 2025).
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

UNKNOWN_MONTH = "unknown"

_DAY_FIRST = re.compile(r"(\d{1,2})[-/](\d{1,2})[-/](\d{4})")
_YEAR_FIRST = re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")

_MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True)
class Period:
    """A calendar month, with its ``YYYY-MM`` key and display label."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def label(self) -> str:
        return f"{_MONTH_NAMES[self.month - 1]} {self.year}"


def month_key_from_date(text: str) -> str:
    """Return the ``YYYY-MM`` key for a register date, or "unknown".

    Accepted layouts: DD-MM-YYYY, DD/MM/YYYY, YYYY-MM-DD, YYYY/MM/DD.
    """
    if not text:
        return UNKNOWN_MONTH
    value = str(text).strip()

    # 1) YYYY-MM-DD
    m = _YEAR_FIRST.search(value)
    if m:
        return f"{m.group(1)}-{int(m.group(2)):02d}"

    # 2) DD-MM-YYYY
    m = _DAY_FIRST.search(value)
    if m:
        return f"{m.group(3)}-{int(m.group(2)):02d}"

    return UNKNOWN_MONTH


def parse_month_key(key: str) -> Period:
    """Parse a ``YYYY-MM`` key into a Period.

    Raises:
        ValueError: if the key is not of the form YYYY-MM.
    """
    m = re.fullmatch(r"(\d{4})-(\d{1,2})", str(key).strip())
    if not m:
        raise ValueError(f"Invalid period key {key!r}, expected YYYY-MM.")
    return Period(year=int(m.group(1)), month=int(m.group(2)))


def fiscal_year_start(month: int, year: int, start_month: int = 4) -> int:
    """Calendar year in which the fiscal year containing (month, year) starts."""
    return year if month >= start_month else year - 1


def fiscal_year_label(month: int, year: int, start_month: int = 4) -> str:
    """Fiscal-year label such as "FY 2024-25".

    With the default April start, March 2025 belongs to FY 2024-25 and
    April 2025 to FY 2025-26. A January start gives "FY 2024-25" for the
    whole of calendar 2024 as well, keeping one label format.
    """
    start = fiscal_year_start(month, year, start_month)
    return f"FY {start}-{(start + 1) % 100:02d}"


def sort_month_keys(keys: Iterable[str]) -> list[str]:
    """Sort ``YYYY-MM`` keys chronologically; "unknown" and odd keys go last."""
    def _key(k: str):
        try:
            p = parse_month_key(k)
        except ValueError:
            return (1, 0, 0, k)
        return (0, p.year, p.month, k)

    return sorted(keys, key=_key)
