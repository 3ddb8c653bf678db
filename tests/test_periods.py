import pytest

import mis_classifier.periods as periods


@pytest.mark.parametrize(
    "text, key",
    [
        ("01-04-2024", "2024-04"),
        ("1/12/2023", "2023-12"),
        ("2024-07-31", "2024-07"),
        ("2024/7/1", "2024-07"),
        (" 15-05-2024 ", "2024-05"),
        ("", "unknown"),
        ("April 2024", "unknown"),
    ],
)
def test_month_key_from_date(text, key) -> None:
    assert periods.month_key_from_date(text) == key


def test_parse_month_key() -> None:
    p = periods.parse_month_key("2024-04")
    assert (p.year, p.month) == (2024, 4)
    assert p.key == "2024-04"
    assert p.label == "Apr 2024"
    with pytest.raises(ValueError):
        periods.parse_month_key("unknown")
    with pytest.raises(ValueError):
        periods.parse_month_key("2024-13")


@pytest.mark.parametrize(
    "month, year, start, label",
    [
        (4, 2024, 4, "FY 2024-25"),
        (3, 2025, 4, "FY 2024-25"),
        (4, 2025, 4, "FY 2025-26"),
        (12, 1999, 4, "FY 1999-00"),
        (1, 2024, 1, "FY 2024-25"),
    ],
)
def test_fiscal_year_label(month, year, start, label) -> None:
    assert periods.fiscal_year_label(month, year, start) == label


def test_sort_month_keys_puts_unknown_last() -> None:
    keys = ["unknown", "2024-10", "2023-12", "2024-02"]
    assert periods.sort_month_keys(keys) == [
        "2023-12",
        "2024-02",
        "2024-10",
        "unknown",
    ]
