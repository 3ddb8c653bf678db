import logging

import pytest

from mis_classifier.cogs import (
    PeriodBalanceSummary,
    allocated_raw_materials_for,
    calculate_cogs,
    calculate_prorated_raw_materials,
    calculate_prorated_raw_materials_by_fy,
    group_by_fiscal_year,
)


def _period(year, month, revenue, opening=0.0, purchases=0.0, closing=0.0):
    return PeriodBalanceSummary(
        period_key=f"{year:04d}-{month:02d}",
        month=month,
        year=year,
        opening_stock=opening,
        purchases=purchases,
        closing_stock=closing,
        net_revenue=revenue,
    )


def test_calculate_cogs() -> None:
    result = calculate_cogs(100000, 500000, 150000)
    assert result.cogs == 450000
    assert not result.clamped


def test_negative_cogs_is_clamped_and_logged(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="mis_classifier.cogs"):
        result = calculate_cogs(100000, 50000, 200000)
    assert result.cogs == 0
    assert result.raw_cogs == -50000
    assert result.clamped
    assert "clamped" in caplog.text


@pytest.mark.parametrize(
    "opening, purchases, closing",
    [(0, 0, 0), (10, 0, 50), (1e9, 1, 1e9 + 2), (5.5, 2.25, 1.0)],
)
def test_cogs_is_never_negative(opening, purchases, closing) -> None:
    assert calculate_cogs(opening, purchases, closing).cogs >= 0


def test_allocation_follows_revenue_share() -> None:
    periods = [
        _period(2024, 5, 300, purchases=150, closing=50),
        _period(2024, 4, 100, opening=100, purchases=0),
    ]

    result = calculate_prorated_raw_materials(periods)

    # opening from the first month, closing from the last one
    assert result.fy_opening_stock == 100
    assert result.fy_closing_stock == 50
    assert result.fy_total_purchases == 150
    assert result.fy_total_raw_materials == 200
    assert result.fy_total_revenue == 400
    assert [a.period_key for a in result.allocations] == ["2024-04", "2024-05"]
    assert result.allocation_for("2024-04") == pytest.approx(50)
    assert result.allocation_for("2024-05") == pytest.approx(150)


def test_allocations_are_conserved() -> None:
    periods = [
        _period(2024, m, revenue, opening=1000 if m == 4 else 0, purchases=777.7)
        for m, revenue in [(4, 13.0), (5, 7.1), (6, 0.0), (7, 1234.5)]
    ]
    result = calculate_prorated_raw_materials(periods)

    total = sum(a.allocated_raw_materials for a in result.allocations)
    assert total == pytest.approx(result.fy_total_raw_materials, abs=1e-6)
    assert sum(a.revenue_ratio for a in result.allocations) == pytest.approx(1.0)


def test_zero_revenue_splits_equally() -> None:
    periods = [_period(2024, 4, 0, opening=90), _period(2024, 5, 0)]
    result = calculate_prorated_raw_materials(periods)
    assert [a.revenue_ratio for a in result.allocations] == [0.5, 0.5]
    assert [a.allocated_raw_materials for a in result.allocations] == [45, 45]


def test_override_replaces_computed_total() -> None:
    periods = [_period(2024, 4, 1, opening=10), _period(2024, 5, 3)]
    result = calculate_prorated_raw_materials(periods, override_total=400)
    assert result.fy_total_raw_materials == 400
    assert result.allocation_for("2024-05") == pytest.approx(300)


def test_empty_input() -> None:
    result = calculate_prorated_raw_materials([])
    assert result.allocations == ()
    assert result.fy_total_raw_materials == 0
    assert allocated_raw_materials_for(result, "2024-04") == 0
    assert allocated_raw_materials_for(None, "2024-04") == 0


def test_group_by_fiscal_year() -> None:
    periods = [_period(2024, 3, 1), _period(2024, 4, 1), _period(2025, 3, 1)]
    groups = group_by_fiscal_year(periods)
    assert {k: len(v) for k, v in groups.items()} == {"FY 2023-24": 1, "FY 2024-25": 2}


def test_prorate_by_fiscal_year_with_override(caplog) -> None:
    periods = [
        _period(2024, 3, 100, opening=0, purchases=100, closing=0),
        _period(2024, 4, 100, opening=0, purchases=60, closing=0),
        _period(2024, 5, 300, opening=0, purchases=0, closing=20),
    ]
    with caplog.at_level(logging.INFO, logger="mis_classifier.cogs"):
        result = calculate_prorated_raw_materials_by_fy(
            periods, overrides={"FY 2024-25": 1000}
        )

    assert [a.period_key for a in result.allocations] == [
        "2024-03",
        "2024-04",
        "2024-05",
    ]
    assert result.allocation_for("2024-03") == pytest.approx(100)
    assert result.allocation_for("2024-04") == pytest.approx(250)
    assert result.allocation_for("2024-05") == pytest.approx(750)
    assert result.fy_total_raw_materials == pytest.approx(1100)
    assert "FY 2024-25" in caplog.text


def test_allocation_lookup_by_label_or_month_key() -> None:
    period = PeriodBalanceSummary(
        period_key="Apr 2024", month=4, year=2024, purchases=80, net_revenue=10
    )
    result = calculate_prorated_raw_materials([period])

    assert result.allocations[0].month_key == "2024-04"
    assert result.allocation_for("Apr 2024") == pytest.approx(80)
    assert result.allocation_for("2024-04") == pytest.approx(80)
    assert result.allocation_for("2024-05") == 0.0
