import pytest

from mis_classifier.cogs import PeriodBalanceSummary
from mis_classifier.heads import RAW_MATERIALS_SUBHEAD, Head
from mis_classifier.models import Transaction, TransactionStatus
from mis_classifier.multi_periods import (
    compute_multi_period_reports,
    group_transactions_by_month,
)
from mis_classifier.periods import UNKNOWN_MONTH
from mis_classifier.views import REPORT_COLUMNS


def _sale(i, date, amount):
    return Transaction(
        id=f"s{i}",
        date=date,
        account="Amazon Sales",
        credit=amount,
        status=TransactionStatus.CLASSIFIED,
        head=Head.REVENUE,
        subhead="Amazon",
    )


def _rent(i, date, amount):
    return Transaction(
        id=f"r{i}",
        date=date,
        account="Factory Rent",
        debit=amount,
        status=TransactionStatus.CLASSIFIED,
        head=Head.COGM,
        subhead="Factory Rent",
    )


def _summary(month, year, revenue, opening=0.0, purchases=0.0, closing=0.0):
    return PeriodBalanceSummary(
        period_key=f"{year:04d}-{month:02d}",
        month=month,
        year=year,
        opening_stock=opening,
        purchases=purchases,
        closing_stock=closing,
        net_revenue=revenue,
    )


def test_group_transactions_by_month_sorted_with_unknown_last() -> None:
    groups = group_transactions_by_month(
        [
            _sale(1, "15-05-2024", 10),
            _sale(2, "", 10),
            _sale(3, "2024-04-02", 10),
            _sale(4, "01/05/2024", 10),
        ]
    )
    assert list(groups) == ["2024-04", "2024-05", UNKNOWN_MONTH]
    assert [t.id for t in groups["2024-05"]] == ["s1", "s4"]


def test_reports_per_month_without_summaries() -> None:
    result = compute_multi_period_reports(
        [
            _sale(1, "01-04-2024", 1000),
            _rent(1, "10-04-2024", 200),
            _sale(2, "01-05-2024", 500),
        ]
    )

    assert result.proration is None
    assert list(result.reports) == ["2024-04", "2024-05"]
    assert result.reports["2024-04"].gross_margin == 800
    assert result.reports["2024-05"].cogm == 0
    assert list(result.data.columns) == ["period_label", *REPORT_COLUMNS]
    assert set(result.data["period_label"]) == {"2024-04", "2024-05"}


def test_raw_materials_prorated_into_cogm() -> None:
    summaries = [
        _summary(4, 2024, 750, opening=100, purchases=500),
        _summary(5, 2024, 250, purchases=200, closing=400),
    ]
    result = compute_multi_period_reports(
        [_sale(1, "01-04-2024", 750), _rent(1, "02-04-2024", 50)],
        period_summaries=summaries,
        with_breakdowns=True,
    )

    # 100 + 700 - 400 = 400 split 75 / 25
    assert result.proration.fy_total_raw_materials == 400
    april = result.reports["2024-04"]
    assert april.allocated_raw_materials == pytest.approx(300)
    assert april.cogm == pytest.approx(350)
    assert april.breakdown(Head.COGM)[RAW_MATERIALS_SUBHEAD] == pytest.approx(300)

    # a period with a summary but no transactions still gets a report
    may = result.reports["2024-05"]
    assert may.gross_revenue == 0
    assert may.cogm == pytest.approx(100)

    raw_lines = result.data[result.data["key"] == f"cogm:{RAW_MATERIALS_SUBHEAD}"]
    assert raw_lines["period_label"].tolist() == ["2024-04", "2024-05"]


def test_fiscal_year_override_applies(caplog) -> None:
    summaries = [
        _summary(3, 2024, 100, opening=0, purchases=1000),
        _summary(4, 2024, 100, purchases=1000),
    ]
    with caplog.at_level("INFO", logger="mis_classifier.cogs"):
        result = compute_multi_period_reports(
            {},
            period_summaries=summaries,
            fy_overrides={"FY 2024-25": 40.0},
        )

    assert result.reports["2024-03"].cogm == pytest.approx(1000)
    assert result.reports["2024-04"].cogm == pytest.approx(40)
    assert "FY 2024-25" in caplog.text


def test_unknown_month_gets_no_allocation() -> None:
    result = compute_multi_period_reports(
        [_rent(1, "someday", 10), _sale(1, "01-04-2024", 100)],
        period_summaries=[_summary(4, 2024, 100, purchases=60)],
    )
    assert list(result.reports) == ["2024-04", UNKNOWN_MONTH]
    assert result.reports[UNKNOWN_MONTH].cogm == 10
    assert result.reports["2024-04"].cogm == pytest.approx(60)


def test_grouped_mapping_input_and_empty_input() -> None:
    result = compute_multi_period_reports(
        {"2024-06": [_sale(1, "01-06-2024", 5)], "2024-01": []}
    )
    assert list(result.reports) == ["2024-01", "2024-06"]

    empty = compute_multi_period_reports([])
    assert empty.reports == {}
    assert empty.data.empty
    assert list(empty.data.columns) == ["period_label", *REPORT_COLUMNS]


def test_labelled_summary_is_paired_with_transactions_by_month() -> None:
    summary = PeriodBalanceSummary(
        period_key="Apr 2024", month=4, year=2024, purchases=50, net_revenue=100
    )

    result = compute_multi_period_reports(
        [_sale(1, "15-04-2024", 100)], period_summaries=[summary]
    )

    assert list(result.reports) == ["2024-04"]
    assert result.reports["2024-04"].cogm == pytest.approx(50)
