import pytest

from mis_classifier.cogs import PeriodAllocation, ProratedRawMaterialsResult
from mis_classifier.engine import HeadTotal, MISReport
from mis_classifier.heads import Head
from mis_classifier.models import Transaction
from mis_classifier.sales import SalesRegisterSummary
from mis_classifier.views import (
    REPORT_COLUMNS,
    TRANSACTION_COLUMNS,
    format_currency,
    format_percentage,
    head_totals_to_frame,
    proration_to_frame,
    report_to_frame,
    sales_summary_to_frame,
    transactions_to_frame,
)


def _report():
    return MISReport(
        gross_revenue=1000.0,
        returns=100.0,
        net_revenue=900.0,
        cogm=300.0,
        gross_margin=600.0,
        cm1=600.0,
        cm2=600.0,
        cm3=600.0,
        ebitda=600.0,
        net_income=600.0,
        revenue_by_channel={"Website/D2C": 400.0, "Amazon": 600.0},
        breakdowns={
            Head.COGM.label: {"Factory Rent": 300.0},
            Head.RETURNS.label: {"Amazon Returns": 100.0},
        },
    )


def test_report_to_frame_tiers_only() -> None:
    df = report_to_frame(_report())

    assert list(df.columns) == REPORT_COLUMNS
    assert df["key"].tolist()[:5] == [
        "gross_revenue",
        "returns",
        "discounts",
        "taxes",
        "net_revenue",
    ]
    assert df["display_order"].tolist() == [(i + 1) * 10 for i in range(len(df))]

    net = df.set_index("key").loc["net_revenue"]
    assert net["level"] == 0
    assert net["pct_of_net_revenue"] == 100.0
    cogm = df.set_index("key").loc["cogm"]
    assert cogm["pct_of_net_revenue"] == pytest.approx(33.33)


def test_report_to_frame_breakdowns_follow_their_head() -> None:
    df = report_to_frame(_report(), with_breakdowns=True)
    keys = df["key"].tolist()

    assert keys[:3] == [
        "gross_revenue",
        "gross_revenue:Website/D2C",
        "gross_revenue:Amazon",
    ]
    assert keys[keys.index("cogm") + 1] == "cogm:Factory Rent"
    assert keys[keys.index("returns") + 1] == "returns:Amazon Returns"
    sub = df[df["key"] == "cogm:Factory Rent"].iloc[0]
    assert sub["level"] == 2
    assert sub["amount"] == 300.0


def test_report_to_frame_zero_net_revenue() -> None:
    df = report_to_frame(MISReport(cogm=50.0, gross_margin=-50.0))
    assert (df["pct_of_net_revenue"] == 0.0).all()


def test_head_totals_to_frame() -> None:
    df = head_totals_to_frame(
        [HeadTotal(Head.COGM, "Factory Rent", 1234.567, 0.0, 2)]
    )
    assert df.to_dict("records") == [
        {
            "head": "E. COGM",
            "subhead": "Factory Rent",
            "debit_total": 1234.57,
            "credit_total": 0.0,
            "count": 2,
        }
    ]
    assert head_totals_to_frame([]).empty


def test_proration_to_frame() -> None:
    result = ProratedRawMaterialsResult(
        allocations=(PeriodAllocation("2024-04", 4, 2024, 0.25, 250.004),)
    )
    row = proration_to_frame(result).iloc[0]
    assert row["period_key"] == "2024-04"
    assert row["allocated_raw_materials"] == 250.0


def test_sales_summary_to_frame_totals() -> None:
    summary = SalesRegisterSummary(
        state="UP",
        gross_sales=900.0,
        returns=100.0,
        inter_company_transfers=500.0,
        sales_by_channel={"Amazon": 1000.0},
        returns_by_channel={"Amazon": 100.0},
        inter_company_by_state={"Maharashtra": 500.0},
    )
    df = sales_summary_to_frame(summary)

    assert df["section"].tolist() == [
        "sales",
        "returns",
        "inter_company",
        "total",
        "total",
        "total",
        "total",
    ]
    totals = df[df["section"] == "total"].set_index("name")["amount"]
    assert totals["Net Sales"] == 900.0
    assert totals["Inter-company Transfers"] == 500.0


def test_transactions_to_frame_columns() -> None:
    df = transactions_to_frame([Transaction(id="t1", date="", account="Rent")])
    assert list(df.columns) == TRANSACTION_COLUMNS
    assert df.loc[0, "account"] == "Rent"
    assert list(transactions_to_frame([]).columns) == TRANSACTION_COLUMNS


@pytest.mark.parametrize(
    "amount, expected",
    [
        (25_000_000, "₹2.50 Cr"),
        (150_000, "₹1.50 L"),
        (1234.4, "₹1,234"),
        (-150_000, "-₹1.50 L"),
    ],
)
def test_format_currency(amount: float, expected: str) -> None:
    assert format_currency(amount) == expected


def test_format_currency_symbol() -> None:
    assert format_currency(10, symbol="$") == "$10"


def test_format_percentage() -> None:
    assert format_percentage(25, 200) == "12.5%"
    assert format_percentage(5, 0) == "0%"
