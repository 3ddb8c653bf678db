import pytest

from mis_classifier.engine import (
    aggregate_revenue,
    calculate_head_totals,
    generate_mis_report,
)
from mis_classifier.heads import DEFAULT_TAXONOMY, Head
from mis_classifier.models import BalanceSheetData, Transaction, TransactionStatus
from mis_classifier.sales import SalesRegisterSummary

CLASSIFIED = TransactionStatus.CLASSIFIED
RAW = "Raw Materials & Inventory"


def _txn(i, head, subhead, debit=0.0, credit=0.0, status=CLASSIFIED, date=""):
    return Transaction(
        id=f"t{i}",
        date=date,
        account=f"Account {i}",
        debit=debit,
        credit=credit,
        status=status,
        head=head,
        subhead=subhead,
    )


def _sample():
    return [
        _txn(1, Head.REVENUE, "Amazon", credit=10000),
        _txn(2, Head.REVENUE, "Website/D2C", credit=5000),
        _txn(3, Head.RETURNS, "Amazon Returns", debit=500),
        _txn(4, Head.DISCOUNTS, "Channel Discounts", debit=300),
        _txn(5, Head.TAXES, "IGST", credit=1200),
        _txn(6, Head.COGM, "Factory Rent", debit=2000),
        _txn(7, Head.COGM, "Manufacturing Wages", debit=1000),
        _txn(8, Head.CHANNEL_FULFILLMENT, "Amazon Fees", debit=1500),
        _txn(9, Head.SALES_MARKETING, "Facebook Ads", debit=1000),
        _txn(10, Head.PLATFORM_COSTS, "Shopify", debit=200),
        _txn(11, Head.OPERATING_EXPENSES, "Legal & CA", debit=800),
        _txn(12, Head.NON_OPERATING, "Interest", debit=100),
        _txn(13, Head.EXCLUDE, "Personal Expenses", debit=999),
        _txn(
            14,
            Head.IGNORE,
            "Bank Transfers",
            debit=7777,
            status=TransactionStatus.IGNORED,
        ),
    ]


def test_report_tiers() -> None:
    report = generate_mis_report(_sample(), DEFAULT_TAXONOMY)

    assert report.gross_revenue == 15000
    assert report.returns == 500
    assert report.discounts == 300
    assert report.taxes == 1200
    assert report.net_revenue == 13000
    assert report.cogm == 3000
    assert report.gross_margin == 10000
    assert report.cm1 == 8500
    assert report.cm2 == 7500
    assert report.cm3 == 7300
    assert report.ebitda == 6500
    assert report.net_income == 6400
    assert report.excluded == 999
    assert report.ignored == 7777
    assert report.aggregated_count == 14


def test_tier_identities_hold() -> None:
    r = generate_mis_report(_sample())
    assert r.net_revenue == r.gross_revenue - r.returns - r.discounts - r.taxes
    assert r.gross_margin == r.net_revenue - r.cogm
    assert r.cm1 == r.gross_margin - r.channel_costs
    assert r.cm2 == r.cm1 - r.marketing
    assert r.cm3 == r.cm2 - r.platform
    assert r.ebitda == r.cm3 - r.operating
    assert r.net_income == r.ebitda - r.non_operating


def test_breakdowns_follow_taxonomy_order() -> None:
    report = generate_mis_report(_sample())

    assert list(report.revenue_by_channel) == [
        "Website/D2C",
        "Amazon",
        "Blinkit",
        "Offline/OEM",
    ]
    assert report.revenue_by_channel["Amazon"] == 10000
    assert report.revenue_by_channel["Blinkit"] == 0
    cogm = report.breakdown(Head.COGM)
    assert cogm["Factory Rent"] == 2000
    assert cogm["Manufacturing Wages"] == 1000
    assert sum(cogm.values()) == report.cogm


def test_unknown_subhead_is_kept_as_extra_key() -> None:
    txns = [_txn(1, Head.PLATFORM_COSTS, "Zoho", debit=50)]
    report = generate_mis_report(txns)
    assert report.breakdown(Head.PLATFORM_COSTS)["Zoho"] == 50
    assert list(report.breakdown(Head.PLATFORM_COSTS))[-1] == "Zoho"


def test_unclassified_and_suggested_transactions_are_left_out() -> None:
    txns = _sample() + [
        Transaction(id="u1", date="", account="Mystery", debit=10**6),
        Transaction(
            id="s1",
            date="",
            account="Shopify",
            debit=10**6,
            status=TransactionStatus.SUGGESTED,
            suggested_head=Head.PLATFORM_COSTS,
            suggested_subhead="Shopify",
        ),
    ]
    report = generate_mis_report(txns)
    assert report.net_income == 6400
    assert report.transaction_count == 16
    assert report.unclassified_count == 1


def test_report_is_idempotent_and_inputs_untouched() -> None:
    txns = _sample()
    snapshot = list(txns)
    first = generate_mis_report(txns)
    second = generate_mis_report(txns)
    assert first == second
    assert first.to_dict() == second.to_dict()
    assert txns == snapshot


def test_empty_input_gives_zero_report() -> None:
    report = generate_mis_report([])
    assert report.net_revenue == 0
    assert report.net_income == 0
    assert report.reconciliation is None


def test_allocated_raw_materials_adds_to_cogm() -> None:
    report = generate_mis_report(_sample(), allocated_raw_materials=4000)
    assert report.cogm == 7000
    assert report.breakdown(Head.COGM)["Raw Materials & Inventory"] == 4000
    assert report.allocated_raw_materials == 4000
    assert report.net_income == 2400


def test_reconciliation_never_changes_tiers() -> None:
    bs = BalanceSheetData(
        opening_stock=1000,
        closing_stock=500,
        purchases=2600,
        net_sales=13500,
        net_profit=6000,
    )
    plain = generate_mis_report(_sample())
    report = generate_mis_report(
        _sample(), balance_sheet=bs, purchase_register_total=2500
    )

    assert report.net_income == plain.net_income
    rec = report.reconciliation
    assert rec.bs_cogs == 3100
    assert rec.revenue_variance == 500
    assert rec.cogs_variance == 100
    assert rec.profit_variance == -400
    assert rec.purchase_variance == 100


def test_reconciliation_clamps_negative_balance_sheet_cogs() -> None:
    bs = BalanceSheetData(opening_stock=0, closing_stock=100, purchases=10)
    report = generate_mis_report([], balance_sheet=bs)
    assert report.reconciliation.bs_cogs == 0
    assert report.reconciliation.purchase_variance is None


def test_head_totals_sorted_by_head_then_subhead() -> None:
    txns = [
        _txn(1, Head.COGM, "Manufacturing Wages", debit=10),
        _txn(2, Head.REVENUE, "Amazon", credit=100),
        _txn(3, Head.COGM, RAW, debit=5),
        _txn(4, Head.COGM, "Manufacturing Wages", debit=15),
        Transaction(id="u", date="", account="x", debit=1),
    ]
    totals = calculate_head_totals(txns)

    assert [(t.head, t.subhead) for t in totals] == [
        (Head.REVENUE, "Amazon"),
        (Head.COGM, RAW),
        (Head.COGM, "Manufacturing Wages"),
    ]
    wages = totals[2]
    assert wages.debit_total == 25
    assert wages.count == 2
    assert totals[0].net == -100


def _summary(state, gross, returns=0.0, transfers=0.0, taxes=0.0, channels=None):
    return SalesRegisterSummary(
        state=state,
        gross_sales=gross,
        returns=returns,
        inter_company_transfers=transfers,
        total_taxes=taxes,
        sales_by_channel=channels or {},
        inter_company_by_state={"Maharashtra": transfers} if transfers else {},
    )


def test_aggregate_revenue_across_states() -> None:
    summaries = [
        _summary(
            "UP",
            10000,
            returns=500,
            transfers=3000,
            taxes=900,
            channels={"Amazon": 6000, "Offline/OEM": 4000},
        ),
        _summary(
            "MH", 4000, returns=100, transfers=999, taxes=300, channels={"Amazon": 4000}
        ),
    ]

    revenue = aggregate_revenue(summaries, origin_state="UP", discounts=200)

    assert revenue.total_gross_sales == 14000
    # only the origin state's transfers are deducted
    assert revenue.total_stock_transfer == 3000
    assert revenue.total_returns == 600
    assert revenue.total_taxes == 1200
    assert revenue.total_net_revenue == 14000 - 3000 - 600 - 1200 - 200
    assert revenue.channel_totals == {"Amazon": 10000, "Offline/OEM": 4000}
    assert revenue.sales_by_state == {"UP": 10000, "MH": 4000}
    assert revenue.inter_company_by_state == {"Maharashtra": 3000}


def test_aggregate_revenue_explicit_taxes() -> None:
    revenue = aggregate_revenue([_summary("UP", 100, taxes=18)], taxes=0.0)
    assert revenue.total_taxes == 0
    assert revenue.total_net_revenue == pytest.approx(100)


def test_aggregate_revenue_origin_state_ignores_case() -> None:
    summaries = [_summary("up", 1000, transfers=400), _summary("MH", 500)]

    revenue = aggregate_revenue(summaries, origin_state="UP")

    assert revenue.total_stock_transfer == 400
    assert revenue.inter_company_by_state == {"Maharashtra": 400}
    assert revenue.total_net_revenue == pytest.approx(1100)
