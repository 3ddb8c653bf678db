import pytest

from mis_classifier.heads import INTER_COMPANY_CHANNEL, Channel, Head
from mis_classifier.models import SalesRow, TransactionStatus
from mis_classifier.sales import (
    InterCompanyRules,
    categorize_channel,
    classify_sales_line,
    reassign_channel,
    sales_line_to_transaction,
    sales_summary_to_transactions,
    state_keywords_from_mapping,
    summarize_sales_register,
)


def _ids():
    counter = iter(range(1, 1000))
    return lambda: f"s{next(counter)}"


@pytest.mark.parametrize(
    "party, channel",
    [
        ("BLINK COMMERCE PVT LTD (blinkit)", Channel.BLINKIT),
        ("Grofers India", Channel.BLINKIT),
        ("Amazon Sale Cash Sale UP", Channel.AMAZON),
        ("Shiprocket order via Amazon", Channel.AMAZON),
        ("SHIPROCKET CASH SALE", Channel.WEBSITE),
        ("Sharma Electricals", Channel.OFFLINE_OEM),
        ("", Channel.OFFLINE_OEM),
    ],
)
def test_channel_priority(party, channel) -> None:
    assert categorize_channel(party) is channel


def test_register_totals_with_return_and_inter_company_transfer() -> None:
    rows = [
        SalesRow("Amazon Sale Cash Sale", 5000),
        SalesRow("Amazon Sale Cash Sale", -500),
        SalesRow("Heatronics Medical Devices Maharashtra", 3000),
    ]

    summary = summarize_sales_register(rows, "UP", id_factory=_ids())

    assert summary.gross_sales == 5000
    assert summary.returns == 500
    assert summary.inter_company_transfers == 3000
    assert summary.inter_company_by_state == {"Maharashtra": 3000}
    assert summary.net_sales == 5000
    assert summary.sales_by_channel == {"Amazon": 5000}
    assert summary.returns_by_channel == {"Amazon": 500}
    assert summary.item_count == 3


def test_sibling_entity_outside_origin_state_is_a_sale() -> None:
    row = SalesRow("Heatronics Medical Devices Maharashtra", 3000)
    item = classify_sales_line(row, "MH")
    assert not item.is_inter_company
    assert item.channel is Channel.OFFLINE_OEM


@pytest.mark.parametrize("state", ["up", " Up ", "UP"])
def test_origin_state_match_ignores_case_and_blanks(state) -> None:
    row = SalesRow("Heatronics Medical Devices Maharashtra", 3000)
    item = classify_sales_line(row, state)
    assert item.is_inter_company
    assert item.to_state == "Maharashtra"


def test_negative_sibling_amount_is_a_return_not_a_transfer() -> None:
    row = SalesRow("Heatronics Medical Devices Telangana", -100)
    item = classify_sales_line(row, "UP")
    assert item.is_return
    assert not item.is_inter_company
    assert item.amount == 100


def test_zero_amount_and_blank_party_rows_are_dropped() -> None:
    assert classify_sales_line(SalesRow("Amazon", 0), "UP") is None
    assert classify_sales_line(SalesRow("  ", 10), "UP") is None

    summary = summarize_sales_register(
        [SalesRow("Amazon", 0), SalesRow("Shop", 10)], "UP"
    )
    assert summary.item_count == 1


def test_taxes_are_summed_from_gst_columns() -> None:
    rows = [
        SalesRow("Shop", 1000, igst=180),
        SalesRow("Shop", 2000, cgst=180, sgst=180),
    ]
    assert summarize_sales_register(rows, "UP").total_taxes == 540


def test_configurable_inter_company_rules() -> None:
    rules = InterCompanyRules(
        origin_state="DL",
        entity_patterns=(r"acme\s+(north|south)",),
        state_keywords=state_keywords_from_mapping({"Punjab": ["NORTH"]}),
    )
    item = classify_sales_line(SalesRow("ACME North", 700), "DL", rules)
    assert item.is_inter_company
    assert item.to_state == "Punjab"
    assert item.channel == INTER_COMPANY_CHANNEL

    south = classify_sales_line(SalesRow("ACME South", 50), "DL", rules)
    assert south.to_state is None


def test_invalid_inter_company_pattern_is_dropped() -> None:
    rules = InterCompanyRules(entity_patterns=("[bad", "sibling"))
    assert len(rules.compiled) == 1
    assert rules.is_sibling_entity("Sibling Co")


def test_reassign_channel_recomputes_totals() -> None:
    rows = [SalesRow("Sharma Electricals", 1000), SalesRow("Amazon", 400)]
    summary = summarize_sales_register(rows, "UP", id_factory=_ids())

    updated = reassign_channel(summary, "s1", "Website")

    assert updated.sales_by_channel == {"Website": 1000, "Amazon": 400}
    assert updated.gross_sales == summary.gross_sales
    item = updated.line_items[0]
    assert item.channel is Channel.WEBSITE
    assert item.original_channel is Channel.OFFLINE_OEM
    # the original summary is unchanged
    assert summary.sales_by_channel == {"Offline/OEM": 1000, "Amazon": 400}


def test_reassign_channel_errors() -> None:
    rows = [SalesRow("Heatronics Karnataka", 100), SalesRow("Shop", 5)]
    summary = summarize_sales_register(rows, "UP", id_factory=_ids())

    with pytest.raises(ValueError):
        reassign_channel(summary, "s1", "Amazon")
    with pytest.raises(ValueError):
        reassign_channel(summary, "nope", "Amazon")
    with pytest.raises(ValueError):
        reassign_channel(summary, "s2", "Flipkart")


def test_sales_lines_become_classified_transactions() -> None:
    rows = [
        SalesRow("Shiprocket Cash Sale", 900, date="01-04-2024", voucher_number="S1"),
        SalesRow("Blinkit", -90, date="02-04-2024"),
        SalesRow("Heatronics Medical Devices Haryana", 300),
    ]
    summary = summarize_sales_register(rows, "UP", id_factory=_ids())

    sale, ret, transfer = sales_summary_to_transactions(summary)

    assert sale.id == "sales-s1"
    assert sale.status is TransactionStatus.CLASSIFIED
    assert (sale.head, sale.subhead) == (Head.REVENUE, "Website/D2C")
    assert sale.credit == 900 and sale.debit == 0
    assert sale.vch_bill_no == "S1"
    assert sale.state == "UP"

    assert (ret.head, ret.subhead) == (Head.RETURNS, "Blinkit Returns")
    assert ret.debit == 90

    assert transfer.status is TransactionStatus.IGNORED
    assert (transfer.head, transfer.subhead) == (Head.IGNORE, "Inter-company")
    assert transfer.notes == "Inter-company transfer to Haryana"


def test_single_line_to_transaction_keeps_given_state() -> None:
    item = classify_sales_line(SalesRow("Amazon", 10), "UP", id_factory=lambda: "x")
    txn = sales_line_to_transaction(item, "KA")
    assert txn.state == "KA"
    assert txn.subhead == "Amazon"
