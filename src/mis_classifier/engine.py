# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
MIS aggregation engine.

This module folds classified Transactions into the tiered MIS profit and
loss statement:

    netRevenue   = grossRevenue - returns - discounts - taxes
    grossMargin  = netRevenue - cogm
    cm1          = grossMargin - channelCosts
    cm2          = cm1 - marketing
    cm3          = cm2 - platform
    ebitda       = cm3 - operating
    netIncome    = ebitda - nonOperating

Accumulation rules per head
---------------------------
- Revenue:                    sum of credits (also per subhead/channel).
- Returns, Discounts:         sum of debits.
- Taxes:                      credit if present, else debit.
- COGM, Channel & Fulfillment,
  Sales & Marketing, Platform,
  Operating, Non-Operating:   sum of debits, total and per subhead.
- Exclude / Ignore:           credit if present, else debit; informational
                              only, never part of a tier.

Only transactions that carry both a head and a subhead and are in
``classified`` or ``ignored`` status are aggregated. Each such transaction
contributes to exactly one head and one subhead.

The engine is pure: it neither caches nor mutates its inputs, so calling
``generate_mis_report`` twice on the same inputs gives equal reports.

Other entry points
------------------
- ``calculate_head_totals``: debit / credit totals per (head, subhead).
- ``aggregate_revenue``:     multi-state revenue roll-up over sales
                             register summaries.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from .heads import DEFAULT_TAXONOMY, RAW_MATERIALS_SUBHEAD, Head, Taxonomy
from .models import BalanceSheetData, Transaction, TransactionStatus
from .sales import DEFAULT_TRANSFER_ORIGIN_STATE, SalesRegisterSummary, same_state

logger = logging.getLogger(__name__)


# Heads whose debits are broken down per subhead in the report.
BREAKDOWN_HEADS: tuple[Head, ...] = (
    Head.RETURNS,
    Head.COGM,
    Head.CHANNEL_FULFILLMENT,
    Head.SALES_MARKETING,
    Head.PLATFORM_COSTS,
    Head.OPERATING_EXPENSES,
    Head.NON_OPERATING,
)


@dataclass(frozen=True)
class Reconciliation:
    """Balance sheet vs. journal comparison. Never alters the P&L tiers."""

    bs_opening_stock: float
    bs_closing_stock: float
    bs_purchases: float
    bs_net_sales: float
    bs_net_profit: float
    bs_cogs: float
    revenue_variance: float
    cogs_variance: float
    profit_variance: float
    purchase_register_total: Optional[float] = None
    purchase_variance: Optional[float] = None


@dataclass(frozen=True)
class MISReport:
    """One MIS P&L statement. Recomputable at any time from transactions."""

    gross_revenue: float = 0.0
    returns: float = 0.0
    discounts: float = 0.0
    taxes: float = 0.0
    net_revenue: float = 0.0
    cogm: float = 0.0
    gross_margin: float = 0.0
    channel_costs: float = 0.0
    cm1: float = 0.0
    marketing: float = 0.0
    cm2: float = 0.0
    platform: float = 0.0
    cm3: float = 0.0
    operating: float = 0.0
    ebitda: float = 0.0
    non_operating: float = 0.0
    net_income: float = 0.0
    excluded: float = 0.0
    ignored: float = 0.0
    revenue_by_channel: dict[str, float] = field(default_factory=dict)
    breakdowns: dict[str, dict[str, float]] = field(default_factory=dict)
    transaction_count: int = 0
    aggregated_count: int = 0
    unclassified_count: int = 0
    allocated_raw_materials: float = 0.0
    reconciliation: Optional[Reconciliation] = None

    def breakdown(self, head: Head) -> dict[str, float]:
        return self.breakdowns.get(head.label, {})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# (attribute, display name, level) in statement order; level 0 = tier.
REPORT_LINES: tuple[tuple[str, str, int], ...] = (
    ("gross_revenue", "Gross Revenue", 1),
    ("returns", "Returns", 1),
    ("discounts", "Discounts", 1),
    ("taxes", "Taxes (GST)", 1),
    ("net_revenue", "Net Revenue", 0),
    ("cogm", "COGM", 1),
    ("gross_margin", "Gross Margin", 0),
    ("channel_costs", "Channel & Fulfillment", 1),
    ("cm1", "CM1", 0),
    ("marketing", "Sales & Marketing", 1),
    ("cm2", "CM2", 0),
    ("platform", "Platform Costs", 1),
    ("cm3", "CM3", 0),
    ("operating", "Operating Expenses", 1),
    ("ebitda", "EBITDA", 0),
    ("non_operating", "Non-Operating", 1),
    ("net_income", "Net Income", 0),
)

# Report attribute fed by each cost head.
HEAD_ATTRIBUTES: dict[Head, str] = {
    Head.REVENUE: "gross_revenue",
    Head.RETURNS: "returns",
    Head.DISCOUNTS: "discounts",
    Head.TAXES: "taxes",
    Head.COGM: "cogm",
    Head.CHANNEL_FULFILLMENT: "channel_costs",
    Head.SALES_MARKETING: "marketing",
    Head.PLATFORM_COSTS: "platform",
    Head.OPERATING_EXPENSES: "operating",
    Head.NON_OPERATING: "non_operating",
    Head.EXCLUDE: "excluded",
    Head.IGNORE: "ignored",
}

_AGGREGATED_STATUSES = (TransactionStatus.CLASSIFIED, TransactionStatus.IGNORED)


def is_aggregated(txn: Transaction) -> bool:
    return (
        txn.status in _AGGREGATED_STATUSES
        and txn.head is not None
        and bool(txn.subhead)
    )


def _contribution(txn: Transaction, head: Head) -> float:
    if head is Head.REVENUE:
        return txn.credit
    if head in (Head.TAXES, Head.EXCLUDE, Head.IGNORE):
        return txn.credit if txn.credit else txn.debit
    return txn.debit


def generate_mis_report(
    transactions: Iterable[Transaction],
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    balance_sheet: Optional[BalanceSheetData] = None,
    purchase_register_total: Optional[float] = None,
    allocated_raw_materials: Optional[float] = None,
) -> MISReport:
    """Aggregate transactions into an MISReport.

    Args:
        transactions: Any iterable of Transactions; only classified or
            ignored ones with a head and subhead are aggregated.
        taxonomy: Head taxonomy giving the breakdown keys and their order.
        balance_sheet: Optional balance-sheet figures for reconciliation.
        purchase_register_total: Optional purchase-register total, compared
            with the balance-sheet purchases.
        allocated_raw_materials: Optional prorated raw-materials cost added
            to COGM under "Raw Materials & Inventory".

    Returns:
        A fully populated MISReport.
    """
    txns = list(transactions)

    # 1) Initialize accumulators (taxonomy order, then encounter order)
    totals: dict[Head, float] = {h: 0.0 for h in Head}
    revenue_by_channel: dict[str, float] = {
        s: 0.0 for s in taxonomy.subheads_for(Head.REVENUE)
    }
    breakdowns: dict[Head, dict[str, float]] = {
        h: {s: 0.0 for s in taxonomy.subheads_for(h)} for h in BREAKDOWN_HEADS
    }

    # 2) Accumulate
    aggregated = 0
    for txn in txns:
        if not is_aggregated(txn):
            continue
        head = txn.head
        value = _contribution(txn, head)
        totals[head] += value
        aggregated += 1
        if head is Head.REVENUE:
            revenue_by_channel[txn.subhead] = (
                revenue_by_channel.get(txn.subhead, 0.0) + value
            )
        elif head in breakdowns:
            bucket = breakdowns[head]
            bucket[txn.subhead] = bucket.get(txn.subhead, 0.0) + value

    if allocated_raw_materials:
        totals[Head.COGM] += allocated_raw_materials
        cogm = breakdowns[Head.COGM]
        cogm[RAW_MATERIALS_SUBHEAD] = (
            cogm.get(RAW_MATERIALS_SUBHEAD, 0.0) + allocated_raw_materials
        )

    # 3) Tiers
    gross_revenue = totals[Head.REVENUE]
    net_revenue = (
        gross_revenue
        - totals[Head.RETURNS]
        - totals[Head.DISCOUNTS]
        - totals[Head.TAXES]
    )
    gross_margin = net_revenue - totals[Head.COGM]
    cm1 = gross_margin - totals[Head.CHANNEL_FULFILLMENT]
    cm2 = cm1 - totals[Head.SALES_MARKETING]
    cm3 = cm2 - totals[Head.PLATFORM_COSTS]
    ebitda = cm3 - totals[Head.OPERATING_EXPENSES]
    net_income = ebitda - totals[Head.NON_OPERATING]

    reconciliation = None
    if balance_sheet is not None:
        reconciliation = reconcile(
            balance_sheet,
            net_revenue=net_revenue,
            cogm=totals[Head.COGM],
            net_income=net_income,
            purchase_register_total=purchase_register_total,
        )

    unclassified = sum(
        1 for t in txns if t.status is TransactionStatus.UNCLASSIFIED
    )
    logger.debug(
        "MIS report: %d transactions, %d aggregated, %d unclassified",
        len(txns),
        aggregated,
        unclassified,
    )

    return MISReport(
        gross_revenue=gross_revenue,
        returns=totals[Head.RETURNS],
        discounts=totals[Head.DISCOUNTS],
        taxes=totals[Head.TAXES],
        net_revenue=net_revenue,
        cogm=totals[Head.COGM],
        gross_margin=gross_margin,
        channel_costs=totals[Head.CHANNEL_FULFILLMENT],
        cm1=cm1,
        marketing=totals[Head.SALES_MARKETING],
        cm2=cm2,
        platform=totals[Head.PLATFORM_COSTS],
        cm3=cm3,
        operating=totals[Head.OPERATING_EXPENSES],
        ebitda=ebitda,
        non_operating=totals[Head.NON_OPERATING],
        net_income=net_income,
        excluded=totals[Head.EXCLUDE],
        ignored=totals[Head.IGNORE],
        revenue_by_channel=revenue_by_channel,
        breakdowns={h.label: b for h, b in breakdowns.items()},
        transaction_count=len(txns),
        aggregated_count=aggregated,
        unclassified_count=unclassified,
        allocated_raw_materials=allocated_raw_materials or 0.0,
        reconciliation=reconciliation,
    )


def reconcile(
    balance_sheet: BalanceSheetData,
    *,
    net_revenue: float,
    cogm: float,
    net_income: float,
    purchase_register_total: Optional[float] = None,
) -> Reconciliation:
    """Compare journal-based figures with the balance sheet.

    Variances are balance sheet minus journal.
    """
    bs_cogs = balance_sheet.cogs
    purchase_variance = None
    if purchase_register_total is not None:
        purchase_variance = balance_sheet.purchases - purchase_register_total
    return Reconciliation(
        bs_opening_stock=balance_sheet.opening_stock,
        bs_closing_stock=balance_sheet.closing_stock,
        bs_purchases=balance_sheet.purchases,
        bs_net_sales=balance_sheet.net_sales,
        bs_net_profit=balance_sheet.net_profit,
        bs_cogs=bs_cogs,
        revenue_variance=balance_sheet.net_sales - net_revenue,
        cogs_variance=bs_cogs - cogm,
        profit_variance=balance_sheet.net_profit - net_income,
        purchase_register_total=purchase_register_total,
        purchase_variance=purchase_variance,
    )


# ---------------------------------------------------------------------------
# Head totals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeadTotal:
    head: Head
    subhead: str
    debit_total: float
    credit_total: float
    count: int

    @property
    def net(self) -> float:
        return self.debit_total - self.credit_total


def calculate_head_totals(
    transactions: Iterable[Transaction],
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
) -> list[HeadTotal]:
    """Debit / credit totals and counts per (head, subhead).

    Sorted by head order, then by the subhead's position in the taxonomy
    (subheads outside the taxonomy come after, alphabetically).
    """
    acc: dict[tuple[Head, str], list[float]] = {}
    for txn in transactions:
        if not is_aggregated(txn):
            continue
        slot = acc.setdefault((txn.head, txn.subhead), [0.0, 0.0, 0])
        slot[0] += txn.debit
        slot[1] += txn.credit
        slot[2] += 1

    head_order = {h: i for i, h in enumerate(Head)}

    def _key(item: tuple[tuple[Head, str], list[float]]):
        (head, subhead), _ = item
        subs = taxonomy.subheads_for(head)
        pos = subs.index(subhead) if subhead in subs else len(subs)
        return (head_order[head], pos, subhead)

    return [
        HeadTotal(
            head=h, subhead=s, debit_total=v[0], credit_total=v[1], count=int(v[2])
        )
        for (h, s), v in sorted(acc.items(), key=_key)
    ]


# ---------------------------------------------------------------------------
# Multi-state revenue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AggregatedRevenue:
    total_gross_sales: float
    total_stock_transfer: float
    total_returns: float
    total_taxes: float
    total_discounts: float
    total_net_revenue: float
    sales_by_state: dict[str, float]
    returns_by_state: dict[str, float]
    channel_totals: dict[str, float]
    inter_company_by_state: dict[str, float]


def aggregate_revenue(
    summaries: Sequence[SalesRegisterSummary],
    origin_state: str = DEFAULT_TRANSFER_ORIGIN_STATE,
    discounts: float = 0.0,
    taxes: Optional[float] = None,
) -> AggregatedRevenue:
    """Roll up per-state sales register summaries.

    ``total_stock_transfer`` is taken only from the transfer-origin state's
    register. ``taxes`` defaults to the sum of the registers' GST columns.

        totalNetRevenue = totalGrossSales - totalStockTransfer
                          - totalReturns - totalTaxes - totalDiscounts
    """
    gross = sum(s.gross_sales for s in summaries)
    returns = sum(s.returns for s in summaries)
    stock_transfer = sum(
        s.inter_company_transfers
        for s in summaries
        if same_state(s.state, origin_state)
    )
    total_taxes = sum(s.total_taxes for s in summaries) if taxes is None else taxes

    sales_by_state: dict[str, float] = {}
    returns_by_state: dict[str, float] = {}
    channels: dict[str, float] = {}
    inter_company: dict[str, float] = {}
    for s in summaries:
        sales_by_state[s.state] = sales_by_state.get(s.state, 0.0) + s.net_sales
        returns_by_state[s.state] = returns_by_state.get(s.state, 0.0) + s.returns
        _merge_into(channels, s.sales_by_channel)
        if same_state(s.state, origin_state):
            _merge_into(inter_company, s.inter_company_by_state)

    return AggregatedRevenue(
        total_gross_sales=gross,
        total_stock_transfer=stock_transfer,
        total_returns=returns,
        total_taxes=total_taxes,
        total_discounts=discounts,
        total_net_revenue=gross - stock_transfer - returns - total_taxes - discounts,
        sales_by_state=sales_by_state,
        returns_by_state=returns_by_state,
        channel_totals=channels,
        inter_company_by_state=inter_company,
    )


def _merge_into(target: dict[str, float], source: Mapping[str, float]) -> None:
    for key, value in source.items():
        target[key] = target.get(key, 0.0) + value
