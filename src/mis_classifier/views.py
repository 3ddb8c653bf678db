# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for MIS Classifier.

The engine returns dataclasses; this module turns them into pandas
DataFrames ready for terminal display or CSV export, and provides the
Indian-style currency formatting used in reports (Cr = 1e7, L = 1e5).

Main views:

- ``report_to_frame``:         tiered P&L, optionally with subhead lines.
- ``head_totals_to_frame``:    per (head, subhead) totals.
- ``proration_to_frame``:      raw-materials allocation per period.
- ``sales_summary_to_frame``:  channel / transfer lines of a sales register.
- ``transactions_to_frame``:   flat transaction listing.

Amounts are rounded to 2 decimals only here, never inside the engine.
"""

from collections.abc import Iterable

import pandas as pd

from .cogs import ProratedRawMaterialsResult
from .engine import (
    BREAKDOWN_HEADS,
    HEAD_ATTRIBUTES,
    REPORT_LINES,
    HeadTotal,
    MISReport,
)
from .models import Transaction
from .sales import SalesRegisterSummary

REPORT_COLUMNS = [
    "display_order",
    "level",
    "key",
    "name",
    "amount",
    "pct_of_net_revenue",
]


def _renumber_display_order(df: pd.DataFrame) -> pd.DataFrame:
    df = df.reset_index(drop=True)
    df["display_order"] = (df.index + 1) * 10
    return df


def _pct(amount: float, base: float) -> float:
    if base == 0:
        return 0.0
    return round(amount / base * 100.0, 2)


def report_to_frame(report: MISReport, with_breakdowns: bool = False) -> pd.DataFrame:
    """Render an MISReport as a long-format DataFrame.

    Columns: display_order, level, key, name, amount, pct_of_net_revenue.
    Tier lines are level 0, head totals level 1 and, with
    ``with_breakdowns``, subhead lines level 2 directly under their head.
    ``pct_of_net_revenue`` is 0 when net revenue is 0.
    """
    attribute_heads = {attr: head for head, attr in HEAD_ATTRIBUTES.items()}
    base = report.net_revenue

    rows: list[dict[str, object]] = []
    for key, name, level in REPORT_LINES:
        amount = float(getattr(report, key))
        rows.append(
            {
                "level": level,
                "key": key,
                "name": name,
                "amount": round(amount, 2),
                "pct_of_net_revenue": _pct(amount, base),
            }
        )
        if not with_breakdowns:
            continue

        head = attribute_heads.get(key)
        if key == "gross_revenue":
            sub = report.revenue_by_channel
        elif head in BREAKDOWN_HEADS:
            sub = report.breakdown(head)
        else:
            continue
        for subhead, value in sub.items():
            rows.append(
                {
                    "level": 2,
                    "key": f"{key}:{subhead}",
                    "name": subhead,
                    "amount": round(value, 2),
                    "pct_of_net_revenue": _pct(value, base),
                }
            )

    df = _renumber_display_order(pd.DataFrame(rows))
    return df[REPORT_COLUMNS].copy()


def head_totals_to_frame(totals: Iterable[HeadTotal]) -> pd.DataFrame:
    rows = [
        {
            "head": t.head.label,
            "subhead": t.subhead,
            "debit_total": round(t.debit_total, 2),
            "credit_total": round(t.credit_total, 2),
            "count": t.count,
        }
        for t in totals
    ]
    return pd.DataFrame(
        rows, columns=["head", "subhead", "debit_total", "credit_total", "count"]
    )


def proration_to_frame(result: ProratedRawMaterialsResult) -> pd.DataFrame:
    rows = [
        {
            "period_key": a.period_key,
            "month": a.month,
            "year": a.year,
            "revenue_ratio": round(a.revenue_ratio, 6),
            "allocated_raw_materials": round(a.allocated_raw_materials, 2),
        }
        for a in result.allocations
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "period_key",
            "month",
            "year",
            "revenue_ratio",
            "allocated_raw_materials",
        ],
    )


def sales_summary_to_frame(summary: SalesRegisterSummary) -> pd.DataFrame:
    """Sales register totals as (section, name, amount) lines."""
    rows: list[dict[str, object]] = []
    for channel, amount in summary.sales_by_channel.items():
        rows.append({"section": "sales", "name": channel, "amount": amount})
    for channel, amount in summary.returns_by_channel.items():
        rows.append({"section": "returns", "name": channel, "amount": amount})
    for state, amount in summary.inter_company_by_state.items():
        rows.append({"section": "inter_company", "name": state, "amount": amount})
    rows.append(
        {"section": "total", "name": "Gross Sales", "amount": summary.gross_sales}
    )
    rows.append({"section": "total", "name": "Returns", "amount": summary.returns})
    rows.append(
        {
            "section": "total",
            "name": "Inter-company Transfers",
            "amount": summary.inter_company_transfers,
        }
    )
    rows.append({"section": "total", "name": "Net Sales", "amount": summary.net_sales})

    df = pd.DataFrame(rows, columns=["section", "name", "amount"])
    df["amount"] = df["amount"].astype(float).round(2)
    return df


TRANSACTION_COLUMNS = [
    "id",
    "date",
    "vch_bill_no",
    "gst_nature",
    "account",
    "debit",
    "credit",
    "status",
    "head",
    "subhead",
    "suggested_head",
    "suggested_subhead",
    "is_auto_ignored",
    "state",
    "notes",
]


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    return pd.DataFrame(
        [t.to_dict() for t in transactions], columns=TRANSACTION_COLUMNS
    )


def format_currency(amount: float, symbol: str = "₹") -> str:
    """Format an amount with Indian units: Cr (1e7), L (1e5), else plain."""
    sign = "-" if amount < 0 else ""
    value = abs(amount)
    if value >= 1e7:
        return f"{sign}{symbol}{value / 1e7:.2f} Cr"
    if value >= 1e5:
        return f"{sign}{symbol}{value / 1e5:.2f} L"
    return f"{sign}{symbol}{value:,.0f}"


def format_percentage(value: float, total: float) -> str:
    if total == 0:
        return "0%"
    return f"{value / total * 100:.1f}%"
