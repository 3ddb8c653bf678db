# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Multi-period MIS reports.

``compute_multi_period_reports()`` builds one MISReport per monthly period
in a single pass:

1. Transactions are bucketed by month key (``YYYY-MM``) from their date,
   unless the caller already supplies them grouped.
2. When per-period balance-sheet summaries are given, the fiscal-year
   raw-materials cost is prorated across periods by revenue share (see
   ``cogs``), honouring configured fiscal-year overrides.
3. For each period, the engine aggregates that period's transactions and
   adds the period's allocated raw materials to COGM.
4. All per-period statements are concatenated into a long-format
   DataFrame with a ``period_label`` column, as rendered by
   ``views.report_to_frame``.

Transactions whose date cannot be read end up under the "unknown" key.
They are reported in their own period and never receive an allocation.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional, Union

import pandas as pd

from .cogs import (
    PeriodBalanceSummary,
    ProratedRawMaterialsResult,
    allocated_raw_materials_for,
    calculate_prorated_raw_materials_by_fy,
)
from .engine import MISReport, generate_mis_report
from .heads import DEFAULT_TAXONOMY, Taxonomy
from .models import Transaction
from .periods import month_key_from_date, sort_month_keys
from .views import REPORT_COLUMNS, report_to_frame


@dataclass(frozen=True)
class MultiPeriodReports:
    """
    Per-period MIS results.

    Attributes
    ----------
    reports :
        MISReport per period key, in chronological order.
    proration :
        Raw-materials proration used for the reports, or None when no
        period summaries were supplied.
    data :
        Long-format DataFrame with columns ``period_label`` followed by the
        ``report_to_frame`` columns.
    """

    reports: dict[str, MISReport]
    proration: Optional[ProratedRawMaterialsResult]
    data: pd.DataFrame


def group_transactions_by_month(
    transactions: Iterable[Transaction],
) -> dict[str, list[Transaction]]:
    groups: dict[str, list[Transaction]] = {}
    for txn in transactions:
        groups.setdefault(month_key_from_date(txn.date), []).append(txn)
    return {key: groups[key] for key in sort_month_keys(groups)}


def compute_multi_period_reports(
    transactions: Union[Iterable[Transaction], Mapping[str, Sequence[Transaction]]],
    period_summaries: Optional[Sequence[PeriodBalanceSummary]] = None,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    fy_overrides: Optional[Mapping[str, float]] = None,
    fy_start_month: int = 4,
    with_breakdowns: bool = False,
) -> MultiPeriodReports:
    """Compute one MIS report per period.

    Args:
        transactions: Either a flat iterable of transactions (bucketed by
            month of their date) or a mapping period key -> transactions.
        period_summaries: Optional per-period stock / purchases / revenue
            figures used to prorate raw materials into COGM.
        taxonomy: Head taxonomy.
        fy_overrides: Fiscal-year raw-materials overrides
            (e.g. ``{"FY 2024-25": 15985642.38}``).
        fy_start_month: First month of the fiscal year.
        with_breakdowns: Include subhead lines in the long-format data.

    Returns:
        MultiPeriodReports.
    """
    if isinstance(transactions, Mapping):
        by_period = {k: list(transactions[k]) for k in sort_month_keys(transactions)}
    else:
        by_period = group_transactions_by_month(transactions)

    # 1) Proration
    proration: Optional[ProratedRawMaterialsResult] = None
    if period_summaries:
        proration = calculate_prorated_raw_materials_by_fy(
            period_summaries, fy_overrides, fy_start_month
        )
        # periods with a summary but no transaction still get a report;
        # summaries are paired with transactions by their YYYY-MM key
        for alloc in proration.allocations:
            by_period.setdefault(alloc.month_key, [])
        by_period = {k: by_period[k] for k in sort_month_keys(by_period)}

    # 2) One report per period
    reports: dict[str, MISReport] = {}
    frames: list[pd.DataFrame] = []
    for key, txns in by_period.items():
        report = generate_mis_report(
            txns,
            taxonomy,
            allocated_raw_materials=allocated_raw_materials_for(proration, key),
        )
        reports[key] = report
        frame = report_to_frame(report, with_breakdowns=with_breakdowns)
        frame.insert(0, "period_label", key)
        frames.append(frame)

    # 3) Long format
    if frames:
        data = pd.concat(frames, ignore_index=True)
    else:
        data = pd.DataFrame(columns=["period_label", *REPORT_COLUMNS])

    return MultiPeriodReports(reports=reports, proration=proration, data=data)
