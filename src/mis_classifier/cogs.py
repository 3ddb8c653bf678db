# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
COGS computation and raw-materials proration.

Raw-materials cost is only known at fiscal-year level from the balance
sheet (opening stock + purchases - closing stock). To produce monthly MIS
reports, this annual figure is spread over the months in proportion to
each month's net revenue:

    ratio_i     = revenue_i / sum(revenue)      (1 / n when sum is 0)
    allocated_i = fy_total_raw_materials * ratio_i

A negative COGS is clamped to zero: it signals inconsistent stock figures
in the source filings rather than a valid cost.

Fiscal years can carry an override total (for instance the audited COGS
of a closed year), configured as ``{"FY 2024-25": 15985642.38}``.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional

from .periods import Period, fiscal_year_label

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class COGSData:
    opening_stock: float
    purchases: float
    closing_stock: float
    cogs: float
    raw_cogs: float

    @property
    def clamped(self) -> bool:
        return self.raw_cogs < 0


def calculate_cogs(
    opening_stock: float, purchases: float, closing_stock: float
) -> COGSData:
    """Opening + purchases - closing, never below zero."""
    raw = opening_stock + purchases - closing_stock
    if raw < 0:
        logger.warning(
            "Negative COGS clamped to 0 (opening=%.2f, purchases=%.2f, "
            "closing=%.2f, raw=%.2f)",
            opening_stock,
            purchases,
            closing_stock,
            raw,
        )
    return COGSData(
        opening_stock=opening_stock,
        purchases=purchases,
        closing_stock=closing_stock,
        cogs=max(0.0, raw),
        raw_cogs=raw,
    )


@dataclass(frozen=True)
class PeriodBalanceSummary:
    """Balance-sheet figures for one reporting period (usually a month)."""

    period_key: str
    month: int
    year: int
    opening_stock: float = 0.0
    purchases: float = 0.0
    closing_stock: float = 0.0
    net_revenue: float = 0.0


@dataclass(frozen=True)
class PeriodAllocation:
    period_key: str
    month: int
    year: int
    revenue_ratio: float
    allocated_raw_materials: float

    @property
    def month_key(self) -> str:
        """``YYYY-MM`` key of the period, whatever its ``period_key`` label."""
        return Period(self.year, self.month).key


@dataclass(frozen=True)
class ProratedRawMaterialsResult:
    fy_opening_stock: float = 0.0
    fy_total_purchases: float = 0.0
    fy_closing_stock: float = 0.0
    fy_total_raw_materials: float = 0.0
    fy_total_revenue: float = 0.0
    allocations: tuple[PeriodAllocation, ...] = ()

    def allocation_for(self, period_key: str) -> float:
        """Allocation of a period, looked up by its label or ``YYYY-MM`` key."""
        for alloc in self.allocations:
            if period_key in (alloc.period_key, alloc.month_key):
                return alloc.allocated_raw_materials
        return 0.0


def _chronological(
    periods: Iterable[PeriodBalanceSummary],
) -> list[PeriodBalanceSummary]:
    # sorted() is stable: equal (year, month) keep input order
    return sorted(periods, key=lambda p: (p.year, p.month))


def calculate_prorated_raw_materials(
    periods: Sequence[PeriodBalanceSummary],
    override_total: Optional[float] = None,
) -> ProratedRawMaterialsResult:
    """Prorate one fiscal year's raw-materials cost by revenue share.

    Args:
        periods: Period summaries of a single fiscal year, in any order.
        override_total: When given, replaces the computed raw-materials
            total (stock figures are still reported as computed).

    Returns:
        A ProratedRawMaterialsResult. Empty input yields an all-zero result
        with no allocations.
    """
    if not periods:
        return ProratedRawMaterialsResult()

    ordered = _chronological(periods)
    opening = ordered[0].opening_stock
    closing = ordered[-1].closing_stock
    purchases = sum(p.purchases for p in ordered)
    total = calculate_cogs(opening, purchases, closing).cogs
    if override_total is not None:
        total = float(override_total)

    revenue = sum(p.net_revenue for p in ordered)
    n = len(ordered)

    allocations = []
    for p in ordered:
        ratio = p.net_revenue / revenue if revenue != 0 else 1.0 / n
        allocations.append(
            PeriodAllocation(
                period_key=p.period_key,
                month=p.month,
                year=p.year,
                revenue_ratio=ratio,
                allocated_raw_materials=total * ratio,
            )
        )

    return ProratedRawMaterialsResult(
        fy_opening_stock=opening,
        fy_total_purchases=purchases,
        fy_closing_stock=closing,
        fy_total_raw_materials=total,
        fy_total_revenue=revenue,
        allocations=tuple(allocations),
    )


def group_by_fiscal_year(
    periods: Iterable[PeriodBalanceSummary], start_month: int = 4
) -> dict[str, list[PeriodBalanceSummary]]:
    groups: dict[str, list[PeriodBalanceSummary]] = {}
    for p in periods:
        label = fiscal_year_label(p.month, p.year, start_month)
        groups.setdefault(label, []).append(p)
    return groups


def calculate_prorated_raw_materials_by_fy(
    periods: Sequence[PeriodBalanceSummary],
    overrides: Optional[Mapping[str, float]] = None,
    start_month: int = 4,
) -> ProratedRawMaterialsResult:
    """Prorate each fiscal year independently and combine the results.

    Annual figures of the combined result are sums over the fiscal years;
    allocations are sorted chronologically.
    """
    overrides = overrides or {}
    groups = group_by_fiscal_year(periods, start_month)

    results: list[ProratedRawMaterialsResult] = []
    for label, fy_periods in groups.items():
        override = overrides.get(label)
        if override is not None:
            logger.info("Using COGS override %.2f for %s", override, label)
        results.append(calculate_prorated_raw_materials(fy_periods, override))

    allocations = sorted(
        (a for r in results for a in r.allocations), key=lambda a: (a.year, a.month)
    )
    return ProratedRawMaterialsResult(
        fy_opening_stock=sum(r.fy_opening_stock for r in results),
        fy_total_purchases=sum(r.fy_total_purchases for r in results),
        fy_closing_stock=sum(r.fy_closing_stock for r in results),
        fy_total_raw_materials=sum(r.fy_total_raw_materials for r in results),
        fy_total_revenue=sum(r.fy_total_revenue for r in results),
        allocations=tuple(allocations),
    )


def allocated_raw_materials_for(
    result: Optional[ProratedRawMaterialsResult], period_key: str
) -> float:
    """Allocated raw materials of one period, 0 when absent."""
    if result is None:
        return 0.0
    return result.allocation_for(period_key)
