# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for MIS Classifier.

Spreadsheet and PDF decoding happen upstream: this module reads registers
that have already been flattened to CSV, and saves / loads classification
sessions as JSON.

Expected input formats
----------------------
Column names are case-insensitive and surrounding spaces are ignored.

1) Journal register (``read_ledger_rows``)
       date, voucher_number, gst_type, account_name, debit, credit

   Aliases: ``vch no`` / ``voucher`` / ``vch/bill no`` for voucher_number,
   ``gst nature`` for gst_type, ``particulars`` / ``account`` / ``ledger``
   for account_name. Only account_name, debit and credit are required.
   Rows with an empty account name are dropped.

2) Sales register (``read_sales_rows``)
       date, voucher_number, party_name, amount, igst, cgst, sgst

   Aliases: ``particulars`` / ``party`` / ``customer`` for party_name,
   ``value`` / ``total`` for amount. party_name and amount are required.

3) Period summaries (``read_period_summaries``)
       period_key, month, year, opening_stock, purchases, closing_stock,
       net_revenue

   ``period_key`` may be omitted and is then derived as ``YYYY-MM``.

4) Balance sheet (``read_balance_sheet``)
       item, amount
   with items among opening_stock, closing_stock, purchases, net_sales,
   net_profit.

Amounts
-------
Amounts may contain thousands separators, spaces and parentheses, which are
stripped ("(1,200.50)" reads as 1200.50). Blank amounts read as 0. Any
other non-numeric value raises ValueError.
"""

import json
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Union

import pandas as pd

from .cogs import PeriodBalanceSummary
from .models import BalanceSheetData, LedgerRow, SalesRow, Transaction
from .session import ClassificationSession
from .views import transactions_to_frame

PathLike = Union[str, "os.PathLike[str]"]

LEDGER_ALIASES = {
    "voucher no": "voucher_number",
    "vch no": "voucher_number",
    "vch no.": "voucher_number",
    "vch/bill no": "voucher_number",
    "voucher": "voucher_number",
    "gst nature": "gst_type",
    "gst_nature": "gst_type",
    "particulars": "account_name",
    "account": "account_name",
    "ledger": "account_name",
}

SALES_ALIASES = {
    "voucher no": "voucher_number",
    "vch no": "voucher_number",
    "vch no.": "voucher_number",
    "vch/bill no": "voucher_number",
    "voucher": "voucher_number",
    "particulars": "party_name",
    "party": "party_name",
    "customer": "party_name",
    "value": "amount",
    "total": "amount",
}

BALANCE_SHEET_ITEMS = (
    "opening_stock",
    "closing_stock",
    "purchases",
    "net_sales",
    "net_profit",
)


def _read_csv(path: PathLike, aliases: Mapping[str, str]) -> pd.DataFrame:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Input file not found: {p}")

    df = pd.read_csv(p, dtype=str, keep_default_na=False)
    df.columns = [c.lower().strip() for c in df.columns]
    renames = {
        c: aliases[c]
        for c in df.columns
        if c in aliases and aliases[c] not in df.columns
    }
    return df.rename(columns=renames)


def _require(df: pd.DataFrame, required: set[str], what: str) -> None:
    missing = required - set(df.columns)
    if missing:
        raise ValueError(
            f"Invalid {what} structure: missing column(s) {sorted(missing)}. "
            f"Found: {list(df.columns)}"
        )


def parse_amount_column(values: pd.Series, column: str) -> pd.Series:
    """Clean and convert a text column of amounts to floats."""
    cleaned = (
        values.astype(str).str.replace(r"[,\s()]", "", regex=True).replace("", "0")
    )
    numbers = pd.to_numeric(cleaned, errors="coerce")
    if numbers.isna().any():
        bad = values[numbers.isna()].iloc[0]
        raise ValueError(f"Invalid numeric value {bad!r} in '{column}' column.")
    return numbers.astype(float)


def _text(df: pd.DataFrame, column: str) -> pd.Series:
    if column not in df.columns:
        return pd.Series([""] * len(df), index=df.index, dtype=str)
    return df[column].astype(str).str.strip()


def _amounts(df: pd.DataFrame, column: str) -> pd.Series:
    if column not in df.columns:
        return pd.Series([0.0] * len(df), index=df.index, dtype=float)
    return parse_amount_column(df[column], column)


def read_ledger_rows(path: PathLike) -> list[LedgerRow]:
    """Read a decoded journal register into LedgerRows (file order)."""
    df = _read_csv(path, LEDGER_ALIASES)
    _require(df, {"account_name", "debit", "credit"}, "journal register")

    accounts = _text(df, "account_name")
    frame = pd.DataFrame(
        {
            "account_name": accounts,
            "debit": _amounts(df, "debit"),
            "credit": _amounts(df, "credit"),
            "date": _text(df, "date"),
            "voucher_number": _text(df, "voucher_number"),
            "gst_type": _text(df, "gst_type"),
        }
    )
    frame = frame[frame["account_name"] != ""]

    return [
        LedgerRow(
            account_name=r.account_name,
            debit_amount=abs(float(r.debit)),
            credit_amount=abs(float(r.credit)),
            date=r.date,
            voucher_number=r.voucher_number,
            gst_type=r.gst_type,
        )
        for r in frame.itertuples(index=False)
    ]


def read_sales_rows(path: PathLike) -> list[SalesRow]:
    """Read a decoded sales register into SalesRows (file order)."""
    df = _read_csv(path, SALES_ALIASES)
    _require(df, {"party_name", "amount"}, "sales register")

    frame = pd.DataFrame(
        {
            "party_name": _text(df, "party_name"),
            "amount": _amounts(df, "amount"),
            "date": _text(df, "date"),
            "voucher_number": _text(df, "voucher_number"),
            "igst": _amounts(df, "igst"),
            "cgst": _amounts(df, "cgst"),
            "sgst": _amounts(df, "sgst"),
        }
    )
    return [
        SalesRow(
            party_name=r.party_name,
            amount=float(r.amount),
            date=r.date,
            voucher_number=r.voucher_number,
            igst=float(r.igst),
            cgst=float(r.cgst),
            sgst=float(r.sgst),
        )
        for r in frame.itertuples(index=False)
    ]


def read_period_summaries(path: PathLike) -> list[PeriodBalanceSummary]:
    """Read per-period stock / purchases / revenue figures."""
    df = _read_csv(path, {})
    _require(
        df,
        {"month", "year", "opening_stock", "purchases", "closing_stock", "net_revenue"},
        "period summaries",
    )

    months = pd.to_numeric(df["month"], errors="coerce")
    years = pd.to_numeric(df["year"], errors="coerce")
    if months.isna().any() or years.isna().any():
        raise ValueError("Invalid values in 'month'/'year' columns.")

    frame = pd.DataFrame(
        {
            "period_key": _text(df, "period_key"),
            "month": months.astype(int),
            "year": years.astype(int),
            "opening_stock": _amounts(df, "opening_stock"),
            "purchases": _amounts(df, "purchases"),
            "closing_stock": _amounts(df, "closing_stock"),
            "net_revenue": _amounts(df, "net_revenue"),
        }
    )

    out = []
    for i, r in enumerate(frame.itertuples(index=False)):
        month, year = int(r.month), int(r.year)
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month {month} on row {i + 1}.")
        out.append(
            PeriodBalanceSummary(
                period_key=r.period_key or f"{year:04d}-{month:02d}",
                month=month,
                year=year,
                opening_stock=float(r.opening_stock),
                purchases=float(r.purchases),
                closing_stock=float(r.closing_stock),
                net_revenue=float(r.net_revenue),
            )
        )
    return out


def read_balance_sheet(path: PathLike) -> BalanceSheetData:
    """Read a two-column (item, amount) balance-sheet extract."""
    df = _read_csv(path, {"value": "amount", "label": "item"})
    _require(df, {"item", "amount"}, "balance sheet")

    items = df["item"].astype(str).str.strip().str.lower().str.replace(" ", "_")
    amounts = parse_amount_column(df["amount"], "amount")
    values = {
        item: float(amount)
        for item, amount in zip(items, amounts)
        if item in BALANCE_SHEET_ITEMS
    }
    return BalanceSheetData(**values)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def write_transactions_csv(transactions: Iterable[Transaction], path: PathLike) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    transactions_to_frame(transactions).to_csv(p, index=False)
    return p


def save_session(session: ClassificationSession, path: PathLike) -> Path:
    """Write the session blob (transactions, taxonomy, rules) as JSON."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(
        json.dumps(session.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
    )
    return p


def load_session(path: PathLike) -> ClassificationSession:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Session file not found: {p}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid session file: {p}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Invalid session file {p}: expected a JSON object.")
    return ClassificationSession.from_dict(data)
