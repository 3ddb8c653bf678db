# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Journal register processing: voucher grouping and voucher classification.

A decoded journal register is a flat list of LedgerRows in which only the
first row of each voucher carries the date (and usually the voucher
number). Processing happens in three steps:

1) ``group_into_vouchers``: split the row stream at every dated row and
   forward-fill date / voucher number inside each chunk (two explicit
   passes, no running cursor);
2) ``classify_voucher``: turn one voucher into zero or more JournalEntry
   objects (one per qualifying debit line), classified against both the
   expense account and the resolved credit party;
3) ``parse_journal_register``: run 1) and 2) over a whole register and
   group entries by month, with summary counters.

Vouchers whose first row is a credit are receipts / settlements rather
than expense vouchers and are skipped. This is a convention of the
exporting accounting software, so it can be switched off with
``skip_credit_first=False``.
"""

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Optional

from .heads import Head
from .models import (
    Classification,
    LedgerRow,
    Transaction,
    TransactionStatus,
    Voucher,
    new_id,
)
from .patterns import DEFAULT_PATTERNS, PatternMatcher, compile_patterns
from .periods import month_key_from_date, sort_month_keys

logger = logging.getLogger(__name__)

ClassifyFn = Callable[[str, str], Optional[Classification]]

# Balance-sheet mechanics that never count as expenses.
DEFAULT_SKIP_ACCOUNT_PATTERNS: tuple[str, ...] = (
    r"\b(cgst|sgst|igst)\s*(input|output)?\b",
    r"^tds\s*\(",
    r"rounded\s*off",
)


@dataclass(frozen=True)
class JournalEntry:
    """One expense line extracted from a journal voucher."""

    date: str
    voucher_number: str
    expense_account: str
    expense_amount: float
    party: str
    party_name: str
    gst_type: str = ""
    classification: Optional[Classification] = None
    original_rows: tuple[LedgerRow, ...] = ()

    @property
    def month_key(self) -> str:
        return month_key_from_date(self.date)


@dataclass(frozen=True)
class JournalParseResult:
    entries_by_month: dict[str, list[JournalEntry]] = field(default_factory=dict)
    total_vouchers: int = 0
    total_expenses: int = 0
    skipped_vouchers: int = 0

    @property
    def entries(self) -> list[JournalEntry]:
        """All entries, months in chronological order."""
        out: list[JournalEntry] = []
        for key in sort_month_keys(self.entries_by_month):
            out.extend(self.entries_by_month[key])
        return out


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def split_points(rows: Sequence[LedgerRow]) -> list[int]:
    """Return the start index of each voucher chunk.

    Every dated row starts a chunk. When the stream does not begin with a
    dated row, index 0 starts a leading chunk with an empty date.
    """
    points = [i for i, row in enumerate(rows) if row.has_date]
    if rows and (not points or points[0] != 0):
        points.insert(0, 0)
    return points


def _fill_chunk(chunk: Sequence[LedgerRow]) -> Voucher:
    date = chunk[0].date.strip()
    last_voucher = chunk[0].voucher_number.strip()
    filled: list[LedgerRow] = []
    for row in chunk:
        if row.voucher_number.strip():
            last_voucher = row.voucher_number.strip()
        filled.append(replace(row, date=date, voucher_number=last_voucher))
    return Voucher(rows=tuple(filled))


def group_into_vouchers(rows: Iterable[LedgerRow]) -> list[Voucher]:
    """Group a flat row stream into vouchers, preserving input order.

    Rows with an empty account name are dropped before grouping. Input rows
    are never mutated: forward-filled rows are new instances.
    """
    kept = [r for r in rows if r.account_name and r.account_name.strip()]

    # 1) split
    points = split_points(kept)
    bounds = zip(points, points[1:] + [len(kept)])

    # 2) forward-fill per chunk
    return [_fill_chunk(kept[start:end]) for start, end in bounds]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def compile_skip_patterns(patterns: Iterable[str]) -> tuple[re.Pattern, ...]:
    return compile_patterns(patterns, kind="skip-account pattern")


_DEFAULT_SKIP = compile_skip_patterns(DEFAULT_SKIP_ACCOUNT_PATTERNS)


def should_skip_account(
    account_name: str, skip_patterns: Sequence[re.Pattern] = _DEFAULT_SKIP
) -> bool:
    """True for GST / TDS / round-off ledgers and blank account names."""
    name = (account_name or "").strip()
    if not name:
        return True
    return any(p.search(name) for p in skip_patterns)


def should_skip_voucher(voucher: Voucher) -> bool:
    """True when the voucher's first row is a credit (receipt / settlement)."""
    return bool(voucher.rows) and voucher.rows[0].credit_amount > 0


def classify_voucher(
    voucher: Voucher,
    classify: Optional[ClassifyFn] = None,
    *,
    skip_patterns: Sequence[re.Pattern] = _DEFAULT_SKIP,
    skip_credit_first: bool = True,
) -> list[JournalEntry]:
    """Extract and classify the expense lines of one voucher.

    Args:
        voucher: Grouped voucher.
        classify: Callable ``(expense_account, party) -> Classification|None``.
            Defaults to the built-in rule set.
        skip_patterns: Compiled account patterns removed before extraction.
        skip_credit_first: Discard vouchers whose first row is a credit.

    Returns:
        One JournalEntry per remaining debit line, in voucher order.
    """
    if classify is None:
        classify = _default_matcher().classify

    # 1) skip test on the raw first row
    if skip_credit_first and should_skip_voucher(voucher):
        return []

    # 2) account filtering
    rows = [
        r
        for r in voucher.rows
        if not should_skip_account(r.account_name, skip_patterns)
    ]

    # 3) expense lines / 4) party
    expenses = [r for r in rows if r.debit_amount > 0]
    party = next((r.account_name.strip() for r in rows if r.credit_amount > 0), "")

    # 5) entries
    entries: list[JournalEntry] = []
    for row in expenses:
        account = row.account_name.strip()
        entries.append(
            JournalEntry(
                date=voucher.date,
                voucher_number=voucher.voucher_number,
                expense_account=account,
                expense_amount=row.debit_amount,
                party=party,
                party_name=f"{account} - {party}" if party else account,
                gst_type=voucher.gst_type,
                classification=classify(account, party),
                original_rows=voucher.rows,
            )
        )
    return entries


_MATCHER: Optional[PatternMatcher] = None


def _default_matcher() -> PatternMatcher:
    global _MATCHER
    if _MATCHER is None:
        _MATCHER = PatternMatcher(default_rules=DEFAULT_PATTERNS)
    return _MATCHER


def parse_journal_register(
    rows: Iterable[LedgerRow],
    classify: Optional[ClassifyFn] = None,
    *,
    skip_account_patterns: Optional[Iterable[str]] = None,
    skip_credit_first: bool = True,
) -> JournalParseResult:
    """Group, classify and bucket a whole journal register by month.

    A voucher that yields no expense line (skipped by the credit-first
    test, or made only of credits / filtered accounts) is counted in
    ``skipped_vouchers``.
    """
    skip = (
        _DEFAULT_SKIP
        if skip_account_patterns is None
        else compile_skip_patterns(skip_account_patterns)
    )
    vouchers = group_into_vouchers(rows)

    by_month: dict[str, list[JournalEntry]] = {}
    total_expenses = 0
    skipped = 0
    for voucher in vouchers:
        entries = classify_voucher(
            voucher, classify, skip_patterns=skip, skip_credit_first=skip_credit_first
        )
        if not entries:
            skipped += 1
            logger.debug(
                "Skipped voucher %r dated %r (%d rows)",
                voucher.voucher_number,
                voucher.date,
                len(voucher.rows),
            )
            continue
        for entry in entries:
            by_month.setdefault(entry.month_key, []).append(entry)
        total_expenses += len(entries)

    logger.info(
        "Journal register: %d vouchers, %d expense entries, %d skipped",
        len(vouchers),
        total_expenses,
        skipped,
    )
    return JournalParseResult(
        entries_by_month=by_month,
        total_vouchers=len(vouchers),
        total_expenses=total_expenses,
        skipped_vouchers=skipped,
    )


def journal_entries_to_transactions(
    entries: Iterable[JournalEntry],
    *,
    state: Optional[str] = None,
    id_factory: Callable[[], str] = new_id,
) -> list[Transaction]:
    """Convert journal entries into debit Transactions.

    Entries matched by a rule become CLASSIFIED (or IGNORED for the Ignore
    head, with the rule's subhead as reason); the others stay UNCLASSIFIED.
    """
    out: list[Transaction] = []
    for entry in entries:
        cls = entry.classification
        status = TransactionStatus.UNCLASSIFIED
        head = subhead = None
        if cls is not None:
            head, subhead = cls.head, cls.subhead
            status = (
                TransactionStatus.IGNORED
                if head is Head.IGNORE
                else TransactionStatus.CLASSIFIED
            )
        out.append(
            Transaction(
                id=id_factory(),
                date=entry.date,
                account=entry.party_name,
                debit=entry.expense_amount,
                vch_bill_no=entry.voucher_number,
                gst_nature=entry.gst_type,
                notes=entry.expense_account,
                status=status,
                head=head,
                subhead=subhead,
                state=state,
            )
        )
    return out
