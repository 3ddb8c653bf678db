# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Classification session: the operations a reviewer applies to transactions.

A ``ClassificationSession`` owns:
- the current transactions, as an immutable tuple;
- the head taxonomy (ignore reasons are added to the Ignore head's
  subheads as they appear, so every ignored transaction stays inside its
  head's subhead list);
- user classification rules and ignore rules;
- a linear undo stack of previous (transactions, taxonomy) snapshots.

Every mutating operation pushes the current snapshot on the undo stack and
installs a new tuple (and, when subheads are added, a new taxonomy).
Unchanged Transaction objects are shared between snapshots, so a snapshot
costs one tuple of references.

Operations that receive an unknown transaction id, an unknown head or a
subhead outside the head's list raise ValueError before touching state.
"""

import logging
import re
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any, Optional, Union

from .engine import MISReport, generate_mis_report
from .heads import DEFAULT_TAXONOMY, Head, Taxonomy
from .models import BalanceSheetData, Transaction, TransactionStatus
from .patterns import (
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_PATTERNS,
    IgnoreFilter,
    IgnoreRule,
    PatternMatcher,
    PatternRule,
)

logger = logging.getLogger(__name__)

MANUAL_IGNORE_REASON = "Manually Ignored"

HeadLike = Union[Head, str]


@dataclass(frozen=True)
class ClassificationStats:
    total: int
    classified: int
    suggested: int
    unclassified: int
    ignored: int
    by_head: dict[str, int]

    @property
    def to_classify(self) -> int:
        """Transactions that still count towards progress (not ignored)."""
        return self.total - self.ignored

    @property
    def progress(self) -> int:
        """Classified share of non-ignored transactions, in whole percent."""
        if self.to_classify == 0:
            return 0
        return round(self.classified / self.to_classify * 100)


class ClassificationSession:
    """Transactions under review, with rule-based suggestions and undo."""

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        taxonomy: Taxonomy = DEFAULT_TAXONOMY,
        user_patterns: Sequence[PatternRule] = (),
        ignore_rules: Sequence[IgnoreRule] = DEFAULT_IGNORE_PATTERNS,
        default_patterns: Sequence[PatternRule] = DEFAULT_PATTERNS,
    ):
        self._transactions: tuple[Transaction, ...] = tuple(transactions)
        self._taxonomy = taxonomy
        self._user_patterns: list[PatternRule] = list(user_patterns)
        self._ignore_rules: list[IgnoreRule] = list(ignore_rules)
        self._default_patterns: tuple[PatternRule, ...] = tuple(default_patterns)
        self._undo: list[tuple[tuple[Transaction, ...], Taxonomy]] = []
        self._matcher: Optional[PatternMatcher] = None
        self._ignore_filter: Optional[IgnoreFilter] = None
        for txn in self._transactions:
            self._register_subhead(txn)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._transactions

    @property
    def taxonomy(self) -> Taxonomy:
        return self._taxonomy

    @property
    def user_patterns(self) -> tuple[PatternRule, ...]:
        return tuple(self._user_patterns)

    @property
    def ignore_rules(self) -> tuple[IgnoreRule, ...]:
        return tuple(self._ignore_rules)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    def get(self, txn_id: str) -> Transaction:
        for txn in self._transactions:
            if txn.id == txn_id:
                return txn
        raise ValueError(f"Unknown transaction id: {txn_id!r}")

    def _matcher_or_build(self) -> PatternMatcher:
        if self._matcher is None:
            self._matcher = PatternMatcher(self._user_patterns, self._default_patterns)
        return self._matcher

    def _ignore_filter_or_build(self) -> IgnoreFilter:
        if self._ignore_filter is None:
            self._ignore_filter = IgnoreFilter(self._ignore_rules)
        return self._ignore_filter

    @staticmethod
    def _with_subhead(taxonomy: Taxonomy, txn: Transaction) -> Taxonomy:
        if txn.head is not None and txn.subhead:
            return taxonomy.add_subhead(txn.head, txn.subhead)
        return taxonomy

    def _register_subhead(self, txn: Transaction) -> None:
        self._taxonomy = self._with_subhead(self._taxonomy, txn)

    def _commit(
        self,
        new: tuple[Transaction, ...],
        action: str,
        taxonomy: Optional[Taxonomy] = None,
        push_undo: bool = True,
    ) -> None:
        if push_undo:
            self._undo.append((self._transactions, self._taxonomy))
        self._transactions = new
        if taxonomy is not None:
            self._taxonomy = taxonomy
        logger.debug("%s (undo depth %d)", action, len(self._undo))

    def _map(
        self, ids: Iterable[str], fn: Callable[[Transaction], Transaction]
    ) -> tuple[Transaction, ...]:
        wanted = set(ids)
        known = {t.id for t in self._transactions}
        missing = wanted - known
        if missing:
            raise ValueError(f"Unknown transaction id(s): {sorted(missing)}")
        return tuple(fn(t) if t.id in wanted else t for t in self._transactions)

    # ------------------------------------------------------------------
    # Suggestion logic
    # ------------------------------------------------------------------

    def _auto_classify(self, txn: Transaction) -> Transaction:
        """Apply the ignore filter, then the pattern matcher, to one txn."""
        decision = self._ignore_filter_or_build().check(txn.account)
        if decision.should_ignore:
            return replace(
                txn,
                status=TransactionStatus.IGNORED,
                head=Head.IGNORE,
                subhead=decision.reason,
                suggested_head=None,
                suggested_subhead=None,
                is_auto_ignored=True,
            )

        suggestion = self._matcher_or_build().match(txn.account)
        if suggestion is not None:
            return replace(
                txn,
                status=TransactionStatus.SUGGESTED,
                head=None,
                subhead=None,
                suggested_head=suggestion.head,
                suggested_subhead=suggestion.subhead,
                is_auto_ignored=False,
            )
        return replace(
            txn,
            status=TransactionStatus.UNCLASSIFIED,
            head=None,
            subhead=None,
            suggested_head=None,
            suggested_subhead=None,
            is_auto_ignored=False,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def import_transactions(self, transactions: Iterable[Transaction]) -> None:
        """Replace the session's transactions and reset the undo stack.

        Already classified or ignored transactions are kept as they are;
        the others go through the ignore filter, then the pattern matcher.
        """
        out = []
        for txn in transactions:
            if txn.status not in (
                TransactionStatus.CLASSIFIED,
                TransactionStatus.IGNORED,
            ):
                txn = self._auto_classify(txn)
            self._register_subhead(txn)
            out.append(txn)
        self._undo.clear()
        self._commit(tuple(out), f"Imported {len(out)} transactions", push_undo=False)

    def _resolve(self, head: HeadLike, subhead: str) -> Head:
        h = Head.coerce(head)
        if h is Head.IGNORE:
            return h
        return self._taxonomy.validate(h, subhead)

    @staticmethod
    def _assign(txn: Transaction, head: Head, subhead: str) -> Transaction:
        status = (
            TransactionStatus.IGNORED
            if head is Head.IGNORE
            else TransactionStatus.CLASSIFIED
        )
        return replace(
            txn,
            status=status,
            head=head,
            subhead=subhead,
            suggested_head=None,
            suggested_subhead=None,
            is_auto_ignored=False,
        )

    def classify(self, txn_id: str, head: HeadLike, subhead: str) -> None:
        self.classify_multiple([txn_id], head, subhead)

    def classify_multiple(
        self, txn_ids: Sequence[str], head: HeadLike, subhead: str
    ) -> None:
        h = self._resolve(head, subhead)
        new = self._map(txn_ids, lambda t: self._assign(t, h, subhead))
        self._commit(
            new,
            f"Classified {len(txn_ids)} transaction(s) as {h.label}/{subhead}",
            self._taxonomy.add_subhead(h, subhead),
        )

    def apply_suggestion(self, txn_id: str) -> bool:
        """Accept the pending suggestion of one transaction.

        Returns False (and leaves the undo stack alone) when the
        transaction has no suggestion.
        """
        txn = self.get(txn_id)
        if txn.suggested_head is None or txn.suggested_subhead is None:
            return False
        head, subhead = txn.suggested_head, txn.suggested_subhead
        new = self._map([txn_id], lambda t: self._assign(t, head, subhead))
        self._commit(
            new,
            f"Applied suggestion to {txn_id}",
            self._taxonomy.add_subhead(head, subhead),
        )
        return True

    def apply_all_suggestions(self) -> int:
        """Accept every pending suggestion in one undoable step."""
        ids = [
            t.id for t in self._transactions if t.status is TransactionStatus.SUGGESTED
        ]
        if not ids:
            return 0
        new = self._map(
            ids, lambda t: self._assign(t, t.suggested_head, t.suggested_subhead)
        )
        taxonomy = self._taxonomy
        for txn in self._transactions:
            if txn.status is TransactionStatus.SUGGESTED:
                taxonomy = taxonomy.add_subhead(
                    txn.suggested_head, txn.suggested_subhead
                )
        self._commit(new, f"Applied {len(ids)} suggestions", taxonomy)
        return len(ids)

    def apply_to_similar(self, pattern: str, head: HeadLike, subhead: str) -> int:
        """Classify every transaction whose account matches ``pattern``.

        The pattern is appended to the user rules so that later imports
        pick it up. Returns the number of transactions changed.

        Raises:
            ValueError: for an invalid regular expression (no state change).
        """
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as exc:
            raise ValueError(f"Invalid pattern {pattern!r}: {exc}") from exc
        h = self._resolve(head, subhead)

        ids = [t.id for t in self._transactions if regex.search(t.account)]
        new = self._map(ids, lambda t: self._assign(t, h, subhead))
        self._commit(
            new,
            f"Applied {pattern!r} to {len(ids)} transaction(s)",
            self._taxonomy.add_subhead(h, subhead),
        )

        self.add_user_pattern(PatternRule(pattern=pattern, head=h, subhead=subhead))
        return len(ids)

    def ignore(self, txn_id: str, reason: str = MANUAL_IGNORE_REASON) -> None:
        self.ignore_multiple([txn_id], reason)

    def ignore_multiple(
        self, txn_ids: Sequence[str], reason: str = MANUAL_IGNORE_REASON
    ) -> None:
        if not reason or not reason.strip():
            raise ValueError("Ignore reason cannot be empty.")
        reason = reason.strip()
        new = self._map(txn_ids, lambda t: self._assign(t, Head.IGNORE, reason))
        self._commit(
            new,
            f"Ignored {len(txn_ids)} transaction(s): {reason}",
            self._taxonomy.add_subhead(Head.IGNORE, reason),
        )

    def clear_classification(self, txn_id: str) -> None:
        """Drop the classification of one transaction and recompute it."""
        new = self._map([txn_id], self._auto_classify)
        taxonomy = self._taxonomy
        for txn in new:
            if txn.id == txn_id:
                taxonomy = self._with_subhead(taxonomy, txn)
        self._commit(new, f"Cleared classification of {txn_id}", taxonomy)

    def undo(self) -> bool:
        """Restore the previous transactions and taxonomy.

        Returns False when there is nothing to undo. User rules added by
        ``apply_to_similar`` are kept.
        """
        if not self._undo:
            return False
        self._transactions, self._taxonomy = self._undo.pop()
        logger.debug("Undo (undo depth %d)", len(self._undo))
        return True

    def add_subhead(self, head: HeadLike, subhead: str) -> None:
        self._taxonomy = self._taxonomy.add_subhead(head, subhead)

    def add_user_pattern(self, rule: PatternRule) -> None:
        self._user_patterns.append(rule)
        self._matcher = None

    def add_ignore_rule(self, rule: IgnoreRule) -> None:
        self._ignore_rules.append(rule)
        self._ignore_filter = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def statistics(self) -> ClassificationStats:
        status = Counter(t.status for t in self._transactions)
        by_head = Counter(
            t.head.label for t in self._transactions if t.head is not None
        )
        return ClassificationStats(
            total=len(self._transactions),
            classified=status[TransactionStatus.CLASSIFIED],
            suggested=status[TransactionStatus.SUGGESTED],
            unclassified=status[TransactionStatus.UNCLASSIFIED],
            ignored=status[TransactionStatus.IGNORED],
            by_head={h.label: by_head[h.label] for h in Head if by_head[h.label]},
        )

    def filter(
        self,
        search: str = "",
        head: Optional[HeadLike] = None,
        subhead: Optional[str] = None,
        status: Optional[Union[TransactionStatus, str]] = None,
        kind: str = "all",
        show_ignored: bool = True,
    ) -> list[Transaction]:
        """Transactions matching all the given criteria.

        ``search`` is a case-insensitive substring of account, notes,
        voucher/bill number or date. ``kind`` is "all", "debit" or "credit".
        """
        h = Head.coerce(head) if head else None
        st = TransactionStatus(status) if status else None
        needle = search.lower()

        out = []
        for t in self._transactions:
            if not show_ignored and t.status is TransactionStatus.IGNORED:
                continue
            if needle and not any(
                needle in value.lower()
                for value in (t.account, t.notes, t.vch_bill_no, t.date)
            ):
                continue
            if st is not None and t.status is not st:
                continue
            if h is not None and t.head is not h:
                continue
            if subhead and t.subhead != subhead:
                continue
            if kind == "debit" and t.debit == 0:
                continue
            if kind == "credit" and t.credit == 0:
                continue
            out.append(t)
        return out

    def report(
        self,
        balance_sheet: Optional[BalanceSheetData] = None,
        purchase_register_total: Optional[float] = None,
        allocated_raw_materials: Optional[float] = None,
    ) -> MISReport:
        return generate_mis_report(
            self._transactions,
            self._taxonomy,
            balance_sheet=balance_sheet,
            purchase_register_total=purchase_register_total,
            allocated_raw_materials=allocated_raw_materials,
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible blob of transactions, taxonomy and rules.

        The undo stack is not part of the blob.
        """
        return {
            "transactions": [t.to_dict() for t in self._transactions],
            "taxonomy": self._taxonomy.to_dict(),
            "user_patterns": [
                {"pattern": r.pattern, "head": r.head.label, "subhead": r.subhead}
                for r in self._user_patterns
            ],
            "ignore_rules": [
                {"pattern": r.pattern, "reason": r.reason} for r in self._ignore_rules
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClassificationSession":
        taxonomy_raw = data.get("taxonomy")
        taxonomy = DEFAULT_TAXONOMY
        if taxonomy_raw:
            taxonomy = Taxonomy.from_dict(taxonomy_raw)
        user_patterns = [
            PatternRule(
                pattern=str(r["pattern"]),
                head=Head.from_label(r["head"]),
                subhead=str(r["subhead"]),
            )
            for r in data.get("user_patterns") or []
        ]
        if "ignore_rules" in data:
            ignore_rules = [
                IgnoreRule(pattern=str(r["pattern"]), reason=str(r["reason"]))
                for r in data.get("ignore_rules") or []
            ]
        else:
            ignore_rules = list(DEFAULT_IGNORE_PATTERNS)
        transactions = [
            Transaction.from_dict(t) for t in data.get("transactions") or []
        ]
        return cls(
            transactions=transactions,
            taxonomy=taxonomy,
            user_patterns=user_patterns,
            ignore_rules=ignore_rules,
        )
