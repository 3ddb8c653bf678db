# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Core data model for MIS Classifier.

All records are frozen dataclasses: operations that "modify" a transaction
return a new instance (see ``dataclasses.replace``), which keeps undo
snapshots cheap and safe to share.

Types defined here:
- LedgerRow:      one decoded journal-register row.
- Voucher:        a group of LedgerRows forming one accounting voucher.
- Classification: a (head, subhead) pair proposed by a rule.
- Transaction:    the unit of classification work.
- SalesRow:       one decoded sales-register row.
- SalesLineItem:  a classified sales-register line.
- BalanceSheetData: optional figures used to reconcile the MIS report.
"""

import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .heads import Channel, Head


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class LedgerRow:
    """One row of a decoded journal register.

    Only the first row of a voucher normally carries ``date`` and
    ``voucher_number``; continuation rows leave them empty.
    """

    account_name: str
    debit_amount: float = 0.0
    credit_amount: float = 0.0
    date: str = ""
    voucher_number: str = ""
    gst_type: str = ""

    def __post_init__(self) -> None:
        if self.debit_amount < 0 or self.credit_amount < 0:
            raise ValueError(
                f"Ledger amounts must be non-negative (account {self.account_name!r})."
            )

    @property
    def has_date(self) -> bool:
        return bool(self.date.strip())


@dataclass(frozen=True)
class Voucher:
    """Ordered rows of one voucher.

    Every row carries the voucher's date and voucher number once grouped.
    """

    rows: tuple[LedgerRow, ...]

    @property
    def date(self) -> str:
        return self.rows[0].date if self.rows else ""

    @property
    def voucher_number(self) -> str:
        return self.rows[0].voucher_number if self.rows else ""

    @property
    def gst_type(self) -> str:
        return self.rows[0].gst_type if self.rows else ""


@dataclass(frozen=True)
class Classification:
    """A head/subhead pair produced by a pattern rule."""

    head: Head
    subhead: str
    pattern: str = ""


class TransactionStatus(str, Enum):
    UNCLASSIFIED = "unclassified"
    SUGGESTED = "suggested"
    CLASSIFIED = "classified"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Transaction:
    """A single posting to classify into the MIS head taxonomy.

    Invariants checked at construction:
    - at most one of ``debit`` / ``credit`` is non-zero, both are >= 0;
    - a CLASSIFIED or IGNORED transaction has both ``head`` and ``subhead``;
    - an IGNORED transaction sits under the Ignore head;
    - ``suggested_head`` / ``suggested_subhead`` are set together.
    """

    id: str
    date: str
    account: str
    debit: float = 0.0
    credit: float = 0.0
    vch_bill_no: str = ""
    gst_nature: str = ""
    notes: str = ""
    status: TransactionStatus = TransactionStatus.UNCLASSIFIED
    head: Optional[Head] = None
    subhead: Optional[str] = None
    suggested_head: Optional[Head] = None
    suggested_subhead: Optional[str] = None
    is_auto_ignored: bool = False
    state: Optional[str] = None

    def __post_init__(self) -> None:
        if self.debit < 0 or self.credit < 0:
            raise ValueError(f"Transaction {self.id}: amounts must be >= 0.")
        if self.debit > 0 and self.credit > 0:
            raise ValueError(
                f"Transaction {self.id}: debit and credit cannot both be non-zero."
            )
        if (self.suggested_head is None) != (self.suggested_subhead is None):
            raise ValueError(
                f"Transaction {self.id}: suggested head and subhead go together."
            )
        if self.status in (TransactionStatus.CLASSIFIED, TransactionStatus.IGNORED):
            if self.head is None or not self.subhead:
                raise ValueError(
                    f"Transaction {self.id}: status {self.status.value!r} "
                    "requires a head and subhead."
                )
        if self.status is TransactionStatus.IGNORED and self.head is not Head.IGNORE:
            raise ValueError(
                f"Transaction {self.id}: ignored transactions must use the "
                f"{Head.IGNORE.label!r} head."
            )

    @property
    def amount(self) -> float:
        """The non-zero side of the posting (debit wins when both are zero)."""
        return self.debit if self.debit > 0 else self.credit

    @property
    def is_classified(self) -> bool:
        return (
            self.status is TransactionStatus.CLASSIFIED
            and self.head is not None
            and bool(self.subhead)
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        for key in ("head", "suggested_head"):
            value = getattr(self, key)
            data[key] = value.label if value is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        def _head(value: Optional[str]) -> Optional[Head]:
            return Head.from_label(value) if value else None

        return cls(
            id=str(data.get("id") or new_id()),
            date=str(data.get("date") or ""),
            account=str(data.get("account") or ""),
            debit=float(data.get("debit") or 0.0),
            credit=float(data.get("credit") or 0.0),
            vch_bill_no=str(data.get("vch_bill_no") or ""),
            gst_nature=str(data.get("gst_nature") or ""),
            notes=str(data.get("notes") or ""),
            status=TransactionStatus(data.get("status") or "unclassified"),
            head=_head(data.get("head")),
            subhead=data.get("subhead") or None,
            suggested_head=_head(data.get("suggested_head")),
            suggested_subhead=data.get("suggested_subhead") or None,
            is_auto_ignored=bool(data.get("is_auto_ignored", False)),
            state=data.get("state") or None,
        )


@dataclass(frozen=True)
class SalesRow:
    """One decoded sales-register row."""

    party_name: str
    amount: float
    date: str = ""
    voucher_number: str = ""
    igst: float = 0.0
    cgst: float = 0.0
    sgst: float = 0.0


@dataclass(frozen=True)
class SalesLineItem:
    """A sales-register line after channel / return / transfer detection.

    ``amount`` is always stored as an absolute value. ``channel`` is a
    Channel for revenue and return lines, and the literal "Inter-Company"
    for stock transfers.
    """

    id: str
    date: str
    party_name: str
    amount: float
    channel: Union[Channel, str]
    is_return: bool = False
    is_inter_company: bool = False
    to_state: Optional[str] = None
    voucher_number: str = ""
    original_channel: Optional[Union[Channel, str]] = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Sales line {self.id}: amount must be stored as abs.")
        if self.is_return and self.is_inter_company:
            raise ValueError(
                f"Sales line {self.id}: a line cannot be both a return and an "
                "inter-company transfer."
            )


@dataclass(frozen=True)
class BalanceSheetData:
    """Balance-sheet figures used to reconcile the journal-based MIS."""

    opening_stock: float = 0.0
    closing_stock: float = 0.0
    purchases: float = 0.0
    net_sales: float = 0.0
    net_profit: float = 0.0

    @property
    def cogs(self) -> float:
        """Opening + purchases - closing, clamped at zero."""
        return max(0.0, self.opening_stock + self.purchases - self.closing_stock)
