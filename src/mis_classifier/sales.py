# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Sales register classification.

Each decoded sales-register row is classified, in priority order, as:

1) a return (negative amount): stored as a positive amount, channel taken
   from the party name;
2) an inter-company stock transfer: only when the register belongs to the
   transfer-origin state and the party name matches one of the sibling
   entity patterns; the destination state is inferred from keywords;
3) an ordinary sale: channel taken from the party name.

Channel detection (first match wins):
    Blinkit / Grofers -> Blinkit
    Amazon            -> Amazon
    Shiprocket        -> Website
    anything else     -> Offline/OEM

Net sales equal gross sales: returns and transfers are reported on their
own lines and are never subtracted here.
"""

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Optional, Union

from .heads import INTER_COMPANY_CHANNEL, INTER_COMPANY_SUBHEAD, Channel, Head
from .models import SalesLineItem, SalesRow, Transaction, TransactionStatus, new_id
from .patterns import compile_patterns

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_ORIGIN_STATE = "UP"

DEFAULT_INTER_COMPANY_PATTERNS: tuple[str, ...] = (
    r"heatronics\s*(medical)?\s*(devices)?.*"
    r"(maharashtra|telangana|karnataka|haryana|hyderabad|bangalore|mumbai|pune"
    r"|gurugram|gurgaon)",
)

DEFAULT_STATE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Maharashtra", ("maharashtra", "mumbai", "pune")),
    ("Telangana", ("telangana", "hyderabad")),
    ("Karnataka", ("karnataka", "bangalore", "bengaluru")),
    ("Haryana", ("haryana", "gurugram", "gurgaon")),
)

_CHANNEL_KEYWORDS: tuple[tuple[Channel, tuple[str, ...]], ...] = (
    (Channel.BLINKIT, ("blinkit", "grofers")),
    (Channel.AMAZON, ("amazon",)),
    (Channel.WEBSITE, ("shiprocket",)),
)


def same_state(a: Optional[str], b: Optional[str]) -> bool:
    """Compare state codes ignoring case and surrounding blanks."""
    return (a or "").strip().upper() == (b or "").strip().upper()


@dataclass(frozen=True)
class InterCompanyRules:
    """Allowlist used to detect stock transfers between sibling entities."""

    origin_state: str = DEFAULT_TRANSFER_ORIGIN_STATE
    entity_patterns: tuple[str, ...] = DEFAULT_INTER_COMPANY_PATTERNS
    state_keywords: tuple[tuple[str, tuple[str, ...]], ...] = DEFAULT_STATE_KEYWORDS

    compiled: tuple[re.Pattern, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        compiled = compile_patterns(
            self.entity_patterns, kind="inter-company pattern"
        )
        object.__setattr__(self, "compiled", compiled)

    def is_sibling_entity(self, party_name: str) -> bool:
        return any(p.search(party_name) for p in self.compiled)

    def destination_state(self, party_name: str) -> Optional[str]:
        lower = party_name.lower()
        for state, keywords in self.state_keywords:
            if any(k in lower for k in keywords):
                return state
        return None


DEFAULT_INTER_COMPANY_RULES = InterCompanyRules()


def categorize_channel(party_name: str) -> Channel:
    lower = (party_name or "").lower()
    for channel, keywords in _CHANNEL_KEYWORDS:
        if any(k in lower for k in keywords):
            return channel
    return Channel.OFFLINE_OEM


def classify_sales_line(
    row: SalesRow,
    source_state: str,
    rules: InterCompanyRules = DEFAULT_INTER_COMPANY_RULES,
    id_factory: Callable[[], str] = new_id,
) -> Optional[SalesLineItem]:
    """Classify one sales-register row.

    Returns None for rows with a zero amount or an empty party name.
    """
    party = (row.party_name or "").strip()
    if not party or row.amount == 0:
        return None

    if row.amount < 0:
        channel = categorize_channel(party)
        return SalesLineItem(
            id=id_factory(),
            date=row.date,
            party_name=party,
            amount=abs(row.amount),
            channel=channel,
            original_channel=channel,
            is_return=True,
            voucher_number=row.voucher_number,
        )

    from_origin = same_state(source_state, rules.origin_state)
    if from_origin and rules.is_sibling_entity(party):
        return SalesLineItem(
            id=id_factory(),
            date=row.date,
            party_name=party,
            amount=row.amount,
            channel=INTER_COMPANY_CHANNEL,
            original_channel=INTER_COMPANY_CHANNEL,
            is_inter_company=True,
            to_state=rules.destination_state(party),
            voucher_number=row.voucher_number,
        )

    channel = categorize_channel(party)
    return SalesLineItem(
        id=id_factory(),
        date=row.date,
        party_name=party,
        amount=row.amount,
        channel=channel,
        original_channel=channel,
        voucher_number=row.voucher_number,
    )


@dataclass(frozen=True)
class SalesRegisterSummary:
    """Totals of one state's sales register."""

    state: str
    gross_sales: float = 0.0
    returns: float = 0.0
    inter_company_transfers: float = 0.0
    total_taxes: float = 0.0
    item_count: int = 0
    sales_by_channel: dict[str, float] = field(default_factory=dict)
    returns_by_channel: dict[str, float] = field(default_factory=dict)
    inter_company_by_state: dict[str, float] = field(default_factory=dict)
    line_items: tuple[SalesLineItem, ...] = ()

    @property
    def net_sales(self) -> float:
        return self.gross_sales


def _channel_name(channel: Union[Channel, str]) -> str:
    return channel.value if isinstance(channel, Channel) else str(channel)


def summarize_line_items(
    state: str, items: Sequence[SalesLineItem], total_taxes: float = 0.0
) -> SalesRegisterSummary:
    """Recompute all register totals from classified line items."""
    gross = returns = transfers = 0.0
    by_channel: dict[str, float] = {}
    returns_by_channel: dict[str, float] = {}
    by_state: dict[str, float] = {}

    for item in items:
        if item.is_return:
            returns += item.amount
            name = _channel_name(item.channel)
            returns_by_channel[name] = returns_by_channel.get(name, 0.0) + item.amount
        elif item.is_inter_company:
            transfers += item.amount
            dest = item.to_state or "Unknown"
            by_state[dest] = by_state.get(dest, 0.0) + item.amount
        else:
            gross += item.amount
            name = _channel_name(item.channel)
            by_channel[name] = by_channel.get(name, 0.0) + item.amount

    return SalesRegisterSummary(
        state=state,
        gross_sales=gross,
        returns=returns,
        inter_company_transfers=transfers,
        total_taxes=total_taxes,
        item_count=len(items),
        sales_by_channel=by_channel,
        returns_by_channel=returns_by_channel,
        inter_company_by_state=by_state,
        line_items=tuple(items),
    )


def summarize_sales_register(
    rows: Iterable[SalesRow],
    source_state: str,
    rules: InterCompanyRules = DEFAULT_INTER_COMPANY_RULES,
    id_factory: Callable[[], str] = new_id,
) -> SalesRegisterSummary:
    """Classify every row of a sales register and total it.

    ``total_taxes`` sums the IGST / CGST / SGST columns of all kept rows.
    """
    items: list[SalesLineItem] = []
    taxes = 0.0
    dropped = 0
    for row in rows:
        item = classify_sales_line(row, source_state, rules, id_factory)
        if item is None:
            dropped += 1
            continue
        items.append(item)
        taxes += row.igst + row.cgst + row.sgst

    summary = summarize_line_items(source_state, items, total_taxes=taxes)
    logger.info(
        "Sales register %s: %d lines (%d dropped), gross %.2f, returns %.2f, "
        "transfers %.2f",
        source_state,
        summary.item_count,
        dropped,
        summary.gross_sales,
        summary.returns,
        summary.inter_company_transfers,
    )
    return summary


def reassign_channel(
    summary: SalesRegisterSummary, item_id: str, channel: Union[Channel, str]
) -> SalesRegisterSummary:
    """Return a new summary with one revenue/return line moved to ``channel``.

    Inter-company lines keep their pseudo-channel.

    Raises:
        ValueError: for an unknown item id, an unknown channel, or an
            inter-company line.
    """
    target = Channel.from_name(channel)
    items = list(summary.line_items)
    for idx, item in enumerate(items):
        if item.id != item_id:
            continue
        if item.is_inter_company:
            raise ValueError(f"Sales line {item_id} is an inter-company transfer.")
        items[idx] = replace(
            item,
            channel=target,
            original_channel=item.original_channel or item.channel,
        )
        return summarize_line_items(summary.state, items, summary.total_taxes)
    raise ValueError(f"Unknown sales line id: {item_id!r}")


def sales_line_to_transaction(
    item: SalesLineItem, state: Optional[str] = None
) -> Transaction:
    """Turn a classified sales line into a classified Transaction.

    - ordinary sale  -> credit under A. Revenue / <channel subhead>
    - return         -> debit under B. Returns / <channel returns subhead>
    - inter-company  -> debit under the Ignore head, "Inter-company"
    """
    base = dict(
        id=f"sales-{item.id}",
        date=item.date,
        account=item.party_name,
        vch_bill_no=item.voucher_number,
        state=state,
    )
    if item.is_inter_company:
        notes = f"Inter-company transfer to {item.to_state or 'Unknown'}"
        return Transaction(
            **base,
            debit=item.amount,
            notes=notes,
            status=TransactionStatus.IGNORED,
            head=Head.IGNORE,
            subhead=INTER_COMPANY_SUBHEAD,
        )

    channel = Channel.from_name(item.channel)
    if item.is_return:
        return Transaction(
            **base,
            debit=item.amount,
            notes=f"Return ({channel.value})",
            status=TransactionStatus.CLASSIFIED,
            head=Head.RETURNS,
            subhead=channel.returns_subhead,
        )
    return Transaction(
        **base,
        credit=item.amount,
        notes=f"Sale ({channel.value})",
        status=TransactionStatus.CLASSIFIED,
        head=Head.REVENUE,
        subhead=channel.revenue_subhead,
    )


def sales_summary_to_transactions(summary: SalesRegisterSummary) -> list[Transaction]:
    return [sales_line_to_transaction(i, summary.state) for i in summary.line_items]


def state_keywords_from_mapping(
    table: Mapping[str, Sequence[str]],
) -> tuple[tuple[str, tuple[str, ...]], ...]:
    """Normalise a ``{state: [keywords]}`` table (keeps insertion order)."""
    return tuple(
        (str(state), tuple(str(k).lower() for k in keywords))
        for state, keywords in table.items()
    )
