# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Head taxonomy for MIS Classifier.

The MIS chart is a fixed, ordered list of "heads" (top-level categories such
as Revenue, COGM or Operating Expenses), each carrying a list of subheads.
The order of the heads drives both display and the sequence of P&L tiers
computed by the engine.

This module exposes:
- Head:        closed enumeration of the heads, in display/tier order.
- HeadType:    accounting nature of a head (revenue, debit, calculated,
               exclude, ignore).
- HeadConfig:  subheads + type of one head.
- Taxonomy:    immutable ordered mapping Head -> HeadConfig, with lookup and
               validation helpers.
- Channel:     sales channels and the revenue / returns subheads they feed.

Heads are identified by enum members rather than free-form strings, so a
typo in a head name fails loudly (``Head.from_label``) instead of silently
creating an unmatched bucket. The display label (e.g. "E. COGM") remains
the serialized form.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class HeadType(str, Enum):
    """Accounting nature of a head."""

    REVENUE = "revenue"
    DEBIT = "debit"
    CALCULATED = "calculated"
    EXCLUDE = "exclude"
    IGNORE = "ignore"


class Head(Enum):
    """MIS heads, declared in display and P&L tier order."""

    REVENUE = "A. Revenue"
    RETURNS = "B. Returns"
    DISCOUNTS = "C. Discounts"
    TAXES = "D. Taxes (GST)"
    COGM = "E. COGM"
    CHANNEL_FULFILLMENT = "F. Channel & Fulfillment"
    SALES_MARKETING = "G. Sales & Marketing"
    PLATFORM_COSTS = "H. Platform Costs"
    OPERATING_EXPENSES = "I. Operating Expenses"
    NON_OPERATING = "J. Non-Operating"
    EXCLUDE = "X. Exclude (Personal)"
    IGNORE = "Z. Ignore (Non-P&L)"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def from_label(cls, label: str) -> "Head":
        """Resolve a head from its display label (e.g. 'E. COGM').

        Matching is exact after stripping surrounding whitespace.

        Raises:
            ValueError: if the label does not name a known head.
        """
        text = str(label).strip()
        for head in cls:
            if head.value == text:
                return head
        raise ValueError(f"Unknown MIS head: {label!r}")

    @classmethod
    def coerce(cls, value: Union["Head", str]) -> "Head":
        """Accept either a Head member or its display label."""
        if isinstance(value, cls):
            return value
        return cls.from_label(value)


@dataclass(frozen=True)
class HeadConfig:
    """Configuration of one head: its ordered subheads and accounting type."""

    subheads: tuple[str, ...]
    type: HeadType


class Taxonomy:
    """Immutable, ordered mapping from Head to HeadConfig.

    Iteration always follows the Head enumeration order, whatever the order
    in which the configuration was supplied. Heads missing from the supplied
    mapping get an empty subhead list and their default type.
    """

    def __init__(self, configs: Mapping[Head, HeadConfig]):
        ordered: dict[Head, HeadConfig] = {}
        for head in Head:
            cfg = configs.get(head)
            if cfg is None:
                cfg = HeadConfig(subheads=(), type=_DEFAULT_TYPES[head])
            ordered[head] = cfg
        self._configs = ordered

    def __iter__(self) -> Iterator[Head]:
        return iter(self._configs)

    def __getitem__(self, head: Head) -> HeadConfig:
        return self._configs[head]

    def __len__(self) -> int:
        return len(self._configs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Taxonomy):
            return NotImplemented
        return self._configs == other._configs

    def __repr__(self) -> str:
        return f"Taxonomy({len(self._configs)} heads)"

    def items(self):
        return self._configs.items()

    def subheads_for(self, head: Union[Head, str]) -> tuple[str, ...]:
        return self._configs[Head.coerce(head)].subheads

    def type_of(self, head: Union[Head, str]) -> HeadType:
        return self._configs[Head.coerce(head)].type

    def has_subhead(self, head: Union[Head, str], subhead: str) -> bool:
        return subhead in self.subheads_for(head)

    def validate(self, head: Union[Head, str], subhead: str) -> Head:
        """Check that ``subhead`` belongs to ``head`` and return the Head.

        Raises:
            ValueError: if the head is unknown or the subhead is not part of
                its configured list.
        """
        h = Head.coerce(head)
        if not self.has_subhead(h, subhead):
            raise ValueError(
                f"Subhead {subhead!r} is not configured under head {h.label!r}."
            )
        return h

    def add_subhead(self, head: Union[Head, str], subhead: str) -> "Taxonomy":
        """Return a new Taxonomy with ``subhead`` appended under ``head``.

        Adding an existing subhead returns an equal taxonomy unchanged.
        """
        h = Head.coerce(head)
        name = str(subhead).strip()
        if not name:
            raise ValueError("Subhead name cannot be empty.")
        cfg = self._configs[h]
        if name in cfg.subheads:
            return self
        configs = dict(self._configs)
        configs[h] = HeadConfig(subheads=cfg.subheads + (name,), type=cfg.type)
        return Taxonomy(configs)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Serialize to a JSON-compatible dict keyed by head label."""
        return {
            head.label: {"subheads": list(cfg.subheads), "type": cfg.type.value}
            for head, cfg in self._configs.items()
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> "Taxonomy":
        """Build a Taxonomy from the structure produced by ``to_dict``."""
        configs: dict[Head, HeadConfig] = {}
        for label, raw in data.items():
            head = Head.from_label(label)
            subheads = tuple(str(s) for s in raw.get("subheads", []))
            raw_type = raw.get("type") or _DEFAULT_TYPES[head].value
            configs[head] = HeadConfig(subheads=subheads, type=HeadType(raw_type))
        return cls(configs)


_DEFAULT_TYPES: dict[Head, HeadType] = {
    Head.REVENUE: HeadType.REVENUE,
    Head.RETURNS: HeadType.DEBIT,
    Head.DISCOUNTS: HeadType.DEBIT,
    Head.TAXES: HeadType.CALCULATED,
    Head.COGM: HeadType.DEBIT,
    Head.CHANNEL_FULFILLMENT: HeadType.DEBIT,
    Head.SALES_MARKETING: HeadType.DEBIT,
    Head.PLATFORM_COSTS: HeadType.DEBIT,
    Head.OPERATING_EXPENSES: HeadType.DEBIT,
    Head.NON_OPERATING: HeadType.DEBIT,
    Head.EXCLUDE: HeadType.EXCLUDE,
    Head.IGNORE: HeadType.IGNORE,
}


RAW_MATERIALS_SUBHEAD = "Raw Materials & Inventory"
INTER_COMPANY_SUBHEAD = "Inter-company"

DEFAULT_TAXONOMY = Taxonomy(
    {
        Head.REVENUE: HeadConfig(
            ("Website/D2C", "Amazon", "Blinkit", "Offline/OEM"), HeadType.REVENUE
        ),
        Head.RETURNS: HeadConfig(
            ("Website Returns", "Amazon Returns", "Blinkit Returns", "Offline Returns"),
            HeadType.DEBIT,
        ),
        Head.DISCOUNTS: HeadConfig(
            ("Channel Discounts", "Promotional Discounts"), HeadType.DEBIT
        ),
        Head.TAXES: HeadConfig(("CGST", "SGST", "IGST"), HeadType.CALCULATED),
        Head.COGM: HeadConfig(
            (
                RAW_MATERIALS_SUBHEAD,
                "Manufacturing Wages",
                "Contract/Job Work",
                "Inbound Transport",
                "Factory Rent",
                "Factory Electricity",
                "Factory Maintenance",
            ),
            HeadType.DEBIT,
        ),
        Head.CHANNEL_FULFILLMENT: HeadConfig(
            ("Amazon Fees", "Blinkit Fees", "D2C Fees (Shiprocket/PG)"), HeadType.DEBIT
        ),
        Head.SALES_MARKETING: HeadConfig(
            ("Facebook Ads", "Google Ads", "Amazon Ads", "Blinkit Ads", "Agency Fees"),
            HeadType.DEBIT,
        ),
        Head.PLATFORM_COSTS: HeadConfig(
            ("Shopify", "Wati", "Shopflo", "Other SaaS"), HeadType.DEBIT
        ),
        Head.OPERATING_EXPENSES: HeadConfig(
            (
                "Salaries (Admin)",
                "Miscellaneous",
                "Legal & CA",
                "Platform/Software Costs",
                "Admin Expenses",
            ),
            HeadType.DEBIT,
        ),
        Head.NON_OPERATING: HeadConfig(
            ("Interest", "Depreciation", "Taxes"), HeadType.DEBIT
        ),
        Head.EXCLUDE: HeadConfig(
            ("Personal Expenses", "Owner Withdrawals"), HeadType.EXCLUDE
        ),
        Head.IGNORE: HeadConfig(
            ("GST Input/Output", "TDS", "Bank Transfers", INTER_COMPANY_SUBHEAD),
            HeadType.IGNORE,
        ),
    }
)


# ---------------------------------------------------------------------------
# Sales channels
# ---------------------------------------------------------------------------


class Channel(Enum):
    """Sales channels recognised on sales-register lines."""

    BLINKIT = "Blinkit"
    AMAZON = "Amazon"
    WEBSITE = "Website"
    OFFLINE_OEM = "Offline/OEM"

    @property
    def revenue_subhead(self) -> str:
        return _REVENUE_SUBHEADS[self]

    @property
    def returns_subhead(self) -> str:
        return _RETURNS_SUBHEADS[self]

    @classmethod
    def from_name(cls, name: Union["Channel", str]) -> "Channel":
        """Resolve a channel from its name (case-insensitive)."""
        if isinstance(name, cls):
            return name
        text = str(name).strip().lower()
        for channel in cls:
            if channel.value.lower() == text:
                return channel
        raise ValueError(f"Unknown sales channel: {name!r}")


# Pseudo-channel carried by inter-company line items.
INTER_COMPANY_CHANNEL = "Inter-Company"

_REVENUE_SUBHEADS: dict[Channel, str] = {
    Channel.BLINKIT: "Blinkit",
    Channel.AMAZON: "Amazon",
    Channel.WEBSITE: "Website/D2C",
    Channel.OFFLINE_OEM: "Offline/OEM",
}

_RETURNS_SUBHEADS: dict[Channel, str] = {
    Channel.BLINKIT: "Blinkit Returns",
    Channel.AMAZON: "Amazon Returns",
    Channel.WEBSITE: "Website Returns",
    Channel.OFFLINE_OEM: "Offline Returns",
}
