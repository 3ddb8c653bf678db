# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Pattern-based account matching for MIS Classifier.

Two rule families are handled here:

- classification rules ``(pattern, head, subhead)``: the first rule whose
  pattern matches an account name gives the suggested head/subhead;
- ignore rules ``(pattern, reason)``: the first matching rule marks the
  line as auto-ignored (non-P&L) and gives the reason, which is displayed
  as the subhead under the Ignore head.

Patterns are case-insensitive regular expressions evaluated with
``re.search``. Every rule is compiled once, when the matcher is built.
A rule whose pattern does not compile is kept in the list as an inert
``CompiledRule`` (it never matches) and a warning is logged, so a bad
user-authored rule never breaks classification.

User rules are always evaluated before the built-in defaults.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from .heads import Head
from .models import Classification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternRule:
    """A classification rule: ``pattern`` -> (head, subhead)."""

    pattern: str
    head: Head
    subhead: str


@dataclass(frozen=True)
class IgnoreRule:
    """An auto-ignore rule: ``pattern`` -> reason."""

    pattern: str
    reason: str


@dataclass(frozen=True)
class CompiledRule:
    """A rule together with its compiled regex, or the compile error.

    ``regex`` is None when the pattern failed to compile; such a rule is
    inert and ``matches`` always returns False.
    """

    rule: Union[PatternRule, IgnoreRule]
    regex: Optional[re.Pattern]
    error: Optional[str] = None

    @property
    def is_inert(self) -> bool:
        return self.regex is None

    def matches(self, name: str) -> bool:
        if self.regex is None or not name:
            return False
        return self.regex.search(name) is not None


def compile_rule(rule: Union[PatternRule, IgnoreRule]) -> CompiledRule:
    try:
        regex = re.compile(rule.pattern, re.IGNORECASE)
    except re.error as exc:
        logger.warning("Ignoring invalid pattern %r: %s", rule.pattern, exc)
        return CompiledRule(rule=rule, regex=None, error=str(exc))
    return CompiledRule(rule=rule, regex=regex)


def compile_rules(
    rules: Iterable[Union[PatternRule, IgnoreRule]],
) -> tuple[CompiledRule, ...]:
    """Compile rules in order, keeping invalid ones as inert entries."""
    return tuple(compile_rule(r) for r in rules)


class PatternMatcher:
    """Ordered first-match classifier over user rules then default rules."""

    def __init__(
        self,
        user_rules: Iterable[PatternRule] = (),
        default_rules: Iterable[PatternRule] = (),
    ):
        self.rules = compile_rules(tuple(user_rules) + tuple(default_rules))

    @property
    def invalid_rules(self) -> list[CompiledRule]:
        return [r for r in self.rules if r.is_inert]

    def match(self, *names: str) -> Optional[Classification]:
        """Return the classification of the first rule matching any name.

        Rule order has priority over name order: the first rule that
        matches at least one of ``names`` wins.
        """
        for compiled in self.rules:
            if any(compiled.matches(n) for n in names):
                rule = compiled.rule
                return Classification(
                    head=rule.head, subhead=rule.subhead, pattern=rule.pattern
                )
        return None

    def classify(self, account: str, party: str = "") -> Optional[Classification]:
        """Two-argument classification used by the voucher classifier.

        The expense account is tried first, then the resolved party, then
        the combined ``"{account} - {party}"`` display name. Each name is
        matched against the full ordered rule list.
        """
        names = [account]
        if party:
            names.extend([party, f"{account} - {party}"])
        for name in names:
            result = self.match(name)
            if result is not None:
                return result
        return None


@dataclass(frozen=True)
class IgnoreDecision:
    should_ignore: bool
    reason: Optional[str] = None


class IgnoreFilter:
    """Ordered first-match auto-ignore filter."""

    def __init__(self, rules: Iterable[IgnoreRule] = ()):
        self.rules = compile_rules(rules)

    def check(self, name: str) -> IgnoreDecision:
        for compiled in self.rules:
            if compiled.matches(name):
                return IgnoreDecision(should_ignore=True, reason=compiled.rule.reason)
        return IgnoreDecision(should_ignore=False)

    def reasons(self) -> list[str]:
        """Unique reasons, in rule order."""
        seen: list[str] = []
        for compiled in self.rules:
            if compiled.rule.reason not in seen:
                seen.append(compiled.rule.reason)
        return seen


def get_recommendation(
    account: str,
    user_rules: Sequence[PatternRule] = (),
    default_rules: Optional[Sequence[PatternRule]] = None,
) -> Optional[Classification]:
    """Functional form of ``PatternMatcher.match`` for a single account."""
    if default_rules is None:
        default_rules = DEFAULT_PATTERNS
    return PatternMatcher(user_rules, default_rules).match(account)


def should_auto_ignore(
    account: str, rules: Optional[Sequence[IgnoreRule]] = None
) -> IgnoreDecision:
    if rules is None:
        rules = DEFAULT_IGNORE_PATTERNS
    return IgnoreFilter(rules).check(account)


# ---------------------------------------------------------------------------
# CSV rule files
# ---------------------------------------------------------------------------


def _read_rules_frame(path: Path, required: set[str]) -> pd.DataFrame:
    if not path.is_file():
        raise FileNotFoundError(f"Rules file not found: {path}")
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [c.strip().lower() for c in df.columns]
    missing = required - set(df.columns)
    if missing:
        raise ValueError(
            f"Rules file {path} is missing required column(s): {sorted(missing)}"
        )
    return df


def load_pattern_rules(path: Union[str, Path]) -> list[PatternRule]:
    """Load classification rules from a CSV with pattern, head, subhead.

    Rows are kept in file order. Blank patterns are skipped; an unknown head
    label raises ValueError.
    """
    path = Path(path)
    df = _read_rules_frame(path, {"pattern", "head", "subhead"})
    rules: list[PatternRule] = []
    for _, row in df.iterrows():
        pattern = str(row["pattern"]).strip()
        if not pattern:
            continue
        rules.append(
            PatternRule(
                pattern=pattern,
                head=Head.from_label(row["head"]),
                subhead=str(row["subhead"]).strip(),
            )
        )
    return rules


def load_ignore_rules(path: Union[str, Path]) -> list[IgnoreRule]:
    """Load ignore rules from a CSV with pattern, reason columns."""
    path = Path(path)
    df = _read_rules_frame(path, {"pattern", "reason"})
    rules: list[IgnoreRule] = []
    for _, row in df.iterrows():
        pattern = str(row["pattern"]).strip()
        if pattern:
            rules.append(IgnoreRule(pattern=pattern, reason=str(row["reason"]).strip()))
    return rules


def write_pattern_rules(rules: Iterable[PatternRule], path: Union[str, Path]) -> None:
    df = pd.DataFrame(
        [
            {"pattern": r.pattern, "head": r.head.label, "subhead": r.subhead}
            for r in rules
        ],
        columns=["pattern", "head", "subhead"],
    )
    df.to_csv(path, index=False)


# ---------------------------------------------------------------------------
# Built-in rule sets
# ---------------------------------------------------------------------------


def _rules(head: Head, entries: Sequence[tuple[str, str]]) -> list[PatternRule]:
    return [PatternRule(pattern=p, head=head, subhead=s) for p, s in entries]


DEFAULT_PATTERNS: tuple[PatternRule, ...] = tuple(
    _rules(
        Head.REVENUE,
        [
            (r"SHIPROCKET.*CASH SALE", "Website/D2C"),
            (r"AMAZON SALE.*CASH SALE", "Amazon"),
            (r"BLINKIT|BLINK COMMERCE", "Blinkit"),
            (r"HEATRONICS MEDICAL DEVICES P\. L", "Offline/OEM"),
        ],
    )
    + _rules(
        Head.CHANNEL_FULFILLMENT,
        [
            (r"AMAZON.*LOGISTICS", "Amazon Fees"),
            (r"Storage Fee|SHIPPING FEE|Return Fee|Commission Income", "Amazon Fees"),
            (r"PLATFORM FEE", "Amazon Fees"),
            (r"AMAZON SELLER SERVICES", "Amazon Fees"),
            (r"SHIPROCKET PRIVATE LIMITED", "D2C Fees (Shiprocket/PG)"),
            (r"EASEBUZZ", "D2C Fees (Shiprocket/PG)"),
        ],
    )
    + _rules(
        Head.SALES_MARKETING,
        [
            (r"FACEBOOK|META", "Facebook Ads"),
            (r"GOOGLE INDIA", "Google Ads"),
            (r"Advertisement.*Publicity", "Amazon Ads"),
            (r"SOCIAL MEDIA MARKETING", "Agency Fees"),
            (r"Branding.*Packaging|STUDIO SIX|LEMON.*COMPANY", "Agency Fees"),
            (r"QUANTSCALE", "Agency Fees"),
        ],
    )
    + _rules(
        Head.COGM,
        [
            (r"JOB WORK", "Contract/Job Work"),
            (r"D\.N\. LED|KIRTI LIGHT", "Contract/Job Work"),
            (r"FREIGHT|JAGDAMBA|NITCO|PORTER", "Inbound Transport"),
            (r"Office Rent|^NEXIA$", "Factory Rent"),
            (r"Electricity|WATER.*ECLECTRICITY", "Factory Electricity"),
            (r"POWER BACKUP|MAINTENANCE|CONSUMABLE", "Factory Maintenance"),
            (r"PAWAN SHARMA", "Manufacturing Wages"),
            (r"OM PAL SINGH", "Manufacturing Wages"),
            (r"RAGHUVEER", "Manufacturing Wages"),
            (r"Ram Nivash", "Manufacturing Wages"),
            (r"Ram Jatan", "Manufacturing Wages"),
            (r"HIMANSHU PANDEY", "Manufacturing Wages"),
            (r"RENU DEVI", "Manufacturing Wages"),
            (r"PRITEE DEVI", "Manufacturing Wages"),
        ],
    )
    + _rules(
        Head.OPERATING_EXPENSES,
        [
            (r"Salary|ESI.*EMPLOYER", "Salaries (Admin)"),
            (r"SHAILABH KUMAR", "Salaries (Admin)"),
            (r"Satendra kumar", "Salaries (Admin)"),
            (r"AVANISH KUMAR(?!.*EXP)", "Salaries (Admin)"),
            (r"PRABHASH CHANDRA", "Salaries (Admin)"),
            (r"VIVEKA NAND", "Salaries (Admin)"),
            (r"ASHISH KUMAR QC", "Salaries (Admin)"),
            (r"SHUBHI GUPTA", "Salaries (Admin)"),
            (r"DANIYAL", "Salaries (Admin)"),
            (r"Travelling|Miscellaneous|STAFF WELFARE", "Miscellaneous"),
            (r"AVANISH KUMAR.*EXP", "Miscellaneous"),
            (
                r"LEGAL.*PROFESSIONAL|ACCOUNTING.*RETURN|JITIN|CA SAURABH|Sahas",
                "Legal & CA",
            ),
            (
                r"OFFICE EXPENSE|Printing.*Stationery|Bank Charge"
                r"|COMMUNICATION|COURIER",
                "Admin Expenses",
            ),
        ],
    )
    + _rules(
        Head.PLATFORM_COSTS,
        [
            (r"SHOPFLO|WATI|LEARNYM", "Other SaaS"),
            (r"SHOPIFY", "Shopify"),
        ],
    )
    + _rules(
        Head.IGNORE,
        [
            (r"GST.*INPUT|GST.*OUTPUT|CGST|SGST|IGST", "GST Input/Output"),
            (r"TDS.*", "TDS"),
            (r"TCS.*", "GST Input/Output"),
            (r"DEFERRED", "GST Input/Output"),
            (r"CENTRAL BANK|HDFC BANK|AXIS BANK", "Bank Transfers"),
            (r"^Cash$", "Bank Transfers"),
            (r"DIRECTOR LOAN|HARLEEN CHAWLA", "Inter-company"),
        ],
    )
    + _rules(
        Head.EXCLUDE,
        [
            (r"DIWALI EXP|MLG SONS", "Personal Expenses"),
        ],
    )
)


def _ignore(reason: str, patterns: Sequence[str]) -> list[IgnoreRule]:
    return [IgnoreRule(pattern=p, reason=reason) for p in patterns]


DEFAULT_IGNORE_PATTERNS: tuple[IgnoreRule, ...] = tuple(
    _ignore(
        "Amazon Cash Sale Adjustment",
        [
            r"AMAZON SALE.*CASH SALE",
            r"AMAZON.*CASH.*SALE.*DELHI",
            r"AMAZON.*CASH.*SALE.*U\.?P\.?",
            r"AMAZON.*CASH.*SALE.*MH",
            r"AMAZON.*CASH.*SALE.*KA",
            r"AMAZON.*CASH.*SALE.*TN",
            r"AMAZON.*CASH.*SALE.*GJ",
            r"AMAZON CASH SALE",
        ],
    )
    + _ignore("GST Input Credit", [r"CGST Input", r"SGST Input", r"IGST Input"])
    + _ignore(
        "GST Input Credit (RCM)",
        [r"CGST Input Available", r"SGST Input Available", r"IGST Input Available"],
    )
    + _ignore(
        "Deferred GST",
        [r"DEFERRED INPUT CGST", r"DEFERRED INPUT SGST", r"DEFERRED INPUT IGST"],
    )
    + _ignore("GST Output Liability", [r"CGST Output", r"SGST Output", r"IGST Output"])
    + _ignore("GST Payable", [r"GST PAYABLE"])
    + _ignore("TCS Collected", [r"TCS \(CGST\)", r"TCS \(SGST\)", r"TCS \(IGST\)"])
    + _ignore(
        "TDS Deducted",
        [
            r"TDS.*Professionals",
            r"TDS.*Rent",
            r"TDS.*Contracts",
            r"TDS.*Commission",
            r"TDS.*Interest",
        ],
    )
    + _ignore("Cash Account", [r"^Cash$"])
    + _ignore(
        "Bank Account",
        [
            r"CENTRAL BANK.*OD",
            r"HDFC BANK",
            r"AXIS BANK",
            r"ICICI BANK",
            r"STATE BANK",
            r"BANK OF BARODA",
            r"KOTAK.*BANK",
            r"YES BANK",
        ],
    )
    + _ignore("Director Loan", [r"DIRECTOR LOAN"])
    + _ignore("Promoter Loan", [r"HARLEEN CHAWLA.*LOAN"])
    + _ignore("Loan Account", [r"UNSECURED LOAN"])
    + _ignore("Capital Account", [r"SHARE CAPITAL", r"CAPITAL ACCOUNT"])
    + _ignore("Reserve Account", [r"RESERVE.*SURPLUS"])
    + _ignore(
        "Fixed Asset",
        [
            r"PLANT.*MACHINERY",
            r"FURNITURE.*FIXTURE",
            r"COMPUTER.*EQUIPMENT",
            r"OFFICE EQUIPMENT",
        ],
    )
    + _ignore("Depreciation Account", [r"ACCUMULATED DEPRECIATION"])
    + _ignore("Suspense Account", [r"SUSPENSE"])
    + _ignore("Clearing Account", [r"CLEARING"])
    + _ignore("Opening Balance Entry", [r"OPENING BALANCE"])
    + _ignore("Closing Balance Entry", [r"CLOSING BALANCE"])
    + _ignore("Stock Account", [r"STOCK.*TRADE"])
    + _ignore("Inventory Account", [r"INVENTORY"])
)


def is_amazon_cash_sale(account: str) -> bool:
    """True when the account is one of the Amazon cash-sale adjustment ledgers."""
    decision = should_auto_ignore(account)
    return decision.reason == "Amazon Cash Sale Adjustment"


def compile_patterns(
    patterns: Iterable[str], kind: str = "pattern"
) -> tuple[re.Pattern, ...]:
    """Compile bare case-insensitive patterns, dropping (and logging) bad ones."""
    compiled = []
    for p in patterns:
        try:
            compiled.append(re.compile(p, re.IGNORECASE))
        except re.error as exc:
            logger.warning("Ignoring invalid %s %r: %s", kind, p, exc)
    return tuple(compiled)
