# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for MIS Classifier.

This module is responsible for:
- loading the application configuration from a TOML file,
- exposing typed dataclasses used by the rest of the application,
- building the rule objects (pattern matcher, ignore rules, inter-company
  allowlist) described by that configuration.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .patterns import (
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_PATTERNS,
    IgnoreRule,
    PatternMatcher,
    PatternRule,
    load_ignore_rules,
    load_pattern_rules,
)
from .sales import (
    DEFAULT_INTER_COMPANY_PATTERNS,
    DEFAULT_STATE_KEYWORDS,
    DEFAULT_TRANSFER_ORIGIN_STATE,
    InterCompanyRules,
    state_keywords_from_mapping,
)
from .vouchers import DEFAULT_SKIP_ACCOUNT_PATTERNS

DEFAULT_CONFIG_FILE = "mis_classifier_config.toml"

DISPLAY_MODES = ("table", "csv", "both")


@dataclass(frozen=True)
class ClassificationConfig:
    """Rules used to classify journal lines."""

    user_patterns_file: Optional[Path] = None
    ignore_rules_file: Optional[Path] = None
    use_default_patterns: bool = True
    use_default_ignore_rules: bool = True
    skip_credit_first: bool = True
    skip_account_patterns: tuple[str, ...] = DEFAULT_SKIP_ACCOUNT_PATTERNS


@dataclass(frozen=True)
class SalesConfig:
    """Inter-company transfer detection for sales registers."""

    transfer_origin_state: str = DEFAULT_TRANSFER_ORIGIN_STATE
    inter_company_patterns: tuple[str, ...] = DEFAULT_INTER_COMPANY_PATTERNS
    state_keywords: tuple[tuple[str, tuple[str, ...]], ...] = DEFAULT_STATE_KEYWORDS


@dataclass(frozen=True)
class CogsConfig:
    """Fiscal-year settings used by the raw-materials proration."""

    fiscal_year_start_month: int = 4
    fy_overrides: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class DisplayConfig:
    mode: str = "table"
    currency_symbol: str = "₹"


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for MIS Classifier.

    This aggregates:
    - the classification rules (user / built-in patterns and ignore rules,
      voucher skip heuristic),
    - the sales register settings (inter-company allowlist),
    - the COGS proration settings (fiscal year, overrides),
    - display options for the CLI.
    """

    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    sales: SalesConfig = field(default_factory=SalesConfig)
    cogs: CogsConfig = field(default_factory=CogsConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    source: Optional[Path] = None


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Config section [{name}] must be a table.")
    return section


def _string_list(value: Any, key: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError(f"'{key}' must be a list of strings.")
    return tuple(str(v) for v in value)


def _resolve_optional(base_dir: Path, rel: Any) -> Optional[Path]:
    if not rel:
        return None
    return (base_dir / str(rel)).resolve()


def _parse_classification(
    section: Mapping[str, Any], base_dir: Path
) -> ClassificationConfig:
    skip_patterns = DEFAULT_SKIP_ACCOUNT_PATTERNS
    if "skip_account_patterns" in section:
        skip_patterns = _string_list(
            section["skip_account_patterns"], "classification.skip_account_patterns"
        )

    return ClassificationConfig(
        user_patterns_file=_resolve_optional(
            base_dir, section.get("user_patterns_file")
        ),
        ignore_rules_file=_resolve_optional(base_dir, section.get("ignore_rules_file")),
        use_default_patterns=bool(section.get("use_default_patterns", True)),
        use_default_ignore_rules=bool(section.get("use_default_ignore_rules", True)),
        skip_credit_first=bool(section.get("skip_credit_first", True)),
        skip_account_patterns=skip_patterns,
    )


def _parse_sales(section: Mapping[str, Any]) -> SalesConfig:
    patterns = DEFAULT_INTER_COMPANY_PATTERNS
    if "inter_company_patterns" in section:
        patterns = _string_list(
            section["inter_company_patterns"], "sales.inter_company_patterns"
        )

    # [sales.state_keywords] Maharashtra = ["maharashtra", "mumbai"]
    keywords = DEFAULT_STATE_KEYWORDS
    raw_keywords = section.get("state_keywords")
    if raw_keywords is not None:
        if not isinstance(raw_keywords, Mapping):
            raise ValueError("[sales.state_keywords] must be a table.")
        keywords = state_keywords_from_mapping(
            {
                state: _string_list(words, f"sales.state_keywords.{state}")
                for state, words in raw_keywords.items()
            }
        )

    origin = str(section.get("transfer_origin_state") or DEFAULT_TRANSFER_ORIGIN_STATE)
    return SalesConfig(
        transfer_origin_state=origin,
        inter_company_patterns=patterns,
        state_keywords=keywords,
    )


def _parse_cogs(section: Mapping[str, Any]) -> CogsConfig:
    try:
        start_month = int(section.get("fiscal_year_start_month", 4))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'cogs.fiscal_year_start_month'. Expected an integer."
        ) from exc
    if not 1 <= start_month <= 12:
        raise ValueError("'cogs.fiscal_year_start_month' must be between 1 and 12.")

    # [cogs.fy_overrides] "FY 2024-25" = 15985642.38
    overrides_raw = section.get("fy_overrides") or {}
    if not isinstance(overrides_raw, Mapping):
        raise ValueError("[cogs.fy_overrides] must be a table.")
    overrides: dict[str, float] = {}
    for label, value in overrides_raw.items():
        try:
            overrides[str(label)] = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"Invalid COGS override for {label!r}: expected a number."
            ) from exc

    return CogsConfig(fiscal_year_start_month=start_month, fy_overrides=overrides)


def _parse_display(section: Mapping[str, Any]) -> DisplayConfig:
    mode = str(section.get("mode", "table"))
    if mode not in DISPLAY_MODES:
        raise ValueError(
            f"Invalid display mode {mode!r}, expected one of {list(DISPLAY_MODES)}."
        )
    return DisplayConfig(
        mode=mode,
        currency_symbol=str(section.get("currency_symbol", "₹")),
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the MIS Classifier configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [classification]
        user_patterns_file, ignore_rules_file (CSV files), whether the
        built-in rule sets are used, the voucher skip heuristic toggle and
        the account patterns skipped inside vouchers.

    [sales]
        transfer_origin_state, inter_company_patterns and the
        [sales.state_keywords] table used to find the destination state.

    [cogs]
        fiscal_year_start_month and [cogs.fy_overrides] (fiscal-year label
        -> raw-materials total).

    [display]
        mode (table / csv / both), currency_symbol.

    All sections are optional. File paths are resolved relative to the
    directory of the TOML file itself.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML file. Defaults to ``mis_classifier_config.toml``
        in the current working directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    return AppConfig(
        classification=_parse_classification(
            _section(raw, "classification"), base_dir
        ),
        sales=_parse_sales(_section(raw, "sales")),
        cogs=_parse_cogs(_section(raw, "cogs")),
        display=_parse_display(_section(raw, "display")),
        source=config_file,
    )


# ---------------------------------------------------------------------------
# Rule builders
# ---------------------------------------------------------------------------


def user_patterns(config: ClassificationConfig) -> list[PatternRule]:
    if config.user_patterns_file is None:
        return []
    return load_pattern_rules(config.user_patterns_file)


def ignore_rules(config: ClassificationConfig) -> list[IgnoreRule]:
    """Configured ignore rules followed by the built-in ones (if enabled)."""
    rules: list[IgnoreRule] = []
    if config.ignore_rules_file is not None:
        rules.extend(load_ignore_rules(config.ignore_rules_file))
    if config.use_default_ignore_rules:
        rules.extend(DEFAULT_IGNORE_PATTERNS)
    return rules


def default_patterns(config: ClassificationConfig) -> tuple[PatternRule, ...]:
    return DEFAULT_PATTERNS if config.use_default_patterns else ()


def build_pattern_matcher(config: ClassificationConfig) -> PatternMatcher:
    return PatternMatcher(user_patterns(config), default_patterns(config))


def build_inter_company_rules(config: SalesConfig) -> InterCompanyRules:
    return InterCompanyRules(
        origin_state=config.transfer_origin_state,
        entity_patterns=config.inter_company_patterns,
        state_keywords=config.state_keywords,
    )
