# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for MIS Classifier.

The CLI is intentionally thin: it does not implement classification or
accounting logic itself. It reads already-decoded registers (CSV), runs
them through the core modules and renders the results as console tables
and/or CSV files.


Subcommands
-----------

``journal JOURNAL.csv``
    Group the journal register into vouchers, classify every expense line,
    then run the ignore filter and the pattern matcher over the lines left
    unclassified. Prints parse statistics, classification progress and the
    transactions. ``--save SESSION.json`` stores the resulting session.

``sales REGISTER.csv [STATE=REGISTER.csv ...]``
    Summarize one or more sales registers (channels, returns, inter-company
    transfers). With several registers, the multi-state revenue roll-up is
    printed as well.

``report``
    Build the MIS report from a saved session (``--session``) and/or
    registers (``--journal``, ``--sales``), optionally reconciled against a
    balance-sheet extract (``--balance-sheet``). With ``--periods`` and
    ``--monthly``, one report per month is produced, with raw materials
    prorated into COGM.

``prorate PERIODS.csv``
    Prorate the raw-materials cost across periods by revenue share,
    per fiscal year (with configured overrides) unless ``--single-year``.


Configuration
-------------

By default, the CLI reads ``mis_classifier_config.toml`` in the current
working directory when it exists and falls back to built-in defaults
otherwise. ``--config PATH`` selects another file (which must exist).

Display
-------

``--display-mode`` overrides ``display.mode``: ``table`` prints to stdout,
``csv`` writes CSV files to ``--output`` (default ``data/output``),
``both`` does both.
"""

import argparse
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .config import (
    DEFAULT_CONFIG_FILE,
    AppConfig,
    build_inter_company_rules,
    build_pattern_matcher,
    default_patterns,
    ignore_rules,
    load_app_config,
    user_patterns,
)
from .cogs import (
    calculate_prorated_raw_materials,
    calculate_prorated_raw_materials_by_fy,
)
from .engine import aggregate_revenue, calculate_head_totals
from .io import (
    load_session,
    read_balance_sheet,
    read_ledger_rows,
    read_period_summaries,
    read_sales_rows,
    save_session,
)
from .multi_periods import compute_multi_period_reports
from .sales import (
    SalesRegisterSummary,
    sales_summary_to_transactions,
    summarize_sales_register,
)
from .session import ClassificationSession
from .views import (
    format_currency,
    format_percentage,
    head_totals_to_frame,
    proration_to_frame,
    report_to_frame,
    sales_summary_to_frame,
    transactions_to_frame,
)
from .vouchers import journal_entries_to_transactions, parse_journal_register

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="mis-classifier",
        description=(
            "MIS Classifier - Ledger classification & MIS reporting for SMBs. "
            "Classifies journal and sales registers into MIS heads and builds "
            "a tiered P&L (net revenue, CM1-CM3, EBITDA, net income)."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of mis_classifier and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the TOML configuration file. If omitted, "
            f"'{DEFAULT_CONFIG_FILE}' in the current directory is used when "
            "present, built-in defaults otherwise."
        ),
    )
    ap.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=["table", "csv", "both"],
        help="Override the display.mode setting from the configuration file.",
    )
    ap.add_argument(
        "--output",
        dest="output_dir",
        help="Output directory for CSV files (default: data/output).",
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    # journal
    journal = subparsers.add_parser(
        "journal", help="Classify the expense lines of a journal register."
    )
    journal.add_argument("path", help="Decoded journal register (CSV).")
    journal.add_argument(
        "--state", help="State tag stored on the resulting transactions."
    )
    journal.add_argument(
        "--save",
        dest="save_path",
        help="Write the classification session to this JSON file.",
    )

    # sales
    sales = subparsers.add_parser("sales", help="Summarize sales registers.")
    sales.add_argument(
        "registers",
        nargs="+",
        metavar="[STATE=]PATH",
        help="Sales register CSV, optionally prefixed with its state.",
    )
    sales.add_argument(
        "--state",
        default=None,
        help=(
            "State of registers given without a STATE= prefix "
            "(default: the configured transfer-origin state)."
        ),
    )
    sales.add_argument(
        "--discounts",
        type=float,
        default=0.0,
        help="Discounts deducted in the multi-state revenue roll-up.",
    )

    # report
    report = subparsers.add_parser("report", help="Build the MIS report.")
    report.add_argument("--session", dest="session_path", help="Saved session.")
    report.add_argument(
        "--journal",
        dest="journal_paths",
        action="append",
        default=[],
        metavar="PATH",
        help="Journal register CSV (repeatable).",
    )
    report.add_argument(
        "--sales",
        dest="sales_registers",
        action="append",
        default=[],
        metavar="[STATE=]PATH",
        help="Sales register CSV (repeatable).",
    )
    report.add_argument(
        "--balance-sheet",
        dest="balance_sheet_path",
        help="Balance-sheet extract (CSV item,amount) for reconciliation.",
    )
    report.add_argument(
        "--purchase-total",
        dest="purchase_total",
        type=float,
        help="Purchase-register total compared with balance-sheet purchases.",
    )
    report.add_argument(
        "--periods",
        dest="periods_path",
        help="Per-period stock / purchases / revenue summaries (CSV).",
    )
    report.add_argument(
        "--monthly",
        action="store_true",
        help="One report per month (raw materials prorated with --periods).",
    )
    report.add_argument(
        "--breakdowns",
        action="store_true",
        help="Include subhead lines under each head.",
    )
    report.add_argument(
        "--head-totals",
        dest="head_totals",
        action="store_true",
        help="Also render per (head, subhead) totals.",
    )

    # prorate
    prorate = subparsers.add_parser(
        "prorate", help="Prorate raw-materials cost across periods."
    )
    prorate.add_argument("path", help="Per-period summaries (CSV).")
    prorate.add_argument(
        "--single-year",
        action="store_true",
        help="Treat all periods as one year (no fiscal-year grouping).",
    )
    prorate.add_argument(
        "--override",
        type=float,
        help="Raw-materials total replacing the computed one (--single-year).",
    )

    return ap


def _load_config(args: argparse.Namespace) -> AppConfig:
    if args.config_path:
        return load_app_config(args.config_path)
    if Path(DEFAULT_CONFIG_FILE).is_file():
        return load_app_config()
    return AppConfig()


def _split_register(value: str, default_state: str) -> tuple[str, Path]:
    """Parse ``STATE=PATH`` (or a bare PATH) into (state, path)."""
    state, sep, path = value.partition("=")
    if not sep:
        return default_state, Path(value)
    if not state or not path:
        raise ValueError(f"Invalid register argument {value!r}, expected STATE=PATH.")
    return state, Path(path)


def _new_session(config: AppConfig) -> ClassificationSession:
    cls_cfg = config.classification
    return ClassificationSession(
        user_patterns=user_patterns(cls_cfg),
        ignore_rules=ignore_rules(cls_cfg),
        default_patterns=default_patterns(cls_cfg),
    )


def _journal_transactions(path: Path, config: AppConfig, state: Optional[str]):
    cls_cfg = config.classification
    matcher = build_pattern_matcher(cls_cfg)
    result = parse_journal_register(
        read_ledger_rows(path),
        matcher.classify,
        skip_account_patterns=cls_cfg.skip_account_patterns,
        skip_credit_first=cls_cfg.skip_credit_first,
    )
    for rule in matcher.invalid_rules:
        print(f"Warning: invalid pattern ignored: {rule.rule.pattern!r}")
    return result, journal_entries_to_transactions(result.entries, state=state)


def _summaries(
    registers: Sequence[str], config: AppConfig, default_state: Optional[str]
) -> list[SalesRegisterSummary]:
    rules = build_inter_company_rules(config.sales)
    state = default_state or config.sales.transfer_origin_state
    out = []
    for value in registers:
        reg_state, path = _split_register(value, state)
        out.append(summarize_sales_register(read_sales_rows(path), reg_state, rules))
    return out


class _Renderer:
    """Prints frames and/or writes them as timestamped CSV files."""

    def __init__(self, mode: str, output_dir: Optional[str]):
        self.mode = mode
        self.output_dir = Path(output_dir) if output_dir else Path("data/output")
        self.timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")

    def render(self, title: str, name: str, df: pd.DataFrame) -> None:
        if self.mode in {"table", "both"}:
            print()
            print(f"=== {title} ===")
            if df.empty:
                print("(no rows)")
            else:
                print(df.to_string(index=False))
        if self.mode in {"csv", "both"}:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self.output_dir / f"{name}_{self.timestamp}.csv"
            df.to_csv(path, index=False)
            print(f"Wrote {path} ({len(df)} rows)")


def _handle_journal(args, config: AppConfig, out: _Renderer) -> None:
    result, transactions = _journal_transactions(Path(args.path), config, args.state)
    print(
        f"Vouchers: {result.total_vouchers} | "
        f"Expense entries: {result.total_expenses} | "
        f"Skipped vouchers: {result.skipped_vouchers}"
    )

    session = _new_session(config)
    session.import_transactions(transactions)
    stats = session.statistics()
    print(
        f"Classified: {stats.classified} | Suggested: {stats.suggested} | "
        f"Unclassified: {stats.unclassified} | Ignored: {stats.ignored} | "
        f"Progress: {stats.progress}%"
    )

    frame = transactions_to_frame(session.transactions)
    out.render("Transactions", "transactions", frame)

    if args.save_path:
        path = save_session(session, args.save_path)
        print(f"Session saved to {path}")


def _handle_sales(args, config: AppConfig, out: _Renderer) -> None:
    summaries = _summaries(args.registers, config, args.state)
    symbol = config.display.currency_symbol
    for summary in summaries:
        out.render(
            f"Sales register ({summary.state})",
            f"sales_{summary.state}",
            sales_summary_to_frame(summary),
        )
        print(f"Net sales: {format_currency(summary.net_sales, symbol)}")

    if len(summaries) > 1:
        revenue = aggregate_revenue(
            summaries,
            origin_state=config.sales.transfer_origin_state,
            discounts=args.discounts,
        )
        rows = [
            ("Gross Sales", revenue.total_gross_sales),
            ("Stock Transfers", revenue.total_stock_transfer),
            ("Returns", revenue.total_returns),
            ("Taxes", revenue.total_taxes),
            ("Discounts", revenue.total_discounts),
            ("Net Revenue", revenue.total_net_revenue),
        ]
        df = pd.DataFrame(rows, columns=["name", "amount"])
        df["amount"] = df["amount"].round(2)
        out.render("Revenue (all states)", "revenue_all_states", df)


def _handle_report(args, config: AppConfig, out: _Renderer, parser) -> None:
    if not (args.session_path or args.journal_paths or args.sales_registers):
        parser.error("report needs --session, --journal or --sales input.")
    if args.monthly and args.balance_sheet_path:
        parser.error("--balance-sheet cannot be combined with --monthly.")

    # 1) Collect transactions into one session
    if args.session_path:
        session = load_session(args.session_path)
    else:
        session = _new_session(config)

    incoming = list(session.transactions)
    for path in args.journal_paths:
        _, txns = _journal_transactions(Path(path), config, None)
        incoming.extend(txns)
    for summary in _summaries(args.sales_registers, config, None):
        incoming.extend(sales_summary_to_transactions(summary))
    session.import_transactions(incoming)

    stats = session.statistics()
    if stats.suggested or stats.unclassified:
        print(
            f"Warning: {stats.suggested + stats.unclassified} transaction(s) are "
            "not classified and are left out of the report."
        )

    periods = read_period_summaries(args.periods_path) if args.periods_path else None

    # 2) Monthly reports
    if args.monthly:
        multi = compute_multi_period_reports(
            session.transactions,
            periods,
            session.taxonomy,
            fy_overrides=config.cogs.fy_overrides,
            fy_start_month=config.cogs.fiscal_year_start_month,
            with_breakdowns=args.breakdowns,
        )
        out.render("MIS report by month", "mis_report_monthly", multi.data)
        return

    # 3) Single report
    balance_sheet = (
        read_balance_sheet(args.balance_sheet_path)
        if args.balance_sheet_path
        else None
    )
    allocated = None
    if periods:
        proration = calculate_prorated_raw_materials_by_fy(
            periods,
            config.cogs.fy_overrides,
            config.cogs.fiscal_year_start_month,
        )
        allocated = proration.fy_total_raw_materials

    report = session.report(
        balance_sheet=balance_sheet,
        purchase_register_total=args.purchase_total,
        allocated_raw_materials=allocated,
    )
    out.render(
        "MIS report",
        "mis_report",
        report_to_frame(report, with_breakdowns=args.breakdowns),
    )
    if args.head_totals:
        out.render(
            "Head totals",
            "head_totals",
            head_totals_to_frame(
                calculate_head_totals(session.transactions, session.taxonomy)
            ),
        )

    symbol = config.display.currency_symbol
    revenue = report.net_revenue
    # margins are shares of net revenue
    print(
        f"Net revenue: {format_currency(revenue, symbol)} | "
        f"EBITDA: {format_currency(report.ebitda, symbol)} "
        f"({format_percentage(report.ebitda, revenue)}) | "
        f"Net income: {format_currency(report.net_income, symbol)} "
        f"({format_percentage(report.net_income, revenue)})"
    )
    rec = report.reconciliation
    if rec is not None:
        print(
            f"Variance vs balance sheet: revenue "
            f"{format_currency(rec.revenue_variance, symbol)}, COGS "
            f"{format_currency(rec.cogs_variance, symbol)}, profit "
            f"{format_currency(rec.profit_variance, symbol)}"
        )


def _handle_prorate(args, config: AppConfig, out: _Renderer, parser) -> None:
    periods = read_period_summaries(args.path)
    if args.override is not None and not args.single_year:
        parser.error("--override requires --single-year (use [cogs.fy_overrides]).")

    if args.single_year:
        result = calculate_prorated_raw_materials(periods, args.override)
    else:
        result = calculate_prorated_raw_materials_by_fy(
            periods,
            config.cogs.fy_overrides,
            config.cogs.fiscal_year_start_month,
        )

    out.render("Raw materials proration", "proration", proration_to_frame(result))
    symbol = config.display.currency_symbol
    total = format_currency(result.fy_total_raw_materials, symbol)
    revenue = format_currency(result.fy_total_revenue, symbol)
    print(f"Total raw materials: {total} | Total revenue: {revenue}")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Entry point for the MIS Classifier CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"mis_classifier version {__version__}")
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.error("No command specified: use journal, sales, report or prorate.")

    try:
        config = _load_config(args)
        out = _Renderer(args.display_mode or config.display.mode, args.output_dir)

        if args.command == "journal":
            _handle_journal(args, config, out)
        elif args.command == "sales":
            _handle_sales(args, config, out)
        elif args.command == "report":
            _handle_report(args, config, out, parser)
        elif args.command == "prorate":
            _handle_prorate(args, config, out, parser)
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))


if __name__ == "__main__":
    main()
