# MIS Classifier - Ledger classification & MIS reporting for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
MIS Classifier
--------------

A Python library and command-line tool that turns decoded accounting
registers of a small manufacturing / D2C business into a management P&L
(MIS report).

Main capabilities:
- head / subhead taxonomy with a closed set of MIS heads,
- regex pattern matching and ignore rules (user rules before built-ins),
- journal register voucher grouping and expense classification,
- sales register channel, return and inter-company classification,
- tiered P&L aggregation (net revenue, CM1-CM3, EBITDA, net income),
  multi-state revenue roll-up and balance-sheet reconciliation,
- raw-materials COGS proration across periods by revenue share,
- a classification session with undo history,
- TOML configuration and a thin CLI.

Version: 0.1.0

Usage:
    mis-classifier --help
"""

__all__ = ["engine", "patterns", "vouchers", "sales", "cogs", "session", "views"]

__version__ = "0.1.0"
