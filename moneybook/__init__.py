"""
MoneyBook - Source Package

A personal finance tracker: accounts, transactions, loans and monthly
budgets, with derived views (balance history, monthly rollups, budget
usage, insights) computed from a snapshot of the user's rows.

DESIGN PRINCIPLES:
1. Derived views are pure functions over a snapshot
2. Validate locally before touching storage
3. Every balance change is one atomic unit (no compensating undo)
4. Every significant action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "MoneyBook Team"
