"""
Aggregation Engine

Pure functions over one user's rows. No storage, no clock, no I/O.
"""

from moneybook.engine.effects import balance_effects, balance_impact, signed_change
from moneybook.engine.history import balance_series, reconstruct_history
from moneybook.engine.summary import (
    emergency_fund_progress,
    monthly_summary,
    net_worth,
    spending_insights,
    spending_tips,
    top_categories,
)
from moneybook.engine.budgets import (
    BUDGET_TEMPLATES,
    BudgetTemplate,
    budget_overview,
    compute_budget_usage,
    filter_budget_usage,
    get_template,
    plan_template,
    sort_budget_usage,
)
from moneybook.engine.filters import filter_loans, filter_transactions
from moneybook.engine.export import export_filename, export_transactions_csv

__all__ = [
    "balance_effects",
    "balance_impact",
    "signed_change",
    "balance_series",
    "reconstruct_history",
    "emergency_fund_progress",
    "monthly_summary",
    "net_worth",
    "spending_insights",
    "spending_tips",
    "top_categories",
    "BUDGET_TEMPLATES",
    "BudgetTemplate",
    "budget_overview",
    "compute_budget_usage",
    "filter_budget_usage",
    "get_template",
    "plan_template",
    "sort_budget_usage",
    "filter_loans",
    "filter_transactions",
    "export_filename",
    "export_transactions_csv",
]
