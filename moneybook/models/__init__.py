"""
Data Models Package

This package contains all Pydantic models used in MoneyBook.
All data flowing through the system must conform to these schemas.
"""

from moneybook.models.ledger import (
    MONTH_PATTERN,
    ZERO,
    Account,
    AccountKind,
    Budget,
    BudgetStatus,
    Category,
    LedgerMutation,
    Loan,
    LoanDirection,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from moneybook.models.reports import (
    AccountBreakdown,
    AccountReferences,
    BalancePoint,
    BudgetOverview,
    BudgetUsage,
    CategoryTotal,
    DailySpending,
    LedgerEntry,
    LedgerSnapshot,
    MonthlySummary,
    NetWorthSummary,
    SpendingInsights,
    TransactionFilter,
)
from moneybook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MONTH_PATTERN",
    "ZERO",
    "Account",
    "AccountKind",
    "Budget",
    "BudgetStatus",
    "Category",
    "LedgerMutation",
    "Loan",
    "LoanDirection",
    "Transaction",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Report models
    "AccountBreakdown",
    "AccountReferences",
    "BalancePoint",
    "BudgetOverview",
    "BudgetUsage",
    "CategoryTotal",
    "DailySpending",
    "LedgerEntry",
    "LedgerSnapshot",
    "MonthlySummary",
    "NetWorthSummary",
    "SpendingInsights",
    "TransactionFilter",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
