"""
Derived View Models

Everything in this module is computed from stored rows and never
persisted: balance history, monthly rollups, budget usage, insights.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from moneybook.models.ledger import (
    ZERO,
    Account,
    Budget,
    BudgetStatus,
    Category,
    Loan,
    Transaction,
    TransactionType,
)


class LedgerSnapshot(BaseModel):
    """
    One user's rows as read from storage at a point in time.

    The aggregation engine works only on snapshots like this one; it never
    talks to storage itself.
    """

    user_id: UUID
    taken_at: datetime = Field(default_factory=datetime.utcnow)
    accounts: list[Account] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    loans: list[Loan] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)

    def account(self, account_id: UUID) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def account_names(self) -> dict[UUID, str]:
        return {a.id: a.name for a in self.accounts}

    def category_names(self) -> dict[UUID, str]:
        return {c.id: c.name for c in self.categories}


class LedgerEntry(BaseModel):
    """One row of an account's reconstructed balance history."""

    transaction: Transaction
    change: Decimal = Field(..., description="Signed effect on this account")
    balance_after: Decimal = Field(..., description="Balance right after this transaction")


class BalancePoint(BaseModel):
    """End-of-day balance, for charting."""

    date: date
    balance: Decimal


class AccountBreakdown(BaseModel):
    """Per-account inflow/outflow for one month. Transfers count on both sides."""

    account_id: UUID
    name: str
    income: Decimal = ZERO
    expenses: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


class DailySpending(BaseModel):
    date: date
    amount: Decimal


class CategoryTotal(BaseModel):
    name: str
    amount: Decimal


class MonthlySummary(BaseModel):
    """
    Monthly rollup.

    total_income / total_expenses use the type classification only, so a
    transfer between two of the user's accounts changes neither. It does
    show up in account_breakdown, as an outflow for the source and an
    inflow for the destination.
    """

    month: str
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    net: Decimal = ZERO
    transfer_volume: Decimal = ZERO
    category_spending: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Expense totals by category name, first-occurrence order"
    )
    account_breakdown: list[AccountBreakdown] = Field(default_factory=list)
    daily_spending: list[DailySpending] = Field(default_factory=list)
    transaction_count: int = Field(default=0, ge=0)


class SpendingInsights(BaseModel):
    """Rolling 30-day spending compared with the 30 days before it."""

    as_of: date
    current_spending: Decimal = ZERO
    previous_spending: Decimal = ZERO
    spending_change_pct: Decimal = Field(
        default=ZERO,
        description="Change vs previous window; 0 when there is no previous spend"
    )
    top_category: Optional[CategoryTotal] = None
    avg_daily_spending: Decimal = ZERO
    total_net_worth: Decimal = ZERO
    last_30_days_count: int = Field(default=0, ge=0)


class NetWorthSummary(BaseModel):
    """Balances plus outstanding loans."""

    account_count: int = Field(default=0, ge=0)
    total_balance: Decimal = ZERO
    money_lent: Decimal = Field(default=ZERO, description="Outstanding given loans")
    money_owed: Decimal = Field(default=ZERO, description="Outstanding received loans")
    total_assets: Decimal = ZERO


class BudgetUsage(BaseModel):
    """Spend against one budget."""

    budget: Budget
    category_name: Optional[str] = None
    account_name: Optional[str] = Field(
        default=None,
        description="None for all-accounts budgets"
    )
    spent: Decimal = ZERO
    remaining: Decimal = ZERO
    utilization: Decimal = Field(default=ZERO, ge=0, le=100)
    status: BudgetStatus = BudgetStatus.SAFE

    @property
    def label(self) -> str:
        name = self.category_name or "Category"
        if self.account_name:
            return f"{name} ({self.account_name})"
        return name


class BudgetOverview(BaseModel):
    budget_count: int = Field(default=0, ge=0)
    total_budgeted: Decimal = ZERO
    total_spent: Decimal = ZERO
    exceeded_count: int = Field(default=0, ge=0)
    warning_count: int = Field(default=0, ge=0)


class AccountReferences(BaseModel):
    """
    Rows that point at an account.

    Deleting a referenced account is allowed; the caller is expected to
    show this as a warning first.
    """

    account_id: UUID
    transaction_count: int = Field(default=0, ge=0)
    loan_count: int = Field(default=0, ge=0)

    @property
    def has_references(self) -> bool:
        return self.transaction_count > 0 or self.loan_count > 0

    @property
    def warning_message(self) -> str:
        if not self.has_references:
            return "Delete this account? This action cannot be undone."
        return (
            f"This account is used in {self.transaction_count} transaction(s) "
            f"and {self.loan_count} loan(s). Deleting it may orphan data."
        )


class TransactionFilter(BaseModel):
    """
    Criteria for the transaction list view.

    All criteria are optional and combine with AND.
    """

    account_id: Optional[UUID] = Field(
        default=None,
        description="Matches source or destination"
    )
    category_id: Optional[UUID] = None
    type: Optional[TransactionType] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = Field(default=None, max_length=200)
    sort_by: str = Field(default="date", pattern="^(date|amount)$")
    sort_order: str = Field(default="desc", pattern="^(asc|desc)$")

    @model_validator(mode='after')
    def validate_dates(self) -> 'TransactionFilter':
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("End date cannot be before start date")
        return self
