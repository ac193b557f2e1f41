"""
Budget Usage

Spend against monthly category budgets.

Every categorized expense feeds TWO buckets:
- (month, category, its own account) for account-scoped budgets
- (month, category, all accounts) for all-accounts budgets

So a single expense can count toward both an account budget and the
all-accounts budget of the same category. This is intended.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from moneybook.models.ledger import (
    ZERO,
    Account,
    Budget,
    BudgetStatus,
    Category,
    Transaction,
    TransactionType,
)
from moneybook.models.reports import BudgetOverview, BudgetUsage


WARNING_THRESHOLD = Decimal("80")
EXCEEDED_THRESHOLD = Decimal("100")

BUDGET_SORT_KEYS = ("usage", "amount", "name")

BucketKey = tuple[str, UUID, Optional[UUID]]


def classify(utilization: Decimal, spent: Decimal, target: Decimal) -> BudgetStatus:
    """Status from spend. Exceeded wins as soon as spend reaches target."""
    if target > 0 and spent >= target:
        return BudgetStatus.EXCEEDED
    if utilization >= EXCEEDED_THRESHOLD:
        return BudgetStatus.EXCEEDED
    if utilization >= WARNING_THRESHOLD:
        return BudgetStatus.WARNING
    return BudgetStatus.SAFE


def spending_buckets(transactions: Iterable[Transaction]) -> dict[BucketKey, Decimal]:
    """Categorized expense totals, keyed by (month, category, account or None)."""
    buckets: dict[BucketKey, Decimal] = {}
    for tx in transactions:
        if tx.type != TransactionType.EXPENSE or tx.category_id is None:
            continue
        month = tx.date.strftime("%Y-%m")
        for key in (
            (month, tx.category_id, tx.account_id),
            (month, tx.category_id, None),
        ):
            buckets[key] = buckets.get(key, ZERO) + tx.amount
    return buckets


def compute_budget_usage(
    budgets: list[Budget],
    transactions: Iterable[Transaction],
    categories: Optional[list[Category]] = None,
    accounts: Optional[list[Account]] = None,
) -> list[BudgetUsage]:
    """One usage row per budget, in budget order."""
    buckets = spending_buckets(transactions)
    category_names = {c.id: c.name for c in categories or []}
    account_names = {a.id: a.name for a in accounts or []}

    rows = []
    for budget in budgets:
        spent = buckets.get((budget.month, budget.category_id, budget.account_id), ZERO)
        target = budget.target_amount
        if target > 0:
            utilization = min(EXCEEDED_THRESHOLD, spent / target * 100)
        else:
            utilization = ZERO
        rows.append(BudgetUsage(
            budget=budget,
            category_name=category_names.get(budget.category_id),
            account_name=(
                account_names.get(budget.account_id) if budget.account_id else None
            ),
            spent=spent,
            remaining=max(ZERO, target - spent),
            utilization=utilization,
            status=classify(utilization, spent, target),
        ))
    return rows


def budget_overview(rows: list[BudgetUsage]) -> BudgetOverview:
    return BudgetOverview(
        budget_count=len(rows),
        total_budgeted=sum((r.budget.target_amount for r in rows), ZERO),
        total_spent=sum((r.spent for r in rows), ZERO),
        exceeded_count=sum(1 for r in rows if r.status == BudgetStatus.EXCEEDED),
        warning_count=sum(1 for r in rows if r.status == BudgetStatus.WARNING),
    )


def sort_budget_usage(rows: list[BudgetUsage], by: str = "usage") -> list[BudgetUsage]:
    """
    Sort for display.

    usage: highest utilization first
    amount: largest target first
    name: category name A-Z
    """
    if by == "usage":
        return sorted(rows, key=lambda r: r.utilization, reverse=True)
    if by == "amount":
        return sorted(rows, key=lambda r: r.budget.target_amount, reverse=True)
    if by == "name":
        return sorted(rows, key=lambda r: (r.category_name or "").lower())
    raise ValueError(f"Unknown budget sort key: {by}")


def filter_budget_usage(
    rows: list[BudgetUsage],
    status: Optional[BudgetStatus] = None,
) -> list[BudgetUsage]:
    """Keep rows with the given status; None keeps everything."""
    if status is None:
        return list(rows)
    return [r for r in rows if r.status == status]


# =============================================================================
# TEMPLATES
# =============================================================================

class BudgetTemplate(BaseModel):
    """A named set of category-name -> monthly target."""

    name: str
    targets: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return sum(self.targets.values(), ZERO)


BUDGET_TEMPLATES: list[BudgetTemplate] = [
    BudgetTemplate(
        name="Essential Living",
        targets={
            "food": Decimal("15000"),
            "transport": Decimal("5000"),
            "family": Decimal("10000"),
        },
    ),
    BudgetTemplate(
        name="Young Professional",
        targets={
            "food": Decimal("12000"),
            "gym": Decimal("2000"),
            "clothing": Decimal("8000"),
            "electronics": Decimal("5000"),
        },
    ),
    BudgetTemplate(
        name="Conservative",
        targets={
            "food": Decimal("8000"),
            "transport": Decimal("3000"),
            "family": Decimal("5000"),
        },
    ),
]


def get_template(name: str) -> BudgetTemplate:
    for template in BUDGET_TEMPLATES:
        if template.name.lower() == name.lower():
            return template
    raise KeyError(f"Unknown budget template: {name}")


def plan_template(
    template: BudgetTemplate,
    user_id: UUID,
    month: str,
    categories: list[Category],
    existing: list[Budget],
) -> list[Budget]:
    """
    Budgets a template would add for `month`.

    Only all-accounts budgets are created, only for categories the user
    has (matched case-insensitively), and never where an all-accounts
    budget for that category and month already exists.
    """
    by_name = {c.name.lower(): c for c in categories}
    taken = {
        b.category_id for b in existing
        if b.month == month and b.account_id is None
    }

    planned = []
    for name, target in template.targets.items():
        category = by_name.get(name.lower())
        if category is None or category.id in taken:
            continue
        planned.append(Budget(
            user_id=user_id,
            category_id=category.id,
            account_id=None,
            month=month,
            target_amount=target,
        ))
        taken.add(category.id)
    return planned
