"""
Monthly and Category Aggregation

DESIGN DECISION: Aggregation is a pure function of the rows passed in.
Nothing here reads storage, the clock, or another user's data. Callers
hand us one tenant's snapshot and an explicit month or as-of date.

Totals are classified by transaction TYPE only. A transfer moves money
between two of the user's own accounts, so it is neither income nor an
expense. It still shows up per account in the breakdown.
"""

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from moneybook.engine.effects import INFLOW_TYPES
from moneybook.models.ledger import (
    ZERO,
    Account,
    Category,
    Loan,
    LoanDirection,
    Transaction,
    TransactionType,
)
from moneybook.models.reports import (
    AccountBreakdown,
    CategoryTotal,
    DailySpending,
    MonthlySummary,
    NetWorthSummary,
    SpendingInsights,
)


# Types counted in monthly total_expenses
SPENDING_TYPES = frozenset({
    TransactionType.EXPENSE,
    TransactionType.LOAN_GIVEN,
})

INSIGHT_WINDOW_DAYS = 30

# Smart tip thresholds
SPENDING_INCREASE_TIP_PCT = Decimal("20")
DAILY_SPENDING_TIP = Decimal("2000")
NET_WORTH_TIP = Decimal("100000")
EMERGENCY_FUND_MONTHS = 6

CENT = Decimal("0.01")


def in_month(tx: Transaction, month: str) -> bool:
    """Is the transaction dated inside YYYY-MM?"""
    return tx.date.strftime("%Y-%m") == month


def _category_totals(
    transactions: Iterable[Transaction],
    category_names: dict,
) -> dict[str, Decimal]:
    """Expense totals by category name, in first-occurrence order."""
    totals: dict[str, Decimal] = {}
    for tx in transactions:
        if tx.type != TransactionType.EXPENSE or tx.category_id is None:
            continue
        name = category_names.get(tx.category_id)
        if not name:
            # Category deleted or never resolved
            continue
        totals[name] = totals.get(name, ZERO) + tx.amount
    return totals


def monthly_summary(
    month: str,
    transactions: Iterable[Transaction],
    accounts: list[Account],
    categories: list[Category],
) -> MonthlySummary:
    """
    Roll up one calendar month.

    Example (March 2024): income 50000 into A, expense 20000 (food) from A,
    transfer 5000 A -> B gives total_income 50000, total_expenses 20000,
    net 30000, category_spending {"food": 20000}. The transfer appears as
    an expense of A and an income of B in account_breakdown only.
    """
    month_tx = [tx for tx in transactions if in_month(tx, month)]
    category_names = {c.id: c.name for c in categories}

    total_income = sum(
        (tx.amount for tx in month_tx if tx.type in INFLOW_TYPES), ZERO
    )
    total_expenses = sum(
        (tx.amount for tx in month_tx if tx.type in SPENDING_TYPES), ZERO
    )
    transfer_volume = sum(
        (tx.amount for tx in month_tx if tx.type == TransactionType.TRANSFER), ZERO
    )

    breakdown = []
    for account in accounts:
        income = ZERO
        expenses = ZERO
        for tx in month_tx:
            if tx.account_id == account.id:
                if tx.type in INFLOW_TYPES:
                    income += tx.amount
                else:
                    expenses += tx.amount
            elif tx.type == TransactionType.TRANSFER and tx.to_account_id == account.id:
                income += tx.amount
        breakdown.append(AccountBreakdown(
            account_id=account.id,
            name=account.name,
            income=income,
            expenses=expenses,
        ))

    daily: dict[date, Decimal] = {}
    for tx in month_tx:
        if tx.type == TransactionType.EXPENSE:
            daily[tx.date] = daily.get(tx.date, ZERO) + tx.amount

    return MonthlySummary(
        month=month,
        total_income=total_income,
        total_expenses=total_expenses,
        net=total_income - total_expenses,
        transfer_volume=transfer_volume,
        category_spending=_category_totals(month_tx, category_names),
        account_breakdown=breakdown,
        daily_spending=[
            DailySpending(date=day, amount=amount)
            for day, amount in sorted(daily.items())
        ],
        transaction_count=len(month_tx),
    )


def top_categories(
    summary: MonthlySummary,
    limit: Optional[int] = None,
) -> list[CategoryTotal]:
    """Category spending, largest first. Ties keep first-occurrence order."""
    ranked = sorted(
        summary.category_spending.items(),
        key=lambda item: item[1],
        reverse=True,
    )
    if limit is not None:
        ranked = ranked[:limit]
    return [CategoryTotal(name=name, amount=amount) for name, amount in ranked]


def spending_insights(
    transactions: Iterable[Transaction],
    accounts: list[Account],
    categories: list[Category],
    as_of: date,
) -> SpendingInsights:
    """
    Compare the last 30 days of spending with the 30 days before.

    Recent window: [as_of - 30d, as_of]. Previous window:
    [as_of - 60d, as_of - 30d).
    """
    recent_start = as_of - timedelta(days=INSIGHT_WINDOW_DAYS)
    previous_start = as_of - timedelta(days=2 * INSIGHT_WINDOW_DAYS)

    recent = []
    previous = []
    for tx in transactions:
        if recent_start <= tx.date <= as_of:
            recent.append(tx)
        elif previous_start <= tx.date < recent_start:
            previous.append(tx)

    def spent(rows: list[Transaction]) -> Decimal:
        return sum(
            (tx.amount for tx in rows if tx.type == TransactionType.EXPENSE), ZERO
        )

    current_spending = spent(recent)
    previous_spending = spent(previous)

    change_pct = ZERO
    if previous_spending > 0:
        change_pct = (
            (current_spending - previous_spending) / previous_spending * 100
        ).quantize(CENT, rounding=ROUND_HALF_UP)

    category_names = {c.id: c.name for c in categories}
    recent_totals = _category_totals(recent, category_names)
    top = None
    if recent_totals:
        name, amount = max(recent_totals.items(), key=lambda item: item[1])
        top = CategoryTotal(name=name, amount=amount)

    return SpendingInsights(
        as_of=as_of,
        current_spending=current_spending,
        previous_spending=previous_spending,
        spending_change_pct=change_pct,
        top_category=top,
        avg_daily_spending=(current_spending / INSIGHT_WINDOW_DAYS).quantize(
            CENT, rounding=ROUND_HALF_UP
        ),
        total_net_worth=sum((a.balance for a in accounts), ZERO),
        last_30_days_count=len(recent),
    )


def net_worth(accounts: list[Account], loans: list[Loan]) -> NetWorthSummary:
    """
    Balances plus money still out on loan, minus money still owed.

    Only outstanding loans count; a returned loan has already been
    reflected back in the account balance.
    """
    total_balance = sum((a.balance for a in accounts), ZERO)
    outstanding = [loan for loan in loans if not loan.is_returned]
    money_lent = sum(
        (l.amount for l in outstanding if l.direction == LoanDirection.GIVEN), ZERO
    )
    money_owed = sum(
        (l.amount for l in outstanding if l.direction == LoanDirection.RECEIVED), ZERO
    )
    return NetWorthSummary(
        account_count=len(accounts),
        total_balance=total_balance,
        money_lent=money_lent,
        money_owed=money_owed,
        total_assets=total_balance + money_lent - money_owed,
    )


def spending_tips(insights: SpendingInsights, currency_symbol: str = "₹") -> list[str]:
    """Plain-language suggestions derived from the insights."""
    tips = []
    if insights.spending_change_pct > SPENDING_INCREASE_TIP_PCT:
        focus = insights.top_category.name.lower() if insights.top_category else "top"
        tips.append(
            f"Your spending increased by {insights.spending_change_pct:.1f}%. "
            f"Consider reviewing your {focus} expenses."
        )
    if insights.avg_daily_spending > DAILY_SPENDING_TIP:
        tips.append(
            f"Your daily average spending is {currency_symbol}"
            f"{insights.avg_daily_spending:,.0f}. "
            "Setting a daily budget could help you save more."
        )
    tips.append("Track your expenses regularly to identify patterns and opportunities to save.")
    if insights.total_net_worth > NET_WORTH_TIP:
        tips.append(
            "Great job building your net worth! "
            "Consider investing a portion for long-term growth."
        )
    return tips


def emergency_fund_progress(insights: SpendingInsights) -> int:
    """Percent of six months of current spending covered by net worth, 0-100."""
    target = max(
        Decimal("1"),
        insights.avg_daily_spending * INSIGHT_WINDOW_DAYS * EMERGENCY_FUND_MONTHS,
    )
    pct = (insights.total_net_worth / target * 100).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return int(max(Decimal("0"), min(Decimal("100"), pct)))
