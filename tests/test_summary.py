"""Tests for monthly summaries, insights and net worth."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from conftest import make_account, make_category, make_tx
from moneybook.engine import (
    emergency_fund_progress,
    monthly_summary,
    net_worth,
    spending_insights,
    spending_tips,
    top_categories,
)
from moneybook.models import Loan, LoanDirection, SpendingInsights


class TestMonthlySummary:

    def test_transfers_excluded_from_totals(self, user_id):
        a = make_account(user_id, "A")
        b = make_account(user_id, "B")
        food = make_category(user_id, "food")
        transactions = [
            make_tx(user_id, "income", "50000", a.id, when=date(2024, 3, 1)),
            make_tx(user_id, "expense", "20000", a.id, when=date(2024, 3, 5), category_id=food.id),
            make_tx(user_id, "transfer", "5000", a.id, when=date(2024, 3, 7), to_account_id=b.id),
        ]

        summary = monthly_summary("2024-03", transactions, [a, b], [food])

        assert summary.total_income == Decimal("50000")
        assert summary.total_expenses == Decimal("20000")
        assert summary.net == Decimal("30000")
        assert summary.transfer_volume == Decimal("5000")
        assert summary.category_spending == {"food": Decimal("20000")}
        assert summary.transaction_count == 3

    def test_transfer_shows_in_account_breakdown(self, user_id):
        a = make_account(user_id, "A")
        b = make_account(user_id, "B")
        transactions = [
            make_tx(user_id, "income", "50000", a.id, when=date(2024, 3, 1)),
            make_tx(user_id, "expense", "20000", a.id, when=date(2024, 3, 5)),
            make_tx(user_id, "transfer", "5000", a.id, when=date(2024, 3, 7), to_account_id=b.id),
        ]

        summary = monthly_summary("2024-03", transactions, [a, b], [])
        breakdown = {row.name: row for row in summary.account_breakdown}

        assert breakdown["A"].income == Decimal("50000")
        assert breakdown["A"].expenses == Decimal("25000")
        assert breakdown["B"].income == Decimal("5000")
        assert breakdown["B"].net == Decimal("5000")

    def test_other_months_ignored(self, user_id):
        a = make_account(user_id, "A")
        transactions = [
            make_tx(user_id, "income", "100", a.id, when=date(2024, 2, 29)),
            make_tx(user_id, "income", "200", a.id, when=date(2024, 4, 1)),
        ]

        summary = monthly_summary("2024-03", transactions, [a], [])

        assert summary.total_income == Decimal("0")
        assert summary.transaction_count == 0

    def test_daily_spending_sorted(self, user_id):
        a = make_account(user_id, "A")
        transactions = [
            make_tx(user_id, "expense", "30", a.id, when=date(2024, 3, 9)),
            make_tx(user_id, "expense", "10", a.id, when=date(2024, 3, 2)),
            make_tx(user_id, "expense", "5", a.id, when=date(2024, 3, 9)),
        ]

        summary = monthly_summary("2024-03", transactions, [a], [])

        assert [(d.date, d.amount) for d in summary.daily_spending] == [
            (date(2024, 3, 2), Decimal("10")),
            (date(2024, 3, 9), Decimal("35")),
        ]

    def test_deleted_category_not_counted(self, user_id):
        a = make_account(user_id, "A")
        tx = make_tx(user_id, "expense", "30", a.id, category_id=uuid4())

        summary = monthly_summary("2024-03", [tx], [a], [])

        assert summary.category_spending == {}
        assert summary.total_expenses == Decimal("30")

    def test_top_categories_largest_first(self, user_id):
        a = make_account(user_id, "A")
        food = make_category(user_id, "food")
        gym = make_category(user_id, "gym")
        transactions = [
            make_tx(user_id, "expense", "100", a.id, category_id=food.id),
            make_tx(user_id, "expense", "300", a.id, category_id=gym.id),
        ]

        summary = monthly_summary("2024-03", transactions, [a], [food, gym])

        assert [c.name for c in top_categories(summary)] == ["gym", "food"]
        assert len(top_categories(summary, limit=1)) == 1


class TestSpendingInsights:

    def test_compares_rolling_windows(self, user_id):
        a = make_account(user_id, "A", balance="9000")
        food = make_category(user_id, "food")
        transactions = [
            make_tx(user_id, "expense", "3000", a.id, when=date(2024, 3, 15), category_id=food.id),
            make_tx(user_id, "expense", "2000", a.id, when=date(2024, 2, 15)),
            make_tx(user_id, "income", "5000", a.id, when=date(2024, 3, 20)),
        ]

        insights = spending_insights(transactions, [a], [food], as_of=date(2024, 3, 31))

        assert insights.current_spending == Decimal("3000")
        assert insights.previous_spending == Decimal("2000")
        assert insights.spending_change_pct == Decimal("50.00")
        assert insights.avg_daily_spending == Decimal("100.00")
        assert insights.top_category.name == "food"
        assert insights.total_net_worth == Decimal("9000")
        assert insights.last_30_days_count == 2

    def test_no_previous_spending_gives_zero_change(self, user_id):
        a = make_account(user_id, "A")
        tx = make_tx(user_id, "expense", "300", a.id, when=date(2024, 3, 30))

        insights = spending_insights([tx], [a], [], as_of=date(2024, 3, 31))

        assert insights.spending_change_pct == Decimal("0")
        assert insights.top_category is None

    def test_window_boundaries(self, user_id):
        a = make_account(user_id, "A")
        as_of = date(2024, 3, 31)
        on_recent_edge = make_tx(user_id, "expense", "10", a.id, when=date(2024, 3, 1))
        just_before = make_tx(user_id, "expense", "20", a.id, when=date(2024, 2, 29))

        insights = spending_insights([on_recent_edge, just_before], [a], [], as_of=as_of)

        assert insights.current_spending == Decimal("10")
        assert insights.previous_spending == Decimal("20")


class TestNetWorth:

    def test_counts_outstanding_loans_only(self, user_id):
        a = make_account(user_id, "A", balance="1000")
        b = make_account(user_id, "B", balance="500")

        def loan(amount, direction, returned=False):
            return Loan(
                user_id=user_id,
                person_name="Ravi",
                amount=Decimal(amount),
                direction=direction,
                account_id=a.id,
                is_returned=returned,
            )

        loans = [
            loan("200", LoanDirection.GIVEN),
            loan("100", LoanDirection.RECEIVED),
            loan("50", LoanDirection.GIVEN, returned=True),
        ]

        summary = net_worth([a, b], loans)

        assert summary.account_count == 2
        assert summary.total_balance == Decimal("1500")
        assert summary.money_lent == Decimal("200")
        assert summary.money_owed == Decimal("100")
        assert summary.total_assets == Decimal("1600")


class TestTips:

    def test_tips_for_rising_spend(self):
        insights = SpendingInsights(
            as_of=date(2024, 3, 31),
            spending_change_pct=Decimal("35"),
            avg_daily_spending=Decimal("2500"),
            total_net_worth=Decimal("200000"),
        )

        tips = spending_tips(insights, "₹")

        assert any("increased by 35.0%" in tip for tip in tips)
        assert any("₹2,500" in tip for tip in tips)
        assert any("net worth" in tip for tip in tips)

    def test_always_one_general_tip(self):
        tips = spending_tips(SpendingInsights(as_of=date(2024, 3, 31)))
        assert len(tips) == 1

    def test_emergency_fund_progress(self):
        insights = SpendingInsights(
            as_of=date(2024, 3, 31),
            avg_daily_spending=Decimal("100"),
            total_net_worth=Decimal("9000"),
        )
        assert emergency_fund_progress(insights) == 50

    def test_emergency_fund_progress_is_capped(self):
        insights = SpendingInsights(
            as_of=date(2024, 3, 31),
            avg_daily_spending=Decimal("1"),
            total_net_worth=Decimal("1000000"),
        )
        assert emergency_fund_progress(insights) == 100
