"""Tests for balance effects and running-balance reconstruction."""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from conftest import make_account, make_tx
from moneybook.engine import (
    balance_effects,
    balance_impact,
    balance_series,
    reconstruct_history,
    signed_change,
)


class TestBalanceEffects:

    def test_income_adds_to_source(self, user_id):
        account_id = uuid4()
        tx = make_tx(user_id, "income", "100", account_id)
        assert balance_effects(tx) == {account_id: Decimal("100")}

    def test_expense_and_loan_given_subtract(self, user_id):
        account_id = uuid4()
        for tx_type in ("expense", "loan_given"):
            tx = make_tx(user_id, tx_type, "40", account_id)
            assert signed_change(tx, account_id) == Decimal("-40")

    def test_loan_received_adds(self, user_id):
        account_id = uuid4()
        tx = make_tx(user_id, "loan_received", "40", account_id)
        assert signed_change(tx, account_id) == Decimal("40")

    def test_transfer_moves_between_accounts(self, user_id):
        source, destination = uuid4(), uuid4()
        tx = make_tx(user_id, "transfer", "75", source, to_account_id=destination)
        assert balance_effects(tx) == {
            source: Decimal("-75"),
            destination: Decimal("75"),
        }

    def test_unrelated_account_unchanged(self, user_id):
        tx = make_tx(user_id, "income", "100", uuid4())
        assert signed_change(tx, uuid4()) == Decimal("0")

    def test_export_impact_sign(self, user_id):
        source, destination = uuid4(), uuid4()
        assert balance_impact(make_tx(user_id, "expense", "10", source)) == Decimal("-10")
        assert balance_impact(make_tx(user_id, "loan_given", "10", source)) == Decimal("-10")
        assert balance_impact(
            make_tx(user_id, "transfer", "10", source, to_account_id=destination)
        ) == Decimal("10")


class TestReconstructHistory:

    def test_walks_back_from_current_balance(self, user_id):
        account = make_account(user_id, balance="1500")
        other = uuid4()
        transactions = [
            make_tx(user_id, "transfer", "300", account.id, when=date(2024, 3, 3), to_account_id=other),
            make_tx(user_id, "income", "1000", account.id, when=date(2024, 3, 1)),
            make_tx(user_id, "expense", "200", account.id, when=date(2024, 3, 2)),
        ]

        entries = reconstruct_history(account, transactions)

        assert [e.balance_after for e in entries] == [
            Decimal("1500"),
            Decimal("1800"),
            Decimal("2000"),
        ]
        assert [e.change for e in entries] == [
            Decimal("-300"),
            Decimal("-200"),
            Decimal("1000"),
        ]
        assert entries[0].balance_after == account.balance

    def test_incoming_transfer_counts_as_inflow(self, user_id):
        account = make_account(user_id, balance="500")
        tx = make_tx(user_id, "transfer", "500", uuid4(), to_account_id=account.id)

        entries = reconstruct_history(account, [tx])

        assert entries[0].change == Decimal("500")
        assert entries[0].balance_after == Decimal("500")

    def test_ignores_other_accounts(self, user_id):
        account = make_account(user_id, balance="100")
        tx = make_tx(user_id, "income", "999", uuid4())
        assert reconstruct_history(account, [tx]) == []

    def test_no_transactions_gives_empty_history(self, user_id):
        account = make_account(user_id, balance="100")
        assert reconstruct_history(account, []) == []

    def test_same_day_ordered_by_creation(self, user_id):
        account = make_account(user_id, balance="50")
        first = make_tx(
            user_id, "income", "100", account.id,
            created_at=datetime(2024, 3, 1, 9, 0),
        )
        second = make_tx(
            user_id, "expense", "50", account.id,
            created_at=datetime(2024, 3, 1, 18, 0),
        )

        entries = reconstruct_history(account, [second, first])

        assert entries[0].transaction.id == second.id
        assert entries[1].balance_after == Decimal("100")

    def test_same_day_output_independent_of_input_order(self, user_id):
        account = make_account(user_id, balance="50")
        first = make_tx(
            user_id, "income", "100", account.id,
            created_at=datetime(2024, 3, 1, 9, 0),
        )
        second = make_tx(
            user_id, "expense", "50", account.id,
            created_at=datetime(2024, 3, 1, 18, 0),
        )

        forward = reconstruct_history(account, [first, second])
        backward = reconstruct_history(account, [second, first])

        assert forward == backward
        assert [e.transaction.id for e in forward] == [second.id, first.id]

    def test_ends_at_current_balance_with_exact_ties(self, user_id):
        account = make_account(user_id, balance="275.50")
        stamp = datetime(2024, 3, 10, 12, 0)
        transactions = [
            make_tx(user_id, tx_type, amount, account.id, created_at=stamp)
            for tx_type, amount in (
                ("income", "400"),
                ("expense", "99.25"),
                ("loan_given", "25.25"),
                ("loan_received", "60"),
                ("expense", "10"),
            )
        ]

        for ordering in (transactions, list(reversed(transactions))):
            entries = reconstruct_history(account, ordering)
            assert len(entries) == 5
            assert entries[0].balance_after == account.balance
            oldest = entries[-1]
            opening = oldest.balance_after - oldest.change
            assert opening + sum(e.change for e in entries) == account.balance

    def test_transfer_symmetric_across_both_accounts(self, user_id):
        source = make_account(user_id, "A", balance="600")
        destination = make_account(user_id, "B", balance="400")
        transfer = make_tx(
            user_id, "transfer", "250", source.id, to_account_id=destination.id
        )
        transactions = [transfer, make_tx(user_id, "income", "30", source.id)]

        [source_entry] = [
            e for e in reconstruct_history(source, transactions)
            if e.transaction.id == transfer.id
        ]
        [destination_entry] = reconstruct_history(destination, transactions)

        assert source_entry.change == Decimal("-250")
        assert destination_entry.change == Decimal("250")
        assert source_entry.change + destination_entry.change == Decimal("0")

    def test_manual_edit_is_absorbed(self, user_id):
        """A corrected balance shifts the whole history, newest still matches."""
        account = make_account(user_id, balance="10000")
        tx = make_tx(user_id, "expense", "100", account.id)

        entries = reconstruct_history(account, [tx])

        assert entries[0].balance_after == Decimal("10000")


class TestBalanceSeries:

    def test_one_point_per_day_in_date_order(self, user_id):
        account = make_account(user_id, balance="70")
        transactions = [
            make_tx(user_id, "income", "100", account.id, when=date(2024, 3, 1),
                    created_at=datetime(2024, 3, 1, 9)),
            make_tx(user_id, "expense", "10", account.id, when=date(2024, 3, 1),
                    created_at=datetime(2024, 3, 1, 10)),
            make_tx(user_id, "expense", "20", account.id, when=date(2024, 3, 4)),
        ]

        series = balance_series(reconstruct_history(account, transactions))

        assert [(p.date, p.balance) for p in series] == [
            (date(2024, 3, 1), Decimal("90")),
            (date(2024, 3, 4), Decimal("70")),
        ]
