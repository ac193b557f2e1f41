"""Tests for list filtering and CSV export."""

import csv
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

from conftest import make_account, make_category, make_tx
from moneybook.engine import (
    export_filename,
    export_transactions_csv,
    filter_loans,
    filter_transactions,
)
from moneybook.engine.export import EXPORT_HEADER
from moneybook.models import Loan, LoanDirection, TransactionFilter, TransactionType


class TestFilterTransactions:

    def test_account_matches_either_side_of_transfer(self, user_id):
        a = make_account(user_id, "A")
        b = make_account(user_id, "B")
        transfer = make_tx(user_id, "transfer", "10", a.id, to_account_id=b.id)
        income = make_tx(user_id, "income", "20", a.id)

        rows = filter_transactions([transfer, income], TransactionFilter(account_id=b.id))

        assert rows == [transfer]

    def test_search_matches_category_and_account_names(self, user_id):
        a = make_account(user_id, "HDFC Salary")
        food = make_category(user_id, "Groceries")
        grocery = make_tx(user_id, "expense", "10", a.id, category_id=food.id, description="weekly")
        other = make_tx(user_id, "income", "99", uuid4(), description="bonus")

        by_category = filter_transactions(
            [grocery, other], TransactionFilter(search="grocer"), [a], [food]
        )
        by_account = filter_transactions(
            [grocery, other], TransactionFilter(search="hdfc"), [a], [food]
        )

        assert by_category == [grocery]
        assert by_account == [grocery]

    def test_date_bounds_inclusive(self, user_id):
        account_id = uuid4()
        rows = [
            make_tx(user_id, "income", "1", account_id, when=date(2024, 3, d))
            for d in (1, 5, 10)
        ]

        result = filter_transactions(
            rows,
            TransactionFilter(date_from=date(2024, 3, 1), date_to=date(2024, 3, 5)),
        )

        assert [tx.date.day for tx in result] == [5, 1]

    def test_type_and_amount_sort(self, user_id):
        account_id = uuid4()
        rows = [
            make_tx(user_id, "expense", "30", account_id),
            make_tx(user_id, "expense", "10", account_id),
            make_tx(user_id, "income", "20", account_id),
        ]

        result = filter_transactions(
            rows,
            TransactionFilter(type=TransactionType.EXPENSE, sort_by="amount", sort_order="asc"),
        )

        assert [tx.amount for tx in result] == [Decimal("10"), Decimal("30")]


class TestFilterLoans:

    def test_direction_and_person_search(self, user_id):
        def loan(person, direction):
            return Loan(
                user_id=user_id,
                person_name=person,
                amount=Decimal("10"),
                direction=direction,
                account_id=uuid4(),
            )

        loans = [
            loan("Ravi Kumar", LoanDirection.GIVEN),
            loan("Asha", LoanDirection.GIVEN),
            loan("Ravi", LoanDirection.RECEIVED),
        ]

        assert len(filter_loans(loans, LoanDirection.GIVEN)) == 2
        assert [l.person_name for l in filter_loans(loans, LoanDirection.GIVEN, "ravi")] == ["Ravi Kumar"]
        assert len(filter_loans(loans)) == 3


class TestExportCsv:

    def test_rows_and_impact_signs(self, user_id):
        a = make_account(user_id, "A")
        b = make_account(user_id, "B")
        food = make_category(user_id, "food")
        transactions = [
            make_tx(user_id, "expense", "250.50", a.id, category_id=food.id, description="Lunch, office"),
            make_tx(user_id, "transfer", "100", a.id, to_account_id=b.id),
        ]

        content = export_transactions_csv(transactions, [a, b], [food])
        rows = list(csv.reader(StringIO(content)))

        assert rows[0] == EXPORT_HEADER
        assert rows[1] == [
            "2024-03-10", "Lunch, office", "food", "A", "", "expense", "250.50", "-250.50",
        ]
        assert rows[2][3:] == ["A", "B", "transfer", "100", "100"]

    def test_empty_export_has_header_only(self):
        content = export_transactions_csv([])
        assert content == ",".join(EXPORT_HEADER) + "\n"

    def test_unknown_account_left_blank(self, user_id):
        tx = make_tx(user_id, "income", "5", uuid4())
        rows = list(csv.reader(StringIO(export_transactions_csv([tx]))))
        assert rows[1][3] == ""

    def test_filename(self):
        assert export_filename(date(2024, 3, 31)) == "transactions-2024-03-31.csv"
