"""
Tests for the Google Sheets backend.

The gspread client is replaced by an in-process fake; we check which
rows get parsed and which batch requests would be sent.
"""

import asyncio
import threading
import time
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import make_account, make_tx
from moneybook.models import AuditEventBuilder, LedgerMutation, Loan, LoanDirection
from moneybook.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStorage,
    InsufficientFundsError,
    StorageError,
)
from moneybook.services.storage.google_sheets import (
    ACCOUNT_COLUMNS,
    AUDIT_COLUMNS,
    BUDGET_COLUMNS,
    CATEGORY_COLUMNS,
    LOAN_COLUMNS,
    TRANSACTION_COLUMNS,
    account_to_row,
    append_rows_request,
    delete_row_request,
    loan_to_row,
    row_to_loan,
    row_to_transaction,
    transaction_to_row,
    update_row_request,
)


class FakeWorksheet:
    def __init__(self, sheet_id, title, columns):
        self.id = sheet_id
        self.title = title
        self.rows = [list(columns)]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient; records batches instead of sending them."""

    def __init__(self):
        self.sheets = {
            "accounts": FakeWorksheet(1, "Accounts", ACCOUNT_COLUMNS),
            "categories": FakeWorksheet(2, "Categories", CATEGORY_COLUMNS),
            "transactions": FakeWorksheet(3, "Transactions", TRANSACTION_COLUMNS),
            "loans": FakeWorksheet(4, "Loans", LOAN_COLUMNS),
            "budgets": FakeWorksheet(5, "Budgets", BUDGET_COLUMNS),
            "audit": FakeWorksheet(6, "Audit_Log", AUDIT_COLUMNS),
        }
        self.batches = []
        self.fail_appends = False

    def accounts_sheet(self):
        return self.sheets["accounts"]

    def categories_sheet(self):
        return self.sheets["categories"]

    def transactions_sheet(self):
        return self.sheets["transactions"]

    def loans_sheet(self):
        return self.sheets["loans"]

    def budgets_sheet(self):
        return self.sheets["budgets"]

    def audit_sheet(self):
        return self.sheets["audit"]

    def read_rows(self, sheet):
        return [list(row) for row in sheet.rows]

    def append_row(self, sheet, values):
        if self.fail_appends:
            raise RuntimeError("quota exceeded")
        sheet.rows.append([str(v) for v in values])

    def batch_update(self, requests):
        self.batches.append(requests)


@pytest.fixture
def client():
    return FakeSheetsClient()


@pytest.fixture
def sheets_storage(client):
    return GoogleSheetsLedgerStorage(client)


class TestRequestBuilders:

    def test_update_row_request(self):
        request = update_row_request(7, 3, ["a", Decimal("1.50")])
        cells = request["updateCells"]
        assert cells["start"] == {"sheetId": 7, "rowIndex": 3, "columnIndex": 0}
        assert cells["rows"][0]["values"][1] == {"userEnteredValue": {"stringValue": "1.50"}}

    def test_append_rows_request(self):
        request = append_rows_request(7, [["a"], ["b"]])
        assert request["appendCells"]["sheetId"] == 7
        assert len(request["appendCells"]["rows"]) == 2

    def test_delete_row_request(self):
        request = delete_row_request(7, 4)
        assert request["deleteDimension"]["range"] == {
            "sheetId": 7,
            "dimension": "ROWS",
            "startIndex": 4,
            "endIndex": 5,
        }


class TestRowParsing:

    def test_short_transaction_row(self, user_id):
        tx = make_tx(user_id, "income", "10", uuid4())
        row = transaction_to_row(tx)[:-1]

        parsed = row_to_transaction(row)

        assert parsed.id == tx.id
        assert parsed.loan_id is None

    def test_returned_loan_row(self, user_id):
        loan = Loan(
            user_id=user_id,
            person_name="Ravi",
            amount=Decimal("100"),
            direction=LoanDirection.GIVEN,
            account_id=uuid4(),
            date_given=date(2024, 3, 1),
            is_returned=True,
            returned_at=datetime(2024, 3, 9, 12, 0),
        )

        parsed = row_to_loan(loan_to_row(loan))

        assert parsed.is_returned is True
        assert parsed.returned_at == datetime(2024, 3, 9, 12, 0)


class TestReads:

    @pytest.mark.asyncio
    async def test_only_own_rows_returned(self, client, sheets_storage, user_id):
        mine = make_account(user_id, "Mine")
        theirs = make_account(uuid4(), "Theirs")
        client.sheets["accounts"].rows += [account_to_row(mine), account_to_row(theirs)]

        accounts = await sheets_storage.list_accounts(user_id)

        assert [a.name for a in accounts] == ["Mine"]

    @pytest.mark.asyncio
    async def test_malformed_rows_skipped(self, client, sheets_storage, user_id):
        good = make_account(user_id, "Good")
        broken = account_to_row(make_account(user_id, "Broken"))
        broken[3] = "not-a-number"
        client.sheets["accounts"].rows += [broken, account_to_row(good), []]

        accounts = await sheets_storage.list_accounts(user_id)

        assert [a.name for a in accounts] == ["Good"]

    @pytest.mark.asyncio
    async def test_transactions_newest_first(self, client, sheets_storage, user_id):
        account_id = uuid4()
        old = make_tx(user_id, "income", "1", account_id, when=date(2024, 3, 1))
        new = make_tx(user_id, "income", "2", account_id, when=date(2024, 3, 9))
        client.sheets["transactions"].rows += [transaction_to_row(old), transaction_to_row(new)]

        rows = await sheets_storage.list_transactions(user_id)

        assert [tx.id for tx in rows] == [new.id, old.id]


class TestCommit:

    @pytest.mark.asyncio
    async def test_transfer_is_one_batch(self, client, sheets_storage, user_id):
        a = make_account(user_id, "A", balance="100")
        b = make_account(user_id, "B", balance="0")
        client.sheets["accounts"].rows += [account_to_row(a), account_to_row(b)]
        tx = make_tx(user_id, "transfer", "40", a.id, to_account_id=b.id)

        await sheets_storage.commit(LedgerMutation(
            user_id=user_id,
            reason="transfer",
            balance_deltas={a.id: Decimal("-40"), b.id: Decimal("40")},
            new_transactions=[tx],
        ))

        [batch] = client.batches
        assert [next(iter(r)) for r in batch] == ["updateCells", "updateCells", "appendCells"]
        first_update = batch[0]["updateCells"]
        assert first_update["start"]["rowIndex"] == 1
        assert first_update["rows"][0]["values"][3] == {"userEnteredValue": {"stringValue": "60"}}
        assert batch[1]["updateCells"]["start"]["rowIndex"] == 2
        assert batch[2]["appendCells"]["sheetId"] == 3

    @pytest.mark.asyncio
    async def test_deletes_come_last_bottom_up(self, client, sheets_storage, user_id):
        account = make_account(user_id, "A", balance="0")
        client.sheets["accounts"].rows.append(account_to_row(account))
        first = make_tx(user_id, "income", "5", account.id)
        second = make_tx(user_id, "income", "7", account.id)
        client.sheets["transactions"].rows += [transaction_to_row(first), transaction_to_row(second)]

        await sheets_storage.commit(LedgerMutation(
            user_id=user_id,
            reason="delete",
            balance_deltas={account.id: Decimal("-12")},
            deleted_transaction_ids=[first.id, second.id],
        ))

        [batch] = client.batches
        deletes = [r["deleteDimension"]["range"]["startIndex"] for r in batch if "deleteDimension" in r]
        assert deletes == [2, 1]
        assert "updateCells" in batch[0]

    @pytest.mark.asyncio
    async def test_guard_failure_sends_nothing(self, client, sheets_storage, user_id):
        account = make_account(user_id, "A", balance="10")
        client.sheets["accounts"].rows.append(account_to_row(account))

        with pytest.raises(InsufficientFundsError):
            await sheets_storage.commit(LedgerMutation(
                user_id=user_id,
                reason="create loan",
                balance_deltas={account.id: Decimal("-50")},
                non_negative_accounts=[account.id],
            ))

        assert client.batches == []

    @pytest.mark.asyncio
    async def test_unexpected_errors_become_storage_errors(self, client, sheets_storage, user_id):
        account = make_account(user_id, "A", balance="10")
        client.sheets["accounts"].rows.append(account_to_row(account))

        def broken_batch(requests):
            raise RuntimeError("503")

        client.batch_update = broken_batch

        with pytest.raises(StorageError, match="503"):
            await sheets_storage.commit(LedgerMutation(
                user_id=user_id,
                reason="income",
                balance_deltas={account.id: Decimal("5")},
            ))


class TestAuditStorage:

    @pytest.mark.asyncio
    async def test_append_and_read_back(self, client):
        audit = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.loan_deleted(user_id=uuid4(), loan_id=uuid4(), correlation_id=uuid4())

        assert await audit.append_event(event) is True

        [stored] = await audit.get_events_by_correlation_id(event.correlation_id)
        assert stored.event_id == event.event_id
        assert stored.is_user_action is True

    @pytest.mark.asyncio
    async def test_append_failure_returns_false(self, client):
        client.fail_appends = True
        audit = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.auth_required(action="list accounts")

        assert await audit.append_event(event) is False


class SlowApplyingSheetsClient(FakeSheetsClient):
    """Applies row updates after a delay, like a slow round trip would."""

    def batch_update(self, requests):
        time.sleep(0.05)
        sheets = {sheet.id: sheet for sheet in self.sheets.values()}
        for request in requests:
            cells = request.get("updateCells")
            if cells:
                start = cells["start"]
                values = [
                    value["userEnteredValue"]["stringValue"]
                    for value in cells["rows"][0]["values"]
                ]
                sheets[start["sheetId"]].rows[start["rowIndex"]] = values
        self.batches.append(requests)


class TestSharedAcrossThreads:

    def test_two_session_threads_both_commit(self, user_id):
        client = SlowApplyingSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        account = make_account(user_id, "Salary", balance="0")
        client.sheets["accounts"].rows.append(account_to_row(account))
        errors = []

        def session():
            try:
                asyncio.run(storage.commit(LedgerMutation(
                    user_id=user_id,
                    reason="income",
                    balance_deltas={account.id: Decimal("100")},
                )))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=session) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        [stored] = asyncio.run(storage.list_accounts(user_id))
        assert stored.balance == Decimal("200")

    def test_rename_does_not_undo_a_commit(self, user_id):
        client = SlowApplyingSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        account = make_account(user_id, "Salary", balance="100")
        client.sheets["accounts"].rows.append(account_to_row(account))

        asyncio.run(storage.commit(LedgerMutation(
            user_id=user_id,
            reason="expense",
            balance_deltas={account.id: Decimal("-50")},
        )))
        updated = asyncio.run(storage.update_account(user_id, account.id, {"name": "Main"}))

        assert updated.name == "Main"
        assert updated.balance == Decimal("50")
        assert client.sheets["accounts"].rows[1][2:4] == ["Main", "50"]
