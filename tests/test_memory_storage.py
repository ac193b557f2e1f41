"""Tests for the in-memory backend and the commit guards it shares with Sheets."""

import asyncio
import threading
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import make_account, make_category, make_tx
from moneybook.models import Budget, LedgerMutation, Loan, LoanDirection
from moneybook.services.storage import (
    ConflictError,
    DuplicateError,
    InsufficientFundsError,
    NotFoundError,
    StorageError,
)


def _loan(user_id, account_id, amount="100", direction=LoanDirection.GIVEN):
    return Loan(
        user_id=user_id,
        person_name="Ravi",
        amount=Decimal(amount),
        direction=direction,
        account_id=account_id,
    )


class TestTenantIsolation:

    @pytest.mark.asyncio
    async def test_rows_only_visible_to_owner(self, storage, user_id):
        mine = make_account(user_id, "Mine")
        theirs = make_account(uuid4(), "Theirs")
        await storage.create_account(mine)
        await storage.create_account(theirs)

        accounts = await storage.list_accounts(user_id)

        assert [a.name for a in accounts] == ["Mine"]
        assert await storage.get_account(user_id, theirs.id) is None
        assert await storage.delete_account(user_id, theirs.id) is False

    @pytest.mark.asyncio
    async def test_returned_rows_are_copies(self, storage, user_id):
        account = make_account(user_id, "A", balance="10")
        await storage.create_account(account)

        fetched = await storage.get_account(user_id, account.id)
        fetched.balance = Decimal("999")

        stored = await storage.get_account(user_id, account.id)
        assert stored.balance == Decimal("10")


class TestCommit:

    @pytest.mark.asyncio
    async def test_applies_transaction_and_balances_together(self, storage, user_id):
        a = make_account(user_id, "A", balance="100")
        b = make_account(user_id, "B", balance="0")
        await storage.create_account(a)
        await storage.create_account(b)
        tx = make_tx(user_id, "transfer", "40", a.id, to_account_id=b.id)

        await storage.commit(LedgerMutation(
            user_id=user_id,
            reason="transfer",
            balance_deltas={a.id: Decimal("-40"), b.id: Decimal("40")},
            new_transactions=[tx],
        ))

        assert (await storage.get_account(user_id, a.id)).balance == Decimal("60")
        assert (await storage.get_account(user_id, b.id)).balance == Decimal("40")
        assert await storage.get_transaction(user_id, tx.id) is not None

    @pytest.mark.asyncio
    async def test_failed_guard_writes_nothing(self, storage, user_id):
        account = make_account(user_id, "A", balance="10")
        await storage.create_account(account)
        loan = _loan(user_id, account.id, amount="50")
        tx = make_tx(user_id, "loan_given", "50", account.id, loan_id=loan.id)

        with pytest.raises(InsufficientFundsError):
            await storage.commit(LedgerMutation(
                user_id=user_id,
                reason="create loan",
                balance_deltas={account.id: Decimal("-50")},
                new_transactions=[tx],
                saved_loans=[loan],
                non_negative_accounts=[account.id],
            ))

        assert (await storage.get_account(user_id, account.id)).balance == Decimal("10")
        assert await storage.list_transactions(user_id) == []
        assert await storage.list_loans(user_id) == []

    @pytest.mark.asyncio
    async def test_stale_loan_state_conflicts(self, storage, user_id):
        account = make_account(user_id, "A", balance="100")
        await storage.create_account(account)
        loan = _loan(user_id, account.id)
        await storage.commit(LedgerMutation(user_id=user_id, reason="seed", saved_loans=[loan]))

        with pytest.raises(ConflictError):
            await storage.commit(LedgerMutation(
                user_id=user_id,
                reason="settle",
                balance_deltas={account.id: Decimal("100")},
                saved_loans=[loan.model_copy(update={"is_returned": True})],
                expected_loan_states={loan.id: True},
            ))

        assert (await storage.get_account(user_id, account.id)).balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_missing_account_is_not_found(self, storage, user_id):
        with pytest.raises(NotFoundError):
            await storage.commit(LedgerMutation(
                user_id=user_id,
                reason="orphan",
                balance_deltas={uuid4(): Decimal("1")},
            ))

    @pytest.mark.asyncio
    async def test_cannot_touch_other_users_account(self, storage, user_id):
        theirs = make_account(uuid4(), "Theirs", balance="100")
        await storage.create_account(theirs)

        with pytest.raises(NotFoundError):
            await storage.commit(LedgerMutation(
                user_id=user_id,
                reason="steal",
                balance_deltas={theirs.id: Decimal("-100")},
            ))

    @pytest.mark.asyncio
    async def test_deleting_unknown_transaction(self, storage, user_id):
        with pytest.raises(NotFoundError):
            await storage.commit(LedgerMutation(
                user_id=user_id,
                reason="delete",
                deleted_transaction_ids=[uuid4()],
            ))

    def test_storage_errors_share_a_base(self):
        assert issubclass(InsufficientFundsError, StorageError)
        assert issubclass(ConflictError, StorageError)


class TestBudgetsAndReferences:

    @pytest.mark.asyncio
    async def test_duplicate_budget_scope_rejected(self, storage, user_id):
        food = make_category(user_id)
        first = Budget(user_id=user_id, category_id=food.id, month="2024-03", target_amount=Decimal("10"))
        second = Budget(user_id=user_id, category_id=food.id, month="2024-03", target_amount=Decimal("20"))
        await storage.save_budget(first)

        with pytest.raises(DuplicateError):
            await storage.save_budget(second)

    @pytest.mark.asyncio
    async def test_list_budgets_by_month(self, storage, user_id):
        food = make_category(user_id)
        for month in ("2024-03", "2024-04"):
            await storage.save_budget(
                Budget(user_id=user_id, category_id=food.id, month=month, target_amount=Decimal("10"))
            )

        assert [b.month for b in await storage.list_budgets(user_id, "2024-04")] == ["2024-04"]

    @pytest.mark.asyncio
    async def test_count_account_references(self, storage, user_id):
        a = make_account(user_id, "A", balance="100")
        b = make_account(user_id, "B")
        await storage.create_account(a)
        await storage.create_account(b)
        await storage.commit(LedgerMutation(
            user_id=user_id,
            reason="seed",
            new_transactions=[
                make_tx(user_id, "transfer", "5", a.id, to_account_id=b.id),
                make_tx(user_id, "income", "5", a.id),
            ],
            saved_loans=[_loan(user_id, b.id)],
        ))

        refs = await storage.count_account_references(user_id, b.id)

        assert refs.transaction_count == 1
        assert refs.loan_count == 1


class TestAuditStorage:

    @pytest.mark.asyncio
    async def test_recent_events_filtered_by_user(self, audit_storage, user_id):
        from moneybook.models import AuditEventBuilder

        mine = AuditEventBuilder.loan_deleted(user_id=user_id, loan_id=uuid4(), correlation_id=uuid4())
        theirs = AuditEventBuilder.loan_deleted(user_id=uuid4(), loan_id=uuid4(), correlation_id=uuid4())
        await audit_storage.append_event(mine)
        await audit_storage.append_event(theirs)

        events = await audit_storage.get_recent_events(user_id=user_id)

        assert [e.event_id for e in events] == [mine.event_id]
        assert await audit_storage.get_events_by_entity("loan", mine.entity_id) == [mine]


class TestAccountEdits:

    @pytest.mark.asyncio
    async def test_update_applies_only_given_fields(self, storage, user_id):
        account = make_account(user_id, "Salary", balance="100")
        await storage.create_account(account)
        await storage.commit(LedgerMutation(
            user_id=user_id,
            reason="expense",
            balance_deltas={account.id: Decimal("-40")},
        ))

        # A rename built from a stale read carries no balance
        updated = await storage.update_account(user_id, account.id, {"name": "Main"})

        assert updated.name == "Main"
        assert updated.balance == Decimal("60")
        assert (await storage.get_account(user_id, account.id)).balance == Decimal("60")

    @pytest.mark.asyncio
    async def test_balance_is_set_absolutely(self, storage, user_id):
        account = make_account(user_id, "Salary", balance="100")
        await storage.create_account(account)

        updated = await storage.update_account(user_id, account.id, {"balance": Decimal("7")})

        assert updated.balance == Decimal("7")

    @pytest.mark.asyncio
    async def test_ownership_columns_are_not_editable(self, storage, user_id):
        account = make_account(user_id, "Salary")
        await storage.create_account(account)

        updated = await storage.update_account(
            user_id, account.id, {"user_id": uuid4(), "id": uuid4(), "color": "#000000"}
        )

        assert updated.id == account.id
        assert updated.user_id == user_id
        assert updated.color == "#000000"

    @pytest.mark.asyncio
    async def test_other_users_account_not_found(self, storage, user_id):
        theirs = make_account(uuid4(), "Theirs")
        await storage.create_account(theirs)

        with pytest.raises(NotFoundError):
            await storage.update_account(user_id, theirs.id, {"name": "Mine"})


class TestSharedAcrossThreads:

    def test_commits_from_two_session_threads_all_apply(self, storage, user_id):
        account = make_account(user_id, "Salary", balance="0")
        asyncio.run(storage.create_account(account))
        errors = []

        def session():
            try:
                for _ in range(50):
                    asyncio.run(storage.commit(LedgerMutation(
                        user_id=user_id,
                        reason="income",
                        balance_deltas={account.id: Decimal("1")},
                    )))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=session) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        assert asyncio.run(storage.get_account(user_id, account.id)).balance == Decimal("100")
