"""
In-Memory Storage Implementation

Used by the test suite and when STORAGE_BACKEND=memory.

Rows are copied on the way in and on the way out, so callers can never
mutate stored state by holding on to a model. Every write runs under one
threading.Lock (Streamlit sessions share this object across threads and
event loops) and commit() checks every guard before it writes anything.
Nothing awaits while the lock is held.
"""

import threading
from datetime import date
from typing import Optional
from uuid import UUID

from moneybook.models.audit import AuditEvent
from moneybook.models.ledger import (
    Account,
    Budget,
    Category,
    LedgerMutation,
    Loan,
    Transaction,
)
from moneybook.models.reports import AccountReferences
from moneybook.services.storage.guards import resolve_balances
from moneybook.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    editable_changes,
)


def _newest_first(transactions: list[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda tx: (tx.date, tx.created_at), reverse=True)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Process-local ledger store."""

    def __init__(self):
        self._accounts: dict[UUID, Account] = {}
        self._categories: dict[UUID, Category] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._loans: dict[UUID, Loan] = {}
        self._budgets: dict[UUID, Budget] = {}
        self._lock = threading.Lock()

    def _owned(self, rows: dict, user_id: UUID) -> list:
        with self._lock:
            return [row.model_copy(deep=True) for row in rows.values() if row.user_id == user_id]

    # ===== ACCOUNTS =====

    async def list_accounts(self, user_id: UUID) -> list[Account]:
        return sorted(self._owned(self._accounts, user_id), key=lambda a: a.created_at)

    async def get_account(self, user_id: UUID, account_id: UUID) -> Optional[Account]:
        account = self._accounts.get(account_id)
        if account is None or account.user_id != user_id:
            return None
        return account.model_copy(deep=True)

    async def create_account(self, account: Account) -> Account:
        with self._lock:
            if account.id in self._accounts:
                raise DuplicateError(f"Account already exists: {account.id}")
            self._accounts[account.id] = account.model_copy(deep=True)
        return account

    async def update_account(
        self,
        user_id: UUID,
        account_id: UUID,
        changes: dict,
    ) -> Account:
        with self._lock:
            stored = self._accounts.get(account_id)
            if stored is None or stored.user_id != user_id:
                raise NotFoundError(f"Account not found: {account_id}")
            updated = stored.model_copy(update=editable_changes(changes))
            self._accounts[account_id] = updated
            return updated.model_copy(deep=True)

    async def delete_account(self, user_id: UUID, account_id: UUID) -> bool:
        with self._lock:
            stored = self._accounts.get(account_id)
            if stored is None or stored.user_id != user_id:
                return False
            del self._accounts[account_id]
            return True

    async def count_account_references(
        self,
        user_id: UUID,
        account_id: UUID,
    ) -> AccountReferences:
        with self._lock:
            return AccountReferences(
                account_id=account_id,
                transaction_count=sum(
                    1 for tx in self._transactions.values()
                    if tx.user_id == user_id and tx.touches(account_id)
                ),
                loan_count=sum(
                    1 for loan in self._loans.values()
                    if loan.user_id == user_id and loan.account_id == account_id
                ),
            )

    # ===== CATEGORIES =====

    async def list_categories(self, user_id: UUID) -> list[Category]:
        return sorted(self._owned(self._categories, user_id), key=lambda c: c.created_at)

    async def create_category(self, category: Category) -> Category:
        with self._lock:
            if category.id in self._categories:
                raise DuplicateError(f"Category already exists: {category.id}")
            self._categories[category.id] = category.model_copy(deep=True)
        return category

    # ===== TRANSACTIONS =====

    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        account_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        rows = []
        for tx in self._owned(self._transactions, user_id):
            if date_from and tx.date < date_from:
                continue
            if date_to and tx.date > date_to:
                continue
            if account_id and not tx.touches(account_id):
                continue
            rows.append(tx)
        return _newest_first(rows)

    async def get_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        tx = self._transactions.get(transaction_id)
        if tx is None or tx.user_id != user_id:
            return None
        return tx.model_copy(deep=True)

    # ===== LOANS =====

    async def list_loans(self, user_id: UUID) -> list[Loan]:
        return sorted(
            self._owned(self._loans, user_id),
            key=lambda l: (l.date_given, l.created_at),
            reverse=True,
        )

    async def get_loan(self, user_id: UUID, loan_id: UUID) -> Optional[Loan]:
        loan = self._loans.get(loan_id)
        if loan is None or loan.user_id != user_id:
            return None
        return loan.model_copy(deep=True)

    async def delete_loan(self, user_id: UUID, loan_id: UUID) -> bool:
        with self._lock:
            stored = self._loans.get(loan_id)
            if stored is None or stored.user_id != user_id:
                return False
            del self._loans[loan_id]
            return True

    # ===== BUDGETS =====

    async def list_budgets(
        self,
        user_id: UUID,
        month: Optional[str] = None,
    ) -> list[Budget]:
        rows = [
            b for b in self._owned(self._budgets, user_id)
            if month is None or b.month == month
        ]
        return sorted(rows, key=lambda b: b.created_at)

    async def save_budget(self, budget: Budget) -> Budget:
        with self._lock:
            stored = self._budgets.get(budget.id)
            if stored is not None and stored.user_id != budget.user_id:
                raise NotFoundError(f"Budget not found: {budget.id}")
            for other in self._budgets.values():
                if other.id != budget.id and other.scope_key == budget.scope_key:
                    raise DuplicateError(
                        "A budget for this category, account and month already exists"
                    )
            self._budgets[budget.id] = budget.model_copy(deep=True)
        return budget

    async def delete_budget(self, user_id: UUID, budget_id: UUID) -> bool:
        with self._lock:
            stored = self._budgets.get(budget_id)
            if stored is None or stored.user_id != user_id:
                return False
            del self._budgets[budget_id]
            return True

    # ===== UNIT OF WORK =====

    async def commit(self, mutation: LedgerMutation) -> None:
        with self._lock:
            user_id = mutation.user_id
            new_balances = resolve_balances(
                mutation,
                accounts={
                    a.id: a for a in self._accounts.values() if a.user_id == user_id
                },
                loans={
                    l.id: l for l in self._loans.values() if l.user_id == user_id
                },
                transaction_ids={
                    tx.id for tx in self._transactions.values() if tx.user_id == user_id
                },
            )
            for tx in mutation.new_transactions:
                if tx.id in self._transactions:
                    raise DuplicateError(f"Transaction already exists: {tx.id}")
            for loan in mutation.saved_loans:
                stored = self._loans.get(loan.id)
                if stored is not None and stored.user_id != user_id:
                    raise NotFoundError(f"Loan not found: {loan.id}")

            # Every check passed; nothing below can fail
            for account_id, balance in new_balances.items():
                self._accounts[account_id] = self._accounts[account_id].model_copy(
                    update={"balance": balance}
                )
            for tx_id in mutation.deleted_transaction_ids:
                del self._transactions[tx_id]
            for tx in mutation.new_transactions:
                self._transactions[tx.id] = tx.model_copy(deep=True)
            for loan in mutation.saved_loans:
                self._loans[loan.id] = loan.model_copy(deep=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Process-local append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[UUID] = None,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if user_id is None or e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
