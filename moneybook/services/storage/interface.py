"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the whole app against an in-memory store for tests
2. Keep Google Sheets as the persistent backend
3. Swap in a real database later without touching the flows

Every read takes the owning user_id and returns only that user's rows.
Every write of money goes through commit(), which applies one
LedgerMutation atomically: all of it or none of it.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
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


# Fields update_account may change. balance is an absolute value.
ACCOUNT_EDITABLE_FIELDS = ("name", "color", "kind", "balance")


def editable_changes(changes: dict) -> dict:
    """Drop keys update_account does not own (id, user_id, created_at...)."""
    return {k: v for k, v in changes.items() if k in ACCOUNT_EDITABLE_FIELDS}


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods.
    """

    # ===== ACCOUNTS =====

    @abstractmethod
    async def list_accounts(self, user_id: UUID) -> list[Account]:
        """
        List a user's accounts, oldest first.
        """
        pass

    @abstractmethod
    async def get_account(self, user_id: UUID, account_id: UUID) -> Optional[Account]:
        """
        Retrieve one account.

        Returns:
            The account if it exists and belongs to user_id, None otherwise
        """
        pass

    @abstractmethod
    async def create_account(self, account: Account) -> Account:
        """
        Insert a new account.

        Raises:
            DuplicateError: If the id already exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_account(
        self,
        user_id: UUID,
        account_id: UUID,
        changes: dict,
    ) -> Account:
        """
        Apply `changes` to the account as it is stored right now.

        Only ACCOUNT_EDITABLE_FIELDS are written; every other column,
        including a balance that is not in `changes`, keeps its stored
        value. Runs under the same lock as commit(), so a concurrent
        commit's balance change is never overwritten by a rename.

        Returns:
            The account after the change

        Raises:
            NotFoundError: If the account doesn't exist for this user
        """
        pass

    @abstractmethod
    async def delete_account(self, user_id: UUID, account_id: UUID) -> bool:
        """
        Delete an account. Referencing rows are left in place.

        Returns:
            True if a row was deleted
        """
        pass

    @abstractmethod
    async def count_account_references(
        self,
        user_id: UUID,
        account_id: UUID,
    ) -> AccountReferences:
        """
        Count transactions (either side) and loans pointing at an account.
        """
        pass

    # ===== CATEGORIES =====

    @abstractmethod
    async def list_categories(self, user_id: UUID) -> list[Category]:
        pass

    @abstractmethod
    async def create_category(self, category: Category) -> Category:
        pass

    # ===== TRANSACTIONS =====

    @abstractmethod
    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        account_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        List a user's transactions with optional filters.

        Args:
            user_id: Owner
            date_from: Transactions on or after this date
            date_to: Transactions on or before this date
            account_id: Transactions whose source or destination is this account

        Returns:
            Matching transactions, newest first by (date, created_at)
        """
        pass

    @abstractmethod
    async def get_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        pass

    # ===== LOANS =====

    @abstractmethod
    async def list_loans(self, user_id: UUID) -> list[Loan]:
        """List a user's loans, newest date first."""
        pass

    @abstractmethod
    async def get_loan(self, user_id: UUID, loan_id: UUID) -> Optional[Loan]:
        pass

    @abstractmethod
    async def delete_loan(self, user_id: UUID, loan_id: UUID) -> bool:
        """
        Delete a loan record. Balances and transactions are untouched.
        """
        pass

    # ===== BUDGETS =====

    @abstractmethod
    async def list_budgets(
        self,
        user_id: UUID,
        month: Optional[str] = None,
    ) -> list[Budget]:
        pass

    @abstractmethod
    async def save_budget(self, budget: Budget) -> Budget:
        """
        Insert or replace a budget (matched by id).

        Raises:
            DuplicateError: If another budget already has the same
                (user, category, account-or-all, month)
        """
        pass

    @abstractmethod
    async def delete_budget(self, user_id: UUID, budget_id: UUID) -> bool:
        pass

    # ===== UNIT OF WORK =====

    @abstractmethod
    async def commit(self, mutation: LedgerMutation) -> None:
        """
        Apply a ledger mutation atomically.

        Guards are evaluated against the stored state inside the same
        atomic step. If any guard fails or any referenced row is
        missing, nothing is written.

        Raises:
            ConflictError: A loan's stored is_returned differs from expected
            InsufficientFundsError: A guarded account would go negative
            NotFoundError: A referenced account or transaction doesn't exist
            StorageError: The backend rejected the write
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one loan toggle).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[UUID] = None,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, optionally for one user.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConflictError(StorageError):
    """Stored state changed since the caller read it. Nothing was written."""
    pass


class InsufficientFundsError(StorageError):
    """A guarded account would end up below zero. Nothing was written."""

    def __init__(self, account_id: UUID, balance: Decimal, delta: Decimal):
        self.account_id = account_id
        self.balance = balance
        self.delta = delta
        super().__init__(
            f"Insufficient balance in account {account_id}: "
            f"balance {balance}, change {delta}"
        )
