"""
Mutation Guards

Checks a LedgerMutation against the stored rows it touches and works out
the resulting balances. Backends call this inside their atomic step,
before writing anything.
"""

from decimal import Decimal
from uuid import UUID

from moneybook.models.ledger import Account, LedgerMutation, Loan
from moneybook.services.storage.interface import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
)


def resolve_balances(
    mutation: LedgerMutation,
    accounts: dict[UUID, Account],
    loans: dict[UUID, Loan],
    transaction_ids: set[UUID],
) -> dict[UUID, Decimal]:
    """
    New balance for every account the mutation changes.

    Args:
        mutation: The unit of work
        accounts: The user's stored accounts, by id
        loans: The user's stored loans, by id
        transaction_ids: Ids of the user's stored transactions

    Raises:
        ConflictError: A loan's is_returned is not what the caller expected
        NotFoundError: A referenced account or transaction is missing
        InsufficientFundsError: A guarded account would go below zero
    """
    for loan_id, expected in mutation.expected_loan_states.items():
        stored = loans.get(loan_id)
        if stored is None:
            raise ConflictError(f"Loan {loan_id} no longer exists")
        if stored.is_returned != expected:
            raise ConflictError(
                f"Loan {loan_id} was changed by someone else; reload and try again"
            )

    for tx_id in mutation.deleted_transaction_ids:
        if tx_id not in transaction_ids:
            raise NotFoundError(f"Transaction not found: {tx_id}")

    new_balances: dict[UUID, Decimal] = {}
    for account_id, delta in mutation.balance_deltas.items():
        account = accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        new_balances[account_id] = account.balance + delta

    for account_id in mutation.non_negative_accounts:
        account = accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        delta = mutation.balance_deltas.get(account_id, Decimal("0"))
        if account.balance + delta < 0:
            raise InsufficientFundsError(account_id, account.balance, delta)

    return new_balances
