"""
Balance Effects

The single table that decides how a transaction moves money.
Reconstruction, summaries and the write path all read from here, so a
transaction can never mean one thing on screen and another in storage.
"""

from decimal import Decimal
from uuid import UUID

from moneybook.models.ledger import ZERO, Transaction, TransactionType


# Types that add money to their source account
INFLOW_TYPES = frozenset({
    TransactionType.INCOME,
    TransactionType.LOAN_RECEIVED,
})

# Types that take money out of their source account
OUTFLOW_TYPES = frozenset({
    TransactionType.EXPENSE,
    TransactionType.LOAN_GIVEN,
    TransactionType.TRANSFER,
})


def signed_change(tx: Transaction, account_id: UUID) -> Decimal:
    """
    Signed effect of `tx` on one account.

    | type                          | account is  | change  |
    |-------------------------------|-------------|---------|
    | income, loan_received         | source      | +amount |
    | expense, loan_given, transfer | source      | -amount |
    | transfer                      | destination | +amount |
    | anything else                 |             | 0       |
    """
    if tx.account_id == account_id:
        if tx.type in INFLOW_TYPES:
            return tx.amount
        if tx.type in OUTFLOW_TYPES:
            return -tx.amount
    if tx.type == TransactionType.TRANSFER and tx.to_account_id == account_id:
        return tx.amount
    return ZERO


def balance_effects(tx: Transaction) -> dict[UUID, Decimal]:
    """All non-zero account deltas caused by `tx`."""
    effects: dict[UUID, Decimal] = {}
    for account_id in (tx.account_id, tx.to_account_id):
        if account_id is None or account_id in effects:
            continue
        change = signed_change(tx, account_id)
        if change:
            effects[account_id] = change
    return effects


def balance_impact(tx: Transaction) -> Decimal:
    """
    Signed amount shown in exports.

    Negative for expense and loan_given, positive otherwise (transfers
    included, since the export row is not tied to one account).
    """
    if tx.type in (TransactionType.EXPENSE, TransactionType.LOAN_GIVEN):
        return -tx.amount
    return tx.amount
