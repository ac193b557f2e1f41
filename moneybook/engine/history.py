"""
Ledger Reconstruction

Rebuilds an account's running balance history from its current balance
and the transactions that touch it.

DESIGN DECISION: We walk BACKWARDS from the stored balance instead of
forwards from an opening balance. The stored balance is authoritative;
the opening balance is not kept anywhere. Replaying forward from
(balance - all changes) therefore always lands on the current balance.
"""

from decimal import Decimal
from typing import Iterable

from moneybook.engine.effects import signed_change
from moneybook.models.ledger import Account, Transaction
from moneybook.models.reports import BalancePoint, LedgerEntry


def chronological(transactions: Iterable[Transaction]) -> list[Transaction]:
    """
    Oldest first by (date, created_at).

    sorted() is stable, so exact ties keep their input order.
    """
    return sorted(transactions, key=lambda tx: (tx.date, tx.created_at))


def reconstruct_history(
    account: Account,
    transactions: Iterable[Transaction],
) -> list[LedgerEntry]:
    """
    Running balance after every transaction that touches `account`.

    Returns newest first. The first entry's balance_after equals the
    account's current balance; an account with no transactions has an
    empty history.
    """
    relevant = chronological(tx for tx in transactions if tx.touches(account.id))
    if not relevant:
        return []

    changes = [signed_change(tx, account.id) for tx in relevant]
    running: Decimal = account.balance - sum(changes, Decimal("0"))

    entries = []
    for tx, change in zip(relevant, changes):
        running += change
        entries.append(LedgerEntry(
            transaction=tx,
            change=change,
            balance_after=running,
        ))

    entries.reverse()
    return entries


def balance_series(entries: list[LedgerEntry]) -> list[BalancePoint]:
    """
    End-of-day balances in date order, for charting.

    Accepts the newest-first output of reconstruct_history.
    """
    by_day: dict = {}
    for entry in reversed(entries):
        # Later entries on the same day overwrite earlier ones
        by_day[entry.transaction.date] = entry.balance_after
    return [BalancePoint(date=day, balance=balance) for day, balance in by_day.items()]
