"""Filtering and sorting for the transaction and loan lists."""

from typing import Iterable, Optional

from moneybook.models.ledger import (
    Account,
    Category,
    Loan,
    LoanDirection,
    Transaction,
)
from moneybook.models.reports import TransactionFilter


def _matches_search(
    tx: Transaction,
    query: str,
    account_names: dict,
    category_names: dict,
) -> bool:
    """Case-insensitive match on description, category, source account or amount."""
    haystacks = (
        tx.description,
        category_names.get(tx.category_id, ""),
        account_names.get(tx.account_id, ""),
        str(tx.amount),
    )
    return any(query in text.lower() for text in haystacks)


def filter_transactions(
    transactions: Iterable[Transaction],
    criteria: TransactionFilter,
    accounts: Optional[list[Account]] = None,
    categories: Optional[list[Category]] = None,
) -> list[Transaction]:
    """
    Apply every set criterion (AND), then sort.

    Date bounds are inclusive. The account criterion matches either side
    of a transfer. Sorting is stable, so equal keys keep input order.
    """
    account_names = {a.id: a.name for a in accounts or []}
    category_names = {c.id: c.name for c in categories or []}
    query = (criteria.search or "").strip().lower()

    rows = []
    for tx in transactions:
        if criteria.account_id and not tx.touches(criteria.account_id):
            continue
        if criteria.category_id and tx.category_id != criteria.category_id:
            continue
        if criteria.type and tx.type != criteria.type:
            continue
        if criteria.date_from and tx.date < criteria.date_from:
            continue
        if criteria.date_to and tx.date > criteria.date_to:
            continue
        if query and not _matches_search(tx, query, account_names, category_names):
            continue
        rows.append(tx)

    reverse = criteria.sort_order == "desc"
    if criteria.sort_by == "amount":
        rows.sort(key=lambda tx: tx.amount, reverse=reverse)
    else:
        rows.sort(key=lambda tx: tx.date, reverse=reverse)
    return rows


def filter_loans(
    loans: Iterable[Loan],
    direction: Optional[LoanDirection] = None,
    search: Optional[str] = None,
) -> list[Loan]:
    """Loans by direction and by person name substring."""
    query = (search or "").strip().lower()
    return [
        loan for loan in loans
        if (direction is None or loan.direction == direction)
        and (not query or query in loan.person_name.lower())
    ]
