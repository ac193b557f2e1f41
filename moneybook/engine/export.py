"""
Transaction Export

Builds a delimited-text download of the transaction list. Nothing is
written server-side; the caller hands the string to the browser.
"""

import csv
from datetime import date
from io import StringIO
from typing import Iterable, Optional

from moneybook.engine.effects import balance_impact
from moneybook.models.ledger import Account, Category, Transaction


EXPORT_HEADER = [
    "Date",
    "Description",
    "Category",
    "Account",
    "To Account",
    "Type",
    "Amount",
    "Balance Impact",
]


def export_transactions_csv(
    transactions: Iterable[Transaction],
    accounts: Optional[list[Account]] = None,
    categories: Optional[list[Category]] = None,
) -> str:
    """CSV text, one row per transaction in the given order."""
    account_names = {a.id: a.name for a in accounts or []}
    category_names = {c.id: c.name for c in categories or []}

    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for tx in transactions:
        writer.writerow([
            tx.date.isoformat(),
            tx.description,
            category_names.get(tx.category_id, ""),
            account_names.get(tx.account_id, ""),
            account_names.get(tx.to_account_id, ""),
            tx.type.value,
            str(tx.amount),
            str(balance_impact(tx)),
        ])
    return output.getvalue()


def export_filename(today: date) -> str:
    return f"transactions-{today.isoformat()}.csv"
