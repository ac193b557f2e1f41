"""
Shared fixtures.

Everything runs against the in-memory backend; no test talks to Google.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from moneybook.models import Account, Category, Transaction, TransactionType
from moneybook.orchestrator import create_app_components
from moneybook.services.identity import StaticIdentityProvider
from moneybook.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def identity(user_id):
    return StaticIdentityProvider(user_id)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def app(identity, storage, audit_storage):
    return create_app_components(
        identity,
        ledger_storage=storage,
        audit_storage=audit_storage,
    )


def make_account(user_id, name="Salary", balance="0", **kwargs) -> Account:
    return Account(user_id=user_id, name=name, balance=Decimal(balance), **kwargs)


def make_tx(user_id, tx_type, amount, account_id, when=date(2024, 3, 10), **kwargs) -> Transaction:
    return Transaction(
        user_id=user_id,
        type=TransactionType(tx_type),
        amount=Decimal(amount),
        account_id=account_id,
        date=when,
        **kwargs,
    )


def make_category(user_id, name="food") -> Category:
    return Category(user_id=user_id, name=name)
