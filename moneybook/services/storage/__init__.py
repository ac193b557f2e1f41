"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory backend serves tests and local runs; Google Sheets is the
persistent backend.
"""

from moneybook.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    InsufficientFundsError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from moneybook.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from moneybook.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "InsufficientFundsError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
