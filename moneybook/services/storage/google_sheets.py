"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the persistent backend because:
1. Users can look at their own ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

One worksheet per table. Every row carries user_id, and every read
filters on it before anything is returned.

ATOMICITY: A LedgerMutation becomes ONE spreadsheets.batchUpdate call.
The Sheets API applies all requests of a batch or none of them, so a
transaction insert can never land without its balance change. Commits
and single-row writes are serialized per process by one threading.Lock
(Streamlit sessions call in from their own threads and event loops);
guards and account edits are evaluated against rows read inside it.

TRADEOFFS:
- Sheets has no conditional writes, so two PROCESSES committing against
  the same account at the same moment can still lose an update
- Limited query capabilities (we filter in Python)
"""

import json
import threading
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from moneybook.config import get_settings
from moneybook.models.audit import AuditEvent, AuditEventType, AuditSeverity
from moneybook.models.ledger import (
    Account,
    AccountKind,
    Budget,
    Category,
    LedgerMutation,
    Loan,
    LoanDirection,
    Transaction,
    TransactionType,
)
from moneybook.models.reports import AccountReferences
from moneybook.services.storage.guards import resolve_balances
from moneybook.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    editable_changes,
)


logger = structlog.get_logger("moneybook.storage")


# =============================================================================
# COLUMN LAYOUTS
# =============================================================================

ACCOUNT_COLUMNS = [
    "id",
    "user_id",
    "name",
    "balance",
    "color",
    "kind",
    "created_at",
]

CATEGORY_COLUMNS = [
    "id",
    "user_id",
    "name",
    "icon",
    "created_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "amount",
    "account_id",
    "to_account_id",
    "category_id",
    "description",
    "date",
    "created_at",
    "loan_id",
]

LOAN_COLUMNS = [
    "id",
    "user_id",
    "person_name",
    "amount",
    "direction",
    "description",
    "account_id",
    "date_given",
    "is_returned",
    "returned_at",
    "created_at",
]

BUDGET_COLUMNS = [
    "id",
    "user_id",
    "category_id",
    "account_id",
    "month",
    "target_amount",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _cell(row: list, index: int, default: str = "") -> str:
    """Handle missing trailing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _opt_uuid(value: Optional[UUID]) -> str:
    return str(value) if value else ""


def _parse_opt_uuid(value: str) -> Optional[UUID]:
    return UUID(value) if value else None


def account_to_row(account: Account) -> list:
    return [
        str(account.id),
        str(account.user_id),
        account.name,
        str(account.balance),
        account.color,
        account.kind.value,
        account.created_at.isoformat(),
    ]


def row_to_account(row: list) -> Account:
    return Account(
        id=UUID(_cell(row, 0)),
        user_id=UUID(_cell(row, 1)),
        name=_cell(row, 2),
        balance=Decimal(_cell(row, 3, "0")),
        color=_cell(row, 4, "#3b82f6"),
        kind=AccountKind(_cell(row, 5, AccountKind.OTHER.value)),
        created_at=datetime.fromisoformat(_cell(row, 6)),
    )


def category_to_row(category: Category) -> list:
    return [
        str(category.id),
        str(category.user_id),
        category.name,
        category.icon or "",
        category.created_at.isoformat(),
    ]


def row_to_category(row: list) -> Category:
    return Category(
        id=UUID(_cell(row, 0)),
        user_id=UUID(_cell(row, 1)),
        name=_cell(row, 2),
        icon=_cell(row, 3) or None,
        created_at=datetime.fromisoformat(_cell(row, 4)),
    )


def transaction_to_row(tx: Transaction) -> list:
    return [
        str(tx.id),
        str(tx.user_id),
        tx.type.value,
        str(tx.amount),
        _opt_uuid(tx.account_id),
        _opt_uuid(tx.to_account_id),
        _opt_uuid(tx.category_id),
        tx.description,
        tx.date.isoformat(),
        tx.created_at.isoformat(),
        _opt_uuid(tx.loan_id),
    ]


def row_to_transaction(row: list) -> Transaction:
    return Transaction(
        id=UUID(_cell(row, 0)),
        user_id=UUID(_cell(row, 1)),
        type=TransactionType(_cell(row, 2)),
        amount=Decimal(_cell(row, 3)),
        account_id=_parse_opt_uuid(_cell(row, 4)),
        to_account_id=_parse_opt_uuid(_cell(row, 5)),
        category_id=_parse_opt_uuid(_cell(row, 6)),
        description=_cell(row, 7),
        date=date.fromisoformat(_cell(row, 8)),
        created_at=datetime.fromisoformat(_cell(row, 9)),
        loan_id=_parse_opt_uuid(_cell(row, 10)),
    )


def loan_to_row(loan: Loan) -> list:
    return [
        str(loan.id),
        str(loan.user_id),
        loan.person_name,
        str(loan.amount),
        loan.direction.value,
        loan.description,
        str(loan.account_id),
        loan.date_given.isoformat(),
        str(loan.is_returned),
        loan.returned_at.isoformat() if loan.returned_at else "",
        loan.created_at.isoformat(),
    ]


def row_to_loan(row: list) -> Loan:
    returned_at = _cell(row, 9)
    return Loan(
        id=UUID(_cell(row, 0)),
        user_id=UUID(_cell(row, 1)),
        person_name=_cell(row, 2),
        amount=Decimal(_cell(row, 3)),
        direction=LoanDirection(_cell(row, 4)),
        description=_cell(row, 5),
        account_id=UUID(_cell(row, 6)),
        date_given=date.fromisoformat(_cell(row, 7)),
        is_returned=_cell(row, 8).lower() == "true",
        returned_at=datetime.fromisoformat(returned_at) if returned_at else None,
        created_at=datetime.fromisoformat(_cell(row, 10)),
    )


def budget_to_row(budget: Budget) -> list:
    return [
        str(budget.id),
        str(budget.user_id),
        str(budget.category_id),
        _opt_uuid(budget.account_id),
        budget.month,
        str(budget.target_amount),
        budget.created_at.isoformat(),
    ]


def row_to_budget(row: list) -> Budget:
    return Budget(
        id=UUID(_cell(row, 0)),
        user_id=UUID(_cell(row, 1)),
        category_id=UUID(_cell(row, 2)),
        account_id=_parse_opt_uuid(_cell(row, 3)),
        month=_cell(row, 4),
        target_amount=Decimal(_cell(row, 5)),
        created_at=datetime.fromisoformat(_cell(row, 6)),
    )


def row_to_event(row: list) -> AuditEvent:
    return AuditEvent(
        event_id=UUID(_cell(row, 0)),
        timestamp=datetime.fromisoformat(_cell(row, 1)),
        event_type=AuditEventType(_cell(row, 2)),
        severity=AuditSeverity(_cell(row, 3)),
        user_id=_parse_opt_uuid(_cell(row, 4)),
        entity_type=_cell(row, 5) or None,
        entity_id=_parse_opt_uuid(_cell(row, 6)),
        correlation_id=_parse_opt_uuid(_cell(row, 7)),
        description=_cell(row, 8),
        details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
        error_message=_cell(row, 10) or None,
        is_user_action=_cell(row, 11).lower() == "true",
    )


# =============================================================================
# BATCH REQUEST BUILDERS
# =============================================================================

def _row_data(values: list) -> dict:
    return {
        "values": [
            {"userEnteredValue": {"stringValue": str(value)}} for value in values
        ]
    }


def update_row_request(sheet_id: int, row_index: int, values: list) -> dict:
    """Overwrite one row. row_index is 0-based; row 0 is the header."""
    return {
        "updateCells": {
            "rows": [_row_data(values)],
            "fields": "userEnteredValue",
            "start": {
                "sheetId": sheet_id,
                "rowIndex": row_index,
                "columnIndex": 0,
            },
        }
    }


def append_rows_request(sheet_id: int, rows: list[list]) -> dict:
    """Append rows after the last row with data."""
    return {
        "appendCells": {
            "sheetId": sheet_id,
            "rows": [_row_data(values) for values in rows],
            "fields": "userEnteredValue",
        }
    }


def delete_row_request(sheet_id: int, row_index: int) -> dict:
    return {
        "deleteDimension": {
            "range": {
                "sheetId": sheet_id,
                "dimension": "ROWS",
                "startIndex": row_index,
                "endIndex": row_index + 1,
            }
        }
    }


# =============================================================================
# CLIENT
# =============================================================================

class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet creation and retry logic for
    idempotent API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with a header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def accounts_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS)

    def categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.categories_sheet_name, CATEGORY_COLUMNS)

    def transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=5000
        )

    def loans_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.loans_sheet_name, LOAN_COLUMNS)

    def budgets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS)

    def audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        """All values including the header row."""
        return sheet.get_all_values()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def append_row(self, sheet: gspread.Worksheet, values: list) -> None:
        sheet.append_row(values, value_input_option="RAW")

    def batch_update(self, requests: list[dict]) -> None:
        """
        Apply requests as one all-or-nothing batch.

        Not retried: a timeout may hide a batch that did apply.
        """
        self.get_spreadsheet().batch_update({"requests": requests})


# =============================================================================
# LEDGER STORAGE
# =============================================================================

class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Rows are stored one per line, in the column order defined above.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._commit_lock = threading.Lock()

    def _load(
        self,
        sheet: gspread.Worksheet,
        parse: Callable[[list], object],
        user_id: UUID,
    ) -> list[tuple[int, object]]:
        """
        Parse a user's rows, keeping each row's 0-based sheet index.

        Other users' rows are never parsed.
        """
        user_key = str(user_id)
        loaded = []
        for idx, row in enumerate(self._client.read_rows(sheet)[1:], start=1):
            if not row or not row[0] or _cell(row, 1) != user_key:
                continue
            try:
                loaded.append((idx, parse(row)))
            except (ValueError, IndexError, InvalidOperation) as e:
                logger.warning(
                    "skipping_malformed_row",
                    sheet=sheet.title,
                    row_index=idx,
                    error=str(e),
                )
        return loaded

    def _rows(self, sheet_getter, parse, user_id: UUID) -> list:
        try:
            return [item for _, item in self._load(sheet_getter(), parse, user_id)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {parse.__name__}: {e}")

    def _delete_by_id(self, sheet: gspread.Worksheet, parse, user_id: UUID, row_id: UUID) -> bool:
        for idx, item in self._load(sheet, parse, user_id):
            if item.id == row_id:
                self._client.batch_update([delete_row_request(sheet.id, idx)])
                return True
        return False

    # ===== ACCOUNTS =====

    async def list_accounts(self, user_id: UUID) -> list[Account]:
        accounts = self._rows(self._client.accounts_sheet, row_to_account, user_id)
        return sorted(accounts, key=lambda a: a.created_at)

    async def get_account(self, user_id: UUID, account_id: UUID) -> Optional[Account]:
        for account in await self.list_accounts(user_id):
            if account.id == account_id:
                return account
        return None

    async def create_account(self, account: Account) -> Account:
        try:
            sheet = self._client.accounts_sheet()
            self._client.append_row(sheet, account_to_row(account))
            return account
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")

    async def update_account(
        self,
        user_id: UUID,
        account_id: UUID,
        changes: dict,
    ) -> Account:
        with self._commit_lock:
            try:
                sheet = self._client.accounts_sheet()
                # Re-read under the lock; the stored balance may have moved
                for idx, stored in self._load(sheet, row_to_account, user_id):
                    if stored.id == account_id:
                        updated = stored.model_copy(update=editable_changes(changes))
                        self._client.batch_update([
                            update_row_request(sheet.id, idx, account_to_row(updated))
                        ])
                        return updated
                raise NotFoundError(f"Account not found: {account_id}")
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to update account: {e}")

    async def delete_account(self, user_id: UUID, account_id: UUID) -> bool:
        with self._commit_lock:
            try:
                return self._delete_by_id(
                    self._client.accounts_sheet(), row_to_account, user_id, account_id
                )
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to delete account: {e}")

    async def count_account_references(
        self,
        user_id: UUID,
        account_id: UUID,
    ) -> AccountReferences:
        transactions = await self.list_transactions(user_id, account_id=account_id)
        loans = await self.list_loans(user_id)
        return AccountReferences(
            account_id=account_id,
            transaction_count=len(transactions),
            loan_count=sum(1 for loan in loans if loan.account_id == account_id),
        )

    # ===== CATEGORIES =====

    async def list_categories(self, user_id: UUID) -> list[Category]:
        categories = self._rows(self._client.categories_sheet, row_to_category, user_id)
        return sorted(categories, key=lambda c: c.created_at)

    async def create_category(self, category: Category) -> Category:
        try:
            sheet = self._client.categories_sheet()
            self._client.append_row(sheet, category_to_row(category))
            return category
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    # ===== TRANSACTIONS =====

    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        account_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        rows = []
        for tx in self._rows(self._client.transactions_sheet, row_to_transaction, user_id):
            if date_from and tx.date < date_from:
                continue
            if date_to and tx.date > date_to:
                continue
            if account_id and not tx.touches(account_id):
                continue
            rows.append(tx)
        # Newest first
        rows.sort(key=lambda tx: (tx.date, tx.created_at), reverse=True)
        return rows

    async def get_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        for tx in self._rows(self._client.transactions_sheet, row_to_transaction, user_id):
            if tx.id == transaction_id:
                return tx
        return None

    # ===== LOANS =====

    async def list_loans(self, user_id: UUID) -> list[Loan]:
        loans = self._rows(self._client.loans_sheet, row_to_loan, user_id)
        loans.sort(key=lambda l: (l.date_given, l.created_at), reverse=True)
        return loans

    async def get_loan(self, user_id: UUID, loan_id: UUID) -> Optional[Loan]:
        for loan in self._rows(self._client.loans_sheet, row_to_loan, user_id):
            if loan.id == loan_id:
                return loan
        return None

    async def delete_loan(self, user_id: UUID, loan_id: UUID) -> bool:
        with self._commit_lock:
            try:
                return self._delete_by_id(
                    self._client.loans_sheet(), row_to_loan, user_id, loan_id
                )
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to delete loan: {e}")

    # ===== BUDGETS =====

    async def list_budgets(
        self,
        user_id: UUID,
        month: Optional[str] = None,
    ) -> list[Budget]:
        budgets = [
            b for b in self._rows(self._client.budgets_sheet, row_to_budget, user_id)
            if month is None or b.month == month
        ]
        return sorted(budgets, key=lambda b: b.created_at)

    async def save_budget(self, budget: Budget) -> Budget:
        with self._commit_lock:
            try:
                sheet = self._client.budgets_sheet()
                existing_index = None
                for idx, stored in self._load(sheet, row_to_budget, budget.user_id):
                    if stored.id == budget.id:
                        existing_index = idx
                    elif stored.scope_key == budget.scope_key:
                        raise DuplicateError(
                            "A budget for this category, account and month already exists"
                        )
                if existing_index is None:
                    self._client.append_row(sheet, budget_to_row(budget))
                else:
                    self._client.batch_update([
                        update_row_request(sheet.id, existing_index, budget_to_row(budget))
                    ])
                return budget
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save budget: {e}")

    async def delete_budget(self, user_id: UUID, budget_id: UUID) -> bool:
        with self._commit_lock:
            try:
                return self._delete_by_id(
                    self._client.budgets_sheet(), row_to_budget, user_id, budget_id
                )
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to delete budget: {e}")

    # ===== UNIT OF WORK =====

    def build_commit_requests(self, mutation: LedgerMutation) -> list[dict]:
        """
        Read the rows the mutation touches, check guards, and build the
        batch. Raises before returning anything if a guard fails.

        Request order: row updates, then appends, then deletes from the
        bottom up so earlier row indices stay valid.
        """
        user_id = mutation.user_id
        accounts_sheet = self._client.accounts_sheet()
        loans_sheet = self._client.loans_sheet()
        tx_sheet = self._client.transactions_sheet()

        account_rows = self._load(accounts_sheet, row_to_account, user_id)
        loan_rows = self._load(loans_sheet, row_to_loan, user_id)
        tx_rows = self._load(tx_sheet, row_to_transaction, user_id)

        accounts = {a.id: a for _, a in account_rows}
        account_index = {a.id: idx for idx, a in account_rows}
        loans = {l.id: l for _, l in loan_rows}
        loan_index = {l.id: idx for idx, l in loan_rows}
        tx_index = {tx.id: idx for idx, tx in tx_rows}

        new_balances = resolve_balances(mutation, accounts, loans, set(tx_index))
        for tx in mutation.new_transactions:
            if tx.id in tx_index:
                raise DuplicateError(f"Transaction already exists: {tx.id}")

        updates = []
        appends = []

        for account_id, balance in new_balances.items():
            updated = accounts[account_id].model_copy(update={"balance": balance})
            updates.append(update_row_request(
                accounts_sheet.id, account_index[account_id], account_to_row(updated)
            ))

        new_loans = []
        for loan in mutation.saved_loans:
            if loan.id in loan_index:
                updates.append(update_row_request(
                    loans_sheet.id, loan_index[loan.id], loan_to_row(loan)
                ))
            else:
                new_loans.append(loan_to_row(loan))
        if new_loans:
            appends.append(append_rows_request(loans_sheet.id, new_loans))

        if mutation.new_transactions:
            appends.append(append_rows_request(
                tx_sheet.id,
                [transaction_to_row(tx) for tx in mutation.new_transactions],
            ))

        deletes = [
            delete_row_request(tx_sheet.id, idx)
            for idx in sorted(
                (tx_index[tx_id] for tx_id in mutation.deleted_transaction_ids),
                reverse=True,
            )
        ]

        return updates + appends + deletes

    async def commit(self, mutation: LedgerMutation) -> None:
        with self._commit_lock:
            try:
                requests = self.build_commit_requests(mutation)
                if requests:
                    self._client.batch_update(requests)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to commit '{mutation.reason}': {e}")
        logger.info(
            "ledger_mutation_committed",
            user_id=str(mutation.user_id),
            reason=mutation.reason,
            request_count=len(requests),
        )


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.read_rows(self._client.audit_sheet())[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(row_to_event(row))
            except (ValueError, IndexError, InvalidOperation):
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._client.append_row(self._client.audit_sheet(), event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[UUID] = None,
    ) -> list[AuditEvent]:
        events = [e for e in self._events() if user_id is None or e.user_id == user_id]
        # Newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
