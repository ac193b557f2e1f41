"""
Local Validation

DESIGN DECISION: Validation happens in two distinct layers:

LAYER 1 - SHAPE (pydantic models):
- Types, required fields, formats
- Per-type transaction shape (a transfer needs two distinct accounts...)
- Raised at construction, before a flow ever sees the row

LAYER 2 - CONTEXT (this module):
- Checks that need the user's other rows: duplicate account names,
  unknown accounts or categories, budget uniqueness, loan funds
- Suspicious-but-legal values become warnings, not errors

Flows run layer 2 against the rows they just read and raise
LedgerValidationError BEFORE any storage write.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the user to correct.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from moneybook.config import get_settings
from moneybook.models.ledger import (
    Account,
    Budget,
    Category,
    Loan,
    LoanDirection,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)


class LedgerValidationError(Exception):
    """Input rejected by local validation. Nothing was written."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.error_messages) or "Validation failed")


def _result(subject: str, issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        subject=subject,
        is_valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
        warnings=[issue.message for issue in issues if issue.severity == "warning"],
    )


class LedgerValidator:
    """
    Validates user input against the user's current rows.

    All methods are synchronous and side-effect free; the caller passes in
    the rows it read.
    """

    def __init__(
        self,
        max_transaction_amount: Optional[Decimal] = None,
        future_date_tolerance_days: Optional[int] = None,
        currency_symbol: Optional[str] = None,
    ):
        settings = get_settings().app
        self._max_amount = (
            max_transaction_amount
            if max_transaction_amount is not None
            else Decimal(str(settings.max_transaction_amount))
        )
        self._future_days = (
            future_date_tolerance_days
            if future_date_tolerance_days is not None
            else settings.future_date_tolerance_days
        )
        self._currency = currency_symbol or settings.currency_symbol

    # ===== ACCOUNTS =====

    def validate_account(
        self,
        name: str,
        existing: list[Account],
        exclude_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Account names are unique per user, ignoring case and surrounding
        whitespace. exclude_id skips the account being renamed.
        """
        issues = []
        normalized = name.strip().lower()

        if not normalized:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Account name is required",
                severity="error",
            ))
        elif any(
            account.name.strip().lower() == normalized and account.id != exclude_id
            for account in existing
        ):
            issues.append(ValidationIssue(
                field="name",
                issue_type="duplicate",
                message=f'An account named "{name.strip()}" already exists',
                severity="error",
                suggested_fix="Choose a different name",
            ))

        return _result("account", issues)

    # ===== TRANSACTIONS =====

    def _amount_issues(self, amount: Decimal) -> list[ValidationIssue]:
        if amount > self._max_amount:
            return [ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({self._currency}{amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            )]
        return []

    def _date_issues(self, when: date, today: date) -> list[ValidationIssue]:
        if when > today + timedelta(days=self._future_days):
            return [ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({when}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            )]
        return []

    def validate_transaction(
        self,
        tx: Transaction,
        accounts: list[Account],
        categories: list[Category],
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Referenced rows must exist and belong to the same user."""
        issues = []
        today = today or date.today()
        owned_accounts = {a.id: a for a in accounts if a.user_id == tx.user_id}
        owned_categories = {c.id for c in categories if c.user_id == tx.user_id}

        if tx.account_id is None:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="missing",
                message="Choose an account for this transaction",
                severity="error",
            ))
        elif tx.account_id not in owned_accounts:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="not_found",
                message="Selected account does not exist",
                severity="error",
                suggested_fix="Reload and pick an existing account",
            ))

        if tx.to_account_id is not None and tx.to_account_id not in owned_accounts:
            issues.append(ValidationIssue(
                field="to_account_id",
                issue_type="not_found",
                message="Destination account does not exist",
                severity="error",
                suggested_fix="Reload and pick an existing account",
            ))

        if tx.category_id is not None and tx.category_id not in owned_categories:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="not_found",
                message="Selected category does not exist",
                severity="error",
            ))

        issues.extend(self._amount_issues(tx.amount))
        issues.extend(self._date_issues(tx.date, today))

        source = owned_accounts.get(tx.account_id)
        if (
            source is not None
            and tx.type in (TransactionType.EXPENSE, TransactionType.TRANSFER)
            and source.balance - tx.amount < 0
        ):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="overdraft",
                message=f"This will take {source.name} below zero",
                severity="warning",
            ))

        return _result("transaction", issues)

    # ===== LOANS =====

    def validate_loan(
        self,
        loan: Loan,
        accounts: list[Account],
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        A given loan needs the money to be in the account right now.
        """
        issues = []
        today = today or date.today()
        account = next(
            (a for a in accounts if a.id == loan.account_id and a.user_id == loan.user_id),
            None,
        )

        if account is None:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="not_found",
                message="Selected account does not exist",
                severity="error",
            ))
        elif loan.direction == LoanDirection.GIVEN and account.balance < loan.amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="insufficient_funds",
                message=(
                    f"Insufficient balance in {account.name}. "
                    f"Available: {self._currency}{account.balance:,.2f}"
                ),
                severity="error",
                suggested_fix="Lend a smaller amount or choose another account",
            ))

        issues.extend(self._amount_issues(loan.amount))
        issues.extend(self._date_issues(loan.date_given, today))
        return _result("loan", issues)

    def validate_loan_status_change(
        self,
        loan: Loan,
        account: Optional[Account],
        to_returned: bool,
    ) -> ValidationResult:
        """The account must stay non-negative after the status change."""
        issues = []
        if account is None:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="not_found",
                message="The loan's account no longer exists",
                severity="error",
            ))
            return _result("loan", issues)

        delta = -loan.outstanding_effect if to_returned else loan.outstanding_effect
        if account.balance + delta < 0:
            issues.append(ValidationIssue(
                field="is_returned",
                issue_type="insufficient_funds",
                message=(
                    f"Insufficient balance in {account.name} to "
                    f"{'settle' if to_returned else 'reopen'} this loan"
                ),
                severity="error",
            ))
        return _result("loan", issues)

    # ===== BUDGETS =====

    def validate_budget(
        self,
        budget: Budget,
        existing: list[Budget],
        categories: list[Category],
        accounts: list[Account],
    ) -> ValidationResult:
        """One budget per (category, account-or-all, month)."""
        issues = []

        if not any(c.id == budget.category_id and c.user_id == budget.user_id for c in categories):
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="not_found",
                message="Selected category does not exist",
                severity="error",
            ))

        if budget.account_id is not None and not any(
            a.id == budget.account_id and a.user_id == budget.user_id for a in accounts
        ):
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="not_found",
                message="Selected account does not exist",
                severity="error",
            ))

        if any(b.id != budget.id and b.scope_key == budget.scope_key for b in existing):
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="duplicate",
                message="A budget for this category, account and month already exists",
                severity="error",
                suggested_fix="Edit the existing budget instead",
            ))

        return _result("budget", issues)

    # ===== HELPERS =====

    @staticmethod
    def ensure_valid(result: ValidationResult) -> ValidationResult:
        """Raise LedgerValidationError if the result has errors."""
        if result.has_errors:
            raise LedgerValidationError(result)
        return result

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show in the UI.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
