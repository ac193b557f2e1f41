"""
Main Orchestrator for MoneyBook

This module ties together all the components and defines the
user-facing flows:
1. Accounts (add, rename, edit balance, delete with reference warning)
2. Categories (add, seed defaults)
3. Transactions (record, delete, list, history, export)
4. Loans (create, settle / reopen, delete)
5. Budgets (save, delete, usage, templates)
6. Reports (monthly summary, insights, net worth)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is read or written without a signed-in user
- Nothing is written that failed validation
- Every balance change is ONE atomic LedgerMutation
- Every step is audited

Every flow follows the same order: resolve user, read the working set,
validate, build the mutation, commit, audit.
"""

import asyncio
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from moneybook.audit import AuditLogger, create_correlation_id
from moneybook.config import get_settings
from moneybook.engine import (
    balance_effects,
    balance_series,
    budget_overview,
    compute_budget_usage,
    export_filename,
    export_transactions_csv,
    filter_budget_usage,
    filter_loans,
    filter_transactions,
    get_template,
    monthly_summary,
    net_worth,
    plan_template,
    reconstruct_history,
    sort_budget_usage,
    spending_insights,
)
from moneybook.models.ledger import (
    ZERO,
    Account,
    AccountKind,
    Budget,
    BudgetStatus,
    Category,
    LedgerMutation,
    Loan,
    LoanDirection,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from moneybook.models.reports import (
    AccountReferences,
    BalancePoint,
    BudgetOverview,
    BudgetUsage,
    LedgerEntry,
    LedgerSnapshot,
    MonthlySummary,
    NetWorthSummary,
    SpendingInsights,
    TransactionFilter,
)
from moneybook.services.identity import (
    AuthenticationRequiredError,
    IdentityProviderInterface,
)
from moneybook.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from moneybook.validation import LedgerValidationError, LedgerValidator


logger = structlog.get_logger("moneybook.orchestrator")


def month_bounds(month: str) -> tuple[date, date]:
    """First and last day of a YYYY-MM month."""
    year, mon = (int(part) for part in month.split("-"))
    return date(year, mon, 1), date(year, mon, monthrange(year, mon)[1])


class _LedgerFlow:
    """
    Shared plumbing for every flow.

    Holds the collaborators and implements the resolve-user, validate and
    commit steps so each flow reads as a straight sequence.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        identity: IdentityProviderInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._storage = storage
        self._identity = identity
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()

    async def _require_user(self, action: str, correlation_id: Optional[UUID] = None) -> UUID:
        """
        Resolve the signed-in user or abort.

        Runs before any storage call.
        """
        user_id = self._identity.current_user_id()
        if user_id is None:
            await self._audit_logger.log_auth_required(
                action=action,
                correlation_id=correlation_id,
            )
            raise AuthenticationRequiredError(action)
        return user_id

    async def _ensure_valid(
        self,
        user_id: Optional[UUID],
        result: ValidationResult,
        correlation_id: UUID,
    ) -> ValidationResult:
        if result.has_errors:
            await self._audit_logger.log_validation_failed(
                user_id=user_id,
                subject=result.subject,
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ],
                correlation_id=correlation_id,
            )
            raise LedgerValidationError(result)
        return result

    async def _build(self, model_cls, subject: str, user_id: UUID, correlation_id: UUID, **fields):
        """
        Construct a model, turning shape errors into LedgerValidationError.
        """
        try:
            return model_cls(user_id=user_id, **fields)
        except ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in err["loc"]) or subject,
                    issue_type=err["type"],
                    message=err["msg"].removeprefix("Value error, "),
                    severity="error",
                )
                for err in e.errors()
            ]
            result = ValidationResult(subject=subject, is_valid=False, issues=issues)
            return await self._ensure_valid(user_id, result, correlation_id)

    async def _commit(self, mutation: LedgerMutation, correlation_id: UUID) -> None:
        try:
            await self._storage.commit(mutation)
        except StorageError as e:
            await self._audit_logger.log_storage_error(
                operation=mutation.reason,
                error_message=str(e),
                user_id=mutation.user_id,
                correlation_id=correlation_id,
            )
            raise


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountFlow(_LedgerFlow):
    """
    Account management.

    Names are unique per user, ignoring case. Deleting an account that is
    still referenced is allowed; deletion_impact() gives the caller the
    counts to warn with first.
    """

    async def list_accounts(self) -> list[Account]:
        user_id = await self._require_user("list accounts")
        return await self._storage.list_accounts(user_id)

    async def add_account(
        self,
        name: str,
        opening_balance: Decimal = ZERO,
        color: str = "#3b82f6",
        kind: AccountKind = AccountKind.OTHER,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("add an account", correlation_id)

        existing = await self._storage.list_accounts(user_id)
        await self._ensure_valid(
            user_id,
            self._validator.validate_account(name, existing),
            correlation_id,
        )
        account = await self._build(
            Account, "account", user_id, correlation_id,
            name=name,
            balance=opening_balance,
            color=color,
            kind=kind,
        )

        await self._storage.create_account(account)
        await self._audit_logger.log_account_created(
            user_id=user_id,
            account_id=account.id,
            name=account.name,
            opening_balance=account.balance,
            correlation_id=correlation_id,
        )
        return account

    async def update_account(
        self,
        account_id: UUID,
        name: Optional[str] = None,
        color: Optional[str] = None,
        kind: Optional[AccountKind] = None,
        balance: Optional[Decimal] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """
        Edit an account. Passing balance is a manual balance correction:
        the store sets it as an absolute value inside its lock, and history
        reconstruction absorbs it. Fields left as None keep whatever is
        stored at write time, including a balance moved by a concurrent
        commit.
        """
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("edit an account", correlation_id)

        existing = await self._storage.list_accounts(user_id)
        current = next((a for a in existing if a.id == account_id), None)
        if current is None:
            raise NotFoundError(f"Account not found: {account_id}")

        changes = {
            key: value
            for key, value in (
                ("name", name),
                ("color", color),
                ("kind", kind),
                ("balance", balance),
            )
            if value is not None
        }
        if "name" in changes:
            await self._ensure_valid(
                user_id,
                self._validator.validate_account(name, existing, exclude_id=account_id),
                correlation_id,
            )

        # Shape check only; the store applies just the changed fields
        fields = current.model_dump(exclude={"user_id"})
        fields.update(changes)
        checked = await self._build(Account, "account", user_id, correlation_id, **fields)
        changes = {key: getattr(checked, key) for key in changes}

        updated = await self._storage.update_account(user_id, account_id, changes)
        await self._audit_logger.log_account_updated(
            user_id=user_id,
            account_id=account_id,
            changes=changes,
            correlation_id=correlation_id,
        )
        return updated

    async def deletion_impact(
        self,
        account_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AccountReferences:
        """How many rows would be orphaned by deleting this account."""
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("check account references", correlation_id)

        references = await self._storage.count_account_references(user_id, account_id)
        if references.has_references:
            await self._audit_logger.log_reference_warning(
                user_id=user_id,
                account_id=account_id,
                transaction_count=references.transaction_count,
                loan_count=references.loan_count,
                correlation_id=correlation_id,
            )
        return references

    async def delete_account(
        self,
        account_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("delete an account", correlation_id)

        references = await self._storage.count_account_references(user_id, account_id)
        deleted = await self._storage.delete_account(user_id, account_id)
        if deleted:
            await self._audit_logger.log_account_deleted(
                user_id=user_id,
                account_id=account_id,
                transaction_count=references.transaction_count,
                loan_count=references.loan_count,
                correlation_id=correlation_id,
            )
        return deleted


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryFlow(_LedgerFlow):

    async def list_categories(self) -> list[Category]:
        user_id = await self._require_user("list categories")
        return await self._storage.list_categories(user_id)

    async def add_category(
        self,
        name: str,
        icon: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("add a category", correlation_id)

        category = await self._build(
            Category, "category", user_id, correlation_id,
            name=name,
            icon=icon or get_settings().app.default_category_icon,
        )
        await self._storage.create_category(category)
        await self._audit_logger.log_category_created(
            user_id=user_id,
            category_id=category.id,
            name=category.name,
            correlation_id=correlation_id,
        )
        return category

    async def seed_defaults(self, correlation_id: Optional[UUID] = None) -> list[Category]:
        """
        Create the default categories for a user who has none.

        Runs in the background on first load. Failures are logged and
        swallowed; the caller never sees them.
        """
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("seed categories", correlation_id)

        settings = get_settings().app
        try:
            if await self._storage.list_categories(user_id):
                return []
            created = []
            for name in settings.default_categories_list:
                category = Category(
                    user_id=user_id,
                    name=name,
                    icon=settings.default_category_icon,
                )
                created.append(await self._storage.create_category(category))
            await self._audit_logger.log_categories_seeded(
                user_id=user_id,
                names=[c.name for c in created],
                correlation_id=correlation_id,
            )
            return created
        except Exception as e:
            logger.warning(
                "category_seeding_failed",
                user_id=str(user_id),
                error=str(e),
                correlation_id=str(correlation_id),
            )
            return []


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionFlow(_LedgerFlow):
    """
    Transactions are never edited. Recording one and deleting one each
    change balances in the same atomic unit as the row itself.
    """

    async def record_transaction(
        self,
        tx_type: TransactionType,
        amount: Decimal,
        account_id: UUID,
        to_account_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
        description: str = "",
        tx_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Record a transaction and apply its balance effects.

        Returns:
            (transaction, validation_result) - the result carries any
            non-blocking warnings for display
        """
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("record a transaction", correlation_id)

        tx = await self._build(
            Transaction, "transaction", user_id, correlation_id,
            type=tx_type,
            amount=amount,
            account_id=account_id,
            to_account_id=to_account_id,
            category_id=category_id,
            description=description,
            date=tx_date or date.today(),
        )

        accounts, categories = await asyncio.gather(
            self._storage.list_accounts(user_id),
            self._storage.list_categories(user_id),
        )
        result = await self._ensure_valid(
            user_id,
            self._validator.validate_transaction(tx, accounts, categories),
            correlation_id,
        )

        effects = balance_effects(tx)
        mutation = LedgerMutation(
            user_id=user_id,
            reason=f"record {tx.type.value}",
            balance_deltas=effects,
            new_transactions=[tx],
        )
        await self._commit(mutation, correlation_id)

        await self._audit_logger.log_transaction_recorded(
            user_id=user_id,
            transaction_id=tx.id,
            transaction_type=tx.type.value,
            amount=tx.amount,
            balance_deltas=effects,
            correlation_id=correlation_id,
        )
        return tx, result

    async def delete_transaction(
        self,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Delete a transaction and reverse its balance effects atomically.

        Effects on accounts that no longer exist are dropped.
        """
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("delete a transaction", correlation_id)

        tx, accounts = await asyncio.gather(
            self._storage.get_transaction(user_id, transaction_id),
            self._storage.list_accounts(user_id),
        )
        if tx is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        live_accounts = {a.id for a in accounts}
        reversal = {
            account_id: -change
            for account_id, change in balance_effects(tx).items()
            if account_id in live_accounts
        }
        mutation = LedgerMutation(
            user_id=user_id,
            reason=f"delete {tx.type.value}",
            balance_deltas=reversal,
            deleted_transaction_ids=[tx.id],
        )
        await self._commit(mutation, correlation_id)

        await self._audit_logger.log_transaction_deleted(
            user_id=user_id,
            transaction_id=tx.id,
            balance_deltas=reversal,
            correlation_id=correlation_id,
        )
        return tx

    async def list_transactions(
        self,
        criteria: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        user_id = await self._require_user("list transactions")
        transactions, accounts, categories = await asyncio.gather(
            self._storage.list_transactions(user_id),
            self._storage.list_accounts(user_id),
            self._storage.list_categories(user_id),
        )
        return filter_transactions(
            transactions,
            criteria or TransactionFilter(),
            accounts,
            categories,
        )

    async def account_history(
        self,
        account_id: UUID,
    ) -> tuple[list[LedgerEntry], list[BalancePoint]]:
        """
        Running balance history for one account.

        Returns:
            (entries newest first, end-of-day points oldest first)
        """
        user_id = await self._require_user("view account history")
        account, transactions = await asyncio.gather(
            self._storage.get_account(user_id, account_id),
            self._storage.list_transactions(user_id, account_id=account_id),
        )
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")

        entries = reconstruct_history(account, transactions)
        return entries, balance_series(entries)

    async def export_csv(
        self,
        criteria: Optional[TransactionFilter] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, str]:
        """
        Export the filtered transaction list.

        Returns:
            (filename, csv_text)
        """
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("export transactions", correlation_id)

        transactions, accounts, categories = await asyncio.gather(
            self._storage.list_transactions(user_id),
            self._storage.list_accounts(user_id),
            self._storage.list_categories(user_id),
        )
        rows = filter_transactions(
            transactions,
            criteria or TransactionFilter(),
            accounts,
            categories,
        )
        content = export_transactions_csv(rows, accounts, categories)

        await self._audit_logger.log_transactions_exported(
            user_id=user_id,
            row_count=len(rows),
            correlation_id=correlation_id,
        )
        return export_filename(today or date.today()), content


# =============================================================================
# LOANS
# =============================================================================

class LoanFlow(_LedgerFlow):
    """
    Loans move money when they are opened and when they are settled.

    Each of those is one atomic unit: the loan row, an audit transaction
    and the account balance change commit together or not at all.
    Settling and reopening carry the loan state the caller saw, so two
    racing toggles cannot both apply.
    """

    async def list_loans(
        self,
        direction: Optional[LoanDirection] = None,
        search: Optional[str] = None,
    ) -> list[Loan]:
        user_id = await self._require_user("list loans")
        return filter_loans(await self._storage.list_loans(user_id), direction, search)

    async def create_loan(
        self,
        person_name: str,
        amount: Decimal,
        direction: LoanDirection,
        account_id: UUID,
        description: str = "",
        date_given: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Loan:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("create a loan", correlation_id)

        loan = await self._build(
            Loan, "loan", user_id, correlation_id,
            person_name=person_name,
            amount=amount,
            direction=direction,
            description=description,
            account_id=account_id,
            date_given=date_given or date.today(),
        )

        accounts = await self._storage.list_accounts(user_id)
        await self._ensure_valid(
            user_id,
            self._validator.validate_loan(loan, accounts),
            correlation_id,
        )

        verb = "given to" if direction == LoanDirection.GIVEN else "received from"
        audit_tx = Transaction(
            user_id=user_id,
            type=direction.transaction_type,
            amount=loan.amount,
            account_id=loan.account_id,
            description=f"Loan {verb} {loan.person_name}",
            date=loan.date_given,
            loan_id=loan.id,
        )
        mutation = LedgerMutation(
            user_id=user_id,
            reason=f"create loan ({direction.value})",
            balance_deltas={loan.account_id: loan.outstanding_effect},
            new_transactions=[audit_tx],
            saved_loans=[loan],
            non_negative_accounts=(
                [loan.account_id] if direction == LoanDirection.GIVEN else []
            ),
        )
        await self._commit(mutation, correlation_id)

        await self._audit_logger.log_loan_created(
            user_id=user_id,
            loan_id=loan.id,
            direction=direction.value,
            person_name=loan.person_name,
            amount=loan.amount,
            correlation_id=correlation_id,
        )
        return loan

    async def set_returned(
        self,
        loan_id: UUID,
        returned: bool,
        correlation_id: Optional[UUID] = None,
    ) -> Loan:
        """
        Mark a loan returned (reverse its effect) or outstanding again
        (re-apply it). Setting the state it already has is a no-op.

        Raises:
            ConflictError: The loan changed between read and commit
            LedgerValidationError: The account would go below zero
        """
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("update a loan", correlation_id)

        loan = await self._storage.get_loan(user_id, loan_id)
        if loan is None:
            raise NotFoundError(f"Loan not found: {loan_id}")
        if loan.is_returned == returned:
            return loan

        account = await self._storage.get_account(user_id, loan.account_id)
        await self._ensure_valid(
            user_id,
            self._validator.validate_loan_status_change(loan, account, returned),
            correlation_id,
        )

        if returned:
            delta = -loan.outstanding_effect
            tx_type = loan.direction.settlement_type
            note = f"Loan returned: {loan.person_name}"
        else:
            delta = loan.outstanding_effect
            tx_type = loan.direction.transaction_type
            note = f"Loan reopened: {loan.person_name}"

        updated = loan.model_copy(update={
            "is_returned": returned,
            "returned_at": datetime.utcnow() if returned else None,
        })
        audit_tx = Transaction(
            user_id=user_id,
            type=tx_type,
            amount=loan.amount,
            account_id=loan.account_id,
            description=note,
            date=date.today(),
            loan_id=loan.id,
        )
        mutation = LedgerMutation(
            user_id=user_id,
            reason="settle loan" if returned else "reopen loan",
            balance_deltas={loan.account_id: delta},
            new_transactions=[audit_tx],
            saved_loans=[updated],
            expected_loan_states={loan.id: loan.is_returned},
            non_negative_accounts=[loan.account_id],
        )
        await self._commit(mutation, correlation_id)

        await self._audit_logger.log_loan_status_changed(
            user_id=user_id,
            loan_id=loan.id,
            is_returned=returned,
            balance_delta=delta,
            correlation_id=correlation_id,
        )
        return updated

    async def toggle_returned(
        self,
        loan_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Loan:
        user_id = await self._require_user("update a loan", correlation_id)
        loan = await self._storage.get_loan(user_id, loan_id)
        if loan is None:
            raise NotFoundError(f"Loan not found: {loan_id}")
        return await self.set_returned(loan_id, not loan.is_returned, correlation_id)

    async def delete_loan(
        self,
        loan_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Remove the loan record. Balances and transactions stay as they are."""
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("delete a loan", correlation_id)

        deleted = await self._storage.delete_loan(user_id, loan_id)
        if deleted:
            await self._audit_logger.log_loan_deleted(
                user_id=user_id,
                loan_id=loan_id,
                correlation_id=correlation_id,
            )
        return deleted


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetFlow(_LedgerFlow):

    async def list_budgets(self, month: Optional[str] = None) -> list[Budget]:
        user_id = await self._require_user("list budgets")
        return await self._storage.list_budgets(user_id, month)

    async def save_budget(
        self,
        category_id: UUID,
        month: str,
        target_amount: Decimal,
        account_id: Optional[UUID] = None,
        budget_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Create a budget, or edit one when budget_id is given.

        Raises:
            LedgerValidationError: Another budget already covers the same
                category, account and month
        """
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("save a budget", correlation_id)

        existing, categories, accounts = await asyncio.gather(
            self._storage.list_budgets(user_id),
            self._storage.list_categories(user_id),
            self._storage.list_accounts(user_id),
        )

        fields = {
            "category_id": category_id,
            "account_id": account_id,
            "month": month,
            "target_amount": target_amount,
        }
        if budget_id is not None:
            current = next((b for b in existing if b.id == budget_id), None)
            if current is None:
                raise NotFoundError(f"Budget not found: {budget_id}")
            fields.update(id=current.id, created_at=current.created_at)

        budget = await self._build(Budget, "budget", user_id, correlation_id, **fields)
        await self._ensure_valid(
            user_id,
            self._validator.validate_budget(budget, existing, categories, accounts),
            correlation_id,
        )

        await self._storage.save_budget(budget)
        await self._audit_logger.log_budget_saved(
            user_id=user_id,
            budget_id=budget.id,
            month=budget.month,
            target_amount=budget.target_amount,
            correlation_id=correlation_id,
        )
        return budget

    async def delete_budget(
        self,
        budget_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("delete a budget", correlation_id)

        deleted = await self._storage.delete_budget(user_id, budget_id)
        if deleted:
            await self._audit_logger.log_budget_deleted(
                user_id=user_id,
                budget_id=budget_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def usage(
        self,
        month: str,
        sort_by: str = "usage",
        status: Optional[BudgetStatus] = None,
    ) -> list[BudgetUsage]:
        """Spend against every budget of a month."""
        user_id = await self._require_user("view budgets")
        first, last = month_bounds(month)
        budgets, transactions, categories, accounts = await asyncio.gather(
            self._storage.list_budgets(user_id, month),
            self._storage.list_transactions(user_id, date_from=first, date_to=last),
            self._storage.list_categories(user_id),
            self._storage.list_accounts(user_id),
        )
        rows = compute_budget_usage(budgets, transactions, categories, accounts)
        return sort_budget_usage(filter_budget_usage(rows, status), sort_by)

    async def overview(self, month: str) -> BudgetOverview:
        return budget_overview(await self.usage(month))

    async def apply_template(
        self,
        template_name: str,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[Budget]:
        """
        Create the template's all-accounts budgets for `month`, skipping
        categories the user doesn't have or already budgets.
        """
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user("apply a budget template", correlation_id)

        template = get_template(template_name)
        existing, categories = await asyncio.gather(
            self._storage.list_budgets(user_id, month),
            self._storage.list_categories(user_id),
        )
        planned = plan_template(template, user_id, month, categories, existing)

        for budget in planned:
            await self._storage.save_budget(budget)
            await self._audit_logger.log_budget_saved(
                user_id=user_id,
                budget_id=budget.id,
                month=budget.month,
                target_amount=budget.target_amount,
                correlation_id=correlation_id,
            )
        return planned


# =============================================================================
# REPORTS
# =============================================================================

class ReportFlow(_LedgerFlow):
    """Read-only views. Each reads one snapshot and hands it to the engine."""

    async def snapshot(self) -> LedgerSnapshot:
        user_id = await self._require_user("view reports")
        accounts, categories, transactions, loans, budgets = await asyncio.gather(
            self._storage.list_accounts(user_id),
            self._storage.list_categories(user_id),
            self._storage.list_transactions(user_id),
            self._storage.list_loans(user_id),
            self._storage.list_budgets(user_id),
        )
        return LedgerSnapshot(
            user_id=user_id,
            accounts=accounts,
            categories=categories,
            transactions=transactions,
            loans=loans,
            budgets=budgets,
        )

    async def monthly_summary(self, month: str) -> MonthlySummary:
        snap = await self.snapshot()
        return monthly_summary(month, snap.transactions, snap.accounts, snap.categories)

    async def insights(self, as_of: Optional[date] = None) -> SpendingInsights:
        snap = await self.snapshot()
        return spending_insights(
            snap.transactions,
            snap.accounts,
            snap.categories,
            as_of or date.today(),
        )

    async def net_worth(self) -> NetWorthSummary:
        snap = await self.snapshot()
        return net_worth(snap.accounts, snap.loans)


# =============================================================================
# FACTORY
# =============================================================================

@dataclass
class AppComponents:
    """Everything the UI needs, wired to one storage backend."""

    accounts: AccountFlow
    categories: CategoryFlow
    transactions: TransactionFlow
    loans: LoanFlow
    budgets: BudgetFlow
    reports: ReportFlow
    ledger_storage: LedgerStorageInterface
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    identity: IdentityProviderInterface,
    use_storage: bool = True,
    ledger_storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        identity: Resolves the signed-in user
        use_storage: Whether to use the configured backend. False gives an
                    in-memory store with local-only audit logging.
        ledger_storage: Explicit ledger backend (overrides configuration)
        audit_storage: Explicit audit backend (overrides configuration)
    """
    sheets_client = None

    if ledger_storage is None:
        backend = get_settings().app.storage_backend if use_storage else "memory"
        if backend == "google_sheets":
            try:
                sheets_client = GoogleSheetsClient()
                ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
                audit_storage = audit_storage or GoogleSheetsAuditStorage(sheets_client)
            except Exception as e:
                # Storage not configured - continue in memory
                logger.warning("storage_not_configured", error=str(e))
                sheets_client = None
                ledger_storage = InMemoryLedgerStorage()
        else:
            ledger_storage = InMemoryLedgerStorage()
            if use_storage and audit_storage is None:
                audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    validator = LedgerValidator()

    def wire(flow_cls):
        return flow_cls(
            storage=ledger_storage,
            identity=identity,
            audit_logger=audit_logger,
            validator=validator,
        )

    return AppComponents(
        accounts=wire(AccountFlow),
        categories=wire(CategoryFlow),
        transactions=wire(TransactionFlow),
        loans=wire(LoanFlow),
        budgets=wire(BudgetFlow),
        reports=wire(ReportFlow),
        ledger_storage=ledger_storage,
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
