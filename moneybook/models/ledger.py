"""
Core Data Models for MoneyBook

These models define the schemas for every row the system stores:
accounts, categories, transactions, loans and budgets.

They are designed to:
1. Enforce type safety at runtime
2. Make illegal transaction shapes unrepresentable
3. Be serializable for storage and logging
4. Carry the owning user on every row (tenant isolation)

DESIGN DECISION: Money is always Decimal. Floats never touch a balance.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


ZERO = Decimal("0")

# Calendar month, e.g. "2024-03"
MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Supported transaction types.

    The type decides which account fields a transaction may carry and the
    sign of its effect on each account (see moneybook.engine.effects).
    """
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    LOAN_GIVEN = "loan_given"
    LOAN_RECEIVED = "loan_received"


class LoanDirection(str, Enum):
    """Whether money was lent out or borrowed."""
    GIVEN = "given"
    RECEIVED = "received"

    @property
    def transaction_type(self) -> TransactionType:
        """Transaction type recorded when the loan is opened."""
        if self is LoanDirection.GIVEN:
            return TransactionType.LOAN_GIVEN
        return TransactionType.LOAN_RECEIVED

    @property
    def settlement_type(self) -> TransactionType:
        """Transaction type recorded when the loan is settled."""
        if self is LoanDirection.GIVEN:
            return TransactionType.LOAN_RECEIVED
        return TransactionType.LOAN_GIVEN


class AccountKind(str, Enum):
    """What an account is used for."""
    SALARY = "salary"
    SAVINGS = "savings"
    FAMILY = "family"
    OTHER = "other"


class BudgetStatus(str, Enum):
    """Budget health, derived from spend against target."""
    SAFE = "safe"
    WARNING = "warning"
    EXCEEDED = "exceeded"


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Account(BaseModel):
    """
    A named balance bucket owned by one user.

    The balance is authoritative. It changes only through atomic ledger
    mutations or an explicit manual edit.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name, unique per user (case-insensitive)"
    )
    balance: Decimal = Field(
        default=ZERO,
        decimal_places=2,
        description="Current balance (may be negative)"
    )
    color: str = Field(
        default="#3b82f6",
        pattern=r"^#[0-9a-fA-F]{6}$",
        description="Display color"
    )
    kind: AccountKind = AccountKind.OTHER
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Category(BaseModel):
    """Expense classification owned by one user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=10)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Transaction(BaseModel):
    """
    A single dated money movement.

    Shape per type:
    - transfer: source and destination account, no category
    - expense: source account, optional category
    - income / loan_given / loan_received: source account only

    Transactions are never edited in place; they are created or deleted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    type: TransactionType
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Always positive; the type decides the sign"
    )
    account_id: Optional[UUID] = Field(
        default=None,
        description="Source account"
    )
    to_account_id: Optional[UUID] = Field(
        default=None,
        description="Destination account (transfers only)"
    )
    category_id: Optional[UUID] = Field(
        default=None,
        description="Category (expenses only)"
    )
    description: str = Field(default="", max_length=500)
    date: date
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Tie-breaker for transactions on the same day"
    )
    loan_id: Optional[UUID] = Field(
        default=None,
        description="Loan this transaction was generated by, if any"
    )

    @model_validator(mode='after')
    def validate_shape(self) -> 'Transaction':
        """Reject field combinations the type does not allow."""
        if self.type == TransactionType.TRANSFER:
            if self.account_id is None or self.to_account_id is None:
                raise ValueError("Transfer needs both a source and a destination account")
            if self.account_id == self.to_account_id:
                raise ValueError("Transfer source and destination must differ")
        elif self.to_account_id is not None:
            raise ValueError("Only transfers can have a destination account")

        if self.category_id is not None and self.type != TransactionType.EXPENSE:
            raise ValueError("Only expenses can have a category")

        return self

    def touches(self, account_id: UUID) -> bool:
        """Does this transaction reference the account at all?"""
        return self.account_id == account_id or self.to_account_id == account_id


class Loan(BaseModel):
    """
    Money lent to or borrowed from a person, tied to one account.

    While outstanding, a given loan has taken `amount` out of the account
    and a received loan has put it in. Settling reverses that.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    person_name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    direction: LoanDirection
    description: str = Field(default="", max_length=500)
    account_id: UUID
    date_given: date = Field(default_factory=date.today)
    is_returned: bool = False
    returned_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_returned_state(self) -> 'Loan':
        """An outstanding loan has no return timestamp."""
        if not self.is_returned and self.returned_at is not None:
            raise ValueError("Outstanding loan cannot have a return timestamp")
        return self

    @property
    def outstanding_effect(self) -> Decimal:
        """Signed effect of the open loan on its account balance."""
        if self.direction == LoanDirection.GIVEN:
            return -self.amount
        return self.amount


class Budget(BaseModel):
    """
    Monthly spending target for a category.

    account_id None means the budget covers all accounts.
    At most one budget per (user, category, account-or-all, month).
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    category_id: UUID
    account_id: Optional[UUID] = None
    month: str = Field(..., pattern=MONTH_PATTERN, description="YYYY-MM")
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def scope_key(self) -> tuple[UUID, str, UUID, Optional[UUID]]:
        """The uniqueness tuple."""
        return (self.user_id, self.month, self.category_id, self.account_id)


# =============================================================================
# UNIT OF WORK
# =============================================================================

class LedgerMutation(BaseModel):
    """
    Everything one user action changes, applied by storage as ONE unit.

    CRITICAL: storage applies either all of this or none of it.
    Balance deltas are increments evaluated by the store against the
    current balance, never client-computed absolute values.

    Guards are checked inside the same atomic step:
    - expected_loan_states: loan_id -> is_returned the caller last saw
    - non_negative_accounts: accounts whose new balance must stay >= 0
    """

    user_id: UUID
    reason: str = Field(..., max_length=200)
    balance_deltas: dict[UUID, Decimal] = Field(default_factory=dict)
    new_transactions: list[Transaction] = Field(default_factory=list)
    deleted_transaction_ids: list[UUID] = Field(default_factory=list)
    saved_loans: list[Loan] = Field(default_factory=list)
    expected_loan_states: dict[UUID, bool] = Field(default_factory=dict)
    non_negative_accounts: list[UUID] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_ownership(self) -> 'LedgerMutation':
        """Every row in the unit must belong to the same user."""
        for row in [*self.new_transactions, *self.saved_loans]:
            if row.user_id != self.user_id:
                raise ValueError("Ledger mutation mixes rows from different users")
        return self

    def add_delta(self, account_id: UUID, delta: Decimal) -> None:
        """Accumulate a signed balance change for an account."""
        self.balance_deltas[account_id] = self.balance_deltas.get(account_id, ZERO) + delta

    @property
    def is_empty(self) -> bool:
        return not (
            any(self.balance_deltas.values())
            or self.new_transactions
            or self.deleted_transaction_ids
            or self.saved_loans
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'duplicate', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating one user input before it reaches storage.

    Errors block the write. Warnings are shown but do not block.
    """

    subject: str = Field(
        ...,
        description="What was validated (e.g., 'account', 'transaction')"
    )
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]
