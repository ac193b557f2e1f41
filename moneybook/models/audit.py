"""
Audit Models for MoneyBook

Every change to a user's money is logged for audit purposes.
This provides:
1. Traceability of every balance change
2. Debugging information when things go wrong
3. A way to explain how a balance got where it is

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    REFERENCE_WARNING = "reference_warning"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORIES_SEEDED = "categories_seeded"

    # Transactions
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTIONS_EXPORTED = "transactions_exported"

    # Loans
    LOAN_CREATED = "loan_created"
    LOAN_STATUS_CHANGED = "loan_status_changed"
    LOAN_DELETED = "loan_deleted"

    # Budgets
    BUDGET_SAVED = "budget_saved"
    BUDGET_DELETED = "budget_deleted"

    # Rejections
    VALIDATION_FAILED = "validation_failed"
    AUTH_REQUIRED = "auth_required"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[UUID] = Field(
        default=None,
        description="Owning user, None when no one is signed in"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'loan', 'transaction')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one user action)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": str(self.user_id) if self.user_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.user_id) if self.user_id else "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(user_id, account_id, name, balance, correlation_id)
        event = AuditEventBuilder.loan_status_changed(user_id, loan_id, True, delta, correlation_id)
    """

    @staticmethod
    def account_created(
        user_id: UUID,
        account_id: UUID,
        name: str,
        opening_balance: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account created: {name}",
            details={
                "name": name,
                "opening_balance": str(opening_balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def account_updated(
        user_id: UUID,
        account_id: UUID,
        changes: dict[str, Any],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account updated: {', '.join(sorted(changes)) or 'no changes'}",
            details={key: str(value) for key, value in changes.items()},
            is_user_action=True,
        )

    @staticmethod
    def account_deleted(
        user_id: UUID,
        account_id: UUID,
        transaction_count: int,
        loan_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=(
                AuditSeverity.WARNING
                if transaction_count or loan_count
                else AuditSeverity.INFO
            ),
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description="Account deleted",
            details={
                "orphaned_transactions": transaction_count,
                "orphaned_loans": loan_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def reference_warning(
        user_id: UUID,
        account_id: UUID,
        transaction_count: int,
        loan_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFERENCE_WARNING,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=(
                f"Account referenced by {transaction_count} transaction(s) "
                f"and {loan_count} loan(s)"
            ),
            details={
                "transaction_count": transaction_count,
                "loan_count": loan_count,
            },
        )

    @staticmethod
    def category_created(
        user_id: UUID,
        category_id: UUID,
        name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name}",
            is_user_action=True,
        )

    @staticmethod
    def categories_seeded(
        user_id: UUID,
        names: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            user_id=user_id,
            entity_type="category",
            correlation_id=correlation_id,
            description=f"Seeded {len(names)} default categories",
            details={"names": names},
        )

    @staticmethod
    def transaction_recorded(
        user_id: UUID,
        transaction_id: UUID,
        transaction_type: str,
        amount: Decimal,
        balance_deltas: dict[UUID, Decimal],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {transaction_type} {amount}",
            details={
                "type": transaction_type,
                "amount": str(amount),
                "balance_deltas": {str(k): str(v) for k, v in balance_deltas.items()},
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        user_id: UUID,
        transaction_id: UUID,
        balance_deltas: dict[UUID, Decimal],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted and its balance effect reversed",
            details={
                "balance_deltas": {str(k): str(v) for k, v in balance_deltas.items()},
            },
            is_user_action=True,
        )

    @staticmethod
    def transactions_exported(
        user_id: UUID,
        row_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_EXPORTED,
            user_id=user_id,
            entity_type="export",
            correlation_id=correlation_id,
            description=f"Exported {row_count} transaction(s)",
            details={"row_count": row_count},
            is_user_action=True,
        )

    @staticmethod
    def loan_created(
        user_id: UUID,
        loan_id: UUID,
        direction: str,
        person_name: str,
        amount: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_CREATED,
            user_id=user_id,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description=f"Loan {direction}: {person_name} - {amount}",
            details={
                "direction": direction,
                "person_name": person_name,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def loan_status_changed(
        user_id: UUID,
        loan_id: UUID,
        is_returned: bool,
        balance_delta: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_STATUS_CHANGED,
            user_id=user_id,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description=f"Loan marked as {'returned' if is_returned else 'outstanding'}",
            details={
                "is_returned": is_returned,
                "balance_delta": str(balance_delta),
            },
            is_user_action=True,
        )

    @staticmethod
    def loan_deleted(
        user_id: UUID,
        loan_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_DELETED,
            user_id=user_id,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description="Loan record deleted (balances untouched)",
            is_user_action=True,
        )

    @staticmethod
    def budget_saved(
        user_id: UUID,
        budget_id: UUID,
        month: str,
        target_amount: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SAVED,
            user_id=user_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget saved for {month}: {target_amount}",
            details={
                "month": month,
                "target_amount": str(target_amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_deleted(
        user_id: UUID,
        budget_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            user_id=user_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description="Budget deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        user_id: Optional[UUID],
        subject: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=subject,
            correlation_id=correlation_id,
            description=f"{subject.capitalize()} validation failed with {len(issues)} issues",
            details={
                "subject": subject,
                "issues": issues,
            },
        )

    @staticmethod
    def auth_required(
        action: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_REQUIRED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Sign-in required for: {action}",
            details={"action": action},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Storage operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
