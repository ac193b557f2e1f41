"""
Audit Logger

DESIGN DECISION: Every change to a user's money is logged.
This provides:
1. Complete traceability of balances
2. Debugging capability
3. User can see the history of their actions

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from moneybook.config import get_settings
from moneybook.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from moneybook.services.storage import AuditStorageInterface


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure structlog for local JSON logging.

    Called once at import; call again to change the level.
    """
    level_name = level or get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name))
    logging.getLogger().setLevel(getattr(logging, level_name))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("moneybook.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # ===== ACCOUNTS =====

    async def log_account_created(
        self,
        user_id: UUID,
        account_id: UUID,
        name: str,
        opening_balance: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(
            user_id=user_id,
            account_id=account_id,
            name=name,
            opening_balance=opening_balance,
            correlation_id=correlation_id,
        ))

    async def log_account_updated(
        self,
        user_id: UUID,
        account_id: UUID,
        changes: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.account_updated(
            user_id=user_id,
            account_id=account_id,
            changes=changes,
            correlation_id=correlation_id,
        ))

    async def log_account_deleted(
        self,
        user_id: UUID,
        account_id: UUID,
        transaction_count: int,
        loan_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.account_deleted(
            user_id=user_id,
            account_id=account_id,
            transaction_count=transaction_count,
            loan_count=loan_count,
            correlation_id=correlation_id,
        ))

    async def log_reference_warning(
        self,
        user_id: UUID,
        account_id: UUID,
        transaction_count: int,
        loan_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.reference_warning(
            user_id=user_id,
            account_id=account_id,
            transaction_count=transaction_count,
            loan_count=loan_count,
            correlation_id=correlation_id,
        ))

    # ===== CATEGORIES =====

    async def log_category_created(
        self,
        user_id: UUID,
        category_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.category_created(
            user_id=user_id,
            category_id=category_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_categories_seeded(
        self,
        user_id: UUID,
        names: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.categories_seeded(
            user_id=user_id,
            names=names,
            correlation_id=correlation_id,
        ))

    # ===== TRANSACTIONS =====

    async def log_transaction_recorded(
        self,
        user_id: UUID,
        transaction_id: UUID,
        transaction_type: str,
        amount: Decimal,
        balance_deltas: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_recorded(
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            balance_deltas=balance_deltas,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        user_id: UUID,
        transaction_id: UUID,
        balance_deltas: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
            balance_deltas=balance_deltas,
            correlation_id=correlation_id,
        ))

    async def log_transactions_exported(
        self,
        user_id: UUID,
        row_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transactions_exported(
            user_id=user_id,
            row_count=row_count,
            correlation_id=correlation_id,
        ))

    # ===== LOANS =====

    async def log_loan_created(
        self,
        user_id: UUID,
        loan_id: UUID,
        direction: str,
        person_name: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.loan_created(
            user_id=user_id,
            loan_id=loan_id,
            direction=direction,
            person_name=person_name,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_loan_status_changed(
        self,
        user_id: UUID,
        loan_id: UUID,
        is_returned: bool,
        balance_delta: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.loan_status_changed(
            user_id=user_id,
            loan_id=loan_id,
            is_returned=is_returned,
            balance_delta=balance_delta,
            correlation_id=correlation_id,
        ))

    async def log_loan_deleted(
        self,
        user_id: UUID,
        loan_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.loan_deleted(
            user_id=user_id,
            loan_id=loan_id,
            correlation_id=correlation_id,
        ))

    # ===== BUDGETS =====

    async def log_budget_saved(
        self,
        user_id: UUID,
        budget_id: UUID,
        month: str,
        target_amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_saved(
            user_id=user_id,
            budget_id=budget_id,
            month=month,
            target_amount=target_amount,
            correlation_id=correlation_id,
        ))

    async def log_budget_deleted(
        self,
        user_id: UUID,
        budget_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_deleted(
            user_id=user_id,
            budget_id=budget_id,
            correlation_id=correlation_id,
        ))

    # ===== FAILURES =====

    async def log_validation_failed(
        self,
        user_id: Optional[UUID],
        subject: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            user_id=user_id,
            subject=subject,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_auth_required(
        self,
        action: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.auth_required(
            action=action,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., recording a
    transaction). Pass it through all subsequent operations.
    """
    return uuid4()
