"""
Audit Logger

DESIGN DECISION: Every movement of value is logged.
This provides:
1. Complete traceability
2. Debugging capability when a compensation had to run
3. Bot operators can see the history of a user's deposits

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't fail a ledger operation if logging fails)
- Supports correlation IDs to trace related events (one settlement run)
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from monetary_bank.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from monetary_bank.services.storage import AuditStorageInterface


def configure_logging(debug: bool = True) -> None:
    """
    Configure structlog for local logging.

    With debug off only warnings and errors are printed; info-level
    progress messages (deposits, settlement summaries) are dropped.
    """
    logging.basicConfig(format="%(message)s")
    logging.getLogger("monetary_bank").setLevel(logging.INFO if debug else logging.WARNING)

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
            structlog.processors.JSONRenderer(default=str)
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, if configured (for persistence and operator visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            logger: Bound structlog logger to write to.
        """
        self._storage = storage
        self._logger = logger or structlog.get_logger("monetary_bank.audit")

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

    async def log_deposit(
        self,
        user_id: int,
        currency: str,
        record_id: UUID,
        amount: Decimal,
        new_cash: Decimal,
    ) -> None:
        """Log a completed deposit."""
        await self.log(AuditEventBuilder.deposit_completed(
            user_id=user_id,
            currency=currency,
            record_id=record_id,
            amount=amount,
            new_cash=new_cash,
        ))

    async def log_withdrawal(
        self,
        user_id: int,
        currency: str,
        amount: Decimal,
        consumed: list[dict],
        new_cash: Decimal,
    ) -> None:
        """Log a completed withdrawal."""
        await self.log(AuditEventBuilder.withdrawal_completed(
            user_id=user_id,
            currency=currency,
            amount=amount,
            consumed=consumed,
            new_cash=new_cash,
        ))

    async def log_fixed_term_opened(
        self,
        user_id: int,
        currency: str,
        record_id: UUID,
        plan_name: str,
        from_cash: Decimal,
        from_demand: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.fixed_term_opened(
            user_id=user_id,
            currency=currency,
            record_id=record_id,
            plan_name=plan_name,
            from_cash=from_cash,
            from_demand=from_demand,
        ))

    async def log_extension_changed(
        self,
        user_id: int,
        record_id: UUID,
        requested: bool,
        plan_name: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.extension_changed(
            user_id=user_id,
            record_id=record_id,
            requested=requested,
            plan_name=plan_name,
        ))

    async def log_operation_failed(
        self,
        operation: str,
        user_id: int,
        currency: Optional[str],
        error_kind: str,
        error_message: str,
    ) -> None:
        """Log a ledger operation that returned an error."""
        await self.log(AuditEventBuilder.operation_failed(
            operation=operation,
            user_id=user_id,
            currency=currency,
            error_kind=error_kind,
            error_message=error_message,
        ))

    async def log_compensation(
        self,
        operation: str,
        user_id: int,
        currency: str,
        steps: int,
        error_message: Optional[str] = None,
    ) -> None:
        """Log a rollback, or a rollback that itself failed."""
        await self.log(AuditEventBuilder.compensation(
            operation=operation,
            user_id=user_id,
            currency=currency,
            steps=steps,
            error_message=error_message,
        ))

    async def log_record_settled(
        self,
        event_type: AuditEventType,
        user_id: int,
        currency: str,
        record_id: UUID,
        principal: Decimal,
        interest: Decimal,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_settled(
            event_type=event_type,
            user_id=user_id,
            currency=currency,
            record_id=record_id,
            principal=principal,
            interest=interest,
            correlation_id=correlation_id,
            details=details,
        ))

    async def log_settlement_failed(
        self,
        record_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_failed(
            record_id=record_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_settlement_run(
        self,
        report_details: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_run_completed(
            report_details=report_details,
            correlation_id=correlation_id,
        ))

    async def log_records_compacted(
        self,
        user_id: int,
        currency: str,
        record_id: UUID,
        merged: int,
        principal: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.records_compacted(
            user_id=user_id,
            currency=currency,
            record_id=record_id,
            merged=merged,
            principal=principal,
            correlation_id=correlation_id,
        ))

    async def log_compaction_failed(
        self,
        user_id: int,
        currency: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.compaction_failed(
            user_id=user_id,
            currency=currency,
            error_message=error_message,
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

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        user_id: Optional[int] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            user_id=user_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a settlement run or compaction pass.
    """
    return uuid4()
