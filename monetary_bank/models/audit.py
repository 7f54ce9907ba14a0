"""
Audit Models for the Bank Ledger

Every movement of value between cash and the bank is logged for audit
purposes. This provides:
1. Traceability of every deposit, withdrawal and settlement
2. Debugging information when compensation had to run
3. Ability to reconstruct a user's history

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

    Each ledger operation and each settlement outcome has its own type.
    """
    # Interactive operations
    DEPOSIT_COMPLETED = "deposit_completed"
    WITHDRAWAL_COMPLETED = "withdrawal_completed"
    FIXED_TERM_OPENED = "fixed_term_opened"
    EXTENSION_REQUESTED = "extension_requested"
    EXTENSION_CANCELLED = "extension_cancelled"
    OPERATION_FAILED = "operation_failed"

    # Compensation
    COMPENSATION_APPLIED = "compensation_applied"
    COMPENSATION_FAILED = "compensation_failed"

    # Settlement
    DEMAND_INTEREST_SETTLED = "demand_interest_settled"
    FIXED_TERM_EXTENDED = "fixed_term_extended"
    FIXED_TERM_CONVERTED = "fixed_term_converted"
    SETTLEMENT_FAILED = "settlement_failed"
    SETTLEMENT_RUN_COMPLETED = "settlement_run_completed"

    # Compaction
    RECORDS_COMPACTED = "records_compacted"
    COMPACTION_FAILED = "compaction_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


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
        default_factory=datetime.now,
        description="When the event occurred (process-local time)"
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

    # Context - which user and record is this about?
    user_id: Optional[int] = None
    currency: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'deposit', 'settlement')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one settlement run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

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
            "user_id": self.user_id,
            "currency": self.currency,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, currency,
         entity_type, entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.user_id) if self.user_id is not None else "",
            self.currency or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.deposit_completed(user_id, currency, record_id, amount)
        event = AuditEventBuilder.settlement_failed(record_id, error, correlation_id)
    """

    @staticmethod
    def deposit_completed(
        user_id: int,
        currency: str,
        record_id: UUID,
        amount: Decimal,
        new_cash: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPOSIT_COMPLETED,
            user_id=user_id,
            currency=currency,
            entity_type="deposit",
            entity_id=record_id,
            description=f"Deposited {amount} {currency} as demand",
            details={
                "amount": str(amount),
                "new_cash": str(new_cash),
            },
            is_user_action=True,
        )

    @staticmethod
    def withdrawal_completed(
        user_id: int,
        currency: str,
        amount: Decimal,
        consumed: list[dict],
        new_cash: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WITHDRAWAL_COMPLETED,
            user_id=user_id,
            currency=currency,
            entity_type="deposit",
            description=f"Withdrew {amount} {currency} from demand",
            details={
                "amount": str(amount),
                "consumed": consumed,
                "new_cash": str(new_cash),
            },
            is_user_action=True,
        )

    @staticmethod
    def fixed_term_opened(
        user_id: int,
        currency: str,
        record_id: UUID,
        plan_name: str,
        from_cash: Decimal,
        from_demand: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_TERM_OPENED,
            user_id=user_id,
            currency=currency,
            entity_type="deposit",
            entity_id=record_id,
            description=f"Opened fixed term '{plan_name}' for {from_cash + from_demand} {currency}",
            details={
                "plan": plan_name,
                "from_cash": str(from_cash),
                "from_demand": str(from_demand),
            },
            is_user_action=True,
        )

    @staticmethod
    def extension_changed(
        user_id: int,
        record_id: UUID,
        requested: bool,
        plan_name: Optional[str] = None,
    ) -> AuditEvent:
        if requested:
            event_type = AuditEventType.EXTENSION_REQUESTED
            description = f"Extension requested under plan '{plan_name}'"
        else:
            event_type = AuditEventType.EXTENSION_CANCELLED
            description = "Extension request cancelled"
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="deposit",
            entity_id=record_id,
            description=description,
            details={"plan": plan_name} if plan_name else {},
            is_user_action=True,
        )

    @staticmethod
    def operation_failed(
        operation: str,
        user_id: int,
        currency: Optional[str],
        error_kind: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            currency=currency,
            description=f"{operation} failed: {error_kind}",
            error_code=error_kind,
            error_message=error_message,
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def compensation(
        operation: str,
        user_id: int,
        currency: str,
        steps: int,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        if error_message is None:
            return AuditEvent(
                event_type=AuditEventType.COMPENSATION_APPLIED,
                severity=AuditSeverity.WARNING,
                user_id=user_id,
                currency=currency,
                description=f"Rolled back {steps} step(s) of {operation}",
                details={"operation": operation, "steps": steps},
            )
        return AuditEvent(
            event_type=AuditEventType.COMPENSATION_FAILED,
            severity=AuditSeverity.CRITICAL,
            user_id=user_id,
            currency=currency,
            description=f"Rollback of {operation} failed, manual repair needed",
            error_message=error_message,
            details={"operation": operation, "steps": steps},
        )

    @staticmethod
    def record_settled(
        event_type: AuditEventType,
        user_id: int,
        currency: str,
        record_id: UUID,
        principal: Decimal,
        interest: Decimal,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            currency=currency,
            entity_type="deposit",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Settled {principal} {currency} with interest {interest}",
            details={
                "principal": str(principal),
                "interest": str(interest),
                **(details or {}),
            },
        )

    @staticmethod
    def settlement_failed(
        record_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="deposit",
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Settlement of record failed, skipped",
            error_code="settlement_failure",
            error_message=error_message,
        )

    @staticmethod
    def settlement_run_completed(
        report_details: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RUN_COMPLETED,
            entity_type="settlement",
            correlation_id=correlation_id,
            description=(
                f"Settlement run processed {report_details.get('processed', 0)} "
                f"record(s), {report_details.get('failed', 0)} failed"
            ),
            details=report_details,
        )

    @staticmethod
    def records_compacted(
        user_id: int,
        currency: str,
        record_id: UUID,
        merged: int,
        principal: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDS_COMPACTED,
            user_id=user_id,
            currency=currency,
            entity_type="deposit",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Merged {merged} demand records into one",
            details={
                "merged": merged,
                "principal": str(principal),
            },
        )

    @staticmethod
    def compaction_failed(
        user_id: int,
        currency: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMPACTION_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            currency=currency,
            correlation_id=correlation_id,
            description="Compaction of demand group failed, skipped",
            error_message=error_message,
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

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        user_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
        )
