"""
Interest Settlement Engine

Runs once per calendar day over every deposit record:
1. Demand records compound their interest and move to the next cycle
2. Fixed records with an extension compound and adopt the pending plan
3. Fixed records without one mature into a demand record
4. Mergeable demand records are compacted

DESIGN DECISION: One record's failure never stops the sweep.
Each record is settled under its scope lock from a fresh read and
written version-checked. A failure is logged, audited and counted;
the record stays due and is picked up by the next run.
"""

from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import Callable, Optional
from uuid import UUID

import structlog

from monetary_bank.audit import AuditLogger, create_correlation_id
from monetary_bank.config.settings import BankSettings
from monetary_bank.ledger.compensation import Compensation
from monetary_bank.ledger.errors import SettlementError
from monetary_bank.ledger.locks import ScopeLocks
from monetary_bank.models.audit import AuditEventType
from monetary_bank.models.deposit import (
    DepositKind,
    DepositRecord,
    calculate_interest,
    day_boundary,
    next_settlement_date,
)
from monetary_bank.models.results import SettlementReport
from monetary_bank.services.storage import DepositStoreInterface
from monetary_bank.settlement.compactor import RecordCompactor


class InterestSettlementEngine:
    """
    Settles every record due on or before the settlement day.

    A record that missed several days (the host was down) is settled once
    and its next date counted from the run day.
    """

    def __init__(
        self,
        store: DepositStoreInterface,
        settings: BankSettings,
        compactor: Optional[RecordCompactor] = None,
        locks: Optional[ScopeLocks] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._store = store
        self._settings = settings
        self._locks = locks or ScopeLocks()
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock or datetime.now
        self._logger = logger or structlog.get_logger(__name__)
        self._compactor = compactor or RecordCompactor(
            store,
            locks=self._locks,
            audit_logger=self._audit_logger,
        )

    async def run(self, today: Optional[datetime] = None) -> SettlementReport:
        """
        Run one settlement sweep.

        Args:
            today: Settlement day (defaults to the clock's current day)

        Raises:
            StorageError: If the record list itself cannot be read
        """
        day = day_boundary(today or self._clock())
        correlation_id = create_correlation_id()
        report = SettlementReport(run_at=self._clock(), settlement_day=day)

        records = await self._store.list_records()
        report.scanned = len(records)

        for record in records:
            if not record.is_due(day):
                continue

            try:
                outcome = await self._settle_record(record, day, correlation_id)
            except Exception as e:
                report.failed += 1
                self._logger.warning(
                    "record_settlement_failed",
                    record_id=str(record.id),
                    user_id=record.user_id,
                    currency=record.currency,
                    error=str(e),
                )
                await self._audit_logger.log_settlement_failed(
                    record_id=record.id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                continue

            if outcome is None:
                report.skipped += 1
                continue

            event_type, interest = outcome
            report.interest_paid += interest
            if event_type == AuditEventType.DEMAND_INTEREST_SETTLED:
                report.demand_compounded += 1
            elif event_type == AuditEventType.FIXED_TERM_EXTENDED:
                report.fixed_extended += 1
            else:
                report.fixed_converted += 1

        compaction = await self._compactor.compact(correlation_id)
        report.groups_merged = compaction.groups_merged

        self._logger.info(
            "settlement_run_completed",
            settlement_day=day.date().isoformat(),
            scanned=report.scanned,
            processed=report.processed,
            skipped=report.skipped,
            failed=report.failed,
            interest_paid=str(report.interest_paid),
            groups_merged=report.groups_merged,
        )
        await self._audit_logger.log_settlement_run(
            report_details=report.model_dump(mode="json"),
            correlation_id=correlation_id,
        )
        return report

    async def _settle_record(
        self,
        snapshot: DepositRecord,
        day: datetime,
        correlation_id: UUID,
    ) -> Optional[tuple[AuditEventType, Decimal]]:
        """
        Settle one record.

        Returns:
            (event type, interest paid), or None if the record is gone or
            no longer due by the time its lock is held
        """
        async with self._locks.hold(snapshot.user_id, snapshot.currency):
            record = await self._store.get_record(snapshot.id)
            if record is None or not record.is_due(day):
                return None

            interest = calculate_interest(record.principal, record.rate)

            if record.kind == DepositKind.DEMAND:
                event_type = AuditEventType.DEMAND_INTEREST_SETTLED
                settled = await self._store.update_record(record.model_copy(update={
                    "principal": record.principal + interest,
                    "next_settlement_at": next_settlement_date(record.cycle, day),
                }))
            elif record.extension_requested:
                event_type = AuditEventType.FIXED_TERM_EXTENDED
                settled = await self._store.update_record(record.model_copy(update={
                    "principal": record.principal + interest,
                    "rate": record.pending_rate,
                    "cycle": record.pending_cycle,
                    "next_settlement_at": next_settlement_date(record.pending_cycle, day),
                    "extension_requested": False,
                    "pending_rate": None,
                    "pending_cycle": None,
                }))
            else:
                event_type = AuditEventType.FIXED_TERM_CONVERTED
                settled = await self._convert_to_demand(record, interest, day)

        await self._audit_logger.log_record_settled(
            event_type=event_type,
            user_id=record.user_id,
            currency=record.currency,
            record_id=record.id,
            principal=settled.principal,
            interest=interest,
            correlation_id=correlation_id,
            details={"rate": str(settled.rate), "cycle": settled.cycle.value},
        )
        return event_type, interest

    async def _convert_to_demand(
        self,
        record: DepositRecord,
        interest: Decimal,
        day: datetime,
    ) -> DepositRecord:
        """Replace a matured fixed record with a demand record holding principal plus interest."""
        rate, cycle = self._settings.demand_terms()
        compensation = Compensation()

        try:
            deleted = await self._store.delete_record(record.id, expected_version=record.version)
            if not deleted:
                raise SettlementError(f"Fixed record {record.id} disappeared before conversion")
            compensation.add(
                f"restore fixed record {record.id}",
                partial(self._store.create_record, record),
            )
            return await self._store.create_record(DepositRecord(
                user_id=record.user_id,
                currency=record.currency,
                principal=record.principal + interest,
                kind=DepositKind.DEMAND,
                rate=rate,
                cycle=cycle,
                next_settlement_at=next_settlement_date(cycle, day),
                created_at=self._clock(),
            ))
        except Exception:
            await compensation.rollback()
            raise
