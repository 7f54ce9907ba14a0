"""
Record Compactor

Demand deposits that settle on the same day at the same rate and cycle
behave identically from then on. Merging them keeps the record count
proportional to distinct terms rather than to the number of deposits.

DESIGN DECISION: A group is merged under its scope lock from fresh
reads. Constituents are deleted version-checked before the merged
record is inserted; if any step fails, deleted constituents are put
back and the group is left for the next pass.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import Optional
from uuid import UUID

import structlog

from monetary_bank.audit import AuditLogger
from monetary_bank.ledger.compensation import Compensation
from monetary_bank.ledger.errors import PersistenceError
from monetary_bank.ledger.locks import ScopeLocks
from monetary_bank.models.deposit import DepositKind, DepositRecord, SettlementCycle
from monetary_bank.models.results import CompactionReport
from monetary_bank.services.storage import DepositStoreInterface

GroupKey = tuple[int, str, datetime, Decimal, SettlementCycle]


def group_key(record: DepositRecord) -> GroupKey:
    return (
        record.user_id,
        record.currency,
        record.settlement_day,
        record.rate,
        record.cycle,
    )


def group_demand_records(records: list[DepositRecord]) -> dict[GroupKey, list[DepositRecord]]:
    """Bucket demand records by merge key, keeping settlement order inside each bucket."""
    groups: dict[GroupKey, list[DepositRecord]] = defaultdict(list)
    for record in records:
        if record.is_demand:
            groups[group_key(record)].append(record)
    return dict(groups)


class RecordCompactor:
    """
    Merges mergeable demand records.

    Running it twice in a row changes nothing the second time.
    """

    def __init__(
        self,
        store: DepositStoreInterface,
        locks: Optional[ScopeLocks] = None,
        audit_logger: Optional[AuditLogger] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._store = store
        self._locks = locks or ScopeLocks()
        self._audit_logger = audit_logger or AuditLogger()
        self._logger = logger or structlog.get_logger(__name__)

    async def compact(self, correlation_id: Optional[UUID] = None) -> CompactionReport:
        """Merge every group of two or more demand records."""
        report = CompactionReport()
        records = await self._store.list_records(kind=DepositKind.DEMAND)
        groups = group_demand_records(records)
        report.groups_seen = len(groups)

        for key, members in groups.items():
            if len(members) < 2:
                continue

            user_id, currency = key[0], key[1]
            try:
                removed = await self._merge_group(key, correlation_id)
            except Exception as e:
                report.failed_groups += 1
                self._logger.warning(
                    "compaction_group_failed",
                    user_id=user_id,
                    currency=currency,
                    error=str(e),
                )
                await self._audit_logger.log_compaction_failed(
                    user_id=user_id,
                    currency=currency,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                continue

            if removed:
                report.groups_merged += 1
                report.records_removed += removed

        if report.groups_merged or report.failed_groups:
            self._logger.info(
                "compaction_completed",
                groups_seen=report.groups_seen,
                groups_merged=report.groups_merged,
                records_removed=report.records_removed,
                failed_groups=report.failed_groups,
            )
        return report

    async def _merge_group(self, key: GroupKey, correlation_id: Optional[UUID]) -> int:
        """
        Merge one group.

        Returns:
            How many records the group shrank by (0 if it no longer needs merging)
        """
        user_id, currency = key[0], key[1]

        async with self._locks.hold(user_id, currency):
            fresh = await self._store.list_records(
                user_id=user_id,
                currency=currency,
                kind=DepositKind.DEMAND,
            )
            members = [r for r in fresh if group_key(r) == key]
            if len(members) < 2:
                return 0

            oldest = members[0]
            merged = DepositRecord(
                user_id=user_id,
                currency=currency,
                principal=sum((r.principal for r in members), Decimal(0)),
                kind=DepositKind.DEMAND,
                rate=oldest.rate,
                cycle=oldest.cycle,
                next_settlement_at=oldest.next_settlement_at,
                created_at=min(r.created_at for r in members),
            )

            compensation = Compensation()
            try:
                for record in members:
                    deleted = await self._store.delete_record(record.id, expected_version=record.version)
                    if not deleted:
                        raise PersistenceError(f"Deposit record {record.id} disappeared during compaction")
                    compensation.add(
                        f"restore record {record.id}",
                        partial(self._store.create_record, record),
                    )
                merged = await self._store.create_record(merged)
            except Exception:
                await compensation.rollback()
                raise

        await self._audit_logger.log_records_compacted(
            user_id=user_id,
            currency=currency,
            record_id=merged.id,
            merged=len(members),
            principal=merged.principal,
            correlation_id=correlation_id,
        )
        return len(members) - 1
