"""Interest settlement package."""

from monetary_bank.settlement.compactor import RecordCompactor, group_demand_records
from monetary_bank.settlement.engine import InterestSettlementEngine
from monetary_bank.settlement.scheduler import SettlementScheduler

__all__ = [
    "InterestSettlementEngine",
    "RecordCompactor",
    "SettlementScheduler",
    "group_demand_records",
]
