"""
Daily Settlement Scheduler

Sleeps until the next local midnight, runs the settlement engine, and
repeats. The wait is recomputed before every run so the schedule does
not drift with the run's own duration.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

import structlog

from monetary_bank.models.deposit import day_boundary
from monetary_bank.models.results import SettlementReport
from monetary_bank.settlement.engine import InterestSettlementEngine


class SettlementScheduler:
    """Background task driving InterestSettlementEngine once a day."""

    def __init__(
        self,
        engine: InterestSettlementEngine,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._engine = engine
        self._clock = clock or datetime.now
        self._sleep = sleep
        self._logger = logger or structlog.get_logger(__name__)
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seconds_until_next_run(self) -> float:
        now = self._clock()
        next_midnight = day_boundary(now) + timedelta(days=1)
        return (next_midnight - now).total_seconds()

    def start(self) -> None:
        """Start the loop on the running event loop. Calling it twice is a no-op."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name="monetary-bank-settlement")
        self._logger.info(
            "settlement_scheduler_started",
            first_run_in_seconds=round(self.seconds_until_next_run()),
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info("settlement_scheduler_stopped")

    async def run_once(self) -> Optional[SettlementReport]:
        """Run one sweep. A failed sweep is logged and does not raise."""
        try:
            return await self._engine.run()
        except Exception:
            self._logger.exception("settlement_run_failed")
            return None

    async def _loop(self) -> None:
        while True:
            await self._sleep(self.seconds_until_next_run())
            await self.run_once()
