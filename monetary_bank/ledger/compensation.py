"""
Compensation Steps

A multi-step change spanning the cash ledger and the deposit store has
no shared transaction. Each forward step registers the coroutine that
undoes it; on failure the steps are replayed newest first.
"""

from typing import Awaitable, Callable, Optional

UndoStep = Callable[[], Awaitable[object]]


class Compensation:
    """Undo steps registered by one operation, replayed newest first."""

    def __init__(self):
        self._steps: list[tuple[str, UndoStep]] = []

    def add(self, description: str, undo: UndoStep) -> None:
        self._steps.append((description, undo))

    def __len__(self) -> int:
        return len(self._steps)

    async def rollback(self) -> None:
        """
        Run every undo step in reverse order.

        All steps are attempted even if one fails; the first failure is
        raised afterwards.
        """
        first_error: Optional[Exception] = None
        while self._steps:
            description, undo = self._steps.pop()
            try:
                await undo()
            except Exception as e:
                if first_error is None:
                    first_error = RuntimeError(f"{description}: {e}")
        if first_error is not None:
            raise first_error
