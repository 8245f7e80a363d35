from __future__ import annotations

import asyncio

from govengine.core.exceptions import AssessmentCancelledError


class CancellationToken:
    """
    Cooperative cancellation shared by every analyzer of one run.

    Analyzers call ``raise_if_cancelled()`` before each external call; a call
    that is already in flight is allowed to finish.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AssessmentCancelledError(
                self._reason or "Assessment was cancelled",
            )

    async def wait(self) -> None:
        await self._event.wait()
