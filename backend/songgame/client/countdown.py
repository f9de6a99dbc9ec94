"""
Local round countdown.

Purely advisory: the server never runs a round clock. The game master's
device runs this countdown and, once it reaches zero, shows a short
"time's up" grace period before sending the single authoritative
`round-timeout`. Other devices may run it for display but must not pass
an `on_timeout` that talks to the server.
"""

from __future__ import annotations

import asyncio
import time
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = structlog.get_logger()

DEFAULT_GRACE_SECONDS = 5.0


class CountdownState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    TIMES_UP = "times_up"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class RoundCountdown:
    def __init__(
        self,
        duration_seconds: float,
        on_timeout: Callable[[], Awaitable[None]] | None = None,
        *,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        tick_seconds: float = 1.0,
        on_tick: Callable[[CountdownState, float], None] | None = None,
    ) -> None:
        self._duration_seconds = duration_seconds
        self._grace_seconds = grace_seconds
        self._tick_seconds = tick_seconds
        self._on_timeout = on_timeout
        self._on_tick = on_tick
        self._state = CountdownState.IDLE
        self._deadline: float | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> CountdownState:
        return self._state

    @property
    def seconds_left(self) -> float:
        """Seconds left in the current stage (round time, then grace time)."""
        if self._deadline is None:
            return self._duration_seconds if self._state == CountdownState.IDLE else 0.0
        return max(0.0, self._deadline - time.monotonic())

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        """Stop the countdown. Safe to call repeatedly and after expiry."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._state in (CountdownState.IDLE, CountdownState.RUNNING, CountdownState.TIMES_UP):
            self._state = CountdownState.CANCELLED
            self._deadline = None

    async def wait(self) -> None:
        """Wait for the countdown task to finish, whether expired or cancelled."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        await self._run_stage(CountdownState.RUNNING, self._duration_seconds)
        await self._run_stage(CountdownState.TIMES_UP, self._grace_seconds)
        self._state = CountdownState.EXPIRED
        self._deadline = None
        if self._on_timeout is None:
            return
        try:
            await self._on_timeout()
        except Exception:
            logger.exception("round timeout callback failed")

    async def _run_stage(self, state: CountdownState, seconds: float) -> None:
        self._state = state
        self._deadline = time.monotonic() + seconds
        while (remaining := self._deadline - time.monotonic()) > 0:
            self._notify(state, remaining)
            await asyncio.sleep(min(self._tick_seconds, remaining))
        self._notify(state, 0.0)

    def _notify(self, state: CountdownState, remaining: float) -> None:
        if self._on_tick is not None:
            self._on_tick(state, remaining)
