"""Run a handful of lookups concurrently and keep the first useful answer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

T = TypeVar("T")


@dataclass
class FanOutResult(Generic[T]):
    """Outcome of `first_success`.

    `value` is the first non-None result, or None. `errors` holds the
    exceptions raised by attempts that failed outright; timed-out attempts
    are only counted.
    """

    value: T | None = None
    errors: list[Exception] = field(default_factory=list)
    timed_out: int = 0
    attempts: int = 0

    @property
    def all_raised(self) -> bool:
        return self.attempts > 0 and len(self.errors) == self.attempts


async def first_success(
    attempts: Sequence[Callable[[], Awaitable[T | None]]],
    *,
    timeout: float,
) -> FanOutResult[T]:
    """Start every attempt at once, each bounded by `timeout` seconds.

    Returns as soon as one attempt produces a non-None value; the remaining
    attempts are cancelled and awaited before returning. Attempt failures
    never propagate.
    """
    result: FanOutResult[T] = FanOutResult(attempts=len(attempts))
    if not attempts:
        return result

    pending = {asyncio.ensure_future(asyncio.wait_for(attempt(), timeout)) for attempt in attempts}
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if task.cancelled():
                    continue
                exc = task.exception()
                if isinstance(exc, TimeoutError):
                    result.timed_out += 1
                elif isinstance(exc, Exception):
                    result.errors.append(exc)
                elif exc is None and (value := task.result()) is not None:
                    result.value = value
                    return result
        return result
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
