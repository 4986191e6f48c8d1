from __future__ import annotations
import asyncio, time
from typing import Callable

from .logger import get_logger

log = get_logger("clock")


class Clock:
    """Real time source. Tests swap in a simulated clock with the same surface."""

    def now(self) -> float:
        return time.monotonic()

    def epoch_ms(self) -> int:
        return int(time.time() * 1000)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0.0))


async def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    poll_interval: float,
    clock: Clock,
) -> bool:
    """
    Poll `predicate` every `poll_interval` seconds until it returns True or
    `timeout` elapses. Returns the last predicate result; never raises on timeout.
    A predicate that raises counts as False.
    """
    deadline = clock.now() + timeout
    while True:
        try:
            if predicate():
                return True
        except Exception as exc:  # noqa: BLE001 - page may be mid-render
            log.debug(f"[wait] predicate raised: {exc}")
        remaining = deadline - clock.now()
        if remaining <= 0:
            return False
        await clock.sleep(min(poll_interval, remaining))
