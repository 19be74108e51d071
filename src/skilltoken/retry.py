"""
Bounded retry loop shared by provider detection and transaction confirmation.

An attempt is any coroutine factory; it fails by raising. The loop sleeps a
fixed delay *between* attempts (never after the last one), enforces an
optional per-attempt timeout, and consults a Liveness token after every
suspension point so a torn-down owner stops the loop without further side
effects.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

log = logging.getLogger("skilltoken.retry")

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class Cancelled(Exception):
    """The owning context was torn down while the loop was suspended."""


class RetriesExhausted(Exception):
    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempts: {last_error!r}")


class Liveness:
    """Set at loop start, cleared on teardown."""

    def __init__(self) -> None:
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def cancel(self) -> None:
        self._alive = False

    def check(self) -> None:
        if not self._alive:
            raise Cancelled()


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int
    delay: float
    attempt_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")


async def run_with_retry(
    attempt: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    liveness: Liveness | None = None,
    on_failure: Callable[[int, BaseException], None] | None = None,
    sleep: Sleep = asyncio.sleep,
    label: str = "attempt",
) -> T:
    """Run ``attempt`` until it returns, at most ``policy.max_attempts`` times.

    Raises RetriesExhausted once the bound is hit and Cancelled as soon as
    ``liveness`` is found cleared after an await.
    """
    last_error: BaseException | None = None
    for n in range(1, policy.max_attempts + 1):
        if liveness is not None:
            liveness.check()
        try:
            if policy.attempt_timeout is not None:
                result = await asyncio.wait_for(attempt(), timeout=policy.attempt_timeout)
            else:
                result = await attempt()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            if liveness is not None:
                liveness.check()
            if on_failure is not None:
                on_failure(n, e)
            if n < policy.max_attempts:
                log.info("%s failed (attempt %s/%s): %s - retrying in %ss",
                         label, n, policy.max_attempts, e.__class__.__name__, policy.delay)
                await sleep(policy.delay)
            else:
                log.warning("%s failed after %s attempts: %r", label, policy.max_attempts, e)
            continue

        if liveness is not None:
            liveness.check()
        log.debug("%s succeeded (attempt %s/%s)", label, n, policy.max_attempts)
        return result

    raise RetriesExhausted(policy.max_attempts, last_error)
