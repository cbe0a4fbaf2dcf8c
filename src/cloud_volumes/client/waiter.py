"""
Deadline-bounded polling and retries for asynchronous cloud operations.

Every action creates one ``Deadline`` when it starts and passes it to all
remote calls and waits, so the action as a whole is bounded by the
caller's timeout in wall-clock time.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Collection, Optional, TypeVar

from ..errors import DeadlineExceededError, OperationFailedError, RemoteAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_MAX_RETRIES = 30

FAILED = "failed"


class Deadline:
    """
    Wall-clock deadline shared by all remote calls of one action.

    Args:
        timeout_sec: Seconds from now until the deadline
        clock: Monotonic clock (injectable for tests)
    """

    def __init__(self, timeout_sec: float, clock: Callable[[], float] = time.monotonic):
        self.timeout_sec = timeout_sec
        self._clock = clock
        self._expires_at = clock() + timeout_sec

    @classmethod
    def from_minutes(cls, minutes: float, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(minutes * 60, clock=clock)

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def exceeded(self, operation: str, reason: Optional[str] = None) -> DeadlineExceededError:
        return DeadlineExceededError(operation, self.timeout_sec, reason)

    async def sleep(self, interval: float) -> None:
        """Sleep for ``interval`` seconds, or until the deadline if sooner."""
        await asyncio.sleep(min(interval, self.remaining()))

    async def run(self, awaitable: Awaitable[T], operation: str) -> T:
        """
        Await a remote call, cancelling it when the deadline passes.

        Raises:
            DeadlineExceededError: If the deadline passes first
        """
        if self.expired:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise self.exceeded(operation)
        try:
            return await asyncio.wait_for(awaitable, timeout=self.remaining())
        except asyncio.TimeoutError:
            raise self.exceeded(operation) from None


async def retry_on_gateway_timeout(
    call: Callable[[], Awaitable[T]],
    *,
    deadline: Deadline,
    operation: str,
    delay: float = DEFAULT_RETRY_DELAY,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> T:
    """
    Run ``call`` and retry it while the API answers with a gateway timeout.

    Any other remote error propagates immediately.

    Args:
        call: Zero-argument factory for the remote call
        deadline: Action deadline
        operation: Description for logs and errors
        delay: Fixed backoff between attempts (seconds)
        max_retries: Retries allowed before giving up

    Raises:
        DeadlineExceededError: If retries run out or the deadline passes
        RemoteAPIError: On any non-504 API error
    """
    retries = 0
    while True:
        try:
            return await deadline.run(call(), operation)
        except RemoteAPIError as e:
            if not e.is_gateway_timeout:
                raise
            if retries >= max_retries:
                raise deadline.exceeded(
                    operation, f"gave up after {retries} gateway timeout retries"
                ) from e
            retries += 1
            logger.info(f"Gateway timeout during {operation} - {e.remote_message}, retrying...")
            if deadline.expired:
                raise deadline.exceeded(operation) from e
            await deadline.sleep(delay)


async def poll_until(
    check: Callable[[], Awaitable[bool]],
    *,
    deadline: Deadline,
    operation: str,
    interval: float = DEFAULT_POLL_INTERVAL,
) -> None:
    """
    Call ``check`` every ``interval`` seconds until it returns True.

    ``check`` signals a failed resource by raising OperationFailedError.

    Raises:
        DeadlineExceededError: If the deadline passes first
    """
    while True:
        if await check():
            return
        if deadline.expired:
            raise deadline.exceeded(operation)
        await deadline.sleep(interval)


async def wait_for_status(
    fetch: Callable[[], Awaitable[Any]],
    *,
    attribute: str,
    until: Callable[[str], bool],
    deadline: Deadline,
    operation: str,
    interval: float = DEFAULT_POLL_INTERVAL,
    failed: Collection[str] = (FAILED,),
) -> Any:
    """
    Poll a resource until its ``attribute`` satisfies ``until``.

    Args:
        fetch: Zero-argument factory returning the current resource view
        attribute: Status field to watch ("status" or "state")
        until: Predicate on the field value that ends the wait
        deadline: Action deadline
        operation: Description for logs and errors
        interval: Seconds between polls
        failed: Values that mean the resource failed

    Returns:
        The last fetched resource

    Raises:
        OperationFailedError: If the resource reports a failed value
        DeadlineExceededError: If the deadline passes first
    """
    resource = None

    async def check() -> bool:
        nonlocal resource
        resource = await deadline.run(fetch(), operation)
        value = getattr(resource, attribute)
        if value in failed:
            raise OperationFailedError(operation, f"{attribute} is '{value}'")
        if until(value):
            return True
        logger.info(f"Waiting for {operation}... Current {attribute} is '{value}'")
        return False

    await poll_until(check, deadline=deadline, operation=operation, interval=interval)
    return resource


__all__ = [
    "Deadline",
    "retry_on_gateway_timeout",
    "poll_until",
    "wait_for_status",
]
