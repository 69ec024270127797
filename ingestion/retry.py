"""
Fixed-interval retry policy shared by page fetches and upload batches.

One logical operation runs as:
    attempt -> on failure log an error event naming the attempt
            -> if attempts remain, wait retry_interval and try again
            -> if exhausted, re-raise (fail_on_error) or give up
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar
import logging

from ingestion import timing
from ingestion.events import EventLog
from schemas.pipeline import ErrorHandling

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    """Result of one retried operation when it did not raise"""
    succeeded: bool
    value: Optional[T] = None
    attempts: int = 0
    error: Optional[BaseException] = None


class RetryPolicy:
    """
    Executes an async operation under an ErrorHandling policy.

    Exceptions raised by before_attempt are not retried; they propagate
    immediately so callers can use it for budget checks such as timeouts.
    """

    def __init__(self, error_handling: ErrorHandling, events: EventLog):
        self.error_handling = error_handling
        self.events = events

    @property
    def max_attempts(self) -> int:
        return self.error_handling.max_retries + 1

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str,
        before_attempt: Optional[Callable[[int], Any]] = None
    ) -> RetryOutcome[T]:
        """
        Run operation until it succeeds or attempts are exhausted.

        Args:
            operation: Zero-argument coroutine factory
            label: Operation name used in error events ("download", "upload")
            before_attempt: Called with the attempt index before each attempt

        Returns:
            RetryOutcome; succeeded is False only when fail_on_error is off

        Raises:
            Exception: The last operation error, unchanged, when fail_on_error is on
        """
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_attempts):
            if attempt > 0:
                await timing.delay(self.error_handling.retry_interval)

            if before_attempt is not None:
                before_attempt(attempt)

            try:
                value = await operation()
                return RetryOutcome(succeeded=True, value=value, attempts=attempt + 1)
            except Exception as e:
                last_error = e
                self.events.error(f"Attempt {attempt + 1} failed in {label}: {e}")

        if self.error_handling.fail_on_error:
            raise last_error

        logger.warning(f"Giving up on {label} after {self.max_attempts} attempts")
        return RetryOutcome(succeeded=False, attempts=self.max_attempts, error=last_error)
