"""
Retry logic with exponential backoff and circuit breaking.

Persistence writes are retried on transient store errors. External
scoring calls are never retried inside the matching hot path; they are
guarded by a circuit breaker so a failing provider is skipped quickly
instead of being hammered for every user.
"""

import functools
import threading
import time
from typing import Callable, Optional, Tuple, Type


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


class CircuitOpenError(Exception):
    """Raised when a call is blocked by an open circuit."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Retry the wrapped call on `exceptions`, sleeping longer after each failure.

    Args:
        max_retries: Extra attempts after the first one
        base_delay: Sleep before the first retry, in seconds
        max_delay: Upper bound for any single sleep
        exponential_base: Growth factor applied to the sleep after each retry
        exceptions: Exception types that trigger a retry; others propagate
        on_retry: Called as on_retry(attempt, exception, delay) before sleeping

    Raises:
        RetryError: When every attempt failed, chained to the last error

    Example:
        @exponential_backoff(max_retries=2, base_delay=0.05, exceptions=(OperationalError,))
        def write_rows(session, rows):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)

                    time.sleep(current_delay)
                    delay *= exponential_base

        return wrapper
    return decorator


class CircuitBreaker:
    """
    Stops calling a failing dependency until it has had time to recover.

    closed: calls pass through and failures are counted.
    open: calls fail fast with CircuitOpenError.
    half_open: after `recovery_timeout` one trial call is let through;
    success closes the circuit, failure opens it again.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        expected_exception: Type[Exception] = Exception,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self._clock = clock

        self.failure_count = 0
        self.state = self.CLOSED
        self._opened_at: Optional[float] = None
        self._lock = threading.Lock()

    def call(self, func: Callable, *args, **kwargs):
        """
        Invoke `func` unless the circuit is open.

        Only `expected_exception` counts toward opening the circuit; other
        exceptions propagate untouched.

        Raises:
            CircuitOpenError: If the circuit is open
        """
        with self._lock:
            if self.state == self.OPEN:
                wait = self.retry_after()
                if wait > 0:
                    raise CircuitOpenError(
                        f"Circuit breaker is OPEN; retry after {wait:.0f}s"
                    )
                self.state = self.HALF_OPEN

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._record_failure()
            raise
        self._record_success()
        return result

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self.state == self.OPEN and self.retry_after() > 0

    def retry_after(self) -> float:
        """Seconds until a trial call is allowed (0 when not open)."""
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (self._clock() - self._opened_at))

    def _record_success(self):
        with self._lock:
            self.failure_count = 0
            self.state = self.CLOSED
            self._opened_at = None

    def _record_failure(self):
        with self._lock:
            self.failure_count += 1
            if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
                self.state = self.OPEN
                self._opened_at = self._clock()

    def reset(self):
        with self._lock:
            self.failure_count = 0
            self.state = self.CLOSED
            self._opened_at = None
