"""Exponential backoff retry loop with caller-supplied cancellation."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from .exceptions import RetryableError, SubscriptionCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them.

    Attempt ``n`` (counting from 0) is followed by a wait of
    ``base_delay * 2 ** n`` seconds, except the last one. With the defaults
    that is 1, 2, 4 and 8 seconds across 5 attempts.
    """

    max_attempts: int = 5
    base_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)


class CancellationToken:
    """Cancel a subscribe call from another thread, or bound it in time.

    Example:
        ```python
        token = CancellationToken(timeout=20.0)
        threading.Timer(5.0, token.cancel).start()
        client.subscribe("user@example.com", cancel_token=token)
        ```
    """

    def __init__(self, timeout: float | None = None):
        """Initialize the token.

        Args:
            timeout: Overall deadline in seconds, measured from now.
        """
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SubscriptionCancelledError()
        if self.cancelled:
            raise SubscriptionCancelledError("Subscription deadline exceeded")

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            return True
        return self._event.wait(seconds)


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy | None = None,
    token: CancellationToken | None = None,
    wait: Callable[[float], bool] | None = None,
) -> T:
    """Call ``func`` until it succeeds or the attempts run out.

    Only ``RetryableError`` is retried; any other exception propagates at
    once. After the last attempt the last retryable error is raised.

    Args:
        func: The attempt to run. Called with no arguments.
        policy: Attempt ceiling and base delay. Defaults to ``RetryPolicy()``.
        token: Checked before each attempt and used for the backoff wait.
        wait: Replaces ``token.wait`` for the backoff; returns True when
            the call should stop.

    Returns:
        Whatever ``func`` returns on its first success.

    Raises:
        SubscriptionCancelledError: If the token is cancelled or expires.
    """
    policy = policy or RetryPolicy()
    token = token or CancellationToken()
    wait = wait or token.wait

    attempt = 0
    while True:
        token.raise_if_cancelled()
        logger.debug("Attempt %d of %d", attempt + 1, policy.max_attempts)
        try:
            return func()
        except RetryableError as e:
            if attempt >= policy.max_attempts - 1:
                logger.error("Giving up after %d attempts: %s", attempt + 1, e.message)
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d failed (%s), retrying in %.1fs",
                attempt + 1,
                type(e).__name__,
                delay,
            )
            if wait(delay):
                token.raise_if_cancelled()
                raise SubscriptionCancelledError() from e
        attempt += 1
