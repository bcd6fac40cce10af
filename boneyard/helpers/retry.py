import random
import time
from typing import Any, Callable

from boneyard.helpers.errors import StatsUpdateError

# lowercase fragments of driver messages that mean "try again"
TRANSIENT_DB_MESSAGES = (
    "database is locked",  # sqlite
    "deadlock",
    "could not serialize",
    "serialization failure",
    "lock timeout",
    "connection refused",
    "server closed the connection",
)


def is_transient_db_error(exc: Exception) -> bool:
    """True for lock / serialization / dropped-connection errors."""
    if isinstance(exc, StatsUpdateError):
        exc = exc.cause

    msg = str(getattr(exc, "orig", None) or exc).lower()
    if any(fragment in msg for fragment in TRANSIENT_DB_MESSAGES):
        return True
    return "statement" in msg and "timeout" in msg


def retry_with_backoff(
    func: Callable[[], Any],
    *,
    attempts: int = 3,
    base_delay: float = 0.05,
    is_retryable: Callable[[Exception], bool] = is_transient_db_error,
) -> Any:
    """
    Call `func` until it succeeds, at most `attempts` times.

    Only errors `is_retryable` accepts are retried; anything else, or the
    last failure, is re-raised. Waits double from `base_delay` with a
    little jitter, never more than a second.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except Exception as exc:
            if attempt == attempts or not is_retryable(exc):
                raise
            delay = base_delay * 2 ** (attempt - 1) + random.uniform(0, base_delay)
            time.sleep(min(1.0, delay))
