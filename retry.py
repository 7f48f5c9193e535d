"""Bounded retry with a linear backoff schedule for provider calls."""

import logging
import time

from errors import ProviderError, ValidationError

log = logging.getLogger("story")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 1.0

# "Service overloaded" family
OVERLOAD_STATUSES = frozenset({429, 503, 529})

# Request/auth problems, raised on the first failure
NON_RETRYABLE_STATUSES = frozenset({400, 401, 403, 404, 422})


def is_retryable(error: Exception) -> bool:
    if isinstance(error, ValidationError):
        return False
    if isinstance(error, ProviderError):
        return error.status not in NON_RETRYABLE_STATUSES
    return True


def backoff_delay(attempt: int, backoff_base: float = DEFAULT_BACKOFF_BASE) -> float:
    """Delay after the ``attempt``-th failure (1-based): base * attempt."""
    return backoff_base * attempt


def with_retry(
    fn,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_base: float = DEFAULT_BACKOFF_BASE,
    sleep=time.sleep,
    label: str = "call",
):
    """Call ``fn()`` up to ``max_attempts`` times and return its result.

    Waits ``backoff_base * attempt`` between attempts. Non-retryable errors
    and the error of the last attempt are re-raised unchanged.
    """
    max_attempts = max(1, max_attempts)
    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e):
                log.info("    retry: %s failed with non-retryable %s — %s", label, type(e).__name__, e)
                raise
            if attempt >= max_attempts:
                log.warning("    retry: %s failed after %d attempts — %s", label, attempt, e)
                raise
            delay = backoff_delay(attempt, backoff_base)
            overloaded = isinstance(e, ProviderError) and e.status in OVERLOAD_STATUSES
            log.info("    retry: %s attempt %d/%d failed (%s%s), waiting %.1fs",
                     label, attempt, max_attempts, type(e).__name__,
                     ", overloaded" if overloaded else "", delay)
            sleep(delay)
