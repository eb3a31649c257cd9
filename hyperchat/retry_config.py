"""
Retry configuration for session warm-up, strategy execution and favicons.

Centralized retry logic using tenacity. Session-facing policies are
small: a warm-up or a prompt submission gets exactly one retry, after
which the session is reported as FAILED. Favicon fetching is cosmetic and
retries transient network errors with a short exponential backoff.

Key features:
- Exactly one retry for warm-up navigation and strategy execution
- Only transient errors are retried (timeouts, navigation errors)
- Exponential backoff for httpx transport errors (favicons)

Example:
    >>> from hyperchat.retry_config import create_session_retrying
    >>> async for attempt in create_session_retrying((NavigationError,)):
    ...     with attempt:
    ...         await engine.navigate(url)
"""

import httpx
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from hyperchat.config.constants import MAX_RETRIES

# ============================================================================
# RETRY CONSTANTS
# ============================================================================

# Initial attempt plus MAX_RETRIES retries
SESSION_MAX_ATTEMPTS = 1 + MAX_RETRIES

# Pause before the single session retry (seconds)
SESSION_RETRY_WAIT_SECONDS = 0.5

# Favicon fetching: 3 attempts with 0.5s..4s backoff
FAVICON_MAX_ATTEMPTS = 3
FAVICON_MIN_WAIT_SECONDS = 0.5
FAVICON_MAX_WAIT_SECONDS = 4

# ============================================================================
# RETRY FACTORIES
# ============================================================================


def create_session_retrying(
    retry_on: tuple[type[BaseException], ...],
    wait_seconds: float | None = None,
) -> AsyncRetrying:
    """
    Create an AsyncRetrying controller for one session operation.

    Used with `async for attempt in ...: with attempt:` so that the caller
    keeps its own timeout and logging around each attempt.

    Args:
        retry_on: Exception types that trigger the single retry
        wait_seconds: Pause before the retry (SESSION_RETRY_WAIT_SECONDS
            when None)

    Returns:
        AsyncRetrying configured for SESSION_MAX_ATTEMPTS attempts

    Note:
        reraise=True surfaces the last attempt's exception unchanged, so
        callers can map it onto a session status.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(SESSION_MAX_ATTEMPTS),
        wait=wait_fixed(
            SESSION_RETRY_WAIT_SECONDS if wait_seconds is None else wait_seconds
        ),
        retry=retry_if_exception_type(retry_on),
        reraise=True,
    )


def create_favicon_retry_decorator():
    """
    Create a tenacity retry decorator for favicon HTTP requests.

    Retries on:
    - httpx.ConnectError (network issues)
    - httpx.TimeoutException (request timeouts)
    - httpx.RemoteProtocolError (connection dropped mid-response)

    Returns:
        Retry decorator for async favicon requests
    """
    return retry(
        stop=stop_after_attempt(FAVICON_MAX_ATTEMPTS),
        wait=wait_exponential(
            multiplier=FAVICON_MIN_WAIT_SECONDS,
            min=FAVICON_MIN_WAIT_SECONDS,
            max=FAVICON_MAX_WAIT_SECONDS,
        ),
        retry=retry_if_exception_type(
            (
                httpx.ConnectError,
                httpx.TimeoutException,
                httpx.RemoteProtocolError,
            )
        ),
        reraise=True,
    )
