"""
Retry with exponential backoff for calls to external APIs.

Rate limiting (429), server errors (5xx) and dropped connections are
retried; authorization failures (401/403) and other client errors are
raised immediately.
"""

import logging
import time
from typing import Any, Callable, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0
DEFAULT_BACKOFF_MULTIPLIER = 2


def get_status_code(error: BaseException) -> Optional[int]:
    """Extract an HTTP status code from the exception types used by our API clients"""
    # googleapiclient.errors.HttpError
    resp = getattr(error, 'resp', None)
    if resp is not None and getattr(resp, 'status', None) is not None:
        try:
            return int(resp.status)
        except (TypeError, ValueError):
            return None

    # anthropic.APIStatusError and similar
    status = getattr(error, 'status_code', None)
    if isinstance(status, int):
        return status

    # requests.HTTPError
    response = getattr(error, 'response', None)
    if response is not None and isinstance(getattr(response, 'status_code', None), int):
        return response.status_code

    return None


def is_network_error(error: BaseException) -> bool:
    """Connection resets, refused connections and timeouts"""
    return isinstance(error, (ConnectionError, TimeoutError,
                              requests.ConnectionError, requests.Timeout))


def is_rate_limit_error(error: BaseException) -> bool:
    return get_status_code(error) == 429


def default_should_retry(error: BaseException) -> bool:
    status = get_status_code(error)
    if status in (401, 403):
        return False
    if status is not None:
        return status == 429 or status >= 500
    return is_network_error(error)


def retry_with_backoff(fn: Callable[[], Any],
                       max_retries: int = DEFAULT_MAX_RETRIES,
                       initial_delay: float = DEFAULT_INITIAL_DELAY,
                       max_delay: float = DEFAULT_MAX_DELAY,
                       backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
                       should_retry: Optional[Callable[[BaseException], bool]] = None) -> Any:
    """
    Call fn, retrying retryable failures with exponential backoff.

    Args:
        fn: Zero-argument callable to execute
        max_retries: Retries after the first attempt
        initial_delay: Seconds to wait before the first retry
        max_delay: Upper bound for a single wait
        backoff_multiplier: Factor applied to the delay after each retry
        should_retry: Predicate deciding whether an exception is retryable

    Returns:
        Whatever fn returns

    Raises:
        The last exception once retries are exhausted, or the first
        non-retryable exception
    """
    should_retry = should_retry or default_should_retry
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return fn()
        except Exception as e:
            if attempt >= max_retries or not should_retry(e):
                raise
            logger.warning(f"Attempt {attempt + 1} failed ({e}), retrying in {delay:.1f}s")
            time.sleep(delay)
            delay = min(delay * backoff_multiplier, max_delay)
