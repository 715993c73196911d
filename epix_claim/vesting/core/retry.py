"""
Retry utilities for calls to external services.

The ledger itself never retries; this is only used by the snapshot service
client, whose GET requests are safe to repeat.
"""

import logging
import time
from functools import wraps
from typing import List, Optional, Type

import requests

logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """Error that can be retried."""
    pass


def with_retries(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 4.0,
    backoff_factor: float = 2.0,
    retryable_errors: Optional[List[Type[Exception]]] = None
):
    """
    Decorator for retrying operations with exponential backoff.

    The decorated callable may take a `max_attempts` attribute from its bound
    instance, so clients can configure the attempt count per instance.

    Args:
        max_attempts: Maximum number of attempts
        initial_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        backoff_factor: Factor to increase delay by after each attempt
        retryable_errors: List of error types that should trigger a retry
    """
    if retryable_errors is None:
        retryable_errors = [
            RetryableError,
            requests.ConnectionError,
            requests.Timeout
        ]

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempts = getattr(args[0], "max_attempts", max_attempts) if args else max_attempts
            last_error = None
            delay = initial_delay

            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)

                except tuple(retryable_errors) as e:
                    last_error = e
                    if attempt < attempts - 1:
                        logger.warning(
                            f"Attempt {attempt + 1}/{attempts} failed: {str(e)}. "
                            f"Retrying in {delay:.2f}s..."
                        )
                        time.sleep(delay)
                        delay = min(delay * backoff_factor, max_delay)

            logger.error(
                f"Operation failed after {attempts} attempts. "
                f"Last error: {str(last_error)}"
            )
            raise last_error

        return wrapper
    return decorator
