"""
Retry configuration for Taqvo Community gateway reads.

Reads against the remote table store are retried on transient transport errors
before they degrade to an empty result. Writes are never retried here; failed
writes go to the offline write queue instead.
"""

import logging
from typing import Tuple, Type

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)


def read_retry_config(
    name: str,
    max_attempts: int = 2,
    min_wait: float = 0.2,
    max_wait: float = 2.0,
    retry_on_exceptions: Tuple[Type[Exception], ...] = (httpx.TransportError,),
):
    """
    Create a tenacity retry decorator for gateway reads.

    Args:
        name: Operation name for logging
        max_attempts: Maximum attempts including the first call
        min_wait: Minimum wait time between retries
        max_wait: Maximum wait time between retries
        retry_on_exceptions: Exceptions to retry on

    Returns:
        Tenacity retry decorator (works on coroutines)
    """
    return retry(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on_exceptions),
        before_sleep=before_sleep_log(logging.getLogger(f"{__name__}.{name}"), logging.WARNING),
        reraise=True,
    )
