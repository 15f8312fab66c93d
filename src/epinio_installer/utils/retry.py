# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

import functools
import logging
import time
from typing import Callable, Optional

log = logging.getLogger("epinio_installer")

# Error text of transient API server / network trouble, as printed by kubectl.
RETRYABLE_MARKERS = (
    " x509: ",
    "Gateway",
    "Service Unavailable",
    "Internal Server Error",
    "connection refused",
    "connection reset by peer",
    "i/o timeout",
    "TLS handshake timeout",
    "the server is currently unable to handle the request",
    "failed calling webhook",
    "no endpoints available",
    "EOF",
)


class RetryError(RuntimeError):
    pass


def is_retryable(message: str) -> bool:
    return any(marker in message for marker in RETRYABLE_MARKERS)


def retry(
    *,
    retries: Optional[int],
    delay: float,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    on_retry: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], object] = time.sleep,
):
    """
    Retry decorator for idempotent operations.

    retries: number of attempts, None retries for as long as retry_if allows
    delay: seconds between attempts
    retry_on: exception types to retry
    retry_if: predicate on the exception; when it returns False the
        exception is raised unchanged
    on_retry: callback(attempt, exception)
    sleep: waits between attempts; ExecutionContext.wait makes retries cancellable
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                attempt += 1
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    if retry_if is not None and not retry_if(exc):
                        raise
                    if retries is not None and attempt >= retries:
                        raise RetryError(f"{fn.__name__} failed after {retries} retries") from exc
                    if on_retry:
                        on_retry(attempt, exc)
                    if sleep(delay) is True:
                        # the sleep was interrupted by a cancellation
                        raise
        return wrapper
    return decorator
