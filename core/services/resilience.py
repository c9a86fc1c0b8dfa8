"""
Retry, database-error wrapping and timing helpers shared by the services.
"""
from __future__ import annotations

import contextlib
import logging
import time
from typing import Callable, Iterator, Optional, TypeVar

from django.conf import settings
from django.db import DatabaseError

from core.exceptions import CareAppError, ErrorType, log_error

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Errors a retry cannot fix.
NON_RETRYABLE = {ErrorType.AUTHENTICATION, ErrorType.AUTHORIZATION, ErrorType.VALIDATION}


def retry_operation(
    fn: Callable[[], T],
    max_retries: int = 3,
    delay: float = 1.0,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """Call ``fn`` up to ``max_retries`` times, waiting ``delay * attempt``
    seconds between attempts."""
    last_error: BaseException | None = None
    for attempt in range(1, max_retries + 1):
        try:
            return fn()
        except CareAppError as e:
            if e.type in NON_RETRYABLE:
                raise
            last_error = e
        except Exception as e:
            last_error = e
        logger.warning(
            'attempt %s/%s failed: %s', attempt, max_retries, last_error,
            extra={'operation': getattr(fn, '__name__', 'operation')},
        )
        if attempt < max_retries:
            (sleep or time.sleep)(delay * attempt)
    raise CareAppError(
        f'Operation failed after {max_retries} attempts',
        ErrorType.UNKNOWN,
        context={'last_error': str(last_error)},
    ) from last_error


def safe_database_operation(fn: Callable[[], T], message: str = 'Database operation failed') -> T:
    try:
        return fn()
    except DatabaseError as e:
        err = CareAppError(message, ErrorType.DATABASE, context={'cause': str(e)})
        log_error(err, 'database')
        raise err from e


@contextlib.contextmanager
def measure_performance(name: str, threshold: float | None = None) -> Iterator[None]:
    """Warn when the block takes longer than ``SLOW_OPERATION_SECONDS``."""
    if threshold is None:
        threshold = getattr(settings, 'SLOW_OPERATION_SECONDS', 1.0)
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - started
        if elapsed > threshold:
            logger.warning(
                'slow operation %s took %.3fs', name, elapsed,
                extra={'operation': name, 'execution_time': round(elapsed, 3)},
            )
