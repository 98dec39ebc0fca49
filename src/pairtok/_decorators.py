"""Reusable decorators for training and tokenizer utilities."""

import functools
import logging
import time
from typing import Callable

log = logging.getLogger(__name__)


def _format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(seconds, 60)
    if minutes:
        return f"{int(minutes)} min {secs:.2f} s"
    return f"{secs:.2f} s"


def measure_time(func: Callable) -> Callable:
    """Log how long the wrapped callable took, whether it returned or raised."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        outcome = "failed"
        try:
            result = func(*args, **kwargs)
            outcome = "completed"
            return result
        finally:
            elapsed = _format_elapsed(time.perf_counter() - start)
            log.info(f"{func.__qualname__} {outcome} in {elapsed}")

    return wrapper
