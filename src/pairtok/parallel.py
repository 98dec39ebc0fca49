"""Thread pool sizing and parallel modes for pair counting and batch encoding."""

import os
from enum import Enum
from math import ceil
from typing import Literal

from .errors import StrategyError

ParallelStrategy = Literal["auto", "batch", "off"]


class ParallelMode(str, Enum):
    """Named parallelization modes for batch encoding."""

    AUTO = "auto"
    BATCH = "batch"
    OFF = "off"

    @classmethod
    def get(cls, name: "str | ParallelMode") -> "ParallelMode":
        """Get parallel mode by name (case-insensitive)."""
        if isinstance(name, ParallelMode):
            return name
        try:
            return cls[name.upper()]
        except KeyError:
            raise StrategyError(
                "unknown mode",
                invalid_name=name,
                available_strats=[mode.value for mode in cls],
            ) from None


def list_parallel_modes() -> list[str]:
    """Return available parallel mode names."""
    return [mode.value for mode in ParallelMode]


def resolve_workers(num_workers: int | None) -> int:
    """Thread count to use: cpu count when ``None``, at least one otherwise."""
    if num_workers is None:
        return os.cpu_count() or 1
    return max(1, num_workers)  # "0" interpreted as 1 worker


def group_size(n_items: int, workers: int, minimum: int = 1) -> int:
    """
    Items per task so each worker gets about two tasks.

    Grouping keeps scheduling overhead low when there are many small items.
    """
    target_tasks = min(n_items, workers * 2)
    return max(minimum, ceil(n_items / max(1, target_tasks)))


__all__ = [
    "ParallelStrategy",
    "ParallelMode",
    "list_parallel_modes",
    "resolve_workers",
    "group_size",
]
