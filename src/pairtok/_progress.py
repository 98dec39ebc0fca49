"""Periodic progress logs for merge learning, with a global on/off switch."""

import logging
import os

_enabled: bool = True

# progress lines emitted over a full training run
_N_REPORTS = 10


def enable_progress() -> None:
    """Enable training progress logs."""
    global _enabled
    _enabled = True


def disable_progress() -> None:
    """Disable training progress logs."""
    global _enabled
    _enabled = False


def _is_enabled() -> bool:
    """Check if progress is enabled (respects env var override)."""
    if os.environ.get("PAIRTOK_DISABLE_PROGRESS", "").strip() == "1":
        return False
    return _enabled


class MergeProgress:
    """Logs ``merge i/n`` roughly every tenth of the merge budget."""

    def __init__(self, logger: logging.Logger, n_merges: int) -> None:
        self.log = logger
        self.n_merges = n_merges
        self.every = max(1, n_merges // _N_REPORTS)

    def update(self, n_done: int) -> None:
        if n_done % self.every == 0 and _is_enabled():
            pct = 100.0 * n_done / self.n_merges if self.n_merges else 100.0
            self.log.info(f"merge {n_done}/{self.n_merges} ({pct:.0f}%)")
