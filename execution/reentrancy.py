"""
execution/reentrancy.py - Graceful reentrancy guard.

A second entry while the guard is held does not revert: the caller is told
to return its zero result instead. The flag lives in contract storage so it
is snapshotted and rolled back with the ledger.
"""

from contextlib import contextmanager
from typing import Iterator

from core.logging import get_logger

logger = get_logger(__name__)


class GracefulReentrancyGuard:
    """
    Usage:
        with self._guard.enter() as entered:
            if not entered:
                return BackrunResult.zero()
            ...
    """

    def __init__(self):
        self.entered = False

    @contextmanager
    def enter(self) -> Iterator[bool]:
        if self.entered:
            logger.warning("Reentrant call ignored")
            yield False
            return

        self.entered = True
        try:
            yield True
        finally:
            self.entered = False
