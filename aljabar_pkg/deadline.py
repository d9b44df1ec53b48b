"""Cooperative deadline guard.

Long-running algorithms poll ``check_deadline()`` at every loop iteration and
recursion entry. The guard is armed by the outermost top-level call only; a
nested guarded call shares the outer budget and never disarms it early.
"""

from __future__ import annotations

import functools
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from .logging_config import get_logger
from .types import Timeout

logger = get_logger("deadline")

F = TypeVar("F", bound=Callable)


class DeadlineGuard:
    """Armed/disarmed timer shared by one session."""

    def __init__(self) -> None:
        self._expires_at: float | None = None
        self._budget_ms: int | None = None
        self._depth = 0

    @property
    def armed_now(self) -> bool:
        return self._expires_at is not None

    def remaining(self) -> float | None:
        """Seconds left before expiry, or None when disarmed."""
        if self._expires_at is None:
            return None
        return self._expires_at - time.monotonic()

    @contextmanager
    def armed(self, budget_ms: int | None) -> Iterator[DeadlineGuard]:
        """Arm the timer for the duration of the block.

        Args:
            budget_ms: Budget in milliseconds; None or <= 0 means no limit
        """
        outermost = self._depth == 0
        if outermost and budget_ms and budget_ms > 0:
            self._expires_at = time.monotonic() + budget_ms / 1000.0
            self._budget_ms = budget_ms
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            if outermost:
                self._expires_at = None
                self._budget_ms = None

    def check(self) -> None:
        if self._expires_at is not None and time.monotonic() > self._expires_at:
            budget = self._budget_ms
            logger.info("Deadline of %sms exceeded, unwinding", budget)
            raise Timeout(f"Computation exceeded the {budget}ms time budget")


def check_deadline() -> None:
    """Poll the active session's deadline."""
    from .session import get_session

    get_session().deadline.check()


def with_deadline(func: F) -> F:
    """Arm the active session's deadline around a top-level entry point."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from .session import get_session

        session = get_session()
        with session.deadline.armed(session.settings.timeout_ms):
            return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def entry_point(func: F) -> F:
    """Top-level entry of a rule algorithm.

    Arms the deadline like ``with_deadline``. Operands stay immutable for the
    whole call whatever the session sets, because rule algorithms read nodes
    again after handing them to the arithmetic core.
    """
    guarded = with_deadline(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from .session import get_session

        session = get_session()
        if session.settings.immutable:
            return guarded(*args, **kwargs)
        with session.overrides(immutable=True):
            return guarded(*args, **kwargs)

    return wrapper  # type: ignore[return-value]
