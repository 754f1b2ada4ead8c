"""
deadline.py
-----------
CampusGuide - Campus Directory Assistant - Request deadline tracker
--------------------------------------------------------------------
Tracks elapsed and remaining time against one fixed request budget and
hands out allowances for the next external call.

remaining() is a pure function of the monotonic clock: it never increases
during a request and is clamped at 0. allocate() applies the caller's
reservation, fraction, cap and safety margin and is also clamped at 0, so a
caller can always test ``allowance > 0`` before issuing a call.

Project: CampusGuide - Campus Directory Assistant
"""

import time
from typing import Callable, Optional


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class DeadlineTracker:
    """
    Budget for one request.

    Args:
        total_ms: Total wall-clock budget in milliseconds.
        clock:    Millisecond clock; defaults to time.monotonic. Tests pass a
                  fake clock to drive elapsed time deterministically.
    """

    def __init__(self, total_ms: int, clock: Optional[Callable[[], float]] = None) -> None:
        if total_ms < 0:
            raise ValueError(f"total_ms must be non-negative, got {total_ms}")
        self.total_ms = int(total_ms)
        self._clock = clock or _monotonic_ms
        self.started_at = self._clock()
        self._high_water_ms = 0

    def elapsed(self) -> int:
        """Milliseconds since the tracker was created; never negative, never decreasing."""
        current = int(self._clock() - self.started_at)
        self._high_water_ms = max(self._high_water_ms, current)
        return self._high_water_ms

    def remaining(self) -> int:
        """Milliseconds left in the budget, clamped at 0."""
        return max(0, self.total_ms - self.elapsed())

    def expired(self) -> bool:
        return self.remaining() == 0

    def allocate(
        self,
        fixed_ms: Optional[int] = None,
        fraction: Optional[float] = None,
        safety_margin_ms: int = 0,
        reserve_ms: int = 0,
    ) -> int:
        """
        Allowance in milliseconds for the next external call.

        Computed as: remaining - reserve_ms, scaled by ``fraction`` when given,
        capped at ``fixed_ms`` when given, minus ``safety_margin_ms``; the
        result is never negative.

        Args:
            fixed_ms:         Hard cap for this call.
            fraction:         Share (0..1] of the available budget.
            safety_margin_ms: Local bookkeeping overhead to keep back.
            reserve_ms:       Budget that must stay available for later stages.
        """
        available = self.remaining() - reserve_ms
        if fraction is not None:
            if not 0 < fraction <= 1:
                raise ValueError(f"fraction must be in (0, 1], got {fraction}")
            available = int(available * fraction)
        if fixed_ms is not None:
            available = min(fixed_ms, available)
        return max(0, available - safety_margin_ms)
