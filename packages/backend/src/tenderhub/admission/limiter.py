"""Per-identity fixed-window admission controller.

Learn: One RateWindow per identity, created lazily on the first check.
Every check is a read-modify-write of that window, so the whole decision
runs inside one critical section. The lock is a plain threading.Lock:
checks are called from the event loop (middleware) but also from any
worker thread, and the critical section is a few dict operations, never
an await.

    controller = AdmissionController(limit=5, window=60.0)
    if not controller.check(user_id):
        ...  # respond 429
"""

import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional


@dataclass
class RateWindow:
    """Submission count for one identity since ``window_start`` (epoch seconds)."""

    count: int
    window_start: float


@dataclass(frozen=True)
class Admission:
    """Outcome of one admission check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # window_start + window
    checked_at: float

    @property
    def retry_after(self) -> int:
        """Unix epoch second at which the current window expires."""
        return int(self.reset_at)

    @property
    def retry_in(self) -> int:
        """Whole seconds from the check until the window expires."""
        return max(0, math.ceil(self.reset_at - self.checked_at))


class AdmissionController:
    """Bounds requests to ``limit`` per fixed ``window`` seconds, per identity."""

    def __init__(
        self,
        limit: int = 5,
        window: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window <= 0:
            raise ValueError("window must be positive")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def evaluate(self, identity: str) -> Admission:
        """Count one attempt for ``identity`` and decide whether it may proceed.

        Denied attempts are not counted.
        """
        if not identity:
            raise ValueError("identity must be a non-empty string")

        with self._lock:
            now = self._clock()
            rate_window = self._windows.get(identity)

            if rate_window is None:
                rate_window = RateWindow(count=1, window_start=now)
                self._windows[identity] = rate_window
            elif now - rate_window.window_start > self.window:
                rate_window.count = 1
                rate_window.window_start = now
            elif rate_window.count < self.limit:
                rate_window.count += 1
            else:
                return Admission(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    reset_at=rate_window.window_start + self.window,
                    checked_at=now,
                )

            return Admission(
                allowed=True,
                limit=self.limit,
                remaining=self.limit - rate_window.count,
                reset_at=rate_window.window_start + self.window,
                checked_at=now,
            )

    def check(self, identity: str) -> bool:
        return self.evaluate(identity).allowed

    def sweep(self) -> int:
        """Drop every window that has expired. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            stale = [
                identity
                for identity, rate_window in self._windows.items()
                if now - rate_window.window_start > self.window
            ]
            for identity in stale:
                del self._windows[identity]
        return len(stale)

    def window_for(self, identity: str) -> Optional[RateWindow]:
        """Snapshot of an identity's window (None if untracked)."""
        with self._lock:
            rate_window = self._windows.get(identity)
            return replace(rate_window) if rate_window else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
