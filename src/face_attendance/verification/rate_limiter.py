from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from ..core import constants
from ..core.exceptions import RateLimitedError


class PerSubjectRateLimiter:
    """Minimum interval between verification attempts of the same subject.

    Each subject has its own lock guarding its last-attempt timestamp; the
    registry lock is only taken to create or list per-subject locks, so attempts
    for different subjects never wait on each other.
    """

    def __init__(
        self,
        min_interval: float = constants.DEFAULT_MIN_VERIFICATION_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._min_interval = float(min_interval)
        self._clock = clock
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._last_attempt: dict[str, float] = {}

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def acquire(self, subject_id: str) -> None:
        """Record an attempt for ``subject_id`` or raise RateLimitedError without recording it."""
        with self._lock_for(subject_id):
            now = self._clock()
            last = self._last_attempt.get(subject_id)
            if last is not None:
                elapsed = now - last
                if elapsed < self._min_interval:
                    raise RateLimitedError(retry_after=self._min_interval - elapsed)
            self._last_attempt[subject_id] = now

    def retry_after(self, subject_id: str) -> float:
        with self._lock_for(subject_id):
            last = self._last_attempt.get(subject_id)
            if last is None:
                return 0.0
            return max(0.0, self._min_interval - (self._clock() - last))

    def reset(self, subject_id: Optional[str] = None) -> None:
        """Forget the last attempt of ``subject_id``, or of every subject."""
        if subject_id is not None:
            with self._lock_for(subject_id):
                self._last_attempt.pop(subject_id, None)
            return
        with self._registry_lock:
            locks = list(self._locks.items())
        for key, lock in locks:
            with lock:
                self._last_attempt.pop(key, None)

    def _lock_for(self, subject_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(subject_id)
            if lock is None:
                lock = self._locks[subject_id] = threading.Lock()
            return lock
