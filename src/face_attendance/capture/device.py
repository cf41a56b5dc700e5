from __future__ import annotations

import threading
from typing import Protocol

from .model import Sample


class CaptureDevice(Protocol):
    """Resource contract for anything that can produce a sample.

    ``open`` raises DeviceUnavailableError (or OSError), ``read`` raises
    CaptureFailedError when no sample arrives before ``timeout`` seconds.
    ``close`` must be safe to call after a failed ``open``.
    """

    name: str

    def open(self) -> None:
        raise NotImplementedError

    def read(self, timeout: float) -> Sample:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class ExclusiveDeviceGuard:
    """Fail-fast ownership token for one physical device.

    Every session over the same device shares one guard; acquisition never
    waits, so a second session is rejected instead of queued.
    """

    def __init__(self, name: str = "camera"):
        self.name = name
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def held(self) -> bool:
        return self._lock.locked()
