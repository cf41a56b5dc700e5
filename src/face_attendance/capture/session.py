from __future__ import annotations

import logging
import threading
from typing import Optional

from ..core import constants
from ..core.enums import CaptureState
from ..core.exceptions import CaptureFailedError, DeviceUnavailableError, InvalidTransitionError
from .device import CaptureDevice, ExclusiveDeviceGuard
from .model import Sample

logger = logging.getLogger(__name__)


class CaptureSessionController:
    """Lifecycle of a capture device for a single verification attempt.

    ``IDLE -> STARTING -> ACTIVE -> CAPTURING -> (SUCCEEDED | FAILED) -> IDLE``

    The state lock is only held while switching states, never across the
    blocking ``open``/``read`` calls, so ``cancel()`` from another thread
    releases the device immediately. A generation counter tells an in-flight
    ``open``/``read`` that it was cancelled and must not touch the state.
    Use as a context manager to guarantee release on caller teardown::

        with CaptureSessionController(camera, guard=guard) as session:
            sample = session.capture()
    """

    def __init__(
        self,
        device: CaptureDevice,
        *,
        guard: Optional[ExclusiveDeviceGuard] = None,
        capture_timeout: float = constants.DEFAULT_CAPTURE_TIMEOUT_SECONDS,
    ):
        self._device = device
        self._guard = guard or ExclusiveDeviceGuard(getattr(device, "name", "device"))
        self._capture_timeout = float(capture_timeout)
        self._lock = threading.Lock()
        self._state = CaptureState.IDLE
        self._history: list[CaptureState] = [CaptureState.IDLE]
        self._holding = False
        self._generation = 0

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def history(self) -> list[CaptureState]:
        with self._lock:
            return list(self._history)

    @property
    def holding_device(self) -> bool:
        return self._holding

    def __enter__(self) -> "CaptureSessionController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    # -- transitions ---------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._state != CaptureState.IDLE:
                raise InvalidTransitionError("start", self._state)
            self._set_state(CaptureState.STARTING)
            if not self._guard.try_acquire():
                self._set_state(CaptureState.FAILED)
                self._set_state(CaptureState.IDLE)
                logger.warning(
                    "Capture device %s is already in use",
                    self._guard.name,
                    extra={"event": "capture_start", "status": "busy"},
                )
                raise DeviceUnavailableError(f"{self._guard.name} is already in use")
            self._holding = True
            generation = self._generation

        try:
            self._device.open()
        except (DeviceUnavailableError, OSError) as exc:
            self._fail_if_current(generation)
            logger.warning(
                "Capture device %s could not be opened: %s",
                self._guard.name,
                exc,
                extra={"event": "capture_start", "status": "failure"},
            )
            raise DeviceUnavailableError(str(exc) or f"{self._guard.name} is unavailable") from exc
        except BaseException:
            self._fail_if_current(generation)
            raise

        with self._lock:
            if self._generation == generation:
                self._set_state(CaptureState.ACTIVE)
                return

        # cancel() ran while the device was opening and already gave the guard back.
        self._close_device()
        raise DeviceUnavailableError("capture session was cancelled while starting")

    def capture(self) -> Sample:
        with self._lock:
            if self._state != CaptureState.ACTIVE:
                raise InvalidTransitionError("capture", self._state)
            self._set_state(CaptureState.CAPTURING)
            generation = self._generation

        try:
            sample = self._device.read(self._capture_timeout)
        except CaptureFailedError:
            self._fail_if_current(generation)
            raise
        except (OSError, TimeoutError) as exc:
            self._fail_if_current(generation)
            raise CaptureFailedError(str(exc) or "capture failed") from exc
        except BaseException:
            self._fail_if_current(generation)
            raise

        with self._lock:
            if self._generation != generation:
                raise CaptureFailedError("capture session was cancelled")
            self._set_state(CaptureState.SUCCEEDED)
            error = self._release_locked()
            self._set_state(CaptureState.IDLE)
        if error is not None:
            logger.error("Capture device %s failed to close: %s", self._guard.name, error)
        logger.debug("Captured sample from %s", self._guard.name, extra={"event": "capture", "status": "success"})
        return sample

    def cancel(self) -> None:
        """Release the device and return to IDLE; a no-op when already idle."""
        with self._lock:
            if self._state == CaptureState.IDLE and not self._holding:
                return
            self._generation += 1
            error = self._release_locked()
            if self._state != CaptureState.IDLE:
                self._set_state(CaptureState.IDLE)
        if error is not None:
            raise error

    # -- helpers -------------------------------------------------------

    def _set_state(self, state: CaptureState) -> None:
        self._state = state
        self._history.append(state)

    def _fail_if_current(self, generation: int) -> None:
        with self._lock:
            if self._generation != generation:
                return
            error = self._release_locked()
            self._set_state(CaptureState.FAILED)
            self._set_state(CaptureState.IDLE)
        if error is not None:
            logger.error("Capture device %s failed to close: %s", self._guard.name, error)

    def _release_locked(self) -> Optional[Exception]:
        if not self._holding:
            return None
        try:
            self._device.close()
        except Exception as exc:
            return exc
        finally:
            self._holding = False
            self._guard.release()
        return None

    def _close_device(self) -> None:
        try:
            self._device.close()
        except Exception:
            logger.exception("Capture device %s failed to close", self._guard.name)
