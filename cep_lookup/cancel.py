"""Cancellation scope shared by the branches of one race."""

import logging
import threading
import time
from typing import Optional

from .errors import LookupCancelled

logger = logging.getLogger(__name__)


class CancelToken:
    """
    One-shot cancellation signal plus the race deadline clock.

    Branches register the transport objects they open (requests sessions,
    pooled connections, streamed responses); cancel() closes them so in-flight
    calls are torn down rather than left running. Anything registered after
    cancel() is closed at once.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._resources = []
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` elapses. True if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self, provider: str):
        if self._event.is_set():
            raise LookupCancelled(provider, "race already resolved")

    def register(self, resource):
        with self._lock:
            if not self._event.is_set():
                self._resources.append(resource)
                return resource
        _close_quietly(resource)
        return resource

    def unregister(self, resource):
        with self._lock:
            try:
                self._resources.remove(resource)
            except ValueError:
                pass

    def cancel(self):
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            resources, self._resources = self._resources, []
        for resource in resources:
            _close_quietly(resource)


def _close_quietly(resource):
    # Closing from another thread can trip the owner mid-read; it sees the
    # token as cancelled and reports LookupCancelled.
    try:
        resource.close()
    except Exception as e:
        logger.debug(f"Error closing {type(resource).__name__} on cancel: {e}")
