"""Cooperative cancellation tokens threaded through every adapter call."""

import threading
from typing import List, Optional


class CancellationToken:
    """A one-shot cancellation flag for one search.

    Cancelling a token also cancels every token created from it with child(),
    but never the other way round. Adapters also mark the token degraded when
    an upstream failure forced them to return nothing, so callers can tell an
    outage from a genuinely empty answer.
    """

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._degraded = threading.Event()
        self._lock = threading.Lock()
        self._children: List[CancellationToken] = []
        if parent is not None:
            parent._adopt(self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def degraded(self) -> bool:
        return self._degraded.is_set()

    def mark_degraded(self):
        self._degraded.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or the timeout passes. Returns the cancelled flag."""
        return self._event.wait(timeout)

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)

    def _adopt(self, child: "CancellationToken"):
        with self._lock:
            already = self._event.is_set()
            if not already:
                self._children.append(child)
        if already:
            child.cancel()
