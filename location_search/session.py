"""Call-site helper for interactive search boxes.

Debounces keystrokes, cancels the previous in-flight search when a new one
starts, discards stale results and throttles network searches so the
geocoder's request-per-second quota is respected.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from .cancellation import CancellationToken
from .engine import LocationSearchEngine
from .models import LocationResult

logger = logging.getLogger(__name__)


class SearchSession:
    """One search box: at most one current query, older ones are superseded."""

    def __init__(
        self,
        engine: LocationSearchEngine,
        debounce_ms: Optional[int] = None,
        min_interval_s: Optional[float] = None,
    ):
        self.engine = engine
        self.debounce_s = (engine.config.debounce_ms if debounce_ms is None else debounce_ms) / 1000.0
        self.min_interval_s = engine.config.min_interval_s if min_interval_s is None else min_interval_s
        self._lock = threading.Lock()
        self._seq = 0
        self._token: Optional[CancellationToken] = None
        self._timer: Optional[threading.Timer] = None
        self._next_slot = 0.0

    def search(self, query: str) -> Optional[List[LocationResult]]:
        """Run `query` now, cancelling whatever was in flight.

        Returns None when a newer search superseded this one before it finished.
        """
        with self._lock:
            self._seq += 1
            seq = self._seq
            if self._token is not None:
                self._token.cancel()
            token = CancellationToken()
            self._token = token

        if len((query or "").strip()) >= self.engine.config.min_query_length:
            self._throttle(token)
        if token.cancelled:
            return None

        results = self.engine.search(query, token)
        with self._lock:
            current = seq == self._seq
        if not current or token.cancelled:
            logger.debug(f"Session: discarding stale results for '{query}'")
            return None
        return results

    def schedule(self, query: str, callback: Callable[[List[LocationResult]], None]):
        """Debounced search; only the last query of a burst runs and reaches `callback`."""
        with self._lock:
            self._seq += 1
            if self._timer is not None:
                self._timer.cancel()
            if self._token is not None:
                self._token.cancel()
            timer = threading.Timer(self.debounce_s, self._fire, args=(query, callback))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _fire(self, query: str, callback: Callable[[List[LocationResult]], None]):
        results = self.search(query)
        if results is not None:
            callback(results)

    def _throttle(self, token: CancellationToken):
        with self._lock:
            now = time.monotonic()
            start = max(now, self._next_slot)
            self._next_slot = start + self.min_interval_s
        delay = start - now
        if delay > 0:
            token.wait(delay)

    def cancel(self):
        """Cancel the pending debounce timer and any in-flight search."""
        with self._lock:
            self._seq += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._token is not None:
                self._token.cancel()
                self._token = None
