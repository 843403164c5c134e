"""
Refresh Notifier

Hands redraw requests from the tick loop to a listener on a separate daemon
thread. Requests are coalesced: if the listener is still busy with one
refresh, further requests collapse into a single pending refresh, so a slow
listener drops frames instead of slowing the simulation.

Usage:
    notifier = RefreshNotifier(listener)
    notifier.request()   # returns immediately
    notifier.flush(1.0)  # wait for delivery (tests, teardown)
    notifier.stop()
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class RefreshNotifier:
    """Delivers coalesced ``refresh()`` calls to one listener."""

    def __init__(self, listener, name: str = "forcegraph-refresh"):
        self.listener = listener
        self.name = name

        # Statistics
        self.requested = 0
        self.delivered = 0

        self._cond = threading.Condition()
        self._pending = False
        self._busy = False
        self._stopped = False
        self._thread: Optional[threading.Thread] = None

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def request(self):
        """Ask for a refresh without waiting for it. Ignored once stopped."""
        with self._cond:
            if self._stopped:
                return
            self.requested += 1
            self._pending = True
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
                self._thread.start()
            self._cond.notify_all()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until no refresh is pending or in progress.

        Returns:
            False if the timeout expired first
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: self._stopped or not (self._pending or self._busy),
                timeout,
            )

    def stop(self):
        """Discard any pending refresh and end the delivery thread.

        Does not wait for a refresh already running in the listener.
        """
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            self._pending = False
            self._cond.notify_all()
        logger.debug("Refresh notifier stopped: requested=%d delivered=%d",
                     self.requested, self.delivered)

    def _run(self):
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending or self._stopped)
                if self._stopped:
                    return
                self._pending = False
                self._busy = True

            try:
                self.listener.refresh()
            except Exception as e:
                logger.error("Simulation listener failed: %s", e, exc_info=True)
            finally:
                with self._cond:
                    self._busy = False
                    self.delivered += 1
                    self._cond.notify_all()
