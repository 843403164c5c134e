"""
Tick Scheduler

Drives a simulation at a steady cadence on a dedicated background thread,
decoupled from whatever thread renders the result.

Controls:
- pause/resume: suspend and continue without touching engine state
- stop: permanent; idempotent; no tick is delivered after it returns

Usage:
    scheduler = TickScheduler(interval=0.016)
    scheduler.start(engine)
    ...
    scheduler.stop()
"""

import logging
import threading
import time
from typing import Optional

from .params import get_tick_interval

logger = logging.getLogger(__name__)

# How long stop() waits for the worker thread to exit
JOIN_TIMEOUT = 5.0


class TickScheduler:
    """Invokes ``engine.tick()`` repeatedly on its own thread.

    The engine only needs a ``tick()`` method. Ticks run under an internal
    lock that stop() also takes, so a tick in flight when stop() is called
    completes before stop() returns and no new tick starts afterwards.
    """

    def __init__(self, interval: Optional[float] = None, name: str = "forcegraph-tick"):
        """Initialize the scheduler.

        Args:
            interval: Seconds between ticks. If None, uses
                FORCEGRAPH_TICK_INTERVAL_MS or the default (~16ms).
            name: Worker thread name
        """
        self.interval = interval if interval is not None else get_tick_interval()
        self.name = name
        self.tick_count = 0

        self._engine = None
        self._thread: Optional[threading.Thread] = None

        # Reentrant so stop() may be called from inside a tick
        self._tick_lock = threading.RLock()
        self._running = threading.Event()  # Set while not paused
        self._stopped = threading.Event()

    @property
    def is_started(self) -> bool:
        return self._thread is not None

    @property
    def is_running(self) -> bool:
        return self.is_started and self._running.is_set() and not self._stopped.is_set()

    @property
    def is_paused(self) -> bool:
        return self.is_started and not self._running.is_set() and not self._stopped.is_set()

    @property
    def is_stopped(self) -> bool:
        return self._stopped.is_set()

    def start(self, engine, interval: Optional[float] = None):
        """Begin ticking ``engine``. A second call just resumes.

        Args:
            engine: Object with a ``tick()`` method
            interval: Optional override for the tick interval (seconds)
        """
        if self._stopped.is_set():
            logger.debug("Ignoring start() on stopped scheduler")
            return
        if interval is not None:
            self.interval = interval

        if self._thread is not None:
            self.resume()
            return

        self._engine = engine
        self._running.set()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug("Tick scheduler started (interval=%.3fs)", self.interval)

    def pause(self):
        """Suspend ticking; the worker thread idles until resumed or stopped."""
        self._running.clear()

    def resume(self):
        """Continue ticking after pause(). No-op once stopped."""
        if self._stopped.is_set():
            return
        self._running.set()

    def stop(self):
        """Terminate the loop permanently.

        Safe to call multiple times, from any thread, including from inside a
        tick. Waits for an in-flight tick to finish; no tick is delivered
        after this returns.
        """
        # Taking the tick lock waits out any tick in progress
        with self._tick_lock:
            if self._stopped.is_set():
                return
            self._stopped.set()
            # Wake a paused worker so it can exit
            self._running.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning("Tick thread %s did not exit within %.1fs",
                               self.name, JOIN_TIMEOUT)
        logger.debug("Tick scheduler stopped after %d ticks", self.tick_count)

    def _run(self):
        while not self._stopped.is_set():
            self._running.wait()

            started = time.monotonic()
            with self._tick_lock:
                if self._stopped.is_set():
                    break
                try:
                    self._engine.tick()
                except Exception as e:
                    logger.error("Tick failed, stopping scheduler: %s", e, exc_info=True)
                    self._stopped.set()
                    break
                self.tick_count += 1

            # Sleep out the rest of the interval; stop() interrupts the wait
            elapsed = time.monotonic() - started
            remaining = self.interval - elapsed
            if remaining > 0:
                self._stopped.wait(remaining)
