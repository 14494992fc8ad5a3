"""
Repeating timer used to poll the thermometer.
"""
import threading
import time
from typing import Callable, Optional

from hh42.config import settings
from hh42.utils.logging import get_logger

# Initialize module logger
logger = get_logger(__name__)

class PollTimer:
    """
    Calls a function at a fixed interval on a background thread.

    The first call is due one interval after start(). Ticks that fall
    behind are skipped rather than queued.
    """

    def __init__(self, interval_seconds: float, callback: Callable[[], None],
                 clock: Callable[[], float] = time.monotonic, name: str = "HH42Poll"):
        """
        Initialize the timer.

        Args:
            interval_seconds: Time between ticks in seconds
            callback: Function to call on every tick
            clock: Monotonic time source in seconds
            name: Name of the timer thread
        """
        if interval_seconds <= 0:
            raise ValueError("Interval must be positive")

        self._interval = interval_seconds
        self._callback = callback
        self._clock = clock
        self._name = name
        self._next_time = 0.0
        self._active = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> None:
        """Arm the timer and start the tick thread."""
        if self._active:
            return

        self._next_time = self._clock() + self._interval
        self._stop_event.clear()
        self._active = True
        self._spawn()

    def cancel(self) -> None:
        """Stop the timer. No further ticks fire once this returns."""
        if not self._active:
            return

        self._active = False
        self._stop_event.set()

        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=settings.THREAD_JOIN_TIMEOUT)
        self._thread = None

    def fire_due(self, now: float) -> bool:
        """
        Fire one tick if it is due at the given time.

        Args:
            now: Current clock value

        Returns:
            bool: True if the callback was called
        """
        if not self._active or now < self._next_time:
            return False

        self._next_time += self._interval
        if self._next_time <= now:
            # Fell behind; resume the cadence from now
            self._next_time = now + self._interval

        try:
            self._callback()
        except Exception as e:
            logger.error("Error in timer callback: %s", str(e), exc_info=True)
        return True

    def _spawn(self) -> None:
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        logger.debug("Poll timer started (%.3f s interval)", self._interval)

        while not self._stop_event.is_set():
            self.fire_due(self._clock())
            # Sleep until the next tick; cancel() wakes the wait
            wait = self._next_time - self._clock()
            if wait > 0:
                self._stop_event.wait(wait)

        logger.debug("Poll timer stopped")
