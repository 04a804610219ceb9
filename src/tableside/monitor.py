"""Background validity check of the bound table session."""

import logging
import threading
import time
from enum import Enum
from typing import Callable

from .config import DEFAULT_POLL_INTERVAL
from .context import TableContext
from .errors import SessionInvalidatedError, TransportError
from .gateway import SessionOracle
from .models import Notice

logger = logging.getLogger(__name__)


class TickOutcome(Enum):
    """What a single session check did."""

    VALID = "valid"
    INVALID = "invalid"  # session was reset
    TRANSPORT_FAILURE = "transport-failure"  # state left untouched
    SKIPPED = "skipped"  # another check was still running
    IDLE = "idle"  # no PIN bound
    DEFERRED = "deferred"  # invalid, but an order for the PIN is in flight
    STALE = "stale"  # the session changed while the check was running


class _Run:
    """One start/stop cycle of the monitor thread."""

    def __init__(self, generation: int):
        self.generation = generation
        self.stop = threading.Event()
        self.wake = threading.Event()
        self.thread: threading.Thread | None = None


class SessionMonitor:
    """Polls the session oracle while a PIN is bound.

    The monitor listens to PIN transitions on the context's session: it
    starts when a PIN becomes set and stops when it becomes unset. Each
    start/stop bumps a generation counter under the context lock, and a
    check only applies its result if its generation is still current, so
    nothing from a stopped run is observable.
    """

    def __init__(
        self,
        context: TableContext,
        oracle: SessionOracle,
        interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._context = context
        self._oracle = oracle
        self.interval = interval
        self._clock = clock
        self._tick_lock = threading.Lock()
        self._generation = 0
        self._run: _Run | None = None
        self._stopped: list[threading.Thread] = []
        context.session.add_pin_listener(self._on_pin_change)

    def _on_pin_change(self, old_pin: str | None, new_pin: str | None) -> None:
        if old_pin is not None:
            self.stop()
        if new_pin is not None:
            self.start()

    @property
    def running(self) -> bool:
        with self._context.lock:
            return self._run is not None

    @property
    def generation(self) -> int:
        with self._context.lock:
            return self._generation

    def start(self) -> None:
        """Start the polling thread if it is not already running."""
        with self._context.lock:
            if self._run is not None:
                return
            self._generation += 1
            run = _Run(self._generation)
            run.thread = threading.Thread(
                target=self._loop,
                args=(run,),
                name=f"session-monitor-{run.generation}",
                daemon=True,
            )
            self._run = run
            run.thread.start()
            logger.debug("Session monitor started (generation %d)", run.generation)

    def stop(self) -> None:
        """
        Stop polling. Takes effect immediately: a check already waiting on the
        oracle finishes in the background but its result is discarded.
        """
        with self._context.lock:
            run = self._run
            if run is None:
                return
            self._run = None
            self._generation += 1
            run.stop.set()
            run.wake.set()
            self._stopped = [t for t in self._stopped if t.is_alive()]
            if run.thread is not None:
                self._stopped.append(run.thread)
            logger.debug("Session monitor stopped (generation %d)", run.generation)

    def join(self, timeout: float | None = None) -> bool:
        """
        Wait for stopped polling threads to exit.

        Returns:
            True if every stopped thread has exited.
        """
        current = threading.current_thread()
        with self._context.lock:
            threads = [t for t in self._stopped if t is not current]
        for thread in threads:
            thread.join(timeout)
        with self._context.lock:
            self._stopped = [t for t in self._stopped if t.is_alive()]
            return not [t for t in self._stopped if t is not current]

    def request_immediate_check(self) -> None:
        """Wake the polling thread so it checks now instead of at the next interval."""
        with self._context.lock:
            if self._run is not None:
                self._run.wake.set()

    def tick(self) -> TickOutcome:
        """Run one session check synchronously on the calling thread."""
        with self._context.lock:
            run = self._run
        return self._tick(run)

    def _is_current(self, run: _Run) -> bool:
        return self._run is run and not run.stop.is_set()

    def _tick(self, run: _Run | None) -> TickOutcome:
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Session check still running, skipping tick")
            return TickOutcome.SKIPPED
        try:
            with self._context.lock:
                if run is not None and not self._is_current(run):
                    return TickOutcome.STALE
                generation = self._generation
                pin = self._context.session.pin
            if pin is None:
                return TickOutcome.IDLE

            try:
                check = self._oracle.check_session(pin)
            except TransportError as e:
                logger.warning("Session check for PIN %s failed, keeping session: %s", pin, e)
                return TickOutcome.TRANSPORT_FAILURE

            if check.valid:
                logger.debug("Session for PIN %s still valid", pin)
                return TickOutcome.VALID

            with self._context.lock:
                if self._generation != generation:
                    return TickOutcome.STALE
                if self._context.defer_invalidation(pin):
                    logger.info("Session %s reported closed during an order; re-checking after it", pin)
                    return TickOutcome.DEFERRED
                error = SessionInvalidatedError(pin)
                notice = Notice(kind="session_closed", title="Table closed", message=error.message)
                if not self._context.invalidate(pin, notice):
                    return TickOutcome.STALE
            logger.info("Session for PIN %s closed by the restaurant", pin)
            return TickOutcome.INVALID
        finally:
            self._tick_lock.release()

    def _loop(self, run: _Run) -> None:
        next_due = self._clock() + self.interval
        while True:
            run.wake.wait(max(0.0, next_due - self._clock()))
            if run.stop.is_set():
                break
            woken = run.wake.is_set()
            run.wake.clear()
            try:
                self._tick(run)
            except Exception:
                logger.exception("Unexpected error during session check")
            now = self._clock()
            if woken:
                next_due = now + self.interval
                continue
            next_due += self.interval
            while next_due <= now:
                # Overran one or more intervals; skip them instead of catching up.
                logger.debug("Session check overran its interval, skipping a tick")
                next_due += self.interval
        logger.debug("Session monitor thread exiting (generation %d)", run.generation)
