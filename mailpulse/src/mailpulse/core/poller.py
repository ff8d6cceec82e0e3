"""Supervised polling loop that turns unseen-count changes into events.

What:
  Run ``MailboxSnapshot.unseen_count`` on an interval, feed every successful
  result through :class:`~mailpulse.core.notifier.ChangeNotifier`, and raise
  ``NewMailDetected`` on :class:`~mailpulse.core.notifier.MailEvents` whenever
  the count changed.

Why:
  Hosts want a single long-lived worker that survives transient IMAP outages,
  follows configuration edits without a restart, and stops promptly when asked
  to. Keeping the loop free of protocol details makes each of those properties
  testable with an in-memory snapshot and a fake wait primitive.

How:
  :meth:`PollingLoop.run` walks the phases ``RUNNING -> (QUERYING ->
  EVALUATING -> WAITING)* -> STOPPED``. Settings are pulled from the
  configuration source at the top of every cycle and again before waiting.
  Failures are logged as ``polling_cycle_failed`` and leave the stored count
  untouched; cancellation surfaces as
  :class:`~mailpulse.errors.OperationCancelled` and ends the loop quietly. The
  wait primitive is injectable and defaults to
  :meth:`CancellationToken.wait`.

Interfaces:
  :class:`PollPhase`, :func:`effective_interval`, :class:`PollingLoop`.

Invariants & Safety:
  - The wait between cycles is never shorter than
    :data:`~mailpulse.config.schema.MIN_POLLING_INTERVAL_SECONDS`.
  - The token is checked before every cycle; a cancelled loop never starts
    another query.
  - Only the loop thread mutates the notifier state.
"""
from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Optional

from ..config.loader import ConfigLoadError, ConfigSource
from ..config.schema import MIN_POLLING_INTERVAL_SECONDS
from ..errors import OperationCancelled
from ..imap.snapshot import MailboxSnapshot
from ..utils.cancel import CancellationToken
from ..utils.ids import new_cycle_id
from ..utils.logging import JsonLogger, get_logger
from .notifier import ChangeNotifier, MailEvents


WaitFn = Callable[[CancellationToken, float], bool]


class PollPhase(str, Enum):
    """Lifecycle phases reported by :attr:`PollingLoop.phase`."""

    IDLE = "idle"
    RUNNING = "running"
    QUERYING = "querying"
    EVALUATING = "evaluating"
    WAITING = "waiting"
    STOPPED = "stopped"


def effective_interval(configured: float, override: Optional[float] = None) -> float:
    """Return the wait between cycles with the minimum floor applied.

    Args:
      configured: Interval from the current settings.
      override: Optional operator override (``watch --interval``); used when
        positive.

    Returns:
      Seconds to wait, at least ``MIN_POLLING_INTERVAL_SECONDS``.
    """

    seconds = override if override is not None and override > 0 else configured
    return max(float(MIN_POLLING_INTERVAL_SECONDS), float(seconds))


def _default_wait(token: CancellationToken, seconds: float) -> bool:
    return token.wait(seconds)


class PollingLoop:
    """Long-lived worker polling the unseen count.

    What:
      Owns the poll state (a :class:`ChangeNotifier`), the phase, and failure
      bookkeeping used by :func:`mailpulse.core.health.poller_health`.

    Why:
      A blocking :meth:`run` suits hosts that manage their own threads, while
      :meth:`start`/:meth:`stop` cover the common case of a background daemon.

    How:
      Each cycle is executed by :meth:`run_cycle`; :meth:`run` surrounds it
      with cancellation checks, start/stop log markers, and the interruptible
      wait.

    Args:
      snapshot: Mailbox query helper.
      config_source: Pull-based settings accessor, read every cycle.
      events: Registry receiving ``NewMailDetected`` notifications.
      notifier: Optional pre-seeded change detector.
      logger: Optional structured logger.
      wait: ``(token, seconds) -> bool`` sleep primitive returning ``True``
        when interrupted by cancellation.
      interval_override: Optional interval replacing the configured one.
    """

    def __init__(
        self,
        snapshot: MailboxSnapshot,
        config_source: ConfigSource,
        events: MailEvents,
        *,
        notifier: Optional[ChangeNotifier] = None,
        logger: Optional[JsonLogger] = None,
        wait: Optional[WaitFn] = None,
        interval_override: Optional[float] = None,
    ) -> None:
        self._snapshot = snapshot
        self._config_source = config_source
        self._events = events
        self._notifier = notifier or ChangeNotifier()
        self._logger = logger or get_logger("mailpulse.poller")
        self._wait = wait or _default_wait
        self._interval_override = interval_override
        self._phase = PollPhase.IDLE
        self._consecutive_failures = 0
        self._last_error: Optional[str] = None
        self._cycles = 0
        self._thread: Optional[threading.Thread] = None
        self._thread_token: Optional[CancellationToken] = None

    @property
    def phase(self) -> PollPhase:
        return self._phase

    @property
    def last_count(self) -> Optional[int]:
        return self._notifier.last_count

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def cycles(self) -> int:
        """Number of cycles attempted since the loop started."""

        return self._cycles

    def run(self, token: CancellationToken) -> None:
        """Poll until ``token`` is cancelled.

        Blocks the calling thread. Returns normally once cancellation is
        observed, either before a cycle or during the wait.
        """

        self._phase = PollPhase.RUNNING
        self._logger.info("polling_started", interval_seconds=self._interval())
        try:
            while not token.cancelled:
                if not self.run_cycle(token):
                    break
                self._phase = PollPhase.WAITING
                if self._wait(token, self._interval()):
                    break
        finally:
            self._phase = PollPhase.STOPPED
            self._logger.info("polling_stopped", cycles=self._cycles)

    def run_cycle(self, token: CancellationToken) -> bool:
        """Execute one query-and-evaluate cycle.

        What:
          Queries the unseen count and emits an event when it changed.

        Why:
          Exposed separately so hosts and tests can drive single cycles
          without a wait.

        How:
          Any exception other than cancellation is logged and recorded; the
          stored count is only updated by a successful query. A subscriber that
          raises is reported the same way after the count was stored.

        Returns:
          ``False`` when the cycle ended because of cancellation, ``True``
          otherwise (including failed cycles).
        """

        self._cycles += 1
        cycle_id = new_cycle_id()
        try:
            self._phase = PollPhase.QUERYING
            settings = self._config_source.current()
            count = self._snapshot.unseen_count(
                settings.imap, token, timeout=settings.timeout_seconds
            )
            self._phase = PollPhase.EVALUATING
            self._consecutive_failures = 0
            self._last_error = None
            if count > 0:
                self._logger.info("new_mail_detected", cycle_id=cycle_id, count=count)
            if self._notifier.observe(count):
                self._events.raise_new_mail_detected(count)
        except OperationCancelled:
            return False
        except Exception as exc:
            if token.cancelled:
                return False
            self._consecutive_failures += 1
            self._last_error = f"{type(exc).__name__}: {exc}"
            self._logger.error(
                "polling_cycle_failed",
                exc=exc,
                cycle_id=cycle_id,
                consecutive_failures=self._consecutive_failures,
            )
        return True

    def start(self) -> CancellationToken:
        """Run the loop on a daemon thread and return the token stopping it.

        Raises:
          RuntimeError: If the loop is already running on its own thread.
        """

        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("polling loop already started")
        token = CancellationToken()
        thread = threading.Thread(
            target=self.run, args=(token,), name="mailpulse-poller", daemon=True
        )
        self._thread_token = token
        self._thread = thread
        thread.start()
        return token

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Cancel a loop started with :meth:`start` and join its thread.

        Returns:
          ``True`` when the thread finished within ``timeout``.
        """

        thread, token = self._thread, self._thread_token
        if thread is None or token is None:
            return True
        token.cancel()
        thread.join(timeout)
        if thread.is_alive():
            return False
        self._thread = None
        self._thread_token = None
        return True

    def _interval(self) -> float:
        try:
            configured = self._config_source.current().polling_interval_seconds
        except ConfigLoadError as exc:
            self._logger.error("polling_interval_unavailable", exc=exc)
            configured = MIN_POLLING_INTERVAL_SECONDS
        return effective_interval(configured, self._interval_override)
