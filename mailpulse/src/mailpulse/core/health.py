"""mailpulse.core.health

What:
  Provide lightweight health reporting structures describing the readiness of
  the configuration and the state of the polling loop.

Why:
  Hosts answer health checks quickly without opening an IMAP connection. The
  loop already knows its phase, last observed count, and failure streak; exposing
  them as a small payload is enough for dashboards and the ``health`` command.

How:
  - Define :class:`HealthReport` with a status string and a flat string map
    that serialises directly into JSON.
  - :func:`config_health` checks that both endpoints are configured.
  - :func:`poller_health` derives ``ok`` / ``degraded`` / ``stopped`` from a
    :class:`~mailpulse.core.poller.PollingLoop`.

Interfaces:
  :class:`HealthReport`, :func:`config_health`, :func:`poller_health`.

Invariants & Safety:
  - Payloads never contain credentials, subjects, or previews; only hosts,
    counts, and error text.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from ..config.schema import EmailSettings
from .poller import PollingLoop, PollPhase


DEGRADED_AFTER_FAILURES = 3
"""Consecutive failed cycles after which the loop is reported degraded."""


@dataclass
class HealthReport:
    """Typed payload describing component health.

    Attributes:
      status: ``ok``, ``degraded``, or ``stopped``.
      details: Component statuses suitable for logging.
    """

    status: str
    details: Dict[str, str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def config_health(settings: EmailSettings) -> HealthReport:
    """Report whether the SMTP and IMAP endpoints are configured.

    No network access happens here; a host that is set but unreachable still
    reports ``configured``.
    """

    details = {
        "smtp": f"configured ({settings.smtp.endpoint})" if settings.smtp.host else "missing host",
        "imap": f"configured ({settings.imap.endpoint})" if settings.imap.host else "missing host",
        "folder": settings.imap.folder,
        "polling_interval_seconds": str(settings.polling_interval_seconds),
    }
    status = "ok" if settings.smtp.host and settings.imap.host else "degraded"
    return HealthReport(status=status, details=details)


def poller_health(loop: PollingLoop) -> HealthReport:
    """Summarise the state of ``loop``.

    What:
      Maps the loop phase and failure streak onto a status string.

    Why:
      A loop that keeps failing still runs and would otherwise look healthy.

    How:
      ``stopped`` once the loop has exited, ``degraded`` after
      :data:`DEGRADED_AFTER_FAILURES` consecutive failures, ``ok`` otherwise.
    """

    if loop.phase is PollPhase.STOPPED:
        status = "stopped"
    elif loop.consecutive_failures >= DEGRADED_AFTER_FAILURES:
        status = "degraded"
    else:
        status = "ok"
    last_count = loop.last_count
    details = {
        "phase": loop.phase.value,
        "last_count": "unknown" if last_count is None else str(last_count),
        "consecutive_failures": str(loop.consecutive_failures),
        "cycles": str(loop.cycles),
    }
    if loop.last_error:
        details["last_error"] = loop.last_error
    return HealthReport(status=status, details=details)
