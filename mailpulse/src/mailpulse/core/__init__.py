"""Polling, change detection, and the public email service.

Interfaces:
  ``ChangeNotifier``, ``MailEvents``, ``PollingLoop``, ``PollPhase``,
  ``effective_interval``, ``EmailService``, ``HealthReport``,
  ``config_health``, ``poller_health``.
"""

from .health import HealthReport, config_health, poller_health
from .notifier import ChangeNotifier, MailEvents
from .poller import PollingLoop, PollPhase, effective_interval
from .service import EmailService

__all__ = [
    "ChangeNotifier",
    "MailEvents",
    "PollingLoop",
    "PollPhase",
    "effective_interval",
    "EmailService",
    "HealthReport",
    "config_health",
    "poller_health",
]
