"""
Module: mailpulse.__init__

What:
  Aggregate package exports for the MailPulse email integration layer and
  expose its namespace segments (configuration, polling core, IMAP queries,
  SMTP delivery, and utilities).

Why:
  Hosts embed MailPulse through a handful of names: the service facade, the
  polling loop, and the event registry. Keeping them importable from the
  package root spares callers from tracking the internal module split.

How:
  Re-export the public classes from :mod:`mailpulse.core` and
  :mod:`mailpulse.config`, and declare the subpackages in ``__all__``.

Interfaces:
  - config: Configuration schema, loaders, and live sources.
  - core: Change notifier, polling loop, email service, health reports.
  - imap: Per-call IMAP client and mailbox queries.
  - smtp: One-shot SMTP delivery.
  - utils: Logging, MIME, identifiers, and cancellation helpers.

Invariants:
  - Importing the package performs no network or filesystem access.
"""

from .config.loader import FileConfigSource, StaticConfigSource
from .core.notifier import ChangeNotifier, MailEvents
from .core.poller import PollingLoop, PollPhase
from .core.service import EmailService
from .errors import MailPulseError, OperationCancelled, TransportError
from .imap.snapshot import MessageSummary
from .utils.cancel import CancellationToken

__version__ = "0.1.0"

__all__ = [
    "config",
    "core",
    "imap",
    "smtp",
    "utils",
    "CancellationToken",
    "ChangeNotifier",
    "EmailService",
    "FileConfigSource",
    "MailEvents",
    "MailPulseError",
    "MessageSummary",
    "OperationCancelled",
    "PollingLoop",
    "PollPhase",
    "StaticConfigSource",
    "TransportError",
]
