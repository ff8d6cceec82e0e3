"""Error taxonomy shared by the IMAP, SMTP, and polling layers.

What:
  Define the exception types raised by MailPulse transport operations and the
  cancellation signal used to stop them cooperatively.

Why:
  Callers of on-demand operations decide how to react to failures, while the
  polling loop must tell a real failure apart from a shutdown request. A small
  explicit hierarchy keeps both decisions to a single ``except`` clause.

How:
  :class:`TransportError` wraps library exceptions (``imapclient``, ``smtplib``,
  socket errors) and is always raised with ``from`` so the original cause stays
  attached. :class:`PreviewExtractionError` is internal to the recent-message
  listing. :class:`OperationCancelled` does not derive from
  :class:`MailPulseError`.

Interfaces:
  :class:`MailPulseError`, :class:`TransportError`,
  :class:`PreviewExtractionError`, :class:`OperationCancelled`.

Invariants & Safety:
  - Error messages never include passwords or message bodies.
"""
from __future__ import annotations

from typing import Optional


class MailPulseError(Exception):
    """Base class for MailPulse failures."""


class TransportError(MailPulseError):
    """A connect, authentication, protocol, or network failure.

    What:
      Signals that one SMTP send or one IMAP query could not complete.

    Why:
      Hosting code should not need to know whether ``imapclient`` or
      ``smtplib`` raised; it only needs the operation and endpoint to report.

    How:
      Stores the logical ``operation`` and ``endpoint`` next to the message. The
      underlying exception is available through ``__cause__``.

    Attributes:
      operation: Short operation label such as ``"imap.unseen"``.
      endpoint: ``host:port`` the operation targeted.
    """

    def __init__(self, message: str, *, operation: str, endpoint: Optional[str] = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.endpoint = endpoint


class PreviewExtractionError(MailPulseError):
    """Raised when a single message body cannot be fetched or decoded."""

    def __init__(self, uid: int, message: str) -> None:
        super().__init__(message)
        self.uid = uid


class OperationCancelled(Exception):
    """Raised when a :class:`~mailpulse.utils.cancel.CancellationToken` fires.

    Not a failure: the polling loop treats it as a normal shutdown and never
    logs it at error severity.
    """
