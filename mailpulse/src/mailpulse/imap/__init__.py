"""Facade for the IMAP integration layer.

What:
  Surface the per-call :class:`~mailpulse.imap.client.MailPulseImapClient`
  and the :class:`~mailpulse.imap.snapshot.MailboxSnapshot` queries built on
  top of it.

Why:
  Call sites depend on these names only, so the connection wrapper can evolve
  without touching the polling loop or the service facade.

Interfaces:
  ``MailPulseImapClient``, ``MailboxSnapshot``, ``MessageSummary``.
"""

from .client import MailPulseImapClient
from .snapshot import MailboxSnapshot, MessageSummary

__all__ = ["MailPulseImapClient", "MailboxSnapshot", "MessageSummary"]
