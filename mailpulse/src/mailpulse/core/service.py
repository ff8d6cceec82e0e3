"""Public email operations for hosting code.

What:
  :class:`EmailService` bundles the on-demand operations: send a message with
  the configured identity or an explicit one, count unseen messages, and list
  recent messages with previews.

Why:
  Hosts (web handlers, the CLI, the polling loop's owner) want one object with
  plain arguments rather than the transport classes and settings models. Each
  call reads the settings in force at that moment, so configuration edits
  apply to the next call without rebuilding the service.

How:
  Compose the message with :func:`mailpulse.utils.mime.build_message` and hand
  it to :class:`~mailpulse.smtp.client.SmtpSender`; delegate mailbox queries to
  :class:`~mailpulse.imap.snapshot.MailboxSnapshot`. Tokens default to
  :data:`~mailpulse.utils.cancel.NEVER`.

Interfaces:
  :class:`EmailService`.

Invariants & Safety:
  - Failures propagate as :class:`~mailpulse.errors.TransportError`; the
    service never hides them behind a ``False`` return.
  - Subjects and bodies are never logged.
"""
from __future__ import annotations

from typing import List, Optional

from ..config.loader import ConfigSource
from ..config.schema import EmailSettings
from ..imap.snapshot import MailboxSnapshot, MessageSummary
from ..smtp.client import SmtpSender
from ..utils.cancel import NEVER, CancellationToken
from ..utils.mime import build_message


class EmailService:
    """On-demand send and mailbox queries against the configured account.

    Args:
      config_source: Accessor returning the current
        :class:`~mailpulse.config.schema.EmailSettings`.
      snapshot: Optional mailbox query helper.
      sender: Optional SMTP sender.
    """

    def __init__(
        self,
        config_source: ConfigSource,
        *,
        snapshot: Optional[MailboxSnapshot] = None,
        sender: Optional[SmtpSender] = None,
    ) -> None:
        self._config_source = config_source
        self._snapshot = snapshot or MailboxSnapshot()
        self._sender = sender or SmtpSender()

    @property
    def snapshot(self) -> MailboxSnapshot:
        return self._snapshot

    def send_email(
        self,
        to_address: str,
        subject: str,
        body: str,
        is_html: bool = True,
        token: Optional[CancellationToken] = None,
    ) -> bool:
        """Send a message from the configured sender identity.

        The display name falls back to the configured address when it is
        blank.

        Returns:
          ``True`` once the server accepted the message.

        Raises:
          ValueError: If an address is malformed.
          TransportError: On connect, authentication, or send failure.
          OperationCancelled: When ``token`` fires.
        """

        settings = self._config_source.current()
        return self._send(
            settings,
            from_name=settings.smtp.sender_name,
            from_address=settings.smtp.from_address,
            to_address=to_address,
            subject=subject,
            body=body,
            is_html=is_html,
            token=token,
        )

    def send_email_from(
        self,
        from_address: str,
        to_address: str,
        subject: str,
        body: str,
        is_html: bool = True,
        token: Optional[CancellationToken] = None,
    ) -> bool:
        """Send a message with an explicit ``From`` address.

        The address doubles as the display name. Endpoint and credentials
        still come from the configured SMTP settings.
        """

        return self._send(
            self._config_source.current(),
            from_name=from_address,
            from_address=from_address,
            to_address=to_address,
            subject=subject,
            body=body,
            is_html=is_html,
            token=token,
        )

    def check_new_emails(self, token: Optional[CancellationToken] = None) -> int:
        """Return the unseen-message count of the configured folder."""

        settings = self._config_source.current()
        return self._snapshot.unseen_count(
            settings.imap, token or NEVER, timeout=settings.timeout_seconds
        )

    def get_recent_emails(
        self,
        take: int = 50,
        token: Optional[CancellationToken] = None,
    ) -> List[MessageSummary]:
        """Return up to ``take`` recent messages, newest first.

        Values of ``take`` below 1 are treated as 1.
        """

        settings = self._config_source.current()
        return self._snapshot.recent(
            settings.imap, take, token or NEVER, timeout=settings.timeout_seconds
        )

    def _send(
        self,
        settings: EmailSettings,
        *,
        from_name: str,
        from_address: str,
        to_address: str,
        subject: str,
        body: str,
        is_html: bool,
        token: Optional[CancellationToken],
    ) -> bool:
        message = build_message(
            from_name=from_name,
            from_address=from_address,
            to_address=to_address,
            subject=subject,
            body=body,
            is_html=is_html,
        )
        self._sender.send(
            message, settings.smtp, token or NEVER, timeout=settings.timeout_seconds
        )
        return True
