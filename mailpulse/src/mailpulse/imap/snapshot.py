"""Mailbox queries: unseen count and recent-message summaries.

What:
  Answer the two questions MailPulse asks of an IMAP folder: how many messages
  are unseen right now, and what are the most recent messages with a short
  preview of each.

Why:
  The polling loop only needs the unseen count, while hosting code lists recent
  mail on demand. Both must open their own connection, read fresh settings, and
  report failures as :class:`~mailpulse.errors.TransportError`, except that a
  single unreadable message must never spoil the whole listing.

How:
  Each query runs inside :class:`~mailpulse.imap.client.MailPulseImapClient`.
  :meth:`MailboxSnapshot.recent` keeps the highest UIDs as the "most recent"
  ones, fetches lightweight summaries first, then fetches each body separately
  to derive a preview with :func:`mailpulse.utils.mime.extract_preview`.

Interfaces:
  :class:`MessageSummary`, :class:`MailboxSnapshot`.

Invariants & Safety:
  - UID order is used as a proxy for arrival order. This is an approximation
    on servers that reassign UIDs when messages are copied in.
  - Previews are at most 200 characters and carry no markup tags.
  - Subjects and previews are never logged.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from email.header import decode_header, make_header
from typing import Any, Callable, Dict, List, Optional

from ..config.schema import ImapSettings
from ..errors import OperationCancelled, PreviewExtractionError, TransportError
from ..utils.cancel import NEVER, CancellationToken
from ..utils.logging import JsonLogger, get_logger
from ..utils.mime import extract_preview
from .client import MailPulseImapClient


EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)
"""Timestamp used for messages the server returned without ``INTERNALDATE``."""


@dataclass(frozen=True)
class MessageSummary:
    """Immutable description of one message in a recent-message listing.

    Attributes:
      id: Server UID rendered as a string; stable within the folder.
      sender: ``Name <user@host>`` or bare ``user@host``; empty when unknown.
      subject: Decoded subject line.
      date: Internal date normalised to UTC.
      seen: Whether the ``\\Seen`` flag is set.
      preview: Plain-text excerpt, at most 200 characters.
    """

    id: str
    sender: str
    subject: str
    date: datetime
    seen: bool
    preview: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "subject": self.subject,
            "date": self.date.isoformat(),
            "seen": self.seen,
            "preview": self.preview,
        }


def _text(value: Any) -> str:
    """Decode an envelope field (bytes, possibly RFC 2047 encoded) to text."""

    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        return str(make_header(decode_header(value)))
    except (LookupError, UnicodeError, ValueError):
        return value


def _format_sender(envelope: Any) -> str:
    addresses = getattr(envelope, "from_", None) or ()
    if not addresses:
        return ""
    first = addresses[0]
    mailbox = _text(getattr(first, "mailbox", None))
    host = _text(getattr(first, "host", None))
    address = f"{mailbox}@{host}" if host else mailbox
    name = _text(getattr(first, "name", None)).strip()
    return f"{name} <{address}>" if name else address


def _is_seen(flags: Any) -> bool:
    for flag in flags or ():
        if isinstance(flag, bytes):
            flag = flag.decode("ascii", errors="ignore")
        if str(flag).lower() == "\\seen":
            return True
    return False


def _as_utc(value: Any) -> datetime:
    if not isinstance(value, datetime):
        return EPOCH_MIN
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MailboxSnapshot:
    """Read-only queries against the configured IMAP folder.

    What:
      Implements :meth:`unseen_count` and :meth:`recent`, each on a fresh
      connection.

    Why:
      Stateless queries are safe to call from the polling thread and from
      on-demand callers at the same time.

    How:
      Builds a client through ``client_factory`` (tests inject one backed by an
      in-memory fake), logs the outcome, and lets
      :class:`~mailpulse.errors.TransportError` propagate after logging it.

    Args:
      client_factory: Callable ``(config, token=..., timeout=...)`` returning a
        context manager compatible with :class:`MailPulseImapClient`.
      logger: Optional structured logger.
    """

    def __init__(
        self,
        *,
        client_factory: Callable[..., MailPulseImapClient] = MailPulseImapClient,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._client_factory = client_factory
        self._logger = logger or get_logger("mailpulse.imap")

    def unseen_count(
        self,
        config: ImapSettings,
        token: CancellationToken = NEVER,
        *,
        timeout: Optional[float] = None,
    ) -> int:
        """Return the number of unseen messages in ``config.folder``.

        Raises:
          TransportError: On connect, login, select, or search failure.
          OperationCancelled: When ``token`` fires.
        """

        try:
            with self._client_factory(config, token=token, timeout=timeout) as client:
                folder = client.select_readonly()
                count = len(client.search_uids(["UNSEEN"]))
        except TransportError as exc:
            self._logger.error("imap_check_failed", exc=exc, endpoint=config.endpoint)
            raise
        self._logger.info("imap_check_completed", count=count, folder=folder)
        return count

    def recent(
        self,
        config: ImapSettings,
        take: int = 50,
        token: CancellationToken = NEVER,
        *,
        timeout: Optional[float] = None,
    ) -> List[MessageSummary]:
        """List the ``take`` most recent messages, newest first.

        What:
          Returns summaries for the highest ``max(1, take)`` UIDs in the folder,
          ordered by internal date descending, each with a best-effort preview.

        Why:
          Summaries come from a cheap ``ENVELOPE FLAGS INTERNALDATE`` fetch;
          bodies are only downloaded for the selected messages.

        How:
          Search ``ALL``, slice the sorted UID list, fetch summaries, then call
          :meth:`_preview` per message. Preview failures are logged at debug
          severity and leave ``preview`` empty.

        Args:
          config: IMAP settings read fresh by the caller.
          take: Number of messages wanted; values below 1 are treated as 1.
          token: Cancellation token.
          timeout: Socket timeout in seconds.

        Returns:
          Summaries newest first; an empty list for an empty folder.

        Raises:
          TransportError: On connect, login, select, search, or summary fetch
            failure.
          OperationCancelled: When ``token`` fires.
        """

        try:
            with self._client_factory(config, token=token, timeout=timeout) as client:
                folder = client.select_readonly()
                all_uids = client.search_uids(["ALL"])
                if not all_uids:
                    self._logger.info("imap_recent_completed", count=0, folder=folder)
                    return []
                selected = sorted(all_uids)[-max(1, take):]
                fetched = client.fetch_summaries(selected)
                summaries = []
                for uid in selected:
                    data = fetched.get(uid)
                    if data is None:
                        continue
                    summaries.append(self._summarise(client, uid, data, token))
        except TransportError as exc:
            self._logger.error("imap_recent_failed", exc=exc, endpoint=config.endpoint)
            raise
        summaries.sort(key=lambda summary: summary.date, reverse=True)
        self._logger.info("imap_recent_completed", count=len(summaries), folder=folder)
        return summaries

    def _summarise(
        self,
        client: MailPulseImapClient,
        uid: int,
        data: Dict[bytes, Any],
        token: CancellationToken,
    ) -> MessageSummary:
        envelope = data.get(b"ENVELOPE")
        preview = ""
        token.raise_if_cancelled()
        try:
            preview = self._preview(client, uid)
        except PreviewExtractionError as exc:
            self._logger.debug("imap_preview_failed", uid=exc.uid, error=str(exc))
        return MessageSummary(
            id=str(uid),
            sender=_format_sender(envelope),
            subject=_text(getattr(envelope, "subject", None)),
            date=_as_utc(data.get(b"INTERNALDATE")),
            seen=_is_seen(data.get(b"FLAGS")),
            preview=preview,
        )

    @staticmethod
    def _preview(client: MailPulseImapClient, uid: int) -> str:
        try:
            raw = client.fetch_body(uid)
            return extract_preview(raw)
        except OperationCancelled:
            raise
        except Exception as exc:
            raise PreviewExtractionError(uid, f"preview unavailable for uid {uid}: {exc}") from exc
