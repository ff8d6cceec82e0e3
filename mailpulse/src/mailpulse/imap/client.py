"""Per-call IMAP connection wrapper with MailPulse error semantics.

What:
  Wrap the third-party ``imapclient`` library in a context manager that owns
  exactly one connection for the duration of one query: connect with the
  configured security mode, log in, select a folder read-only, search, fetch,
  and log out.

Why:
  Every MailPulse query is independent and may run concurrently with the
  polling loop, so no connection is shared or cached. Translating library and
  socket failures in one place means callers only ever see
  :class:`~mailpulse.errors.TransportError` or
  :class:`~mailpulse.errors.OperationCancelled`.

How:
  :meth:`MailPulseImapClient.__enter__` builds an ``IMAPClient`` (TLS on
  connect, or STARTTLS when the server advertises it), disables local-time
  normalisation so ``INTERNALDATE`` values stay timezone-aware, and registers
  an abort hook on the cancellation token that shuts the socket down.
  :meth:`__exit__` logs out on a best-effort basis and never raises.

Interfaces:
  :class:`MailPulseImapClient` and its ``select_readonly``, ``search_uids``,
  ``fetch_summaries`` and ``fetch_body`` methods.

Invariants & Safety:
  - All operations use UIDs; sequence numbers are never exposed.
  - Folders are only ever selected read-only, so fetching bodies does not set
    ``\\Seen``.
  - Logout and shutdown failures are swallowed and never mask the primary
    outcome of the ``with`` block.
"""
from __future__ import annotations

import contextlib
import ssl
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from ..config.schema import ImapSettings, SecurityMode
from ..errors import OperationCancelled, TransportError
from ..utils.cancel import NEVER, CancellationToken


SUMMARY_ITEMS = [b"ENVELOPE", b"FLAGS", b"INTERNALDATE"]
BODY_ITEM = b"BODY.PEEK[]"
BODY_KEY = b"BODY[]"


class MailPulseImapClient:
    """Context manager owning one IMAP connection.

    What:
      Connects and authenticates in :meth:`__enter__`, exposes a handful of
      read-only operations, and disconnects in :meth:`__exit__`.

    Why:
      Keeping the connection lifecycle inside a ``with`` block guarantees the
      logout attempt happens whatever the outcome of the query.

    How:
      Wraps every library call with :meth:`_guard`, which converts
      ``IMAPClientError`` and ``OSError`` into :class:`TransportError`, or
      into :class:`OperationCancelled` when the token fired in the meantime.

    Args:
      config: IMAP endpoint, credentials, and folder.
      token: Cancellation token; firing it aborts the socket.
      timeout: Socket timeout in seconds passed to ``IMAPClient``.
    """

    def __init__(
        self,
        config: ImapSettings,
        *,
        token: CancellationToken = NEVER,
        timeout: Optional[float] = None,
    ) -> None:
        self._config = config
        self._token = token
        self._timeout = timeout
        self._client: Optional[IMAPClient] = None
        self._unregister: Callable[[], None] = lambda: None

    def __enter__(self) -> "MailPulseImapClient":
        """Open the connection, negotiate TLS, and authenticate.

        Raises:
          TransportError: On connect, TLS, or login failure.
          OperationCancelled: If the token fires before or during connect.
        """

        self._token.raise_if_cancelled()
        security = self._config.resolved_security()
        try:
            with self._guard("connect"):
                self._client = IMAPClient(
                    self._config.host,
                    port=self._config.port,
                    ssl=security is SecurityMode.IMPLICIT_TLS,
                    timeout=self._timeout,
                )
                self._client.normalise_times = False
                self._unregister = self._token.register(self._abort)
                if security is SecurityMode.STARTTLS and self._client.has_capability("STARTTLS"):
                    self._client.starttls(ssl.create_default_context())
            self._token.raise_if_cancelled()
            if self._config.has_credentials:
                with self._guard("login"):
                    self._client.login(self._config.username, self._config.password)
        except BaseException:
            self._disconnect()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._disconnect()

    @property
    def client(self) -> IMAPClient:
        """Return the underlying ``IMAPClient``.

        Raises:
          RuntimeError: If accessed outside the ``with`` block.
        """

        if self._client is None:
            raise RuntimeError("IMAP client not connected")
        return self._client

    @property
    def config(self) -> ImapSettings:
        return self._config

    def select_readonly(self, folder: Optional[str] = None) -> str:
        """Select ``folder`` (default: the configured one) in read-only mode."""

        name = folder or self._config.folder
        with self._guard("select"):
            self.client.select_folder(name, readonly=True)
        return name

    def search_uids(self, criteria: List[Any]) -> List[int]:
        """Run a UID search and return the matching UIDs as a list."""

        with self._guard("search"):
            found = self.client.search(criteria)
        return [int(uid) for uid in found or []]

    def fetch_summaries(self, uids: Iterable[int]) -> Dict[int, Dict[bytes, Any]]:
        """Fetch envelope, flags, and internal date for ``uids``."""

        uid_list = list(uids)
        if not uid_list:
            return {}
        with self._guard("fetch"):
            return dict(self.client.fetch(uid_list, SUMMARY_ITEMS))

    def fetch_body(self, uid: int) -> bytes:
        """Fetch the full RFC822 payload of ``uid`` without setting ``\\Seen``.

        Raises:
          TransportError: On protocol failure.
          KeyError: When the server returned no body for ``uid``.
        """

        with self._guard("fetch"):
            response = self.client.fetch([uid], [BODY_ITEM])
        return response[uid][BODY_KEY]

    @contextlib.contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (IMAPClientError, OSError) as exc:
            if self._token.cancelled:
                raise OperationCancelled(f"imap {operation} cancelled") from exc
            raise TransportError(
                f"IMAP {operation} failed on {self._config.endpoint}: {exc}",
                operation=f"imap.{operation}",
                endpoint=self._config.endpoint,
            ) from exc

    def _abort(self) -> None:
        client = self._client
        if client is None:
            return
        try:
            client.shutdown()
        except Exception:  # pragma: no cover - socket may already be gone
            pass

    def _disconnect(self) -> None:
        self._unregister()
        self._unregister = lambda: None
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.logout()
        except Exception:
            pass
