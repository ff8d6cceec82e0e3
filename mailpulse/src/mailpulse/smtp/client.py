"""One-shot SMTP delivery with MailPulse error semantics.

What:
  Deliver one composed message per call: connect, negotiate TLS, authenticate
  when credentials are configured, send, and disconnect.

Why:
  Sends are rare and independent, so holding an SMTP session open buys
  nothing and risks stale connections after configuration changes. Wrapping
  ``smtplib`` failures in :class:`~mailpulse.errors.TransportError` gives
  callers a single exception type across both transports.

How:
  Use ``smtplib.SMTP_SSL`` for implicit TLS, otherwise ``smtplib.SMTP`` with
  an opportunistic ``STARTTLS`` when the security mode asks for it and the
  server advertises the extension. A cancellation hook closes the socket.
  ``QUIT`` always runs in a ``finally`` block and its failures are swallowed.

Interfaces:
  :class:`SmtpSender`.

Invariants & Safety:
  - A failing ``QUIT`` never replaces the original error.
  - Passwords are never logged; only the endpoint and recipient are.
"""
from __future__ import annotations

import ssl
from email.message import EmailMessage
from smtplib import SMTP, SMTP_SSL, SMTPException
from typing import Callable, Optional

from ..config.schema import SecurityMode, SmtpSettings
from ..errors import OperationCancelled, TransportError
from ..utils.cancel import NEVER, CancellationToken
from ..utils.logging import JsonLogger, get_logger


DEFAULT_TIMEOUT_SECONDS = 30.0


def _quit_quietly(smtp: SMTP) -> None:
    try:
        smtp.quit()
    except Exception:
        try:
            smtp.close()
        except Exception:  # pragma: no cover - socket already gone
            pass


def _close_quietly(smtp: SMTP) -> None:
    try:
        smtp.close()
    except Exception:  # pragma: no cover - best-effort abort
        pass


class SmtpSender:
    """Send messages through the SMTP endpoint described by the settings.

    What:
      Stateless sender; every :meth:`send` owns its own connection.

    Why:
      Safe to call from several threads at once and always honours the latest
      settings passed in by the caller.

    Args:
      logger: Optional structured logger.
    """

    def __init__(self, *, logger: Optional[JsonLogger] = None) -> None:
        self._logger = logger or get_logger("mailpulse.smtp")

    def send(
        self,
        message: EmailMessage,
        config: SmtpSettings,
        token: CancellationToken = NEVER,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Deliver ``message`` using ``config``.

        What:
          Runs the connect, TLS, login, send, and quit sequence once.

        Why:
          Both public send variants share this sequencing; they differ only in
          how the ``From`` header was composed.

        How:
          Pick the client class from :meth:`SmtpSettings.resolved_security`,
          register an abort hook on ``token``, and translate ``SMTPException``
          and ``OSError`` into :class:`TransportError`.

        Args:
          message: Fully composed message.
          config: SMTP settings read fresh by the caller.
          token: Cancellation token.
          timeout: Socket timeout in seconds.

        Raises:
          TransportError: On connect, TLS, authentication, or send failure.
          OperationCancelled: When ``token`` fires.
        """

        token.raise_if_cancelled()
        security = config.resolved_security()
        smtp: Optional[SMTP] = None
        unregister: Callable[[], None] = lambda: None
        try:
            try:
                if security is SecurityMode.IMPLICIT_TLS:
                    smtp = SMTP_SSL(
                        config.host,
                        config.port,
                        timeout=timeout,
                        context=ssl.create_default_context(),
                    )
                else:
                    smtp = SMTP(config.host, config.port, timeout=timeout)
                connection = smtp
                unregister = token.register(lambda: _close_quietly(connection))
                if security is SecurityMode.STARTTLS:
                    smtp.ehlo()
                    if smtp.has_extn("starttls"):
                        smtp.starttls(context=ssl.create_default_context())
                        smtp.ehlo()
                token.raise_if_cancelled()
                if config.has_credentials:
                    smtp.login(config.username, config.password)
                token.raise_if_cancelled()
                smtp.send_message(message)
            except (SMTPException, OSError) as exc:
                if token.cancelled:
                    raise OperationCancelled("smtp send cancelled") from exc
                self._logger.error(
                    "smtp_send_failed",
                    exc=exc,
                    endpoint=config.endpoint,
                    recipient=str(message["To"]),
                )
                raise TransportError(
                    f"SMTP send failed on {config.endpoint}: {exc}",
                    operation="smtp.send",
                    endpoint=config.endpoint,
                ) from exc
        finally:
            unregister()
            if smtp is not None:
                _quit_quietly(smtp)
        self._logger.info(
            "smtp_send_completed",
            endpoint=config.endpoint,
            recipient=str(message["To"]),
        )
