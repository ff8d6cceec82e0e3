"""MIME helpers for composing outbound mail and previewing inbound mail.

What:
  Compose single-recipient :class:`email.message.EmailMessage` objects for the
  SMTP sender, and turn raw RFC822 payloads fetched over IMAP into short
  plain-text previews.

Why:
  Both directions deal with MIME structures MailPulse does not control. Keeping
  the parsing and composition in one module gives the transports a narrow,
  testable contract: bytes in, bounded text out; fields in, message out.

How:
  Use the ``email`` package with the default policy. Previews prefer the
  ``text/plain`` body, fall back to the ``text/html`` body passed through
  :func:`strip_html`, and are trimmed then truncated to
  :data:`PREVIEW_MAX_CHARS` characters.

Interfaces:
  :func:`build_message`, :func:`parse_message`, :func:`extract_preview`,
  :func:`strip_html`, :func:`truncate_preview`.

Invariants & Safety:
  - Previews never exceed :data:`PREVIEW_MAX_CHARS` characters.
  - :func:`strip_html` is intentionally naive: it drops every character inside
    ``<...>`` spans and decodes no entities.
"""
from __future__ import annotations

from datetime import datetime, timezone
from email import policy
from email.headerregistry import Address
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import format_datetime, make_msgid, parseaddr
from typing import Optional


PREVIEW_MAX_CHARS = 200


def _address(display_name: str, address: str) -> Address:
    name, addr_spec = parseaddr(address)
    if "@" not in addr_spec:
        raise ValueError(f"invalid email address: {address!r}")
    return Address(display_name=display_name or name, addr_spec=addr_spec)


def build_message(
    *,
    from_name: str,
    from_address: str,
    to_address: str,
    subject: str,
    body: str,
    is_html: bool = True,
) -> EmailMessage:
    """Compose a single-part message addressed to one recipient.

    What:
      Build an :class:`EmailMessage` with ``From``, ``To``, ``Subject``,
      ``Date`` and ``Message-ID`` headers and an HTML or plain-text body.

    Why:
      Both send variants share the same composition rules; only the ``From``
      identity differs.

    How:
      Validate both addresses with :func:`email.utils.parseaddr`, wrap them in
      :class:`email.headerregistry.Address`, and call ``set_content`` with the
      ``html`` subtype when ``is_html`` is true.

    Args:
      from_name: Display name for the sender; the address is used when empty.
      from_address: Sender address.
      to_address: Recipient, either ``user@host`` or ``Name <user@host>``.
      subject: Subject line.
      body: Message body.
      is_html: Whether ``body`` is HTML.

    Returns:
      The composed message.

    Raises:
      ValueError: If either address lacks an ``@``.
    """

    sender = _address(from_name or from_address, from_address)
    recipient = _address("", to_address)
    message = EmailMessage(policy=policy.SMTP)
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = subject
    message["Date"] = format_datetime(datetime.now(timezone.utc))
    message["Message-ID"] = make_msgid(domain=sender.domain or None)
    if is_html:
        message.set_content(body, subtype="html")
    else:
        message.set_content(body)
    return message


def parse_message(raw: bytes) -> EmailMessage:
    """Parse raw ``BODY[]`` bytes into an :class:`EmailMessage`."""

    return BytesParser(policy=policy.default).parsebytes(raw)


def strip_html(html: str) -> str:
    """Remove ``<...>`` spans from ``html`` in a single pass.

    Every character outside angle-bracket spans is copied; ``<`` opens a span
    and ``>`` closes it. Entities are left encoded and malformed nesting is not
    repaired.
    """

    if not html:
        return ""
    kept = []
    inside = False
    for char in html:
        if char == "<":
            inside = True
            continue
        if char == ">":
            inside = False
            continue
        if not inside:
            kept.append(char)
    return "".join(kept)


def truncate_preview(text: str, limit: int = PREVIEW_MAX_CHARS) -> str:
    """Trim surrounding whitespace then clamp ``text`` to ``limit`` characters."""

    plain = text.strip()
    return plain[:limit]


def extract_preview(raw: bytes) -> str:
    """Return a short plain-text preview for a raw RFC822 message.

    What:
      Select the best textual body and shorten it to a preview.

    Why:
      The recent-message listing shows one line per message; downloading and
      rendering full bodies client-side is out of scope.

    How:
      Prefer the ``text/plain`` body; when no such part exists, strip tags from
      the ``text/html`` body. Returns an empty string for messages without a
      textual body.

    Args:
      raw: Raw message bytes from a ``BODY.PEEK[]`` fetch.

    Returns:
      Preview of at most :data:`PREVIEW_MAX_CHARS` characters.

    Raises:
      LookupError, UnicodeError: When a part declares an unusable charset.
    """

    message = parse_message(raw)
    text: Optional[str] = None
    plain = message.get_body(preferencelist=("plain",))
    if plain is not None:
        text = plain.get_content()
    else:
        html = message.get_body(preferencelist=("html",))
        if html is not None:
            text = strip_html(html.get_content())
    if not text:
        return ""
    return truncate_preview(text)
