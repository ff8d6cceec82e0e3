"""Facade for the SMTP integration layer.

Interfaces:
  ``SmtpSender``: stateless one-connection-per-send delivery.
"""

from .client import SmtpSender

__all__ = ["SmtpSender"]
