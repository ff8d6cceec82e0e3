"""Expose the public utility surface for MailPulse.

What:
  Re-export the logging, identifier, and cancellation helpers that other
  packages import without knowing the underlying module layout.

Why:
  A stable facade lets ``from mailpulse import utils`` keep working while the
  helper modules evolve.

Interfaces:
  ``get_logger``, ``set_level``, ``new_cycle_id``, ``checksum``,
  ``CancellationToken``, ``NEVER``.
"""

from .cancel import NEVER, CancellationToken
from .ids import checksum, new_cycle_id
from .logging import get_logger, set_level

__all__ = [
    "get_logger",
    "set_level",
    "new_cycle_id",
    "checksum",
    "CancellationToken",
    "NEVER",
]
