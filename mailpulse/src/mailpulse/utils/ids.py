"""Identifier helpers shared by polling telemetry and configuration tracking.

What:
  Generate cycle identifiers for polling log lines and namespaced checksums
  used to fingerprint configuration files.

Why:
  Log correlation needs a sortable identifier per polling cycle, and the
  configuration watcher needs a stable digest to decide whether a reload is
  required.

How:
  Combine an ISO8601 UTC timestamp with a random suffix for cycle ids, and
  prefix SHA-256 hex digests with ``sha256:``.

Interfaces:
  :func:`new_cycle_id`, :func:`checksum`.
"""
from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timezone


def new_cycle_id() -> str:
    """Return a unique identifier for one polling cycle.

    Returns:
      Identifier such as ``2024-01-01T00:00:00+00:00#1a2b3c``.
    """

    timestamp = datetime.now(timezone.utc).isoformat()
    suffix = secrets.token_hex(3)
    return f"{timestamp}#{suffix}"


def checksum(data: bytes) -> str:
    """Compute a namespaced SHA-256 digest for ``data``.

    The ``sha256:`` prefix names the algorithm so stored fingerprints stay
    unambiguous if the hash ever changes.
    """

    return f"sha256:{hashlib.sha256(data).hexdigest()}"
