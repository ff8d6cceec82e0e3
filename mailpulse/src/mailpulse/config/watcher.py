"""Configuration change detection helpers.

What:
  Fingerprint the configuration file and compare fingerprints, returning both
  a boolean change signal and a human-readable reason.

Why:
  :class:`~mailpulse.config.loader.FileConfigSource` is consulted at the top
  of every polling cycle. Re-parsing and re-validating YAML each time would be
  wasteful and would spam ``config_reloaded`` lines; comparing fingerprints
  keeps reloads tied to real edits.

How:
  A fingerprint records ``st_mtime_ns``, ``st_size`` and a SHA-256 checksum of
  the bytes. When mtime and size match the previous fingerprint the checksum
  is reused instead of re-reading the file. Comparison is by checksum, so a
  ``touch`` without a content change is not a change.

Interfaces:
  :class:`ConfigFingerprint`, :func:`fingerprint`, :func:`has_changed`,
  :func:`change_reason`.

Invariants & Safety:
  - ``None`` (file missing) is handled on both sides without raising.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..utils.ids import checksum


@dataclass(frozen=True)
class ConfigFingerprint:
    """Identity of one version of the configuration file."""

    mtime_ns: int
    size: int
    checksum: str


def fingerprint(path: Path, previous: Optional[ConfigFingerprint] = None) -> Optional[ConfigFingerprint]:
    """Return the fingerprint of ``path`` or ``None`` if it cannot be read.

    Args:
      path: Configuration file.
      previous: Last known fingerprint; its checksum is reused when the file's
        mtime and size are unchanged.
    """

    try:
        stat = path.stat()
    except OSError:
        return None
    if previous is not None and previous.mtime_ns == stat.st_mtime_ns and previous.size == stat.st_size:
        return previous
    try:
        data = path.read_bytes()
    except OSError:
        return None
    return ConfigFingerprint(mtime_ns=stat.st_mtime_ns, size=stat.st_size, checksum=checksum(data))


def has_changed(prev: Optional[ConfigFingerprint], new: Optional[ConfigFingerprint]) -> bool:
    """Check whether the configuration file content differs.

    Returns:
      ``True`` when one side is missing and the other is not, or when the
      checksums differ.
    """

    if new is None:
        return prev is not None
    if prev is None:
        return True
    return prev.checksum != new.checksum


def change_reason(prev: Optional[ConfigFingerprint], new: Optional[ConfigFingerprint]) -> str:
    """Explain the outcome of :func:`has_changed` for log lines."""

    if new is None:
        return "missing"
    if prev is None:
        return "bootstrap"
    if prev.checksum != new.checksum:
        return "checksum change"
    if prev.mtime_ns != new.mtime_ns:
        return "touched"
    return "unchanged"
