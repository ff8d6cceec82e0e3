"""Unseen-count change detection and the ``NewMailDetected`` event registry.

What:
  :class:`ChangeNotifier` remembers the last observed unseen count and decides
  whether a new observation is a change worth announcing. :class:`MailEvents`
  is the observer registry that delivers those announcements.

Why:
  Subscribers only care about transitions, not about every poll. Any change
  fires, including a drop to zero after mail was read in another client, so
  that displays of the count never go stale.

How:
  ``ChangeNotifier.observe`` compares against a stored value that starts as
  ``None`` (unknown). ``MailEvents`` keeps callbacks in a list and invokes them
  synchronously, in registration order, on the thread raising the event.

Interfaces:
  :class:`ChangeNotifier`, :class:`MailEvents`, ``NewMailHandler``.

Invariants & Safety:
  - The first concrete observation always fires, even when it is ``0``.
  - Observing the same count twice in a row never fires twice.
  - Subscriber exceptions are not caught here; they surface to the caller of
    :meth:`MailEvents.raise_new_mail_detected`.
"""
from __future__ import annotations

import threading
from typing import Callable, List, Optional


NewMailHandler = Callable[[int], None]


class ChangeNotifier:
    """Hold the last observed unseen count and detect changes.

    Owned by a single polling thread; no locking is performed.
    """

    def __init__(self) -> None:
        self._last_count: Optional[int] = None

    @property
    def last_count(self) -> Optional[int]:
        """Last observed count, or ``None`` before the first observation."""

        return self._last_count

    def observe(self, new_count: int) -> bool:
        """Record ``new_count`` and report whether it differs from the last one.

        Returns:
          ``True`` when an event carrying ``new_count`` should be emitted.
        """

        if new_count == self._last_count:
            return False
        self._last_count = new_count
        return True


class MailEvents:
    """Observer registry for ``NewMailDetected(unseen_count)``.

    What:
      Stores callbacks and fans an unseen count out to all of them.

    Why:
      Decouples the polling loop from whatever the host does with a change
      (desktop notification, web push, CLI output).

    How:
      Registration is guarded by a lock so hosts may subscribe from other
      threads; dispatch iterates a snapshot of the list so a handler may
      unsubscribe itself while being called. An event raised with no
      subscribers is simply dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: List[NewMailHandler] = []

    def subscribe(self, handler: NewMailHandler) -> Callable[[], None]:
        """Register ``handler`` and return a function that unregisters it."""

        with self._lock:
            self._handlers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: NewMailHandler) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def raise_new_mail_detected(self, unseen_count: int) -> None:
        """Invoke every subscriber with ``unseen_count``, in registration order."""

        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler(unseen_count)
