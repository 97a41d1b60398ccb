"""Shared open/closed state of the reminder banner."""

from __future__ import annotations

from typing import Callable, List, Optional

from printdesk.subscription.dismissal import DismissalTracker

Listener = Callable[[bool], None]


class NotificationBroadcast:
    """
    Single holder of DismissalTracker's derived state.

    The banner and the compact alert both read `is_closed` from here, so they
    cannot disagree. Mutations notify every listener synchronously before
    returning.
    """

    def __init__(self, tracker: DismissalTracker):
        self._tracker = tracker
        self._is_closed: Optional[bool] = None
        self._listeners: List[Listener] = []

    @property
    def is_closed(self) -> bool:
        if self._is_closed is None:
            self._is_closed = self._tracker.is_closed()
        return self._is_closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        if self._is_closed is None:
            self._is_closed = self._tracker.is_closed()
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._tracker.close()
        self._publish(True)

    def show(self) -> None:
        self._tracker.show()
        self._publish(False)

    def reload(self) -> bool:
        """Re-read the persisted state, e.g. when a new layout mounts."""
        self._publish(self._tracker.is_closed())
        return self.is_closed

    def _publish(self, is_closed: bool) -> None:
        changed = self._is_closed != is_closed
        self._is_closed = is_closed
        if not changed:
            return
        for listener in list(self._listeners):
            listener(is_closed)
