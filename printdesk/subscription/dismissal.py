"""Dismissal state of the subscription reminder banner."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from printdesk.subscription.snapshot import KeyValueStore
from printdesk.subscription.state import NOTIFICATION_COOLDOWN, Clock, as_utc, utcnow

logger = logging.getLogger(__name__)

NOTIFICATION_CLOSED_KEY = "subscriptionNotificationClosed"


class DismissalTracker:
    """
    Lets the user hide the reminder banner for NOTIFICATION_COOLDOWN.

    The store is the source of truth. Expiry is lazy: a stale timestamp is
    only noticed, and deleted, when is_closed() reads it. Dismissing the
    banner never affects the access gate.
    """

    def __init__(self, store: KeyValueStore, clock: Clock = utcnow):
        self._store = store
        self._clock = clock

    def closed_at(self) -> Optional[datetime]:
        raw = self._store.get(NOTIFICATION_CLOSED_KEY)
        if not raw:
            return None
        try:
            return as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            logger.warning("Ignoring unparsable %s value: %r", NOTIFICATION_CLOSED_KEY, raw)
            self._store.delete(NOTIFICATION_CLOSED_KEY)
            return None

    def is_closed(self) -> bool:
        closed_at = self.closed_at()
        if closed_at is None:
            return False

        if self._clock() - closed_at < NOTIFICATION_COOLDOWN:
            return True

        self._store.delete(NOTIFICATION_CLOSED_KEY)
        return False

    def close(self) -> None:
        self._store.set(NOTIFICATION_CLOSED_KEY, self._clock().isoformat())

    def show(self) -> None:
        self._store.delete(NOTIFICATION_CLOSED_KEY)
