"""Last-known subscription, persisted for display across restarts.

The snapshot is never consulted for the access decision; the gate only
trusts the in-memory cache and fresh fetches.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from printdesk.subscription.state import SubscriptionRecord

logger = logging.getLogger(__name__)

SUBSCRIPTION_DATA_KEY = "subscriptionData"
LEGACY_LAST_CHECK_KEY = "subscriptionLastCheck"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class SubscriptionSnapshot:
    def __init__(self, store: KeyValueStore):
        self._store = store

    def save(self, record: SubscriptionRecord) -> None:
        self._store.set(SUBSCRIPTION_DATA_KEY, json.dumps(record.to_payload()))

    def load(self) -> Optional[SubscriptionRecord]:
        raw = self._store.get(SUBSCRIPTION_DATA_KEY)
        if not raw:
            return None
        try:
            return SubscriptionRecord.from_payload(json.loads(raw))
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning("Discarding unreadable subscription snapshot: %s", e)
            self._store.delete(SUBSCRIPTION_DATA_KEY)
            return None

    def clear(self) -> None:
        self._store.delete(SUBSCRIPTION_DATA_KEY)
        self._store.delete(LEGACY_LAST_CHECK_KEY)
