"""Process-wide, time-boxed cache of the last fetched subscription."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from printdesk.subscription.state import CACHE_TTL, Clock, SubscriptionRecord, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    record: Optional[SubscriptionRecord]
    fetched_at: datetime


class SubscriptionCache:
    """
    Holds at most one entry, replaced wholesale on every write.

    A cached None ("no subscription on file") is a real entry: it is served
    for the full TTL so tenants without a subscription do not trigger a fetch
    on every validation.
    """

    def __init__(self, ttl: timedelta = CACHE_TTL, clock: Clock = utcnow):
        self.ttl = ttl
        self._clock = clock
        self._entry: Optional[CacheEntry] = None

    def get_entry(self) -> Optional[CacheEntry]:
        """The entry if still within the TTL, read against the clock once."""
        entry = self._entry
        if entry is None:
            return None
        if self._clock() - entry.fetched_at < self.ttl:
            return entry
        return None

    def get(self) -> Optional[SubscriptionRecord]:
        entry = self.get_entry()
        return entry.record if entry is not None else None

    def set(self, record: Optional[SubscriptionRecord]) -> None:
        self._entry = CacheEntry(record=record, fetched_at=self._clock())

    def clear(self) -> None:
        logger.debug("Subscription cache cleared")
        self._entry = None

    def is_expired(self) -> bool:
        return self.get_entry() is None

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._entry.fetched_at if self._entry is not None else None
