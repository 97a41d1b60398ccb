"""Subscription record, gate states and timing constants."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

Clock = Callable[[], datetime]

CACHE_TTL = timedelta(minutes=5)
NOTIFICATION_COOLDOWN = timedelta(hours=24)
EXPIRING_SOON_DAYS = 3

SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class GateState(str, Enum):
    UNVALIDATED = "unvalidated"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


class SubscriptionPayload(BaseModel):
    """Wire shape of a subscription as returned by the backend."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    is_trial: bool = Field(alias="isTrial")
    is_active: bool = Field(alias="isActive")
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")


@dataclass(frozen=True)
class SubscriptionRecord:
    is_trial: bool
    is_active: bool
    start_date: datetime
    end_date: datetime
    id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", as_utc(self.start_date))
        object.__setattr__(self, "end_date", as_utc(self.end_date))

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "SubscriptionRecord":
        """Parse a backend payload. Raises pydantic.ValidationError when malformed."""
        payload = SubscriptionPayload.model_validate(data)
        return cls(
            id=str(payload.id) if payload.id is not None else None,
            is_trial=payload.is_trial,
            is_active=payload.is_active,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "isTrial": self.is_trial,
            "isActive": self.is_active,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        """Whole days left, rounded up and never negative."""
        now = as_utc(now or utcnow())
        seconds = (self.end_date - now).total_seconds()
        return max(0, math.ceil(seconds / SECONDS_PER_DAY))

    def is_expiring_soon(self, now: Optional[datetime] = None) -> bool:
        return self.days_remaining(now) <= EXPIRING_SOON_DAYS

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        # Date window and backend flag are always checked together.
        now = as_utc(now or utcnow())
        return self.days_remaining(now) <= 0 or self.end_date < now or not self.is_active

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return not self.is_expired(now)


def is_subscription_valid(record: Optional[SubscriptionRecord], now: Optional[datetime] = None) -> bool:
    """A missing subscription is never valid."""
    return record is not None and record.is_valid(now)
