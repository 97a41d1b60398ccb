from __future__ import annotations

from datetime import datetime, timezone

from printdesk.config import ConfigStore
from printdesk.subscription.snapshot import (
    LEGACY_LAST_CHECK_KEY,
    SUBSCRIPTION_DATA_KEY,
    SubscriptionSnapshot,
)
from printdesk.subscription.state import SubscriptionRecord


def _record() -> SubscriptionRecord:
    return SubscriptionRecord(
        id="sub-7",
        is_trial=True,
        is_active=True,
        start_date=datetime(2025, 3, 1, tzinfo=timezone.utc),
        end_date=datetime(2025, 3, 15, tzinfo=timezone.utc),
    )


class TestSubscriptionSnapshot:
    def test_load_without_snapshot(self):
        assert SubscriptionSnapshot(ConfigStore(":memory:")).load() is None

    def test_save_and_load(self):
        store = ConfigStore(":memory:")
        SubscriptionSnapshot(store).save(_record())

        assert SubscriptionSnapshot(store).load() == _record()

    def test_corrupt_snapshot_is_dropped(self):
        store = ConfigStore(":memory:")
        store.set(SUBSCRIPTION_DATA_KEY, "{not json")

        assert SubscriptionSnapshot(store).load() is None
        assert store.get(SUBSCRIPTION_DATA_KEY) is None

    def test_wrong_shape_is_dropped(self):
        store = ConfigStore(":memory:")
        store.set(SUBSCRIPTION_DATA_KEY, '{"isTrial": true}')

        assert SubscriptionSnapshot(store).load() is None

    def test_clear_removes_legacy_day_check(self):
        store = ConfigStore(":memory:")
        snapshot = SubscriptionSnapshot(store)
        snapshot.save(_record())
        store.set(LEGACY_LAST_CHECK_KEY, "Mon Mar 10 2025")

        snapshot.clear()

        assert store.get(SUBSCRIPTION_DATA_KEY) is None
        assert store.get(LEGACY_LAST_CHECK_KEY) is None
