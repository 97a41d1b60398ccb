from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from printdesk.config import ConfigStore
from printdesk.subscription.cache import SubscriptionCache
from printdesk.subscription.gate import RouteNavigator, SubscriptionGate
from printdesk.subscription.snapshot import SUBSCRIPTION_DATA_KEY, SubscriptionSnapshot
from printdesk.subscription.state import GateState, SubscriptionRecord

PAYWALL = "/renovar-suscripcion"
LOGIN = "/login"


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class SteppingClock:
    """Returns the given instants in order, then keeps returning the last."""

    def __init__(self, *instants: datetime):
        self.instants = list(instants)

    def __call__(self) -> datetime:
        if len(self.instants) > 1:
            return self.instants.pop(0)
        return self.instants[0]


class LockedStore:
    """Store whose writes fail like a busy SQLite database."""

    def get(self, key, default=None):
        return default

    def set(self, key, value):
        raise sqlite3.OperationalError("database is locked")

    def delete(self, key):
        pass


def _record(clock: FakeClock, end: timedelta, is_active: bool = True) -> SubscriptionRecord:
    return SubscriptionRecord(
        id="sub-1",
        is_trial=True,
        is_active=is_active,
        start_date=clock.now - timedelta(days=12),
        end_date=clock.now + end,
    )


def _slow_fetch(result):
    """Fetch that yields to the loop before answering, like a real request."""
    calls = []

    async def fetch():
        calls.append(1)
        await asyncio.sleep(0)
        if isinstance(result, BaseException):
            raise result
        return result

    fetch.calls = calls
    return fetch


def _gate(clock, fetch, cache=None, route="/dashboard", snapshot=None):
    navigator = RouteNavigator(route)
    gate = SubscriptionGate(
        cache=cache or SubscriptionCache(clock=clock),
        fetch_subscription=fetch,
        navigator=navigator,
        snapshot=snapshot,
        paywall_route=PAYWALL,
        login_route=LOGIN,
        clock=clock,
    )
    return gate, navigator


class TestValidate:
    @pytest.mark.asyncio
    async def test_valid_trial_enters_valid_state(self):
        clock = FakeClock()
        record = _record(clock, timedelta(days=2))
        gate, navigator = _gate(clock, AsyncMock(return_value=record))

        assert gate.state is GateState.UNVALIDATED
        result = await gate.validate()

        assert result == record
        assert gate.state is GateState.VALID
        assert gate.is_subscription_valid
        assert gate.redirect_to is None
        assert navigator.history == []

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_fetch(self):
        clock = FakeClock()
        record = _record(clock, timedelta(days=10))
        fetch = _slow_fetch(record)
        gate, _ = _gate(clock, fetch)

        first, second = await asyncio.gather(gate.validate(), gate.validate())

        assert len(fetch.calls) == 1
        assert first == second == record

    @pytest.mark.asyncio
    async def test_later_calls_on_same_mount_do_not_refetch(self):
        clock = FakeClock()
        fetch = AsyncMock(return_value=_record(clock, timedelta(days=10)))
        gate, _ = _gate(clock, fetch)

        await gate.validate()
        clock.advance(minutes=10)
        await gate.validate()

        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_is_validating_while_fetch_in_flight(self):
        clock = FakeClock()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return _record(clock, timedelta(days=10))

        gate, _ = _gate(clock, fetch)
        task = asyncio.ensure_future(gate.validate())
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert gate.is_validating
        assert not gate.is_subscription_valid

        release.set()
        await task
        assert gate.is_subscription_valid

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_fetch(self):
        clock = FakeClock()
        cache = SubscriptionCache(clock=clock)
        record = _record(clock, timedelta(days=10))
        cache.set(record)
        fetch = AsyncMock()
        gate, _ = _gate(clock, fetch, cache=cache)

        assert await gate.validate() == record
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_cache_triggers_fetch(self):
        clock = FakeClock()
        cache = SubscriptionCache(clock=clock)
        cache.set(_record(clock, timedelta(days=10)))
        clock.advance(minutes=5, seconds=1)
        fresh = _record(clock, timedelta(days=9))
        fetch = AsyncMock(return_value=fresh)
        gate, _ = _gate(clock, fetch, cache=cache)

        assert await gate.validate() == fresh
        fetch.assert_awaited_once()
        assert cache.get() == fresh

    @pytest.mark.asyncio
    async def test_cached_expired_record_still_redirects(self):
        clock = FakeClock()
        cache = SubscriptionCache(clock=clock)
        cache.set(_record(clock, timedelta(hours=-1)))
        fetch = AsyncMock()
        gate, navigator = _gate(clock, fetch, cache=cache)

        await gate.validate()

        fetch.assert_not_awaited()
        assert gate.state is GateState.INVALID
        assert navigator.history == [PAYWALL]


class TestRedirect:
    @pytest.mark.asyncio
    async def test_expired_trial_redirects_once_for_three_siblings(self):
        clock = FakeClock()
        fetch = _slow_fetch(_record(clock, timedelta(hours=-1)))
        gate, navigator = _gate(clock, fetch)

        await asyncio.gather(gate.validate(), gate.validate(), gate.validate())

        assert len(fetch.calls) == 1
        assert gate.state is GateState.INVALID
        assert navigator.history == [PAYWALL]
        assert gate.redirect_to == PAYWALL

    @pytest.mark.asyncio
    async def test_inactive_record_redirects(self):
        clock = FakeClock()
        gate, navigator = _gate(clock, AsyncMock(return_value=_record(clock, timedelta(days=20), is_active=False)))

        await gate.validate()

        assert not gate.is_subscription_valid
        assert navigator.history == [PAYWALL]

    @pytest.mark.parametrize("route", [LOGIN, PAYWALL])
    @pytest.mark.asyncio
    async def test_no_redirect_from_login_or_paywall(self, route):
        clock = FakeClock()
        gate, navigator = _gate(clock, AsyncMock(return_value=None), route=route)

        await gate.validate()

        assert gate.state is GateState.INVALID
        assert navigator.history == []
        assert gate.redirect_to is None

    @pytest.mark.asyncio
    async def test_route_is_checked_when_fetch_completes(self):
        clock = FakeClock()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return None

        gate, navigator = _gate(clock, fetch)
        task = asyncio.ensure_future(gate.validate())
        await asyncio.sleep(0)

        navigator.route = LOGIN
        release.set()
        await task

        assert navigator.history == []

    @pytest.mark.asyncio
    async def test_gate_without_navigator_records_redirect_request(self):
        clock = FakeClock()
        gate = SubscriptionGate(
            cache=SubscriptionCache(clock=clock),
            fetch_subscription=AsyncMock(return_value=None),
            paywall_route=PAYWALL,
            clock=clock,
        )

        await gate.validate()

        assert gate.redirect_to == PAYWALL


class TestFailClosed:
    @pytest.mark.parametrize("error", [
        httpx.ConnectError("connection refused"),
        asyncio.TimeoutError(),
        ValueError("malformed payload"),
    ])
    @pytest.mark.asyncio
    async def test_fetch_failure_redirects_without_raising(self, error):
        clock = FakeClock()
        gate, navigator = _gate(clock, AsyncMock(side_effect=error))

        result = await gate.validate()

        assert result is None
        assert gate.state is GateState.INVALID
        assert gate.last_error is error
        assert navigator.history == [PAYWALL]

    @pytest.mark.asyncio
    async def test_fetch_failure_leaves_cache_untouched(self):
        clock = FakeClock()
        cache = SubscriptionCache(clock=clock)
        previous = _record(clock, timedelta(days=10))
        cache.set(previous)
        gate, _ = _gate(clock, AsyncMock(side_effect=RuntimeError("boom")), cache=cache)

        await gate.refresh_subscription()

        assert cache.get() == previous

    @pytest.mark.asyncio
    async def test_missing_subscription_is_cached(self):
        clock = FakeClock()
        cache = SubscriptionCache(clock=clock)
        fetch = AsyncMock(return_value=None)

        first, navigator = _gate(clock, fetch, cache=cache)
        await first.validate()
        assert navigator.history == [PAYWALL]

        second, _ = _gate(clock, fetch, cache=cache)
        await second.validate()

        assert fetch.await_count == 1
        assert second.state is GateState.INVALID


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_bypasses_guard_and_ttl(self):
        clock = FakeClock()
        fetch = AsyncMock(return_value=_record(clock, timedelta(days=10)))
        gate, _ = _gate(clock, fetch)

        await gate.validate()
        await gate.refresh_subscription()

        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_refresh_picks_up_new_record(self):
        clock = FakeClock()
        old = _record(clock, timedelta(days=1))
        renewed = _record(clock, timedelta(days=30))
        fetch = AsyncMock(side_effect=[old, renewed])
        gate, _ = _gate(clock, fetch)

        await gate.validate()
        assert await gate.refresh_subscription() == renewed
        assert gate.record == renewed

    @pytest.mark.asyncio
    async def test_new_mount_reuses_shared_cache(self):
        clock = FakeClock()
        cache = SubscriptionCache(clock=clock)
        fetch = AsyncMock(return_value=_record(clock, timedelta(days=10)))

        gate, _ = _gate(clock, fetch, cache=cache)
        await gate.validate()
        gate.reset()
        assert gate.state is GateState.UNVALIDATED
        await gate.validate()

        assert fetch.await_count == 1
        assert gate.is_subscription_valid

    @pytest.mark.asyncio
    async def test_cancelled_caller_still_populates_cache(self):
        clock = FakeClock()
        cache = SubscriptionCache(clock=clock)
        release = asyncio.Event()
        record = _record(clock, timedelta(days=10))

        async def fetch():
            await release.wait()
            return record

        gate, _ = _gate(clock, fetch, cache=cache)
        caller = asyncio.ensure_future(gate.validate())
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        release.set()
        await gate.validate()

        assert cache.get() == record


class TestSnapshotAndLogin:
    @pytest.mark.asyncio
    async def test_successful_fetch_writes_snapshot(self):
        clock = FakeClock()
        store = ConfigStore(":memory:")
        record = _record(clock, timedelta(days=10))
        gate, _ = _gate(clock, AsyncMock(return_value=record), snapshot=SubscriptionSnapshot(store))

        await gate.validate()

        assert SubscriptionSnapshot(store).load() == record

    @pytest.mark.asyncio
    async def test_validate_after_login_clears_and_refetches(self):
        clock = FakeClock()
        store = ConfigStore(":memory:")
        store.set("subscriptionLastCheck", "Mon Mar 10 2025")
        cache = SubscriptionCache(clock=clock)
        cache.set(_record(clock, timedelta(days=10)))
        fetch = AsyncMock(return_value=None)
        gate, navigator = _gate(clock, fetch, cache=cache, snapshot=SubscriptionSnapshot(store))

        assert await gate.validate_after_login() is False

        fetch.assert_awaited_once()
        assert navigator.history == [PAYWALL]
        assert store.get("subscriptionLastCheck") is None
        assert store.get(SUBSCRIPTION_DATA_KEY) is None

    @pytest.mark.asyncio
    async def test_snapshot_write_failure_does_not_block_access(self):
        clock = FakeClock()
        record = _record(clock, timedelta(days=10))
        fetch = AsyncMock(return_value=record)
        gate, navigator = _gate(clock, fetch, snapshot=SubscriptionSnapshot(LockedStore()))

        assert await gate.validate() == record
        assert gate.state is GateState.VALID
        assert navigator.history == []

        assert await gate.validate() == record
        assert fetch.await_count == 1


class TestCacheRead:
    @pytest.mark.asyncio
    async def test_entry_read_once_when_ttl_lapses_mid_check(self):
        clock = FakeClock()
        record = _record(clock, timedelta(days=10))
        cache_clock = SteppingClock(
            clock.now,
            clock.now + timedelta(minutes=4, seconds=59),
            clock.now + timedelta(minutes=5, seconds=1),
        )
        cache = SubscriptionCache(clock=cache_clock)
        cache.set(record)
        fetch = AsyncMock()
        gate, navigator = _gate(clock, fetch, cache=cache)

        assert await gate.validate() == record

        assert gate.state is GateState.VALID
        assert navigator.history == []
        fetch.assert_not_awaited()
