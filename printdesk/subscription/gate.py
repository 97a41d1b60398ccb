"""Subscription access gate.

One SubscriptionGate instance corresponds to one mount of a protected
layout. Instances share the process-wide SubscriptionCache, so a burst of
mounts costs at most one fetch per TTL window.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Protocol

from printdesk.config import DEFAULT_LOGIN_ROUTE, DEFAULT_PAYWALL_ROUTE
from printdesk.subscription.cache import SubscriptionCache
from printdesk.subscription.snapshot import SubscriptionSnapshot
from printdesk.subscription.state import (
    Clock,
    GateState,
    SubscriptionRecord,
    is_subscription_valid,
    utcnow,
)

logger = logging.getLogger(__name__)

FetchSubscription = Callable[[], Awaitable[Optional[SubscriptionRecord]]]


class Navigator(Protocol):
    def current_route(self) -> str: ...

    def push(self, route: str) -> None: ...


class RouteNavigator:
    """Navigator that records requested routes instead of performing them."""

    def __init__(self, route: str):
        self.route = route
        self.history: List[str] = []

    def current_route(self) -> str:
        return self.route

    def push(self, route: str) -> None:
        self.history.append(route)
        self.route = route


class SubscriptionGate:
    """
    Decides whether the tenant may use the app and requests the paywall
    redirect when it may not.

    States: UNVALIDATED -> VALIDATING -> VALID | INVALID. INVALID is terminal
    for the mount. Fetch failures fail closed and never propagate.
    """

    def __init__(
        self,
        cache: SubscriptionCache,
        fetch_subscription: FetchSubscription,
        navigator: Optional[Navigator] = None,
        snapshot: Optional[SubscriptionSnapshot] = None,
        paywall_route: str = DEFAULT_PAYWALL_ROUTE,
        login_route: str = DEFAULT_LOGIN_ROUTE,
        clock: Clock = utcnow,
    ):
        self._cache = cache
        self._fetch = fetch_subscription
        self._navigator = navigator
        self._snapshot = snapshot
        self.paywall_route = paywall_route
        self.login_route = login_route
        self._clock = clock

        self.state = GateState.UNVALIDATED
        self.record: Optional[SubscriptionRecord] = None
        self.redirect_to: Optional[str] = None
        self.last_error: Optional[BaseException] = None
        self._run: Optional[asyncio.Future] = None

    @property
    def is_subscription_valid(self) -> bool:
        return self.state is GateState.VALID

    @property
    def is_validating(self) -> bool:
        return self.state is GateState.VALIDATING

    def reset(self) -> None:
        """Start a new mount: clears the one-shot guard and the redirect flag."""
        self.state = GateState.UNVALIDATED
        self.record = None
        self.redirect_to = None
        self.last_error = None
        self._run = None

    async def validate(self, force_refresh: bool = False) -> Optional[SubscriptionRecord]:
        """
        Validate the current subscription.

        Without force_refresh the validation body runs at most once per mount;
        concurrent and later callers share its result. Cancelling a caller does
        not cancel the shared run.
        """
        if force_refresh or self._run is None:
            self._run = asyncio.ensure_future(self._validate_once(force_refresh))
        return await asyncio.shield(self._run)

    async def refresh_subscription(self) -> Optional[SubscriptionRecord]:
        """Bypass the guard and the cache TTL; always performs one fetch."""
        self._run = None
        return await self.validate(force_refresh=True)

    async def validate_after_login(self) -> bool:
        """Drop everything cached before login, then validate from the backend."""
        self._cache.clear()
        if self._snapshot is not None:
            self._snapshot.clear()
        await self.refresh_subscription()
        return self.is_subscription_valid

    async def _validate_once(self, force_refresh: bool) -> Optional[SubscriptionRecord]:
        self.state = GateState.VALIDATING

        entry = None if force_refresh else self._cache.get_entry()
        if entry is not None:
            logger.debug("Subscription cache hit")
            return self._evaluate(entry.record)

        logger.debug("Fetching subscription (force_refresh=%s)", force_refresh)
        try:
            record = await self._fetch()
        except Exception as e:
            logger.error("Subscription validation failed, denying access: %s", e)
            self.last_error = e
            return self._evaluate(None)

        self._cache.set(record)
        if self._snapshot is not None and record is not None:
            try:
                self._snapshot.save(record)
            except Exception as e:
                logger.warning("Could not store subscription snapshot: %s", e)

        return self._evaluate(record)

    def _evaluate(self, record: Optional[SubscriptionRecord]) -> Optional[SubscriptionRecord]:
        self.record = record
        if is_subscription_valid(record, self._clock()):
            self.state = GateState.VALID
        else:
            self.state = GateState.INVALID
            self._request_redirect()
        return record

    def _request_redirect(self) -> None:
        if self.redirect_to is not None:
            return

        # Re-read the route now: the caller may have navigated during the fetch.
        if self._navigator is not None:
            current = self._navigator.current_route()
            if current in (self.login_route, self.paywall_route):
                logger.debug("Already on %s, not redirecting", current)
                return

        self.redirect_to = self.paywall_route
        logger.info("Subscription not valid, redirecting to %s", self.paywall_route)
        if self._navigator is not None:
            self._navigator.push(self.paywall_route)
