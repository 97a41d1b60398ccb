"""Process-wide subscription services.

The cache and the notification broadcast exist once per running process;
gates are created per mount and share them.
"""

from __future__ import annotations

from typing import Optional

from printdesk.api_client import ApiClient
from printdesk.config import _get_config_store, get_config
from printdesk.subscription.cache import SubscriptionCache
from printdesk.subscription.dismissal import DismissalTracker
from printdesk.subscription.gate import Navigator, SubscriptionGate
from printdesk.subscription.notifications import NotificationBroadcast
from printdesk.subscription.snapshot import SubscriptionSnapshot

_subscription_cache: Optional[SubscriptionCache] = None
_notification_broadcast: Optional[NotificationBroadcast] = None
_api_client: Optional[ApiClient] = None


def get_subscription_cache() -> SubscriptionCache:
    global _subscription_cache
    if _subscription_cache is None:
        _subscription_cache = SubscriptionCache()
    return _subscription_cache


def get_notification_broadcast() -> NotificationBroadcast:
    global _notification_broadcast
    if _notification_broadcast is None:
        _notification_broadcast = NotificationBroadcast(DismissalTracker(_get_config_store()))
    return _notification_broadcast


def get_api_client() -> ApiClient:
    global _api_client
    if _api_client is None:
        _api_client = ApiClient.from_config()
    return _api_client


def get_subscription_snapshot() -> SubscriptionSnapshot:
    return SubscriptionSnapshot(_get_config_store())


def create_gate(navigator: Optional[Navigator] = None) -> SubscriptionGate:
    """Create the gate for one mount of a protected layout."""
    config = get_config()
    return SubscriptionGate(
        cache=get_subscription_cache(),
        fetch_subscription=get_api_client().get_subscription,
        navigator=navigator,
        snapshot=get_subscription_snapshot(),
        paywall_route=config.paywall_route,
        login_route=config.login_route,
    )


def invalidate_subscription() -> None:
    """Forget cached subscription state after login, payment or redemption."""
    get_subscription_cache().clear()
    get_subscription_snapshot().clear()


def reset_services() -> None:
    """Drop every process-wide instance. The next access recreates them."""
    global _subscription_cache, _notification_broadcast, _api_client
    _subscription_cache = None
    _notification_broadcast = None
    _api_client = None
