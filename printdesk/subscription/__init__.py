"""Subscription validation and access gating for PrintDesk."""

from printdesk.subscription.state import GateState, SubscriptionRecord, is_subscription_valid
from printdesk.subscription.cache import SubscriptionCache
from printdesk.subscription.gate import Navigator, RouteNavigator, SubscriptionGate
from printdesk.subscription.dismissal import DismissalTracker
from printdesk.subscription.notifications import NotificationBroadcast
from printdesk.subscription.reminder import ReminderState, build_reminder

__all__ = [
    "GateState",
    "SubscriptionRecord",
    "is_subscription_valid",
    "SubscriptionCache",
    "Navigator",
    "RouteNavigator",
    "SubscriptionGate",
    "DismissalTracker",
    "NotificationBroadcast",
    "ReminderState",
    "build_reminder",
]
