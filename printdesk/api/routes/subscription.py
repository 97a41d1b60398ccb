"""Subscription gate API routes."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from printdesk.config import get_config, is_authenticated
from printdesk.errors import ApiError
from printdesk.subscription.gate import RouteNavigator, SubscriptionGate
from printdesk.subscription.invitation import redeem_invitation_code
from printdesk.subscription.manager import (
    create_gate,
    get_api_client,
    get_notification_broadcast,
    get_subscription_snapshot,
)
from printdesk.subscription.reminder import build_reminder
from printdesk.subscription.state import SubscriptionRecord

router = APIRouter(prefix="/subscription", tags=["subscription"])

DEFAULT_ROUTE = "/dashboard"


class SubscriptionResponse(BaseModel):
    id: Optional[str]
    is_trial: bool
    is_active: bool
    start_date: datetime
    end_date: datetime
    days_remaining: int
    is_expiring_soon: bool
    is_expired: bool


class ReminderResponse(BaseModel):
    show_banner: bool
    show_compact_alert: bool
    days_remaining: int
    is_expiring_soon: bool
    severity: str
    title: str
    days_text: str
    alert_text: str


class GateResponse(BaseModel):
    state: str
    is_subscription_valid: bool
    redirect_to: Optional[str]
    subscription: Optional[SubscriptionResponse]
    reminder: Optional[ReminderResponse]


class InvitationCodeRequest(BaseModel):
    code: str


class NotificationResponse(BaseModel):
    is_closed: bool


def _subscription_response(record: Optional[SubscriptionRecord]) -> Optional[SubscriptionResponse]:
    if record is None:
        return None
    return SubscriptionResponse(
        id=record.id,
        is_trial=record.is_trial,
        is_active=record.is_active,
        start_date=record.start_date,
        end_date=record.end_date,
        days_remaining=record.days_remaining(),
        is_expiring_soon=record.is_expiring_soon(),
        is_expired=record.is_expired(),
    )


def _gate_response(gate: SubscriptionGate) -> GateResponse:
    reminder = None
    if gate.is_subscription_valid:
        state = build_reminder(gate.record, get_notification_broadcast().reload())
        reminder = ReminderResponse(**asdict(state))

    return GateResponse(
        state=gate.state.value,
        is_subscription_valid=gate.is_subscription_valid,
        redirect_to=gate.redirect_to,
        subscription=_subscription_response(gate.record),
        reminder=reminder,
    )


def _login_redirect() -> GateResponse:
    return GateResponse(
        state="unvalidated",
        is_subscription_valid=False,
        redirect_to=get_config().login_route,
        subscription=None,
        reminder=None,
    )


@router.get("/status", response_model=GateResponse)
async def get_status(route: str = DEFAULT_ROUTE, force: bool = False):
    """Validate the subscription for a protected route."""
    if not is_authenticated():
        return _login_redirect()

    gate = create_gate(RouteNavigator(route))
    await gate.validate(force_refresh=force)
    return _gate_response(gate)


@router.post("/refresh", response_model=GateResponse)
async def refresh(route: str = DEFAULT_ROUTE):
    """Revalidate after an action known to change the subscription."""
    if not is_authenticated():
        return _login_redirect()

    gate = create_gate(RouteNavigator(route))
    await gate.refresh_subscription()
    return _gate_response(gate)


@router.post("/invitation-code", response_model=GateResponse)
async def apply_invitation_code(body: InvitationCodeRequest, route: str = DEFAULT_ROUTE):
    """Redeem an invitation code, then revalidate."""
    if not is_authenticated():
        return _login_redirect()

    gate = create_gate(RouteNavigator(route))
    try:
        await redeem_invitation_code(
            body.code,
            get_api_client(),
            gate,
            snapshot=get_subscription_snapshot(),
        )
    except ApiError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    return _gate_response(gate)


@router.get("/notification", response_model=NotificationResponse)
async def get_notification():
    broadcast = get_notification_broadcast()
    return NotificationResponse(is_closed=broadcast.reload())


@router.post("/notification/close", response_model=NotificationResponse)
async def close_notification():
    broadcast = get_notification_broadcast()
    broadcast.close()
    return NotificationResponse(is_closed=broadcast.is_closed)


@router.post("/notification/show", response_model=NotificationResponse)
async def show_notification():
    broadcast = get_notification_broadcast()
    broadcast.show()
    return NotificationResponse(is_closed=broadcast.is_closed)
