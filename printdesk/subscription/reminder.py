"""Which trial reminder surface to show: the full banner or the compact alert."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from printdesk.subscription.state import SubscriptionRecord, utcnow

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class ReminderState:
    show_banner: bool
    show_compact_alert: bool
    days_remaining: int = 0
    is_expiring_soon: bool = False
    severity: str = SEVERITY_INFO
    title: str = ""
    days_text: str = ""
    alert_text: str = ""


HIDDEN = ReminderState(show_banner=False, show_compact_alert=False)


def _days_text(days: int) -> str:
    if days == 1:
        return "1 día restante"
    return f"{days} días restantes"


def _alert_text(days: int, expiring_soon: bool) -> str:
    unit = "día" if days == 1 else "días"
    if expiring_soon:
        return f"Tu prueba expira en {days} {unit}"
    return f"Prueba activa: {days} {unit} restantes"


def build_reminder(
    record: Optional[SubscriptionRecord],
    is_closed: bool,
    now: Optional[datetime] = None,
) -> ReminderState:
    """
    Only valid trials get a reminder. Paid subscriptions and anything the
    gate would reject show nothing; the redirect covers those.

    The banner and the compact alert are mutually exclusive: dismissing the
    banner swaps it for the compact alert, and clicking the alert reopens it.
    """
    now = now or utcnow()
    if record is None or not record.is_trial or not record.is_valid(now):
        return HIDDEN

    days = record.days_remaining(now)
    expiring_soon = record.is_expiring_soon(now)

    return ReminderState(
        show_banner=not is_closed,
        show_compact_alert=is_closed,
        days_remaining=days,
        is_expiring_soon=expiring_soon,
        severity=SEVERITY_WARNING if expiring_soon else SEVERITY_INFO,
        title="Prueba por Expirar" if expiring_soon else "Prueba Activa",
        days_text=_days_text(days),
        alert_text=_alert_text(days, expiring_soon),
    )
