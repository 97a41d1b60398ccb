"""Invitation code formatting, validation and redemption."""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

from printdesk.errors import ErrorCode, InvitationCodeError
from printdesk.subscription.gate import SubscriptionGate
from printdesk.subscription.snapshot import SubscriptionSnapshot
from printdesk.subscription.state import SubscriptionRecord

logger = logging.getLogger(__name__)

INVITATION_CODE_LENGTH = 25
GROUP_SIZE = 5

_SEPARATORS_RE = re.compile(r"[-\s]")


class InvitationClient(Protocol):
    async def apply_invitation_code(self, code: str) -> None: ...


def normalize_invitation_code(value: str) -> str:
    """Strip dashes and whitespace and uppercase: 'abcde-fghij' -> 'ABCDEFGHIJ'."""
    return _SEPARATORS_RE.sub("", value or "").upper()


def format_invitation_code(value: str) -> str:
    """Group into dash-separated blocks of five, truncated to the code length."""
    cleaned = normalize_invitation_code(value)[:INVITATION_CODE_LENGTH]
    groups = [cleaned[i:i + GROUP_SIZE] for i in range(0, len(cleaned), GROUP_SIZE)]
    return "-".join(groups)


def validate_invitation_code(value: str) -> str:
    """Return the display form of a well-formed code or raise InvitationCodeError."""
    if not (value or "").strip():
        raise InvitationCodeError(ErrorCode.INVITATION_CODE_REQUIRED)
    if len(normalize_invitation_code(value)) != INVITATION_CODE_LENGTH:
        raise InvitationCodeError(ErrorCode.INVITATION_CODE_INVALID_LENGTH)
    return format_invitation_code(value)


async def redeem_invitation_code(
    code: str,
    client: InvitationClient,
    gate: SubscriptionGate,
    snapshot: Optional[SubscriptionSnapshot] = None,
) -> Optional[SubscriptionRecord]:
    """
    Apply an invitation code and revalidate.

    Domain errors (ApiError) propagate to the caller for display; the gate is
    only refreshed after the backend accepted the code.
    """
    formatted = validate_invitation_code(code)
    await client.apply_invitation_code(formatted)
    logger.info("Invitation code applied, refreshing subscription")

    if snapshot is not None:
        snapshot.clear()
    return await gate.refresh_subscription()
