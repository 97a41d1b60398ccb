from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from printdesk.errors import ApiError, ErrorCode, InvitationCodeError
from printdesk.subscription.cache import SubscriptionCache
from printdesk.subscription.gate import SubscriptionGate
from printdesk.subscription.invitation import (
    format_invitation_code,
    normalize_invitation_code,
    redeem_invitation_code,
    validate_invitation_code,
)
from printdesk.subscription.state import SubscriptionRecord

CODE = "ABCDE-FGHIJ-KLMNO-PQRST-UVWXY"


class TestFormatting:
    def test_normalize_strips_separators_and_uppercases(self):
        assert normalize_invitation_code(" abcde-fghij klmno ") == "ABCDEFGHIJKLMNO"

    @pytest.mark.parametrize("raw,expected", [
        ("abc", "ABC"),
        ("abcdefg", "ABCDE-FG"),
        ("abcdefghijklmnopqrstuvwxy", CODE),
        ("abcdefghijklmnopqrstuvwxyz123", CODE),
    ])
    def test_format_groups_of_five(self, raw, expected):
        assert format_invitation_code(raw) == expected


class TestValidation:
    def test_accepts_well_formed_code(self):
        assert validate_invitation_code("abcdefghijklmnopqrstuvwxy") == CODE

    def test_rejects_blank(self):
        with pytest.raises(InvitationCodeError) as exc_info:
            validate_invitation_code("   ")
        assert exc_info.value.code == ErrorCode.INVITATION_CODE_REQUIRED.value

    def test_rejects_short_code(self):
        with pytest.raises(InvitationCodeError) as exc_info:
            validate_invitation_code("ABCDE-FGHIJ")
        assert exc_info.value.code == ErrorCode.INVITATION_CODE_INVALID_LENGTH.value
        assert exc_info.value.message == "El código de invitación debe tener 25 caracteres."


class TestRedeem:
    def _gate(self, fetch):
        return SubscriptionGate(cache=SubscriptionCache(), fetch_subscription=fetch)

    @pytest.mark.asyncio
    async def test_applies_code_then_refreshes(self):
        now = datetime.now(timezone.utc)
        renewed = SubscriptionRecord(
            is_trial=False,
            is_active=True,
            start_date=now,
            end_date=now + timedelta(days=30),
        )
        client = AsyncMock()
        fetch = AsyncMock(return_value=renewed)
        gate = self._gate(fetch)

        result = await redeem_invitation_code("abcdefghijklmnopqrstuvwxy", client, gate)

        client.apply_invitation_code.assert_awaited_once_with(CODE)
        fetch.assert_awaited_once()
        assert result == renewed
        assert gate.is_subscription_valid

    @pytest.mark.asyncio
    async def test_domain_error_propagates_without_refresh(self):
        client = AsyncMock()
        client.apply_invitation_code.side_effect = ApiError(
            "El código de invitación ya fue utilizado.",
            ErrorCode.INVITATION_CODE_ALREADY_USED.value,
            409,
        )
        fetch = AsyncMock()
        gate = self._gate(fetch)

        with pytest.raises(ApiError) as exc_info:
            await redeem_invitation_code(CODE, client, gate)

        assert exc_info.value.code == ErrorCode.INVITATION_CODE_ALREADY_USED.value
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_code_never_reaches_backend(self):
        client = AsyncMock()
        gate = self._gate(AsyncMock())

        with pytest.raises(InvitationCodeError):
            await redeem_invitation_code("SHORT", client, gate)

        client.apply_invitation_code.assert_not_awaited()
