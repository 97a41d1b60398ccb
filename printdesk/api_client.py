"""Client for the PrintDesk backend REST API.

Only the subscription endpoints are used here; each call opens its own
httpx.AsyncClient.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from printdesk.config import get_auth_token, get_config
from printdesk.errors import ApiError, ErrorCode, get_error_message, parse_error_response
from printdesk.subscription.state import SubscriptionRecord

logger = logging.getLogger(__name__)

SUBSCRIPTION_ENDPOINT = "/subscription"
INVITATION_CODE_ENDPOINT = "/subscription/invitation-code"


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], Optional[str]] = get_auth_token,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls) -> "ApiClient":
        config = get_config()
        return cls(config.api_url, timeout=config.request_timeout)

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body, or None when empty."""
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(method, path, json=json, headers=self._get_headers())
            except httpx.HTTPError as e:
                raise ApiError(
                    f"Request to {path} failed: {e}",
                    ErrorCode.SYSTEM_INTERNAL_ERROR.value,
                    503,
                ) from e

        if not response.is_success:
            raise parse_error_response(response.text, response.status_code)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError:
            raise ApiError(
                get_error_message(ErrorCode.SYSTEM_INVALID_RESPONSE.value),
                ErrorCode.SYSTEM_INVALID_RESPONSE.value,
                response.status_code,
            )

    async def get_subscription(self) -> Optional[SubscriptionRecord]:
        """
        Fetch the tenant's subscription.

        Returns None when the tenant has none. Raises ApiError for transport
        and HTTP failures and pydantic.ValidationError for a malformed payload.
        """
        try:
            data = await self._request("GET", SUBSCRIPTION_ENDPOINT)
        except ApiError as e:
            if e.code == ErrorCode.SUBSCRIPTION_NOT_FOUND.value:
                return None
            raise

        if data is None:
            return None
        if not isinstance(data, dict):
            raise ApiError(
                get_error_message(ErrorCode.SYSTEM_INVALID_RESPONSE.value),
                ErrorCode.SYSTEM_INVALID_RESPONSE.value,
            )
        return SubscriptionRecord.from_payload(data)

    async def apply_invitation_code(self, code: str) -> None:
        await self._request("POST", INVITATION_CODE_ENDPOINT, json={"code": code})
