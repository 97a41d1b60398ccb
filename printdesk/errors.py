"""API error type and the error-code to user-message table."""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    SUBSCRIPTION_NOT_FOUND = "SUBSCRIPTION_NOT_FOUND"
    SUBSCRIPTION_ALREADY_EXISTS = "SUBSCRIPTION_ALREADY_EXISTS"

    INVITATION_CODE_REQUIRED = "INVITATION_CODE_REQUIRED"
    INVITATION_CODE_INVALID_LENGTH = "INVITATION_CODE_INVALID_LENGTH"
    INVITATION_CODE_INVALID = "INVITATION_CODE_INVALID"
    INVITATION_CODE_NOT_FOUND = "INVITATION_CODE_NOT_FOUND"
    INVITATION_CODE_EXPIRED = "INVITATION_CODE_EXPIRED"
    INVITATION_CODE_ALREADY_USED = "INVITATION_CODE_ALREADY_USED"

    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_USER_NOT_FOUND = "AUTH_USER_NOT_FOUND"
    AUTH_USER_LOCKED_OUT = "AUTH_USER_LOCKED_OUT"
    AUTH_USER_NOT_ALLOWED = "AUTH_USER_NOT_ALLOWED"
    AUTH_USER_WITHOUT_TENANT = "AUTH_USER_WITHOUT_TENANT"

    VALIDATION_REQUIRED_FIELD = "VALIDATION_REQUIRED_FIELD"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    SYSTEM_INTERNAL_ERROR = "SYSTEM_INTERNAL_ERROR"
    SYSTEM_BAD_REQUEST = "SYSTEM_BAD_REQUEST"
    SYSTEM_INVALID_RESPONSE = "SYSTEM_INVALID_RESPONSE"


DEFAULT_ERROR_MESSAGE = "Ha ocurrido un error inesperado. Por favor, intenta más tarde."

ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.SUBSCRIPTION_NOT_FOUND: "No se encontró una suscripción activa.",
    ErrorCode.SUBSCRIPTION_ALREADY_EXISTS: "Ya tienes una suscripción activa.",

    ErrorCode.INVITATION_CODE_REQUIRED: "Por favor ingresa un código de invitación.",
    ErrorCode.INVITATION_CODE_INVALID_LENGTH: "El código de invitación debe tener 25 caracteres.",
    ErrorCode.INVITATION_CODE_INVALID: "El código de invitación no es válido.",
    ErrorCode.INVITATION_CODE_NOT_FOUND: "El código de invitación no existe.",
    ErrorCode.INVITATION_CODE_EXPIRED: "El código de invitación ha expirado.",
    ErrorCode.INVITATION_CODE_ALREADY_USED: "El código de invitación ya fue utilizado.",

    ErrorCode.AUTH_INVALID_CREDENTIALS: "Las credenciales proporcionadas son incorrectas.",
    ErrorCode.AUTH_USER_NOT_FOUND: "El usuario especificado no existe.",
    ErrorCode.AUTH_USER_LOCKED_OUT: "El usuario está bloqueado. Intenta más tarde.",
    ErrorCode.AUTH_USER_NOT_ALLOWED: "El usuario no tiene permiso para realizar esta acción.",
    ErrorCode.AUTH_USER_WITHOUT_TENANT: "El usuario no tiene un identificador de organización asignado.",

    ErrorCode.VALIDATION_REQUIRED_FIELD: "El campo es requerido.",
    ErrorCode.VALIDATION_INVALID_FORMAT: "El formato del campo es inválido.",

    ErrorCode.SYSTEM_INTERNAL_ERROR: "Ha ocurrido un error interno del servidor. Por favor, intenta más tarde.",
    ErrorCode.SYSTEM_BAD_REQUEST: "La solicitud es inválida. Por favor, verifica los datos proporcionados.",
    ErrorCode.SYSTEM_INVALID_RESPONSE: "El servidor devolvió una respuesta inesperada.",
}

_HTTP_STATUS_RE = re.compile(r"HTTP (\d+)")


class ApiError(Exception):
    """Error returned by the backend API, carrying its error code."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.SYSTEM_INTERNAL_ERROR.value,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
        timestamp: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.timestamp = timestamp
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class InvitationCodeError(ApiError):
    """Invitation code rejected before it reached the backend."""

    def __init__(self, code: ErrorCode):
        super().__init__(get_error_message(code.value), code.value, 400)


def get_error_message(code: Optional[str]) -> str:
    """Get the user-facing message for an error code."""
    try:
        return ERROR_MESSAGES[ErrorCode(code)]
    except (ValueError, KeyError):
        return DEFAULT_ERROR_MESSAGE


def parse_error_response(body: Any, status_code: Optional[int] = None) -> ApiError:
    """
    Build an ApiError from an error response body.

    The backend only sends a code; the message always comes from ERROR_MESSAGES.
    Plain-text bodies become SYSTEM_INTERNAL_ERROR, keeping an HTTP status
    embedded in the text when no status code is given.
    """
    if isinstance(body, ApiError):
        return body

    payload = body
    if isinstance(body, (str, bytes)):
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = None

    if isinstance(payload, dict) and payload.get("code"):
        code = str(payload["code"])
        return ApiError(
            get_error_message(code),
            code,
            status_code or 500,
            payload.get("details"),
            payload.get("timestamp"),
        )

    if isinstance(body, (str, bytes)) and body:
        text = body.decode(errors="replace") if isinstance(body, bytes) else body
        if status_code is None:
            match = _HTTP_STATUS_RE.search(text)
            status_code = int(match.group(1)) if match else 500
        return ApiError(text, ErrorCode.SYSTEM_INTERNAL_ERROR.value, status_code)

    return ApiError(DEFAULT_ERROR_MESSAGE, ErrorCode.SYSTEM_INTERNAL_ERROR.value, status_code or 500)
