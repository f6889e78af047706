"""
Exception taxonomy shared by the OAuth authorities, the gateway services and
the HTTP surface.

Every error carries an HTTP status so route handlers can translate it into an
``HTTPException`` without a lookup table of their own.
"""

from __future__ import annotations

from http import HTTPStatus


class GatewayError(Exception):
    """Base class for errors raised by the gateway."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class OAuthError(GatewayError):
    """Error reported on the token endpoint with an RFC 6749 error code."""

    status_code = HTTPStatus.BAD_REQUEST
    error_code = "invalid_request"


class InvalidClientError(OAuthError):
    error_code = "invalid_client"

    def __init__(self, message: str = "Invalid client credentials") -> None:
        super().__init__(message)


class InvalidGrantError(OAuthError):
    error_code = "invalid_grant"


class UnsupportedGrantTypeError(OAuthError):
    error_code = "unsupported_grant_type"

    def __init__(self, grant_type: str) -> None:
        super().__init__(f"Grant type not supported: {grant_type}")
        self.grant_type = grant_type


class InvalidTokenError(GatewayError):
    """Raised when a bearer token is unknown or its access lifetime has passed."""

    status_code = HTTPStatus.UNAUTHORIZED

    def __init__(self, message: str = "Invalid or expired access token") -> None:
        super().__init__(message)


class UnauthorizedError(GatewayError):
    """Raised when a request carries no usable credentials at all."""

    status_code = HTTPStatus.UNAUTHORIZED


class ForbiddenError(GatewayError):
    status_code = HTTPStatus.FORBIDDEN


class DeviceNotFoundError(GatewayError):
    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, device_id: str) -> None:
        super().__init__(f"Device not found: {device_id}")
        self.device_id = device_id


class DeviceDisabledError(GatewayError):
    """Raised when a device exists but is not exposed to the calling assistant."""

    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, device_id: str) -> None:
        super().__init__(f"Device is not enabled for this assistant: {device_id}")
        self.device_id = device_id


class DeviceOfflineError(GatewayError):
    """Raised when the platform cannot reach a device or answer for it."""

    status_code = HTTPStatus.BAD_GATEWAY

    def __init__(self, device_id: str, reason: str = "") -> None:
        message = f"Device unreachable: {device_id}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.device_id = device_id


class UnknownIntentError(GatewayError):
    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, intent: str) -> None:
        super().__init__(f"Unknown intent: {intent}")
        self.intent = intent


class MalformedRequestError(GatewayError):
    status_code = HTTPStatus.BAD_REQUEST


class PlatformError(GatewayError):
    """Raised when the IoT platform API responds with an unexpected failure."""

    status_code = HTTPStatus.BAD_GATEWAY


__all__ = [
    "DeviceDisabledError",
    "DeviceNotFoundError",
    "DeviceOfflineError",
    "ForbiddenError",
    "GatewayError",
    "InvalidClientError",
    "InvalidGrantError",
    "InvalidTokenError",
    "MalformedRequestError",
    "OAuthError",
    "PlatformError",
    "UnauthorizedError",
    "UnknownIntentError",
    "UnsupportedGrantTypeError",
]
