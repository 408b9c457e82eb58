"""Exception types raised by the authentication, token store, event source and API layers."""

from __future__ import annotations

import enum
import json
from http import HTTPStatus
from typing import Any


def _debug(value: Any) -> str:
    """Render a value the way a quoted debug representation shows it."""
    return json.dumps(str(value), ensure_ascii=False)


class _MessageKind(enum.Enum):
    """An error kind whose value is its message template."""

    @property
    def requires_detail(self) -> bool:
        return "{" in self.value


_AUTH_KINDS = (
    ("BAD_REQUEST", "bad request (error {detail})"),
    ("TOO_MANY_REQUESTS", "too many requests (error {detail})"),
    ("UNAUTHORIZED", "Unauthorized request (error {detail})"),
    ("SERVER_ERROR", "Server error ({detail})"),
    ("FAILED_PUB_KEY_REQUEST", "failed to get public key"),
    ("FAILED_LOGIN", "failed login"),
    ("FAILED_REQUEST", "{raw}"),
    ("INVALID_CLIENT_REQUEST", "invalid client request (error {detail})"),
    ("FAILED_ACCESS_TOKEN", "failed to get access token (error {detail})"),
    ("INVALID_ARKOSE_TOKEN", "invalid arkose token ({raw})"),
    ("FAILED_CALLBACK_CODE", "failed get code from callback url"),
    ("FAILED_CALLBACK_URL", "failed callback url"),
    ("FAILED_AUTHORIZED_URL", "failed to get authorized url"),
    ("FAILED_STATE", "Failed to get state"),
    ("FAILED_CSRF_TOKEN", "failed get csrf token"),
    ("FAILED_AUTH_SESSION_COOKIE", "failed to get auth session cookie"),
    ("INVALID_LOGIN_URL", "invalid request login url (error {detail})"),
    ("INVALID_EMAIL_OR_PASSWORD", "invalid email or password"),
    ("INVALID_REQUEST", "invalid request (error {detail})"),
    ("INVALID_EMAIL", "invalid email"),
    ("INVALID_LOCATION", "invalid Location"),
    ("INVALID_ACCESS_TOKEN", "invalid access token"),
    ("INVALID_REFRESH_TOKEN", "invalid refresh token"),
    ("INVALID_LOCATION_PATH", "invalid location path"),
    ("TOKEN_EXPIRED", "token expired"),
    ("MFA_FAILED", "MFA failed"),
    ("MFA_REQUIRED", "MFA required"),
    ("DESERIALIZE_ERROR", "json deserialize error (error {detail})"),
    ("NOT_SUPPORTED_IMPLEMENTATION", "implementation is not supported"),
    ("PREAUTH_COOKIE_NOT_FOUND", "failed to get preauth cookie"),
)

AuthErrorKind = _MessageKind("AuthErrorKind", _AUTH_KINDS, module=__name__)
AuthErrorKind.__doc__ = "The kinds of authentication failure, each with its message template."


class AuthError(Exception):
    """An authentication failure of a given kind."""

    def __init__(self, kind: Any, detail: Any = None) -> None:
        if kind.requires_detail and detail is None:
            raise ValueError(f"{kind.name} needs a detail")
        self.kind = kind
        self.detail = detail
        message = kind.value.format(
            detail=_debug(detail) if detail is not None else "",
            raw="" if detail is None else str(detail),
        )
        super().__init__(message)


_TOKEN_STORE_KINDS = (
    ("ACCESS_ERROR", "failed to access token"),
    ("NOT_FOUND_ERROR", "token not found error"),
    ("DESERIALIZE_ERROR", "failed token deserialize"),
    ("ACCESS_TOKEN_VERIFY_ERROR", "failed to verify access_token"),
    ("CREATE_DEFAULT_TOKEN_FILE_ERROR", "failed to create default token store file"),
)

TokenStoreErrorKind = _MessageKind("TokenStoreErrorKind", _TOKEN_STORE_KINDS, module=__name__)
TokenStoreErrorKind.__doc__ = "The kinds of token store failure."


class TokenStoreError(Exception):
    """A token store failure; the detail keeps the underlying cause, if any."""

    def __init__(self, kind: Any, detail: Any = None) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(kind.value)


class CannotCloneRequestError(Exception):
    """Raised when a request cannot be reissued for reconnection."""

    def __init__(self, message: str = "expected a cloneable request") -> None:
        super().__init__(message)


class EventSourceError(Exception):
    """Base class of errors raised while fetching and parsing an event stream."""


class Utf8DecodeError(EventSourceError):
    """The source stream is not valid UTF-8."""


class ParserError(EventSourceError):
    """The source stream is not a valid event stream."""


class TransportError(EventSourceError):
    """The HTTP request could not be completed."""


class InvalidContentTypeError(EventSourceError):
    """The server returned an unexpected Content-Type."""

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(f"Invalid header value: {_debug(content_type)}")


class InvalidStatusCodeError(EventSourceError):
    """The server returned a status code other than 200."""

    def __init__(self, status_code: int, response: Any = None) -> None:
        self.status_code = status_code
        self.response = response
        try:
            status = f"{status_code} {HTTPStatus(status_code).phrase}"
        except ValueError:
            status = str(status_code)
        super().__init__(f"Invalid status code: {status}")


class InvalidLastEventIdError(EventSourceError):
    """The last event id cannot be sent as a header."""

    def __init__(self, last_event_id: str) -> None:
        self.last_event_id = last_event_id
        super().__init__(f"Invalid `Last-Event-ID`: {last_event_id}")


class StreamEndedError(EventSourceError):
    """The event stream ended."""

    def __init__(self) -> None:
        super().__init__("Stream ended")


class APIErrorKind(enum.Enum):
    """The kinds of platform API failure."""

    ENDPOINT = "endpoint"
    PARSE = "parse"
    FILE = "file"
    STREAM = "stream"


class APIError(Exception):
    """A platform API failure; its text is the message alone."""

    def __init__(self, kind: APIErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)