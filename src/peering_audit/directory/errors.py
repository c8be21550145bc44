"""Typed faults raised by resource directory calls.

Every provider exception is translated exactly once, in :func:`classify_exception`.
Structured signals (exception type, HTTP status, ARM error code) are preferred; phrase
matching on the message text is only consulted when none of them is conclusive.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ServiceRequestError,
    ServiceResponseError,
)


class FaultKind(str, Enum):
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


class DirectoryError(Exception):
    """Raised when a resource directory call fails."""

    def __init__(self, message: str, kind: FaultKind, code: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.code = code

    def __repr__(self) -> str:
        return f"DirectoryError(kind={self.kind.value!r}, code={self.code!r}, message={str(self)!r})"


class CredentialBootstrapError(Exception):
    """Raised when the caller's own credential cannot be established."""


# ARM error codes. SubscriptionNotFound is returned with HTTP 404 but means the
# subscription is not visible to the caller.
ACCESS_DENIED_CODES = frozenset(
    {
        "AuthorizationFailed",
        "LinkedAuthorizationFailed",
        "SubscriptionNotFound",
        "InvalidAuthenticationToken",
        "InvalidAuthenticationTokenTenant",
        "ExpiredAuthenticationToken",
        "AuthenticationFailed",
        "ReadOnlyDisabledSubscription",
        "DisabledSubscription",
        "SubscriptionDisabled",
    }
)

NOT_FOUND_CODES = frozenset(
    {
        "ResourceNotFound",
        "ResourceGroupNotFound",
        "NotFound",
        "ParentResourceNotFound",
    }
)

TRANSPORT_CODES = frozenset(
    {
        "TooManyRequests",
        "ServerTimeout",
        "GatewayTimeout",
        "ServiceUnavailable",
    }
)

# Lower-cased phrases, checked only when no structured signal is present.
ACCESS_DENIED_PHRASES = (
    "authorizationfailed",
    "does not have authorization",
    "does not have permission",
    "forbidden",
    "subscriptionnotfound",
    "subscription not found",
    "is not authorized",
    "access denied",
    "insufficient privileges",
)

NOT_FOUND_PHRASES = (
    "resourcenotfound",
    "resourcegroupnotfound",
    "was not found",
    "could not be found",
)


def _error_code(exc: HttpResponseError) -> str | None:
    error = getattr(exc, "error", None)
    code = getattr(error, "code", None)
    if code:
        return str(code)
    return None


def _kind_from_code(code: str | None) -> FaultKind | None:
    if code is None:
        return None
    if code in ACCESS_DENIED_CODES:
        return FaultKind.ACCESS_DENIED
    if code in NOT_FOUND_CODES:
        return FaultKind.NOT_FOUND
    if code in TRANSPORT_CODES:
        return FaultKind.TRANSPORT
    return None


def _kind_from_status(status: int | None) -> FaultKind | None:
    if status in (401, 403):
        return FaultKind.ACCESS_DENIED
    if status == 404:
        return FaultKind.NOT_FOUND
    if status == 429 or (status is not None and status >= 500):
        return FaultKind.TRANSPORT
    return None


def _kind_from_text(message: str) -> FaultKind:
    lowered = message.lower()
    if any(phrase in lowered for phrase in ACCESS_DENIED_PHRASES):
        return FaultKind.ACCESS_DENIED
    if any(phrase in lowered for phrase in NOT_FOUND_PHRASES):
        return FaultKind.NOT_FOUND
    return FaultKind.UNKNOWN


def classify_exception(exc: BaseException) -> DirectoryError:
    """Translate a provider or transport exception into a DirectoryError."""
    if isinstance(exc, DirectoryError):
        return exc

    message = str(exc) or type(exc).__name__

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return DirectoryError(
            f"Call timed out: {message}", FaultKind.TRANSPORT, code="Timeout"
        )

    if isinstance(exc, ClientAuthenticationError):
        return DirectoryError(message, FaultKind.ACCESS_DENIED, code=_error_code(exc))

    if isinstance(exc, HttpResponseError):
        code = _error_code(exc)
        kind = _kind_from_code(code) or _kind_from_status(exc.status_code)
        if kind is None:
            kind = _kind_from_text(message)
        return DirectoryError(message, kind, code=code)

    if isinstance(exc, (ServiceRequestError, ServiceResponseError, ConnectionError)):
        return DirectoryError(message, FaultKind.TRANSPORT, code=type(exc).__name__)

    return DirectoryError(message, _kind_from_text(message), code=type(exc).__name__)
