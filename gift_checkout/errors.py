"""
Gift Checkout error taxonomy.

Every failure that crosses the library boundary is one of these classes,
carrying a stable ``kind`` and whatever raw detail the remote side sent.
Callers decide how to present them; nothing here is swallowed.
"""

from __future__ import annotations

from typing import Any, Optional


ACCESS_DISABLED_DETAIL = "Access disabled."
ACCESS_DISABLED_CODE = "ACCESS_DISABLED"


class CheckoutError(Exception):
    """Base class for all gift checkout failures."""

    kind: str = "checkout_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRequest(CheckoutError):
    """Caller-contract violation. Raised before any network I/O."""

    kind = "invalid_request"

    def __init__(self, message: str, param: Optional[str] = None):
        self.param = param
        super().__init__(message)


class GroupNotFound(InvalidRequest):
    kind = "group_not_found"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__("Group not found", param="groupId")


class Unconfigured(CheckoutError):
    """No client credentials, so no bearer token can be obtained."""

    kind = "unconfigured"


class AuthError(CheckoutError):
    """The token endpoint was reachable but refused to issue a token."""

    kind = "auth_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RemoteUnavailable(CheckoutError):
    """Transport-level failure (DNS, TLS, connect, timeout)."""

    kind = "remote_unavailable"


class RemoteRejected(CheckoutError):
    """The remote side answered with a non-success application response."""

    kind = "remote_rejected"

    def __init__(
        self,
        message: str,
        code: Any = None,
        raw_detail: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.raw_detail = raw_detail
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.raw_detail:
            return f"{self.message} – {self.raw_detail}"
        return self.message


class ProtocolError(RemoteRejected):
    """
    Structured error returned through the checkout protocol.

    ``is_access_disabled`` marks the merchant-side opt-out of agent-initiated
    checkout; it changes what the user is told, not how the error travels.
    """

    kind = "protocol_error"

    def __init__(
        self,
        message: str,
        code: Any = None,
        raw_detail: Optional[str] = None,
        is_access_disabled: bool = False,
        status_code: Optional[int] = None,
    ):
        self.is_access_disabled = is_access_disabled
        super().__init__(message, code=code, raw_detail=raw_detail, status_code=status_code)


class InvalidInput(CheckoutError):
    """Malformed input to the embedded checkout URL builder."""

    kind = "invalid_input"
