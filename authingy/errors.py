"""
Error taxonomy for the authorize/callback flow.
Every failure is terminal and typed; upstream response data goes in `details`, not the message.
"""
from typing import Any


class AuthingyError(Exception):
    """Base error. `code` is a stable machine-readable identifier (OAuth error style)."""

    code = "authingy_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, str]:
        """OAuth-style error body. Details are left out; they may hold upstream response bodies."""
        return {"error": self.code, "error_description": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ProviderNotFound(AuthingyError):
    code = "provider_not_found"


class InvalidState(AuthingyError):
    code = "invalid_state"


class MissingCodeVerifier(AuthingyError):
    code = "missing_code_verifier"


class MissingAuthorizationEndpoint(AuthingyError):
    code = "missing_authorization_endpoint"


class StateMismatch(AuthingyError):
    code = "state_mismatch"


class MissingAuthorizationCode(AuthingyError):
    code = "missing_authorization_code"


class AuthorizationResponseError(AuthingyError):
    """Provider redirected back with ?error=... (e.g. access_denied)."""

    code = "authorization_response_error"


class TokenExchangeFailed(AuthingyError):
    code = "token_exchange_failed"

    @property
    def status(self) -> int | None:
        return (self.details or {}).get("status")


class UserFetchFailed(AuthingyError):
    code = "user_fetch_failed"

    @property
    def status(self) -> int | None:
        return (self.details or {}).get("status")


class DiscoveryFailed(AuthingyError):
    code = "discovery_failed"


def response_details(response, *, include_body: bool = True) -> dict[str, Any]:
    """Structured details for a failed upstream response: status, status_text and (optionally) body."""
    details: dict[str, Any] = {
        "status": response.status_code,
        "status_text": response.reason_phrase,
    }
    if include_body:
        details["body"] = response.text
    return details
