"""
Provider capability contract. Every provider exposes three operations:
authorization_url -> exchange_code -> fetch_user.

OAuthProvider handles the common Authorization Code + PKCE mechanics against a fixed endpoint
set; OpenIDProvider adds discovery (lazy, memoized per instance), ID token validation and
the userinfo subject check.
"""
import abc
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar

import httpx

from authingy import oauth
from authingy.errors import (
    MissingAuthorizationEndpoint,
    MissingCodeVerifier,
    TokenExchangeFailed,
    UserFetchFailed,
)
from authingy.oauth import AuthorizationServer
from authingy.pkce import build_authorization_url

logger = logging.getLogger(__name__)


def access_token(token: dict[str, Any]) -> str:
    """Access token from a token response; UserFetchFailed if absent."""
    value = token.get("access_token") if isinstance(token, dict) else None
    if not value:
        raise UserFetchFailed("Token has no access_token")
    return value


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials registered with the provider. `scopes` are requested on top of the provider defaults."""

    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: list[str] = field(default_factory=list)


class OAuthProvider(abc.ABC):
    """
    Base for all providers. Subclasses set `id`, `default_scopes` and either pass a fixed
    AuthorizationServer to __init__ or override authorization_server().
    """

    id: ClassVar[str]
    default_scopes: ClassVar[tuple[str, ...]] = ()
    # Provider-specific query parameters for the authorization URL (may override standard ones)
    authorization_params: ClassVar[dict[str, str]] = {}
    token_auth_method: ClassVar[str] = oauth.CLIENT_SECRET_POST

    def __init__(self, config: ProviderConfig, server: AuthorizationServer | None = None):
        if not getattr(self, "id", None):
            raise ValueError(f"{type(self).__name__} must define a non-empty id")
        self.config = config
        self.scopes = [*self.default_scopes, *config.scopes]
        self._server = server
        self._http: httpx.Client | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, client_id={self.config.client_id!r})"

    def bind(self, http: httpx.Client) -> None:
        """
        Attach the HTTP client used for all provider calls (done by Authingy at configuration time).
        A provider belongs to one client: binding it again to a different one raises ValueError.
        """
        if self._http is not None and self._http is not http:
            raise ValueError(f"Provider {self.id!r} is already bound to another HTTP client")
        self._http = http

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            raise RuntimeError(f"Provider {self.id!r} has no HTTP client; register it with Authingy first")
        return self._http

    def authorization_server(self) -> AuthorizationServer:
        if self._server is None:
            raise RuntimeError(f"Provider {self.id!r} has no authorization server configured")
        return self._server

    def authorization_url(self, state: str, code_verifier: str) -> str:
        """Authorization endpoint URL carrying client id, redirect URI, scopes, S256 challenge and state."""
        if not code_verifier:
            raise MissingCodeVerifier("Code verifier is required")
        server = self.authorization_server()
        if not server.authorization_endpoint:
            raise MissingAuthorizationEndpoint("Authorization endpoint not found", {"issuer": server.issuer})
        return build_authorization_url(
            authorization_endpoint=server.authorization_endpoint,
            client_id=self.config.client_id,
            redirect_uri=self.config.redirect_uri,
            scopes=self.scopes,
            code_verifier=code_verifier,
            state=state,
            extra_params=self.authorization_params or None,
        )

    def exchange_code(self, url: str, code_verifier: str, state: str) -> dict[str, Any]:
        """Validate the callback URL against `state` and redeem its code at the token endpoint."""
        code = oauth.validate_authorization_response(url, state)
        if not code_verifier:
            raise MissingCodeVerifier("Code verifier is required")
        server = self.authorization_server()
        token = oauth.authorization_code_grant(
            self.http,
            server,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            code=code,
            redirect_uri=self.config.redirect_uri,
            code_verifier=code_verifier,
            auth_method=self.token_auth_method,
        )
        self.process_token(token)
        return token

    def process_token(self, token: dict[str, Any]) -> None:
        """Hook for extra token response validation. Raise TokenExchangeFailed to reject."""

    @abc.abstractmethod
    def fetch_user(self, token: dict[str, Any]) -> dict[str, Any]:
        """Fetch the user's profile with the access token."""


class OpenIDProvider(OAuthProvider):
    """
    OIDC provider. Without a fixed server, endpoints are discovered from `issuer` on first
    use and cached on the instance. Concurrent first calls may both discover; last write wins.
    """

    issuer: ClassVar[str]
    discovery_algorithm: ClassVar[str] = "oidc"
    # Accepted ID token `iss` values; defaults to the server's issuer
    id_token_issuers: ClassVar[tuple[str, ...]] = ()

    def authorization_server(self) -> AuthorizationServer:
        if self._server is None:
            logger.debug("Discovering endpoints for provider %s from %s", self.id, self.issuer)
            self._server = oauth.discover(self.http, self.issuer, self.discovery_algorithm)
        return self._server

    def _id_token_claims(self, token: dict[str, Any]) -> dict[str, Any]:
        issuers = list(self.id_token_issuers) or [self.authorization_server().issuer]
        return oauth.id_token_claims(token, client_id=self.config.client_id, issuers=issuers)

    def process_token(self, token: dict[str, Any]) -> None:
        self._id_token_claims(token)

    def fetch_user(self, token: dict[str, Any]) -> dict[str, Any]:
        try:
            subject = self._id_token_claims(token)["sub"]
        except TokenExchangeFailed as e:
            raise UserFetchFailed("Cannot read subject from ID token", e.details) from e
        return oauth.userinfo(
            self.http,
            self.authorization_server(),
            access_token(token),
            expected_subject=subject,
        )
