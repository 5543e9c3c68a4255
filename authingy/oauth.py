"""
OAuth 2.0 / OIDC protocol primitives used by providers: discovery, authorization response
validation, authorization_code grant, ID token claims, userinfo and bearer resource requests.
All network calls go through the caller's httpx.Client; failures become typed AuthingyErrors.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlsplit, urlunsplit

import httpx
import jwt

from authingy.errors import (
    AuthorizationResponseError,
    DiscoveryFailed,
    MissingAuthorizationCode,
    StateMismatch,
    TokenExchangeFailed,
    UserFetchFailed,
    response_details,
)

logger = logging.getLogger(__name__)

CLIENT_SECRET_POST = "client_secret_post"
CLIENT_SECRET_BASIC = "client_secret_basic"

# Clock skew allowed when checking ID token exp/iat (seconds)
ID_TOKEN_LEEWAY = 30

# Authorization response parameters that must appear at most once (RFC 6749 §3.1)
RESPONSE_PARAMS = ("code", "error", "error_description", "error_uri", "iss")


@dataclass(frozen=True)
class AuthorizationServer:
    """Endpoint set for one provider, either discovered or hardcoded."""

    issuer: str
    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    userinfo_endpoint: str | None = None
    jwks_uri: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> "AuthorizationServer":
        return cls(
            issuer=metadata["issuer"],
            authorization_endpoint=metadata.get("authorization_endpoint"),
            token_endpoint=metadata.get("token_endpoint"),
            userinfo_endpoint=metadata.get("userinfo_endpoint"),
            jwks_uri=metadata.get("jwks_uri"),
            metadata=metadata,
        )


def discovery_url(issuer: str, algorithm: str = "oidc") -> str:
    """
    Well-known URL for an issuer.
    oidc: {issuer}/.well-known/openid-configuration (OIDC Discovery 1.0 §4).
    oauth2: /.well-known/oauth-authorization-server inserted before the issuer path (RFC 8414 §3).
    """
    if algorithm == "oidc":
        return f"{issuer.rstrip('/')}/.well-known/openid-configuration"
    if algorithm == "oauth2":
        parts = urlsplit(issuer)
        path = "/.well-known/oauth-authorization-server" + parts.path.rstrip("/")
        return urlunsplit((parts.scheme, parts.netloc, path, "", ""))
    raise ValueError(f"Unknown discovery algorithm: {algorithm}")


def discover(http: httpx.Client, issuer: str, algorithm: str = "oidc") -> AuthorizationServer:
    """Fetch and validate the issuer's metadata document. The document's issuer must match exactly."""
    url = discovery_url(issuer, algorithm)
    try:
        r = http.get(url, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        logger.warning("Discovery request to %s failed: %s", url, e)
        raise DiscoveryFailed("Discovery request failed", {"url": url, "error": str(e)}) from e
    if not r.is_success:
        raise DiscoveryFailed("Discovery request failed", {"url": url, **response_details(r)})
    try:
        metadata = r.json()
    except ValueError:
        metadata = None
    if not isinstance(metadata, dict):
        raise DiscoveryFailed("Discovery document is not a JSON object", {"url": url, **response_details(r)})
    if metadata.get("issuer") != issuer:
        raise DiscoveryFailed(
            "Discovery document issuer mismatch",
            {"url": url, "expected": issuer, "issuer": metadata.get("issuer")},
        )
    logger.info("Discovered authorization server metadata for %s", issuer)
    return AuthorizationServer.from_metadata(metadata)


def validate_authorization_response(url: str, expected_state: str) -> str:
    """
    Check the provider's redirect back to us and return the authorization code.
    State is compared first so an error redirect for someone else's request is reported as a mismatch.
    A response parameter given more than once is rejected.
    """
    params = parse_qs(urlsplit(str(url)).query, keep_blank_values=True)

    def first(name: str) -> str | None:
        values = params.get(name)
        return values[0] if values else None

    if len(params.get("state", [])) > 1:
        raise StateMismatch("Multiple state parameters in callback")
    returned_state = first("state")
    if returned_state != expected_state:
        raise StateMismatch("State mismatch in callback")
    repeated = [name for name in RESPONSE_PARAMS if len(params.get(name, [])) > 1]
    if repeated:
        raise AuthorizationResponseError(
            f"Parameter {repeated[0]!r} given more than once in callback",
            {"error": "invalid_request", "parameters": repeated},
        )
    error = first("error")
    if error:
        raise AuthorizationResponseError(
            first("error_description") or error,
            {"error": error, "error_description": first("error_description"), "error_uri": first("error_uri")},
        )
    code = first("code")
    if not code:
        raise MissingAuthorizationCode("Missing authorization code in callback")
    return code


def authorization_code_grant(
    http: httpx.Client,
    server: AuthorizationServer,
    *,
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
    code_verifier: str,
    auth_method: str = CLIENT_SECRET_POST,
) -> dict[str, Any]:
    """
    POST the authorization_code grant (form-encoded) and return the parsed token response.
    Client auth is either secret-in-body (client_secret_post) or HTTP Basic (client_secret_basic).
    """
    if not server.token_endpoint:
        raise TokenExchangeFailed("Token endpoint not configured", {"issuer": server.issuer})
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "code_verifier": code_verifier,
    }
    auth = None
    if auth_method == CLIENT_SECRET_BASIC:
        auth = httpx.BasicAuth(client_id, client_secret)
    else:
        data["client_id"] = client_id
        data["client_secret"] = client_secret

    logger.debug("Exchanging authorization code at %s (%s)", server.token_endpoint, auth_method)
    try:
        r = http.post(server.token_endpoint, data=data, auth=auth, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        logger.warning("Token request to %s failed: %s", server.token_endpoint, e)
        raise TokenExchangeFailed(
            "Failed to exchange authorization code for tokens", {"status": None, "error": str(e)}
        ) from e
    if not r.is_success:
        logger.warning("Token endpoint %s returned %s", server.token_endpoint, r.status_code)
        raise TokenExchangeFailed("Failed to exchange authorization code for tokens", response_details(r))
    try:
        token = r.json()
    except ValueError:
        token = None
    if not isinstance(token, dict):
        raise TokenExchangeFailed("Token response is not a JSON object", response_details(r))
    # Some providers (GitHub) report grant errors with a 200 status
    if "error" in token:
        raise TokenExchangeFailed(token.get("error_description") or token["error"], response_details(r))
    if not token.get("access_token"):
        raise TokenExchangeFailed("Token response has no access_token", response_details(r))
    return token


def id_token_claims(token: dict[str, Any], *, client_id: str, issuers: list[str]) -> dict[str, Any]:
    """
    Decode the ID token from a token response received directly from the token endpoint
    and validate iss, aud, exp. The signature is not checked: the token came over TLS
    straight from the provider (OIDC Core §3.1.3.7).
    """
    id_token = token.get("id_token")
    if not id_token:
        raise TokenExchangeFailed("Token response has no id_token")
    try:
        claims = jwt.decode(
            id_token,
            options={
                "verify_signature": False,
                "verify_exp": True,
                "verify_aud": True,
                "require": ["iss", "sub", "aud", "exp", "iat"],
            },
            audience=client_id,
            leeway=ID_TOKEN_LEEWAY,
        )
    except jwt.InvalidTokenError as e:
        logger.debug("ID token rejected: %s", e)
        raise TokenExchangeFailed("Invalid ID token", {"reason": str(e)}) from e
    if claims["iss"] not in issuers:
        raise TokenExchangeFailed("Invalid ID token", {"reason": "Invalid issuer", "iss": claims["iss"]})
    # PyJWT leaves iat unchecked when the signature is not verified
    iat = claims["iat"]
    if isinstance(iat, bool) or not isinstance(iat, (int, float)):
        raise TokenExchangeFailed("Invalid ID token", {"reason": "Invalid iat"})
    if iat > time.time() + ID_TOKEN_LEEWAY:
        raise TokenExchangeFailed("Invalid ID token", {"reason": "Issued in the future"})
    return claims


def resource_request(
    http: httpx.Client,
    url: str,
    access_token: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, str] | None = None,
    what: str = "user profile",
) -> Any:
    """GET a JSON resource with Bearer auth. Non-2xx or transport errors raise UserFetchFailed."""
    request_headers = {"Accept": "application/json", **(headers or {})}
    request_headers["Authorization"] = f"Bearer {access_token}"
    try:
        r = http.get(url, headers=request_headers, params=params)
    except httpx.HTTPError as e:
        logger.warning("Request for %s to %s failed: %s", what, url, e)
        raise UserFetchFailed(f"Failed to fetch {what}", {"status": None, "error": str(e)}) from e
    if not r.is_success:
        logger.warning("%s returned %s for %s", url, r.status_code, what)
        raise UserFetchFailed(f"Failed to fetch {what}", response_details(r, include_body=False))
    try:
        return r.json()
    except ValueError as e:
        raise UserFetchFailed(f"Invalid JSON in {what} response", response_details(r, include_body=False)) from e


def userinfo(
    http: httpx.Client,
    server: AuthorizationServer,
    access_token: str,
    *,
    expected_subject: str,
) -> dict[str, Any]:
    """OIDC UserInfo request; the returned sub must equal the ID token's sub (OIDC Core §5.3.2)."""
    if not server.userinfo_endpoint:
        raise UserFetchFailed("Userinfo endpoint not configured", {"issuer": server.issuer})
    claims = resource_request(http, server.userinfo_endpoint, access_token, what="userinfo")
    if not isinstance(claims, dict):
        raise UserFetchFailed("Userinfo response is not a JSON object")
    if claims.get("sub") != expected_subject:
        raise UserFetchFailed("Userinfo subject does not match ID token subject")
    return claims
