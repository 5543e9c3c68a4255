"""
PKCE (RFC 7636, S256 only), CSRF state generation and authorization URL building.
"""
import hashlib
import secrets
from base64 import urlsafe_b64encode
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def generate_state() -> str:
    """Opaque value for CSRF protection; returned by the provider in the callback."""
    return secrets.token_urlsafe(32)


def generate_code_verifier() -> str:
    """43-char base64url verifier (32 random bytes, RFC 7636 recommendation)."""
    return secrets.token_urlsafe(32)


def code_challenge(code_verifier: str) -> str:
    """S256 challenge: base64url(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def build_authorization_url(
    *,
    authorization_endpoint: str,
    client_id: str,
    redirect_uri: str,
    scopes: list[str],
    code_verifier: str,
    state: str,
    extra_params: dict[str, str] | None = None,
) -> str:
    """
    Build the authorization URL with the standard OAuth2 + PKCE parameters.
    Query parameters already on the endpoint are kept. extra_params are applied last and
    may overwrite standard ones; providers rely on this to adjust e.g. prompt behaviour.
    """
    parts = urlsplit(authorization_endpoint)
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    params.update(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "code_challenge": code_challenge(code_verifier),
            "code_challenge_method": "S256",
            "state": state,
        }
    )
    if extra_params:
        params.update(extra_params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))
