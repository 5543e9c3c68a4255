"""
Shared fixtures: a fake OIDC provider ("acme") served through httpx.MockTransport,
so no test touches the network.
"""
import time
from urllib.parse import parse_qs

import httpx
import jwt
import pytest

from authingy.core import Authingy
from authingy.providers.base import OpenIDProvider, ProviderConfig

ISSUER = "https://idp.example"
CLIENT_ID = "acme-client"
CLIENT_SECRET = "acme-secret"
REDIRECT_URI = "https://app.example/auth/acme/callback"
SECRET = "test-sealing-secret"
# HS256 key for test ID tokens (signature is not verified by the client)
ID_TOKEN_KEY = "k" * 32


class AcmeProvider(OpenIDProvider):
    id = "acme"
    issuer = ISSUER
    default_scopes = ("openid", "email")


def make_id_token(sub="user-1", *, aud=CLIENT_ID, iss=ISSUER, exp_in=300, iat=None):
    now = int(time.time())
    payload = {"iss": iss, "sub": sub, "aud": aud, "iat": iat if iat is not None else now, "exp": now + exp_in}
    return jwt.encode(payload, ID_TOKEN_KEY, algorithm="HS256")


class FakeIdP:
    """Discovery, token and userinfo endpoints; responses are plain attributes tests can change."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.discovery = {
            "issuer": ISSUER,
            "authorization_endpoint": f"{ISSUER}/authorize",
            "token_endpoint": f"{ISSUER}/token",
            "userinfo_endpoint": f"{ISSUER}/userinfo",
            "jwks_uri": f"{ISSUER}/jwks",
        }
        self.discovery_status = 200
        self.token_status = 200
        self.token_body = None
        self.userinfo_status = 200
        self.userinfo_body = {"sub": "user-1", "email": "user@example.com", "name": "Test User"}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/.well-known/openid-configuration":
            return httpx.Response(self.discovery_status, json=self.discovery)
        if path == "/token" and request.method == "POST":
            if self.token_body is None:
                body = {
                    "access_token": "at-123",
                    "token_type": "Bearer",
                    "expires_in": 3600,
                    "id_token": make_id_token(),
                }
            else:
                body = self.token_body
            if isinstance(body, str):
                return httpx.Response(self.token_status, text=body)
            return httpx.Response(self.token_status, json=body)
        if path == "/userinfo":
            return httpx.Response(self.userinfo_status, json=self.userinfo_body)
        return httpx.Response(404, text="not found")

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def token_form(self) -> dict[str, str]:
        """Form fields of the last token request."""
        request = self.requests_to("/token")[-1]
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def idp():
    return FakeIdP()


@pytest.fixture
def http(idp):
    client = httpx.Client(transport=httpx.MockTransport(idp.handler))
    yield client
    client.close()


@pytest.fixture
def provider_config():
    return ProviderConfig(client_id=CLIENT_ID, client_secret=CLIENT_SECRET, redirect_uri=REDIRECT_URI)


@pytest.fixture
def acme(provider_config, http):
    provider = AcmeProvider(provider_config)
    provider.bind(http)
    return provider


@pytest.fixture
def auth(provider_config, http):
    return Authingy(secret=SECRET, providers=[AcmeProvider(provider_config)], http=http)
