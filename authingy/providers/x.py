"""
X (Twitter) OAuth 2.0. Token requests use HTTP Basic client auth; the profile is the `data`
member of GET /2/users/me with the requested user.fields.
"""
from dataclasses import dataclass, field
from typing import Any, TypedDict

from authingy import oauth
from authingy.errors import UserFetchFailed
from authingy.oauth import AuthorizationServer
from authingy.providers.base import OAuthProvider, ProviderConfig, access_token

X_SERVER = AuthorizationServer(
    issuer="https://x.com",
    authorization_endpoint="https://x.com/i/oauth2/authorize",
    token_endpoint="https://api.x.com/2/oauth2/token",
    userinfo_endpoint="https://api.x.com/2/users/me",
)

DEFAULT_USER_FIELDS = (
    "id",
    "name",
    "username",
    "profile_image_url",
    "verified",
    "verified_type",
    "description",
    "created_at",
    "location",
    "url",
    "protected",
    "public_metrics",
)


@dataclass(frozen=True)
class XProviderConfig(ProviderConfig):
    """Adds `user_fields`, requested on top of DEFAULT_USER_FIELDS."""

    user_fields: list[str] = field(default_factory=list)


class XUserProfile(TypedDict, total=False):
    id: str
    name: str
    username: str
    profile_image_url: str
    verified: bool
    verified_type: str
    description: str
    created_at: str
    location: str
    url: str
    protected: bool
    public_metrics: dict[str, int]


class XProvider(OAuthProvider):
    id = "x"
    default_scopes = ("users.read", "tweet.read", "offline.access")
    token_auth_method = oauth.CLIENT_SECRET_BASIC

    def __init__(self, config: ProviderConfig):
        super().__init__(config, server=X_SERVER)
        self.user_fields = [*DEFAULT_USER_FIELDS, *getattr(config, "user_fields", [])]

    def fetch_user(self, token: dict[str, Any]) -> XUserProfile:
        body = oauth.resource_request(
            self.http,
            X_SERVER.userinfo_endpoint,
            access_token(token),
            params={"user.fields": ",".join(self.user_fields)},
            what="X user profile",
        )
        if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
            raise UserFetchFailed("X user profile response has no data object")
        return body["data"]
