"""
Discord OAuth2 (Authorization Code + PKCE). Profile from GET /api/users/@me.
"""
from typing import Any, TypedDict

from authingy import oauth
from authingy.errors import UserFetchFailed
from authingy.oauth import AuthorizationServer
from authingy.providers.base import OAuthProvider, ProviderConfig, access_token

DISCORD_SERVER = AuthorizationServer(
    issuer="https://discord.com",
    authorization_endpoint="https://discord.com/oauth2/authorize",
    token_endpoint="https://discord.com/api/oauth2/token",
    userinfo_endpoint="https://discord.com/api/users/@me",
)


class DiscordUserProfile(TypedDict, total=False):
    id: str
    username: str
    discriminator: str
    global_name: str | None
    avatar: str | None
    bot: bool
    mfa_enabled: bool
    locale: str
    verified: bool
    email: str | None
    flags: int
    premium_type: int


class DiscordProvider(OAuthProvider):
    id = "discord"
    default_scopes = ("identify", "email")

    def __init__(self, config: ProviderConfig):
        super().__init__(config, server=DISCORD_SERVER)

    def fetch_user(self, token: dict[str, Any]) -> DiscordUserProfile:
        profile = oauth.resource_request(
            self.http, DISCORD_SERVER.userinfo_endpoint, access_token(token), what="Discord user profile"
        )
        if not isinstance(profile, dict):
            raise UserFetchFailed("Discord user profile is not a JSON object")
        return profile
