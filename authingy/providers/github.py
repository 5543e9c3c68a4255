"""
GitHub OAuth app (plain OAuth2, no OIDC). Profile comes from the REST API; with the
user:email scope the verified primary email is added as `verified_email`.
"""
import logging
from typing import Any, TypedDict

from authingy import oauth
from authingy.errors import UserFetchFailed
from authingy.oauth import AuthorizationServer
from authingy.providers.base import OAuthProvider, ProviderConfig, access_token

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"

GITHUB_SERVER = AuthorizationServer(
    issuer="https://github.com",
    authorization_endpoint="https://github.com/login/oauth/authorize",
    token_endpoint="https://github.com/login/oauth/access_token",
    userinfo_endpoint="https://api.github.com/user",
)


class GitHubEmail(TypedDict):
    email: str
    primary: bool
    verified: bool
    visibility: str | None


class GitHubUserProfile(TypedDict, total=False):
    id: int
    login: str
    avatar_url: str
    html_url: str
    name: str | None
    email: str | None
    bio: str | None
    company: str | None
    location: str | None
    created_at: str
    updated_at: str
    verified_email: str
    emails: list[GitHubEmail]


class GitHubProvider(OAuthProvider):
    id = "github"
    default_scopes = ("read:user", "user:email")

    def __init__(self, config: ProviderConfig):
        super().__init__(config, server=GITHUB_SERVER)

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/vnd.github+json", "X-GitHub-Api-Version": GITHUB_API_VERSION}

    def fetch_user(self, token: dict[str, Any]) -> GitHubUserProfile:
        at = access_token(token)
        profile = oauth.resource_request(
            self.http,
            GITHUB_SERVER.userinfo_endpoint,
            at,
            headers=self._headers(),
            what="GitHub user profile",
        )
        if not isinstance(profile, dict):
            raise UserFetchFailed("GitHub user profile is not a JSON object")
        result: GitHubUserProfile = dict(profile)
        if "user:email" in self.scopes:
            self._add_emails(result, at)
        return result

    def _add_emails(self, result: GitHubUserProfile, at: str) -> None:
        """Best effort: the profile is still returned if the emails call fails."""
        try:
            emails = oauth.resource_request(
                self.http, GITHUB_EMAILS_URL, at, headers=self._headers(), what="GitHub user emails"
            )
        except UserFetchFailed as e:
            logger.warning("Skipping GitHub emails: %s (details=%s)", e.message, e.details)
            return
        if not isinstance(emails, list):
            return
        result["emails"] = emails
        primary = next(
            (e for e in emails if isinstance(e, dict) and e.get("primary") and e.get("verified")),
            None,
        )
        if primary:
            result["verified_email"] = primary["email"]
