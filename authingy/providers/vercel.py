"""
Vercel ("Sign in with Vercel"). OIDC tokens and userinfo, but endpoints are fixed rather than discovered.
"""
from authingy.oauth import AuthorizationServer
from authingy.providers.base import OpenIDProvider, ProviderConfig

VERCEL_SERVER = AuthorizationServer(
    issuer="https://vercel.com",
    authorization_endpoint="https://vercel.com/oauth/authorize",
    token_endpoint="https://api.vercel.com/login/oauth/token",
    userinfo_endpoint="https://api.vercel.com/login/oauth/userinfo",
)


class VercelProvider(OpenIDProvider):
    id = "vercel"
    issuer = VERCEL_SERVER.issuer
    default_scopes = ("openid", "email", "profile")

    def __init__(self, config: ProviderConfig):
        super().__init__(config, server=VERCEL_SERVER)
