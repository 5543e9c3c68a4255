"""
Google (OIDC, discovered from https://accounts.google.com).
Requests offline access so the token response includes a refresh_token.
"""
from authingy.providers.base import OpenIDProvider


class GoogleProvider(OpenIDProvider):
    id = "google"
    issuer = "https://accounts.google.com"
    # Google documents both forms for the ID token iss claim
    id_token_issuers = ("https://accounts.google.com", "accounts.google.com")
    default_scopes = ("openid", "email", "profile")
    authorization_params = {
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
    }
