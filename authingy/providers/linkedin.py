"""
LinkedIn ("Sign In with LinkedIn using OpenID Connect").
"""
from authingy.providers.base import OpenIDProvider


class LinkedInProvider(OpenIDProvider):
    id = "linkedin"
    issuer = "https://www.linkedin.com/oauth"
    default_scopes = ("openid", "profile", "email")
