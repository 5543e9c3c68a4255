"""
Demo app configuration. All credentials come from env; a provider is enabled when its client id is set.
"""
import os

# Secret for sealing state cookies (required to serve logins)
AUTH_SECRET_KEY = os.environ.get("AUTH_SECRET_KEY", "")

# Public base URL of this app; callbacks are {BASE_URL}/auth/{provider}/callback
BASE_URL = os.environ.get("DEMO_BASE_URL", "http://127.0.0.1:5173").rstrip("/")

# State / code verifier cookies: short-lived, http-only (10 minutes)
COOKIE_NAME_STATE = "_authingy_state_"
COOKIE_NAME_CODE_VERIFIER = "_authingy_code_verifier_"
COOKIE_MAX_AGE = int(os.environ.get("DEMO_COOKIE_MAX_AGE", "600"))
COOKIE_SECURE = os.environ.get("DEMO_COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

# Provider id -> (client_id, client_secret)
PROVIDER_CREDENTIALS = {
    name: (
        os.environ.get(f"{name.upper()}_CLIENT_ID", ""),
        os.environ.get(f"{name.upper()}_CLIENT_SECRET", ""),
    )
    for name in ("google", "github", "linkedin", "vercel", "x", "discord")
}


def redirect_uri(provider_id: str) -> str:
    return f"{BASE_URL}/auth/{provider_id}/callback"
