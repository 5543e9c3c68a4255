"""
Demo web app: "log in with provider X" on top of Authingy.
GET /auth/{provider} starts the flow (state + code verifier in cookies), GET /auth/{provider}/callback
completes it and returns the normalized user and round-tripped data. Port 5173.
"""
import html
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from authingy.core import Authingy
from authingy.errors import (
    AuthingyError,
    DiscoveryFailed,
    ProviderNotFound,
    TokenExchangeFailed,
    UserFetchFailed,
)
from authingy.providers.base import OAuthProvider, ProviderConfig
from authingy.providers.discord import DiscordProvider
from authingy.providers.github import GitHubProvider
from authingy.providers.google import GoogleProvider
from authingy.providers.linkedin import LinkedInProvider
from authingy.providers.vercel import VercelProvider
from authingy.providers.x import XProvider
from demo_app import config

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[OAuthProvider]] = {
    cls.id: cls
    for cls in (GoogleProvider, GitHubProvider, LinkedInProvider, VercelProvider, XProvider, DiscordProvider)
}

# Upstream failures are the provider's fault, not the browser's
_UPSTREAM_ERRORS = (TokenExchangeFailed, UserFetchFailed, DiscoveryFailed)


def build_providers() -> list[OAuthProvider]:
    """Providers with a configured client id, in PROVIDER_CLASSES order."""
    providers = []
    for provider_id, cls in PROVIDER_CLASSES.items():
        client_id, client_secret = config.PROVIDER_CREDENTIALS.get(provider_id, ("", ""))
        if not client_id:
            continue
        providers.append(
            cls(
                ProviderConfig(
                    client_id=client_id,
                    client_secret=client_secret,
                    redirect_uri=config.redirect_uri(provider_id),
                )
            )
        )
    return providers


_auth: Authingy | None = None


def get_auth() -> Authingy:
    global _auth
    if _auth is None:
        if not config.AUTH_SECRET_KEY:
            raise RuntimeError("AUTH_SECRET_KEY is not set")
        _auth = Authingy(secret=config.AUTH_SECRET_KEY, providers=build_providers())
        logger.info("Configured providers: %s", ", ".join(_auth.provider_ids) or "(none)")
    return _auth


app = FastAPI(title="Authingy Demo", version="0.1.0")


@app.exception_handler(AuthingyError)
def authingy_error_handler(request: Request, exc: AuthingyError):
    """OAuth-style error body. Upstream details are logged, not returned."""
    if isinstance(exc, ProviderNotFound):
        status_code = 404
    elif isinstance(exc, _UPSTREAM_ERRORS):
        status_code = 502
        logger.warning("Upstream failure on %s: %s details=%s", request.url.path, exc.code, exc.details)
    else:
        status_code = 400
    return JSONResponse(exc.to_dict(), status_code=status_code)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "demo_app"}


@app.get("/", response_class=HTMLResponse)
def home(auth: Authingy = Depends(get_auth)):
    """Login links for every configured provider."""
    links = "\n".join(
        f'  <li><a href="/auth/{html.escape(pid)}">Log in with {html.escape(pid)}</a></li>'
        for pid in auth.provider_ids
    )
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Authingy Demo</title></head>
<body>
  <h1>Log in</h1>
  <ul>
{links or "  <li>No providers configured.</li>"}
  </ul>
</body>
</html>"""
    )


@app.get("/auth/{provider}")
def start_login(provider: str, auth: Authingy = Depends(get_auth)):
    """Redirect to the provider; sealed state and code verifier ride along in http-only cookies."""
    result = auth.authorize(provider, {"return_to": "/"})
    response = RedirectResponse(url=result.url, status_code=302)
    for name, value in (
        (config.COOKIE_NAME_STATE, result.state),
        (config.COOKIE_NAME_CODE_VERIFIER, result.code_verifier),
    ):
        response.set_cookie(
            name,
            value,
            max_age=config.COOKIE_MAX_AGE,
            httponly=True,
            secure=config.COOKIE_SECURE,
            samesite="lax",
            path="/",
        )
    return response


@app.get("/auth/{provider}/callback")
def callback(provider: str, request: Request, auth: Authingy = Depends(get_auth)):
    """Complete the login; cookies are cleared once consumed."""
    state = request.cookies.get(config.COOKIE_NAME_STATE)
    code_verifier = request.cookies.get(config.COOKIE_NAME_CODE_VERIFIER)
    if not state or not code_verifier:
        return JSONResponse(
            {"error": "invalid_request", "error_description": "Invalid state or code verifier"},
            status_code=400,
        )

    result = auth.callback(provider, url=str(request.url), code_verifier=code_verifier, state=state)

    response = JSONResponse({"user": result.user, "data": result.data})
    response.delete_cookie(config.COOKIE_NAME_STATE, path="/")
    response.delete_cookie(config.COOKIE_NAME_CODE_VERIFIER, path="/")
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "demo_app.main:app",
        host="127.0.0.1",
        port=5173,
        reload=True,
    )
