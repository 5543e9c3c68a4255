"""
Authorize/callback orchestration.

authorize(): fresh CSRF state + PKCE verifier; the state (plus caller data) is sealed for the
caller to carry across the redirect, while the provider only ever sees the raw state.
callback(): unseal, let the provider compare the raw state with the callback URL, redeem the
code, fetch the user.

Stateless per request: no replay ledger. Single use of a sealed state is up to the caller
(short-lived cookies deleted after the callback).
"""
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx

from authingy.config import CSRF_STATE_KEY, HTTP_TIMEOUT, USER_AGENT
from authingy.crypto import seal, unseal
from authingy.errors import AuthingyError, InvalidState
from authingy.pkce import generate_code_verifier, generate_state
from authingy.providers.base import OAuthProvider
from authingy.registry import ProviderRegistry

logger = logging.getLogger(__name__)


@dataclass
class AuthorizeResult:
    """`state` is the sealed envelope (not the raw CSRF value); keep it and `code_verifier` for the callback."""

    url: str
    state: str
    code_verifier: str


@dataclass
class CallbackResult:
    user: dict[str, Any]
    token: dict[str, Any]
    data: dict[str, Any] = field(default_factory=dict)


def default_http_client() -> httpx.Client:
    return httpx.Client(timeout=HTTP_TIMEOUT, headers={"User-Agent": USER_AGENT})


class Authingy:
    """
    Entry point. Configure once with the sealing secret and the providers:

        auth = Authingy(secret=..., providers=[GoogleProvider(ProviderConfig(...)), ...])
        result = auth.authorize("google", {"return_to": "/"})
        ...
        login = auth.callback("google", url=..., code_verifier=..., state=...)
    """

    def __init__(
        self,
        secret: str,
        providers: Iterable[OAuthProvider],
        http: httpx.Client | None = None,
    ):
        if not secret:
            raise ValueError("secret is required")
        self._secret = secret
        # Only a client created here is closed by close()
        self._owns_http = http is None
        self.http = http or default_http_client()
        self.registry = ProviderRegistry(providers)
        for provider in self.registry:
            provider.bind(self.http)

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "Authingy":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def provider_ids(self) -> list[str]:
        return self.registry.ids()

    def authorize(self, provider_id: str, data: dict[str, Any] | None = None) -> AuthorizeResult:
        """
        Start a login. `data` is round-tripped unmodified to callback() inside the sealed state;
        it must be JSON-serializable and cannot use the reserved csrfState key.
        Non-string keys come back as strings.
        """
        provider = self.registry.get(provider_id)
        data = dict(data or {})
        if CSRF_STATE_KEY in data:
            raise ValueError(f"{CSRF_STATE_KEY!r} is reserved and cannot be passed in data")

        csrf_state = generate_state()
        sealed = seal(self._secret, {CSRF_STATE_KEY: csrf_state, **data})
        code_verifier = generate_code_verifier()
        url = provider.authorization_url(csrf_state, code_verifier)
        logger.debug("Authorization started for provider %s", provider_id)
        return AuthorizeResult(url=url, state=sealed, code_verifier=code_verifier)

    def callback(self, provider_id: str, *, url: str, code_verifier: str, state: str) -> CallbackResult:
        """
        Complete a login from the provider's redirect `url`, using the `state` and
        `code_verifier` returned by authorize(). Raises an AuthingyError subclass on any failure.
        """
        provider = self.registry.get(provider_id)
        payload = unseal(self._secret, state)
        csrf_state = payload.pop(CSRF_STATE_KEY, None)
        if not isinstance(csrf_state, str):
            raise InvalidState("Invalid state")

        try:
            token = provider.exchange_code(str(url), code_verifier, csrf_state)
            user = provider.fetch_user(token)
        except AuthingyError as e:
            logger.warning("Callback failed for provider %s: %s", provider_id, e.code)
            raise
        logger.info("Callback completed for provider %s", provider_id)
        return CallbackResult(user=user, token=token, data=payload)
