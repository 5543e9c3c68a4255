"""
Provider registry: id -> provider, built once at configuration time, insertion-ordered.
"""
from collections.abc import Iterable, Iterator

from authingy.errors import ProviderNotFound
from authingy.providers.base import OAuthProvider


class ProviderRegistry:
    def __init__(self, providers: Iterable[OAuthProvider] = ()):
        self._providers: dict[str, OAuthProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: OAuthProvider) -> None:
        """Add a provider. Ids must be unique and non-empty."""
        if not provider.id:
            raise ValueError("Provider id must be a non-empty string")
        if provider.id in self._providers:
            raise ValueError(f"Duplicate provider id: {provider.id!r}")
        self._providers[provider.id] = provider

    def get(self, provider_id: str) -> OAuthProvider:
        """Resolve an id; unknown ids raise ProviderNotFound."""
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFound(f'Provider "{provider_id}" not found', {"provider": provider_id})
        return provider

    def ids(self) -> list[str]:
        return list(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self) -> Iterator[OAuthProvider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)
