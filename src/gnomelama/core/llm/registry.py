"""Model registry: merges model catalogs from every provider."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

from gnomelama.core.llm.provider import ModelCatalog, ModelDescriptor, ProviderAdapter
from gnomelama.logging import get_logger

log = get_logger("registry")


@dataclass
class ModelListing:
    """Combined model list.

    Attributes:
        models: Descriptors in provider order, de-duplicated by name
        error: Set when no models were found at all
        provider_errors: Per-provider reason a catalog was empty or failed
    """

    models: list[ModelDescriptor] = field(default_factory=list)
    error: str | None = None
    provider_errors: dict[str, str] = field(default_factory=dict)

    @property
    def names(self) -> list[str]:
        return [m.name for m in self.models]

    def find(self, name: str) -> ModelDescriptor | None:
        for model in self.models:
            if model.name == name:
                return model
        return None


def pick_default(listing: ModelListing, preferred: str | None = None) -> ModelDescriptor | None:
    """The preferred model if listed, else the first one, else None."""
    if preferred:
        found = listing.find(preferred)
        if found is not None:
            return found
    return listing.models[0] if listing.models else None


class ModelRegistry:
    """Queries all providers concurrently and merges their catalogs.

    One provider failing never hides another provider's models.
    """

    def __init__(self, providers: Sequence[ProviderAdapter]) -> None:
        self._providers = list(providers)
        self._last_listing: ModelListing | None = None

    @property
    def providers(self) -> list[ProviderAdapter]:
        return list(self._providers)

    @property
    def last_listing(self) -> ModelListing | None:
        return self._last_listing

    def get_provider(self, name: str) -> ProviderAdapter | None:
        for provider in self._providers:
            if provider.name == name:
                return provider
        return None

    async def fetch_models(self) -> ModelListing:
        results = await asyncio.gather(
            *(p.fetch_model_names() for p in self._providers),
            return_exceptions=True,
        )

        listing = ModelListing()
        seen: set[str] = set()
        for provider, result in zip(self._providers, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                log.error("%s model fetch raised: %s", provider.name, result)
                listing.provider_errors[provider.name] = f"{provider.name}: {result}"
                continue

            catalog: ModelCatalog = result
            if catalog.error:
                listing.provider_errors[provider.name] = catalog.error
            for name in catalog.models:
                if name in seen:
                    continue
                seen.add(name)
                listing.models.append(ModelDescriptor(name, provider.kind, provider.name))

        if not listing.models:
            reasons = "; ".join(listing.provider_errors.values()) or "no providers configured"
            listing.error = f"No models available ({reasons})"
            log.warning(listing.error)
        else:
            log.debug("Found %d models across %d providers", len(listing.models), len(self._providers))

        self._last_listing = listing
        return listing
