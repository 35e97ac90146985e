# src/llm/client_factory.py — v3
"""Factory: build the generation client stack from settings.

Primary provider first, then the configured fallbacks when failover is
enabled. A lone provider without a retry budget is returned bare;
anything else is wrapped in ResilientClient.
"""

from __future__ import annotations

import importlib
import logging

from gitdoc.config.settings import Settings
from gitdoc.core.errors import UnsupportedProviderError
from gitdoc.llm.base_client import BaseGenerationClient
from gitdoc.llm.resilient import ResilientClient

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "mock": "gitdoc.llm.mock_client.MockClient",
    "openai": "gitdoc.llm.adapters.openai_adapter.OpenAIAdapter",
    "anthropic": "gitdoc.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "google": "gitdoc.llm.adapters.google_adapter.GoogleAdapter",
    "gemini": "gitdoc.llm.adapters.google_adapter.GeminiAdapter",
    "groq": "gitdoc.llm.adapters.groq_adapter.GroqAdapter",
    "ollama": "gitdoc.llm.adapters.ollama_adapter.OllamaAdapter",
}


def create_provider_client(provider: str, settings: Settings) -> BaseGenerationClient:
    """Instantiate one adapter by provider name.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"unsupported provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])
    logger.debug("Creating generation client: provider=%s, model=%s", provider, settings.llm_model)
    return adapter_cls(
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        timeout=float(settings.llm_timeout),
        base_url=settings.llm_base_url,
    )


def resolve_provider_chain(settings: Settings) -> list[str]:
    """Ordered, de-duplicated provider names (primary first)."""
    primary = settings.llm_provider.strip().lower() or "mock"
    providers = [primary]
    if settings.llm_failover_enabled:
        for fallback in settings.llm_fallback_providers:
            name = fallback.strip().lower()
            if not name or name in providers:
                continue
            providers.append(name)
    return providers


def create_generation_client(settings: Settings) -> BaseGenerationClient:
    """Build the client the updater talks to.

    Raises:
        UnsupportedProviderError: If any provider in the chain is unknown.
    """
    clients = [create_provider_client(p, settings) for p in resolve_provider_chain(settings)]
    if len(clients) == 1 and settings.llm_max_retries <= 0:
        return clients[0]
    return ResilientClient(clients, settings.llm_max_retries)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseGenerationClient.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered generation provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
