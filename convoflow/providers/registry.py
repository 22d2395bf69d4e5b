"""
Provider Registry for Convoflow.

Holds named LLM and moderation providers with a default per type.
Built once by the composition root and injected; there is no global
instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .llm.base import LLMProvider
    from .moderation.base import ModerationProvider

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for a provider."""

    name: str
    enabled: bool = True


class ProviderRegistry:
    """
    Registry for managing and accessing providers.

    Usage:
        registry = ProviderRegistry()
        registry.register_llm("openai", OpenAILLMProvider(...))
        registry.register_llm("anthropic", AnthropicLLMProvider(...))
        registry.set_default_llm("anthropic")

        llm = registry.get_llm()  # default
        llm_explicit = registry.get_llm("openai")
    """

    def __init__(self):
        self._llm_providers: dict[str, LLMProvider] = {}
        self._llm_configs: dict[str, ProviderConfig] = {}
        self._default_llm: str | None = None

        self._moderation_providers: dict[str, ModerationProvider] = {}
        self._moderation_configs: dict[str, ProviderConfig] = {}
        self._default_moderation: str | None = None

    # ==================== Validation ====================

    def _validate_llm_provider(self, provider: LLMProvider) -> None:
        if not hasattr(provider, "name"):
            raise ValueError("LLM provider must have 'name' property")
        if not callable(getattr(provider, "complete", None)):
            raise ValueError("LLM provider must have 'complete' method")

    def _validate_moderation_provider(self, provider: ModerationProvider) -> None:
        if not hasattr(provider, "name"):
            raise ValueError("Moderation provider must have 'name' property")
        if not callable(getattr(provider, "classify", None)):
            raise ValueError("Moderation provider must have 'classify' method")

    # ==================== LLM Providers ====================

    def register_llm(self, name: str, provider: LLMProvider, enabled: bool = True) -> None:
        """Register an LLM provider; the first one registered becomes the default."""
        self._validate_llm_provider(provider)
        self._llm_providers[name] = provider
        self._llm_configs[name] = ProviderConfig(name=name, enabled=enabled)
        if self._default_llm is None:
            self._default_llm = name
        logger.debug(f"Registered LLM provider: {name}")

    def set_default_llm(self, name: str) -> None:
        if name not in self._llm_providers:
            raise ValueError(f"LLM provider '{name}' not registered")
        self._default_llm = name

    def get_llm(self, name: str | None = None) -> LLMProvider:
        """
        Get an LLM provider by name or return default.

        Raises:
            ValueError: If provider not found or disabled
        """
        provider_name = name or self._default_llm
        if provider_name is None:
            raise ValueError("No LLM provider registered")
        if provider_name not in self._llm_providers:
            raise ValueError(f"LLM provider '{provider_name}' not registered")
        if not self._llm_configs[provider_name].enabled:
            raise ValueError(f"LLM provider '{provider_name}' is disabled")
        return self._llm_providers[provider_name]

    # ==================== Moderation Providers ====================

    def register_moderation(
        self, name: str, provider: ModerationProvider, enabled: bool = True
    ) -> None:
        self._validate_moderation_provider(provider)
        self._moderation_providers[name] = provider
        self._moderation_configs[name] = ProviderConfig(name=name, enabled=enabled)
        if self._default_moderation is None:
            self._default_moderation = name
        logger.debug(f"Registered moderation provider: {name}")

    def set_default_moderation(self, name: str) -> None:
        if name not in self._moderation_providers:
            raise ValueError(f"Moderation provider '{name}' not registered")
        self._default_moderation = name

    def get_moderation(self, name: str | None = None) -> ModerationProvider:
        provider_name = name or self._default_moderation
        if provider_name is None:
            raise ValueError("No moderation provider registered")
        if provider_name not in self._moderation_providers:
            raise ValueError(f"Moderation provider '{provider_name}' not registered")
        if not self._moderation_configs[provider_name].enabled:
            raise ValueError(f"Moderation provider '{provider_name}' is disabled")
        return self._moderation_providers[provider_name]

    # ==================== Introspection ====================

    @property
    def llm_names(self) -> list[str]:
        return list(self._llm_providers)

    @property
    def moderation_names(self) -> list[str]:
        return list(self._moderation_providers)

    def __repr__(self) -> str:
        return (
            f"ProviderRegistry(llm={self.llm_names}, default_llm={self._default_llm}, "
            f"moderation={self.moderation_names})"
        )
