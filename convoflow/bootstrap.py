"""
Composition root for Convoflow.

Builds the provider registry, runtime and workflow service from
AppSettings. Nothing here is global: callers hold the returned objects
and pass them where they are needed.

Usage:
    settings = get_settings()
    runtime = build_runtime(settings)
    workflows = build_workflow_service(settings, runtime)
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from convoflow.compiler import ChainCompiler
from convoflow.engine import ExecutionEngine
from convoflow.providers import (
    AnthropicLLMProvider,
    HTTPKnowledgeConnector,
    LLMConfig,
    NoopModerationProvider,
    NullTransport,
    OpenAILLMProvider,
    OpenAIModerationProvider,
    ProviderRegistry,
    WebhookTransport,
)
from convoflow.runtime import EventPublisher, RuntimeRegistry, WorkflowRuntime
from convoflow.versioning import InMemoryWorkflowStore, MongoWorkflowStore, WorkflowService

if TYPE_CHECKING:
    from convoflow.assist import OperatorAssist
    from convoflow.config import AppSettings
    from convoflow.providers import KnowledgeConnector, RealtimeTransport
    from convoflow.versioning import WorkflowStore

logger = logging.getLogger(__name__)


def _secret(value) -> str | None:
    return value.get_secret_value() if value else None


def build_providers(settings: "AppSettings") -> ProviderRegistry:
    """Register every provider the settings have credentials for."""
    providers = ProviderRegistry()
    openai_key = _secret(settings.openai_api_key)
    anthropic_key = _secret(settings.anthropic_api_key)

    def model_override(provider: str) -> dict[str, str]:
        # llm_model only applies to the default provider
        if settings.llm_model and settings.default_llm_provider == provider:
            return {"model": settings.llm_model}
        return {}

    # LLM providers
    if openai_key:
        providers.register_llm(
            "openai", OpenAILLMProvider(api_key=openai_key, **model_override("openai"))
        )
    if anthropic_key:
        providers.register_llm(
            "anthropic", AnthropicLLMProvider(api_key=anthropic_key, **model_override("anthropic"))
        )

    # Moderation providers
    if openai_key and settings.moderation_enabled:
        providers.register_moderation("openai", OpenAIModerationProvider(api_key=openai_key))
    providers.register_moderation("noop", NoopModerationProvider())

    # Defaults
    if settings.default_llm_provider in providers.llm_names:
        providers.set_default_llm(settings.default_llm_provider)

    logger.info(f"[bootstrap] Providers ready | {providers!r}")
    return providers


def build_transport(settings: "AppSettings") -> "RealtimeTransport":
    if settings.transport_webhook_url:
        return WebhookTransport(
            url=settings.transport_webhook_url,
            secret=_secret(settings.transport_webhook_secret),
            timeout=settings.notification_timeout_seconds,
        )
    return NullTransport()


def build_knowledge(settings: "AppSettings") -> "KnowledgeConnector | None":
    if settings.knowledge_service_url:
        return HTTPKnowledgeConnector(
            base_url=settings.knowledge_service_url,
            api_key=_secret(settings.knowledge_api_key),
            timeout=settings.knowledge_timeout_seconds,
        )
    logger.warning("[bootstrap] No knowledge service configured; knowledge nodes get no context")
    return None


def build_runtime(
    settings: "AppSettings",
    providers: ProviderRegistry | None = None,
    assist: "OperatorAssist | None" = None,
) -> WorkflowRuntime:
    """
    Wire engine, registry and transport into a WorkflowRuntime.

    Raises:
        ValueError: No LLM provider is configured
    """
    providers = providers or build_providers(settings)

    engine = ExecutionEngine(
        llm=providers.get_llm(),
        moderation=providers.get_moderation(),
        knowledge=build_knowledge(settings),
        llm_config=LLMConfig.from_settings(settings),
        history_window=settings.history_window,
        model_timeout=settings.model_timeout_seconds,
        knowledge_timeout=settings.knowledge_timeout_seconds,
        moderation_timeout=settings.moderation_timeout_seconds,
    )
    registry = RuntimeRegistry(
        compiler=ChainCompiler(),
        publisher=EventPublisher(
            transport=build_transport(settings),
            timeout=settings.notification_timeout_seconds,
        ),
    )
    return WorkflowRuntime(engine=engine, registry=registry, assist=assist)


def build_store(settings: "AppSettings") -> "WorkflowStore":
    mongodb_url = _secret(settings.mongodb_url)
    if mongodb_url:
        return MongoWorkflowStore(mongodb_url, database_name=settings.mongodb_database)
    logger.warning("[bootstrap] No MongoDB configured; workflows are kept in memory")
    return InMemoryWorkflowStore()


def build_workflow_service(
    settings: "AppSettings",
    runtime: WorkflowRuntime | None = None,
    store: "WorkflowStore | None" = None,
) -> WorkflowService:
    return WorkflowService(store or build_store(settings), runtime=runtime)
