"""
Settings loading.

The only place Convoflow reads the environment. Everything else
receives configuration through constructors.
"""
from __future__ import annotations

import os
from functools import lru_cache

from .schemas import AppSettings


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings from environment.

    Uses lru_cache for singleton pattern.
    """
    return AppSettings(
        # Service
        service_name=os.getenv("CONVOFLOW_SERVICE_NAME", "convoflow"),
        environment=os.getenv("CONVOFLOW_ENVIRONMENT", "development"),
        debug=_env_bool("CONVOFLOW_DEBUG"),
        log_level=os.getenv("CONVOFLOW_LOG_LEVEL", "INFO"),
        # Provider API keys
        openai_api_key=os.getenv("CONVOFLOW_OPENAI_API_KEY"),
        anthropic_api_key=os.getenv("CONVOFLOW_ANTHROPIC_API_KEY"),
        # Provider selection
        default_llm_provider=os.getenv("CONVOFLOW_DEFAULT_LLM_PROVIDER", "openai"),
        llm_model=os.getenv("CONVOFLOW_LLM_MODEL") or None,
        moderation_enabled=_env_bool("CONVOFLOW_MODERATION_ENABLED", "true"),
        # Sampling
        temperature=float(os.getenv("CONVOFLOW_TEMPERATURE", "0.7")),
        max_tokens=int(os.getenv("CONVOFLOW_MAX_TOKENS", "1000")),
        history_window=int(os.getenv("CONVOFLOW_HISTORY_WINDOW", "10")),
        # Timeouts
        model_timeout_seconds=float(os.getenv("CONVOFLOW_MODEL_TIMEOUT_SECONDS", "30")),
        knowledge_timeout_seconds=float(os.getenv("CONVOFLOW_KNOWLEDGE_TIMEOUT_SECONDS", "10")),
        moderation_timeout_seconds=float(os.getenv("CONVOFLOW_MODERATION_TIMEOUT_SECONDS", "5")),
        notification_timeout_seconds=float(
            os.getenv("CONVOFLOW_NOTIFICATION_TIMEOUT_SECONDS", "5")
        ),
        # MongoDB
        mongodb_url=os.getenv("CONVOFLOW_MONGODB_URL"),
        mongodb_database=os.getenv("CONVOFLOW_MONGODB_DATABASE", "convoflow"),
        # Collaborators
        transport_webhook_url=os.getenv("CONVOFLOW_TRANSPORT_WEBHOOK_URL", ""),
        transport_webhook_secret=os.getenv("CONVOFLOW_TRANSPORT_WEBHOOK_SECRET"),
        knowledge_service_url=os.getenv("CONVOFLOW_KNOWLEDGE_SERVICE_URL", ""),
        knowledge_api_key=os.getenv("CONVOFLOW_KNOWLEDGE_API_KEY"),
    )
