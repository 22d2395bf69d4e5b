"""
Configuration Schemas for Convoflow.

Security:
    Sensitive fields use SecretStr to prevent accidental logging
    of credentials. Access the value with `.get_secret_value()`.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr


class AppSettings(BaseModel):
    """
    Application settings model.

    Used for type-safe settings access.

    Security:
        API keys use SecretStr to prevent accidental logging.
        Access secret values with: settings.openai_api_key.get_secret_value()
    """

    # Service identity
    service_name: str = "convoflow"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Provider API keys (SecretStr prevents accidental logging)
    openai_api_key: SecretStr | None = None
    anthropic_api_key: SecretStr | None = None

    # Provider selection
    default_llm_provider: str = Field(default="openai", description="openai or anthropic")
    llm_model: str | None = Field(default=None, description="Override the provider's default model")
    moderation_enabled: bool = Field(default=True, description="Use the OpenAI moderation endpoint")

    # Sampling
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=1000, ge=1)
    history_window: int = Field(default=10, ge=0)

    # Timeouts (seconds)
    model_timeout_seconds: float = Field(default=30.0, gt=0)
    knowledge_timeout_seconds: float = Field(default=10.0, gt=0)
    moderation_timeout_seconds: float = Field(default=5.0, gt=0)
    notification_timeout_seconds: float = Field(default=5.0, gt=0)

    # MongoDB (in-memory store when unset)
    mongodb_url: SecretStr | None = None
    mongodb_database: str = "convoflow"

    # Collaborators
    transport_webhook_url: str = Field(default="", description="Runtime event webhook")
    transport_webhook_secret: SecretStr | None = None
    knowledge_service_url: str = Field(default="", description="Knowledge search service")
    knowledge_api_key: SecretStr | None = None

    class Config:
        extra = "ignore"
