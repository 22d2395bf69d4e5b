"""
Moderation Providers for Convoflow.
"""

from .base import ModerationProvider, ModerationResult, NoopModerationProvider
from .openai import OpenAIModerationProvider

__all__ = [
    "ModerationProvider",
    "ModerationResult",
    "NoopModerationProvider",
    "OpenAIModerationProvider",
]
