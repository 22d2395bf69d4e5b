"""
Convoflow Configuration

Environment-driven settings (``CONVOFLOW_*``).
"""

from .schemas import AppSettings
from .settings import get_settings

__all__ = [
    "AppSettings",
    "get_settings",
]
