"""
Real-time Transports for Convoflow.
"""

from .base import NullTransport, RealtimeTransport
from .webhook import WebhookTransport

__all__ = [
    "RealtimeTransport",
    "NullTransport",
    "WebhookTransport",
]
