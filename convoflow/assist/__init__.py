"""
Convoflow Operator Assist

Human hand-off: assisted conversations receive engine answers as
operator-facing suggestions only.
"""

from .base import InMemoryOperatorAssist, OperatorAssist, Suggestion

__all__ = [
    "OperatorAssist",
    "InMemoryOperatorAssist",
    "Suggestion",
]
