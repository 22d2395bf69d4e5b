"""
Convoflow Execution Engine

Runs a message through a compiled configuration:
input moderation, knowledge, prompt assembly, routing, model call,
output moderation.
"""

from .context import ExecutionContext, new_execution_id
from .engine import (
    CUSTOM_FILTER_REASON,
    INPUT_REFUSAL,
    MODE_AUTOMATED,
    MODE_OPERATOR_ASSIST,
    NO_FALLBACK_MESSAGE,
    OUTPUT_APOLOGY,
    OUTPUT_MODERATION_REASON,
    ExecutionEngine,
    ExecutionResult,
)
from .prompts import (
    DEFAULT_HISTORY_WINDOW,
    KNOWLEDGE_HEADER,
    build_messages,
    build_system_prompt,
    knowledge_context,
)
from .routing import ROUTE_DEFAULT, ROUTE_MATCHED, RouteDecision, evaluate_routing

__all__ = [
    # Engine
    "ExecutionEngine",
    "ExecutionResult",
    "INPUT_REFUSAL",
    "OUTPUT_APOLOGY",
    "NO_FALLBACK_MESSAGE",
    "OUTPUT_MODERATION_REASON",
    "CUSTOM_FILTER_REASON",
    "MODE_AUTOMATED",
    "MODE_OPERATOR_ASSIST",
    # Context
    "ExecutionContext",
    "new_execution_id",
    # Prompts
    "DEFAULT_HISTORY_WINDOW",
    "KNOWLEDGE_HEADER",
    "build_messages",
    "build_system_prompt",
    "knowledge_context",
    # Routing
    "ROUTE_MATCHED",
    "ROUTE_DEFAULT",
    "RouteDecision",
    "evaluate_routing",
]
