"""
Convoflow - workflow compilation and hot-swappable runtime for multi-tenant conversational agents.

Operators draw a graph of behavior nodes (persona, knowledge, moderation,
router, fallback); Convoflow turns it into a live pipeline:

- **Graph Validator**: every structural problem reported at once
- **Execution Planner**: entry point and topological order
- **Chain Compiler**: immutable configuration with a platform-enforced root prompt
- **Runtime Registry**: one live configuration per tenant, hot-swapped atomically
- **Execution Engine**: moderation, knowledge, routing and the model call
- **Versioning**: draft -> published -> archived, with rollback

Quick Start:
    >>> from convoflow import ExecutionEngine, WorkflowRuntime
    >>> from convoflow.providers import OpenAILLMProvider
    >>>
    >>> runtime = WorkflowRuntime(engine=ExecutionEngine(llm=OpenAILLMProvider(api_key=key)))
    >>> runtime.load_workflow("acme", {"id": "wf-1", "nodes": nodes, "edges": edges})
    >>> result = await runtime.execute_workflow("acme", "Hi there!")
"""

__version__ = "0.1.0"
__author__ = "Kuzushi Labs"
__license__ = "MIT"

# Core exports for convenient imports
from convoflow.compiler import ChainCompiler, CompiledConfiguration
from convoflow.engine import ExecutionEngine, ExecutionResult
from convoflow.errors import (
    CompilationError,
    ConvoflowError,
    ExecutionError,
    PlanningError,
    RuntimeNotLoadedError,
    ValidationError,
)
from convoflow.graph import ExecutionPlanner, GraphValidator
from convoflow.runtime import RuntimeRegistry, WorkflowRuntime
from convoflow.versioning import WorkflowService

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core
    "GraphValidator",
    "ExecutionPlanner",
    "ChainCompiler",
    "CompiledConfiguration",
    "ExecutionEngine",
    "ExecutionResult",
    "RuntimeRegistry",
    "WorkflowRuntime",
    "WorkflowService",
    # Errors
    "ConvoflowError",
    "ValidationError",
    "PlanningError",
    "CompilationError",
    "RuntimeNotLoadedError",
    "ExecutionError",
]
