"""
Convoflow Runtime

One live compiled configuration per tenant, swapped atomically when a
new version is published.

Components:
    - RuntimeRegistry: tenant -> RuntimeEntry map (load, hot_swap, unload)
    - EventPublisher: swap/unload notifications to transport and listeners
    - WorkflowRuntime: facade exposing compile/validate/load/swap/execute
"""

from .events import (
    HOT_SWAP_EVENT,
    SWAPPED,
    UNLOADED,
    UNLOADED_EVENT,
    EventPublisher,
    RuntimeEvent,
    RuntimeListener,
)
from .models import (
    STATUS_ACTIVE,
    STATUS_NOT_LOADED,
    EntryCounter,
    ExecutionStats,
    RuntimeEntry,
    RuntimeWorkflow,
    SwapResult,
    TenantStatus,
    WorkflowInput,
)
from .registry import RuntimeRegistry
from .service import WorkflowRuntime

__all__ = [
    # Facade
    "WorkflowRuntime",
    # Registry
    "RuntimeRegistry",
    "RuntimeEntry",
    "RuntimeWorkflow",
    "WorkflowInput",
    "EntryCounter",
    "ExecutionStats",
    "TenantStatus",
    "SwapResult",
    "STATUS_ACTIVE",
    "STATUS_NOT_LOADED",
    # Events
    "EventPublisher",
    "RuntimeEvent",
    "RuntimeListener",
    "SWAPPED",
    "UNLOADED",
    "HOT_SWAP_EVENT",
    "UNLOADED_EVENT",
]
