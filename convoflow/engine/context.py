"""
Execution Context for Convoflow.

Request-scoped state for one execution of a compiled workflow: ids for
tracing, caller-supplied context, stage timings and the routing decision.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from .routing import RouteDecision


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_execution_id() -> str:
    return f"exec_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class ExecutionContext:
    """
    Request-scoped context for a single message.

    Created by the runtime (or by the caller when driving the engine
    directly) and threaded through every stage.
    """

    execution_id: str = field(default_factory=new_execution_id)
    started_at: datetime = field(default_factory=_utc_now)

    tenant_id: str | None = None
    conversation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    # Audit trail
    stage_timings: dict[str, float] = field(default_factory=dict)
    route: "RouteDecision | None" = None

    @classmethod
    def from_mapping(cls, context: Mapping[str, Any] | None, **overrides: Any) -> "ExecutionContext":
        """Build from the loose dict the API layer passes in."""
        context = dict(context or {})
        conversation_id = context.pop("conversationId", None) or context.pop("conversation_id", None)
        return cls(conversation_id=conversation_id, metadata=context, **overrides)

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since execution started."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def record_timing(self, stage: str, duration_ms: float) -> None:
        self.stage_timings[stage] = duration_ms

    def to_audit_dict(self) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.elapsed_ms,
            "tenant_id": self.tenant_id,
            "conversation_id": self.conversation_id,
            "stage_timings": dict(self.stage_timings),
            "route": self.route.to_dict() if self.route else None,
        }
