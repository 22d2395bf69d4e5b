"""
Observability for Convoflow.

Structured (JSON) logging for the runtime: loads, swaps, unloads and
executions are emitted as key-value records through a named standard
logger, so they can be shipped and searched without parsing prose.

Example output:
    {"timestamp": "2026-01-02T10:30:00+00:00", "level": "info",
     "message": "Workflow swapped", "tenant_id": "acme",
     "old_version": 2, "new_version": 3}
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol


class LogLevel(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class StructuredLogger(Protocol):
    """Loggers that take key-value context instead of formatted strings."""

    def debug(self, message: str, **context: Any) -> None:
        ...

    def info(self, message: str, **context: Any) -> None:
        ...

    def warning(self, message: str, **context: Any) -> None:
        ...

    def error(self, message: str, **context: Any) -> None:
        ...


# =============================================================================
# JSON Logger
# =============================================================================


@dataclass
class JSONLogger:
    """
    Structured logger that outputs JSON-formatted records.

    Each record includes timestamp, level, message, context fields and
    an optional correlation id.
    """

    name: str = "convoflow"
    correlation_id: str | None = None
    extra_context: dict[str, Any] = field(default_factory=dict)
    _python_logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._python_logger = logging.getLogger(self.name)

    def _log(self, level: LogLevel, message: str, context: dict[str, Any]) -> None:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.value,
            "message": message,
            **self.extra_context,
            **context,
        }
        if self.correlation_id:
            record["correlation_id"] = self.correlation_id

        log_method = getattr(self._python_logger, level.value)
        log_method(json.dumps(record, default=str))

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log(LogLevel.ERROR, message, context)

    def with_context(self, **extra: Any) -> "JSONLogger":
        """Create a new logger with additional context."""
        return JSONLogger(
            name=self.name,
            correlation_id=self.correlation_id,
            extra_context={**self.extra_context, **extra},
        )


# =============================================================================
# Runtime Logger
# =============================================================================


@dataclass
class RuntimeLogger:
    """
    Event helpers for the runtime registry and facade.

    Example:
        audit = RuntimeLogger()
        audit.workflow_swapped(tenant_id="acme", old_version=2, new_version=3)
        audit.execution_completed(tenant_id="acme", execution_id="exec_...",
                                  version=3, duration_ms=812.4)
    """

    inner: StructuredLogger = field(
        default_factory=lambda: JSONLogger(name="convoflow.runtime.audit")
    )

    # Workflow lifecycle
    def workflow_loaded(self, tenant_id: str, workflow_id: str, version: int) -> None:
        self.inner.info(
            "Workflow loaded", tenant_id=tenant_id, workflow_id=workflow_id, version=version
        )

    def workflow_swapped(
        self, tenant_id: str, old_version: int | None, new_version: int
    ) -> None:
        self.inner.info(
            "Workflow swapped",
            tenant_id=tenant_id,
            old_version=old_version,
            new_version=new_version,
        )

    def swap_failed(self, tenant_id: str, version: int | None, error: str) -> None:
        self.inner.error("Workflow swap failed", tenant_id=tenant_id, version=version, error=error)

    def workflow_unloaded(self, tenant_id: str, version: int | None) -> None:
        self.inner.info("Workflow unloaded", tenant_id=tenant_id, version=version)

    # Executions
    def execution_completed(
        self,
        tenant_id: str,
        execution_id: str,
        version: int,
        duration_ms: float,
        route: str | None = None,
        flagged: bool = False,
    ) -> None:
        self.inner.info(
            "Execution completed",
            tenant_id=tenant_id,
            execution_id=execution_id,
            version=version,
            duration_ms=round(duration_ms, 2),
            route=route,
            flagged=flagged,
        )

    def execution_failed(
        self,
        tenant_id: str,
        execution_id: str,
        error: str,
        error_type: str,
        version: int | None = None,
    ) -> None:
        self.inner.error(
            "Execution failed",
            tenant_id=tenant_id,
            execution_id=execution_id,
            version=version,
            error=error,
            error_type=error_type,
        )
