"""
Real-time Transport Protocol for Convoflow.

Announces runtime events (``workflow:hot-swap``, ``workflow:unloaded``)
to the browsers of a tenant. Delivery is best-effort; the runtime never
depends on it for correctness.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class RealtimeTransport(Protocol):
    """Protocol for tenant broadcast transports."""

    async def broadcast_to_tenant(
        self,
        tenant_id: str,
        event_name: str,
        payload: dict[str, Any],
    ) -> None:
        ...


class NullTransport:
    """Drops every event. Used when no transport is configured."""

    async def broadcast_to_tenant(
        self,
        tenant_id: str,
        event_name: str,
        payload: dict[str, Any],
    ) -> None:
        logger.debug(f"[transport] Dropped event | tenant={tenant_id} | event={event_name}")
