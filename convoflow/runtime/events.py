"""
Runtime events and their delivery.

After a successful swap or unload the registry publishes an event to the
real-time transport and to every local listener. Delivery happens after
the registry state has changed, so a slow or failing subscriber can never
affect whether the swap happened.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

if TYPE_CHECKING:
    from convoflow.providers.transport import RealtimeTransport

    from .models import RuntimeEntry

logger = logging.getLogger(__name__)

# Transport event names (browser-facing)
HOT_SWAP_EVENT = "workflow:hot-swap"
UNLOADED_EVENT = "workflow:unloaded"

# Local listener event names
SWAPPED = "workflow:swapped"
UNLOADED = "workflow:unloaded"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RuntimeEvent:
    """
    Event delivered to local listeners.

    Attributes:
        name: ``workflow:swapped`` or ``workflow:unloaded``
        tenant_id: Tenant the event concerns
        old_entry: Entry that was replaced or removed
        new_entry: Entry now serving traffic (swaps only)
        timestamp: When the registry state changed
    """

    name: str
    tenant_id: str
    old_entry: "RuntimeEntry | None" = None
    new_entry: "RuntimeEntry | None" = None
    timestamp: datetime = field(default_factory=_utc_now)

    @property
    def old_version(self) -> int | None:
        return self.old_entry.version if self.old_entry else None

    @property
    def new_version(self) -> int | None:
        return self.new_entry.version if self.new_entry else None

    def transport_payload(self) -> dict[str, Any]:
        """Payload sent to the tenant's browsers."""
        if self.name == SWAPPED:
            return {
                "oldVersion": self.old_version,
                "newVersion": self.new_version,
                "timestamp": self.timestamp.isoformat(),
            }
        return {"timestamp": self.timestamp.isoformat()}

    @property
    def transport_event(self) -> str:
        return HOT_SWAP_EVENT if self.name == SWAPPED else UNLOADED_EVENT


RuntimeListener = Callable[[RuntimeEvent], Union[Awaitable[None], None]]


class EventPublisher:
    """
    Fans runtime events out to a transport and local listeners.

    Every subscriber is bounded by ``timeout`` and isolated from the
    others; failures are logged and dropped. ``emit`` runs delivery in a
    background task so the caller never waits on a subscriber.
    """

    def __init__(
        self,
        transport: "RealtimeTransport | None" = None,
        timeout: float = 5.0,
    ):
        self._transport = transport
        self._timeout = timeout
        self._listeners: list[RuntimeListener] = []
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: RuntimeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RuntimeListener) -> bool:
        try:
            self._listeners.remove(listener)
            return True
        except ValueError:
            return False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def clear(self) -> None:
        self._listeners.clear()

    def emit(self, event: RuntimeEvent) -> "asyncio.Task[None]":
        """Start delivering ``event`` without waiting for it."""
        task = asyncio.create_task(self.publish(event))
        self._pending.add(task)
        task.add_done_callback(self._delivery_done)
        return task

    async def drain(self) -> None:
        """Wait for every delivery started by ``emit``."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def cancel_pending(self) -> int:
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        return len(pending)

    def _delivery_done(self, task: "asyncio.Task[None]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[runtime] Event delivery crashed | error={error}", exc_info=error)

    async def publish(self, event: RuntimeEvent) -> None:
        deliveries: list[Awaitable[Any]] = []
        targets: list[str] = []

        if self._transport is not None:
            deliveries.append(
                self._transport.broadcast_to_tenant(
                    event.tenant_id, event.transport_event, event.transport_payload()
                )
            )
            targets.append("transport")

        for listener in list(self._listeners):
            deliveries.append(self._call_listener(listener, event))
            targets.append(getattr(listener, "__name__", repr(listener)))

        if not deliveries:
            return

        bounded = [asyncio.wait_for(d, timeout=self._timeout) for d in deliveries]
        results = await asyncio.gather(*bounded, return_exceptions=True)

        for target, result in zip(targets, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(
                    f"[runtime] Event delivery timed out | tenant={event.tenant_id} | "
                    f"event={event.name} | target={target}"
                )
            elif isinstance(result, BaseException):
                logger.warning(
                    f"[runtime] Event delivery failed | tenant={event.tenant_id} | "
                    f"event={event.name} | target={target} | error={result}"
                )

    @staticmethod
    async def _call_listener(listener: RuntimeListener, event: RuntimeEvent) -> None:
        result = listener(event)
        if inspect.isawaitable(result):
            await result
