"""
Webhook Transport for Convoflow.

Forwards tenant broadcasts to the real-time gateway over HTTP. The
gateway owns the browser sockets.

Request:
    POST {url}
    {"tenantId": "...", "event": "workflow:hot-swap", "payload": {...}}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class WebhookTransport:
    """
    Best-effort HTTP broadcaster.

    Failures are logged and swallowed: a broadcast must never fail the
    operation that triggered it.
    """

    def __init__(
        self,
        url: str,
        secret: str | None = None,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._url = url
        self._secret = secret
        self._timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        return {"X-Convoflow-Secret": self._secret} if self._secret else {}

    async def broadcast_to_tenant(
        self,
        tenant_id: str,
        event_name: str,
        payload: dict[str, Any],
    ) -> None:
        try:
            client = await self._get_client()
            response = await client.post(
                self._url,
                json={"tenantId": tenant_id, "event": event_name, "payload": payload},
                headers=self._headers(),
            )
            if response.status_code >= 400:
                logger.warning(
                    f"[transport] Gateway rejected event | tenant={tenant_id} | "
                    f"event={event_name} | status={response.status_code}"
                )
        except httpx.TimeoutException:
            logger.warning(f"[transport] Broadcast timed out | tenant={tenant_id} | event={event_name}")
        except httpx.HTTPError as e:
            logger.warning(
                f"[transport] Broadcast failed | tenant={tenant_id} | event={event_name} | error={e}"
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
