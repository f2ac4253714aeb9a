"""
Notification dispatch for connection transitions.

Dispatch is best-effort and happens after the transition has committed.
A failing or slow backend is logged and otherwise ignored; it never
changes the caller-visible result of the operation that triggered it.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
import structlog

from app.core.config import Settings, get_settings
from app.core.redis import get_redis
from cartcare_shared.schemas.connections import ConnectionEvent

log = structlog.get_logger()


class NotificationDispatcher:
    """Send-only side channel for connection events."""

    name = "base"

    async def dispatch(self, event: ConnectionEvent) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class LogNotificationDispatcher(NotificationDispatcher):
    """Records the event in the log stream only."""

    name = "log"

    async def dispatch(self, event: ConnectionEvent) -> None:
        log.info(
            "notification.logged",
            event_kind=event.event_kind.value,
            connection_id=str(event.connection_id),
            store_org_id=str(event.store_org_id),
            provider_org_id=str(event.provider_org_id),
        )


class RedisNotificationDispatcher(NotificationDispatcher):
    """Publishes events to a Redis pub/sub channel for downstream mailers."""

    name = "redis"

    def __init__(self, channel: str):
        self._channel = channel

    async def dispatch(self, event: ConnectionEvent) -> None:
        redis = await get_redis()
        await redis.publish(self._channel, event.model_dump_json())


class WebhookNotificationDispatcher(NotificationDispatcher):
    """POSTs events to the connection-notification function."""

    name = "webhook"

    def __init__(self, url: str, token: str = "", timeout: float = 3.0):
        self._url = url
        self._token = token
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def dispatch(self, event: ConnectionEvent) -> None:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        resp = await self._get_client().post(
            self._url, json=event.webhook_payload(), headers=headers
        )
        resp.raise_for_status()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    if settings.notification_backend == "redis":
        return RedisNotificationDispatcher(settings.notification_channel)
    if settings.notification_backend == "webhook":
        if not settings.notification_webhook_url:
            log.warning("notification.webhook_url_missing", fallback="log")
            return LogNotificationDispatcher()
        return WebhookNotificationDispatcher(
            settings.notification_webhook_url,
            settings.notification_webhook_token,
            settings.notification_timeout_seconds,
        )
    return LogNotificationDispatcher()


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = build_dispatcher(get_settings())
    return _dispatcher


async def close_dispatcher() -> None:
    global _dispatcher
    if _dispatcher is not None:
        await _dispatcher.close()
        _dispatcher = None


async def notify_safely(
    dispatcher: NotificationDispatcher,
    event: ConnectionEvent,
    timeout: Optional[float] = None,
) -> bool:
    """Dispatch with a short timeout. Returns False (and logs) on any failure."""
    timeout = timeout if timeout is not None else get_settings().notification_timeout_seconds
    try:
        await asyncio.wait_for(dispatcher.dispatch(event), timeout=timeout)
    except asyncio.TimeoutError:
        log.warning(
            "notification.timeout",
            backend=dispatcher.name,
            event_kind=event.event_kind.value,
            store_org_id=str(event.store_org_id),
            provider_org_id=str(event.provider_org_id),
            timeout=timeout,
        )
        return False
    except Exception as exc:
        log.warning(
            "notification.failed",
            backend=dispatcher.name,
            event_kind=event.event_kind.value,
            store_org_id=str(event.store_org_id),
            provider_org_id=str(event.provider_org_id),
            error=str(exc),
        )
        return False
    return True
