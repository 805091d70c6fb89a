"""Realtime change feed over the Phoenix channel websocket protocol.

Joins one channel per ``(table, filter)`` pair and forwards every
``postgres_changes`` message to subscribers as a ``ChangeEvent``. Payload
contents are ignored beyond the table and event type: subscribers treat
events purely as "something changed" triggers.

Example:
    >>> feed = RealtimeChangeFeed(settings)
    >>> sub = await feed.subscribe("mood_entries", eq("user_id", uid), on_change)
    >>> sub.unsubscribe()
    >>> await feed.close()
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import websockets

from mindpal.backend.client import ChangeListener
from mindpal.backend.types import ChangeEvent, Filter
from mindpal.config import BackendSettings
from mindpal.utils.async_utils import spawn

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0.0"
PHOENIX_TOPIC = "phoenix"

Connector = Callable[[str], Awaitable[Any]]


@dataclass
class _Channel:
    topic: str
    table: str
    filter: Filter | None
    listeners: list[ChangeListener] = field(default_factory=list)
    joined: bool = False

    def join_payload(self, access_token: str | None) -> dict[str, Any]:
        change: dict[str, Any] = {"event": "*", "schema": "public", "table": self.table}
        if self.filter is not None:
            change["filter"] = f"{self.filter.column}={self.filter.render()}"
        payload: dict[str, Any] = {"config": {"postgres_changes": [change]}}
        if access_token:
            payload["access_token"] = access_token
        return payload


class ChannelSubscription:
    """Handle for one listener on one channel."""

    def __init__(self, feed: RealtimeChangeFeed, topic: str, listener: ChangeListener) -> None:
        self._feed = feed
        self._topic = topic
        self._listener = listener
        self._active = True

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._feed._remove_listener(self._topic, self._listener)


def channel_topic(table: str, filter: Filter | None) -> str:
    """Topic name for a table channel, e.g. ``realtime:mood_entries:user_id=eq.42``."""
    if filter is None:
        return f"realtime:{table}"
    return f"realtime:{table}:{filter.column}={filter.render()}"


class RealtimeChangeFeed:
    """Phoenix-channel websocket client for table change notifications."""

    def __init__(
        self,
        settings: BackendSettings,
        heartbeat_interval: float = 30.0,
        connector: Connector | None = None,
    ) -> None:
        self._url = f"{settings.realtime_url}?apikey={settings.anon_key}&vsn={PROTOCOL_VERSION}"
        self._heartbeat_interval = heartbeat_interval
        self._connector = connector or websockets.connect
        self._ws: Any = None
        self._refs = itertools.count(1)
        self._channels: dict[str, _Channel] = {}
        self._access_token: str | None = None
        self._reader_task: asyncio.Task[Any] | None = None
        self._heartbeat_task: asyncio.Task[Any] | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def set_access_token(self, token: str | None) -> None:
        self._access_token = token
        if self._ws is None or token is None:
            return
        for channel in self._channels.values():
            if channel.joined:
                spawn(
                    self._push(channel.topic, "access_token", {"access_token": token}),
                    "Realtime token push failed",
                    logger,
                )

    async def subscribe(
        self,
        table: str,
        filter: Filter | None,
        listener: ChangeListener,
    ) -> ChannelSubscription:
        topic = channel_topic(table, filter)
        channel = self._channels.get(topic)
        if channel is None:
            channel = _Channel(topic=topic, table=table, filter=filter)
            self._channels[topic] = channel
        channel.listeners.append(listener)

        await self._ensure_connected()
        if not channel.joined:
            await self._push(topic, "phx_join", channel.join_payload(self._access_token))
            channel.joined = True
            logger.debug("Joined realtime channel %s", topic)

        return ChannelSubscription(self, topic, listener)

    def _remove_listener(self, topic: str, listener: ChangeListener) -> None:
        channel = self._channels.get(topic)
        if channel is None:
            return
        if listener in channel.listeners:
            channel.listeners.remove(listener)
        if channel.listeners:
            return
        del self._channels[topic]
        if channel.joined and self._ws is not None:
            spawn(self._push(topic, "phx_leave", {}), "Realtime leave failed", logger)

    async def _ensure_connected(self) -> None:
        async with self._connect_lock:
            if self._ws is not None:
                return
            self._ws = await self._connector(self._url)
            self._reader_task = spawn(self._read_loop(), "Realtime reader failed", logger)
            self._heartbeat_task = spawn(
                self._heartbeat_loop(), "Realtime heartbeat failed", logger
            )
            logger.info("Realtime feed connected")

    async def _push(self, topic: str, event: str, payload: dict[str, Any]) -> None:
        if self._ws is None:
            return
        message = {"topic": topic, "event": event, "payload": payload, "ref": str(next(self._refs))}
        await self._ws.send(json.dumps(message))

    async def _heartbeat_loop(self) -> None:
        while self._ws is not None:
            await asyncio.sleep(self._heartbeat_interval)
            await self._push(PHOENIX_TOPIC, "heartbeat", {})

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    message = json.loads(raw)
                except (TypeError, ValueError):
                    logger.debug("Ignoring non-JSON realtime frame")
                    continue
                self.handle_message(message)
        except websockets.ConnectionClosed as e:
            logger.warning("Realtime connection closed: %s", e)
        finally:
            self._ws = None
            for channel in self._channels.values():
                channel.joined = False

    def handle_message(self, message: dict[str, Any]) -> None:
        """Dispatch one decoded frame to the matching channel's listeners."""
        topic = message.get("topic")
        event = message.get("event")
        payload = message.get("payload") or {}

        if event == "phx_reply":
            if payload.get("status") == "error":
                logger.warning("Realtime channel %s rejected: %s", topic, payload.get("response"))
            return
        if event == "phx_error":
            logger.warning("Realtime channel %s errored", topic)
            channel = self._channels.get(topic)
            if channel is not None:
                channel.joined = False
            return
        if event != "postgres_changes":
            return

        channel = self._channels.get(topic)
        if channel is None:
            return
        data = payload.get("data") or {}
        change = ChangeEvent(
            table=data.get("table", channel.table),
            event_type=data.get("type", "*"),
            commit_timestamp=data.get("commit_timestamp"),
            raw=payload,
        )
        for listener in list(channel.listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Realtime listener failed for %s", topic)

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        for task in (self._heartbeat_task, self._reader_task):
            if task is not None and not task.done():
                task.cancel()
        self._channels.clear()
        if ws is not None:
            await ws.close()
            logger.info("Realtime feed closed")
