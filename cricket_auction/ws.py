from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)

GLOBAL_CHANNEL = "_global"


class ConnectionManager:
    """Websocket subscribers grouped by auction id; lobby viewers share the global channel."""

    def __init__(self) -> None:
        self.channels: dict[str, set[WebSocket]] = {}
        self.subscriptions: dict[WebSocket, str] = {}

    @property
    def active_connections(self) -> int:
        return len(self.subscriptions)

    async def connect(self, websocket: WebSocket, auction_id: str | None) -> None:
        await websocket.accept()
        channel = auction_id or GLOBAL_CHANNEL
        self.channels.setdefault(channel, set()).add(websocket)
        self.subscriptions[websocket] = channel
        logger.debug("Subscriber joined %s (%s open)", channel, self.active_connections)

    def disconnect(self, websocket: WebSocket) -> None:
        channel = self.subscriptions.pop(websocket, None)
        if channel is None:
            return
        members = self.channels.get(channel)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self.channels[channel]

    async def _send(self, sockets: list[WebSocket], message: dict[str, Any]) -> None:
        for websocket in sockets:
            try:
                await websocket.send_json(message)
            except Exception:
                logger.debug("Dropping dead subscriber")
                self.disconnect(websocket)

    async def broadcast(self, message: dict[str, Any]) -> None:
        await self._send(list(self.subscriptions), message)

    async def broadcast_to(self, channel: str, message: dict[str, Any]) -> None:
        await self._send(list(self.channels.get(channel, ())), message)


class ChangeFeed:
    """Thread-safe hand-off from request/timer threads to the websocket loop."""

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self.loop: asyncio.AbstractEventLoop | None = None
        self.queue: asyncio.Queue | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop
        self.queue = asyncio.Queue()

    def unbind(self) -> None:
        self.loop = None
        self.queue = None

    def publish(self, event: str, payload: dict[str, Any], auction_id: int | None = None) -> None:
        if not self.manager.active_connections:
            return
        if self.queue is None or self.loop is None or self.loop.is_closed():
            return
        message = {"event": event, "payload": payload}
        if auction_id is not None:
            message["auctionId"] = auction_id
        asyncio.run_coroutine_threadsafe(self.queue.put(message), self.loop)

    async def run(self) -> None:
        while True:
            message = await self.queue.get()
            auction_id = message.get("auctionId")
            try:
                if auction_id is None:
                    await self.manager.broadcast(message)
                else:
                    await self.manager.broadcast_to(str(auction_id), message)
                    await self.manager.broadcast_to(GLOBAL_CHANNEL, message)
            except Exception:
                logger.exception("Failed to deliver %s", message.get("event"))


manager = ConnectionManager()
feed = ChangeFeed(manager)
