"""Outbound side of the event bridge.

The core only ever talks to a ``Notifier``. ``ConnectionManager`` is the
WebSocket implementation: every connection owns an outbox queue that a writer
task drains, so ``send``/``broadcast`` never suspend the caller.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect

from .errors import StaleReference
from .models import new_id

logger = logging.getLogger(__name__)

AGENTS_GROUP = "agents"
CUSTOMERS_GROUP = "customers"


class Notifier(ABC):
    @abstractmethod
    def send(self, connection_id: str, event: str, data: dict[str, Any]) -> None:
        """Deliver one event to one connection; raises StaleReference if it is gone."""
        raise NotImplementedError

    def deliver(self, connection_id: str, event: str, data: dict[str, Any]) -> bool:
        try:
            self.send(connection_id, event, data)
        except StaleReference:
            logger.debug("[WS] dropped %s for stale connection %s", event, connection_id)
            return False
        return True

    @abstractmethod
    def broadcast(self, group: str, event: str, data: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def join(self, connection_id: str, group: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def leave(self, connection_id: str, group: str) -> None:
        raise NotImplementedError


class ConnectionManager(Notifier):
    def __init__(self) -> None:
        self._sockets: dict[str, WebSocket] = {}
        self._outboxes: dict[str, asyncio.Queue] = {}
        self._groups: dict[str, set[str]] = defaultdict(set)

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = new_id()
        self._sockets[connection_id] = websocket
        self._outboxes[connection_id] = asyncio.Queue()
        logger.info("[WS] connected %s", connection_id)
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)
        outbox = self._outboxes.pop(connection_id, None)
        if outbox is not None:
            outbox.put_nowait(None)
        for members in self._groups.values():
            members.discard(connection_id)
        logger.info("[WS] disconnected %s", connection_id)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._sockets

    # -------- Notifier --------
    def send(self, connection_id: str, event: str, data: dict[str, Any]) -> None:
        outbox = self._outboxes.get(connection_id)
        if outbox is None:
            raise StaleReference(connection_id)
        outbox.put_nowait({"event": event, "data": data})

    def broadcast(self, group: str, event: str, data: dict[str, Any]) -> None:
        for connection_id in list(self._groups.get(group, ())):
            outbox = self._outboxes.get(connection_id)
            if outbox is not None:
                outbox.put_nowait({"event": event, "data": data})

    def join(self, connection_id: str, group: str) -> None:
        if connection_id not in self._sockets:
            raise StaleReference(connection_id)
        self._groups[group].add(connection_id)

    def leave(self, connection_id: str, group: str) -> None:
        self._groups.get(group, set()).discard(connection_id)

    # -------- writer --------
    async def pump(self, connection_id: str) -> None:
        """Drain the connection's outbox onto its socket until it is closed."""
        websocket: Optional[WebSocket] = self._sockets.get(connection_id)
        outbox = self._outboxes.get(connection_id)
        if websocket is None or outbox is None:
            return
        while True:
            frame = await outbox.get()
            if frame is None:
                return
            try:
                await websocket.send_json(frame)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug("[WS] send to %s failed: %s", connection_id, e)
                return
