# alapio/realtime/channels.py

import logging
import uuid
from typing import Any, Dict, Iterable, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def envelope(event: str, data: Any) -> dict:
    return {"event": event, "data": data}


class ChannelHub:
    """
    Live sockets plus named channels a socket can subscribe to.

    Sending to a channel reaches every subscribed socket; the hub knows
    nothing about users, only names.
    """

    def __init__(self):
        self._sockets: Dict[str, WebSocket] = {}
        self._channels: Dict[str, Set[str]] = {}
        self._memberships: Dict[str, Set[str]] = {}

    def add(self, websocket: WebSocket) -> str:
        connection_id = uuid.uuid4().hex
        self._sockets[connection_id] = websocket
        self._memberships[connection_id] = set()
        return connection_id

    def remove(self, connection_id: str):
        self._sockets.pop(connection_id, None)
        for name in self._memberships.pop(connection_id, set()):
            members = self._channels.get(name)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self._channels[name]

    def subscribe(self, connection_id: str, name: str):
        if connection_id not in self._sockets:
            return
        self._channels.setdefault(name, set()).add(connection_id)
        self._memberships[connection_id].add(name)

    def unsubscribe(self, connection_id: str, name: str):
        members = self._channels.get(name)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._channels[name]
        self._memberships.get(connection_id, set()).discard(name)

    def members(self, name: str) -> Set[str]:
        return set(self._channels.get(name, ()))

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._sockets

    async def send(self, connection_id: str, event: str, data: Any) -> bool:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(envelope(event, data))
            return True
        except Exception as e:
            logger.error(f"Failed to send '{event}' to connection {connection_id}: {e}")
            self.remove(connection_id)
            return False

    async def emit_to(self, name: str, event: str, data: Any, exclude: Optional[str] = None) -> int:
        """Send to every subscriber of a channel. Returns the number reached."""
        return await self._fan_out(self.members(name), event, data, exclude)

    async def broadcast(self, event: str, data: Any, exclude: Optional[str] = None) -> int:
        return await self._fan_out(list(self._sockets), event, data, exclude)

    async def _fan_out(self, connection_ids: Iterable[str], event: str, data: Any, exclude: Optional[str]) -> int:
        # Snapshot taken by the caller; sends yield and membership may change meanwhile
        delivered = 0
        for connection_id in connection_ids:
            if connection_id == exclude:
                continue
            if await self.send(connection_id, event, data):
                delivered += 1
        return delivered

    def __len__(self):
        return len(self._sockets)
