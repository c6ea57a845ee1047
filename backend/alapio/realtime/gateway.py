# alapio/realtime/gateway.py

"""
Realtime gateway.

One WebSocket per client. Every frame is a JSON envelope
``{"event": <name>, "data": <payload>}`` in both directions.

A connection starts unbound. ``join`` binds it to a user id, subscribes it
to the channel named after that id and announces the user as online to every
connection. ``send_message`` is persisted first and then relayed to the
receiver's channel; the sender gets a ``message_ack``. ``typing`` is relayed
without touching storage. Closing the socket records ``last_seen`` and
announces the user as offline once their last connection is gone.
"""

import asyncio
import json
import logging
from typing import Any, Optional

from fastapi import WebSocket
from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from alapio.core.errors import EventValidationError, StorageError, UnauthenticatedEventError
from alapio.core.message import append_message
from alapio.core.user import touch_last_seen
from alapio.infra.database import db_session
from alapio.models.message import Message
from alapio.realtime.channels import ChannelHub
from alapio.realtime.presence import PresenceRegistry
from alapio.schemas import MessageIn, TypingIn

logger = logging.getLogger(__name__)


class Events:
    # client -> server
    JOIN = "join"
    SEND_MESSAGE = "send_message"
    TYPING = "typing"
    PING = "ping"

    # server -> client
    RECEIVE_MESSAGE = "receive_message"
    USER_TYPING = "user_typing"
    USER_STATUS = "user_status"
    MESSAGE_ACK = "message_ack"
    PONG = "pong"
    ERROR = "error"


ONLINE = "online"
OFFLINE = "offline"

IDLE_CLOSE_CODE = 1001


class Gateway:
    def __init__(
        self,
        session_factory: sessionmaker,
        hub: Optional[ChannelHub] = None,
        presence: Optional[PresenceRegistry] = None,
        max_message_bytes: int = 100_000_000,
        idle_timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.hub = hub or ChannelHub()
        self.presence = presence or PresenceRegistry()
        self.max_message_bytes = max_message_bytes
        self.idle_timeout = idle_timeout if idle_timeout and idle_timeout > 0 else None

        self.handlers = {
            Events.JOIN: self.handle_join,
            Events.SEND_MESSAGE: self.handle_send_message,
            Events.TYPING: self.handle_typing,
            Events.PING: self.handle_ping,
        }

    # =========================
    # CONNECTION LIFECYCLE
    # =========================

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = self.hub.add(websocket)
        logger.info(f"Connection {connection_id} opened ({len(self.hub)} live)")
        return connection_id

    async def serve(self, websocket: WebSocket):
        """Drive one connection until the client leaves or goes idle."""
        connection_id = await self.connect(websocket)
        try:
            while True:
                try:
                    frame = await asyncio.wait_for(websocket.receive(), timeout=self.idle_timeout)
                except asyncio.TimeoutError:
                    logger.info(f"Connection {connection_id} idle for {self.idle_timeout}s, closing")
                    await websocket.close(code=IDLE_CLOSE_CODE)
                    break

                if frame["type"] == "websocket.disconnect":
                    break

                raw = frame.get("text")
                if raw is None and frame.get("bytes") is not None:
                    raw = frame["bytes"].decode("utf-8", errors="replace")
                await self.handle_frame(connection_id, raw or "")
        finally:
            await self.disconnect(connection_id)

    async def disconnect(self, connection_id: str):
        self.hub.remove(connection_id)
        user_id = self.presence.unregister(connection_id)
        if user_id is None:
            logger.info(f"Connection {connection_id} closed before join")
            return

        # Decided before any await; a concurrent disconnect may unregister meanwhile
        went_offline = not self.presence.is_online(user_id)
        logger.info(f"User {user_id} disconnected (connection {connection_id})")
        await self._record_last_seen(user_id)
        if went_offline:
            await self.hub.broadcast(Events.USER_STATUS, {"userId": user_id, "status": OFFLINE})

    # =========================
    # FRAME DISPATCH
    # =========================

    async def handle_frame(self, connection_id: str, raw: str):
        event = None
        try:
            if _frame_size(raw) > self.max_message_bytes:
                raise EventValidationError(f"Frame exceeds {self.max_message_bytes} bytes")

            event, data = self._decode(raw)
            handler = self.handlers.get(event)
            if handler is None:
                raise EventValidationError(f"Unknown event: {event}")
            await handler(connection_id, data)
        except (EventValidationError, UnauthenticatedEventError) as e:
            logger.warning(f"Rejected '{event}' on connection {connection_id}: {e}")
            await self._send_error(connection_id, event, str(e))
        except ValidationError as e:
            logger.warning(f"Invalid '{event}' payload on connection {connection_id}")
            await self._send_error(connection_id, event, _validation_detail(e))
        except Exception:
            logger.exception(f"Unhandled error processing '{event}' on connection {connection_id}")
            await self._send_error(connection_id, event, "Internal server error")

    async def dispatch(self, connection_id: str, event: str, data: Any = None):
        """Process one already-decoded event; used by tests and in-process callers."""
        await self.handle_frame(connection_id, json.dumps({"event": event, "data": data}))

    @staticmethod
    def _decode(raw: str):
        try:
            frame = json.loads(raw)
        except ValueError:
            raise EventValidationError("Frame is not valid JSON")
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            raise EventValidationError("Frame must be an object with an 'event' name")
        return frame["event"], frame.get("data")

    # =========================
    # EVENT HANDLERS
    # =========================

    async def handle_join(self, connection_id: str, data: Any):
        user_id = data.get("userId") if isinstance(data, dict) else data
        if not isinstance(user_id, str) or not user_id:
            raise EventValidationError("join requires a user id")

        previous = self.presence.user_for(connection_id)
        if previous == user_id:
            return

        came_online = self.presence.register(connection_id, user_id)
        self.hub.subscribe(connection_id, user_id)
        logger.info(f"User {user_id} joined on connection {connection_id}")

        if previous is not None:
            # Same socket re-joined under another identity
            self.hub.unsubscribe(connection_id, previous)
            previous_went_offline = not self.presence.is_online(previous)
            await self._record_last_seen(previous)
            if previous_went_offline:
                await self.hub.broadcast(Events.USER_STATUS, {"userId": previous, "status": OFFLINE})

        if came_online:
            await self.hub.broadcast(Events.USER_STATUS, {"userId": user_id, "status": ONLINE})

    async def handle_send_message(self, connection_id: str, data: Any):
        user_id = self._require_identity(connection_id, Events.SEND_MESSAGE)
        if not isinstance(data, dict):
            raise EventValidationError("send_message requires a message object")

        message = MessageIn.model_validate(data)
        self._check_sender(user_id, message.sender_id)

        try:
            stored = await run_in_threadpool(self._store_message, message, user_id)
        except StorageError as e:
            logger.error(f"Message {message.id} from {user_id} not stored: {e}")
            await self.hub.send(
                connection_id,
                Events.MESSAGE_ACK,
                {"id": message.id, "status": "failed", "error": str(e)},
            )
            return

        payload = dict(data)
        payload["sender_id"] = user_id
        await self.hub.emit_to(message.receiver_id, Events.RECEIVE_MESSAGE, payload)

        await self.hub.send(
            connection_id,
            Events.MESSAGE_ACK,
            {"id": stored.id, "status": "sent", "timestamp": stored.timestamp.isoformat()},
        )

    async def handle_typing(self, connection_id: str, data: Any):
        user_id = self._require_identity(connection_id, Events.TYPING)
        if not isinstance(data, dict):
            raise EventValidationError("typing requires {sender_id, receiver_id}")

        typing = TypingIn.model_validate(data)
        self._check_sender(user_id, typing.sender_id)
        await self.hub.emit_to(typing.receiver_id, Events.USER_TYPING, {"sender_id": user_id})

    async def handle_ping(self, connection_id: str, data: Any):
        await self.hub.send(connection_id, Events.PONG, data)

    # =========================
    # HELPERS
    # =========================

    def online_users(self):
        return self.presence.online_users()

    def _require_identity(self, connection_id: str, event: str) -> str:
        user_id = self.presence.user_for(connection_id)
        if user_id is None:
            raise UnauthenticatedEventError(f"'{event}' is not allowed before join")
        return user_id

    @staticmethod
    def _check_sender(user_id: str, claimed: Optional[str]):
        if claimed is not None and claimed != user_id:
            raise UnauthenticatedEventError(f"sender_id {claimed!r} does not match joined user {user_id!r}")

    def _store_message(self, message: MessageIn, sender_id: str) -> Message:
        with db_session(self.session_factory) as db:
            return append_message(
                db,
                message_id=message.id,
                sender_id=sender_id,
                receiver_id=message.receiver_id,
                content=message.content or "",
                type=message.type,
                file_url=message.file_url,
                file_name=message.file_name,
            )

    def _touch_last_seen(self, user_id: str) -> bool:
        with db_session(self.session_factory) as db:
            return touch_last_seen(db, user_id)

    async def _record_last_seen(self, user_id: str):
        # Best effort: a failed write is logged, presence still goes out
        try:
            await run_in_threadpool(self._touch_last_seen, user_id)
        except StorageError as e:
            logger.error(f"Could not record last_seen for {user_id}: {e}")

    async def _send_error(self, connection_id: str, event: Optional[str], detail: str):
        await self.hub.send(connection_id, Events.ERROR, {"event": event, "detail": detail})


def _validation_detail(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
    return "; ".join(parts) or "Invalid payload"


def _frame_size(raw: str) -> int:
    """Size of a text frame on the wire, in UTF-8 bytes."""
    return len(raw) if raw.isascii() else len(raw.encode("utf-8"))
