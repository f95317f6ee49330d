"""
WebSocket session registry for per-client job notifications

ARCHITECTURE NOTE: Non-blocking, ordered delivery
- Each session has a dedicated send queue and sender task
- send() only enqueues, so slow clients never block jobs or other clients
- One queue per session keeps messages to that session in submission order
- Full queues result in dropped messages (logged) rather than blocking
"""
from fastapi import WebSocket, WebSocketDisconnect
from dataclasses import dataclass
from typing import Dict, Optional
import asyncio
import json
import logging
import threading
import uuid

from constants import WebSocketConfig
from schemas import ConnectionAck

logger = logging.getLogger(__name__)


@dataclass
class SessionHandle:
    """Live connection state for one registered session"""
    websocket: WebSocket
    queue: asyncio.Queue
    sender_task: Optional[asyncio.Task] = None


class SessionRegistry:
    """
    Maps opaque session ids to live WebSocket connections.

    The registry is the only owner of connection handles; job code refers to
    sessions by id and pushes messages through send(). The id map is guarded
    by a lock so register/send/unregister are safe from any execution context.
    """

    def __init__(self, queue_size: int = WebSocketConfig.SEND_QUEUE_SIZE):
        self._sessions: Dict[str, SessionHandle] = {}
        self._lock = threading.Lock()
        self._queue_size = queue_size

    async def register(self, websocket: WebSocket) -> str:
        """
        Accept a WebSocket, assign it a session id and start its sender

        Args:
            websocket: FastAPI WebSocket connection

        Returns:
            The newly generated session id
        """
        await websocket.accept()

        session_id = str(uuid.uuid4())
        handle = SessionHandle(websocket=websocket, queue=asyncio.Queue(maxsize=self._queue_size))
        handle.sender_task = asyncio.create_task(self._sender_loop(session_id, handle))

        with self._lock:
            self._sessions[session_id] = handle
            total = len(self._sessions)

        logger.warning(f"✅ WebSocket client connected (ID: {session_id}). Total connections: {total}")

        self.send(session_id, ConnectionAck(session_id=session_id).to_message())
        return session_id

    def unregister(self, session_id: str):
        """
        Remove a session and stop its sender task

        Args:
            session_id: Session to remove. Unknown ids are ignored.
        """
        with self._lock:
            handle = self._sessions.pop(session_id, None)
            total = len(self._sessions)

        if handle is None:
            return

        if handle.sender_task and not handle.sender_task.done():
            handle.sender_task.cancel()

        logger.warning(f"🔌 WebSocket client disconnected (ID: {session_id}). Total connections: {total}")

    def is_registered(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def lookup(self, session_id: str) -> Optional[WebSocket]:
        """Return the WebSocket for a session, or None if not registered"""
        with self._lock:
            handle = self._sessions.get(session_id)
        return handle.websocket if handle else None

    def send(self, session_id: str, message: dict) -> bool:
        """
        Queue a message for one session.

        Sending to an unknown session is a no-op, not an error: the client may
        have disconnected while its job was still running.

        Args:
            session_id: Target session
            message: JSON-serializable dict

        Returns:
            True if the message was queued
        """
        with self._lock:
            handle = self._sessions.get(session_id)

        if handle is None:
            logger.debug(f"Dropping {message.get('type')} for unknown session {session_id}")
            return False

        try:
            handle.queue.put_nowait(json.dumps(message))
            return True
        except asyncio.QueueFull:
            logger.warning(f"Send queue full for session {session_id}, dropping message type: {message.get('type')}")
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def close_all(self):
        """Unregister every session (used on shutdown)"""
        with self._lock:
            session_ids = list(self._sessions)
        for session_id in session_ids:
            self.unregister(session_id)

    async def _sender_loop(self, session_id: str, handle: SessionHandle):
        """
        Dedicated sender task for each session.
        Pulls messages from the queue and sends them in order.
        """
        try:
            while True:
                message = await handle.queue.get()
                try:
                    await handle.websocket.send_text(message)
                except Exception as e:
                    logger.warning(f"Failed to send to session {session_id}: {e}")
                    # Connection is dead, will be cleaned up by unregister()
                    break
        except asyncio.CancelledError:
            pass


async def websocket_endpoint(websocket: WebSocket, registry: SessionRegistry):
    """
    WebSocket endpoint handler

    Registers the connection, answers keepalive pings and unregisters the
    session when the client goes away.
    """
    session_id = await registry.register(websocket)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON from session {session_id}: {data}")
                continue

            message_type = message.get("type") if isinstance(message, dict) else None
            if message_type == "ping":
                registry.send(session_id, {"type": "pong"})
            else:
                logger.debug(f"Ignoring client message type {message_type!r} from {session_id}")

    except WebSocketDisconnect:
        logger.info(f"WebSocket session {session_id} disconnected normally")
    except Exception as e:
        logger.error(f"WebSocket error for session {session_id}: {type(e).__name__}: {e}")
    finally:
        registry.unregister(session_id)
