from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Protocol

from .. import settings
from . import messages

logger = logging.getLogger(__name__)

_CLOSE = object()


class Socket(Protocol):
    """The slice of a WebSocket the engine needs (Starlette's API shape)."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class Connection:
    """One client socket plus its outbound mailbox.

    Sends never await the network: messages go into a bounded queue that a
    dedicated writer task drains. When the queue is full the oldest entry is
    dropped, since a newer state update supersedes it.
    """

    def __init__(
        self,
        socket: Socket,
        *,
        connection_id: Optional[str] = None,
        maxsize: Optional[int] = None,
    ) -> None:
        self.id = connection_id or uuid.uuid4().hex
        self._socket = socket
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or settings.OUTBOX_MAXSIZE)
        self._writer: Optional[asyncio.Task] = None
        self._closing = False
        self._closed = False
        self.alive = True

    def __repr__(self) -> str:
        return f"<Connection {self.id[:8]} open={self.is_open}>"

    @property
    def is_open(self) -> bool:
        return not (self._closing or self._closed)

    def start(self) -> asyncio.Task:
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"ws-writer-{self.id[:8]}")
        return self._writer

    def send(self, payload: str) -> bool:
        if not self.is_open:
            return False
        self._put(payload)
        return True

    def send_message(self, message: Dict[str, Any]) -> bool:
        return self.send(messages.encode(message))

    def close(self, code: int = 1000) -> None:
        """Close after everything already queued has been written."""
        if not self.is_open:
            return
        self._closing = True
        self._put((_CLOSE, code))

    async def terminate(self, code: int = 1001) -> None:
        """Close now, discarding anything still queued."""
        self._closing = True
        self._closed = True
        if self._writer and not self._writer.done():
            self._writer.cancel()
        try:
            await self._socket.close(code=code)
        except Exception as exc:
            logger.debug("Close on %s failed: %s", self, exc)

    async def detach(self) -> None:
        """Stop the writer once the peer is gone; the socket is left alone."""
        self._closing = True
        self._closed = True
        writer = self._writer
        if writer and not writer.done():
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

    def confirm(self) -> None:
        self.alive = True

    def _put(self, item: Any) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            # drop oldest to make room
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self._queue.put_nowait(item)

    async def _drain(self) -> None:
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, tuple) and item and item[0] is _CLOSE:
                    self._closed = True
                    await self._socket.close(code=item[1])
                    return
                await self._socket.send_text(item)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Send to %s failed, marking closed: %s", self, exc)
            self._closed = True


class SessionBroadcaster:
    """Tracks live connections and fans serialized views out to them."""

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def register(self, connection: Connection) -> None:
        self._connections[connection.id] = connection

    def unregister(self, connection: Connection) -> None:
        self._connections.pop(connection.id, None)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def broadcast(
        self,
        participant_payload: str,
        admin_payload: str,
        is_admin: Callable[[str], bool],
    ) -> Dict[str, int]:
        """Queue one payload per open connection according to its role."""
        counts = {"participants": 0, "admins": 0}
        for connection in self.connections():
            if not connection.is_open:
                continue
            if is_admin(connection.id):
                connection.send(admin_payload)
                counts["admins"] += 1
            else:
                connection.send(participant_payload)
                counts["participants"] += 1
        return counts

    async def close_all(self, code: int = 1001) -> None:
        connections = self.connections()
        self._connections.clear()
        for connection in connections:
            await connection.terminate(code=code)
