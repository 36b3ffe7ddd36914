"""Periodic eviction of silent connections.

Each sweep sends `{"type": "ping"}` to every connection. Clients must answer
with any message before the next sweep (`pong` or `heartbeat` will do);
administrator pages included. A connection that stays silent for a full
interval is terminated and disconnected like an ordinary close.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .. import settings
from . import messages
from .session_engine import SessionEngine
from .ws import Connection

logger = logging.getLogger(__name__)


class LivenessMonitor:
    """Evicts connections that stay silent for a whole probe interval."""

    def __init__(self, engine: SessionEngine, *, interval: Optional[float] = None) -> None:
        self.engine = engine
        self.interval = interval if interval is not None else settings.HEARTBEAT_INTERVAL_SEC
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            raise RuntimeError("liveness monitor already running")
        self._task = asyncio.create_task(self._run(), name="liveness-monitor")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def sweep(self) -> List[Connection]:
        """Run one probe cycle; returns the connections that were evicted."""
        evicted: List[Connection] = []
        for connection in self.engine.broadcaster.connections():
            if not connection.alive:
                logger.info("Terminating unresponsive connection %s", connection.id)
                await connection.terminate()
                await self.engine.disconnect(connection)
                evicted.append(connection)
                continue
            connection.alive = False
            connection.send_message(messages.ping())
        return evicted

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.sweep()
                except Exception as exc:
                    logger.exception("Liveness sweep failed: %s", exc)
        except asyncio.CancelledError:
            logger.info("Liveness monitor stopped")
            raise
