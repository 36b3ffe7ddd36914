import asyncio
import json
from typing import Any, Dict, List, Optional


class FakeSocket:
    """Stands in for a Starlette WebSocket; records what the engine sends."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.closed_with: Optional[int] = None
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m["type"] == message_type]

    @property
    def last_state(self) -> Dict[str, Any]:
        updates = self.of_type("state_update")
        assert updates, "no state_update received"
        return updates[-1]["state"]

    def clear(self) -> None:
        self.sent.clear()


async def flush(rounds: int = 5) -> None:
    """Let connection writer tasks drain their queues."""
    for _ in range(rounds):
        await asyncio.sleep(0)
