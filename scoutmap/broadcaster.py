from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol, Set

from .models import GameEvent


log = logging.getLogger(__name__)


class Connection(Protocol):
    # Satisfied by aiohttp.web.WebSocketResponse
    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...


def encode_event(event: GameEvent) -> str:
    return json.dumps(event.to_dict(), ensure_ascii=False)


class Broadcaster:
    """Fan-out of events to every registered viewer connection.

    ``broadcast`` never waits for delivery: each send runs as its own task so
    a stalled viewer cannot hold up the tailer or the other viewers.
    """

    def __init__(self) -> None:
        self._connections: Set[Any] = set()
        self._pending: Set[asyncio.Task] = set()

    def register(self, conn: Connection) -> None:
        self._connections.add(conn)
        log.info("[Broadcast] Viewer connected. Total viewers: %d", len(self._connections))

    def unregister(self, conn: Connection) -> None:
        if conn in self._connections:
            self._connections.discard(conn)
            log.info("[Broadcast] Viewer disconnected. Total viewers: %d", len(self._connections))

    def __len__(self) -> int:
        return len(self._connections)

    def broadcast(self, event: GameEvent) -> int:
        """Schedule delivery of ``event`` to every open connection; returns how many were targeted."""
        message = encode_event(event)
        sent = 0
        for conn in list(self._connections):
            # Closed ones stay registered until their own close handler runs
            if conn.closed:
                continue
            task = asyncio.create_task(self._send(conn, message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            sent += 1
        return sent

    async def _send(self, conn: Connection, message: str) -> None:
        try:
            await conn.send_str(message)
        except (ConnectionResetError, RuntimeError) as e:
            log.warning("[Broadcast] Dropped message for a closing viewer: %s", e)
        except Exception:
            log.exception("[Broadcast] Unexpected error sending to viewer")

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
