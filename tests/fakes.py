"""In-memory realtime backend shared by the link and monitor tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from fleetwatch.exceptions import FleetwatchTransportError


class FakeConnection:
    """In-memory text-frame connection; ``None`` in the inbox means remote close."""

    def __init__(self, *, answer_pings: bool = True) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.answer_pings = answer_pings
        self._inbox: asyncio.Queue[str | None] = asyncio.Queue()

    async def send_str(self, data: str) -> None:
        if self.closed:
            raise ConnectionResetError("connection closed")
        message = json.loads(data)
        self.sent.append(message)
        if message.get("type") == "ping" and self.answer_pings:
            self.push({"type": "pong"})

    async def receive(self) -> str | None:
        if self.closed:
            return None
        return await self._inbox.get()

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(None)

    def push(self, message: dict[str, Any] | str) -> None:
        self._inbox.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self) -> None:
        self._inbox.put_nowait(None)

    def sent_types(self) -> list[str]:
        return [m["type"] for m in self.sent]

    def sent_of_type(self, msg_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m["type"] == msg_type]


@dataclass
class FakeServer:
    answer_pings: bool = True
    fail_next: int = 0
    connections: list[FakeConnection] = field(default_factory=list)
    params: list[dict[str, str]] = field(default_factory=list)

    async def connect(self, endpoint: str, params: Mapping[str, str]) -> FakeConnection:
        self.params.append(dict(params))
        if self.fail_next > 0:
            self.fail_next -= 1
            raise FleetwatchTransportError("connection refused", endpoint=endpoint)
        conn = FakeConnection(answer_pings=self.answer_pings)
        self.connections.append(conn)
        return conn

    @property
    def current(self) -> FakeConnection:
        return self.connections[-1]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)
