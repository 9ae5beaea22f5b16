"""Shared fixtures: an in-memory instrumentation channel."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import pytest


class FakeChannel:
    """Records commands, serves canned responses and lets tests emit events.

    A response may be a dict, an exception instance (raised), or a callable
    taking the command params and returning either. A method listed in
    ``gates`` blocks until its asyncio.Event is set.
    """

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.responses: Dict[str, Any] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self._handlers: Dict[str, List[Callable[[Dict[str, Any]], None]]] = {}

    async def send(
        self, method: str, params: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        p = dict(params or {})
        self.sent.append((method, p))
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        resp = self.responses.get(method, {})
        if callable(resp):
            resp = resp(p)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def on(self, event: str, handler: Callable[[Dict[str, Any]], None]):
        self._handlers.setdefault(event, []).append(handler)

        def dispose() -> None:
            if handler in self._handlers.get(event, []):
                self._handlers[event].remove(handler)

        return dispose

    def emit(self, event: str, params: Optional[Dict[str, Any]] = None) -> None:
        for handler in list(self._handlers.get(event, [])):
            handler(params or {})

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._handlers.get(event, []))
        return sum(len(h) for h in self._handlers.values())

    def methods(self) -> List[str]:
        return [m for m, _ in self.sent]


async def drain(group: Any) -> None:
    """Wait until every fetch a tracker has spawned so far has settled."""
    while group._tasks:
        await asyncio.gather(*list(group._tasks), return_exceptions=True)


@pytest.fixture
def channel() -> FakeChannel:
    """Create a fresh fake channel."""
    return FakeChannel()
