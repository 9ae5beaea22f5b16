from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol

EventHandler = Callable[[dict[str, Any]], None]
Disposer = Callable[[], None]


class InstrumentationChannel(Protocol):
    """Port for the command/event transport bound to one monitored page."""

    async def send(self, method: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Issue a command and return its result payload; raise ChannelError on failure."""

    def on(self, event: str, handler: EventHandler) -> Disposer:
        """Subscribe `handler` to `event`; the returned disposer unsubscribes it (idempotent)."""
