from __future__ import annotations
import asyncio
from typing import Any, Coroutine

from ..ports.channel import Disposer, EventHandler, InstrumentationChannel


class ListenerGroup:
    """Disposer handles for one start()/stop() cycle, released together."""
    def __init__(self, channel: InstrumentationChannel) -> None:
        self._channel = channel
        self._disposers: list[Disposer] = []

    def add(self, event: str, handler: EventHandler) -> None:
        self._disposers.append(self._channel.on(event, handler))

    def release(self) -> None:
        disposers, self._disposers = self._disposers, []
        for dispose in reversed(disposers):
            dispose()


class FetchGroup:
    """
    Fire-and-forget fetch tasks. abandon() does not cancel anything: it bumps the
    epoch so that fetches scheduled before it can tell their result is stale.
    """
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._epoch = 0

    @property
    def epoch(self) -> int: return self._epoch

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def abandon(self) -> None:
        self._epoch += 1

    def pending(self) -> int: return len(self._tasks)
