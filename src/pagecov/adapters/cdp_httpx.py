from __future__ import annotations
import asyncio, logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Protocol

import httpx
from httpx_ws import aconnect_ws

from ..domain.errors import ChannelError
from ..ports.channel import Disposer, EventHandler, InstrumentationChannel

logger = logging.getLogger(__name__)

# script sources routinely exceed httpx-ws' 64 KiB default frame limit
MAX_MESSAGE_BYTES = 256 * 1024 * 1024

class JSONSocket(Protocol):
    async def send_json(self, data: Any, mode: str = "text") -> None: ...
    async def receive_json(self, timeout: float | None = None, mode: str = "text") -> Any: ...

def _to_http_url(ws_url: str) -> str:
    if ws_url.startswith("ws://"): return "http://" + ws_url[len("ws://"):]
    if ws_url.startswith("wss://"): return "https://" + ws_url[len("wss://"):]
    return ws_url

async def discover_page_ws_url(endpoint: str, client: httpx.AsyncClient, *, new_page: bool = False) -> str:
    """Resolve the DevTools WebSocket URL of a page target exposed at `endpoint` (e.g. http://127.0.0.1:9222)."""
    base = endpoint.rstrip("/")
    if new_page:
        r = await client.put(f"{base}/json/new?about:blank")
        r.raise_for_status()
        return r.json()["webSocketDebuggerUrl"]
    r = await client.get(f"{base}/json/list")
    r.raise_for_status()
    for target in r.json():
        if target.get("type") == "page" and target.get("webSocketDebuggerUrl"):
            return target["webSocketDebuggerUrl"]
    raise ChannelError("json/list", f"no inspectable page target at {base}")


class HttpxCDPChannel(InstrumentationChannel):
    """
    Chrome DevTools Protocol session over one WebSocket.
    Responses are matched to commands by id; everything else is an event and is
    dispatched synchronously, in arrival order, to the handlers registered with on().
    """
    def __init__(self, ws: JSONSocket, timeout_s: float = 30.0) -> None:
        self._ws = ws
        self.timeout_s = timeout_s
        self._next_id = 0
        self._pending: dict[int, tuple[str, asyncio.Future[dict[str, Any]]]] = {}
        self._handlers: dict[str, list[EventHandler]] = {}
        self._reader: asyncio.Task[None] | None = None
        self._closed = False

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        ws_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 30.0,
    ) -> AsyncIterator["HttpxCDPChannel"]:
        owns_client = client is None
        client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))
        try:
            async with aconnect_ws(_to_http_url(ws_url), client, max_message_size_bytes=MAX_MESSAGE_BYTES) as ws:
                channel = cls(ws, timeout_s=timeout_s)
                channel.start_reader()
                try:
                    yield channel
                finally:
                    await channel.aclose()
        finally:
            if owns_client:
                await client.aclose()

    @property
    def closed(self) -> bool: return self._closed

    def start_reader(self) -> None:
        if self._reader is None:
            self._reader = asyncio.get_running_loop().create_task(self._read_loop())

    async def aclose(self) -> None:
        self._closed = True
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        self._fail_pending("channel closed")

    async def send(self, method: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        if self.closed:
            raise ChannelError(method, "channel closed")
        self._next_id += 1
        msg_id = self._next_id
        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = (method, fut)
        try:
            try:
                await self._ws.send_json({"id": msg_id, "method": method, "params": dict(params or {})})
            except Exception as e:
                raise ChannelError(method, f"send failed: {e}") from e
            return await asyncio.wait_for(fut, self.timeout_s)
        except asyncio.TimeoutError:
            raise ChannelError(method, f"no response after {self.timeout_s}s") from None
        finally:
            self._pending.pop(msg_id, None)

    def on(self, event: str, handler: EventHandler) -> Disposer:
        self._handlers.setdefault(event, []).append(handler)
        def dispose() -> None:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)
        return dispose

    def dispatch(self, msg: dict[str, Any]) -> None:
        if "id" in msg:
            entry = self._pending.get(msg["id"])
            if entry is None:
                return
            method, fut = entry
            if fut.done():
                return
            if "error" in msg:
                err = msg["error"] if isinstance(msg["error"], dict) else {"message": str(msg["error"])}
                fut.set_exception(ChannelError(method, str(err.get("message")), err.get("code")))
            else:
                fut.set_result(msg.get("result") or {})
            return
        event = msg.get("method")
        if not event:
            return
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(msg.get("params") or {})
            except Exception:
                logger.exception("handler for %s failed", event)

    async def _read_loop(self) -> None:
        try:
            while True:
                self.dispatch(await self._ws.receive_json())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("CDP connection lost: %s", e)
        finally:
            self._closed = True
            self._fail_pending("connection closed")

    def _fail_pending(self, reason: str) -> None:
        for method, fut in list(self._pending.values()):
            if not fut.done():
                fut.set_exception(ChannelError(method, reason))
