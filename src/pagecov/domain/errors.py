from __future__ import annotations


class CoverageStateError(RuntimeError):
    """Raised when a tracker is started twice or stopped while not running."""


class ChannelError(RuntimeError):
    """A command on the instrumentation channel failed (protocol error, timeout, closed socket)."""

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        self.message = message
        detail = f"code={code} message={message}" if code is not None else message
        super().__init__(f"{method} failed: {detail}")
