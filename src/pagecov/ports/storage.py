from __future__ import annotations

from typing import Iterable, Protocol
from ..domain.models import CoverageEntry
from ..domain.value_types import CoverageKind


class CoverageSink(Protocol):
    """Port for persisting the entries returned by one stop() call."""

    async def write_entries(self, kind: CoverageKind, entries: Iterable[CoverageEntry]) -> None:
        """Persist all entries of one coverage kind ("js" or "css")."""
