from __future__ import annotations
import os, json, asyncio
from typing import Iterable, Iterator
from ..ports.storage import CoverageSink
from ..domain.models import CoverageEntry
from ..domain.value_types import CoverageKind

class JSONLCoverageSink(CoverageSink):
    def __init__(self, path: str) -> None:
        self.path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._lock = asyncio.Lock()

    async def write_entries(self, kind: CoverageKind, entries: Iterable[CoverageEntry]) -> None:
        lines = "".join(json.dumps({"kind": kind, **e.to_dict()}, separators=(",", ":")) + "\n" for e in entries)
        async with self._lock:
            with open(self.path, "a") as f:
                f.write(lines); f.flush(); os.fsync(f.fileno())

def read_jsonl_entries(path: str) -> Iterator[tuple[CoverageKind, CoverageEntry]]:
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            rec = json.loads(line)
            yield rec["kind"], CoverageEntry.from_dict(rec)
