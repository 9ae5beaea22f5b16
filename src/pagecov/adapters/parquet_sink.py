from __future__ import annotations
import os, pyarrow as pa, pyarrow.parquet as pq
from typing import Iterable

from ..ports.storage import CoverageSink
from ..domain.models import CoverageEntry
from ..domain.value_types import CoverageKind

RANGES_SCHEMA = pa.schema([
    ("url", pa.string()),
    ("start", pa.int64()),
    ("end", pa.int64()),
    ("text_length", pa.int64()),
])

def _entries_to_table(entries: Iterable[CoverageEntry]) -> pa.Table:
    urls: list[str] = []; starts: list[int] = []; ends: list[int] = []; lengths: list[int] = []
    for e in entries:
        for r in e.ranges:
            urls.append(e.url); starts.append(r.start); ends.append(r.end); lengths.append(len(e.text))
    return pa.Table.from_arrays(
        arrays=[
            pa.array(urls, pa.string()),
            pa.array(starts, pa.int64()),
            pa.array(ends, pa.int64()),
            pa.array(lengths, pa.int64()),
        ],
        schema=RANGES_SCHEMA,
    )

class ParquetRangeSink(CoverageSink):
    """One row per covered range; entries with no covered ranges leave no rows."""
    def __init__(self, root_dir: str) -> None:
        self.root = root_dir
        os.makedirs(self.root, exist_ok=True)

    def path_for(self, kind: CoverageKind) -> str:
        return os.path.join(self.root, f"{kind}_ranges.parquet")

    async def write_entries(self, kind: CoverageKind, entries: Iterable[CoverageEntry]) -> None:
        path = self.path_for(kind)
        tmp  = path + ".tmp"
        pq.write_table(_entries_to_table(entries), tmp, compression="snappy")
        os.replace(tmp, path)
