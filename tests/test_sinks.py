"""Tests for the JSONL and Parquet coverage sinks."""

from __future__ import annotations

from pathlib import Path

import pyarrow.parquet as pq
import pytest

from pagecov.adapters.jsonl_sink import JSONLCoverageSink, read_jsonl_entries
from pagecov.adapters.parquet_sink import ParquetRangeSink
from pagecov.domain.models import CoverageEntry, CoveredRange

ENTRIES = [
    CoverageEntry("http://example.test/a.js", "0123456789" * 5, (CoveredRange(0, 10), CoveredRange(20, 50))),
    CoverageEntry("http://example.test/b.js", "var x;", ()),
]


@pytest.mark.asyncio
async def test_jsonl_sink_appends(tmp_path: Path) -> None:
    """Test entries are appended as one line each and read back."""
    path = tmp_path / "nested" / "cov.jsonl"
    sink = JSONLCoverageSink(str(path))
    await sink.write_entries("js", ENTRIES)
    await sink.write_entries("css", ENTRIES[:1])

    records = list(read_jsonl_entries(str(path)))
    assert [kind for kind, _ in records] == ["js", "js", "css"]
    assert records[0][1] == ENTRIES[0]
    assert records[1][1].ranges == ()


@pytest.mark.asyncio
async def test_parquet_sink_one_row_per_range(tmp_path: Path) -> None:
    """Test the parquet table is flattened to covered ranges."""
    sink = ParquetRangeSink(str(tmp_path))
    await sink.write_entries("js", ENTRIES)

    table = pq.read_table(sink.path_for("js"))
    assert table.column_names == ["url", "start", "end", "text_length"]
    assert table.to_pydict() == {
        "url": ["http://example.test/a.js", "http://example.test/a.js"],
        "start": [0, 20],
        "end": [10, 50],
        "text_length": [50, 50],
    }


@pytest.mark.asyncio
async def test_parquet_sink_empty(tmp_path: Path) -> None:
    """Test writing no ranges produces an empty, typed table."""
    sink = ParquetRangeSink(str(tmp_path))
    await sink.write_entries("css", [])
    assert pq.read_table(sink.path_for("css")).num_rows == 0


def test_entry_serialization() -> None:
    """Test the serialized shape of a coverage entry."""
    assert ENTRIES[0].to_dict() == {
        "url": "http://example.test/a.js",
        "text": "0123456789" * 5,
        "ranges": [{"start": 0, "end": 10}, {"start": 20, "end": 50}],
    }
    assert ENTRIES[0].used_bytes() == 40
