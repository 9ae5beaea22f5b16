from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Mapping

@dataclass(slots=True, frozen=True)
class RawRange:
    start_offset: int
    end_offset: int
    count: int
    def length(self) -> int: return self.end_offset - self.start_offset

@dataclass(slots=True, frozen=True)
class CoveredRange:
    start: int
    end: int
    def length(self) -> int: return self.end - self.start

@dataclass(slots=True, frozen=True)
class ResourceRecord:
    resource_id: str
    url: str
    text: str

@dataclass(slots=True, frozen=True)
class CoverageEntry:
    url: str
    text: str
    ranges: tuple[CoveredRange, ...] = field(default_factory=tuple)

    def used_bytes(self) -> int:
        return sum(r.length() for r in self.ranges)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "text": self.text,
            "ranges": [{"start": r.start, "end": r.end} for r in self.ranges],
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CoverageEntry":
        return cls(
            url=d["url"],
            text=d["text"],
            ranges=tuple(CoveredRange(int(r["start"]), int(r["end"])) for r in d.get("ranges", [])),
        )

@dataclass(slots=True, frozen=True)
class ScriptCoverageOptions:
    reset_on_navigation: bool = True
    report_anonymous_scripts: bool = False

@dataclass(slots=True, frozen=True)
class StyleCoverageOptions:
    reset_on_navigation: bool = True
