from __future__ import annotations
from typing import Iterable
from .models import CoveredRange, RawRange

_OPEN, _CLOSE = 0, 1

def _point_key(point: tuple[int, int, RawRange]) -> tuple[int, int, int]:
    offset, kind, rng = point
    # closes sort before opens; longer opens first; shorter closes first
    if kind == _CLOSE:
        return (offset, 0, rng.length())
    return (offset, 1, -rng.length())

def convert_to_disjoint_ranges(nested: Iterable[RawRange]) -> list[CoveredRange]:
    """
    Collapse nested (laminar) hit-count ranges into sorted, disjoint covered ranges.
    The innermost open range decides whether an offset counts as used; ranges of
    length <= 1 are dropped from the result.
    """
    points: list[tuple[int, int, RawRange]] = []
    for r in nested:
        points.append((r.start_offset, _OPEN, r))
        points.append((r.end_offset, _CLOSE, r))
    points.sort(key=_point_key)

    stack: list[int] = []
    out: list[list[int]] = []
    last = 0
    for offset, kind, rng in points:
        if stack and last < offset and stack[-1] > 0:
            if out and out[-1][1] == last:
                out[-1][1] = offset
            else:
                out.append([last, offset])
        last = offset
        if kind == _OPEN: stack.append(rng.count)
        else: stack.pop()
    return [CoveredRange(s, e) for s, e in out if e - s > 1]
