from __future__ import annotations
import asyncio, logging
from typing import Any

from ..domain.errors import CoverageStateError
from ..domain.models import CoverageEntry, RawRange, ResourceRecord, StyleCoverageOptions
from ..domain.ranges import convert_to_disjoint_ranges
from ..domain.value_types import StyleSheetId, TrackerState
from ..ports.channel import InstrumentationChannel
from .listeners import FetchGroup, ListenerGroup

logger = logging.getLogger(__name__)

def _group_rule_usage(rows: list[dict[str, Any]]) -> dict[StyleSheetId, list[RawRange]]:
    by_sheet: dict[StyleSheetId, list[RawRange]] = {}
    for row in rows:
        sheet_id = StyleSheetId(str(row["styleSheetId"]))
        by_sheet.setdefault(sheet_id, []).append(RawRange(
            start_offset=int(row["startOffset"]),
            end_offset=int(row["endOffset"]),
            count=1 if row.get("used") else 0,
        ))
    return by_sheet


class StyleCoverageTracker:
    """
    Collects CSS rule usage between start() and stop().
    Stylesheets without a sourceURL (inline or injected <style>) are never reported.
    """

    def __init__(self, channel: InstrumentationChannel) -> None:
        self._channel = channel
        self._state: TrackerState = "idle"
        self._options = StyleCoverageOptions()
        self._stylesheets: dict[StyleSheetId, ResourceRecord] = {}
        self._listeners = ListenerGroup(channel)
        self._fetches = FetchGroup()

    @property
    def enabled(self) -> bool: return self._state == "active"

    async def start(self, options: StyleCoverageOptions | None = None) -> None:
        if self._state == "active":
            raise CoverageStateError("CSS coverage is already enabled")
        self._state = "active"
        self._options = options or StyleCoverageOptions()
        self._stylesheets.clear()
        self._listeners.add("CSS.styleSheetAdded", self._on_stylesheet_added)
        self._listeners.add("Runtime.executionContextsCleared", self._on_execution_contexts_cleared)
        try:
            await asyncio.gather(
                self._channel.send("DOM.enable"),
                self._channel.send("CSS.enable"),
                self._channel.send("CSS.startRuleUsageTracking"),
            )
        except Exception:
            self._listeners.release()
            self._fetches.abandon()
            self._state = "idle"
            raise
        logger.debug("CSS coverage started (reset_on_navigation=%s)", self._options.reset_on_navigation)

    def _on_execution_contexts_cleared(self, _params: dict[str, Any]) -> None:
        if not self._options.reset_on_navigation:
            return
        logger.debug("execution contexts cleared; dropping %d stylesheets", len(self._stylesheets))
        self._stylesheets.clear()

    def _on_stylesheet_added(self, params: dict[str, Any]) -> None:
        header = params.get("header") or {}
        sheet_id = StyleSheetId(str(header["styleSheetId"]))
        url = header.get("sourceURL")
        if not url:
            logger.debug("skipping stylesheet %s without sourceURL", sheet_id)
            return
        self._fetches.spawn(self._fetch_text(self._fetches.epoch, sheet_id, url))

    async def _fetch_text(self, epoch: int, sheet_id: StyleSheetId, url: str) -> None:
        try:
            res = await self._channel.send("CSS.getStyleSheetText", {"styleSheetId": sheet_id})
        except Exception as e:
            logger.debug("getStyleSheetText failed for sheet %s (%s): %s", sheet_id, url, e)
            return
        if epoch != self._fetches.epoch:
            logger.debug("discarding late text for sheet %s", sheet_id)
            return
        self._stylesheets[sheet_id] = ResourceRecord(sheet_id, url, res.get("text", ""))

    async def stop(self) -> list[CoverageEntry]:
        if self._state != "active":
            raise CoverageStateError("CSS coverage is not enabled")
        self._state = "idle"
        self._fetches.abandon()
        if self._fetches.pending():
            logger.debug("stopping CSS coverage with %d text fetches in flight", self._fetches.pending())
        try:
            report = await self._channel.send("CSS.stopRuleUsageTracking")
            await asyncio.gather(
                self._channel.send("CSS.disable"),
                self._channel.send("DOM.disable"),
            )
        finally:
            self._listeners.release()

        usage = _group_rule_usage(report.get("ruleUsage", []))
        coverage: list[CoverageEntry] = []
        # every fetched sheet is reported, including ones with no usage rows at all
        for sheet_id, rec in self._stylesheets.items():
            ranges = convert_to_disjoint_ranges(usage.get(sheet_id, []))
            coverage.append(CoverageEntry(url=rec.url, text=rec.text, ranges=tuple(ranges)))
        logger.info("CSS coverage stopped: %d entries", len(coverage))
        return coverage
