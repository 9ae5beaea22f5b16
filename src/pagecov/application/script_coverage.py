from __future__ import annotations
import asyncio, logging
from typing import Any

from ..domain.errors import CoverageStateError
from ..domain.models import CoverageEntry, RawRange, ResourceRecord, ScriptCoverageOptions
from ..domain.ranges import convert_to_disjoint_ranges
from ..domain.value_types import EVALUATION_SCRIPT_URL, ScriptId, TrackerState
from ..ports.channel import InstrumentationChannel
from .listeners import FetchGroup, ListenerGroup

logger = logging.getLogger(__name__)

def _anonymous_url(script_id: str) -> str: return f"debugger://VM{script_id}"

def _flatten_function_ranges(entry: dict[str, Any]) -> list[RawRange]:
    out: list[RawRange] = []
    for fn in entry.get("functions", []):
        for r in fn.get("ranges", []):
            out.append(RawRange(int(r["startOffset"]), int(r["endOffset"]), int(r["count"])))
    return out


class ScriptCoverageTracker:
    """Collects precise JavaScript coverage between start() and stop()."""

    def __init__(self, channel: InstrumentationChannel) -> None:
        self._channel = channel
        self._state: TrackerState = "idle"
        self._options = ScriptCoverageOptions()
        self._scripts: dict[ScriptId, ResourceRecord] = {}
        self._listeners = ListenerGroup(channel)
        self._fetches = FetchGroup()

    @property
    def enabled(self) -> bool: return self._state == "active"

    async def start(self, options: ScriptCoverageOptions | None = None) -> None:
        if self._state == "active":
            raise CoverageStateError("JS coverage is already enabled")
        # flipped before the first await so a concurrent start() sees it
        self._state = "active"
        self._options = options or ScriptCoverageOptions()
        self._scripts.clear()
        self._listeners.add("Debugger.scriptParsed", self._on_script_parsed)
        self._listeners.add("Runtime.executionContextsCleared", self._on_execution_contexts_cleared)
        try:
            await asyncio.gather(
                self._channel.send("Profiler.enable"),
                self._channel.send("Profiler.startPreciseCoverage", {"callCount": False, "detailed": True}),
                self._channel.send("Debugger.enable"),
                self._channel.send("Debugger.setSkipAllPauses", {"skip": True}),
            )
        except Exception:
            self._listeners.release()
            self._fetches.abandon()
            self._state = "idle"
            raise
        logger.debug("JS coverage started (reset_on_navigation=%s, report_anonymous_scripts=%s)",
                     self._options.reset_on_navigation, self._options.report_anonymous_scripts)

    def _on_execution_contexts_cleared(self, _params: dict[str, Any]) -> None:
        if not self._options.reset_on_navigation:
            return
        logger.debug("execution contexts cleared; dropping %d scripts", len(self._scripts))
        self._scripts.clear()

    def _on_script_parsed(self, params: dict[str, Any]) -> None:
        url = params.get("url") or ""
        script_id = ScriptId(str(params["scriptId"]))
        if url == EVALUATION_SCRIPT_URL:
            logger.debug("skipping injected evaluation script %s", script_id)
            return
        if not url and not self._options.report_anonymous_scripts:
            logger.debug("skipping anonymous script %s", script_id)
            return
        self._fetches.spawn(self._fetch_source(self._fetches.epoch, script_id, url))

    async def _fetch_source(self, epoch: int, script_id: ScriptId, url: str) -> None:
        try:
            res = await self._channel.send("Debugger.getScriptSource", {"scriptId": script_id})
        except Exception as e:
            # the page may have navigated away before the source arrived
            logger.debug("getScriptSource failed for script %s (%s): %s", script_id, url or "<anonymous>", e)
            return
        if epoch != self._fetches.epoch:
            logger.debug("discarding late source for script %s", script_id)
            return
        self._scripts[script_id] = ResourceRecord(script_id, url, res.get("scriptSource", ""))

    async def stop(self) -> list[CoverageEntry]:
        if self._state != "active":
            raise CoverageStateError("JS coverage is not enabled")
        self._state = "idle"
        self._fetches.abandon()
        if self._fetches.pending():
            logger.debug("stopping JS coverage with %d source fetches in flight", self._fetches.pending())
        try:
            snapshot, *_ = await asyncio.gather(
                self._channel.send("Profiler.takePreciseCoverage"),
                self._channel.send("Profiler.stopPreciseCoverage"),
                self._channel.send("Profiler.disable"),
                self._channel.send("Debugger.disable"),
            )
        finally:
            self._listeners.release()

        coverage: list[CoverageEntry] = []
        for entry in snapshot.get("result", []):
            script_id = ScriptId(str(entry["scriptId"]))
            rec = self._scripts.get(script_id)
            if rec is None:
                continue
            url = rec.url
            if not url and self._options.report_anonymous_scripts:
                url = _anonymous_url(script_id)
            ranges = convert_to_disjoint_ranges(_flatten_function_ranges(entry))
            coverage.append(CoverageEntry(url=url, text=rec.text, ranges=tuple(ranges)))
        logger.info("JS coverage stopped: %d entries", len(coverage))
        return coverage
