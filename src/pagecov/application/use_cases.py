from __future__ import annotations
import asyncio, logging
from typing import Sequence

import httpx

from ..adapters.cdp_httpx import HttpxCDPChannel, discover_page_ws_url
from ..adapters.jsonl_sink import JSONLCoverageSink
from ..adapters.parquet_sink import ParquetRangeSink
from ..config import CollectConfig
from ..domain.models import CoverageEntry, ScriptCoverageOptions, StyleCoverageOptions
from ..domain.value_types import CoverageKind
from ..ports.channel import InstrumentationChannel
from ..ports.storage import CoverageSink
from .coverage import Coverage

logger = logging.getLogger(__name__)


async def _stop_started(coverage: Coverage) -> None:
    for tracker in (coverage.js, coverage.css):
        if not tracker.enabled:
            continue
        try:
            await tracker.stop()
        except Exception as e:
            logger.warning("could not stop %s cleanly: %s", type(tracker).__name__, e)


async def collect_page_coverage(
    *,
    channel: InstrumentationChannel,
    url: str | None = None,
    settle_s: float = 2.0,
    js: bool = True,
    css: bool = True,
    script_options: ScriptCoverageOptions | None = None,
    style_options: StyleCoverageOptions | None = None,
    sinks: Sequence[CoverageSink] = (),
) -> dict[CoverageKind, list[CoverageEntry]]:
    """
    Start the requested trackers, optionally navigate to `url`, let the page run for
    `settle_s` seconds, then stop and persist. Returns entries keyed by kind.
    """
    if not (js or css):
        raise ValueError("nothing to collect: both js and css are disabled")
    coverage = Coverage(channel)

    starts = []
    if js:  starts.append(coverage.start_js_coverage(script_options))
    if css: starts.append(coverage.start_css_coverage(style_options))
    outcomes = await asyncio.gather(*starts, return_exceptions=True)
    failure = next((o for o in outcomes if isinstance(o, BaseException)), None)
    if failure is not None:
        await _stop_started(coverage)
        raise failure

    try:
        if url:
            await channel.send("Page.enable")
            await channel.send("Page.navigate", {"url": url})
            logger.info("navigated to %s", url)
        await asyncio.sleep(settle_s)
    except BaseException:
        # includes cancellation; the tab must not be left with tracking switched on
        await _stop_started(coverage)
        raise

    kinds: list[CoverageKind] = []
    stops = []
    if js:  kinds.append("js");  stops.append(coverage.stop_js_coverage())
    if css: kinds.append("css"); stops.append(coverage.stop_css_coverage())
    results: dict[CoverageKind, list[CoverageEntry]] = dict(zip(kinds, await asyncio.gather(*stops)))

    for sink in sinks:
        for kind, entries in results.items():
            await sink.write_entries(kind, entries)
    return results


def build_sinks(cfg: CollectConfig) -> list[CoverageSink]:
    sinks: list[CoverageSink] = []
    if cfg.out: sinks.append(JSONLCoverageSink(cfg.out))
    if cfg.parquet_dir: sinks.append(ParquetRangeSink(cfg.parquet_dir))
    return sinks


async def collect_from_endpoint(cfg: CollectConfig) -> dict[CoverageKind, list[CoverageEntry]]:
    """Attach to a browser's remote-debugging endpoint and run collect_page_coverage."""
    async with httpx.AsyncClient(timeout=httpx.Timeout(cfg.timeout_s)) as client:
        ws_url = await discover_page_ws_url(cfg.endpoint, client, new_page=cfg.new_page)
        logger.info("attaching to %s", ws_url)
        async with HttpxCDPChannel.connect(ws_url, client=client, timeout_s=cfg.timeout_s) as channel:
            return await collect_page_coverage(
                channel=channel,
                url=cfg.url,
                settle_s=cfg.settle_s,
                js=cfg.js,
                css=cfg.css,
                script_options=cfg.script_options(),
                style_options=cfg.style_options(),
                sinks=build_sinks(cfg),
            )
