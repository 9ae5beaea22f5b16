from __future__ import annotations

from ..domain.models import CoverageEntry, ScriptCoverageOptions, StyleCoverageOptions
from ..ports.channel import InstrumentationChannel
from .script_coverage import ScriptCoverageTracker
from .style_coverage import StyleCoverageTracker


class Coverage:
    """
    JS and CSS coverage for one page session. The two trackers share the channel
    but are started and stopped independently.

    Anonymous scripts (eval, new Function) are reported only with
    report_anonymous_scripts=True, under a synthetic debugger://VM<id> URL.
    """
    def __init__(self, channel: InstrumentationChannel) -> None:
        self.js = ScriptCoverageTracker(channel)
        self.css = StyleCoverageTracker(channel)

    async def start_js_coverage(
        self,
        options: ScriptCoverageOptions | None = None,
        *,
        reset_on_navigation: bool | None = None,
        report_anonymous_scripts: bool | None = None,
    ) -> None:
        opts = options or ScriptCoverageOptions()
        if reset_on_navigation is not None or report_anonymous_scripts is not None:
            opts = ScriptCoverageOptions(
                reset_on_navigation=opts.reset_on_navigation if reset_on_navigation is None else reset_on_navigation,
                report_anonymous_scripts=opts.report_anonymous_scripts if report_anonymous_scripts is None else report_anonymous_scripts,
            )
        await self.js.start(opts)

    async def stop_js_coverage(self) -> list[CoverageEntry]:
        return await self.js.stop()

    async def start_css_coverage(
        self,
        options: StyleCoverageOptions | None = None,
        *,
        reset_on_navigation: bool | None = None,
    ) -> None:
        opts = options or StyleCoverageOptions()
        if reset_on_navigation is not None:
            opts = StyleCoverageOptions(reset_on_navigation=reset_on_navigation)
        await self.css.start(opts)

    async def stop_css_coverage(self) -> list[CoverageEntry]:
        return await self.css.stop()
