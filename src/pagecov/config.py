from __future__ import annotations
import os
from dataclasses import dataclass, replace
from typing import Any, Mapping

from .domain.models import ScriptCoverageOptions, StyleCoverageOptions

DEFAULT_ENDPOINT = "http://127.0.0.1:9222"

@dataclass(slots=True, frozen=True)
class CollectConfig:
    endpoint: str = DEFAULT_ENDPOINT
    url: str | None = None
    settle_s: float = 2.0
    js: bool = True
    css: bool = True
    report_anonymous_scripts: bool = False
    reset_on_navigation: bool = True
    new_page: bool = False
    timeout_s: float = 30.0
    out: str | None = None
    parquet_dir: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CollectConfig":
        env = os.environ if environ is None else environ
        kw: dict[str, Any] = {}
        if env.get("PAGECOV_ENDPOINT"): kw["endpoint"] = env["PAGECOV_ENDPOINT"]
        if env.get("PAGECOV_SETTLE"):   kw["settle_s"] = float(env["PAGECOV_SETTLE"])
        if env.get("PAGECOV_TIMEOUT"):  kw["timeout_s"] = float(env["PAGECOV_TIMEOUT"])
        return cls(**kw)

    def override(self, **changes: Any) -> "CollectConfig":
        """Apply CLI overrides; None means "keep the current value"."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def script_options(self) -> ScriptCoverageOptions:
        return ScriptCoverageOptions(
            reset_on_navigation=self.reset_on_navigation,
            report_anonymous_scripts=self.report_anonymous_scripts,
        )

    def style_options(self) -> StyleCoverageOptions:
        return StyleCoverageOptions(reset_on_navigation=self.reset_on_navigation)
