from __future__ import annotations
from typing import NewType, Literal

ScriptId     = NewType("ScriptId", str)
StyleSheetId = NewType("StyleSheetId", str)
Url          = NewType("Url", str)
TrackerState = Literal["idle", "active"]
CoverageKind = Literal["js", "css"]

# URL tagged on scripts the tooling itself evaluates in the page; never reported.
EVALUATION_SCRIPT_URL = Url("__puppeteer_evaluation_script__")
