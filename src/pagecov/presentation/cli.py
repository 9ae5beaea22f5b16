import asyncio
from typing import Optional

import httpx
import typer
from httpx_ws import HTTPXWSException
from rich.console import Console
from rich.table import Table

from ..application.use_cases import collect_from_endpoint
from ..config import CollectConfig
from ..domain.errors import ChannelError, CoverageStateError
from ..domain.models import CoverageEntry
from ..log import configure_logging

app = typer.Typer(help="Collect JS/CSS byte-range coverage from a page over the DevTools protocol.")
console = Console()

def _summary_table(kind: str, entries: list[CoverageEntry]) -> Table:
    table = Table(title=f"{kind} coverage", show_lines=False)
    table.add_column("url", overflow="fold")
    table.add_column("bytes", justify="right")
    table.add_column("used", justify="right")
    for e in entries:
        total = len(e.text)
        used = e.used_bytes()
        table.add_row(e.url, f"{total:,}", f"{used:,}")
    return table

@app.callback()
def main() -> None:
    """pagecov: DevTools-driven code coverage."""

@app.command()
def collect(
    endpoint: Optional[str] = typer.Option(None, envvar="PAGECOV_ENDPOINT", help="Remote-debugging HTTP endpoint"),
    url: Optional[str] = typer.Option(None, help="Navigate to this URL after coverage starts"),
    settle: Optional[float] = typer.Option(None, "--settle", help="Seconds to let the page run before stopping"),
    js: bool = typer.Option(True, "--js/--no-js"),
    css: bool = typer.Option(True, "--css/--no-css"),
    anonymous: bool = typer.Option(False, "--anonymous/--no-anonymous", help="Report eval/new Function scripts"),
    reset: bool = typer.Option(True, "--reset/--no-reset", help="Drop resources when the page navigates"),
    new_page: bool = typer.Option(False, "--new-page", help="Open a fresh tab instead of attaching to the first one"),
    timeout: Optional[float] = typer.Option(None, help="Per-command timeout in seconds"),
    out: Optional[str] = typer.Option(None, help="Append entries to this JSONL file"),
    parquet_dir: Optional[str] = typer.Option(None, help="Write <kind>_ranges.parquet files here"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
    debug: bool = typer.Option(False, "--debug"),
    quiet: bool = typer.Option(False, "-q", "--quiet"),
) -> None:
    configure_logging(debug=debug, verbose=verbose, quiet=quiet)
    cfg = CollectConfig.from_env().override(
        endpoint=endpoint, url=url, settle_s=settle, js=js, css=css,
        report_anonymous_scripts=anonymous, reset_on_navigation=reset, new_page=new_page,
        timeout_s=timeout, out=out, parquet_dir=parquet_dir,
    )
    try:
        results = asyncio.run(collect_from_endpoint(cfg))
    except (ChannelError, CoverageStateError, httpx.HTTPError, HTTPXWSException, ValueError) as e:
        console.print(f"[red]error[/]: {e}")
        raise typer.Exit(1)

    for kind, entries in results.items():
        console.print(_summary_table(kind, entries))
    total = sum(len(v) for v in results.values())
    console.print(f"[bold]done[/]: {total} entries")

if __name__ == "__main__":
    app()
