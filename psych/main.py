"""Entry point for psych — `psychd` console script."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

import httpx
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from psych.config import settings
from psych.probe import HealthVerdict, MetricEmitter, ResponsePool, SessionSupervisor
from psych.sites.registry import SiteRegistry, SiteTarget
from psych.storage.tsdb import StorageError, TimeSeriesStore

console = Console()
logger = logging.getLogger(__name__)


async def _monitor(targets: list[SiteTarget], store: TimeSeriesStore) -> None:
    pool = ResponsePool()
    emitter = MetricEmitter(store)
    async with httpx.AsyncClient(follow_redirects=True) as client:
        supervisor = SessionSupervisor(pool, emitter, client)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, supervisor.stop)
            except NotImplementedError:
                # No loop signal handlers on Windows; Ctrl+C still cancels asyncio.run.
                break
        await supervisor.run(targets)
    if emitter.dropped:
        logger.warning("%d metric batches were dropped", emitter.dropped)


def run_monitor(sites_file: str | None = None) -> int:
    """Open the store, load sites and probe them until terminated."""
    try:
        store = TimeSeriesStore(settings.data_path)
    except StorageError as e:
        console.print(f"[bold red]Cannot start:[/bold red] {e}")
        return 1

    try:
        registry = SiteRegistry(Path(sites_file) if sites_file else None)
        targets = registry.load()
        if not targets:
            console.print(f"[yellow]No sites configured in {registry.path} — nothing to monitor.[/yellow]")
            return 0

        console.print(
            Panel.fit(
                "\n".join(
                    f"[bold]{t.key}[/bold]  {t.url}  every {t.interval_milliseconds}ms  "
                    f"(timeout {t.timeout_seconds:g}s, warn ≥ {t.warning_threshold_seconds:g}s)"
                    for t in targets
                ),
                title="psychd",
                border_style="green",
            )
        )
        try:
            asyncio.run(_monitor(targets, store))
        except KeyboardInterrupt:
            pass
    finally:
        store.close()
    return 0


def run_query(metric: str, key: str, url: str | None = None, since: int = 3600) -> int:
    """Print the stored points of one metric for one site."""
    try:
        store = TimeSeriesStore(settings.data_path)
    except StorageError as e:
        console.print(f"[bold red]{e}[/bold red]")
        return 1

    try:
        series = [
            labels for _, labels in store.list_series(metric)
            if labels.get("key") == key and (url is None or labels.get("url") == url)
        ]
        if not series:
            console.print(f"[yellow]No '{metric}' data for site '{key}'.[/yellow]")
            return 1

        start = int(time.time()) - since
        for labels in series:
            table = Table(title=f"{metric} — {labels.get('key')} ({labels.get('url')})")
            table.add_column("Time (UTC)")
            table.add_column("Value", justify="right")
            for point in store.select(metric, labels, start=start):
                when = datetime.fromtimestamp(point.timestamp, tz=timezone.utc).isoformat()
                table.add_row(when, _format_value(metric, point.value))
            console.print(table)
    finally:
        store.close()
    return 0


def _format_value(metric: str, value: float) -> str:
    if metric == "status":
        return HealthVerdict(int(value)).name
    if metric == "statusCode":
        return str(int(value))
    return f"{value:.3f}"


def run_testserver(host: str, port: int) -> None:
    """Serve the random-status test server."""
    console.print(Panel(f"Test server on http://{host}:{port}", style="bold green"))
    uvicorn.run(
        "psych.testserver:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="psych — multi-site uptime/latency probe")
    sub = parser.add_subparsers(dest="command")

    run_parser = sub.add_parser("run", help="Probe all configured sites until stopped")
    run_parser.add_argument("--sites", default=None, help=f"Sites file (default: {settings.sites_file})")

    query_parser = sub.add_parser("query", help="Show stored samples for a site")
    query_parser.add_argument("metric", choices=["duration", "statusCode", "status"])
    query_parser.add_argument("--key", required=True, help="Site key")
    query_parser.add_argument("--url", default=None, help="Restrict to one url label")
    query_parser.add_argument("--since", type=int, default=3600, help="Look-back window in seconds")

    ts_parser = sub.add_parser("testserver", help="Run the random-status test server")
    ts_parser.add_argument("--host", default=settings.testserver_host)
    ts_parser.add_argument("--port", type=int, default=settings.testserver_port)

    args = parser.parse_args()

    if args.command == "run":
        sys.exit(run_monitor(args.sites))
    elif args.command == "query":
        sys.exit(run_query(args.metric, args.key, args.url, args.since))
    elif args.command == "testserver":
        run_testserver(args.host, args.port)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
