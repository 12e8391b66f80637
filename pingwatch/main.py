"""Entry point for the pingwatch uptime monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel

from pingwatch.config import settings
from pingwatch.services import build_services

console = Console()
logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def run_server() -> None:
    """Start the API (and, unless disabled, the worker) under uvicorn."""
    from pingwatch.api.server import create_app

    console.print(Panel(
        f"Starting pingwatch API on {settings.api_host}:{settings.api_port} [{settings.env_name}]",
        style="bold green",
    ))
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port, reload=False)


async def _run_worker() -> None:
    services = build_services(settings)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            pass  # unsupported on this platform

    await services.worker.start()
    try:
        await stop.wait()
    finally:
        await services.worker.stop()


def run_worker() -> None:
    """Run only the background worker until interrupted."""
    console.print(Panel(
        f"Worker: checks every {settings.check_interval_seconds}s, "
        f"up to {settings.max_concurrent_probes} concurrent probes",
        title="pingwatch",
        style="bold blue",
    ))
    try:
        asyncio.run(_run_worker())
    except KeyboardInterrupt:
        pass


def run_rotation() -> None:
    """Rotate every active log once and print the result."""
    services = build_services(settings)
    report = services.worker.rotator.rotate()
    console.print(f"[bold]Rotated:[/bold] {len(report.rotated)}  [bold]Failed:[/bold] {len(report.failed)}")
    for log_id in report.failed:
        console.print(f"  [red]✗[/red] {log_id}")


def main() -> None:
    parser = argparse.ArgumentParser(description="pingwatch uptime monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server (with the worker)")
    sub.add_parser("worker", help="Run the check worker only")
    sub.add_parser("rotate", help="Compress and truncate all active logs once")

    args = parser.parse_args()
    _configure_logging()

    if args.command == "serve":
        run_server()
    elif args.command == "worker":
        run_worker()
    elif args.command == "rotate":
        run_rotation()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
