"""CLI handling for netguard.

This module provides the command-line interface for inspecting and driving
a persisted offline request queue: showing its status, replaying it against
the server, clearing it, or running a single liveness probe.

Usage:
    netguard --status --store PATH
    netguard --replay --store PATH [--base-url URL] [--health-url URL] [--verbose]
    netguard --clear --store PATH
    netguard --probe [--base-url URL] [--health-url URL] --store PATH
"""

import sys
from datetime import datetime

import click

from netguard.main_logging import configure_logging
from netguard.main_options import MutuallyExclusiveOption, require_one_of
from netguard.status_constants import HEALTH_URL
from netguard.status_probe import is_absolute_url

ACTIONS = ["status", "replay", "clear", "probe"]


def _action_option(name: str, help_text: str):
    return click.option(
        f"--{name}",
        is_flag=True,
        cls=MutuallyExclusiveOption,
        exclusive_with=[a for a in ACTIONS if a != name],
        help=help_text,
    )


@click.command()
@_action_option("status", "Show the number of queued requests")
@_action_option("replay", "Replay queued requests now")
@_action_option("clear", "Drop every queued request")
@_action_option("probe", "Check whether the health endpoint is reachable")
@click.option(
    "--store",
    required=True,
    type=click.Path(dir_okay=False),
    help="JSON file holding the persisted queue",
)
@click.option(
    "--base-url",
    default="",
    help="Base URL for relative request URLs; required by --probe and --replay unless --health-url is absolute",
)
@click.option("--health-url", default=HEALTH_URL, show_default=True, help="Liveness endpoint")
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable DEBUG-level logging",
)
def main(
    status: bool,
    replay: bool,
    clear: bool,
    probe: bool,
    store: str,
    base_url: str,
    health_url: str,
    verbose: bool,
) -> None:
    """Inspect and replay the offline request queue."""
    action = require_one_of(
        {"status": status, "replay": replay, "clear": clear, "probe": probe}, ACTIONS
    )
    if action in ("probe", "replay") and not base_url and not is_absolute_url(health_url):
        raise click.UsageError(
            f"--base-url is required for --{action} unless --health-url is absolute"
        )

    configure_logging(verbose)

    _run_action(action, store, base_url, health_url)


def _run_action(action: str, store: str, base_url: str, health_url: str) -> None:
    """Run the selected action and exit with its status code.

    Args:
        action: One of ACTIONS.
        store: Path of the queue store.
        base_url: Base URL for the HTTP client.
        health_url: Liveness endpoint.
    """
    import asyncio

    exit_code = asyncio.run(_dispatch(action, store, base_url, health_url))
    if exit_code:
        sys.exit(exit_code)


async def _dispatch(action: str, store: str, base_url: str, health_url: str) -> int:
    import httpx

    from netguard.offline_queue import OfflineQueue
    from netguard.queue_sender import HttpxSender
    from netguard.queue_store import JsonFileStore
    from netguard.status_monitor import StatusMonitor
    from netguard.status_probe import make_probe
    from netguard.status_source import ManualConnectivitySource

    async with httpx.AsyncClient(base_url=base_url) as client:
        queue = OfflineQueue(JsonFileStore(store), HttpxSender(client))
        monitor = StatusMonitor(
            ManualConnectivitySource(online=True),
            probe=make_probe(client),
            health_url=health_url,
        )
        try:
            if action == "status":
                _print_status(queue)
                return 0
            if action == "clear":
                total = queue.get_queue_status().total
                queue.clear_queue()
                click.echo(f"Cleared {total} queued request(s)")
                return 0
            if not await monitor.check_reachability():
                click.echo(f"Error: {health_url} is unreachable", err=True)
                return 1
            if action == "probe":
                click.echo(f"{health_url} is reachable")
                return 0
            await queue.process_queue()
            _print_status(queue)
            return 0
        finally:
            await queue.dispose()
            await monitor.dispose()


def _print_status(queue) -> None:
    """Print queue totals per priority and the oldest enqueue time."""
    status = queue.get_queue_status()
    click.echo(f"Queued requests: {status.total}")
    for priority, count in status.by_priority.items():
        click.echo(f"  {priority.value}: {count}")
    if status.oldest_enqueued_at is not None:
        oldest = datetime.fromtimestamp(status.oldest_enqueued_at).isoformat(timespec="seconds")
        click.echo(f"Oldest: {oldest}")
