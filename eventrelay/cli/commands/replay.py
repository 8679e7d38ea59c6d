"""Replay command - forward a saved event payload by hand."""

import asyncio
import json
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.panel import Panel

from eventrelay.core.config import RelayConfig
from eventrelay.webhooks.pipeline import RelayPipeline, RelayResult

console = Console()


async def replay_payload(config: RelayConfig, payload: bytes) -> RelayResult:
    """Run a payload through the relay pipeline with a fresh HTTP client."""
    async with httpx.AsyncClient(timeout=config.timeout_seconds) as client:
        pipeline = RelayPipeline.from_config(config, client)
        return await pipeline.run(payload)


def replay(
    payload_file: Path = typer.Argument(..., help="JSON file holding an event or event batch"),
):
    """
    Forward a saved payload to the configured targets.

    Dropped deliveries are only recorded in the log stream; copy the
    payload from the log into a file and replay it with this command.

    Example:
        eventrelay replay events.json
    """
    from eventrelay.cli.main import load_config

    config = load_config()

    if not payload_file.exists():
        console.print(f"[red]Error: File not found: {payload_file}[/red]")
        raise typer.Exit(1)

    result = asyncio.run(replay_payload(config, payload_file.read_bytes()))
    body = result.response.body
    ok = body.get("ok", True)

    console.print(Panel(
        json.dumps(body, indent=2),
        title=" -> ".join(str(t) for t in result.trace),
        border_style="green" if ok else "red"
    ))

    if not ok:
        raise typer.Exit(1)
