"""
eventrelay CLI - Command Line Interface

Main entry point for the `eventrelay` command.
"""

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from eventrelay.__version__ import __version__
from eventrelay.core.config import RelayConfig, get_config
from eventrelay.core.exceptions import RelayError
from eventrelay.cli.commands.replay import replay

# Initialize Typer app
app = typer.Typer(
    name="eventrelay",
    help="Webhook-forwarding proxy with subscription handshake, retries and canary fallback",
    add_completion=False,
)

app.command()(replay)

console = Console()


def load_config() -> RelayConfig:
    """Load process configuration or exit with the validation errors."""
    try:
        return get_config()
    except RelayError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        for error in e.context.get("errors", []):
            console.print(f"  • {error}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show eventrelay version."""
    console.print(f"[bold green]eventrelay[/bold green] version [cyan]{__version__}[/cyan]")


@app.command()
def config():
    """Show the effective configuration. Callback URLs are redacted."""
    summary = load_config().summary()

    table = Table(title="eventrelay configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    for key, value in summary.items():
        table.add_row(key, "[dim]not set[/dim]" if value is None else str(value))

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """
    Run the relay HTTP server.

    Examples:
        eventrelay serve
        eventrelay serve --port 7071
    """
    settings = load_config()
    console.print(
        f"[bold green]eventrelay[/bold green] listening on "
        f"[cyan]http://{host}:{port}/api/eventgrid-proxy[/cyan]"
    )
    uvicorn.run(
        "eventrelay.webhooks.server:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    app()
