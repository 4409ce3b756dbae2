"""Main CLI entry point using Typer."""

from collections.abc import Awaitable, Callable

import anyio
import typer
from rich.console import Console
from rich.table import Table

from termsync import __version__
from termsync.core.config import Settings, get_settings
from termsync.core.errors import CapabilityUnavailableError, NetworkError, ResponseError
from termsync.core.logging import configure_logging
from termsync.sessions.manager import TerminalManager
from termsync.sessions.models import TerminalModel
from termsync.sessions.restapi import TerminalAPIClient

app = typer.Typer(
    name="termsync",
    help="termsync - manage terminal sessions on a remote server",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]termsync[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    url: str | None = typer.Option(
        None,
        "--url",
        "-u",
        help="Server base URL (defaults to TERMSYNC_BASE_URL).",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging.",
    ),
) -> None:
    """
    termsync - keep track of the terminals running on a server.
    """
    overrides: dict[str, object] = {}
    if url:
        overrides["base_url"] = url
    if debug:
        overrides["debug"] = True
    settings = Settings(**overrides) if overrides else get_settings()
    configure_logging(settings)
    ctx.obj = settings


def _create_manager(settings: Settings) -> TerminalManager:
    return TerminalManager(
        settings=settings,
        api=TerminalAPIClient(settings),
        standby="never",
    )


def _run(func: Callable[[], Awaitable[None]]) -> None:
    """Run an async command body, reporting server errors."""
    try:
        anyio.run(func)
    except CapabilityUnavailableError:
        console.print("[red]Terminals are not available on this server[/red]")
        raise typer.Exit(1)
    except NetworkError as e:
        console.print(f"[red]Cannot reach the server:[/red] {e}")
        raise typer.Exit(1)
    except ResponseError as e:
        console.print(f"[red]Server error {e.status_code}:[/red] {e.message}")
        raise typer.Exit(1)


def _print_running(models: list[TerminalModel]) -> None:
    table = Table()
    table.add_column("#", style="dim")
    table.add_column("Name", style="bold cyan")
    for index, model in enumerate(models, start=1):
        table.add_row(str(index), model.name)
    console.print("[bold]Running Terminals[/bold]")
    console.print(table)


@app.command("list")
def list_terminals(ctx: typer.Context) -> None:
    """
    List the running terminals.
    """
    settings: Settings = ctx.obj

    async def do_list() -> None:
        manager = _create_manager(settings)
        try:
            await manager.refresh_running()
            models = list(manager.running())
        finally:
            manager.dispose()

        if models:
            _print_running(models)
        else:
            console.print("[dim]No running terminals[/dim]")

    _run(do_list)


@app.command()
def new(ctx: typer.Context) -> None:
    """
    Start a new terminal.
    """
    settings: Settings = ctx.obj

    async def do_new() -> None:
        manager = _create_manager(settings)
        try:
            await manager.ready
            connection = await manager.start_new()
            console.print(f"[green]Started terminal[/green] {connection.name}")
        finally:
            manager.dispose()

    _run(do_new)


@app.command()
def shutdown(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the terminal to shut down"),
) -> None:
    """
    Shut down a terminal by name.
    """
    settings: Settings = ctx.obj

    async def do_shutdown() -> None:
        manager = _create_manager(settings)
        try:
            await manager.ready
            await manager.shutdown(name)
        finally:
            manager.dispose()
        console.print(f"[green]Terminal {name} shut down[/green]")

    _run(do_shutdown)


@app.command("shutdown-all")
def shutdown_all(
    ctx: typer.Context,
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation.",
    ),
) -> None:
    """
    Shut down every running terminal.
    """
    settings: Settings = ctx.obj

    if not yes and not typer.confirm("Shut down all running terminals?"):
        console.print("[yellow]Aborted[/yellow]")
        raise typer.Exit()

    async def do_shutdown_all() -> None:
        manager = _create_manager(settings)
        try:
            await manager.refresh_running()
            count = len(list(manager.running()))
            await manager.shutdown_all()
            remaining = len(list(manager.running()))
        finally:
            manager.dispose()

        console.print(f"[green]Shut down {count} terminal(s)[/green]")
        if remaining:
            console.print(f"[yellow]{remaining} terminal(s) still running[/yellow]")

    _run(do_shutdown_all)


@app.command()
def watch(
    ctx: typer.Context,
    interval: float | None = typer.Option(
        None,
        "--interval",
        "-i",
        min=0.1,
        help="Base poll interval in seconds.",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        min=0.1,
        help="Stop watching after this many seconds.",
    ),
) -> None:
    """
    Print the running terminals every time they change.
    """
    settings: Settings = ctx.obj
    if interval is not None:
        settings = Settings(**{**settings.model_dump(), "poll_interval": interval})

    async def do_watch() -> None:
        manager = _create_manager(settings)
        manager.running_changed.subscribe(_print_running)
        manager.connection_failure.subscribe(
            lambda error: console.print(f"[red]Connection failure:[/red] {error}")
        )
        try:
            await manager.ready
            if not list(manager.running()):
                console.print("[dim]No running terminals[/dim]")
            if timeout is None:
                await anyio.sleep_forever()
            else:
                await anyio.sleep(timeout)
        finally:
            manager.dispose()

    try:
        _run(do_watch)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching[/yellow]")


if __name__ == "__main__":
    app()
