from __future__ import annotations

import json
import signal
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .app_context import AppContext, VERSION
from .config.loader import load_server_config
from .config.models import FAMILIES, ServerConfig
from .errors import BackendUnavailable, ConfigError
from .logs import console as err_console, setup_logging
from .mcp.server import StdioServer
from .tools.base import Success

app = typer.Typer(add_completion=False, help="opsmcp: MCP servers for Postgres, Docker, Redis and git.")
console = Console()


def _load_config(family: str, config: Path | None, log_level: str | None) -> ServerConfig:
    try:
        cfg = load_server_config(family, explicit_path=config)
    except ConfigError as e:
        err_console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(code=2)
    setup_logging(log_level or cfg.log_level)
    return cfg


def _open(cfg: ServerConfig) -> AppContext:
    try:
        return AppContext.open(cfg)
    except ConfigError as e:
        err_console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(code=2)
    except BackendUnavailable as e:
        err_console.print(f"[red]Startup failed:[/red] {e}")
        raise typer.Exit(code=1)


def _check_family(family: str) -> str:
    if family not in FAMILIES:
        raise typer.BadParameter(f"must be one of: {', '.join(FAMILIES)}")
    return family


@app.command()
def serve(
    family: str = typer.Argument(..., callback=_check_family, help="Server family: postgres/docker/redis/git."),
    config: Path = typer.Option(None, "--config", help="Optional YAML config (opsmcp.yaml) path."),
    log_level: str = typer.Option(None, "--log-level", help="Log level on stderr (default INFO)."),
):
    """Serve one tool family over stdio (MCP, line-delimited JSON-RPC)."""
    cfg = _load_config(family, config, log_level)
    ctx = _open(cfg)
    server = StdioServer(
        ctx.dispatcher,
        ctx.registry,
        name=ctx.server_name,
        version=VERSION,
        stdin=sys.stdin,
        stdout=sys.stdout,
    )
    # SIGTERM takes the same cleanup path as EOF and Ctrl-C
    signal.signal(signal.SIGTERM, lambda *_: sys.exit(0))
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        err_console.print("Interrupted, closing backend.")
    finally:
        ctx.close()


@app.command()
def tools(
    family: str = typer.Argument(..., callback=_check_family, help="Server family: postgres/docker/redis/git."),
):
    """List the tools a server family exposes (no backend connection needed)."""
    cfg = ServerConfig(family=family, target="")
    ctx = AppContext.build(cfg)
    table = Table(title=f"{ctx.server_name} {VERSION}")
    table.add_column("tool", style="bold green")
    table.add_column("description")
    table.add_column("arguments", style="bright_cyan")
    for spec in ctx.registry.list_specs():
        fields = []
        for f in spec.fields:
            kind = "|".join(f.choices) if f.kind == "enum" else f.kind
            text = f"{f.name}{'' if f.required else '?'}: {kind}"
            if f.has_default:
                text += f" = {json.dumps(f.default)}"
            fields.append(text)
        table.add_row(spec.name, spec.description, "\n".join(fields) or "-")
    console.print(table)


@app.command()
def call(
    family: str = typer.Argument(..., callback=_check_family, help="Server family: postgres/docker/redis/git."),
    tool: str = typer.Argument(..., help="Tool name, e.g. list_tables."),
    args: str = typer.Option("{}", "--args", "-a", help="Tool arguments as a JSON object."),
    config: Path = typer.Option(None, "--config", help="Optional YAML config (opsmcp.yaml) path."),
    log_level: str = typer.Option(None, "--log-level", help="Log level on stderr (default INFO)."),
):
    """Run a single tool call and print the result."""
    try:
        raw_args = json.loads(args)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"--args is not valid JSON: {e}")
    cfg = _load_config(family, config, log_level)
    ctx = _open(cfg)
    try:
        outcome = ctx.dispatcher.call(tool, raw_args)
    finally:
        ctx.close()
    if isinstance(outcome, Success):
        body = "\n".join(b["text"] for b in outcome.content)
        console.print(Panel(Text(body), title=f"[bold green]{tool}[/bold green]", border_style="green"))
        return
    console.print(Panel(Text(outcome.message), title=f"[bold red]{tool}[/bold red]", border_style="red"))
    raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
