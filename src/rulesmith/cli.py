"""
Rulesmith command line interface.

Commands:
  serve  Run the HTTP/WebSocket completion server
  lsp    Run the stdio language server
  check  Show configuration and whether text generation is available
  run    Run the heuristic compile check and scenario checks on a DRL file
"""

import json
import platform
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rulesmith._version import get_version
from rulesmith.core.config import Settings, load_settings
from rulesmith.core.errors import ConfigurationError
from rulesmith.core.logging import setup_logging

app = typer.Typer(
    help="Rulesmith - DRL completion server with template, pattern and AI suggestions.",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"Rulesmith {get_version()}")
        typer.echo(f"Python {platform.python_version()} ({platform.python_implementation()})")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
) -> None:
    """Rulesmith CLI main callback for global options."""
    pass


def _load(config: Path | None) -> Settings:
    try:
        return load_settings(config)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port (default from config)"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to rulesmith.toml"),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="Write JSONL logs to this directory"),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
) -> None:
    """
    Start the completion server.

    Serves the JSON-RPC completion WebSocket plus the REST endpoints used by
    the browser editor.
    """
    import uvicorn

    from rulesmith.server.app import create_app

    settings = _load(config)
    if host:
        settings.server.host = host
    if port:
        settings.server.port = port
    if log_level:
        settings.server.log_level = log_level

    setup_logging(log_dir or settings.server.log_dir, settings.server.log_level)

    try:
        application = create_app(settings)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2)

    typer.echo(
        f"Rulesmith {get_version()} on http://{settings.server.host}:{settings.server.port} "
        f"(WebSocket {settings.server.ws_path})"
    )
    uvicorn.run(
        application,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level.lower(),
    )


@app.command()
def lsp(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to rulesmith.toml"),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="Write JSONL logs to this directory"),
) -> None:
    """
    Start the language server on stdio.

    Standard completion uses inline mode; generate/modify are available as
    the rulesmith/generateRule and rulesmith/modifyRule requests.
    """
    settings = _load(config)
    setup_logging(log_dir or settings.server.log_dir, settings.server.log_level)

    from rulesmith.lsp import start_server

    try:
        start_server(settings)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2)
    except KeyboardInterrupt:
        typer.echo("\nLSP server stopped.", err=True)


@app.command()
def check(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to rulesmith.toml"),
) -> None:
    """
    Show the effective configuration and verify text generation.
    """
    from rulesmith.lsp.orchestrator import build_template_library

    settings = _load(config)
    llm = settings.llm

    table = Table(title="Rulesmith configuration")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Config", str(settings.source or "(defaults)"))
    table.add_row("Server", f"{settings.server.host}:{settings.server.port}{settings.server.ws_path}")
    table.add_row("Provider", f"{llm.provider} ({llm.resolved_model})")
    table.add_row("API key env", f"{llm.resolved_key_env} ({'set' if llm.api_key() else 'missing'})")
    table.add_row("Templates", f"{len(build_template_library(settings))} (built-in + configured)")
    table.add_row(
        "Timeouts",
        f"generation {settings.completion.generation_timeout}s, inline {settings.completion.inline_timeout}s",
    )
    console.print(table)

    if llm.api_key():
        console.print("[green]Text generation available.[/green]")
        return
    if llm.required:
        console.print(f"[red]Text generation is required but {llm.resolved_key_env} is not set.[/red]")
        raise typer.Exit(code=1)
    console.print("[yellow]Text generation disabled; completions will use templates and fallbacks.[/yellow]")


_STATUS_STYLES = {"passed": "green", "failed": "red"}


@app.command()
def run(
    file: Path = typer.Argument(..., help="DRL file to check"),
    fact: Path | None = typer.Option(None, "--fact", help="Fact JSON file (default from config)"),
    bdd: Path | None = typer.Option(None, "--bdd", help="BDD scenario file (default from config)"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
) -> None:
    """
    Run the compile check and scenario checks on a DRL file.
    """
    from rulesmith.core.pipeline import analyze_drl, run_rule_tests

    settings = _load(None)
    if not file.exists():
        console.print(f"[red]File not found: {escape(str(file))}[/red]")
        raise typer.Exit(code=1)

    content = file.read_text(encoding="utf-8")
    compile_report = analyze_drl(content, settings.completion.fact_type)
    try:
        test_report = run_rule_tests(
            content,
            fact or settings.paths.fact_path,
            bdd or settings.paths.bdd_path,
        )
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Unable to load fact file: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps({"compile": compile_report.to_dict(), "tests": test_report.to_dict()}))
    else:
        style = _STATUS_STYLES[compile_report.status]
        console.print(f"Compile: [{style}]{compile_report.status}[/{style}]")
        for error in compile_report.errors:
            console.print(f"  [red]error:[/red]   {escape(error)}")
        for warning in compile_report.warnings:
            console.print(f"  [yellow]warning:[/yellow] {escape(warning)}")

        table = Table(title=escape(test_report.summary))
        table.add_column("Scenario")
        table.add_column("Status")
        table.add_column("Details")
        for case in test_report.cases:
            style = _STATUS_STYLES[case.status]
            table.add_row(case.name, f"[{style}]{case.status}[/{style}]", escape(case.details))
        console.print(table)

    if compile_report.status != "passed" or test_report.status != "passed":
        raise typer.Exit(code=1)


def main() -> None:
    app(standalone_mode=True)


if __name__ == "__main__":
    main()
