"""
LLMCMD CLI — The Interface

  llmcmd run        (GitHub Actions entry point; inputs come from INPUT_* env vars)
  llmcmd commands   (list the commands a repo configures)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from llmcmd.actions import ActionOutputs
from llmcmd.agents.backend import ModelBackend
from llmcmd.config_loader import ConfigError, DEFAULT_CONFIG_PATH, load_config
from llmcmd.controller import RunController
from llmcmd.github import GitHubContext, GitHubService
from llmcmd.identity import BANNER, __codename__, __tagline__, __version__
from llmcmd.router import Router

load_dotenv()

app = typer.Typer(
    name="llmcmd",
    help=f"{__codename__} — {__tagline__}\nConfig-driven LLM commands for pull requests.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__codename__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    pass


def _print_banner():
    console.print(f"[bright_cyan]{BANNER}[/]")
    console.print(f"  [dim]v{__version__} — {__tagline__}[/]\n")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def run(
    commands: str = typer.Option("", "--commands", "-c", envvar="INPUT_COMMANDS", help="Commands to run, comma or newline separated"),
    github_token: Optional[str] = typer.Option(None, "--github-token", envvar=["INPUT_GITHUB_TOKEN", "GITHUB_TOKEN"], help="Token for the GitHub API"),
    config_path: Optional[str] = typer.Option(None, "--config-path", envvar="INPUT_CONFIG_PATH", help=f"Config file (default {DEFAULT_CONFIG_PATH})"),
    workspace: Optional[Path] = typer.Option(None, "--workspace", "-w", envvar="GITHUB_WORKSPACE", help="Repository checkout"),
    debug: bool = typer.Option(False, "--debug", envvar="INPUT_DEBUG", help="Append usage details to posted comments"),
    plan: Optional[bool] = typer.Option(None, "--plan/--no-plan", envvar="INPUT_PLAN", help="Run the planning pass (overrides config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Run configured commands against the current pull request."""
    _print_banner()
    _configure_logging(verbose)

    outputs = ActionOutputs()

    if not github_token:
        outputs.set_failed("GitHub token is required")
        raise typer.Exit(1)

    workspace = (workspace or Path.cwd()).resolve()
    try:
        config = load_config(workspace, config_path or None)
    except ConfigError as e:
        outputs.set_failed(str(e))
        raise typer.Exit(1)

    context = GitHubContext.from_env()
    github = GitHubService(github_token, context)
    router = Router(config.llm_clients)

    controller = RunController(
        config=config,
        context=context,
        github=github,
        backend=ModelBackend(router),
        working_dir=workspace,
        outputs=outputs,
        debug=debug,
        plan=plan,
    )

    try:
        result = controller.run(commands)
    finally:
        github.close()

    _print_usage(router)

    status_color = {"success": "green", "partial": "yellow", "skipped": "dim"}.get(result.status, "red")
    console.print(f"\n[bold {status_color}]Status: {result.status}[/]")
    for line in result.summaries:
        console.print(f"  {line}")

    if outputs.failed:
        raise typer.Exit(1)


@app.command("commands")
def list_commands(
    workspace: Optional[Path] = typer.Option(None, "--workspace", "-w", help="Repository checkout"),
    config_path: Optional[str] = typer.Option(None, "--config-path", help=f"Config file (default {DEFAULT_CONFIG_PATH})"),
):
    """Show the commands configured for a repository."""
    _print_banner()

    workspace = (workspace or Path.cwd()).resolve()
    try:
        config = load_config(workspace, config_path)
    except ConfigError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)

    table = Table(title="Commands", border_style="cyan")
    table.add_column("Command")
    table.add_column("Description")
    table.add_column("Instructions", justify="right")
    table.add_column("From comment")

    for name, command in config.commands.items():
        table.add_row(
            f"/{name}",
            command.description,
            str(len(command.instructions)),
            "[green]✓[/]" if command.can_execute_from_comment else "[dim]✗[/]",
        )

    console.print(table)

    console.print("\n[bold]Clients:[/]")
    for role in ("large", "small"):
        client = getattr(config.llm_clients, role)
        console.print(f"  {role:<6} {client.provider} / {client.options.get('model', '?')}")
    console.print(f"  Planning: {'on' if config.plan else 'off'}")
    if config.handle:
        console.print(f"  Handle:   {config.handle}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _print_usage(router: Router) -> None:
    summary = router.total.summary()
    console.print(Panel(
        f"Tokens: {summary['total_tokens']:,} / "
        f"Cost: ${summary['estimated_cost']:.4f} / "
        f"Calls: {summary['call_count']}",
        title="💸 Usage",
        border_style="green",
    ))


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    if verbose or os.environ.get("RUNNER_DEBUG") == "1":
        logger.add(
            lambda msg: console.print(msg, style="dim", highlight=False, markup=False, end=""),
            level="DEBUG",
            format="{time:HH:mm:ss} | {level:<7} | {message}",
        )
    else:
        logger.add(
            lambda msg: console.print(msg, highlight=False, markup=False, end=""),
            level="INFO",
            format="{level:<7} | {message}",
        )


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
