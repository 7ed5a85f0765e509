"""Shared utilities for pipeseed CLI modules."""
from __future__ import annotations

import os
from typing import Optional

import typer
from rich.console import Console

from pipeseed.core.config import PipeseedConfig, load_config
from pipeseed.core.orchestrator import PipelineOrchestrator
from pipeseed.services.git_manager import GitManager
from pipeseed.services.gitlab.client import GitLabClient
from pipeseed.services.gitlab.namespaces import NamespaceResolver
from pipeseed.services.gitlab.projects import ProjectProvisioner
from pipeseed.services.publisher import Publisher
from pipeseed.services.templates.source import TemplateSourceResolver


def is_mock() -> bool:
    """Return True when CLI runs in mock mode."""
    return os.environ.get("PIPESEED_MOCK") == "1"


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands.

    Args:
        log_file: Path to log file (optional)
        verbose: Enable verbose logging
    """
    from pipeseed.core.logger import set_verbose
    from pipeseed.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)
    set_verbose(verbose)


def load_settings(config_path: Optional[str]) -> PipeseedConfig:
    """Load configuration and fail early when no token is available."""
    config = load_config(config_path)
    config.require_token()
    return config


def get_git_manager(config: PipeseedConfig, mock: Optional[bool] = None) -> GitManager:
    """Return a GitManager honouring the configured author and TLS policy."""
    if mock is None:
        mock = is_mock()
    return GitManager(
        mock=mock,
        ssl_verify=config.ssl_verify,
        author_name=config.commit_author_name,
        author_email=config.commit_author_email,
    )


def build_orchestrator(
    config: PipeseedConfig,
    client: Optional[GitLabClient] = None,
    mock: Optional[bool] = None,
) -> PipelineOrchestrator:
    """Wire every provisioning component from one configuration."""
    client = client or GitLabClient.from_config(config)
    git = get_git_manager(config, mock=mock)
    return PipelineOrchestrator(
        config=config,
        resolver=NamespaceResolver(client, allow_root_creation=config.allow_root_groups),
        provisioner=ProjectProvisioner(
            client,
            delete_wait_attempts=config.delete_wait_attempts,
            delete_wait_delay=config.delete_wait_delay,
        ),
        templates=TemplateSourceResolver(
            git,
            client=client,
            strategy=config.template_strategy,
            workspace_dir=config.workspace_dir,
        ),
        publisher=Publisher(git, branch=config.default_branch, commit_message=config.commit_message),
    )


def parse_assignments(values: Optional[list]) -> dict:
    """Turn repeated `--set key=value` options into an ordered mapping.

    Raises:
        typer.BadParameter: If an option is not in key=value form
    """
    table = {}
    for item in values or []:
        if "=" not in item:
            raise typer.BadParameter(f"'{item}' is not in key=value form", param_hint="--set")
        key, value = item.split("=", 1)
        if not key.strip():
            raise typer.BadParameter(f"'{item}' has an empty key", param_hint="--set")
        table[key.strip()] = value
    return table


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting."""
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    """Print error message with consistent formatting."""
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    """Print warning message with consistent formatting."""
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    """Print info message with consistent formatting."""
    console.print(f"[cyan]{prefix}[/cyan] {message}")
