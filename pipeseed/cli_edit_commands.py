"""In-place placeholder replacement in an existing remote project."""
from __future__ import annotations

from typing import List, Optional

import requests
import typer
from rich.console import Console

from pipeseed.cli_support import (
    handle_cli_error,
    load_settings,
    parse_assignments,
    print_info,
    print_success,
    setup_file_logging,
)
from pipeseed.core.config import ConfigurationError
from pipeseed.services.gitlab.client import GitLabClient, GitLabError
from pipeseed.services.templates.remote_editor import RemoteTreeEditor
from pipeseed.services.templates.source import project_path_from_location


def register_edit_commands(app: typer.Typer, console: Console) -> None:
    """Attach the edit command to the main CLI."""

    @app.command("edit")
    def edit_command(
        project: str = typer.Argument(..., help="Project id, path (group/project) or URL."),
        assignments: List[str] = typer.Option(
            ..., "--set", "-s", help="Placeholder replacement KEY=VALUE (repeatable)."
        ),
        branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch to edit (default: project default)."),
        message: str = typer.Option("Replace template placeholders", "--message", "-m", help="Commit message."),
        config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to pipeseed.yml."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output."),
    ) -> None:
        """Replace placeholders directly in a remote project, without cloning it."""
        setup_file_logging(verbose=verbose)
        table = parse_assignments(assignments)

        try:
            settings = load_settings(config)
        except ConfigurationError as e:
            handle_cli_error(e, console, verbose, exit_code=2)

        ref = int(project) if project.isdigit() else project_path_from_location(project, settings.gitlab_url)

        try:
            client = GitLabClient.from_config(settings)
            changed = RemoteTreeEditor(client).substitute_in_place(ref, table, branch=branch, message=message)
        except (GitLabError, requests.RequestException) as e:
            handle_cli_error(e, console, verbose)

        if not changed:
            print_info(console, "No placeholders found - nothing changed")
            return
        for path in changed:
            console.print(f"  [dim]•[/dim] {path}")
        print_success(console, f"Updated {len(changed)} file(s) in {project}")
