"""Group project export command."""
from __future__ import annotations

from typing import Optional

import requests
import typer
from rich.console import Console

from pipeseed.cli_support import handle_cli_error, load_settings, print_success, setup_file_logging
from pipeseed.core.config import ConfigurationError
from pipeseed.services.gitlab.client import GitLabClient, GitLabError
from pipeseed.services.gitlab.export import collect_projects, write_projects_csv


def register_project_commands(app: typer.Typer, console: Console) -> None:
    """Attach the projects command to the main CLI."""

    @app.command("projects")
    def projects_command(
        group: str = typer.Argument(..., help="Group URL, full path or id."),
        output: str = typer.Option("gitlab_projects.csv", "--output", "-o", help="CSV file to write."),
        include_subgroups: bool = typer.Option(False, "--include-subgroups", help="Also list projects of subgroups."),
        config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to pipeseed.yml."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output."),
    ) -> None:
        """Export the projects of a GitLab group to CSV."""
        setup_file_logging(verbose=verbose)

        try:
            settings = load_settings(config)
        except ConfigurationError as e:
            handle_cli_error(e, console, verbose, exit_code=2)

        try:
            client = GitLabClient.from_config(settings)
            rows = collect_projects(client, group, include_subgroups=include_subgroups)
        except (GitLabError, requests.RequestException) as e:
            handle_cli_error(e, console, verbose)

        out_file = write_projects_csv(rows, output)
        print_success(console, f"Exported {len(rows)} project(s) to {out_file}")
