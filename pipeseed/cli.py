#!/usr/bin/env python3
"""pipeseed CLI - Bootstrap CI/CD repositories from templates on GitLab."""

import typer

from pipeseed.cli_bootstrap_commands import register_bootstrap_commands
from pipeseed.cli_edit_commands import register_edit_commands
from pipeseed.cli_project_commands import register_project_commands
from pipeseed.cli_report_commands import register_report_commands
from pipeseed.core.logger import console

app = typer.Typer(
    name="pipeseed",
    help="""pipeseed - Bootstrap CI/CD repositories on GitLab

One row per application. Groups, projects and a first commit.

Quick start:
  pipeseed setup billing payments --ci-template https://gitlab.example.com/tpl/ci.git
  pipeseed bootstrap apps.csv                # Every row, CI then CD
  pipeseed edit group/project --set K=V      # Fix placeholders in place

More commands: pipeseed --help
""",
    add_completion=False,
)

# Attach modular subcommands
register_bootstrap_commands(app, console)
register_edit_commands(app, console)
register_project_commands(app, console)
register_report_commands(app, console)

if __name__ == "__main__":
    app()
