"""Provisioning CLI commands: batch bootstrap and single-record setup."""
from __future__ import annotations

from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from pipeseed.cli_support import (
    build_orchestrator,
    handle_cli_error,
    is_mock,
    load_settings,
    parse_assignments,
    print_error,
    print_info,
    print_success,
    print_warning,
    setup_file_logging,
)
from pipeseed.config.records import InputRecord, RecordError, load_records
from pipeseed.core.config import ConfigurationError
from pipeseed.models.outcome import LaneStatus, RecordOutcome, count_by_status

_STATUS_STYLE = {
    LaneStatus.DONE: "[green]done[/green]",
    LaneStatus.SKIPPED: "[yellow]skipped[/yellow]",
    LaneStatus.FAILED: "[red]failed[/red]",
}


def render_summary(console: Console, outcomes: List[RecordOutcome]) -> None:
    """Print one row per lane plus the status totals."""
    table = Table(title="Provisioning Summary", show_header=True, header_style="bold cyan")
    table.add_column("Application", style="bold")
    table.add_column("Team")
    table.add_column("Lane")
    table.add_column("Project", style="blue")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Detail", style="dim")

    for record in outcomes:
        for lane in record.lanes:
            detail = lane.error or ""
            if lane.status == LaneStatus.FAILED:
                detail = f"{lane.step.value}: {detail}"
            elif lane.status == LaneStatus.SKIPPED:
                detail = "project already exists"
            elif lane.project is not None:
                detail = lane.project.web_url or lane.project.path_with_namespace or ""
            table.add_row(
                record.application,
                record.team,
                lane.kind.value.upper(),
                lane.project_name,
                _STATUS_STYLE[lane.status],
                str(lane.files_modified) if lane.status == LaneStatus.DONE else "-",
                detail,
            )

    console.print(table)

    counts = count_by_status(outcomes)
    console.print(
        f"\n{counts[LaneStatus.DONE]} done, "
        f"{counts[LaneStatus.SKIPPED]} skipped, "
        f"{counts[LaneStatus.FAILED]} failed"
    )


def _run_batch(
    console: Console,
    records: List[InputRecord],
    config_path: Optional[str],
    verbose: bool,
) -> None:
    try:
        settings = load_settings(config_path)
        orchestrator = build_orchestrator(settings)
    except (ConfigurationError, ValueError) as e:
        handle_cli_error(e, console, verbose, exit_code=2)

    if is_mock():
        print_warning(console, "Mock mode: git commands are logged, not executed")

    try:
        outcomes = orchestrator.run(records)
    except RecordError as e:
        handle_cli_error(e, console, verbose, exit_code=2)
    render_summary(console, outcomes)

    if not all(outcome.ok for outcome in outcomes):
        print_error(console, "Some lanes failed - see the log for details")
        raise typer.Exit(1)
    print_success(console, "All lanes completed")


def register_bootstrap_commands(app: typer.Typer, console: Console) -> None:
    """Attach provisioning commands to the main CLI."""

    @app.command("bootstrap")
    def bootstrap_command(
        records_file: str = typer.Argument(..., help="Input records (.csv, .xlsx, .yml or .yaml)."),
        config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to pipeseed.yml."),
        delete_existing: bool = typer.Option(
            False, "--delete-existing", help="Delete and recreate projects that already exist (every record)."
        ),
        log_file: Optional[str] = typer.Option(None, "--log-file", help="Write a log file here."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output."),
    ) -> None:
        """Provision CI and CD repositories for every record in a file."""
        setup_file_logging(log_file, verbose)

        try:
            records = load_records(records_file)
        except RecordError as e:
            handle_cli_error(e, console, verbose, exit_code=2)

        if not records:
            print_info(console, f"No records found in {records_file}")
            return

        if delete_existing:
            records = [r.model_copy(update={"delete_existing": True}) for r in records]
            print_warning(console, "Existing projects with the same name will be deleted")

        _run_batch(console, records, config, verbose)

    @app.command("setup")
    def setup_command(
        application: str = typer.Argument(..., help="Application name."),
        team: str = typer.Argument(..., help="Owning team."),
        ci_template: Optional[str] = typer.Option(None, "--ci-template", help="CI template repository URL."),
        cd_template: Optional[str] = typer.Option(None, "--cd-template", help="CD template repository URL."),
        assignments: Optional[List[str]] = typer.Option(
            None, "--set", "-s", help="Extra placeholder replacement KEY=VALUE (repeatable)."
        ),
        delete_existing: bool = typer.Option(
            False, "--delete-existing", help="Delete and recreate the projects if they exist."
        ),
        config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to pipeseed.yml."),
        log_file: Optional[str] = typer.Option(None, "--log-file", help="Write a log file here."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output."),
    ) -> None:
        """Provision the CI and CD repositories of a single application."""
        setup_file_logging(log_file, verbose)

        try:
            record = InputRecord(
                application=application,
                team=team,
                ci_template=ci_template,
                cd_template=cd_template,
                replacements=parse_assignments(assignments),
                delete_existing=delete_existing,
            )
        except ValueError as e:
            handle_cli_error(e, console, verbose, exit_code=2)

        _run_batch(console, [record], config, verbose)
