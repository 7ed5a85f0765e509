"""Jenkins build report command."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import requests
import typer
from rich.console import Console

from pipeseed.cli_support import handle_cli_error, print_success, setup_file_logging
from pipeseed.reports.build_report import JenkinsClient, generate_report, write_report_csv


def _parse_day(value: str, option: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError as exc:
        raise typer.BadParameter(f"'{value}' is not a YYYY-MM-DD date", param_hint=option) from exc


def register_report_commands(app: typer.Typer, console: Console) -> None:
    """Attach the report command to the main CLI."""

    @app.command("report")
    def report_command(
        jenkins_url: str = typer.Option(..., "--jenkins-url", help="Jenkins root URL."),
        user: str = typer.Option(..., "--user", "-u", help="Jenkins user name."),
        start: str = typer.Option(..., "--start", help="First day of the range (YYYY-MM-DD)."),
        end: str = typer.Option(..., "--end", help="Last day of the range, inclusive (YYYY-MM-DD)."),
        token_file: str = typer.Option("token.txt", "--token-file", help="File holding the Jenkins API token."),
        output: str = typer.Option("jenkins_report.csv", "--output", "-o", help="CSV file to write."),
        insecure: bool = typer.Option(False, "--insecure", help="Skip TLS certificate verification."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output."),
    ) -> None:
        """Summarize build health of every Jenkins pipeline job."""
        setup_file_logging(verbose=verbose)

        start_at = _parse_day(start, "--start")
        end_at = _parse_day(end, "--end") + timedelta(days=1) - timedelta(microseconds=1)
        if end_at < start_at:
            raise typer.BadParameter("--end is before --start", param_hint="--end")

        token_path = Path(token_file).expanduser()
        if not token_path.is_file():
            console.print(f"[red]Error:[/red] Token file not found: {token_path}")
            raise typer.Exit(2)

        client = JenkinsClient(jenkins_url, user, token_path.read_text().strip(), verify=not insecure)
        try:
            summaries = generate_report(client, start_at, end_at)
        except requests.RequestException as e:
            handle_cli_error(e, console, verbose)

        out_file = write_report_csv(summaries, output)
        print_success(console, f"Report for {len(summaries)} job(s) written to {out_file}")
