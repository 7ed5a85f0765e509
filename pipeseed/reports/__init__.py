"""Reports built from CI server data."""

from .build_report import (
    BuildInfo,
    JenkinsClient,
    JenkinsJob,
    JobSummary,
    build_health,
    generate_report,
    summarize_job,
    write_report_csv,
)

__all__ = [
    "BuildInfo",
    "JenkinsClient",
    "JenkinsJob",
    "JobSummary",
    "build_health",
    "generate_report",
    "summarize_job",
    "write_report_csv",
]
