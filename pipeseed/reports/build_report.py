"""Jenkins build health report.

Walks every pipeline job on a Jenkins instance (descending into folders),
looks at the builds that started inside a date range and summarizes them:

- production deployments: successful builds whose description mentions
  "deployment to production"
- average duration of those deployments and of all builds (seconds)
- build health: "pass" when the newest failure was followed by a successful
  build within one hour, or when there were no failures and at least one
  success; "failed" otherwise
"""
import csv
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests

from pipeseed.core.logger import get_logger
from pipeseed.core.retry import retry

logger = get_logger(__name__)

PRODUCTION_MARKER = "deployment to production"
RECOVERY_WINDOW = timedelta(hours=1)
ROOT_FOLDER = "Root"

REPORT_COLUMNS = [
    "Project",
    "Root Folder",
    "total build on prod",
    "average build time successfully",
    "average build time",
    "build success",
]

_BUILD_FIELDS = "number,url,timestamp,duration,result,description"


@dataclass
class JenkinsJob:
    """A pipeline job and where it lives in the folder tree."""
    name: str
    full_name: str
    url: str
    root_folder: str


@dataclass
class BuildInfo:
    """The parts of a Jenkins build the report needs."""
    number: int
    timestamp: datetime
    duration: float
    result: Optional[str] = None
    description: str = ""
    url: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "BuildInfo":
        return cls(
            number=data.get("number", 0),
            timestamp=datetime.fromtimestamp(data.get("timestamp", 0) / 1000, tz=timezone.utc),
            duration=data.get("duration", 0) / 1000,
            result=data.get("result"),
            description=data.get("description") or "",
            url=data.get("url", ""),
        )

    @property
    def is_production(self) -> bool:
        return self.result == "SUCCESS" and PRODUCTION_MARKER in self.description


@dataclass
class JobSummary:
    """One report row."""
    project: str
    root_folder: str
    production_builds: int
    average_production_time: float
    average_build_time: float
    build_success: str

    def as_row(self) -> List[Any]:
        return [
            self.project,
            self.root_folder,
            self.production_builds,
            round(self.average_production_time, 2),
            round(self.average_build_time, 2),
            self.build_success,
        ]


class JenkinsClient:
    """Minimal Jenkins JSON API client.

    Args:
        url: Jenkins root URL
        username: User for basic auth
        token: API token for basic auth
        verify: True, False, or a CA bundle path
        timeout: Request timeout in seconds
        session: Pre-built requests session (tests inject a mock here)
    """

    def __init__(
        self,
        url: str,
        username: str,
        token: str,
        verify: Union[bool, str] = True,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (username, token)
        self.session.verify = verify

    @retry(max_attempts=3, delay=2.0, exceptions=(requests.ConnectionError, requests.Timeout))
    def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = self.session.get(f"{url.rstrip('/')}/api/json", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def list_jobs(self, url: Optional[str] = None, parent_path: str = "") -> List[JenkinsJob]:
        """Return every pipeline job below `url`, descending into folders."""
        jobs: List[JenkinsJob] = []
        pending = [(url or self.url, parent_path)]
        while pending:
            current_url, current_path = pending.pop(0)
            data = self._get_json(current_url)
            for item in data.get("jobs") or []:
                full_name = f"{current_path}/{item['name']}" if current_path else item["name"]
                job_class = item.get("_class", "")
                if "WorkflowJob" in job_class:
                    root = current_path.split("/")[0] if current_path else ROOT_FOLDER
                    jobs.append(JenkinsJob(item["name"], full_name, item["url"], root))
                elif "Folder" in job_class:
                    pending.append((item["url"], full_name))
        logger.info(f"Found {len(jobs)} pipeline job(s) on {self.url}")
        return jobs

    def get_builds(self, job_url: str) -> List[BuildInfo]:
        """Return the builds of a job with their timing and result."""
        data = self._get_json(job_url, params={"tree": f"builds[{_BUILD_FIELDS}]"})
        return [BuildInfo.from_api(build) for build in data.get("builds") or []]


def build_health(builds: List[BuildInfo]) -> str:
    """Return "pass" or "failed" for builds already limited to the report range."""
    ordered = sorted(builds, key=lambda b: b.timestamp)
    failures = [b for b in ordered if b.result == "FAILURE"]
    successes = [b for b in ordered if b.result == "SUCCESS"]

    if not failures:
        return "pass" if successes else "failed"

    last_failure = failures[-1].timestamp
    for build in successes:
        if last_failure < build.timestamp <= last_failure + RECOVERY_WINDOW:
            return "pass"
    return "failed"


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def summarize_job(job: JenkinsJob, builds: List[BuildInfo], start: datetime, end: datetime) -> JobSummary:
    """Summarize the builds of one job that started within [start, end]."""
    in_range = [b for b in builds if start <= b.timestamp <= end]
    production = [b for b in in_range if b.is_production]

    return JobSummary(
        project=job.full_name,
        root_folder=job.root_folder,
        production_builds=len(production),
        average_production_time=_average([b.duration for b in production]),
        average_build_time=_average([b.duration for b in in_range]),
        build_success=build_health(in_range),
    )


def generate_report(client: JenkinsClient, start: datetime, end: datetime) -> List[JobSummary]:
    """Summarize every pipeline job on the Jenkins instance."""
    summaries = []
    for job in client.list_jobs():
        try:
            builds = client.get_builds(job.url)
        except requests.RequestException as e:
            logger.warning(f"Could not read builds of {job.full_name}: {e}")
            builds = []
        summaries.append(summarize_job(job, builds, start, end))
    return summaries


def write_report_csv(summaries: List[JobSummary], output: str) -> Path:
    """Write report rows to a CSV file and return its path."""
    out_file = Path(output).expanduser()
    out_file.parent.mkdir(parents=True, exist_ok=True)
    with open(out_file, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(REPORT_COLUMNS)
        for summary in summaries:
            writer.writerow(summary.as_row())
    return out_file
