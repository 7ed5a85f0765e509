"""Export the projects of a GitLab group to CSV."""
import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from pipeseed.core.logger import get_logger
from pipeseed.services.gitlab.client import GitLabClient, GitLabNotFoundError
from pipeseed.services.templates.source import project_path_from_location

logger = get_logger(__name__)

EXPORT_COLUMNS = ["projectid", "projectname", "namespaceid", "ssh repository"]


@dataclass
class ProjectRow:
    """One exported project."""
    project_id: int
    name: str
    namespace_id: Optional[int]
    ssh_url: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ProjectRow":
        namespace = data.get("namespace") or {}
        return cls(
            project_id=data["id"],
            name=data.get("name", ""),
            namespace_id=namespace.get("id"),
            ssh_url=data.get("ssh_url_to_repo") or "",
        )


def resolve_group_id(client: GitLabClient, group: str) -> int:
    """Resolve a group given as URL, full path or numeric id.

    Raises:
        GitLabNotFoundError: If the group does not exist
    """
    if group.isdigit():
        return int(group)
    path = project_path_from_location(group, client.base_url)
    found = client.get_group(path)
    if found is None:
        raise GitLabNotFoundError(f"Group '{path}' not found", 404)
    logger.info(f"Found group {path} (id={found.id})")
    return found.id


def collect_projects(client: GitLabClient, group: str, include_subgroups: bool = False) -> List[ProjectRow]:
    """Page through every project of a group."""
    group_id = resolve_group_id(client, group)
    rows = [ProjectRow.from_api(p) for p in client.list_group_projects(group_id, include_subgroups)]
    logger.info(f"Collected {len(rows)} project(s) from group {group_id}")
    return rows


def write_projects_csv(rows: List[ProjectRow], output: str) -> Path:
    """Write exported projects to a CSV file and return its path."""
    out_file = Path(output).expanduser()
    out_file.parent.mkdir(parents=True, exist_ok=True)
    with open(out_file, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(EXPORT_COLUMNS)
        for row in rows:
            writer.writerow([
                row.project_id,
                row.name,
                "" if row.namespace_id is None else row.namespace_id,
                row.ssh_url,
            ])
    return out_file
