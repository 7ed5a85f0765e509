"""In-place editing of an existing remote repository over the GitLab files API.

GitLab has no folder objects, so before a file is written into a directory
that does not exist yet, an empty `.gitkeep` marker is created for every
missing directory along its path.
"""
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Set, Tuple, Union

from pipeseed.core.logger import get_logger
from pipeseed.core.substitution import decode_text, replace_tokens
from pipeseed.models.remote import RemoteProject
from pipeseed.services.gitlab.client import GitLabClient, GitLabNotFoundError

logger = get_logger(__name__)

MARKER_FILE = ".gitkeep"


class RemoteTreeEditor:
    """Writes and rewrites files in a remote project without a local clone."""

    def __init__(self, client: GitLabClient):
        self.client = client

    def _project(self, project: Union[int, str, RemoteProject]) -> RemoteProject:
        if isinstance(project, RemoteProject):
            return project
        found = self.client.get_project(project)
        if found is None:
            raise GitLabNotFoundError(f"Project '{project}' not found", 404)
        return found

    def _snapshot(self, project_id: int, branch: str) -> Tuple[Set[str], Set[str]]:
        """Return (directories, files) currently on the branch."""
        try:
            entries = self.client.list_tree(project_id, ref=branch, recursive=True)
        except GitLabNotFoundError:
            # empty repository or missing branch
            return set(), set()
        directories = {e["path"] for e in entries if e.get("type") == "tree"}
        files = {e["path"] for e in entries if e.get("type") == "blob"}
        return directories, files

    def write_files(
        self,
        project: Union[int, str, RemoteProject],
        files: Dict[str, str],
        branch: Optional[str] = None,
        message: str = "Update files",
    ) -> List[str]:
        """Create or update files, creating marker files for missing folders.

        Returns:
            Paths written, including any marker files, in write order
        """
        remote = self._project(project)
        branch = branch or remote.default_branch or "main"
        directories, existing = self._snapshot(remote.id, branch)
        written: List[str] = []

        for file_path, content in files.items():
            for folder in reversed(PurePosixPath(file_path).parents):
                folder_path = str(folder)
                if folder_path in (".", "") or folder_path in directories:
                    continue
                marker = f"{folder_path}/{MARKER_FILE}"
                if marker not in existing and marker not in files:
                    self.client.create_file(remote.id, marker, "", branch, f"Create folder {folder_path}")
                    existing.add(marker)
                    written.append(marker)
                directories.add(folder_path)

            if file_path in existing:
                self.client.update_file(remote.id, file_path, content, branch, message)
            else:
                self.client.create_file(remote.id, file_path, content, branch, message)
                existing.add(file_path)
            written.append(file_path)

        logger.info(f"Wrote {len(written)} file(s) to {remote.path_with_namespace or remote.id}@{branch}")
        return written

    def substitute_in_place(
        self,
        project: Union[int, str, RemoteProject],
        table: Dict[str, str],
        branch: Optional[str] = None,
        message: str = "Replace template placeholders",
    ) -> List[str]:
        """Replace placeholders in every text file of a remote project.

        Only files that actually change are written back.

        Returns:
            Sorted paths of the files that changed
        """
        remote = self._project(project)
        branch = branch or remote.default_branch or "main"
        _, files = self._snapshot(remote.id, branch)

        changed: Dict[str, str] = {}
        for file_path in sorted(files):
            text = decode_text(self.client.get_raw_file(remote.id, file_path, branch))
            if text is None:
                continue
            new_text, count = replace_tokens(text, table)
            if count:
                changed[file_path] = new_text

        if changed:
            self.write_files(remote, changed, branch=branch, message=message)
        else:
            logger.info(f"No placeholders found in {remote.path_with_namespace or remote.id}@{branch}")
        return sorted(changed)
