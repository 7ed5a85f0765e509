"""
Template acquisition - get a git-free local copy of a template repository.

Two strategies:
    clone: git clone --depth 1, then drop .git entirely
    api:   list the repository tree and download raw blobs over the GitLab API

`auto` picks clone when a git executable is available, api otherwise.
"""
import re
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple
from urllib.parse import urlparse

import requests

from pipeseed.core.logger import get_logger
from pipeseed.core.workspace import LocalWorkspace
from pipeseed.services.git_manager import GitCommandError, GitManager, redact
from pipeseed.services.gitlab.client import GitLabClient, GitLabError

logger = get_logger(__name__)

STRATEGIES = ("auto", "clone", "api")

_SCP_LIKE = re.compile(r"^[\w.-]+@[\w.-]+:(?P<path>.+)$")


class TemplateSourceError(Exception):
    """Raised when a template cannot be fetched (not found, auth, network)."""


def split_ref(location: str) -> Tuple[str, Optional[str]]:
    """Split an optional `#ref` suffix off a template location."""
    if "#" in location:
        url, ref = location.rsplit("#", 1)
        return url, ref or None
    return location, None


def project_path_from_location(location: str, gitlab_url: Optional[str] = None) -> str:
    """Derive the GitLab project path (group/sub/project) from a template location.

    Accepts https URLs, scp-like SSH URLs (git@host:group/project.git) and
    bare project paths.
    """
    url, _ = split_ref(location.strip())

    if url.startswith(("http://", "https://", "ssh://")):
        path = urlparse(url).path
        if gitlab_url:
            base_path = urlparse(gitlab_url).path.rstrip("/")
            if base_path and path.startswith(base_path + "/"):
                path = path[len(base_path):]
    elif match := _SCP_LIKE.match(url):
        path = match.group("path")
    else:
        path = url

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    if not path:
        raise TemplateSourceError(f"Cannot determine project path from template location '{location}'")
    return path


def _safe_target(root: Path, relative: str) -> Path:
    """Join a repository path onto the workspace without escaping it."""
    parts = PurePosixPath(relative).parts
    if not parts or any(part in ("..", "") for part in parts) or PurePosixPath(relative).is_absolute():
        raise TemplateSourceError(f"Refusing unsafe repository path '{relative}'")
    return root.joinpath(*parts)


class TemplateSourceResolver:
    """Materializes templates into fresh LocalWorkspaces.

    Args:
        git: Git transport (used by the clone strategy)
        client: GitLab API client (used by the api strategy)
        strategy: "auto", "clone" or "api"
        workspace_dir: Parent directory for workspaces (system temp if None)
    """

    def __init__(
        self,
        git: GitManager,
        client: Optional[GitLabClient] = None,
        strategy: str = "auto",
        workspace_dir: Optional[str] = None,
    ):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown template strategy '{strategy}'. Use one of: {', '.join(STRATEGIES)}")
        self.git = git
        self.client = client
        self.strategy = strategy
        self.workspace_dir = workspace_dir

    def effective_strategy(self) -> str:
        if self.strategy != "auto":
            return self.strategy
        if self.git.is_available():
            return "clone"
        if self.client is not None:
            return "api"
        raise TemplateSourceError("No git executable found and no GitLab client configured")

    def materialize(self, location: str, label: str = "template") -> LocalWorkspace:
        """Fetch the template at `location` into a new workspace.

        The caller owns the returned workspace and must clean it up. If
        fetching fails, the partially filled workspace is removed here.

        Raises:
            TemplateSourceError: On any failure to obtain the template
        """
        strategy = self.effective_strategy()
        workspace = LocalWorkspace.create(label, base_dir=self.workspace_dir)
        try:
            if strategy == "clone":
                self._clone(location, workspace)
            else:
                self._download(location, workspace)
        except TemplateSourceError:
            workspace.cleanup()
            raise
        except (GitCommandError, GitLabError, requests.RequestException, OSError) as exc:
            workspace.cleanup()
            raise TemplateSourceError(f"Failed to fetch template {redact(location)}: {exc}") from exc
        except BaseException:
            workspace.cleanup()
            raise

        logger.info(f"Materialized template {redact(location)} via {strategy} into {workspace.path}")
        return workspace

    def _clone(self, location: str, workspace: LocalWorkspace) -> None:
        url, ref = split_ref(location)
        self.git.clone(url, workspace.path, branch=ref, depth=1)
        workspace.strip_git()

    def _download(self, location: str, workspace: LocalWorkspace) -> None:
        if self.client is None:
            raise TemplateSourceError("The api strategy needs a GitLab client")

        _, ref = split_ref(location)
        project_path = project_path_from_location(location, self.client.base_url)
        project = self.client.get_project(project_path)
        if project is None:
            raise TemplateSourceError(f"Template project '{project_path}' not found")

        ref = ref or project.default_branch or "main"
        entries = self.client.list_tree(project.id, ref=ref, recursive=True)
        blobs = [entry for entry in entries if entry.get("type") == "blob"]
        if not blobs:
            raise TemplateSourceError(f"Template project '{project_path}' has no files on {ref}")

        for entry in blobs:
            target = _safe_target(workspace.path, entry["path"])
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(self.client.get_raw_file(project.id, entry["path"], ref))

        logger.debug(f"Downloaded {len(blobs)} file(s) from {project_path}@{ref}")
