"""Shared test fixtures for pipeseed tests."""
import shutil
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from pipeseed.core.config import PipeseedConfig
from pipeseed.models.remote import Namespace, RemoteProject
from pipeseed.services.git_manager import GitCommandError, GitManager
from pipeseed.services.gitlab.client import GitLabConflictError, GitLabError, GitLabNotFoundError


class FakeGitLab:
    """In-memory stand-in for GitLabClient with the same method surface."""

    base_url = "https://gitlab.example.com"

    def __init__(self):
        self.groups: Dict[str, Namespace] = {}
        self.projects: Dict[int, RemoteProject] = {}
        self.files: Dict[int, Dict[str, bytes]] = {}
        self.calls: List[tuple] = []
        self.racing_groups = set()
        self.deletion_lag = 0
        self._next_id = 100

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    # ---- seeding helpers ----

    def add_group(self, full_path: str, group_id: Optional[int] = None) -> Namespace:
        parent_path, _, leaf = full_path.rpartition("/")
        parent_id = self.groups[parent_path].id if parent_path else None
        group = Namespace(group_id or self._id(), leaf, leaf, full_path, parent_id)
        self.groups[full_path] = group
        return group

    def add_project(self, name: str, namespace_id: int, files: Optional[Dict[str, bytes]] = None,
                    project_id: Optional[int] = None) -> RemoteProject:
        ns_path = next((g.full_path for g in self.groups.values() if g.id == namespace_id), str(namespace_id))
        pid = project_id or self._id()
        project = RemoteProject(
            id=pid,
            name=name,
            namespace_id=namespace_id,
            path_with_namespace=f"{ns_path}/{name}",
            ssh_url=f"git@gitlab.example.com:{ns_path}/{name}.git",
            http_url=f"https://gitlab.example.com/{ns_path}/{name}.git",
            web_url=f"https://gitlab.example.com/{ns_path}/{name}",
            default_branch="main",
        )
        self.projects[pid] = project
        self.files[pid] = dict(files or {})
        return project

    def projects_named(self, name: str, namespace_id: int) -> List[RemoteProject]:
        return [p for p in self.projects.values() if p.name == name and p.namespace_id == namespace_id]

    # ---- groups ----

    def get_group(self, full_path):
        self.calls.append(("get_group", full_path))
        if isinstance(full_path, int):
            return next((g for g in self.groups.values() if g.id == full_path), None)
        return self.groups.get(full_path)

    def search_subgroups(self, parent_id, search):
        return [g for g in self.groups.values() if g.parent_id == parent_id and search in g.path]

    def search_groups(self, search):
        return [g for g in self.groups.values() if search in g.path]

    def create_group(self, name, path, parent_id=None):
        self.calls.append(("create_group", path, parent_id))
        parent = next((g for g in self.groups.values() if g.id == parent_id), None)
        full_path = f"{parent.full_path}/{path}" if parent else path
        if full_path in self.racing_groups:
            self.racing_groups.discard(full_path)
            self.add_group(full_path)
        if full_path in self.groups:
            raise GitLabConflictError("Failed to save group {:path=>[\"has already been taken\"]}", 400)
        return self.add_group(full_path)

    # ---- projects ----

    def get_project(self, ref):
        if isinstance(ref, int):
            return self.projects.get(ref)
        return next((p for p in self.projects.values() if p.path_with_namespace == ref), None)

    def search_group_projects(self, group_id, name):
        return [p for p in self.projects.values() if p.namespace_id == group_id and name in p.name]

    def list_group_projects(self, group_id, include_subgroups=False):
        for project in self.projects.values():
            if project.namespace_id == group_id:
                yield {
                    "id": project.id,
                    "name": project.name,
                    "namespace": {"id": project.namespace_id},
                    "ssh_url_to_repo": project.ssh_url,
                }

    def create_project(self, name, namespace_id, visibility="private"):
        self.calls.append(("create_project", name, namespace_id))
        if self.projects_named(name, namespace_id):
            raise GitLabConflictError("name has already been taken", 400)
        if self.deletion_lag:
            self.deletion_lag -= 1
            raise GitLabConflictError("Project is still being deleted", 409)
        return self.add_project(name, namespace_id)

    def delete_project(self, project_id):
        self.calls.append(("delete_project", project_id))
        if self.projects.pop(project_id, None) is None:
            return False
        self.files.pop(project_id, None)
        return True

    # ---- repository content ----

    def _files_of(self, project):
        pid = project if isinstance(project, int) else self.get_project(project).id
        return pid, self.files.setdefault(pid, {})

    def list_tree(self, project, ref=None, path=None, recursive=True):
        _, files = self._files_of(project)
        if not files:
            raise GitLabNotFoundError("404 Tree Not Found", 404)
        entries = []
        directories = set()
        for file_path in sorted(files):
            parts = file_path.split("/")
            for i in range(1, len(parts)):
                directories.add("/".join(parts[:i]))
            entries.append({"path": file_path, "type": "blob"})
        entries.extend({"path": d, "type": "tree"} for d in sorted(directories))
        return entries

    def get_raw_file(self, project, file_path, ref):
        _, files = self._files_of(project)
        if file_path not in files:
            raise GitLabNotFoundError("404 File Not Found", 404)
        return files[file_path]

    def create_file(self, project, file_path, content, branch, message):
        pid, files = self._files_of(project)
        self.calls.append(("create_file", pid, file_path))
        if file_path in files:
            raise GitLabError("A file with this name already exists", 400)
        files[file_path] = content.encode("utf-8")

    def update_file(self, project, file_path, content, branch, message):
        pid, files = self._files_of(project)
        self.calls.append(("update_file", pid, file_path))
        if file_path not in files:
            raise GitLabError("A file with this name doesn't exist", 400)
        files[file_path] = content.encode("utf-8")


class FakeGit(GitManager):
    """GitManager that records commands and serves clones from local directories.

    `templates` maps clone URLs to source directories. At push time the
    working tree is captured in `pushed[remote_url]` as {relative path: text}.
    """

    def __init__(self, templates: Optional[Dict[str, Path]] = None):
        super().__init__(mock=False)
        self.templates = templates or {}
        self.commands: List[List[str]] = []
        self.pushed: Dict[str, Dict[str, str]] = {}
        self.fail_on = set()
        self._remotes: Dict[str, Dict[str, str]] = {}

    def is_available(self) -> bool:
        return True

    def _run(self, args, cwd=None):
        self.commands.append(list(args))
        if args[0] in self.fail_on:
            raise GitCommandError(args, f"simulated {args[0]} failure", 128)

        if args[0] == "clone":
            url, target = args[-2], Path(args[-1])
            source = self.templates.get(url)
            if source is None:
                raise GitCommandError(args, "repository not found", 128)
            shutil.copytree(source, target, dirs_exist_ok=True)
            (target / ".git").mkdir(exist_ok=True)
            (target / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        elif args[0] == "remote":
            remotes = self._remotes.setdefault(str(cwd), {})
            if len(args) == 1:
                return "\n".join(remotes)
            if args[1] == "add":
                remotes[args[2]] = args[3]
            elif args[1] == "remove":
                remotes.pop(args[2], None)
        elif args[0] == "push":
            url = self._remotes.get(str(cwd), {}).get(args[-2], "")
            root = Path(cwd)
            self.pushed[url] = {
                str(p.relative_to(root)): p.read_bytes().decode("utf-8", errors="replace")
                for p in root.rglob("*")
                if p.is_file() and ".git" not in p.relative_to(root).parts
            }
        return ""


@pytest.fixture
def gitlab():
    """Empty in-memory GitLab."""
    return FakeGitLab()


@pytest.fixture
def make_git():
    """Factory for FakeGit: make_git({url: source_dir})."""
    return FakeGit


@pytest.fixture
def template_dir(tmp_path):
    """A small CI template tree containing placeholders."""
    root = tmp_path / "template-ci"
    (root / "deploy" / "helm").mkdir(parents=True)
    (root / "Jenkinsfile").write_text(
        "pipeline {\n  app = '{{VALUE_APP_NAME}}'\n  team = '{{VALUE_TEAM_NAME}}'\n}\n"
    )
    (root / "deploy" / "helm" / "values.yaml").write_text("name: {{VALUE_APP_NAME}}\nowner: {{VALUE_TEAM_NAME}}\n")
    (root / "README.md").write_text("Static readme\n")
    (root / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00{{VALUE_APP_NAME}}")
    return root


@pytest.fixture
def workspace_base(tmp_path):
    """Directory that receives every workspace created during a test."""
    base = tmp_path / "workspaces"
    base.mkdir()
    return base


@pytest.fixture
def config(workspace_base):
    """Configuration with CI and CD templates and a private workspace dir."""
    return PipeseedConfig(
        gitlab_url="https://gitlab.example.com",
        gitlab_token="test-token",
        ci_template="https://gitlab.example.com/templates/ci.git",
        cd_template="https://gitlab.example.com/templates/cd.git",
        workspace_dir=str(workspace_base),
    )
