"""Thin GitLab REST API v4 client covering what pipeseed provisions."""
from typing import Any, Dict, Iterator, List, Optional, Union
from urllib.parse import quote

import requests

from pipeseed.core.config import PipeseedConfig
from pipeseed.core.logger import get_logger
from pipeseed.core.retry import retry
from pipeseed.models.remote import Namespace, RemoteProject

logger = get_logger(__name__)

ProjectRef = Union[int, str]

_CONFLICT_MARKERS = ("has already been taken", "already exists")


class GitLabError(Exception):
    """Raised for any unexpected GitLab API response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class GitLabNotFoundError(GitLabError):
    """The requested group, project, file or ref does not exist (404)."""


class GitLabConflictError(GitLabError):
    """The resource being created already exists."""


class GitLabAuthError(GitLabError):
    """Token missing, invalid or lacking permission (401/403)."""


class GitLabServerError(GitLabError):
    """GitLab answered with a 5xx status."""


def encode_ref(ref: ProjectRef) -> str:
    """Encode a numeric id or a full path for use in an API URL segment."""
    if isinstance(ref, int):
        return str(ref)
    return quote(str(ref).strip("/"), safe="")


class GitLabClient:
    """GitLab API client bound to one instance and token.

    Args:
        base_url: GitLab URL (e.g. https://gitlab.example.com)
        token: Personal access token sent as PRIVATE-TOKEN
        ssl_verify: True, False, or a CA bundle path
        timeout: Request timeout in seconds
        retry_attempts: Attempts for connection errors, timeouts and 5xx
        session: Pre-built requests session (tests inject a mock here)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        ssl_verify: Union[bool, str] = True,
        timeout: int = 30,
        retry_attempts: int = 1,
        retry_delay: float = 2.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.api_url = f"{self.base_url}/api/v4"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"PRIVATE-TOKEN": token})
        self.session.verify = ssl_verify
        self._send = retry(
            max_attempts=retry_attempts,
            delay=retry_delay,
            exceptions=(requests.ConnectionError, requests.Timeout, GitLabServerError),
        )(self._send_once)

    @classmethod
    def from_config(cls, config: PipeseedConfig, session: Optional[requests.Session] = None) -> "GitLabClient":
        return cls(
            base_url=config.gitlab_url,
            token=config.require_token(),
            ssl_verify=config.ssl_verify,
            timeout=config.request_timeout,
            retry_attempts=config.retry_attempts,
            retry_delay=config.retry_delay,
            session=session,
        )

    # ========================================================================
    # Transport
    # ========================================================================

    def _send_once(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if response.status_code >= 500:
            raise GitLabServerError(
                f"{method} {endpoint} failed: HTTP {response.status_code}",
                response.status_code,
                _body(response),
            )
        return response

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Send a request and map error statuses to exceptions."""
        response = self._send(method, endpoint, **kwargs)
        status = response.status_code
        if status < 400:
            return response

        body = _body(response)
        message = f"{method} {endpoint} failed: HTTP {status}: {_message(body)}"
        if status in (401, 403):
            raise GitLabAuthError(message, status, body)
        if status == 404:
            raise GitLabNotFoundError(message, status, body)
        if status == 409 or (status == 400 and _is_conflict(body)):
            raise GitLabConflictError(message, status, body)
        raise GitLabError(message, status, body)

    def _paginate(self, endpoint: str, params: Optional[Dict[str, Any]] = None, per_page: int = 100) -> Iterator[Dict[str, Any]]:
        """Yield items across pages until GitLab returns an empty page."""
        page = 1
        while True:
            query = dict(params or {})
            query.update({"page": page, "per_page": per_page})
            response = self._request("GET", endpoint, params=query)
            items = response.json()
            if not items:
                return
            yield from items

            next_page = response.headers.get("X-Next-Page")
            if next_page is not None and not str(next_page).strip():
                return
            page += 1

    # ========================================================================
    # Groups
    # ========================================================================

    def get_group(self, full_path: Union[int, str]) -> Optional[Namespace]:
        """Return the group with this id or full path, or None if absent."""
        try:
            response = self._request("GET", f"groups/{encode_ref(full_path)}")
        except GitLabNotFoundError:
            return None
        return Namespace.from_api(response.json())

    def search_subgroups(self, parent_id: int, search: str) -> List[Namespace]:
        """Search the direct subgroups of a group by name or path."""
        return [
            Namespace.from_api(item)
            for item in self._paginate(f"groups/{parent_id}/subgroups", {"search": search})
        ]

    def search_groups(self, search: str) -> List[Namespace]:
        """Search all visible groups by name or path."""
        return [Namespace.from_api(item) for item in self._paginate("groups", {"search": search})]

    def create_group(self, name: str, path: str, parent_id: Optional[int] = None) -> Namespace:
        """Create a group (a subgroup when parent_id is given)."""
        payload: Dict[str, Any] = {"name": name, "path": path}
        if parent_id is not None:
            payload["parent_id"] = parent_id
        response = self._request("POST", "groups", json=payload)
        group = Namespace.from_api(response.json())
        logger.info(f"Created group {group.full_path} (id={group.id})")
        return group

    # ========================================================================
    # Projects
    # ========================================================================

    def get_project(self, ref: ProjectRef) -> Optional[RemoteProject]:
        """Return a project by id or full path, or None if absent."""
        try:
            response = self._request("GET", f"projects/{encode_ref(ref)}")
        except GitLabNotFoundError:
            return None
        return RemoteProject.from_api(response.json())

    def search_group_projects(self, group_id: int, name: str) -> List[RemoteProject]:
        """Search projects directly inside a group by name."""
        return [
            RemoteProject.from_api(item)
            for item in self._paginate(f"groups/{group_id}/projects", {"search": name})
        ]

    def list_group_projects(self, group_id: int, include_subgroups: bool = False) -> Iterator[Dict[str, Any]]:
        """Yield raw project records for a group, page by page."""
        params = {"include_subgroups": "true"} if include_subgroups else {}
        yield from self._paginate(f"groups/{group_id}/projects", params)

    def create_project(self, name: str, namespace_id: int, visibility: str = "private") -> RemoteProject:
        """Create an empty project inside a namespace."""
        payload = {
            "name": name,
            "path": name,
            "namespace_id": namespace_id,
            "visibility": visibility,
            "initialize_with_readme": False,
        }
        response = self._request("POST", "projects", json=payload)
        project = RemoteProject.from_api(response.json())
        logger.info(f"Created project {project.path_with_namespace or project.name} (id={project.id})")
        return project

    def delete_project(self, project_id: int) -> bool:
        """Delete a project.

        Returns:
            False if the project was already gone
        """
        try:
            self._request("DELETE", f"projects/{project_id}")
        except GitLabNotFoundError:
            return False
        logger.info(f"Deleted project id={project_id}")
        return True

    # ========================================================================
    # Repository content
    # ========================================================================

    def list_tree(
        self,
        project: ProjectRef,
        ref: Optional[str] = None,
        path: Optional[str] = None,
        recursive: bool = True,
    ) -> List[Dict[str, Any]]:
        """List repository entries ({'path', 'type': 'blob'|'tree', ...})."""
        params: Dict[str, Any] = {"recursive": "true" if recursive else "false"}
        if ref:
            params["ref"] = ref
        if path:
            params["path"] = path
        return list(self._paginate(f"projects/{encode_ref(project)}/repository/tree", params))

    def get_raw_file(self, project: ProjectRef, file_path: str, ref: str) -> bytes:
        """Download one file's raw bytes."""
        response = self._request(
            "GET",
            f"projects/{encode_ref(project)}/repository/files/{encode_ref(file_path)}/raw",
            params={"ref": ref},
        )
        return response.content

    def create_file(self, project: ProjectRef, file_path: str, content: str, branch: str, message: str) -> None:
        self._request(
            "POST",
            f"projects/{encode_ref(project)}/repository/files/{encode_ref(file_path)}",
            json={"branch": branch, "content": content, "commit_message": message},
        )

    def update_file(self, project: ProjectRef, file_path: str, content: str, branch: str, message: str) -> None:
        self._request(
            "PUT",
            f"projects/{encode_ref(project)}/repository/files/{encode_ref(file_path)}",
            json={"branch": branch, "content": content, "commit_message": message},
        )


def _body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _message(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)[:200]


def _is_conflict(body: Any) -> bool:
    text = str(body)
    return any(marker in text for marker in _CONFLICT_MARKERS)
