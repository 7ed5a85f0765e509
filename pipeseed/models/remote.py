"""GitLab resources as seen by pipeseed."""
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class Namespace:
    """A GitLab group."""
    id: int
    name: str
    path: str
    full_path: str
    parent_id: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Namespace":
        return cls(
            id=data['id'],
            name=data.get('name', data.get('path', '')),
            path=data.get('path', ''),
            full_path=data.get('full_path', data.get('path', '')),
            parent_id=data.get('parent_id'),
        )


@dataclass
class RemoteProject:
    """A GitLab project and the URLs it can be pushed to."""
    id: int
    name: str
    namespace_id: Optional[int]
    path_with_namespace: str = ""
    ssh_url: Optional[str] = None
    http_url: Optional[str] = None
    web_url: Optional[str] = None
    default_branch: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteProject":
        namespace = data.get('namespace') or {}
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            namespace_id=namespace.get('id', data.get('namespace_id')),
            path_with_namespace=data.get('path_with_namespace', ''),
            ssh_url=data.get('ssh_url_to_repo'),
            http_url=data.get('http_url_to_repo'),
            web_url=data.get('web_url'),
            default_branch=data.get('default_branch'),
        )

    def push_url(self, prefer_ssh: bool = True) -> str:
        """Return a push-capable URL: SSH when available and preferred, else HTTP.

        Raises:
            ValueError: If GitLab reported no clone URL at all
        """
        candidates = [self.ssh_url, self.http_url] if prefer_ssh else [self.http_url, self.ssh_url]
        for url in candidates:
            if url:
                return url
        raise ValueError(f"Project {self.name} (id={self.id}) has no clone URL")
