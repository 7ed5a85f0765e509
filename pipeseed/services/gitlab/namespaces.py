"""Find-or-create resolution of nested GitLab group paths."""
from typing import Optional, Union

from pipeseed.core.logger import get_logger
from pipeseed.models.remote import Namespace
from pipeseed.models.request import NamespacePath
from pipeseed.services.gitlab.client import GitLabClient, GitLabConflictError

logger = get_logger(__name__)


class NamespaceNotFoundError(Exception):
    """Raised when a group path cannot be found and may not be created."""


class NamespaceResolver:
    """Resolves `org/team`-style group paths to ids, creating what is missing.

    Parents are always resolved before children. A create that races another
    creator and hits "already exists" is treated as success: the group is
    re-read and its id returned.

    Args:
        client: GitLab API client
        allow_root_creation: Permit creating a missing top-level group
    """

    def __init__(self, client: GitLabClient, allow_root_creation: bool = False):
        self.client = client
        self.allow_root_creation = allow_root_creation

    def resolve_or_create(self, path: Union[str, NamespacePath]) -> int:
        """Return the id of the group at `path`, creating missing segments.

        Raises:
            NamespaceNotFoundError: If the root group is missing and root
                creation is not allowed, or a conflicting group cannot be re-read
        """
        path = NamespacePath(path)
        existing = self._find(path)
        if existing is not None:
            logger.debug(f"Group {path} exists (id={existing.id})")
            return existing.id

        parent = path.parent
        if parent is None:
            if not self.allow_root_creation:
                raise NamespaceNotFoundError(
                    f"Top-level group '{path}' does not exist and root group creation is disabled"
                )
            parent_id = None
        else:
            parent_id = self.resolve_or_create(parent)

        return self._create(path, parent_id)

    def _find(self, path: NamespacePath) -> Optional[Namespace]:
        return self.client.get_group(path.full_path)

    def _create(self, path: NamespacePath, parent_id: Optional[int]) -> int:
        logger.info(f"Creating group {path}" + (f" under parent id={parent_id}" if parent_id else ""))
        try:
            return self.client.create_group(name=path.leaf, path=path.leaf, parent_id=parent_id).id
        except GitLabConflictError:
            logger.info(f"Group {path} already exists, reusing it")

        existing = self._find(path) or self._find_in_parent(path, parent_id)
        if existing is None:
            raise NamespaceNotFoundError(
                f"Group '{path}' reported as existing but could not be read back"
            )
        return existing.id

    def _find_in_parent(self, path: NamespacePath, parent_id: Optional[int]) -> Optional[Namespace]:
        """Fallback lookup by name among the parent's subgroups."""
        if parent_id is None:
            candidates = [g for g in self.client.search_groups(path.leaf) if g.parent_id is None]
        else:
            candidates = self.client.search_subgroups(parent_id, path.leaf)
        for group in candidates:
            if group.path == path.leaf or group.name == path.leaf:
                return group
        return None
