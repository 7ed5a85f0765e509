"""Creating (and optionally replacing) the projects templates are published to."""
from typing import Optional

from pipeseed.core.logger import get_logger
from pipeseed.core.retry import retry
from pipeseed.models.remote import RemoteProject
from pipeseed.services.gitlab.client import GitLabClient, GitLabConflictError

logger = get_logger(__name__)


class ProjectProvisioner:
    """Creates the destination project for one lane.

    Two modes:
    - default: try to create; if the project already exists, return None so
      the caller skips the lane. Existing projects are never deleted.
    - delete_existing: delete a same-named project in the namespace first,
      then create. GitLab removes projects asynchronously, so creation is
      retried while the old name is still taken.

    Args:
        client: GitLab API client
        delete_wait_attempts: Creation attempts after a deletion
        delete_wait_delay: Initial delay between those attempts (seconds)
    """

    def __init__(
        self,
        client: GitLabClient,
        delete_wait_attempts: int = 5,
        delete_wait_delay: float = 3.0,
    ):
        self.client = client
        self.delete_wait_attempts = delete_wait_attempts
        self.delete_wait_delay = delete_wait_delay

    def find(self, name: str, namespace_id: int) -> Optional[RemoteProject]:
        """Return the project named exactly `name` inside the namespace."""
        for project in self.client.search_group_projects(namespace_id, name):
            if project.name == name and project.namespace_id in (None, namespace_id):
                return project
        return None

    def provision(self, name: str, namespace_id: int, delete_existing: bool = False) -> Optional[RemoteProject]:
        """Create project `name` in the namespace.

        Returns:
            The new project, or None when it already exists and
            delete_existing is False (the lane should be skipped)
        """
        if not delete_existing:
            try:
                return self.client.create_project(name, namespace_id)
            except GitLabConflictError:
                logger.info(f"Project {name} already exists in namespace {namespace_id}. Skipping creation.")
                return None

        deleted = False
        existing = self.find(name, namespace_id)
        if existing is not None:
            logger.warning(f"Deleting existing project {name} (id={existing.id}) before recreating it")
            deleted = self.client.delete_project(existing.id)

        if not deleted:
            return self.client.create_project(name, namespace_id)

        create = retry(
            max_attempts=self.delete_wait_attempts,
            delay=self.delete_wait_delay,
            backoff=1.5,
            exceptions=(GitLabConflictError,),
        )(self.client.create_project)
        return create(name, namespace_id)
