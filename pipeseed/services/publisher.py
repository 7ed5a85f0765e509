"""Publish a prepared workspace as the single initial commit of a remote project."""
from pipeseed.core.logger import get_logger
from pipeseed.core.workspace import LocalWorkspace
from pipeseed.services.git_manager import GitManager, redact

logger = get_logger(__name__)

REMOTE_NAME = "origin"


class Publisher:
    """Turns a workspace into a one-commit repository and force-pushes it.

    Force-pushing makes republishing to the same destination always succeed
    with a clean single-commit history.
    """

    def __init__(self, git: GitManager, branch: str = "main", commit_message: str = "Initial commit"):
        self.git = git
        self.branch = branch
        self.commit_message = commit_message

    def publish(self, workspace: LocalWorkspace, remote_url: str) -> None:
        """Commit everything in the workspace and push it to remote_url.

        Raises:
            GitCommandError: If any git step fails
        """
        path = workspace.path
        if workspace.strip_git():
            logger.debug(f"Discarded existing history in {path}")

        self.git.init(path, branch=self.branch)
        self.git.add_all(path)
        self.git.commit(path, self.commit_message)
        self.git.remove_remote(path, REMOTE_NAME)
        self.git.add_remote(path, REMOTE_NAME, remote_url)
        self.git.push(path, REMOTE_NAME, self.branch, force=True)

        logger.info(f"Published {path.name} to {redact(remote_url)} ({self.branch})")
