"""Tests for publishing a workspace as a single initial commit."""
import pytest

from pipeseed.core.workspace import LocalWorkspace
from pipeseed.services.git_manager import GitCommandError
from pipeseed.services.publisher import REMOTE_NAME, Publisher

REMOTE = "git@gitlab.example.com:devops/ci-otpapi.git"


@pytest.fixture
def workspace(workspace_base):
    ws = LocalWorkspace.create("publish", base_dir=str(workspace_base))
    (ws.path / "Jenkinsfile").write_text("app=otpapi\n")
    yield ws
    ws.cleanup()


class TestPublisher:
    """Command sequence and failure behaviour."""

    def test_command_sequence(self, make_git, workspace):
        git = make_git()

        Publisher(git, branch="main", commit_message="Initial commit").publish(workspace, REMOTE)

        verbs = [c[0] if c[0] != "remote" or len(c) == 1 else f"remote {c[1]}" for c in git.commands]
        assert verbs == ["init", "symbolic-ref", "add", "commit", "remote", "remote add", "push"]
        assert ["commit", "-m", "Initial commit", "--allow-empty"] in git.commands
        assert git.commands[-1] == ["push", "--force", "-u", REMOTE_NAME, "main:main"]
        assert git.pushed[REMOTE] == {"Jenkinsfile": "app=otpapi\n"}

    def test_existing_history_is_discarded(self, make_git, workspace):
        (workspace.path / ".git").mkdir()
        (workspace.path / ".git" / "config").write_text("[core]\n")

        Publisher(make_git()).publish(workspace, REMOTE)

        assert not (workspace.path / ".git" / "config").exists()

    def test_custom_branch(self, make_git, workspace):
        git = make_git()
        Publisher(git, branch="develop").publish(workspace, REMOTE)
        assert git.commands[-1][-1] == "develop:develop"

    def test_push_failure_propagates(self, make_git, workspace):
        git = make_git()
        git.fail_on.add("push")

        with pytest.raises(GitCommandError):
            Publisher(git).publish(workspace, REMOTE)

        assert workspace.exists
