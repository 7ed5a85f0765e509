"""Git transport: clone, init, commit and push through the git CLI."""
import re
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from pipeseed.core.logger import get_logger

logger = get_logger(__name__)

_CREDENTIALS = re.compile(r"(https?://)[^/@\s]+@")


class GitCommandError(Exception):
    """Raised when a git command exits non-zero or git is missing."""

    def __init__(self, args: List[str], stderr: str = "", returncode: Optional[int] = None):
        self.command = args
        self.stderr = stderr
        self.returncode = returncode
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"git {' '.join(redact(a) for a in args)} failed{detail}")


def redact(text: str) -> str:
    """Hide credentials embedded in URLs before they reach a log line."""
    return _CREDENTIALS.sub(r"\1***@", text)


class GitManager:
    """Runs git commands for template materialization and publishing.

    Args:
        mock: Log commands instead of running them
        ssl_verify: Transport trust policy; False disables certificate checks,
            a string is used as the CA bundle path
        author_name: Commit author/committer name
        author_email: Commit author/committer email
    """

    def __init__(
        self,
        mock: bool = False,
        ssl_verify: Union[bool, str] = True,
        author_name: str = "pipeseed",
        author_email: str = "pipeseed@localhost",
        git_binary: str = "git",
    ):
        self.mock = mock
        self.ssl_verify = ssl_verify
        self.author_name = author_name
        self.author_email = author_email
        self.git_binary = git_binary

    def is_available(self) -> bool:
        """Return True when a git executable can be run."""
        if self.mock:
            return True
        return shutil.which(self.git_binary) is not None

    def _config_args(self) -> List[str]:
        args = [
            '-c', f'user.name={self.author_name}',
            '-c', f'user.email={self.author_email}',
        ]
        if self.ssl_verify is False:
            args += ['-c', 'http.sslVerify=false']
        elif isinstance(self.ssl_verify, str):
            args += ['-c', f'http.sslCAInfo={self.ssl_verify}']
        return args

    def _run(self, args: List[str], cwd: Optional[Path] = None) -> str:
        """Run a git command and return stdout.

        Raises:
            GitCommandError: If git is missing or the command fails
        """
        display = ' '.join(redact(a) for a in args)
        if self.mock:
            logger.info(f"MOCK: Would run git {display}" + (f" in {cwd}" if cwd else ""))
            return ""

        cmd = [self.git_binary] + self._config_args() + args
        logger.debug(f"Running git {display}")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            stderr = redact(e.stderr.strip()) if e.stderr else ""
            logger.error(f"git {display} failed (exit {e.returncode})")
            if stderr:
                logger.error(f"Error output: {stderr}")
            raise GitCommandError(args, stderr, e.returncode) from e
        except FileNotFoundError as e:
            raise GitCommandError(args, "Git not found. Please install git first.") from e

        return result.stdout.strip()

    def clone(self, url: str, path: Path, branch: Optional[str] = None, depth: Optional[int] = 1) -> None:
        """Clone a repository into path (which may be an existing empty directory)."""
        args = ['clone']
        if depth:
            args += ['--depth', str(depth)]
        if branch:
            args += ['--branch', branch]
        args += [url, str(path)]
        logger.info(f"Cloning {redact(url)} into {path}")
        self._run(args)

    def init(self, path: Path, branch: str = "main") -> None:
        """Initialize a repository whose first branch is `branch`."""
        self._run(['init'], cwd=path)
        # symbolic-ref works on every git version, unlike `init -b`
        self._run(['symbolic-ref', 'HEAD', f'refs/heads/{branch}'], cwd=path)

    def add_all(self, path: Path) -> None:
        self._run(['add', '-A'], cwd=path)

    def commit(self, path: Path, message: str, allow_empty: bool = True) -> None:
        args = ['commit', '-m', message]
        if allow_empty:
            args.append('--allow-empty')
        self._run(args, cwd=path)

    def list_remotes(self, path: Path) -> List[str]:
        output = self._run(['remote'], cwd=path)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def add_remote(self, path: Path, name: str, url: str) -> None:
        self._run(['remote', 'add', name, url], cwd=path)

    def remove_remote(self, path: Path, name: str) -> bool:
        """Remove a remote if it exists.

        Returns:
            True if a remote was removed
        """
        if name not in self.list_remotes(path):
            return False
        self._run(['remote', 'remove', name], cwd=path)
        return True

    def push(self, path: Path, remote: str, branch: str, force: bool = False) -> None:
        args = ['push']
        if force:
            args.append('--force')
        args += ['-u', remote, f'{branch}:{branch}']
        logger.info(f"Pushing {branch} to {remote}" + (" (force)" if force else ""))
        self._run(args, cwd=path)
