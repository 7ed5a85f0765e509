"""Temporary, exclusively-owned workspace directories."""
import os
import re
import shutil
import stat
import sys
import tempfile
from pathlib import Path
from typing import Optional

from pipeseed.core.logger import get_logger

logger = get_logger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _make_writable(func, path, _exc_info):
    """rmtree error hook: git marks pack files read-only."""
    os.chmod(path, stat.S_IWRITE)
    func(path)


def _rmtree(path: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_make_writable)
    else:
        shutil.rmtree(path, onerror=_make_writable)


class LocalWorkspace:
    """A temp directory holding one template tree for one unit of work.

    Usable as a context manager; cleanup is idempotent.

    Example:
        with LocalWorkspace.create("ci-otpapi") as ws:
            substitute(ws.path, table)
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._removed = False

    @classmethod
    def create(cls, label: str = "workspace", base_dir: Optional[str] = None) -> "LocalWorkspace":
        """Create a uniquely named workspace (random suffix) under base_dir."""
        if base_dir:
            Path(base_dir).mkdir(parents=True, exist_ok=True)
        prefix = f"pipeseed-{_UNSAFE.sub('-', label).strip('-') or 'workspace'}-"
        path = tempfile.mkdtemp(prefix=prefix, dir=base_dir)
        logger.debug(f"Created workspace {path}")
        return cls(Path(path))

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def strip_git(self) -> bool:
        """Remove version-control metadata so the tree carries no history.

        Returns:
            True if a .git entry was removed
        """
        git_dir = self.path / ".git"
        if git_dir.is_dir():
            _rmtree(git_dir)
            return True
        if git_dir.exists():
            git_dir.unlink()
            return True
        return False

    def cleanup(self) -> None:
        """Remove the workspace directory and everything in it."""
        if self._removed:
            return
        if self.path.exists():
            _rmtree(self.path)
            logger.debug(f"Removed workspace {self.path}")
        self._removed = True

    def __enter__(self) -> "LocalWorkspace":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
        return False

    def __repr__(self) -> str:
        return f"LocalWorkspace({str(self.path)!r})"
