"""Literal placeholder substitution across a template file tree.

Placeholders are matched as exact, case-sensitive strings. All placeholders
are replaced in one left-to-right pass: where two tokens could match at the
same position, the one inserted first in the table wins, and text produced by
a replacement is never scanned again. Applying the same table twice is
therefore a no-op once no placeholders remain.
"""
import re
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from pipeseed.core.logger import get_logger

logger = get_logger(__name__)


def _compile(table: Dict[str, str]) -> Optional["re.Pattern[str]"]:
    tokens = [token for token in table if token]
    if not tokens:
        return None
    return re.compile("|".join(re.escape(token) for token in tokens))


def replace_tokens(text: str, table: Dict[str, str]) -> Tuple[str, int]:
    """Replace every placeholder occurrence in a string.

    Returns:
        Tuple of (new_text, number_of_replacements)
    """
    pattern = _compile(table)
    if pattern is None:
        return text, 0
    return pattern.subn(lambda match: table[match.group(0)], text)


def decode_text(data: bytes) -> Optional[str]:
    """Decode file bytes as text, or None for binary content."""
    if b"\x00" in data:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def iter_files(root: Path) -> Iterator[Path]:
    """Yield every regular file under root, depth-first, without following symlinks.

    Uses an explicit stack so arbitrarily deep trees do not hit the
    interpreter's recursion limit.
    """
    stack = [Path(root)]
    while stack:
        current = stack.pop()
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name, reverse=True)
        except NotADirectoryError:
            continue
        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir():
                stack.append(entry)
            elif entry.is_file():
                yield entry


def substitute_file(path: Path, table: Dict[str, str]) -> int:
    """Apply the table to a single file; rewrite it only when something changed.

    Returns:
        Number of replacements made (0 for binary files)
    """
    data = path.read_bytes()
    text = decode_text(data)
    if text is None:
        logger.debug(f"Skipping binary file {path}")
        return 0

    new_text, count = replace_tokens(text, table)
    if count:
        path.write_bytes(new_text.encode("utf-8"))
        logger.debug(f"Replaced {count} placeholder(s) in {path}")
    return count


def substitute(root: Path, table: Dict[str, str]) -> int:
    """Replace placeholders in every text file under root.

    Args:
        root: Workspace directory
        table: Ordered mapping of placeholder token -> replacement value

    Returns:
        Number of files modified
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"Workspace root is not a directory: {root}")

    if _compile(table) is None:
        return 0

    modified = 0
    for path in iter_files(root):
        if substitute_file(path, table):
            modified += 1

    logger.info(f"Substituted placeholders in {modified} file(s) under {root}")
    return modified
