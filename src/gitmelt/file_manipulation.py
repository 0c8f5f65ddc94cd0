from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pathspec

from gitmelt.config import VCS_DIRS, DigestWarning, FileRecord, WarningKind
from gitmelt.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator


def _record_walk_error(warnings: list[DigestWarning] | None, rel: str, error: OSError) -> None:
    message = error.strerror or str(error)
    logger.info("walk_error", path=rel, error=message)
    if warnings is not None:
        warnings.append(DigestWarning(kind=WarningKind.WALK_ERROR, path=rel, message=message))


def _scan_sorted(directory: str) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def load_gitignore(root: Path, warnings: list[DigestWarning] | None = None) -> pathspec.PathSpec | None:
    """Parse the `.gitignore` at the top of `root`.

    Args:
        root (Path): the traversal root
        warnings (list[DigestWarning] | None): receives a warning if the file cannot be read

    Returns:
        pathspec.PathSpec | None: the compiled ignore rules, or None when there is no
            readable `.gitignore`
    """
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return None
    try:
        lines = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        _record_walk_error(warnings, ".gitignore", e)
        return None
    return pathspec.GitIgnoreSpec.from_lines(lines)


def walk_files(
    root: Path,
    *,
    warnings: list[DigestWarning] | None = None,
    ignore: pathspec.PathSpec | None = None,
) -> Iterator[FileRecord]:
    """Lazily enumerate every regular file under `root`.

    Entries of a directory are visited in code-point order of their names, depth
    first, using an explicit stack of directory iterators. Symbolic links are never
    followed nor reported, and version-control directories (`VCS_DIRS`) are pruned.
    A directory (or file) that cannot be read is skipped with a `walk_error`
    warning; the walk then carries on with its siblings.

    Args:
        root (Path): the directory to walk
        warnings (list[DigestWarning] | None): list receiving per-path warnings
        ignore (pathspec.PathSpec | None): optional gitignore rules; matching
            directories are pruned and matching files skipped

    Yields:
        FileRecord: one record per regular file, in traversal order
    """
    try:
        top = _scan_sorted(str(root))
    except OSError as e:
        _record_walk_error(warnings, ".", e)
        return

    stack: list[tuple[str, Iterator[os.DirEntry[str]]]] = [("", iter(top))]
    while stack:
        prefix, entries = stack[-1]
        entry = next(entries, None)
        if entry is None:
            stack.pop()
            continue
        rel = prefix + entry.name
        try:
            if entry.is_symlink():
                continue
            if entry.is_dir(follow_symlinks=False):
                if entry.name in VCS_DIRS:
                    continue
                if ignore is not None and ignore.match_file(rel + "/"):
                    continue
                stack.append((rel + "/", iter(_scan_sorted(entry.path))))
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            if ignore is not None and ignore.match_file(rel):
                continue
            size = entry.stat(follow_symlinks=False).st_size
        except OSError as e:
            _record_walk_error(warnings, rel, e)
            continue
        yield FileRecord(path=Path(entry.path), rel=rel, size=size)


def read_text_utf8(path: Path) -> str:
    """Read a whole file as UTF-8 text.

    Content containing NUL bytes is valid UTF-8 but is treated as binary.

    Args:
        path (Path): the file to read

    Raises:
        OSError: when the file cannot be opened or read.
        UnicodeDecodeError: when the bytes are not UTF-8 text.

    Returns:
        str: the decoded content, line endings untouched
    """
    data = path.read_bytes()
    if b"\x00" in data:
        raise UnicodeDecodeError("utf-8", data, data.index(b"\x00"), data.index(b"\x00") + 1, "NUL byte in content")
    return data.decode("utf-8")
