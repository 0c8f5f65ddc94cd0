"""Resolve a remote Git URL into a temporary local checkout."""

from __future__ import annotations

import shutil
import subprocess  # noqa: S404
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from gitmelt.exceptions import GitCommandError, GitNotInstalledError
from gitmelt.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator

REMOTE_PREFIXES = ("http://", "https://", "git@", "ssh://", "git://")


def is_remote(source: str) -> bool:
    """Tell whether `source` names a remote repository rather than a local path."""
    return source.startswith(REMOTE_PREFIXES)


def check_git_installed() -> None:
    """Ensure the `git` executable can be run.

    Raises:
        GitNotInstalledError: if `git --version` cannot be executed or fails.
    """
    try:
        subprocess.run(
            ["git", "--version"],  # noqa: S607
            text=True,
            capture_output=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise GitNotInstalledError from e


@contextmanager
def clone_repository(url: str, branch: str | None = None) -> Iterator[Path]:
    """Shallow-clone `url` into a temporary directory that lives for the `with` block.

    Args:
        url (str): the repository URL
        branch (str | None): branch or tag to check out instead of the default branch

    Raises:
        GitNotInstalledError: if git is not available.
        GitCommandError: if `git clone` exits with a non-zero status.

    Yields:
        Path: the root of the checkout
    """
    check_git_installed()
    tmp = Path(tempfile.mkdtemp(prefix="gitmelt-"))
    try:
        cmd = ["git", "clone", "--depth", "1"]
        if branch:
            cmd.extend(["--branch", branch])
        cmd.extend([url, str(tmp)])
        logger.info("clone_started", url=url, branch=branch, target=str(tmp))
        out = subprocess.run(cmd, text=True, capture_output=True, check=False)  # noqa: S603
        if out.returncode != 0:
            raise GitCommandError(
                command=" ".join(cmd),
                returncode=out.returncode,
                stdout=out.stdout,
                stderr=out.stderr,
                message="git clone failed",
            )
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)
        logger.debug("clone_removed", target=str(tmp))
