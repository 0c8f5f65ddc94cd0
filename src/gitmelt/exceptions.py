from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class GitmeltError(Exception):
    """Base exception for errors in the gitmelt package."""

    message: str = "gitmelt failed."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ConfigError(GitmeltError):
    """Raised when configuration cannot be used as given (malformed glob, bad config file)."""

    source: str = ""
    message: str = "Invalid configuration."

    def __str__(self) -> str:
        return f"{self.message}: {self.source}" if self.source else self.message


@dataclass(frozen=True)
class SourceNotFoundError(GitmeltError):
    """Raised when the local input path does not exist or is not a directory."""

    folder: Path = Path()
    message: str = "The input path is not an existing directory"

    def __str__(self) -> str:
        return f"{self.message}: {self.folder}"


@dataclass(frozen=True)
class GitNotInstalledError(GitmeltError):
    """Raised when the git executable cannot be run."""

    message: str = "Git is not installed or not in PATH. Please install Git to clone repositories."


@dataclass(frozen=True)
class GitCommandError(GitmeltError):
    """Raised when a git command fails."""

    command: str = ""
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    message: str = "git command failed"

    def __str__(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        text = f"{self.message} (exit code {self.returncode}): {self.command}"
        return f"{text}\n{detail}" if detail else text
