from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

DIGEST_FILENAME = "digest.txt"

# Version-control bookkeeping directories, skipped by the walker whatever the patterns say.
VCS_DIRS: frozenset[str] = frozenset({".git", ".hg", ".svn", ".bzr", "_darcs", "CVS", ".jj"})

CHARS_PER_TOKEN = 4


class DigestPreset(StrEnum):
    """Formatting style applied to every file section of the digest."""

    DEFAULT = auto()
    MARKDOWN = auto()
    XML = auto()


class PrologueMode(StrEnum):
    """Structural preamble emitted before the file sections."""

    TREE = auto()
    LIST = auto()
    OFF = auto()


class WarningKind(StrEnum):
    """Categories of non-fatal problems recorded during a run."""

    WALK_ERROR = auto()
    UNREADABLE = auto()
    NOT_TEXT = auto()
    EMPTY_SELECTION = auto()


class FileType(StrEnum):
    """Categorization of source files, used to pick a code fence language.

    This is a heuristic classification based on file extensions only.
    """

    PYTHON = auto()
    RUST = auto()
    TOML = auto()
    JSON = auto()
    MARKDOWN = auto()
    YAML = auto()
    HTML = auto()
    CSS = auto()
    JAVASCRIPT = auto()
    TYPESCRIPT = auto()
    BASH = auto()
    GO = auto()
    JAVA = auto()
    KOTLIN = auto()
    CSHARP = auto()
    C = auto()
    CPP = auto()
    RUBY = auto()
    PHP = auto()
    SQL = auto()
    XML = auto()
    INI = auto()
    OTHER = auto()


EXT2TYPE: dict[str, FileType] = {
    ".bash": FileType.BASH,
    ".c": FileType.C,
    ".cc": FileType.CPP,
    ".cfg": FileType.INI,
    ".cpp": FileType.CPP,
    ".cs": FileType.CSHARP,
    ".css": FileType.CSS,
    ".cxx": FileType.CPP,
    ".go": FileType.GO,
    ".h": FileType.C,
    ".hpp": FileType.CPP,
    ".htm": FileType.HTML,
    ".html": FileType.HTML,
    ".ini": FileType.INI,
    ".java": FileType.JAVA,
    ".js": FileType.JAVASCRIPT,
    ".json": FileType.JSON,
    ".jsx": FileType.JAVASCRIPT,
    ".kt": FileType.KOTLIN,
    ".md": FileType.MARKDOWN,
    ".mjs": FileType.JAVASCRIPT,
    ".php": FileType.PHP,
    ".py": FileType.PYTHON,
    ".pyi": FileType.PYTHON,
    ".rb": FileType.RUBY,
    ".rs": FileType.RUST,
    ".sh": FileType.BASH,
    ".sql": FileType.SQL,
    ".toml": FileType.TOML,
    ".ts": FileType.TYPESCRIPT,
    ".tsx": FileType.TYPESCRIPT,
    ".xml": FileType.XML,
    ".yaml": FileType.YAML,
    ".yml": FileType.YAML,
    ".zsh": FileType.BASH,
}

_FENCE_LANGUAGE: dict[FileType, str] = {
    FileType.OTHER: "",
}


def guess_file_type(path: str | Path) -> FileType:
    """Heuristic guess of file type based on extension.

    Args:
        path (str | Path): The file path (absolute or relative) to guess the type for.

    Returns:
        FileType: The guessed file type, or FileType.OTHER if unknown.
    """
    return EXT2TYPE.get(Path(path).suffix.lower(), FileType.OTHER)


def fence_language(path: str | Path) -> str:
    """Get the code fence language for a file, or an empty string when unrecognized."""
    file_type = guess_file_type(path)
    return _FENCE_LANGUAGE.get(file_type, file_type.value)


class PatternSet(BaseModel):
    """Include and exclude glob patterns, in the order they were given.

    An empty `includes` selects everything; an exclude match always wins.
    """

    model_config = ConfigDict(frozen=True)

    includes: tuple[str, ...] = Field(default=(), description="Include globs")
    excludes: tuple[str, ...] = Field(default=(), description="Exclude globs")


class FileRecord(BaseModel):
    """A regular file found under the root.

    Attributes:
        path: Absolute path to the file on disk.
        rel: Path relative to the root, with forward slashes.
        size: File size in bytes, as reported when the file was listed.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the root")
    size: int = Field(..., ge=0, description="File size in bytes")

    @computed_field
    @property
    def language(self) -> str:
        """Get the suggested code fence language based on the extension."""
        return fence_language(self.rel)


class DigestWarning(BaseModel):
    """A non-fatal problem: the path was skipped and the run went on."""

    model_config = ConfigDict(frozen=True)

    kind: WarningKind
    path: str | None = None
    message: str = ""

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


class DigestOptions(BaseModel):
    """Core-facing options for one digest run."""

    model_config = ConfigDict(frozen=True)

    patterns: PatternSet = Field(default_factory=PatternSet)
    preset: DigestPreset = DigestPreset.DEFAULT
    prologue: PrologueMode = PrologueMode.LIST
    count_tokens: bool = True
    dry_run: bool = False
    workers: int = Field(default=1, ge=1, description="Threads used to read files")
    respect_gitignore: bool = False


class DigestResult(BaseModel):
    """The finished digest handed to the output sink.

    `token_estimate` is None when token counting was disabled, which is not
    the same thing as an estimate of zero.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    total_bytes: int = Field(default=0, ge=0)
    token_estimate: int | None = None
    file_count: int = Field(default=0, ge=0)
    warnings: tuple[DigestWarning, ...] = ()
