"""Turn a directory tree or a Git repository into a single text digest."""

from gitmelt.config import DigestOptions, DigestPreset, DigestResult, PatternSet, PrologueMode
from gitmelt.pipeline import build_digest

__version__ = "0.1.0"

__all__ = [
    "DigestOptions",
    "DigestPreset",
    "DigestResult",
    "PatternSet",
    "PrologueMode",
    "__version__",
    "build_digest",
]
