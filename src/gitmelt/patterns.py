"""Glob pattern compilation and include/exclude selection.

Supported syntax:

- ``*`` matches any run of characters inside one path segment,
- ``**`` as a whole segment matches any number of segments (including none),
- ``?`` matches one character inside a segment,
- ``[abc]`` / ``[!abc]`` character classes,
- ``{a,b,c}`` alternation, which may nest and may contain any of the above,
- ``\\`` escapes the next character.

A pattern without ``/`` is matched against the file name; a pattern with ``/``
is matched against the whole relative path, a leading ``/`` being ignored and a
trailing ``/`` standing for everything below that directory. Matching is
case-sensitive.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from gitmelt.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gitmelt.config import PatternSet


def normalize_globs(globs: Sequence[str]) -> list[str]:
    """Normalize a sequence of path glob patterns.

    Strips surrounding whitespace, drops blank entries and removes a leading
    ``./``. Backslashes are kept: they escape the next character.

    Args:
        globs (Sequence[str]): the glob patterns to normalize

    Returns:
        list[str]: the normalized glob patterns
    """
    out: list[str] = []
    for g in globs:
        g2 = (g or "").strip()
        if not g2:
            continue
        while g2.startswith("./"):
            g2 = g2[2:]
        out.append(g2)
    return out


def _find_class_end(pattern: str, start: int) -> int:
    """Return the index of the ``]`` closing the class opened at ``start``, or -1."""
    i = start + 1
    if i < len(pattern) and pattern[i] in "!^":
        i += 1
    # A leading ']' is a literal member.
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    while i < len(pattern):
        if pattern[i] == "\\":
            i += 2
            continue
        if pattern[i] == "]":
            return i
        i += 1
    return -1


def _split_alternatives(pattern: str, start: int) -> tuple[list[str], int]:
    """Split the brace group opened at ``start`` into its top-level alternatives.

    Returns:
        tuple[list[str], int]: the alternatives and the index of the closing brace,
            or ([], -1) when the group is never closed.
    """
    depth = 0
    alternatives: list[str] = []
    current: list[str] = []
    i = start + 1
    while i < len(pattern):
        c = pattern[i]
        if c == "\\" and i + 1 < len(pattern):
            current.append(pattern[i : i + 2])
            i += 2
            continue
        if c == "[":
            end = _find_class_end(pattern, i)
            if end != -1:
                current.append(pattern[i : end + 1])
                i = end + 1
                continue
        if c == "{":
            depth += 1
        elif c == "}":
            if depth == 0:
                alternatives.append("".join(current))
                return alternatives, i
            depth -= 1
        elif c == "," and depth == 0:
            alternatives.append("".join(current))
            current = []
            i += 1
            continue
        current.append(c)
        i += 1
    return [], -1


def _translate_class(body: str) -> str:
    negate = body[:1] in {"!", "^"}
    if negate:
        body = body[1:]
    members: list[str] = []
    i = 0
    while i < len(body):
        c = body[i]
        if c == "\\" and i + 1 < len(body):
            members.append(re.escape(body[i + 1]))
            i += 2
            continue
        if c == "-" and members and i + 1 < len(body):
            members.append("-")
        else:
            members.append(re.escape(c))
        i += 1
    inner = "".join(members)
    # A class never matches the separator.
    return f"[^/{inner}]" if negate else f"(?:(?!/)[{inner}])"


def _translate(pattern: str, source: str, *, segment_start: bool = True) -> str:
    """Translate a glob (or one brace alternative) into a regular expression body.

    Args:
        pattern (str): the glob text to translate
        source (str): the complete pattern, used in error messages
        segment_start (bool): whether position 0 of `pattern` begins a path segment

    Raises:
        ConfigError: on an unterminated class or brace group, a stray ``}``,
            or a trailing escape.

    Returns:
        str: the regular expression body, without anchors
    """
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        at_segment_start = segment_start if i == 0 else pattern[i - 1] == "/"
        if c == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            at_segment_end = j == n or pattern[j] == "/"
            if j - i >= 2 and at_segment_start and at_segment_end:  # noqa: PLR2004
                if j == n:
                    out.append(".*")
                    i = j
                else:
                    out.append("(?:[^/]*/)*")
                    i = j + 1
                continue
            out.append("[^/]*")
            i = j
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            end = _find_class_end(pattern, i)
            if end == -1:
                raise ConfigError(source=source, message="Unterminated character class in glob pattern")
            out.append(_translate_class(pattern[i + 1 : end]))
            i = end + 1
        elif c == "{":
            alternatives, end = _split_alternatives(pattern, i)
            if end == -1:
                raise ConfigError(source=source, message="Unterminated brace group in glob pattern")
            parts = [_translate(alt, source, segment_start=at_segment_start) for alt in alternatives]
            out.append("(?:" + "|".join(parts) + ")")
            i = end + 1
        elif c == "}":
            raise ConfigError(source=source, message="Unmatched '}' in glob pattern")
        elif c == "\\":
            if i + 1 >= n:
                raise ConfigError(source=source, message="Trailing escape in glob pattern")
            out.append(re.escape(pattern[i + 1]))
            i += 2
        else:
            out.append(re.escape(c))
            i += 1
    return "".join(out)


class Glob:
    """A single compiled glob pattern."""

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self.basename_only = "/" not in pattern
        text = pattern.lstrip("/")
        if text.endswith("/"):
            # "build/" selects everything below the directory.
            text += "**"
        body = _translate(text, pattern)
        try:
            self._regex = re.compile(rf"\A(?:{body})\Z", re.DOTALL)
        except re.error as e:
            raise ConfigError(source=pattern, message=f"Invalid glob pattern ({e})") from e

    def __repr__(self) -> str:
        return f"Glob({self.pattern!r})"

    def matches(self, rel: str) -> bool:
        """Check a forward-slash relative path against the pattern.

        Args:
            rel (str): the relative path to test

        Returns:
            bool: True if the pattern matches the file name (pattern without
                separators) or the whole path (pattern with separators)
        """
        target = rel.rsplit("/", 1)[-1] if self.basename_only else rel
        return self._regex.match(target) is not None


def compile_globs(globs: Sequence[str]) -> list[Glob]:
    """Compile glob patterns, failing on the first malformed one.

    Args:
        globs (Sequence[str]): raw glob strings, normalized before compilation

    Returns:
        list[Glob]: the compiled patterns, in the given order
    """
    return [Glob(g) for g in normalize_globs(globs)]


def match_any_glob(rel: str, globs: Sequence[Glob]) -> bool:
    """Check if a relative path matches any of the compiled glob patterns."""
    return any(g.matches(rel) for g in globs)


class PatternMatcher:
    """Decides, per relative path, whether a file is selected.

    A path is selected when (there are no includes, or it matches an include)
    and it matches no exclude.
    """

    def __init__(self, includes: Sequence[str] = (), excludes: Sequence[str] = ()) -> None:
        self.includes = compile_globs(includes)
        self.excludes = compile_globs(excludes)

    @classmethod
    def from_pattern_set(cls, patterns: PatternSet) -> PatternMatcher:
        return cls(patterns.includes, patterns.excludes)

    def is_excluded(self, rel: str) -> bool:
        return match_any_glob(rel, self.excludes)

    def is_included(self, rel: str) -> bool:
        return not self.includes or match_any_glob(rel, self.includes)

    def matches(self, rel: str) -> bool:
        """Return True when `rel` is selected by the pattern set."""
        return self.is_included(rel) and not self.is_excluded(rel)
