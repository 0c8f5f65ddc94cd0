from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Any

from gitmelt.config import PrologueMode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gitmelt.config import FileRecord

LIST_HEADER = "Files included in this digest:"
TREE_HEADER = "File structure:"

# Empty string cannot be a path segment, so it cannot clash with a directory name.
_FILES = ""


def build_tree_lines(rel_paths: Sequence[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Only directories leading to one of `rel_paths` appear. In each directory the
    sub-directories come first, then the files, both in code-point order.

    Args:
        rel_paths (Sequence[str]): file paths relative to the root, using POSIX separators (e.g. "src/main.py")

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    tree: dict[str, Any] = {}
    for rp in rel_paths:
        parts = [p for p in rp.split("/") if p]
        if not parts:
            continue
        cur = tree
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur.setdefault(_FILES, set()).add(parts[-1])

    lines: list[str] = []
    # Stack of (prefix, remaining entries); no recursion for deep trees.
    stack: list[tuple[str, deque[tuple[str, Any]]]] = [("", _entries(tree))]
    while stack:
        prefix, entries = stack[-1]
        if not entries:
            stack.pop()
            continue
        name, child = entries.popleft()
        last = not entries
        branch = "└── " if last else "├── "
        if child is None:
            lines.append(prefix + branch + name)
        else:
            lines.append(prefix + branch + name + "/")
            stack.append((prefix + ("    " if last else "│   "), _entries(child)))
    return lines


def _entries(node: dict[str, Any]) -> deque[tuple[str, Any]]:
    dirs = sorted(k for k in node if k != _FILES)
    files = sorted(node.get(_FILES, set()))
    return deque([(d, node[d]) for d in dirs] + [(f, None) for f in files])


def build_prologue(records: Sequence[FileRecord], mode: PrologueMode) -> str:
    """Render the structural preamble describing the selected files.

    Args:
        records (Sequence[FileRecord]): the selected files, in selection order
        mode (PrologueMode): `tree`, `list` or `off`

    Returns:
        str: the prologue followed by a blank line, or an empty string for `off`
    """
    if mode is PrologueMode.OFF:
        return ""
    rels = [r.rel for r in records]
    if mode is PrologueMode.LIST:
        body = [f"- {rel}" for rel in rels]
        header = LIST_HEADER
    else:
        body = build_tree_lines(rels)
        header = TREE_HEADER
    return "\n".join([header, *body]) + "\n\n"
