from __future__ import annotations

from pathlib import Path

import pytest

from gitmelt.config import FileRecord, PrologueMode
from gitmelt.prologue import build_prologue, build_tree_lines


def _records(*rels: str) -> list[FileRecord]:
    return [FileRecord(path=Path("/repo") / rel, rel=rel, size=0) for rel in rels]


@pytest.mark.unit
def test_build_tree_lines_nests_directories_before_files() -> None:
    lines = build_tree_lines(["README.md", "src/app.py", "src/util/x.py", "tests/t.py"])

    assert lines == [
        "├── src/",
        "│   ├── util/",
        "│   │   └── x.py",
        "│   └── app.py",
        "├── tests/",
        "│   └── t.py",
        "└── README.md",
    ]


@pytest.mark.unit
def test_build_tree_lines_empty() -> None:
    assert build_tree_lines([]) == []


@pytest.mark.unit
def test_tree_prologue_only_shows_selected_files() -> None:
    prologue = build_prologue(_records("a/main.rs", "a/Cargo.toml"), PrologueMode.TREE)

    assert prologue == "File structure:\n└── a/\n    ├── Cargo.toml\n    └── main.rs\n\n"


@pytest.mark.unit
def test_list_prologue_keeps_selection_order() -> None:
    prologue = build_prologue(_records("b.txt", "a/x.txt"), PrologueMode.LIST)

    assert prologue == "Files included in this digest:\n- b.txt\n- a/x.txt\n\n"


@pytest.mark.unit
def test_off_prologue_is_empty() -> None:
    assert build_prologue(_records("a.txt"), PrologueMode.OFF) == ""


@pytest.mark.unit
def test_build_tree_lines_wide_directory() -> None:
    names = [f"f{i:05d}.txt" for i in range(20000)]

    lines = build_tree_lines([f"big/{n}" for n in reversed(names)])

    assert lines[0] == "big/"
    assert lines[1] == "    ├── f00000.txt"
    assert lines[-1] == "    └── f19999.txt"
    assert len(lines) == len(names) + 1
