from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

import pytest

from gitmelt import pipeline
from gitmelt.config import DigestOptions, DigestPreset, PatternSet, PrologueMode, WarningKind
from gitmelt.exceptions import ConfigError
from gitmelt.output_construction import RULE
from gitmelt.patterns import PatternMatcher
from gitmelt.pipeline import build_digest, select_files

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture

RUST_TREE = {
    "a/main.rs": "fn main() {}\n",
    "a/Cargo.toml": '[package]\nname = "a"\n',
    "a/test_main.rs": "#[test]\nfn t() {}\n",
}
RUST_PATTERNS = PatternSet(includes=("*.{rs,toml}",), excludes=("test_*",))


@pytest.fixture
def rust_root(write_files) -> Path:  # noqa: ANN001
    return write_files(RUST_TREE)


@pytest.mark.integration
def test_selection_with_brace_include_and_exclude(rust_root: Path) -> None:
    selected = select_files(rust_root, PatternMatcher.from_pattern_set(RUST_PATTERNS))

    assert [rec.rel for rec in selected] == ["a/Cargo.toml", "a/main.rs"]


@pytest.mark.integration
def test_tree_prologue_lists_only_selected_files(rust_root: Path) -> None:
    result = build_digest(rust_root, DigestOptions(patterns=RUST_PATTERNS, prologue=PrologueMode.TREE))

    assert result.text.startswith("File structure:\n└── a/\n    ├── Cargo.toml\n    └── main.rs\n\n")
    assert "test_main.rs" not in result.text
    assert result.file_count == 2  # noqa: PLR2004


@pytest.mark.integration
def test_token_estimate_covers_whole_text(rust_root: Path) -> None:
    result = build_digest(rust_root, DigestOptions(patterns=RUST_PATTERNS))

    assert result.token_estimate == math.ceil(len(result.text) / 4)
    assert result.total_bytes == len(result.text.encode("utf-8"))


@pytest.mark.integration
def test_disabled_token_counting_leaves_estimate_undefined(rust_root: Path) -> None:
    result = build_digest(rust_root, DigestOptions(count_tokens=False))

    assert result.token_estimate is None
    assert result.text


@pytest.mark.integration
def test_dry_run_counts_without_rendering(rust_root: Path) -> None:
    result = build_digest(rust_root, DigestOptions(patterns=RUST_PATTERNS, dry_run=True))

    expected_bytes = len(RUST_TREE["a/main.rs"]) + len(RUST_TREE["a/Cargo.toml"])
    assert result.text == ""
    assert result.file_count == 2  # noqa: PLR2004
    assert result.total_bytes == expected_bytes
    assert result.token_estimate == math.ceil(expected_bytes / 4)


@pytest.mark.integration
def test_dry_run_skips_file_reads(rust_root: Path, mocker: MockerFixture) -> None:
    assemble = mocker.spy(pipeline, "assemble_digest")

    build_digest(rust_root, DigestOptions(dry_run=True))

    assemble.assert_not_called()


@pytest.mark.integration
def test_runs_are_byte_identical(write_files) -> None:  # noqa: ANN001
    root = write_files({f"d{i % 3}/f{i}.py": f"x = {i}\n" for i in range(30)})
    options = DigestOptions(preset=DigestPreset.MARKDOWN, prologue=PrologueMode.TREE, workers=6)

    first = build_digest(root, options)
    second = build_digest(root, options)

    assert first.text == second.text
    assert first == second


@pytest.mark.integration
def test_parallel_and_sequential_reads_produce_same_digest(write_files) -> None:  # noqa: ANN001
    root = write_files({f"pkg/m{i:03d}.py": f"# module {i}\n" * (i + 1) for i in range(60)})

    sequential = build_digest(root, DigestOptions(workers=1))
    parallel = build_digest(root, DigestOptions(workers=16))

    assert parallel.text == sequential.text


@pytest.mark.integration
def test_xml_sections_carry_selected_paths(rust_root: Path) -> None:
    options = DigestOptions(patterns=RUST_PATTERNS, preset=DigestPreset.XML, prologue=PrologueMode.OFF)

    result = build_digest(rust_root, options)
    document = ET.fromstring(f"<digest>{result.text}</digest>")

    assert [node.get("path") for node in document.iter("file")] == ["a/Cargo.toml", "a/main.rs"]


@pytest.mark.integration
def test_empty_selection_is_a_valid_result(rust_root: Path) -> None:
    result = build_digest(rust_root, DigestOptions(patterns=PatternSet(includes=("*.go",))))

    assert result.text == ""
    assert result.file_count == 0
    assert result.token_estimate == 0
    assert [w.kind for w in result.warnings] == [WarningKind.EMPTY_SELECTION]


@pytest.mark.integration
def test_malformed_glob_aborts_before_traversal(rust_root: Path, mocker: MockerFixture) -> None:
    walk = mocker.spy(pipeline, "walk_files")

    with pytest.raises(ConfigError):
        build_digest(rust_root, DigestOptions(patterns=PatternSet(excludes=("[abc",))))

    walk.assert_not_called()


@pytest.mark.integration
def test_binary_files_are_skipped_with_warning(write_files) -> None:  # noqa: ANN001
    root = write_files({"program.exe": b"\x00" * 100, "readme.md": "Important Context\n"})

    result = build_digest(root, DigestOptions(prologue=PrologueMode.OFF))

    assert "Important Context" in result.text
    assert "program.exe" not in result.text
    assert result.file_count == 1
    assert [(w.kind, w.path) for w in result.warnings] == [(WarningKind.NOT_TEXT, "program.exe")]


@pytest.mark.integration
@pytest.mark.parametrize("prologue", [PrologueMode.LIST, PrologueMode.TREE])
def test_prologue_leaves_out_skipped_files(write_files, prologue: PrologueMode) -> None:  # noqa: ANN001
    root = write_files({"bin/program.exe": b"\x00" * 10, "readme.md": "hi\n"})

    result = build_digest(root, DigestOptions(prologue=prologue))

    assert "program.exe" not in result.text
    assert "bin" not in result.text
    assert "readme.md" in result.text.split(RULE, 1)[0]
    assert result.file_count == 1


@pytest.mark.integration
def test_list_prologue_matches_rendered_files(write_files) -> None:  # noqa: ANN001
    root = write_files({"program.exe": b"\x00" * 10, "readme.md": "hi\n"})

    result = build_digest(root, DigestOptions(prologue=PrologueMode.LIST))

    assert result.text.startswith("Files included in this digest:\n- readme.md\n\n")
    assert "- program.exe" not in result.text


@pytest.mark.integration
def test_no_prologue_when_every_selected_file_is_skipped(write_files) -> None:  # noqa: ANN001
    root = write_files({"program.exe": b"\x00" * 10})

    result = build_digest(root)

    assert result.text == ""
    assert result.file_count == 0
    assert result.token_estimate == 0


@pytest.mark.integration
def test_vcs_metadata_and_gitignored_files_are_left_out(write_files) -> None:  # noqa: ANN001
    root = write_files(
        {
            ".git/HEAD": "ref: refs/heads/main\n",
            ".gitignore": "secret.txt\n",
            "secret.txt": "password\n",
            "public.txt": "Public info\n",
        },
    )

    plain = build_digest(root, DigestOptions(prologue=PrologueMode.OFF))
    ignoring = build_digest(root, DigestOptions(prologue=PrologueMode.OFF, respect_gitignore=True))

    assert "refs/heads" not in plain.text
    assert "FILE: secret.txt" in plain.text
    assert "FILE: secret.txt" not in ignoring.text
    assert "password" not in ignoring.text
    assert "FILE: public.txt" in ignoring.text
