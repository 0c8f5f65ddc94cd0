from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from gitmelt.config import DigestOptions, DigestResult, DigestWarning, FileRecord, WarningKind
from gitmelt.file_manipulation import load_gitignore, walk_files
from gitmelt.logging import logger
from gitmelt.output_construction import assemble_digest
from gitmelt.patterns import PatternMatcher
from gitmelt.prologue import build_prologue
from gitmelt.tokens import estimate_tokens, estimate_tokens_for

if TYPE_CHECKING:
    from collections.abc import Iterable


def select_files(
    root: Path,
    matcher: PatternMatcher,
    *,
    warnings: list[DigestWarning] | None = None,
    respect_gitignore: bool = False,
) -> list[FileRecord]:
    """Walk `root` and keep the files selected by `matcher`, in traversal order.

    Args:
        root (Path): the traversal root
        matcher (PatternMatcher): compiled include/exclude patterns
        warnings (list[DigestWarning] | None): receives per-path walk warnings
        respect_gitignore (bool): also skip what the root `.gitignore` ignores

    Returns:
        list[FileRecord]: the selected files
    """
    ignore = load_gitignore(root, warnings) if respect_gitignore else None
    candidates: Iterable[FileRecord] = walk_files(root, warnings=warnings, ignore=ignore)
    return [rec for rec in candidates if matcher.matches(rec.rel)]


def build_digest(root: Path, options: DigestOptions | None = None) -> DigestResult:
    """Produce the digest of the files under `root`.

    Patterns are compiled before anything is read, so a malformed glob stops the run
    before traversal. Filesystem problems never stop it: they end up in
    `DigestResult.warnings`.

    On a dry run nothing is read or rendered: the text is empty, the file count is the
    number of selected files and the token estimate is derived from their total size.

    Args:
        root (Path): local directory to digest
        options (DigestOptions | None): run options; defaults apply when None

    Raises:
        ConfigError: if a glob pattern cannot be compiled.

    Returns:
        DigestResult: the digest and its metadata
    """
    options = options or DigestOptions()
    matcher = PatternMatcher.from_pattern_set(options.patterns)
    root = Path(root).resolve()

    warnings: list[DigestWarning] = []
    log = logger.bind(root=str(root), preset=str(options.preset), dry_run=options.dry_run)
    log.debug("traversal_started")
    selected = select_files(root, matcher, warnings=warnings, respect_gitignore=options.respect_gitignore)
    log.debug("selection_done", files=len(selected))

    if not selected:
        log.info("empty_selection")
        warnings.append(
            DigestWarning(kind=WarningKind.EMPTY_SELECTION, message="no files matched the include/exclude patterns"),
        )

    if options.dry_run:
        total_bytes = sum(rec.size for rec in selected)
        tokens = estimate_tokens_for(rec.size for rec in selected) if options.count_tokens else None
        log.info("dry_run_done", files=len(selected), bytes=total_bytes, tokens=tokens)
        return DigestResult(
            text="",
            total_bytes=total_bytes,
            token_estimate=tokens,
            file_count=len(selected),
            warnings=tuple(warnings),
        )

    text = ""
    file_count = 0
    if selected:
        assembled = assemble_digest(selected, options.preset, workers=options.workers)
        warnings.extend(assembled.warnings)
        rendered = set(assembled.rendered)
        included = [rec for rec in selected if rec.rel in rendered]
        file_count = len(included)
        if included:
            # The prologue only lists files whose section is in the body.
            text = build_prologue(included, options.prologue) + assembled.text

    tokens = estimate_tokens(len(text)) if options.count_tokens else None
    total_bytes = len(text.encode("utf-8", errors="surrogateescape"))
    log.info("digest_done", files=file_count, bytes=total_bytes, tokens=tokens, warnings=len(warnings))
    return DigestResult(
        text=text,
        total_bytes=total_bytes,
        token_estimate=tokens,
        file_count=file_count,
        warnings=tuple(warnings),
    )
