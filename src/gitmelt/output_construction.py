from __future__ import annotations

import io
import re
from concurrent.futures import ThreadPoolExecutor
from functools import wraps
from typing import TYPE_CHECKING, Any
from xml.sax.saxutils import escape

from pydantic import BaseModel, ConfigDict

from gitmelt.config import DigestPreset, DigestWarning, FileRecord, WarningKind
from gitmelt.file_manipulation import read_text_utf8
from gitmelt.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    SectionRenderer = Callable[[FileRecord, str], str]

RULE = "=" * 48

SECTION_RENDERERS: dict[DigestPreset, SectionRenderer] = {}

_BACKTICK_RUN = re.compile(r"`{3,}")


def register_renderer(preset: DigestPreset) -> Callable[[SectionRenderer], SectionRenderer]:
    """Decorator registering the function rendering one file section for a preset.

    Args:
        preset (DigestPreset): the preset the decorated function renders

    Returns:
        Callable[[SectionRenderer], SectionRenderer]: A decorator that stores the given
        function in SECTION_RENDERERS under `preset` and returns it.
    """

    def decorator(func: SectionRenderer) -> SectionRenderer:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            return func(*args, **kwargs)

        SECTION_RENDERERS[preset] = wrapper
        return wrapper

    return decorator


def _terminated(content: str) -> str:
    return content if not content or content.endswith("\n") else content + "\n"


@register_renderer(DigestPreset.DEFAULT)
def render_default(rec: FileRecord, content: str) -> str:
    """Plain section: the path framed by two rules, the content, then a blank line."""
    return f"{RULE}\nFILE: {rec.rel}\n{RULE}\n{_terminated(content)}\n"


@register_renderer(DigestPreset.MARKDOWN)
def render_markdown(rec: FileRecord, content: str) -> str:
    """Markdown section: a header with the path and a fenced code block.

    The fence is tagged with the language guessed from the extension (untagged when
    unknown) and is made longer than any backtick run in the content, so the block
    cannot be closed early.

    Args:
        rec (FileRecord): the file being rendered
        content (str): its decoded content

    Returns:
        str: the section, ending with a blank line
    """
    longest = max((len(m) for m in _BACKTICK_RUN.findall(content)), default=2)
    fence = "`" * (longest + 1)
    return f"## File: {rec.rel}\n{fence}{rec.language}\n{_terminated(content)}{fence}\n\n"


@register_renderer(DigestPreset.XML)
def render_xml(rec: FileRecord, content: str) -> str:
    """XML section: the raw content wrapped in a `file` element carrying the path."""
    path_attr = escape(rec.rel, {'"': "&quot;"})
    return f'<file path="{path_attr}">\n{_terminated(content)}</file>\n\n'


def read_record(rec: FileRecord) -> tuple[str | None, DigestWarning | None]:
    """Read one selected file, converting failures into a warning.

    Args:
        rec (FileRecord): the file to read

    Returns:
        tuple[str | None, DigestWarning | None]: the content and no warning, or no
            content and the warning explaining why the file was skipped
    """
    try:
        return read_text_utf8(rec.path), None
    except UnicodeDecodeError:
        warning = DigestWarning(kind=WarningKind.NOT_TEXT, path=rec.rel, message="skipped: not UTF-8 text")
    except OSError as e:
        warning = DigestWarning(kind=WarningKind.UNREADABLE, path=rec.rel, message=f"skipped: {e.strerror or e}")
    logger.info("file_skipped", path=rec.rel, kind=str(warning.kind), reason=warning.message)
    return None, warning


def read_contents(records: Sequence[FileRecord], *, workers: int = 1) -> list[tuple[str | None, DigestWarning | None]]:
    """Read every record, optionally on a bounded thread pool.

    The result list is indexed like `records` whatever order the reads finish in.

    Args:
        records (Sequence[FileRecord]): the files to read, in selection order
        workers (int): number of reader threads; 1 reads sequentially

    Returns:
        list[tuple[str | None, DigestWarning | None]]: one (content, warning) pair per record
    """
    if workers <= 1 or len(records) <= 1:
        return [read_record(rec) for rec in records]
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gitmelt-read") as pool:
        return list(pool.map(read_record, records))


class AssembledDigest(BaseModel):
    """Concatenated file sections and what happened while producing them."""

    model_config = ConfigDict(frozen=True)

    text: str
    rendered: tuple[str, ...]
    warnings: tuple[DigestWarning, ...]


def assemble_digest(
    records: Sequence[FileRecord],
    preset: DigestPreset,
    *,
    workers: int = 1,
) -> AssembledDigest:
    """Render the selected files into one text, in selection order.

    Files that cannot be read or are not UTF-8 text are left out (no placeholder)
    and reported as warnings.

    Args:
        records (Sequence[FileRecord]): the selected files, in selection order
        preset (DigestPreset): the section format
        workers (int): number of reader threads

    Returns:
        AssembledDigest: the body text, the relative paths actually rendered and the warnings
    """
    render = SECTION_RENDERERS[preset]
    contents = read_contents(records, workers=workers)

    out = io.StringIO()
    rendered: list[str] = []
    warnings: list[DigestWarning] = []
    for rec, (content, warning) in zip(records, contents, strict=True):
        if warning is not None:
            warnings.append(warning)
            continue
        out.write(render(rec, content or ""))
        rendered.append(rec.rel)
    return AssembledDigest(text=out.getvalue(), rendered=tuple(rendered), warnings=tuple(warnings))
