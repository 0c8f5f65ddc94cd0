"""gitmelt: concatenate a project's files into a single digest for an LLM.

Usage
-----
Run `gitmelt --help` (or `python -m gitmelt.cli --help`) for full options. Common examples:
    - Digest the current directory into digest.txt:
        gitmelt

    - Rust sources and manifests only, without tests, as Markdown on stdout:
        gitmelt ./project -i "*.{rs,toml}" -e "test_*" --preset markdown --stdout

    - Shallow-clone a branch and show a tree prologue:
        gitmelt https://github.com/org/repo.git --branch dev --prologue tree -o repo.txt

    - Only estimate the size of the digest:
        gitmelt --dry

Defaults for any option can be kept in a YAML file passed with `--config` (or named
by the GITMELT_CONFIG environment variable, which may come from a `.env` file).
"""

from __future__ import annotations

import argparse
import contextlib
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

from gitmelt import __version__
from gitmelt.cloner import clone_repository, is_remote
from gitmelt.config import DIGEST_FILENAME, DigestPreset, PrologueMode
from gitmelt.exceptions import ConfigError, GitmeltError, SourceNotFoundError
from gitmelt.logging import logger, setup_logging
from gitmelt.pipeline import build_digest
from gitmelt.settings import load_settings

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from gitmelt.config import DigestResult
    from gitmelt.settings import Settings


def build_parser() -> argparse.ArgumentParser:
    # Options default to None so that values from the config file are only
    # overridden by what was actually given on the command line.
    p = argparse.ArgumentParser(
        prog="gitmelt",
        description="Concatenates file contents into a single digest file.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("input", nargs="?", default=None, help="Path to traverse or Git URL (default: .).")
    p.add_argument("--branch", default=None, help="Git branch to clone (if input is a Git URL).")
    p.add_argument(
        "-i",
        "--include",
        dest="include_glob",
        action="append",
        default=None,
        help="Include glob (repeatable), e.g. '*.{py,toml}' or 'src/**'.",
    )
    p.add_argument(
        "-e",
        "--exclude",
        dest="exclude_glob",
        action="append",
        default=None,
        help="Exclude glob (repeatable); wins over includes.",
    )
    out = p.add_mutually_exclusive_group()
    out.add_argument("-o", "--output", type=Path, default=None, help=f"Output file (default: ./{DIGEST_FILENAME}).")
    out.add_argument("--stdout", action="store_true", default=None, help="Print the digest to stdout.")
    p.add_argument("-v", "--verbose", action="store_true", default=None, help="Debug logging.")
    p.add_argument(
        "--preset",
        choices=[m.value for m in DigestPreset],
        default=None,
        help="Output preset (default: default).",
    )
    p.add_argument(
        "--prologue",
        choices=[m.value for m in PrologueMode],
        default=None,
        help="Prologue mode (default: list).",
    )
    p.add_argument("--dry", action="store_true", default=None, help="Dry run: only estimate files, bytes and tokens.")
    p.add_argument("--no-tokens", action="store_true", default=None, help="Disable token counting.")
    p.add_argument("-t", "--timing", action="store_true", default=None, help="Show timing summary.")
    p.add_argument("--workers", type=int, default=None, help="Threads used to read files (default: 1).")
    p.add_argument("--gitignore", action="store_true", default=None, help="Skip what the root .gitignore ignores.")
    p.add_argument("--config", default=None, help="YAML file with default option values.")
    p.add_argument("--log-file", default=None, help="Log file path.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    args = vars(build_parser().parse_args(argv))
    config_path = args.pop("config")
    return load_settings(args, config_path)


@contextlib.contextmanager
def resolve_source(settings: Settings) -> Iterator[Path]:
    """Yield the local root to digest, cloning first when the input is a Git URL.

    Raises:
        SourceNotFoundError: if a local input is not an existing directory.

    Yields:
        Path: the directory to digest; a temporary clone is removed afterwards.
    """
    if is_remote(settings.input):
        with clone_repository(settings.input, settings.branch) as root:
            yield root
        return
    root = Path(settings.input).expanduser().resolve()
    if not root.is_dir():
        raise SourceNotFoundError(folder=root)
    yield root


def format_tokens(tokens: int | None) -> str:
    return "n/a" if tokens is None else str(tokens)


def write_digest(result: DigestResult, settings: Settings) -> Path | None:
    """Write the digest where the settings ask for it.

    Returns:
        Path | None: the file written, or None when nothing was written to a file
            (dry run or stdout)
    """
    summary = f"files={result.file_count} bytes={result.total_bytes} tokens={format_tokens(result.token_estimate)}"
    if settings.dry:
        print(f"Dry run: {summary}")
        return None
    if settings.stdout:
        sys.stdout.write(result.text)
        sys.stdout.flush()
        print(f"Wrote <stdout> {summary}", file=sys.stderr)
        return None
    out_path = settings.output or Path.cwd() / DIGEST_FILENAME
    out_path.write_text(result.text, encoding="utf-8", errors="surrogateescape", newline="")
    print(f"Wrote {out_path} {summary}")
    return out_path


def print_timing(timings: dict[str, float]) -> None:
    print("\nTiming Summary:", file=sys.stderr)
    print("-" * 40, file=sys.stderr)
    for label, seconds in timings.items():
        print(f"{label + ':':<16}{seconds:.3f}s", file=sys.stderr)
    print("-" * 40, file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    global_start = time.perf_counter()
    try:
        settings = parse_args(argv)
    except ConfigError as e:
        print(f"gitmelt: error: {e}", file=sys.stderr)
        return 2
    setup_logging(settings.log_file or None, verbose=settings.verbose, reconfigure=True)
    timings: dict[str, float] = {}

    try:
        with resolve_source(settings) as root:
            timings["Source"] = time.perf_counter() - global_start
            logger.info("digest_requested", root=str(root), input=settings.input)
            digest_start = time.perf_counter()
            result = build_digest(root, settings.digest_options())
            timings["Digest"] = time.perf_counter() - digest_start
    except (ConfigError, SourceNotFoundError) as e:
        logger.error("aborted", error=str(e))
        print(f"gitmelt: error: {e}", file=sys.stderr)
        return 2
    except GitmeltError as e:
        logger.error("aborted", error=str(e))
        print(f"gitmelt: error: {e}", file=sys.stderr)
        return 1

    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)

    write_start = time.perf_counter()
    try:
        write_digest(result, settings)
    except OSError as e:
        logger.error("write_failed", output=str(settings.output), error=str(e))
        print(f"gitmelt: error: cannot write digest ({e})", file=sys.stderr)
        return 1
    timings["Write"] = time.perf_counter() - write_start
    timings["Total"] = time.perf_counter() - global_start

    if settings.timing:
        print_timing(timings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
