"""Command line entry point for Grailbird Media."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from . import __version__
from .core import (
    CONTENT_OFFSETS,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    ArchiveOptions,
    process_archive,
)


def _default_output_dir() -> Path | None:
    env_override = os.environ.get("GRAILBIRD_MEDIA_OUTPUT_DIR")
    if env_override:
        return Path(env_override).expanduser().resolve()
    return None


def _next_cause(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def format_error(exc: BaseException) -> str:
    """Join an exception and its chained causes into a single line."""
    parts = [str(exc) or type(exc).__name__]
    cause = _next_cause(exc)
    while cause is not None:
        parts.append(str(cause) or type(cause).__name__)
        cause = _next_cause(cause)
    return ": ".join(parts)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="grailbird-media",
        description="Downloads media locally from an extracted Twitter archive.",
    )
    parser.add_argument(
        "archive_path",
        metavar="ARCHIVE_PATH",
        help="Path to the extracted Twitter archive folder.",
    )
    parser.add_argument(
        "--videos",
        action="store_true",
        help="Print a list of tweet URLs with a video or GIF instead of downloading images.",
    )
    parser.add_argument(
        "--output-dir",
        help=(
            "Directory where images are saved. Defaults to ARCHIVE_PATH/data/images "
            "(override with GRAILBIRD_MEDIA_OUTPUT_DIR)."
        ),
    )
    parser.add_argument(
        "--content-offset",
        default="grailbird",
        choices=sorted(CONTENT_OFFSETS),
        help="How the JavaScript preamble of each data file is stripped (default: grailbird).",
    )
    parser.add_argument(
        "--user-agent",
        default=DEFAULT_USER_AGENT,
        help="User-Agent header sent with media requests.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Per-request timeout in seconds (default: {DEFAULT_TIMEOUT:g}).",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Disable TLS certificate verification.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging verbosity (default: INFO).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    output_dir = Path(args.output_dir).expanduser().resolve() if args.output_dir else _default_output_dir()

    try:
        options = ArchiveOptions(
            archive_root=Path(args.archive_path),
            want_videos=args.videos,
            output_dir=output_dir,
            content_offset=CONTENT_OFFSETS[args.content_offset],
            user_agent=args.user_agent,
            verify=not args.insecure,
            timeout=args.timeout,
        )
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    try:
        process_archive(options)
    except Exception as exc:  # noqa: BLE001 - report the whole chain and exit non-zero
        print(f"error: {format_error(exc)}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
