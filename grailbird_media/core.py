"""Core extraction and download utilities for Grailbird Media."""
from __future__ import annotations

import json
import logging
import os
import sys
import time
from contextlib import closing
from dataclasses import dataclass, field
from datetime import timezone
from email.utils import parsedate_to_datetime
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, List, TextIO
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "grailbird-media/0.1"
STATUS_URL_TEMPLATE = "https://twitter.com/{screen_name}/status/{id}"
TWEET_FILES_PATTERN = "data/js/tweets/*.js"
IMAGES_SUBDIR = ("data", "images")
VIDEO_THUMB_MARKER = "ext_tw_video_thumb"
ORIGINAL_SIZE_SUFFIX = ":orig"
DEFAULT_TIMEOUT = 60.0
CHUNK_SIZE = 8192


class ArchiverError(Exception):
    """Base class for failures raised while processing an archive."""


class MissingDataError(ArchiverError):
    def __init__(self, archive_root: Path | str) -> None:
        self.archive_root = Path(archive_root)
        super().__init__(
            f"Tweet data was not found in {archive_root}, is it an actual archive?"
        )


class RecordParseError(ArchiverError):
    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        if path is not None:
            message = f"Failed to parse {path}: {message}"
        super().__init__(message)


class DownloadError(ArchiverError):
    def __init__(self, message: str, url: str) -> None:
        self.url = url
        super().__init__(message)


@dataclass(slots=True, frozen=True)
class LineOffset:
    """Drops a fixed number of leading lines (the Grailbird ``var ... =`` line)."""

    lines: int = 1

    def strip(self, content: str) -> str:
        lines = content.split("\n")[self.lines :]
        return "".join(line[:-1] if line.endswith("\r") else line for line in lines)


@dataclass(slots=True, frozen=True)
class AssignmentOffset:
    """Drops everything up to and including the first ``=`` of a JS assignment."""

    def strip(self, content: str) -> str:
        _, sep, remainder = content.partition("=")
        if not sep:
            raise ValueError("no variable assignment found in preamble")
        return remainder


CONTENT_OFFSETS = {
    "grailbird": LineOffset(1),
    "assignment": AssignmentOffset(),
}


@dataclass(slots=True)
class ArchiveOptions:
    """Configuration for a single archive run."""

    archive_root: Path
    want_videos: bool = False
    output_dir: Path | None = None
    content_offset: LineOffset | AssignmentOffset | str = field(default_factory=LineOffset)
    user_agent: str = DEFAULT_USER_AGENT
    verify: bool = True
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        self.archive_root = Path(self.archive_root).expanduser()
        if self.output_dir is None:
            self.output_dir = self.archive_root.joinpath(*IMAGES_SUBDIR)
        else:
            self.output_dir = Path(self.output_dir).expanduser()
        if isinstance(self.content_offset, str):
            try:
                self.content_offset = CONTENT_OFFSETS[self.content_offset]
            except KeyError:
                raise ValueError(f"Unsupported content offset: {self.content_offset}") from None
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout}")


@dataclass(slots=True)
class ArchiveSummary:
    files: int = 0
    records: int = 0
    selected: int = 0
    listed: int = 0
    downloaded: int = 0
    skipped: int = 0


def build_session(user_agent: str, verify: bool) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "image/avif,image/webp,image/*,*/*;q=0.8",
            "Connection": "keep-alive",
        }
    )
    session.verify = verify
    return session


def find_tweet_files(archive_root: Path | str) -> List[Path]:
    root = Path(archive_root)
    files = sorted(path for path in root.glob(TWEET_FILES_PATTERN) if path.is_file())
    if not files:
        raise MissingDataError(archive_root)
    return files


def parse_records(
    content: str,
    offset: LineOffset | AssignmentOffset = CONTENT_OFFSETS["grailbird"],
    *,
    path: Path | None = None,
) -> List[dict[str, Any]]:
    """Parse the body of a tweet data file into a list of tweet objects.

    The preamble is removed by ``offset`` and whatever remains must be a JSON
    array. No further validation happens here; missing fields surface when the
    records are classified.
    """
    try:
        payload = offset.strip(content)
    except ValueError as exc:
        raise RecordParseError("unexpected preamble", path) from exc
    try:
        records = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise RecordParseError("invalid JSON", path) from exc
    if not isinstance(records, list):
        raise RecordParseError(f"expected a JSON array, got {type(records).__name__}", path)
    return records


def load_records(
    path: Path,
    offset: LineOffset | AssignmentOffset = CONTENT_OFFSETS["grailbird"],
) -> List[dict[str, Any]]:
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise RecordParseError("invalid UTF-8", path) from exc
    return parse_records(content, offset, path=path)


def media_entries(record: dict[str, Any]) -> list[dict[str, Any]]:
    entities = record.get("entities") or {}
    return entities.get("media") or []


def is_video_url(url: str) -> bool:
    return VIDEO_THUMB_MARKER in url


def wants_record(record: dict[str, Any], want_videos: bool) -> bool:
    """Decide whether ``record`` belongs to the requested mode.

    Retweets are never selected. A tweet is classified as a whole by its
    first media entry only, so a tweet whose first attachment is a photo is
    image-class even when later attachments are video thumbnails.
    """
    if record.get("retweeted_status") is not None:
        return False
    media = media_entries(record)
    if not media:
        return False
    return is_video_url(media[0]["media_url_https"]) == want_videos


def select_records(records: Iterable[dict[str, Any]], want_videos: bool) -> List[dict[str, Any]]:
    return [record for record in records if wants_record(record, want_videos)]


def status_url(record: dict[str, Any]) -> str:
    return STATUS_URL_TEMPLATE.format(
        screen_name=record["user"]["screen_name"],
        id=record["id"],
    )


def list_video_statuses(records: Iterable[dict[str, Any]], out: TextIO | None = None) -> int:
    stream = out if out is not None else sys.stdout
    count = 0
    for record in records:
        print(status_url(record), file=stream)
        count += 1
    return count


def media_basename(url: str) -> str:
    name = PurePosixPath(urlparse(url).path).name
    # pbs.twimg.com serves sized variants as ``name.jpg:large``
    return name.split(":", 1)[0]


def derive_target_path(output_dir: Path, record_id: Any, url: str) -> Path:
    basename = media_basename(url)
    if not basename:
        raise ValueError(f"Media URL has no file name: {url}")
    return output_dir / f"{record_id}-{basename}"


def original_url(url: str) -> str:
    return f"{url}{ORIGINAL_SIZE_SUFFIX}"


def parse_last_modified(value: str | None, *, url: str = "") -> int:
    """Return the ``Last-Modified`` header value as whole epoch seconds."""
    if not value:
        raise DownloadError(f"Response for {url} has no Last-Modified header", url)
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError) as exc:
        raise DownloadError(f"Unparseable Last-Modified header {value!r} for {url}", url) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def ensure_output_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def download_media(
    session: requests.Session,
    url: str,
    target: Path,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> Path:
    source = original_url(url)
    try:
        with closing(session.get(source, stream=True, timeout=timeout)) as response:
            response.raise_for_status()
            modified = parse_last_modified(response.headers.get("Last-Modified"), url=source)
            with target.open("wb") as fh:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
    except requests.exceptions.RequestException as exc:
        raise DownloadError(f"Failed to download {source}", source) from exc
    os.utime(target, (time.time(), modified))
    return target


def download_record_media(
    session: requests.Session,
    record: dict[str, Any],
    output_dir: Path,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[int, int]:
    downloaded = 0
    skipped = 0
    for entry in media_entries(record):
        url = entry["media_url_https"]
        target = derive_target_path(output_dir, record["id"], url)
        if target.exists():
            logger.info("%s already exists, skipping", target)
            skipped += 1
            continue
        download_media(session, url, target, timeout=timeout)
        logger.info("Downloaded %s to %s", original_url(url), target)
        downloaded += 1
    return downloaded, skipped


def process_archive(
    options: ArchiveOptions,
    *,
    session: requests.Session | None = None,
    out: TextIO | None = None,
) -> ArchiveSummary:
    """Run the locate, parse, select and output steps over a whole archive.

    In listing mode (``options.want_videos``) status URLs of video tweets are
    written to ``out``. Otherwise image media is downloaded into
    ``options.output_dir``; files that already exist there are left alone, so
    repeated runs only fetch what is missing.
    """
    files = find_tweet_files(options.archive_root)
    summary = ArchiveSummary(files=len(files))
    logger.info("Found %d tweet data file(s) in %s", len(files), options.archive_root)

    output_dir = options.output_dir
    if not options.want_videos:
        ensure_output_dir(output_dir)
        if session is None:
            session = build_session(options.user_agent, options.verify)

    for path in files:
        logger.info("Processing %s", path)
        records = load_records(path, options.content_offset)
        selected = select_records(records, options.want_videos)
        summary.records += len(records)
        summary.selected += len(selected)
        logger.debug("Selected %d of %d tweets from %s", len(selected), len(records), path.name)

        if options.want_videos:
            summary.listed += list_video_statuses(selected, out)
            continue

        for record in selected:
            downloaded, skipped = download_record_media(
                session,
                record,
                output_dir,
                timeout=options.timeout,
            )
            summary.downloaded += downloaded
            summary.skipped += skipped

    if options.want_videos:
        logger.info("Listed %d video tweet(s) from %d file(s)", summary.listed, summary.files)
    else:
        logger.info(
            "Downloaded %d file(s), skipped %d existing file(s) into %s",
            summary.downloaded,
            summary.skipped,
            output_dir,
        )
    return summary
