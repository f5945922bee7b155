"""Public package surface for Grailbird Media."""
from .core import (
    CONTENT_OFFSETS,
    DEFAULT_USER_AGENT,
    ArchiveOptions,
    ArchiveSummary,
    ArchiverError,
    AssignmentOffset,
    DownloadError,
    LineOffset,
    MissingDataError,
    RecordParseError,
    build_session,
    derive_target_path,
    download_record_media,
    find_tweet_files,
    list_video_statuses,
    load_records,
    parse_last_modified,
    parse_records,
    process_archive,
    select_records,
    status_url,
    wants_record,
)

__version__ = "0.1.0"

__all__ = [
    "CONTENT_OFFSETS",
    "DEFAULT_USER_AGENT",
    "ArchiveOptions",
    "ArchiveSummary",
    "ArchiverError",
    "AssignmentOffset",
    "DownloadError",
    "LineOffset",
    "MissingDataError",
    "RecordParseError",
    "build_session",
    "derive_target_path",
    "download_record_media",
    "find_tweet_files",
    "list_video_statuses",
    "load_records",
    "parse_last_modified",
    "parse_records",
    "process_archive",
    "select_records",
    "status_url",
    "wants_record",
    "__version__",
]
