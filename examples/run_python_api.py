from __future__ import annotations

import sys
from pathlib import Path

from grailbird_media import ArchiveOptions, build_session, process_archive


def main() -> None:
    """Demonstrate the Python API by listing video tweets, then fetching images."""
    archive_root = Path(sys.argv[1] if len(sys.argv) > 1 else "./twitter-archive")

    process_archive(ArchiveOptions(archive_root=archive_root, want_videos=True))

    options = ArchiveOptions(
        archive_root=archive_root,
        output_dir=Path("./example_images"),
        timeout=30.0,
    )
    session = build_session("grailbird-media-example/0.1", verify=True)
    summary = process_archive(options, session=session)
    print(f"downloaded={summary.downloaded} skipped={summary.skipped}")



if __name__ == "__main__":
    main()
