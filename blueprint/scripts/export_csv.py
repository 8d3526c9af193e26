"""Export every video, newest first, to a CSV file that the importers accept."""
import argparse
import sys
from collections import Counter

from ..config import ConfigurationError
from ..ingest import export_rows, write_csv
from ..storage import StoreError
from .common import bootstrap, console, open_repository

DEFAULT_OUTPUT = "exported-videos.csv"


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="blueprint-export-csv", description=__doc__)
    parser.add_argument("path", nargs="?", default=DEFAULT_OUTPUT, help=f"output file (default: {DEFAULT_OUTPUT})")
    args = parser.parse_args(argv)

    settings = bootstrap()
    try:
        repository = open_repository(settings)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1

    try:
        videos = repository.list_videos()
    except StoreError as exc:
        console.print(f"[red]Export failed: {exc}[/red]")
        return 1
    if not videos:
        console.print("No videos found in database")
        return 0
    write_csv(args.path, export_rows(videos))
    console.print(f"Exported {len(videos)} videos to {args.path}")
    for platform, count in sorted(Counter(v.platform for v in videos).items()):
        console.print(f"  {platform}: {count} videos")
    return 0


if __name__ == "__main__":
    sys.exit(main())
