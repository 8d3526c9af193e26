"""Import videos from a CSV sheet, adding new rows and updating known ones."""
import argparse
import sys

from ..config import ConfigurationError
from ..ingest import read_csv_rows, upsert_records
from ..storage import StoreError
from .common import bootstrap, console, open_repository, print_summary

EPILOG = """\
columns: platform, title, user, views, likes, category, focus, mood,
sponsoredContent, rating, url, instaEmbed, tiktokEmbed
(views/likes accept 12K or 3.4M; Youtube rows need url, Instagram rows need
instaEmbed, TikTok rows need tiktokEmbed)
"""


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="blueprint-import-csv",
        description=__doc__,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("path", help="path to the CSV file")
    args = parser.parse_args(argv)

    settings = bootstrap()
    try:
        repository = open_repository(settings)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    try:
        rows = read_csv_rows(args.path)
    except OSError as exc:
        console.print(f"[red]Cannot read {args.path}: {exc}[/red]")
        return 1

    console.print(f"Found {len(rows)} rows in {args.path}")
    try:
        summary = upsert_records(repository, rows)
    except StoreError as exc:
        console.print(f"[red]Import failed: {exc}[/red]")
        return 1
    print_summary("CSV import summary", summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
