"""Import videos from a JSON file holding one object or an array of objects."""
import argparse
import json
import sys

from ..config import ConfigurationError
from ..ingest import read_json_rows, upsert_records
from ..storage import StoreError
from .common import bootstrap, console, open_repository, print_summary

EPILOG = """\
example:
[
  {"platform": "TikTok", "user": "@abc", "tiktokEmbed": "<blockquote ...>", "likes": "12K"},
  {"platform": "Instagram", "user": "brand", "instagramEmbed": "<blockquote ...>", "likes": 3456}
]
"""


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="blueprint-import-json",
        description=__doc__,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("path", help="path to the JSON file")
    args = parser.parse_args(argv)

    settings = bootstrap()
    try:
        repository = open_repository(settings)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    try:
        rows = read_json_rows(args.path)
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]Cannot read {args.path}: {exc}[/red]")
        return 1

    try:
        summary = upsert_records(repository, rows)
    except StoreError as exc:
        console.print(f"[red]Import failed: {exc}[/red]")
        return 1
    print_summary("JSON import summary", summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
