"""Add a single video with default taxonomy values."""
import argparse
import sys

from ..config import ConfigurationError
from ..ingest import RowValidationError, normalize_record
from ..storage import StoreError
from .common import bootstrap, console, open_repository


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="blueprint-add-video", description=__doc__)
    parser.add_argument("platform", help="Youtube, TikTok or Instagram")
    parser.add_argument("title")
    parser.add_argument("user")
    parser.add_argument("url")
    parser.add_argument("views", nargs="?", default="0")
    parser.add_argument("rating", nargs="?", default="7")
    parser.add_argument("--embed", default="", help="embed markup for TikTok or Instagram")
    args = parser.parse_args(argv)

    settings = bootstrap()
    try:
        repository = open_repository(settings)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1

    row = {
        "platform": args.platform,
        "title": args.title,
        "user": args.user,
        "url": args.url,
        "views": args.views,
        "rating": args.rating,
        "instaEmbed": args.embed,
        "tiktokEmbed": args.embed,
    }
    try:
        record = normalize_record(row)
    except RowValidationError as exc:
        console.print(f"[red]Cannot add video: {exc}[/red]")
        return 1
    # only the platform's own embed field is kept
    if record["platform"] != "Instagram":
        record["insta_embed"] = ""
    if record["platform"] != "TikTok":
        record["tiktok_embed"] = ""
    try:
        video = repository.insert(record)
    except StoreError as exc:
        console.print(f"[red]Cannot add video: {exc}[/red]")
        return 1
    console.print(f"Added {video.title} by {video.handle} ({video.platform}) as {video.id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
