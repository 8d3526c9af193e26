from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ..config import Settings, get_settings, require_database_path, setup_logging
from ..ingest import ImportSummary
from ..storage import DocumentStore, VideoRepository

console = Console()


def bootstrap() -> Settings:
    load_dotenv()
    settings = get_settings()
    setup_logging(settings.log_level)
    return settings


def open_repository(settings: Optional[Settings] = None) -> VideoRepository:
    """Raises ConfigurationError when no database path is configured."""
    settings = settings or get_settings()
    return VideoRepository(DocumentStore(require_database_path(settings)))


def print_summary(title: str, summary: ImportSummary) -> None:
    table = Table(title=title)
    table.add_column("Outcome")
    table.add_column("Count", justify="right")
    table.add_row("Added", str(summary.added))
    table.add_row("Updated", str(summary.updated))
    table.add_row("Skipped", str(summary.skipped))
    if summary.duplicates:
        table.add_row("Duplicates in file", str(summary.duplicates))
    table.add_row("Total processed", str(summary.total))
    console.print(table)
    if summary.by_platform:
        breakdown = Table(title="By platform")
        breakdown.add_column("Platform")
        breakdown.add_column("Videos", justify="right")
        for platform, count in sorted(summary.by_platform.items()):
            breakdown.add_row(platform, str(count))
        console.print(breakdown)
