from pydantic import BaseModel
from functools import lru_cache
import logging
import os

from rich.logging import RichHandler


class ConfigurationError(RuntimeError):
    pass


class Settings(BaseModel):
    database_path: str = os.getenv("BLUEPRINT_DATABASE_PATH", "")
    api_base_url: str = os.getenv("BLUEPRINT_API_BASE_URL", "")
    api_token: str = os.getenv("BLUEPRINT_API_TOKEN", "")
    log_level: str = os.getenv("BLUEPRINT_LOG_LEVEL", "INFO")
    page_size_default: int = 50
    page_size_max: int = 500
    request_timeout: float = 10.0
    session_idle_ttl: float = 1800.0
    max_sessions: int = 1000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Field defaults are bound at import; re-read so a late load_dotenv() is honoured.
    return Settings(
        database_path=os.getenv("BLUEPRINT_DATABASE_PATH", ""),
        api_base_url=os.getenv("BLUEPRINT_API_BASE_URL", ""),
        api_token=os.getenv("BLUEPRINT_API_TOKEN", ""),
        log_level=os.getenv("BLUEPRINT_LOG_LEVEL", "INFO"),
        session_idle_ttl=float(os.getenv("BLUEPRINT_SESSION_IDLE_TTL", "1800")),
    )


def require_database_path(settings: Settings) -> str:
    if not settings.database_path:
        raise ConfigurationError("Please define BLUEPRINT_DATABASE_PATH in your environment or .env file")
    return settings.database_path


def setup_logging(log_level: str = "INFO") -> None:
    """Install a Rich console handler on the root logger."""
    logging.root.handlers.clear()
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=[RichHandler(show_time=True, show_path=False, rich_tracebacks=True, markup=False)],
        format="%(message)s",
    )
    for name in ("httpx", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)
