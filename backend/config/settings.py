"""
Runtime Settings

Reads the server's tunables from the environment (optionally seeded from a
.env file). Numeric values that fail to parse fall back to their defaults.
"""
import os
import logging
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent


def _env_int(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back to default."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}, using {default}")
        return default
    return value


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of server configuration."""

    host: str
    port: int
    file_lifetime_seconds: int
    max_file_size: str
    process_timeout_seconds: int
    frontend_url: str
    downloads_dir: Path
    ytdlp_binary: str
    log_dir: Path

    @property
    def download_url_prefix(self) -> str:
        return "/downloads"


def load_settings(env_file: str | None = None) -> Settings:
    """
    Build Settings from the process environment.

    Args:
        env_file: Optional path to a .env file. When omitted, python-dotenv
            searches upward from the backend package.

    Returns:
        Settings instance
    """
    load_dotenv(env_file)

    downloads_dir = Path(os.environ.get('DOWNLOADS_DIR') or BACKEND_DIR / 'downloads')
    log_dir = Path(os.environ.get('LOG_DIR') or BACKEND_DIR / 'logs')

    return Settings(
        host=os.environ.get('HOST', '0.0.0.0'),
        port=_env_int('PORT', 3000),
        file_lifetime_seconds=_env_int('FILE_LIFETIME_MIN', 15) * 60,
        max_file_size=os.environ.get('MAX_FILE_SIZE') or '2g',
        process_timeout_seconds=_env_int('PROCESS_TIMEOUT_SEC', 900),
        frontend_url=os.environ.get('FRONTEND_URL') or 'http://localhost:3000',
        downloads_dir=downloads_dir,
        ytdlp_binary=os.environ.get('YTDLP_BINARY') or 'yt-dlp',
        log_dir=log_dir,
    )
