"""Environment-driven configuration for the sync pipeline."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from processor.errors import ConfigurationUnresolved

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = "data/gaza_timemap.xlsx"
DEFAULT_SHEET_NAME = "EXPORT_EVENTS"
DEFAULT_INTERVAL_SECONDS = 6 * 60 * 60


@dataclass
class SyncConfig:
    """Resolved pipeline settings."""
    store_path: str = DEFAULT_STORE_PATH
    sheet_name: str = DEFAULT_SHEET_NAME
    interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    timeout_seconds: int = 30
    daily_window: int = 45
    reliefweb_appname: str = "gaza-timemap-sync"
    reliefweb_limit: int = 25
    acled_username: Optional[str] = None
    acled_password: Optional[str] = None
    acled_country: str = "Palestine"
    acled_limit: int = 500
    index_reload_url: Optional[str] = None
    log_level: str = "INFO"


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


def _positive_interval(value: int) -> int:
    if value <= 0:
        logger.warning(f"SYNC_INTERVAL_SECONDS must be positive, got {value}, using {DEFAULT_INTERVAL_SECONDS}")
        return DEFAULT_INTERVAL_SECONDS
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """
    Read configuration from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        SyncConfig with defaults for anything unset
    """
    environ = os.environ if environ is None else environ

    return SyncConfig(
        store_path=environ.get('STORE_PATH') or DEFAULT_STORE_PATH,
        sheet_name=environ.get('SHEET_NAME') or DEFAULT_SHEET_NAME,
        interval_seconds=_positive_interval(
            _env_int(environ, 'SYNC_INTERVAL_SECONDS', DEFAULT_INTERVAL_SECONDS)
        ),
        timeout_seconds=_env_int(environ, 'TIMEOUT_SECONDS', 30),
        daily_window=_env_int(environ, 'DAILY_WINDOW', 45),
        reliefweb_appname=environ.get('RELIEFWEB_APPNAME') or "gaza-timemap-sync",
        reliefweb_limit=_env_int(environ, 'RELIEFWEB_LIMIT', 25),
        acled_username=environ.get('ACLED_USERNAME') or None,
        acled_password=environ.get('ACLED_PASSWORD') or None,
        acled_country=environ.get('ACLED_COUNTRY') or "Palestine",
        acled_limit=_env_int(environ, 'ACLED_LIMIT', 500),
        index_reload_url=environ.get('INDEX_RELOAD_URL') or None,
        log_level=environ.get('LOG_LEVEL') or "INFO",
    )


def resolve_store_path(config: SyncConfig, base_dir: Optional[Path] = None) -> Path:
    """
    Resolve the configured store location to an absolute path.

    Args:
        config: Pipeline configuration
        base_dir: Directory relative paths are resolved against (default: cwd)

    Returns:
        Absolute path of an existing store file

    Raises:
        ConfigurationUnresolved: If the path is blank or does not point to a file
    """
    raw = (config.store_path or DEFAULT_STORE_PATH).strip()
    if not raw:
        raise ConfigurationUnresolved("Store path is empty")

    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_dir or Path.cwd()) / path

    path = path.resolve()
    if not path.is_file():
        raise ConfigurationUnresolved(f"Store file does not exist: {path}")

    return path
