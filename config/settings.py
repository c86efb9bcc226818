# config/settings.py
"""
Central configuration loader for the DayZ log watcher

Loads all settings from environment variables (or a .env file) with sensible
defaults. Nothing is read at import time; call load_settings() once at startup.
"""

from dataclasses import dataclass, field
from typing import Optional

from decouple import Config, Csv, UndefinedValueError, config as env_config
import logging

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Missing or invalid configuration value(s)."""
    pass


# ===========================================
# DEFAULTS
# ===========================================

REQUIRED_SETTINGS = ('DISCORD_TOKEN', 'DISCORD_CHANNEL_ID', 'FTP_HOST', 'FTP_USER', 'FTP_PASS')

DEFAULT_FILE_PATTERNS = 'adminLog.xml,latest.log,*.rpt,server.log,script_*.log,*.ADM'

STATE_BACKENDS = ('json', 'mysql')
TRANSPORT_PROTOCOLS = ('auto', 'ftp', 'sftp')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


@dataclass
class WatcherSettings:
    """Resolved configuration for one watcher process."""
    # Discord
    discord_token: str
    channel_id: int

    # Remote log host
    ftp_host: str
    ftp_user: str
    ftp_password: str
    ftp_port: int = 21
    ftp_path: str = '/'
    ftp_protocol: str = 'auto'
    ftp_timeout: float = 20.0

    # Polling
    poll_interval: int = 60
    file_patterns: list[str] = field(default_factory=lambda: DEFAULT_FILE_PATTERNS.split(','))
    whitelist_files: list[str] = field(default_factory=list)

    # Behaviour flags
    dry_run: bool = False
    debug: bool = False
    include_ip: bool = False
    backfill_on_boot: bool = False
    server_name: str = 'DayZ Server'

    # Persistence
    state_backend: str = 'json'
    state_file: str = 'data/state.json'
    database: dict = field(default_factory=dict)

    log_level: str = 'INFO'


def load_settings(source: Optional[Config] = None) -> WatcherSettings:
    """
    Read the watcher configuration.

    Args:
        source: decouple Config to read from (defaults to the environment / .env)

    Raises:
        ConfigurationError: listing every missing required value, or the
            first value that fails to parse
    """
    source = source or env_config

    missing = []
    for key in REQUIRED_SETTINGS:
        try:
            if not str(source(key)).strip():
                missing.append(key)
        except UndefinedValueError:
            missing.append(key)

    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    try:
        settings = WatcherSettings(
            discord_token=source('DISCORD_TOKEN'),
            channel_id=source('DISCORD_CHANNEL_ID', cast=int),
            ftp_host=source('FTP_HOST'),
            ftp_user=source('FTP_USER'),
            ftp_password=source('FTP_PASS'),
            ftp_port=source('FTP_PORT', default=21, cast=int),
            ftp_path=source('FTP_PATH', default='/') or '/',
            ftp_protocol=source('FTP_PROTOCOL', default='auto').strip().lower(),
            ftp_timeout=source('FTP_TIMEOUT', default=20, cast=float),
            poll_interval=source('POLL_INTERVAL_SECONDS', default=60, cast=int),
            file_patterns=source('FILE_PATTERNS', default=DEFAULT_FILE_PATTERNS, cast=Csv()),
            whitelist_files=source('WHITELIST_FILES', default='', cast=Csv()),
            dry_run=source('DRY_RUN', default=False, cast=bool),
            debug=source('DEBUG', default=False, cast=bool),
            include_ip=source('INCLUDE_IP', default=False, cast=bool),
            backfill_on_boot=source('BACKFILL_ON_BOOT', default=False, cast=bool),
            server_name=source('SERVER_NAME', default='DayZ Server'),
            state_backend=source('STATE_BACKEND', default='json').strip().lower(),
            state_file=source('STATE_FILE', default='data/state.json'),
            database={
                'host': source('DB_HOST', default='localhost'),
                'port': source('DB_PORT', default=3306, cast=int),
                'user': source('DB_USER', default='dayzwatcher'),
                'password': source('DB_PASSWORD', default=''),
                'database': source('DB_NAME', default='dayzwatcher'),
            },
            log_level=source('LOG_LEVEL', default='INFO').strip().upper(),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e

    if settings.ftp_protocol not in TRANSPORT_PROTOCOLS:
        raise ConfigurationError(
            f"FTP_PROTOCOL must be one of {', '.join(TRANSPORT_PROTOCOLS)}, got '{settings.ftp_protocol}'"
        )
    if settings.state_backend not in STATE_BACKENDS:
        raise ConfigurationError(
            f"STATE_BACKEND must be one of {', '.join(STATE_BACKENDS)}, got '{settings.state_backend}'"
        )
    if settings.poll_interval <= 0:
        raise ConfigurationError("POLL_INTERVAL_SECONDS must be positive")

    return settings


# ===========================================
# LOGGING CONFIGURATION
# ===========================================

def configure_logging(settings: WatcherSettings):
    """Apply the process-wide logging setup. DEBUG=true wins over LOG_LEVEL."""
    level_name = 'DEBUG' if settings.debug else settings.log_level
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )
