import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from nowplaying.domain.entities import Credentials
from nowplaying.domain.errors import ConfigError

DEFAULT_REDIRECT_URI = 'http://127.0.0.1:8888/callback'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

# First name is canonical, the rest are accepted fallbacks.
_ENV_NAMES = {
    'client_id': ('SPOTIFY_CLIENT_ID', 'SPOTIPY_CLIENT_ID'),
    'client_secret': ('SPOTIFY_CLIENT_SECRET', 'SPOTIPY_CLIENT_SECRET'),
    'refresh_token': ('SPOTIFY_REFRESH_TOKEN', 'REFRESH_TOKEN'),
}


def get_spotify_scopes() -> List[str]:
    """Get the Spotify scopes the service needs."""
    return [
        'user-read-currently-playing',
        'user-read-recently-played',
        'user-top-read',
        'user-read-playback-position',
        'user-read-playback-state',
    ]


def get_spotify_scope_string() -> str:
    """Get Spotify scopes as space-separated string."""
    return ' '.join(get_spotify_scopes())


def _mask(value: str) -> str:
    if len(value) > 8:
        return value[:4] + '*' * (len(value) - 8) + value[-4:]
    return '*' * len(value)


@dataclass(frozen=True)
class Settings:
    """Process configuration, loaded once at startup."""

    credentials: Credentials
    redirect_uri: str = DEFAULT_REDIRECT_URI
    host: str = '0.0.0.0'
    port: int = 3000
    requests_timeout: int = 15
    log_level: str = 'INFO'
    log_file: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        """Configuration summary with secrets masked."""
        return {
            'client_id': self.credentials.client_id,
            'client_secret': _mask(self.credentials.client_secret),
            'refresh_token': _mask(self.credentials.refresh_token),
            'redirect_uri': self.redirect_uri,
            'host': self.host,
            'port': self.port,
            'requests_timeout': self.requests_timeout,
            'log_level': self.log_level,
            'log_file': self.log_file,
            'spotify_scopes': get_spotify_scopes(),
        }


def _lookup(environ: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _log_level_setting(environ: Mapping[str, str]) -> str:
    raw = (environ.get('LOG_LEVEL') or 'INFO').strip().upper()
    if raw not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {raw!r}")
    return raw


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment.

    Raises:
        ConfigError: when any credential is missing, a numeric value is malformed
            or LOG_LEVEL is not a logging level name.
    """
    if environ is None:
        environ = os.environ

    values = {key: _lookup(environ, names) for key, names in _ENV_NAMES.items()}
    missing = [_ENV_NAMES[key][0] for key, value in values.items() if not value]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    return Settings(
        credentials=Credentials(**values),
        redirect_uri=environ.get('SPOTIFY_REDIRECT_URI') or DEFAULT_REDIRECT_URI,
        host=environ.get('NOWPLAYING_HOST') or '0.0.0.0',
        port=_int_setting(environ, 'NOWPLAYING_PORT', 3000),
        requests_timeout=_int_setting(environ, 'NOWPLAYING_REQUESTS_TIMEOUT', 15),
        log_level=_log_level_setting(environ),
        log_file=environ.get('LOG_FILE') or None,
    )
