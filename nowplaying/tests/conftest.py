import logging
import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()


@pytest.fixture(autouse=True)
def _clear_spotify_env():
    """Ensure Spotify credentials do not leak across tests.
    A developer's .env may set these variables; clear before each test
    and restore afterwards so tests explicitly setting them remain deterministic.
    """
    keys = [
        'SPOTIFY_CLIENT_ID', 'SPOTIFY_CLIENT_SECRET', 'SPOTIFY_REFRESH_TOKEN',
        'SPOTIPY_CLIENT_ID', 'SPOTIPY_CLIENT_SECRET', 'REFRESH_TOKEN',
        'SPOTIFY_REDIRECT_URI', 'NOWPLAYING_HOST', 'NOWPLAYING_PORT',
        'NOWPLAYING_REQUESTS_TIMEOUT', 'LOG_LEVEL', 'LOG_FILE',
    ]
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


@pytest.fixture(autouse=True)
def _reset_nowplaying_logger():
    """Drop handlers a test attached, they may point at a closed capture stream."""
    yield
    logger = logging.getLogger('nowplaying')
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
