import time
import logging
from typing import Any, Callable, Dict, List, Optional

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError
from urllib3.exceptions import ReadTimeoutError

from nowplaying.crosscutting.config import Settings, get_spotify_scope_string
from nowplaying.domain.entities import Credentials, TimeWindow
from nowplaying.domain.errors import ConfigError, RateLimited, UpstreamError
from nowplaying.domain.ports import ListeningProvider

logger = logging.getLogger(__name__)


def _retry_after_seconds(headers: Optional[Dict[str, str]]) -> int:
    """Seconds from a Retry-After header, 1 when absent or not an integer."""
    try:
        return max(int((headers or {}).get('Retry-After', 1)), 0)
    except (TypeError, ValueError):
        return 1


class SpotifyProvider(ListeningProvider):
    """Read-only Spotify provider for the current user's listening data.

    The access token lives in spotipy's in-memory token cache; the auth
    manager refreshes it before expiry, so callers never see token handling.
    """

    def __init__(self,
                 credentials: Credentials,
                 redirect_uri: str,
                 requests_timeout: int = 15,
                 scope: Optional[str] = None):
        """Initialize Spotify provider.

        Args:
            credentials: Client id/secret and the long-lived refresh token
            redirect_uri: Registered redirect URI (required by SpotifyOAuth, never visited)
            requests_timeout: Per-request timeout in seconds
            scope: Space-separated scopes, defaults to the service's required scopes
        """
        self.credentials = credentials
        self._oauth = SpotifyOAuth(
            client_id=credentials.client_id,
            client_secret=credentials.client_secret,
            redirect_uri=redirect_uri,
            scope=scope or get_spotify_scope_string(),
            cache_handler=MemoryCacheHandler(),
            open_browser=False
        )
        # A plain session has no urllib3 retry policy, so every failure
        # surfaces once with its real status.
        self._client = spotipy.Spotify(
            auth_manager=self._oauth,
            requests_session=requests.Session(),
            requests_timeout=requests_timeout,
            retries=0,
            status_retries=0
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> 'SpotifyProvider':
        return cls(
            settings.credentials,
            redirect_uri=settings.redirect_uri,
            requests_timeout=settings.requests_timeout
        )

    def authenticate(self) -> Dict[str, Any]:
        """Exchange the refresh token for a fresh access token.

        Called once before serving traffic. Not retried.

        Raises:
            ConfigError: when the exchange is rejected or cannot be performed
        """
        logger.info("Exchanging refresh token for an access token")
        try:
            token_info = self._oauth.refresh_access_token(self.credentials.refresh_token)
        except SpotifyOauthError as e:
            raise ConfigError(f"Spotify rejected the refresh token: {e}")
        except requests.exceptions.RequestException as e:
            raise ConfigError(f"Could not reach Spotify to refresh the token: {e}")

        if not token_info or 'access_token' not in token_info:
            raise ConfigError("Spotify token refresh returned no access token")

        logger.info(f"Spotify access token acquired, expires in {token_info.get('expires_in', 'unknown')}s")
        return token_info

    def _call(self, operation: str, fn: Callable, *args, **kwargs):
        """Run one Spotify API call, translating failures into UpstreamError."""
        try:
            return fn(*args, **kwargs)
        except SpotifyException as e:
            if e.http_status == 429:
                retry_after = _retry_after_seconds(getattr(e, 'headers', None))
                logger.warning(f"Spotify rate limited {operation}, retry after {retry_after}s")
                raise RateLimited(retry_after_s=retry_after, message=f"{operation}: {e.msg}")
            logger.warning(f"Spotify {operation} failed with HTTP {e.http_status}: {e.msg}")
            raise UpstreamError(f"{operation}: {e.msg}", status=e.http_status)
        except SpotifyOauthError as e:
            logger.warning(f"Spotify token refresh failed during {operation}: {e}")
            raise UpstreamError(f"{operation}: token refresh failed: {e}", status=401)
        except (requests.exceptions.Timeout, ReadTimeoutError) as e:
            logger.warning(f"Spotify {operation} timed out: {e}")
            raise UpstreamError(f"{operation}: timed out", timeout=True)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Spotify {operation} transport failure: {e}")
            raise UpstreamError(f"{operation}: {e}")

    def top_tracks(self, window: TimeWindow, limit: int) -> List[Dict[str, Any]]:
        """Top tracks of the current user for one window, at most ``limit``."""
        result = self._call(
            f"top tracks ({window.value})",
            self._client.current_user_top_tracks,
            limit=limit,
            offset=0,
            time_range=window.value
        )
        items = (result or {}).get('items') or []
        return items[:limit]

    def current_playback(self) -> Optional[Dict[str, Any]]:
        """Current playback restricted to tracks. None when nothing is active."""
        playback = self._call("current playback", self._client.current_playback)
        return playback or None

    def recently_played(self, limit: int, before: Optional[int] = None) -> List[Dict[str, Any]]:
        """Recently played tracks before ``before`` (unix milliseconds, default now)."""
        if before is None:
            before = int(time.time() * 1000)
        result = self._call(
            "recently played",
            self._client.current_user_recently_played,
            limit=limit,
            before=before
        )
        items = (result or {}).get('items') or []
        return items[:limit]

    def track_details(self, track_id: str) -> Dict[str, Any]:
        """Full track object for ``track_id``."""
        return self._call(f"track {track_id}", self._client.track, track_id)
