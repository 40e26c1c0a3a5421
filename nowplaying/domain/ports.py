from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from .entities import TimeWindow


class ListeningProvider(Protocol):
    """Port defining the read-only contract of a music provider.

    Implementations return provider-shaped records (plain dicts) and raise
    ``UpstreamError`` subclasses on failure. Token refresh is their concern.
    """

    def top_tracks(self, window: TimeWindow, limit: int) -> List[Dict[str, Any]]:
        """Return at most ``limit`` top tracks for the window."""

    def current_playback(self) -> Optional[Dict[str, Any]]:
        """Return the current playback snapshot, or None when there is none."""

    def recently_played(self, limit: int, before: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return up to ``limit`` play-history entries before the unix-ms timestamp (default now)."""

    def track_details(self, track_id: str) -> Dict[str, Any]:
        """Return full metadata for one track."""
