import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from nowplaying.application.cache import TopTracksCache
from nowplaying.domain.entities import PlayingState, RecentPlayEntry, TimeWindow, TopTracksSnapshot
from nowplaying.domain.ports import ListeningProvider
from nowplaying.domain.shaping import (
    ensure_track_item, needs_hydration, playback_is_active, shape_playback,
    shape_recent, shape_track, sort_recent
)

logger = logging.getLogger(__name__)

TOP_TRACKS_LIMIT = 10
RECENT_LIMIT = 10


class ListeningService:
    """Use cases behind the HTTP endpoints: top tracks, now playing, recent plays."""

    def __init__(self, provider: ListeningProvider,
                 top_limit: int = TOP_TRACKS_LIMIT,
                 recent_limit: int = RECENT_LIMIT):
        self.provider = provider
        self.top_limit = top_limit
        self.recent_limit = recent_limit
        self.top_cache = TopTracksCache(self._fetch_top_tracks)

    def _fetch_window(self, window: TimeWindow):
        tracks = self.provider.top_tracks(window, self.top_limit)
        return tuple(shape_track(t) for t in tracks[:self.top_limit])

    def _fetch_top_tracks(self) -> TopTracksSnapshot:
        """Fetch the three windows concurrently and wait for all of them.

        If any fetch fails, the first failure in window order is raised once
        every fetch has finished.
        """
        windows = (TimeWindow.SHORT, TimeWindow.MEDIUM, TimeWindow.LONG)
        with ThreadPoolExecutor(max_workers=len(windows), thread_name_prefix='top-tracks') as executor:
            futures = [executor.submit(self._fetch_window, window) for window in windows]

        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            logger.warning(f"Top tracks fill failed for {len(errors)} of {len(windows)} windows")
            raise errors[0]

        short, medium, long_ = (f.result() for f in futures)
        return TopTracksSnapshot(short_term=short, medium_term=medium, long_term=long_)

    def top_tracks(self) -> TopTracksSnapshot:
        return self.top_cache.get_or_fill()

    def now_playing(self) -> Optional[PlayingState]:
        playback = self.provider.current_playback()
        if not playback_is_active(playback):
            return None

        item = ensure_track_item(playback)
        if needs_hydration(item):
            logger.debug(f"Hydrating playing item {item['id']}")
            item = self.provider.track_details(item['id'])

        return shape_playback(playback, item=item)

    def recent(self) -> List[RecentPlayEntry]:
        entries = self.provider.recently_played(self.recent_limit)
        return [shape_recent(e) for e in sort_recent(entries)[:self.recent_limit]]
