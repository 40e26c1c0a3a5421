"""Pure mapping from provider-shaped records to the service's response shapes.

Nothing here performs I/O. Missing fields become absent optional values and
never raise; the only error is an ``InvariantViolation`` for non-track items
in a playback snapshot.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from dateutil.parser import isoparse

from .entities import PlayingState, RecentPlayEntry, SimpleArtist, SimpleTrack
from .errors import InvariantViolation


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def whole_seconds(millis: Optional[int]) -> int:
    """Truncate a millisecond count to whole seconds, never below zero."""
    if not millis or millis < 0:
        return 0
    return int(millis) // 1000


def _spotify_url(obj: Dict[str, Any]) -> Optional[str]:
    external_urls = obj.get('external_urls') or {}
    return external_urls.get('spotify')


def shape_artist(artist: Dict[str, Any]) -> SimpleArtist:
    return SimpleArtist(name=artist.get('name', ''), url=_spotify_url(artist))


def shape_track(track: Dict[str, Any]) -> SimpleTrack:
    album = track.get('album') or {}
    images = album.get('images') or []
    image_url = images[0].get('url') if images else None

    return SimpleTrack(
        name=track.get('name', ''),
        artists=tuple(shape_artist(a) for a in track.get('artists') or []),
        image_url=image_url,
        url=_spotify_url(track),
        duration=whole_seconds(track.get('duration_ms')),
    )


def playback_is_active(playback: Optional[Dict[str, Any]]) -> bool:
    return bool(playback and playback.get('is_playing') and playback.get('item'))


def ensure_track_item(playback: Dict[str, Any]) -> Dict[str, Any]:
    """Return the playback item, raising if it is anything but a track."""
    item = playback['item']
    item_type = item.get('type') or playback.get('currently_playing_type') or 'track'
    if item_type != 'track':
        raise InvariantViolation(f"Currently playing item is a {item_type}, only tracks are requested")
    return item


def needs_hydration(item: Dict[str, Any]) -> bool:
    """True when a playing item lacks full track data but can be looked up by id."""
    if not item.get('id'):
        return False
    return any(key not in item for key in ('album', 'artists', 'duration_ms'))


def shape_playback(playback: Optional[Dict[str, Any]],
                   item: Optional[Dict[str, Any]] = None) -> Optional[PlayingState]:
    """Build a PlayingState, or None when nothing is playing.

    ``item`` overrides the snapshot's own item, for callers that fetched full
    track details separately.
    """
    if not playback_is_active(playback):
        return None

    track = item if item is not None else ensure_track_item(playback)

    return PlayingState(
        device=playback.get('device'),
        context=playback.get('context'),
        repeat=playback.get('repeat_state'),
        shuffled=bool(playback.get('shuffle_state')),
        playing=shape_track(track),
        progress_secs=whole_seconds(playback.get('progress_ms')),
    )


def shape_recent(entry: Dict[str, Any]) -> RecentPlayEntry:
    return RecentPlayEntry(
        track=shape_track(entry.get('track') or {}),
        context=entry.get('context'),
        played_at=entry.get('played_at', ''),
    )


def parse_played_at(value: Optional[str]) -> datetime:
    # Entries without a usable timestamp sort last.
    if not value:
        return _EPOCH
    try:
        parsed = isoparse(value)
    except (ValueError, OverflowError):
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_recent(entries: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Order play-history entries most-recent-first."""
    return sorted(entries, key=lambda e: parse_played_at(e.get('played_at')), reverse=True)
