from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class TimeWindow(str, Enum):
    """Listening-history windows over which the provider aggregates top tracks."""

    SHORT = "short_term"
    MEDIUM = "medium_term"
    LONG = "long_term"


@dataclass(frozen=True)
class Credentials:
    """Client credentials plus the long-lived refresh token."""

    client_id: str
    client_secret: str = field(repr=False)
    refresh_token: str = field(repr=False)


@dataclass(frozen=True)
class SimpleArtist:
    name: str
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'url': self.url}


@dataclass(frozen=True)
class SimpleTrack:
    """Provider-independent view of a track. Duration is in whole seconds."""

    name: str
    artists: Tuple[SimpleArtist, ...] = ()
    image_url: Optional[str] = None
    url: Optional[str] = None
    duration: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'artists': [artist.to_dict() for artist in self.artists],
            'imageUrl': self.image_url,
            'url': self.url,
            'duration': self.duration,
        }


@dataclass(frozen=True)
class TopTracksSnapshot:
    """Top tracks for the three windows, built once per process."""

    short_term: Tuple[SimpleTrack, ...]
    medium_term: Tuple[SimpleTrack, ...]
    long_term: Tuple[SimpleTrack, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'shortTermTop': [track.to_dict() for track in self.short_term],
            'midTermTop': [track.to_dict() for track in self.medium_term],
            'longTermTop': [track.to_dict() for track in self.long_term],
        }


@dataclass(frozen=True)
class PlayingState:
    """What is currently playing. Device and context are passed through as the provider sent them."""

    device: Optional[Dict[str, Any]]
    context: Optional[Dict[str, Any]]
    repeat: Optional[str]
    shuffled: bool
    playing: SimpleTrack
    progress_secs: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'device': self.device,
            'context': self.context,
            'repeat': self.repeat,
            'shuffled': self.shuffled,
            'playing': self.playing.to_dict(),
            'progressSecs': self.progress_secs,
        }


@dataclass(frozen=True)
class RecentPlayEntry:
    track: SimpleTrack
    context: Optional[Dict[str, Any]]
    played_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'track': self.track.to_dict(),
            'context': self.context,
            'playedAt': self.played_at,
        }
