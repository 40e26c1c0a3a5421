import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from nowplaying.domain.entities import TopTracksSnapshot

logger = logging.getLogger(__name__)

T = TypeVar('T')


class SetOnce(Generic[T]):
    """Single slot that moves from empty to filled exactly once.

    ``set_if_unset`` is an atomic compare-and-swap from empty: the first
    writer wins and later writers get the stored value back.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._filled = False

    def is_set(self) -> bool:
        return self._filled

    def get(self) -> Optional[T]:
        return self._value

    def set_if_unset(self, value: T) -> T:
        with self._lock:
            if not self._filled:
                self._value = value
                self._filled = True
            return self._value


class TopTracksCache:
    """Fill-once, process-wide cache for the top-tracks snapshot.

    There is no TTL: the snapshot lives until the process restarts. A failed
    fill stores nothing, so the next call runs ``fetch`` again from scratch.
    """

    def __init__(self, fetch: Callable[[], TopTracksSnapshot]) -> None:
        self._fetch = fetch
        self._slot: SetOnce[TopTracksSnapshot] = SetOnce()

    @property
    def filled(self) -> bool:
        return self._slot.is_set()

    def get_or_fill(self) -> TopTracksSnapshot:
        if self._slot.is_set():
            return self._slot.get()

        logger.info("Top tracks cache empty, fetching all windows")
        snapshot = self._fetch()
        stored = self._slot.set_if_unset(snapshot)
        if stored is not snapshot:
            logger.debug("Top tracks cache already filled by a concurrent request, discarding result")
        return stored
