"""Time-bounded, size-bounded cache of fetched lyrics."""

from __future__ import annotations

import time
from collections import OrderedDict

DEFAULT_CACHE_TTL_SECONDS = 600
DEFAULT_CACHE_MAX_ENTRIES = 200


def cache_key(artist: str, song: str) -> str:
    return f"{artist.strip().lower()}|{song.strip().lower()}"


class LyricsCache:
    """Lyrics keyed by normalized (artist, song).

    Entries expire `ttl_seconds` after insertion. When full, the oldest
    insertion is evicted first; reads do not refresh an entry's age.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()  # key -> (stored_at, lyrics)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, artist: str, song: str) -> str | None:
        key = cache_key(artist, song)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, lyrics = entry
        if time.monotonic() - stored_at > self._ttl_seconds:
            del self._entries[key]
            return None
        return lyrics

    def put(self, artist: str, song: str, lyrics: str) -> None:
        key = cache_key(artist, song)
        self._entries.pop(key, None)
        while len(self._entries) >= self._max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (time.monotonic(), lyrics)

    def clear(self) -> None:
        self._entries.clear()
