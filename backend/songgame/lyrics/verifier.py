"""
Lyrics verification gate for round submissions.

A submission wins the round only if the target word (or a singular/plural
form of it) appears in the song's lyrics. Lookups fan out over a few
spellings of the artist name in parallel, each bounded by a short timeout,
and the first non-empty lyrics win. Every failure mode is folded into a
`VerifyResult.reason`; `verify` never raises for lookup problems, and an
unreachable lyrics service reads as lyrics not found.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from songgame.lyrics.fanout import first_success
from songgame.lyrics.matching import DEFAULT_MAX_ARTIST_VARIANTS, artist_variants, lyrics_contain_word
from songgame.lyrics.provider import LyricsNetworkError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from songgame.lyrics.cache import LyricsCache
    from songgame.lyrics.provider import LyricsProvider

logger = structlog.get_logger()

DEFAULT_LOOKUP_TIMEOUT_SECONDS = 1.5


class VerifyReason(StrEnum):
    MISSING_INPUT = "missing-input"
    LYRICS_NOT_FOUND = "lyrics-not-found"
    WORD_NOT_FOUND = "word-not-found"


class VerifyResult(BaseModel):
    matched: bool
    reason: VerifyReason | None = None


class LyricsVerifier:
    def __init__(
        self,
        provider: LyricsProvider,
        cache: LyricsCache | None = None,
        *,
        lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT_SECONDS,
        max_variants: int = DEFAULT_MAX_ARTIST_VARIANTS,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._lookup_timeout = lookup_timeout
        self._max_variants = max_variants

    async def verify(self, song: str, artist: str, word: str) -> VerifyResult:
        song = song.strip()
        artist = artist.strip()
        word = word.strip()
        if not song or not artist or not word:
            return VerifyResult(matched=False, reason=VerifyReason.MISSING_INPUT)

        lyrics = await self._find_lyrics(song, artist)
        if lyrics is None:
            return VerifyResult(matched=False, reason=VerifyReason.LYRICS_NOT_FOUND)

        if not lyrics_contain_word(lyrics, word):
            return VerifyResult(matched=False, reason=VerifyReason.WORD_NOT_FOUND)
        return VerifyResult(matched=True)

    async def aclose(self) -> None:
        await self._provider.aclose()

    async def _find_lyrics(self, song: str, artist: str) -> str | None:
        """Return the first lyrics found for any artist variant, or None.

        Lookup errors and timeouts count as a miss for that variant; a lookup
        where every variant failed is reported the same as one with no lyrics.
        """
        variants = artist_variants(artist, self._max_variants)

        if self._cache is not None:
            for variant in variants:
                cached = self._cache.get(variant, song)
                if cached is not None:
                    return cached

        result = await first_success(
            [self._attempt(variant, song) for variant in variants],
            timeout=self._lookup_timeout,
        )

        if result.value is None:
            for error in result.errors:
                if isinstance(error, LyricsNetworkError):
                    logger.warning("lyrics service unreachable", artist=artist, song=song, error=str(error))
                else:
                    logger.warning("lyrics lookup failed", artist=artist, song=song, error=repr(error))
            logger.info(
                "lyrics not found",
                artist=artist,
                song=song,
                variants=variants,
                timed_out=result.timed_out,
                errors=len(result.errors),
                all_failed=result.all_raised,
            )
            return None

        matched_variant, lyrics = result.value
        if self._cache is not None:
            self._cache.put(matched_variant, song, lyrics)
            if matched_variant != artist:
                self._cache.put(artist, song, lyrics)
        return lyrics

    def _attempt(self, artist: str, song: str) -> Callable[[], Awaitable[tuple[str, str] | None]]:
        async def run() -> tuple[str, str] | None:
            lyrics = await self._provider.fetch(artist, song)
            if lyrics is None or not lyrics.strip():
                return None
            return artist, lyrics

        return run
