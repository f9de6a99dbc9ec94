"""Lyrics sources. The game only needs "lyrics text, or not found"."""

from __future__ import annotations

from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx
import structlog

logger = structlog.get_logger()

DEFAULT_LYRICS_API_URL = "https://api.lyrics.ovh/v1"


class LyricsNetworkError(Exception):
    """The lyrics service could not be reached or the request failed in transit."""


class LyricsProvider(ABC):
    @abstractmethod
    async def fetch(self, artist: str, title: str) -> str | None:
        """
        Return the lyrics for (artist, title), or None if the service has none.

        Raises LyricsNetworkError on transport failures.
        """
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release any resources held by the provider."""


class LyricsOvhProvider(LyricsProvider):
    """Client for the lyrics.ovh API: GET {base}/{artist}/{title} -> {"lyrics": "..."}."""

    def __init__(
        self,
        base_url: str = DEFAULT_LYRICS_API_URL,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self, artist: str, title: str) -> str | None:
        url = f"{self._base_url}/{quote(artist, safe='')}/{quote(title, safe='')}"
        try:
            response = await self._client.get(url)
        except httpx.RequestError as e:
            raise LyricsNetworkError(f"Lyrics request failed: {e}") from e

        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.is_error:
            logger.warning("lyrics service error", status_code=response.status_code, artist=artist, title=title)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("lyrics response is not JSON", artist=artist, title=title)
            return None
        lyrics = data.get("lyrics") if isinstance(data, dict) else None
        if not isinstance(lyrics, str) or not lyrics.strip():
            return None
        return lyrics

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
