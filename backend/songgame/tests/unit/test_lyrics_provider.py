import httpx
import pytest

from songgame.lyrics.provider import LyricsNetworkError, LyricsOvhProvider

BASE_URL = "https://lyrics.test/v1"


def _provider(handler) -> LyricsOvhProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LyricsOvhProvider(BASE_URL, client=client)


class TestLyricsOvhProvider:
    async def test_returns_lyrics(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path.decode())
            return httpx.Response(200, json={"lyrics": "la la love"})

        lyrics = await _provider(handler).fetch("AC/DC", "Back In Black")

        assert lyrics == "la la love"
        assert seen == ["/v1/AC%2FDC/Back%20In%20Black"]

    async def test_not_found(self):
        provider = _provider(lambda request: httpx.Response(404, json={"error": "No lyrics found"}))
        assert await provider.fetch("Nobody", "Nothing") is None

    async def test_server_error_is_not_found(self):
        provider = _provider(lambda request: httpx.Response(502))
        assert await provider.fetch("Adele", "Hello") is None

    async def test_non_json_body(self):
        provider = _provider(lambda request: httpx.Response(200, text="<html>"))
        assert await provider.fetch("Adele", "Hello") is None

    @pytest.mark.parametrize("payload", [{"lyrics": ""}, {"lyrics": "   "}, {"other": "x"}, ["lyrics"]])
    async def test_empty_lyrics(self, payload):
        provider = _provider(lambda request: httpx.Response(200, json=payload))
        assert await provider.fetch("Adele", "Hello") is None

    async def test_transport_failure_raises_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LyricsNetworkError):
            await _provider(handler).fetch("Adele", "Hello")

    async def test_borrowed_client_is_left_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        provider = LyricsOvhProvider(BASE_URL, client=client)

        await provider.aclose()

        assert not client.is_closed
        await client.aclose()
