import asyncio

import httpx
import pytest

from gitcard.render.fonts import FontFace
from gitcard.render.fonts import FontProvider
from gitcard.render.fonts import FontProvisioningError
from gitcard.render.fonts import FontSet
from gitcard.render.fonts import FontSource

INTER_400 = FontSource("Inter", 400, "https://fonts.example.com/inter-400.ttf")
NOTO_400 = FontSource("Noto Sans", 400, "https://fonts.example.com/noto-400.ttf")


def test_font_set_requires_the_base_font(font_bytes: bytes) -> None:
    with pytest.raises(FontProvisioningError):
        FontSet([FontFace("Noto Sans", 400, font_bytes)])


def test_pick_prefers_the_closest_weight(fonts: FontSet) -> None:
    assert fonts.pick("Inter", 500).weight == 400
    assert fonts.pick("Inter", 700).weight == 600
    assert fonts.pick("Inter", 300).weight == 400


def test_missing_glyphs_are_skipped(fonts: FontSet) -> None:
    assert fonts.measure("中", 10) == 0
    assert fonts.measure("a中b", 10) == 10


def test_glyph_outline_is_cached(fonts: FontSet) -> None:
    face = fonts.primary
    name = face.glyph_name("A")

    path = face.glyph_path(name)

    assert path.startswith("M")
    assert face.glyph_path(name) is path


def mock_factory(handler):
    return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_concurrent_callers_share_one_load(font_bytes: bytes) -> None:
    requests: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        return httpx.Response(200, content=font_bytes)

    provider = FontProvider(sources=[INTER_400], client_factory=mock_factory(handler))

    async def load_many() -> list[FontSet]:
        return await asyncio.gather(*(provider.get_fonts() for _ in range(5)))

    results = asyncio.run(load_many())

    assert requests == [INTER_400.url]
    assert all(result is results[0] for result in results)
    assert asyncio.run(provider.get_fonts()) is results[0]
    assert requests == [INTER_400.url]


def test_optional_font_failure_is_tolerated(font_bytes: bytes) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url == httpx.URL(NOTO_400.url):
            return httpx.Response(404)
        return httpx.Response(200, content=font_bytes)

    provider = FontProvider(sources=[INTER_400, NOTO_400], client_factory=mock_factory(handler))

    fonts = asyncio.run(provider.get_fonts())

    assert fonts.families == ["Inter"]


def test_failed_load_is_not_cached(font_bytes: bytes) -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, content=font_bytes)

    provider = FontProvider(sources=[INTER_400], client_factory=mock_factory(handler))

    with pytest.raises(FontProvisioningError):
        asyncio.run(provider.get_fonts())

    fonts = asyncio.run(provider.get_fonts())

    assert fonts.primary.family == "Inter"
    assert len(attempts) == 2
