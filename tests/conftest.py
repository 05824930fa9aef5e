from datetime import date
from io import BytesIO
from typing import Any

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

from gitcard.charts import build_daily_series
from gitcard.models import CardStats
from gitcard.models import RenderContext
from gitcard.render.fonts import FontFace
from gitcard.render.fonts import FontSet

TEST_CHARS = [chr(code) for code in range(32, 127)] + ["…", "·"]
GLYPH_ADVANCE = 500


def build_test_font(family_name: str = "Inter") -> bytes:
    """Build a small TrueType font where every glyph is a 500-unit wide box."""

    glyph_order = [".notdef"] + [f"uni{ord(char):04X}" for char in TEST_CHARS]
    glyphs = {}
    metrics = {}
    for name in glyph_order:
        pen = TTGlyphPen(None)
        if name != "uni0020":
            pen.moveTo((50, 0))
            pen.lineTo((50, 700))
            pen.lineTo((450, 700))
            pen.lineTo((450, 0))
            pen.closePath()
            metrics[name] = (GLYPH_ADVANCE, 50)
        else:
            metrics[name] = (GLYPH_ADVANCE, 0)
        glyphs[name] = pen.glyph()

    builder = FontBuilder(1000, isTTF=True)
    builder.setupGlyphOrder(glyph_order)
    builder.setupCharacterMap({ord(char): f"uni{ord(char):04X}" for char in TEST_CHARS})
    builder.setupGlyf(glyphs)
    builder.setupHorizontalMetrics(metrics)
    builder.setupHorizontalHeader(ascent=800, descent=-200)
    builder.setupNameTable({"familyName": family_name, "styleName": "Regular"})
    builder.setupOS2(sTypoAscender=800, sTypoDescender=-200, usWinAscent=800, usWinDescent=200)
    builder.setupPost()

    buffer = BytesIO()
    builder.save(buffer)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def font_bytes() -> bytes:
    return build_test_font()


@pytest.fixture
def fonts(font_bytes: bytes) -> FontSet:
    return FontSet(
        [
            FontFace("Inter", 400, font_bytes),
            FontFace("Inter", 600, font_bytes),
        ]
    )


@pytest.fixture
def cairo_available() -> None:
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError):
        pytest.skip("cairo is not available")


def make_profile(**overrides: Any) -> dict[str, Any]:
    profile = {
        "login": "octocat",
        "name": "The Octocat",
        "bio": "Loves code",
        "company": "@github",
        "location": "San Francisco",
        "twitter_username": None,
        "followers": 1234,
        "avatar_url": "https://avatars.example.com/u/583231",
    }
    profile.update(overrides)
    return profile


def make_repo(name: str, stars: int, language: str | None = "Python", fork: bool = False) -> dict[str, Any]:
    return {
        "name": name,
        "stargazers_count": stars,
        "forks_count": 1,
        "language": language,
        "fork": fork,
    }


def make_context(**overrides: Any) -> RenderContext:
    series = build_daily_series(date(2025, 1, 1), date(2025, 12, 31))
    values: dict[str, Any] = {
        "profile": make_profile(),
        "repos": [make_repo("hello-world", 1500), make_repo("spoon-knife", 12, "JavaScript")],
        "stats": CardStats(
            total_stars=1512,
            total_forks=2,
            lang_counts={"Python": 1, "JavaScript": 1},
            commits_last_year=321,
            prs_last_year=12,
            issues_last_year=3,
        ),
        "activity_series": series,
        "avatar_uri": None,
    }
    values.update(overrides)
    return RenderContext(**values)


@pytest.fixture
def render_context() -> RenderContext:
    return make_context()
