import asyncio
import logging
import threading
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from io import BytesIO

import httpx
from fontTools.pens.svgPathPen import SVGPathPen
from fontTools.ttLib import TTFont

logger = logging.getLogger(__name__)

REQUIRED_FAMILY = "Inter"
REQUIRED_WEIGHT = 400


class FontProvisioningError(Exception):
    """Raised when the required base font could not be loaded."""


@dataclass(frozen=True)
class FontSource:
    family: str
    weight: int
    url: str


FONT_SOURCES: tuple[FontSource, ...] = (
    FontSource("Inter", 300, "https://cdn.jsdelivr.net/fontsource/fonts/inter@latest/latin-300-normal.woff"),
    FontSource("Inter", 400, "https://cdn.jsdelivr.net/fontsource/fonts/inter@latest/latin-400-normal.woff"),
    FontSource("Inter", 500, "https://cdn.jsdelivr.net/fontsource/fonts/inter@latest/latin-500-normal.woff"),
    FontSource("Inter", 600, "https://cdn.jsdelivr.net/fontsource/fonts/inter@latest/latin-600-normal.woff"),
    FontSource("Noto Sans", 400, "https://github.com/notofonts/noto-fonts/raw/main/hinted/ttf/NotoSans/NotoSans-Regular.ttf"),
    FontSource("Noto Sans", 500, "https://github.com/notofonts/noto-fonts/raw/main/hinted/ttf/NotoSans/NotoSans-Medium.ttf"),
    FontSource("Noto Sans", 600, "https://github.com/notofonts/noto-fonts/raw/main/hinted/ttf/NotoSans/NotoSans-SemiBold.ttf"),
    FontSource("Noto Sans CJK SC", 400, "https://raw.githubusercontent.com/notofonts/noto-cjk/main/Sans/OTF/SimplifiedChinese/NotoSansCJKsc-Regular.otf"),
    FontSource("Noto Sans Symbols 2", 400, "https://github.com/notofonts/noto-fonts/raw/main/unhinted/ttf/NotoSansSymbols2/NotoSansSymbols2-Regular.ttf"),
)


class FontFace:
    """One parsed font file with cached glyph outlines and advances."""

    def __init__(self, family: str, weight: int, data: bytes) -> None:
        self.family = family
        self.weight = weight

        font = TTFont(BytesIO(data))
        self.units_per_em: int = font["head"].unitsPerEm
        self.ascent: int = font["hhea"].ascent
        self.descent: int = font["hhea"].descent
        self._cmap: dict[int, str] = font.getBestCmap() or {}
        self._metrics = font["hmtx"].metrics
        self._glyph_set = font.getGlyphSet()
        self._paths: dict[str, str] = {}
        # Glyph tables decompile lazily; panels render in parallel threads.
        self._lock = threading.Lock()

    def glyph_name(self, char: str) -> str | None:
        return self._cmap.get(ord(char))

    def advance(self, glyph_name: str) -> int:
        return self._metrics[glyph_name][0]

    def glyph_path(self, glyph_name: str) -> str:
        """Return the SVG path data of a glyph in font units (y axis up)."""

        with self._lock:
            path = self._paths.get(glyph_name)
            if path is None:
                pen = SVGPathPen(self._glyph_set)
                self._glyph_set[glyph_name].draw(pen)
                path = pen.getCommands()
                self._paths[glyph_name] = path
            return path


@dataclass(frozen=True)
class PlacedGlyph:
    face: FontFace
    glyph_name: str
    x: float
    scale: float


class FontSet:
    """Ordered font families used for glyph lookup, first family wins."""

    def __init__(self, faces: Sequence[FontFace]) -> None:
        self.faces = list(faces)
        if not any(
            face.family == REQUIRED_FAMILY and face.weight == REQUIRED_WEIGHT
            for face in self.faces
        ):
            raise FontProvisioningError(
                f"Failed to load required {REQUIRED_FAMILY} base font."
            )

        self.families: list[str] = []
        for face in self.faces:
            if face.family not in self.families:
                self.families.append(face.family)
        self.primary = self.pick(REQUIRED_FAMILY, REQUIRED_WEIGHT)

    def pick(self, family: str, weight: int) -> FontFace:
        """Return the face of `family` whose weight is closest to `weight`."""

        candidates = [face for face in self.faces if face.family == family]
        return min(candidates, key=lambda face: (abs(face.weight - weight), face.weight))

    def face_for(self, char: str, weight: int) -> FontFace | None:
        for family in self.families:
            face = self.pick(family, weight)
            if face.glyph_name(char) is not None:
                return face
        return None

    def layout_line(
        self,
        text: str,
        size: float,
        weight: int = 400,
        letter_spacing: float = 0.0,
    ) -> tuple[list[PlacedGlyph], float]:
        """Place glyphs for one line and return them with the line advance."""

        glyphs: list[PlacedGlyph] = []
        cursor = 0.0
        for char in text:
            face = self.face_for(char, weight)
            if face is None:
                continue
            glyph_name = face.glyph_name(char)
            scale = size / face.units_per_em
            glyphs.append(PlacedGlyph(face=face, glyph_name=glyph_name, x=cursor, scale=scale))
            cursor += face.advance(glyph_name) * scale + letter_spacing * size

        if glyphs and letter_spacing:
            cursor -= letter_spacing * size
        return glyphs, cursor

    def measure(
        self,
        text: str,
        size: float,
        weight: int = 400,
        letter_spacing: float = 0.0,
    ) -> float:
        return self.layout_line(text, size, weight, letter_spacing)[1]

    def ascent(self, size: float) -> float:
        return self.primary.ascent / self.primary.units_per_em * size

    def content_height(self, size: float) -> float:
        face = self.primary
        return (face.ascent - face.descent) / face.units_per_em * size


async def fetch_font(client: httpx.AsyncClient, source: FontSource) -> FontFace:
    response = await client.get(source.url, follow_redirects=True)
    response.raise_for_status()
    return FontFace(source.family, source.weight, response.content)


async def load_font_set(
    client: httpx.AsyncClient,
    sources: Sequence[FontSource] = FONT_SOURCES,
) -> FontSet:
    """Download all font sources concurrently; only the base font is mandatory."""

    results = await asyncio.gather(
        *(fetch_font(client, source) for source in sources),
        return_exceptions=True,
    )

    faces: list[FontFace] = []
    for source, result in zip(sources, results):
        if isinstance(result, BaseException):
            logger.warning(
                "Font load failed for %s (%s) from %s: %s",
                source.family,
                source.weight,
                source.url,
                result,
            )
            continue
        faces.append(result)

    return FontSet(faces)


class FontProvider:
    """Process-wide memoized font set with a single in-flight load."""

    def __init__(
        self,
        sources: Sequence[FontSource] = FONT_SOURCES,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self.sources = tuple(sources)
        self._client_factory = client_factory or (lambda: httpx.AsyncClient(timeout=30.0))
        self._fonts: FontSet | None = None
        self._pending: asyncio.Task[FontSet] | None = None

    async def get_fonts(self) -> FontSet:
        if self._fonts is not None:
            return self._fonts

        # No await between the check and the assignment, so concurrent first
        # callers on the event loop all share the same task.
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())
            self._pending.add_done_callback(self._clear_pending)

        return await asyncio.shield(self._pending)

    def set_fonts(self, fonts: FontSet | None) -> None:
        self._fonts = fonts

    async def _load(self) -> FontSet:
        async with self._client_factory() as client:
            fonts = await load_font_set(client, self.sources)
        self._fonts = fonts
        return fonts

    def _clear_pending(self, task: "asyncio.Task[FontSet]") -> None:
        if self._pending is task:
            self._pending = None


font_provider = FontProvider()


async def get_fonts() -> FontSet:
    return await font_provider.get_fonts()
