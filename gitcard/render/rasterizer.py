from dataclasses import dataclass
from io import BytesIO

from PIL import Image

from gitcard.render.fonts import FontSet
from gitcard.render.layout import Node
from gitcard.render.layout import render_svg

RETINA_SCALE = 2


class RenderError(Exception):
    """Raised when an SVG document could not be rasterized."""


@dataclass(frozen=True)
class RasterImage:
    width: int
    height: int
    png: bytes


def rasterize(svg: str, scale: float = RETINA_SCALE) -> RasterImage:
    """Convert an SVG document to a transparent PNG at `scale` times its size."""

    # cairosvg binds the native cairo library when imported.
    import cairosvg

    try:
        png = cairosvg.svg2png(
            bytestring=svg.encode("utf-8"),
            scale=scale,
            background_color=None,
        )
    except Exception as exc:
        raise RenderError("SVG rasterization failed") from exc

    with Image.open(BytesIO(png)) as rendered:
        width, height = rendered.size

    return RasterImage(width=width, height=height, png=png)


def render_png(
    tree: Node,
    width: int,
    fonts: FontSet,
    height: int | None = None,
    scale: float = RETINA_SCALE,
) -> RasterImage:
    """Lay out a tree at `width`, then rasterize it at `scale`."""

    return rasterize(render_svg(tree, width, fonts, height=height), scale=scale)
