import asyncio
import base64
from dataclasses import dataclass

from gitcard.models import RenderContext
from gitcard.render.fonts import FontSet
from gitcard.render.fonts import get_fonts
from gitcard.render.layout import Node
from gitcard.render.layout import box
from gitcard.render.layout import image
from gitcard.render.layout import text
from gitcard.render.rasterizer import RasterImage
from gitcard.render.rasterizer import render_png
from gitcard.sections import UnknownSectionError
from gitcard.sections import build_section
from gitcard.sections import get_section_definition

PANEL_IDS: tuple[str, ...] = ("stats", "activity", "languages", "repositories")
COMPOSITE_SECTION_IDS: tuple[str, ...] = ("panels", "full")
PANEL_GAP = 32
FOOTER_HEIGHT = 42
FOOTER_TEXT = "wende/gitcard infographic"


@dataclass(frozen=True)
class RenderedSection:
    id: str
    label: str
    width: int
    height: int
    png: bytes

    @property
    def data_uri(self) -> str:
        return f"data:image/png;base64,{base64.b64encode(self.png).decode('ascii')}"


def render_section_sync(
    section_id: str, context: RenderContext, fonts: FontSet
) -> RenderedSection:
    """Build and rasterize one section; blocking, meant for a worker thread."""

    definition = get_section_definition(section_id)
    if definition is None:
        raise UnknownSectionError(f"Unknown section: {section_id}")

    node = build_section(section_id, context)
    raster = render_png(node, definition.width, fonts)
    return _rendered(section_id, definition.label, raster)


async def render_section_png(section_id: str, context: RenderContext) -> RenderedSection:
    fonts = await get_fonts()
    return await asyncio.to_thread(render_section_sync, section_id, context, fonts)


async def _render_many(
    section_ids: tuple[str, ...], context: RenderContext
) -> list[RenderedSection]:
    fonts = await get_fonts()
    return list(
        await asyncio.gather(
            *(
                asyncio.to_thread(render_section_sync, section_id, context, fonts)
                for section_id in section_ids
            )
        )
    )


def _embed(section: RenderedSection, **style: object) -> Node:
    return image(section.data_uri, section.width, section.height, style)


def build_composite_tree(
    stats: RenderedSection,
    activity: RenderedSection,
    languages: RenderedSection,
    repositories: RenderedSection,
    header: RenderedSection | None = None,
) -> tuple[Node, int, int]:
    """Stack pre-rendered panels into one tree; returns it with its pixel size."""

    lower_row_width = languages.width + PANEL_GAP + repositories.width
    lower_row_height = max(languages.height, repositories.height)
    upper = [header, stats, activity] if header else [stats, activity]

    width = max([section.width for section in upper] + [lower_row_width])
    height = (
        sum(section.height + PANEL_GAP for section in upper)
        + lower_row_height
        + FOOTER_HEIGHT
    )

    tree = box(
        {"width": width, "height": height, "align": "center"},
        [
            _embed(section, margin_top=PANEL_GAP if index else 0)
            for index, section in enumerate(upper)
        ],
        box(
            {
                "direction": "row",
                "width": width,
                "height": lower_row_height,
                "margin_top": PANEL_GAP,
                "align": "center",
                "justify": "center",
                "gap": PANEL_GAP,
            },
            _embed(languages),
            _embed(repositories),
        ),
        box(
            {"width": width, "height": FOOTER_HEIGHT, "align": "center", "justify": "center"},
            text(
                FOOTER_TEXT,
                {
                    "font_size": 18,
                    "font_weight": 500,
                    "color": "#9ca3af",
                    "letter_spacing": 0.12,
                    "uppercase": True,
                },
            ),
        ),
    )
    return tree, width, height


async def render_panels_png(
    context: RenderContext, include_header: bool = False
) -> RenderedSection:
    """Render panels independently, then composite their PNGs in a second pass."""

    section_ids = (("header",) if include_header else ()) + PANEL_IDS
    rendered = await _render_many(section_ids, context)
    header = rendered.pop(0) if include_header else None
    stats, activity, languages, repositories = rendered

    tree, width, height = build_composite_tree(
        stats, activity, languages, repositories, header=header
    )
    fonts = await get_fonts()
    # Panels are already at retina size, so the outer pass renders 1:1.
    raster = await asyncio.to_thread(render_png, tree, width, fonts, height, 1)

    if include_header:
        return _rendered("full", "Full Card", raster)
    return _rendered("panels", "Panels", raster)


async def render_image(section_id: str, context: RenderContext) -> RenderedSection:
    """Render any image section id, composites included."""

    if section_id == "panels":
        return await render_panels_png(context)
    if section_id == "full":
        return await render_panels_png(context, include_header=True)
    return await render_section_png(section_id, context)


def _rendered(section_id: str, label: str, raster: RasterImage) -> RenderedSection:
    return RenderedSection(
        id=section_id,
        label=label,
        width=raster.width,
        height=raster.height,
        png=raster.png,
    )
