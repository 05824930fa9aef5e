"""Declarative layout tree and its conversion to a self-contained SVG document.

A tree is made of three node kinds: `box` (a flex-like container), `text` and
`image`. Styles are plain mappings; the supported keys are:

    box    direction, gap, padding, width, height, max_width, grow, align,
           align_self, justify, background, border, border_left,
           border_right, radius, clip, margin_top, margin_bottom, position,
           top, left
    text   font_size, font_weight, color, letter_spacing (em), uppercase,
           line_height, wrap, max_width, text_align, rotate, margin_top,
           margin_bottom, align_self
    image  width, height, radius, border, margin_top, margin_bottom,
           align_self

Text is emitted as glyph outlines, so rasterizing the SVG never needs fonts.
"""

import math
import re
from collections.abc import Iterable
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from urllib.parse import unquote
from xml.sax.saxutils import quoteattr

from gitcard.charts import fmt
from gitcard.render.fonts import FontSet

SVG_DATA_PREFIX = "data:image/svg+xml,"
_SVG_ROOT_RE = re.compile(r"^\s*<svg\b([^>]*)>(.*)</svg>\s*$", re.S)
_VIEWBOX_RE = re.compile(r'viewBox="([^"]*)"')


@dataclass(frozen=True)
class Node:
    type: str
    style: Mapping[str, Any] = field(default_factory=dict)
    children: tuple["Node", ...] = ()
    content: str = ""
    src: str | None = None


def _flatten(children: Iterable[Any]) -> tuple[Node, ...]:
    flat: list[Node] = []
    for child in children:
        if child is None or child is False:
            continue
        if isinstance(child, Node):
            flat.append(child)
        else:
            flat.extend(_flatten(child))
    return tuple(flat)


def box(style: Mapping[str, Any] | None = None, *children: Any) -> Node:
    """Build a container node; `None`/`False` children are dropped."""

    return Node(type="box", style=dict(style or {}), children=_flatten(children))


def text(content: str, style: Mapping[str, Any] | None = None) -> Node:
    return Node(type="text", style=dict(style or {}), content=content)


def image(
    src: str | None,
    width: float,
    height: float,
    style: Mapping[str, Any] | None = None,
) -> Node:
    merged = {"width": width, "height": height, **(style or {})}
    return Node(type="image", style=merged, src=src)


@dataclass
class Frame:
    node: Node
    width: float
    height: float
    x: float = 0.0
    y: float = 0.0
    children: list["Frame"] = field(default_factory=list)
    lines: list[str] = field(default_factory=list)


def _padding(style: Mapping[str, Any]) -> tuple[float, float, float, float]:
    value = style.get("padding", 0)
    if isinstance(value, (int, float)):
        return value, value, value, value
    if len(value) == 2:
        return value[0], value[1], value[0], value[1]
    return tuple(value)


def _margins(node: Node) -> tuple[float, float]:
    return node.style.get("margin_top", 0), node.style.get("margin_bottom", 0)


def _display_text(node: Node) -> str:
    if node.style.get("uppercase"):
        return node.content.upper()
    return node.content


class LayoutEngine:
    """Lays out a node tree against a font set."""

    def __init__(self, fonts: FontSet) -> None:
        self.fonts = fonts

    # measurement ---------------------------------------------------------

    def _text_metrics(self, node: Node) -> tuple[float, int, float, float]:
        style = node.style
        size = style.get("font_size", 14)
        weight = style.get("font_weight", 400)
        spacing = style.get("letter_spacing", 0.0)
        line_height = style.get("line_height", 1.2) * size
        return size, weight, spacing, line_height

    def _measure_line(self, node: Node, line: str) -> float:
        size, weight, spacing, _ = self._text_metrics(node)
        return self.fonts.measure(line, size, weight, spacing)

    def wrap(self, node: Node, max_width: float) -> list[str]:
        """Greedy word wrap; a word wider than the line stays on its own line."""

        content = _display_text(node)
        if not node.style.get("wrap"):
            return [content]

        lines: list[str] = []
        current = ""
        for word in content.split(" "):
            candidate = f"{current} {word}" if current else word
            if current and self._measure_line(node, candidate) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        if current or not lines:
            lines.append(current)
        return lines

    # layout ----------------------------------------------------------------

    def layout(
        self,
        node: Node,
        available_width: float,
        fixed_width: float | None = None,
        fixed_height: float | None = None,
    ) -> Frame:
        if node.type == "text":
            return self._layout_text(node, available_width, fixed_width, fixed_height)
        if node.type == "image":
            return Frame(
                node=node,
                width=node.style["width"],
                height=node.style["height"],
            )
        if node.type == "box":
            return self._layout_box(node, available_width, fixed_width, fixed_height)
        raise ValueError(f"Unknown node type: {node.type}")

    def _layout_text(
        self,
        node: Node,
        available_width: float,
        fixed_width: float | None,
        fixed_height: float | None,
    ) -> Frame:
        limit = available_width
        if "max_width" in node.style:
            limit = min(limit, node.style["max_width"])
        if fixed_width is not None:
            limit = min(limit, fixed_width)

        lines = self.wrap(node, limit)
        _, _, _, line_height = self._text_metrics(node)
        width = max((self._measure_line(node, line) for line in lines), default=0.0)
        height = line_height * len(lines)

        if node.style.get("rotate") in (90, -90):
            width, height = height, width

        return Frame(
            node=node,
            width=fixed_width if fixed_width is not None else width,
            height=max(height, fixed_height or 0),
            lines=lines,
        )

    def _layout_box(
        self,
        node: Node,
        available_width: float,
        fixed_width: float | None,
        fixed_height: float | None,
    ) -> Frame:
        style = node.style
        top, right, bottom, left = _padding(style)

        width = style.get("width", fixed_width)
        if width is not None and "max_width" in style:
            width = min(width, style["max_width"])
        outer_limit = width if width is not None else min(
            available_width, style.get("max_width", available_width)
        )
        inner_limit = max(outer_limit - left - right, 0)

        flow = [child for child in node.children if child.style.get("position") != "absolute"]
        absolute = [child for child in node.children if child.style.get("position") == "absolute"]

        if style.get("direction", "column") == "row":
            frames, content_width, content_height = self._layout_row(node, flow, inner_limit)
        else:
            frames, content_width, content_height = self._layout_column(node, flow, inner_limit)

        if width is None:
            width = content_width + left + right
        height = style.get("height", fixed_height)
        if height is None:
            height = content_height + top + bottom

        frame = Frame(node=node, width=width, height=height)
        inner_width = width - left - right
        inner_height = height - top - bottom

        if style.get("direction", "column") == "row":
            self._place_row(node, frames, left, top, inner_width, inner_height)
        else:
            frames = self._grow_column(node, flow, frames, inner_width, inner_height)
            self._place_column(node, frames, left, top, inner_width, inner_height)

        for child in absolute:
            child_frame = self.layout(child, inner_width)
            child_frame.x = left + child.style.get("left", 0)
            child_frame.y = top + child.style.get("top", 0)
            frames.append(child_frame)

        frame.children = frames
        return frame

    def _align_for(self, parent: Node, child: Node) -> str:
        return child.style.get("align_self", parent.style.get("align", "stretch"))

    def _layout_column(
        self, node: Node, children: list[Node], inner_width: float
    ) -> tuple[list[Frame], float, float]:
        frames: list[Frame] = []
        for child in children:
            stretch = (
                self._align_for(node, child) == "stretch"
                and "width" not in child.style
            )
            frames.append(
                self.layout(child, inner_width, fixed_width=inner_width if stretch else None)
            )

        gap = node.style.get("gap", 0)
        content_height = sum(
            frame.height + sum(_margins(frame.node)) for frame in frames
        ) + gap * max(len(frames) - 1, 0)
        content_width = max((frame.width for frame in frames), default=0.0)
        return frames, content_width, content_height

    def _grow_column(
        self,
        node: Node,
        children: list[Node],
        frames: list[Frame],
        inner_width: float,
        inner_height: float,
    ) -> list[Frame]:
        growers = [i for i, child in enumerate(children) if child.style.get("grow")]
        if not growers:
            return frames

        gap = node.style.get("gap", 0)
        used = sum(frame.height + sum(_margins(frame.node)) for frame in frames)
        used += gap * max(len(frames) - 1, 0)
        free = inner_height - used
        if free <= 0:
            return frames

        total_grow = sum(children[i].style["grow"] for i in growers)
        for i in growers:
            child = children[i]
            extra = free * child.style["grow"] / total_grow
            stretch = self._align_for(node, child) == "stretch" and "width" not in child.style
            frames[i] = self.layout(
                child,
                inner_width,
                fixed_width=inner_width if stretch else None,
                fixed_height=frames[i].height + extra,
            )
        return frames

    def _layout_row(
        self, node: Node, children: list[Node], inner_width: float
    ) -> tuple[list[Frame], float, float]:
        gap = node.style.get("gap", 0)
        frames: list[Frame | None] = [None] * len(children)
        used = gap * max(len(children) - 1, 0)

        for i, child in enumerate(children):
            if child.style.get("grow"):
                continue
            frames[i] = self.layout(child, inner_width)
            used += frames[i].width

        growers = [i for i, child in enumerate(children) if child.style.get("grow")]
        total_grow = sum(children[i].style["grow"] for i in growers)
        free = max(inner_width - used, 0)
        for i in growers:
            child = children[i]
            share = free * child.style["grow"] / total_grow
            if "max_width" in child.style:
                share = min(share, child.style["max_width"])
            frames[i] = self.layout(child, share, fixed_width=share)

        placed = [frame for frame in frames if frame is not None]
        content_width = sum(frame.width for frame in placed) + gap * max(len(placed) - 1, 0)
        content_height = max(
            (frame.height + sum(_margins(frame.node)) for frame in placed), default=0.0
        )
        return placed, content_width, content_height

    # placement -------------------------------------------------------------

    def _justify(
        self, justify: str, free: float, count: int, gap: float
    ) -> tuple[float, float]:
        """Return the main-axis start offset and the spacing between items."""

        free = max(free, 0)
        if justify == "center":
            return free / 2, gap
        if justify == "end":
            return free, gap
        if justify == "between" and count > 1:
            return 0.0, gap + free / (count - 1)
        return 0.0, gap

    def _cross_offset(self, align: str, free: float) -> float:
        if align == "center":
            return max(free, 0) / 2
        if align == "end":
            return max(free, 0)
        return 0.0

    def _place_column(
        self,
        node: Node,
        frames: list[Frame],
        left: float,
        top: float,
        inner_width: float,
        inner_height: float,
    ) -> None:
        gap = node.style.get("gap", 0)
        used = sum(frame.height + sum(_margins(frame.node)) for frame in frames)
        used += gap * max(len(frames) - 1, 0)
        cursor, spacing = self._justify(
            node.style.get("justify", "start"), inner_height - used, len(frames), gap
        )

        for frame in frames:
            margin_top, margin_bottom = _margins(frame.node)
            align = self._align_for(node, frame.node)
            frame.x = left + self._cross_offset(align, inner_width - frame.width)
            frame.y = top + cursor + margin_top
            cursor += margin_top + frame.height + margin_bottom + spacing

    def _place_row(
        self,
        node: Node,
        frames: list[Frame],
        left: float,
        top: float,
        inner_width: float,
        inner_height: float,
    ) -> None:
        gap = node.style.get("gap", 0)
        used = sum(frame.width for frame in frames) + gap * max(len(frames) - 1, 0)
        cursor, spacing = self._justify(
            node.style.get("justify", "start"), inner_width - used, len(frames), gap
        )

        for frame in frames:
            align = self._align_for(node, frame.node)
            if (
                align == "stretch"
                and frame.node.type == "box"
                and "height" not in frame.node.style
                and frame.height < inner_height
            ):
                stretched = self.layout(
                    frame.node, frame.width, fixed_width=frame.width, fixed_height=inner_height
                )
                frame.height = stretched.height
                frame.children = stretched.children
            margin_top, _ = _margins(frame.node)
            frame.x = left + cursor
            frame.y = top + margin_top + self._cross_offset(
                align, inner_height - frame.height - margin_top
            )
            cursor += frame.width + spacing


class SvgWriter:
    """Serializes laid-out frames into SVG elements."""

    def __init__(self, fonts: FontSet) -> None:
        self.fonts = fonts
        self.parts: list[str] = []
        self._clip_ids = 0

    def write(self, frame: Frame, origin_x: float = 0.0, origin_y: float = 0.0) -> None:
        x = origin_x + frame.x
        y = origin_y + frame.y

        if frame.node.type == "box":
            self._write_box(frame, x, y)
        elif frame.node.type == "text":
            self._write_text(frame, x, y)
        elif frame.node.type == "image":
            self._write_image(frame, x, y)

        clip = frame.node.type == "box" and frame.node.style.get("clip")
        if clip:
            clip_id = self._clip_path(
                x, y, frame.width, frame.height, frame.node.style.get("radius", 0)
            )
            self.parts.append(f'<g clip-path="url(#{clip_id})">')

        for child in frame.children:
            self.write(child, x, y)

        if clip:
            self.parts.append("</g>")

    def _clip_path(
        self, x: float, y: float, width: float, height: float, radius: Any
    ) -> str:
        self._clip_ids += 1
        clip_id = f"clip{self._clip_ids}"
        self.parts.append(
            f'<defs><clipPath id="{clip_id}">'
            f"{self._shape(x, y, width, height, radius, '')}"
            "</clipPath></defs>"
        )
        return clip_id

    def _write_box(self, frame: Frame, x: float, y: float) -> None:
        style = frame.node.style
        radius = style.get("radius", 0)
        background = style.get("background")
        border = style.get("border")

        if background:
            self.parts.append(
                self._shape(x, y, frame.width, frame.height, radius, f'fill="{background}"')
            )
        if border:
            self.parts.append(
                self._shape(
                    x + 0.5,
                    y + 0.5,
                    frame.width - 1,
                    frame.height - 1,
                    radius,
                    f'fill="none" stroke="{border}" stroke-width="1"',
                )
            )
        if style.get("border_left"):
            self._vertical_rule(x + 0.5, y, frame.height, style["border_left"])
        if style.get("border_right"):
            self._vertical_rule(x + frame.width - 0.5, y, frame.height, style["border_right"])

    def _vertical_rule(self, x: float, y: float, height: float, color: str) -> None:
        self.parts.append(
            f'<line x1="{fmt(x)}" y1="{fmt(y)}" x2="{fmt(x)}" y2="{fmt(y + height)}" '
            f'stroke="{color}" stroke-width="1"/>'
        )

    def _shape(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        radius: Any,
        paint: str,
    ) -> str:
        if isinstance(radius, (tuple, list)):
            return f'<path d="{rounded_rect_path(x, y, width, height, radius)}" {paint}/>'

        r = min(radius, width / 2, height / 2)
        return (
            f'<rect x="{fmt(x)}" y="{fmt(y)}" width="{fmt(width)}" '
            f'height="{fmt(height)}" rx="{fmt(r)}" ry="{fmt(r)}" {paint}/>'
        )

    def _write_text(self, frame: Frame, x: float, y: float) -> None:
        style = frame.node.style
        size = style.get("font_size", 14)
        weight = style.get("font_weight", 400)
        spacing = style.get("letter_spacing", 0.0)
        line_height = style.get("line_height", 1.2) * size
        color = style.get("color", "#000000")
        half_leading = (line_height - self.fonts.content_height(size)) / 2
        rotate = style.get("rotate")

        if rotate in (90, -90):
            text_width = frame.height
            text_height = frame.width
            center_x = x + frame.width / 2
            center_y = y + frame.height / 2
            self.parts.append(
                f'<g transform="rotate({rotate} {fmt(center_x)} {fmt(center_y)})">'
            )
            x = center_x - text_width / 2
            y = center_y - text_height / 2
            box_width = text_width
        else:
            box_width = frame.width

        self.parts.append(f'<g fill="{color}">')
        for index, line in enumerate(frame.lines):
            glyphs, advance = self.fonts.layout_line(line, size, weight, spacing)
            line_x = x
            if style.get("text_align") == "center":
                line_x += (box_width - advance) / 2
            elif style.get("text_align") == "end":
                line_x += box_width - advance
            baseline = y + index * line_height + half_leading + self.fonts.ascent(size)

            for glyph in glyphs:
                path = glyph.face.glyph_path(glyph.glyph_name)
                if not path:
                    continue
                self.parts.append(
                    f'<path transform="matrix({fmt(glyph.scale)} 0 0 {fmt(-glyph.scale)} '
                    f'{fmt(line_x + glyph.x)} {fmt(baseline)})" d="{path}"/>'
                )
        self.parts.append("</g>")

        if rotate in (90, -90):
            self.parts.append("</g>")

    def _write_image(self, frame: Frame, x: float, y: float) -> None:
        style = frame.node.style
        src = frame.node.src
        radius = style.get("radius", 0)

        if src and src.startswith(SVG_DATA_PREFIX):
            self.parts.append(
                nest_svg(unquote(src[len(SVG_DATA_PREFIX):]), x, y, frame.width, frame.height)
            )
        elif src:
            clip = ""
            if radius:
                clip_id = self._clip_path(x, y, frame.width, frame.height, radius)
                clip = f' clip-path="url(#{clip_id})"'
            self.parts.append(
                f'<image x="{fmt(x)}" y="{fmt(y)}" width="{fmt(frame.width)}" '
                f'height="{fmt(frame.height)}" preserveAspectRatio="xMidYMid slice" '
                f"xlink:href={quoteattr(src)}{clip}/>"
            )

        if style.get("border"):
            self.parts.append(
                self._shape(
                    x + 0.5,
                    y + 0.5,
                    frame.width - 1,
                    frame.height - 1,
                    radius,
                    f'fill="none" stroke="{style["border"]}" stroke-width="1"',
                )
            )


def rounded_rect_path(
    x: float,
    y: float,
    width: float,
    height: float,
    radii: tuple[float, float, float, float],
) -> str:
    """Path for a rectangle with per-corner radii (top-left clockwise)."""

    limit = min(width, height) / 2
    tl, tr, br, bl = (min(r, limit) for r in radii)
    return " ".join(
        [
            f"M {fmt(x + tl)} {fmt(y)}",
            f"H {fmt(x + width - tr)}",
            f"A {fmt(tr)} {fmt(tr)} 0 0 1 {fmt(x + width)} {fmt(y + tr)}",
            f"V {fmt(y + height - br)}",
            f"A {fmt(br)} {fmt(br)} 0 0 1 {fmt(x + width - br)} {fmt(y + height)}",
            f"H {fmt(x + bl)}",
            f"A {fmt(bl)} {fmt(bl)} 0 0 1 {fmt(x)} {fmt(y + height - bl)}",
            f"V {fmt(y + tl)}",
            f"A {fmt(tl)} {fmt(tl)} 0 0 1 {fmt(x + tl)} {fmt(y)}",
            "Z",
        ]
    )


def nest_svg(svg: str, x: float, y: float, width: float, height: float) -> str:
    """Re-root a standalone SVG document at a position inside another one."""

    match = _SVG_ROOT_RE.match(svg)
    if match is None:
        raise ValueError("Embedded image is not an SVG document")

    attributes, body = match.groups()
    viewbox = _VIEWBOX_RE.search(attributes)
    viewbox_attr = f' viewBox="{viewbox.group(1)}"' if viewbox else ""
    return (
        f'<svg x="{fmt(x)}" y="{fmt(y)}" width="{fmt(width)}" '
        f'height="{fmt(height)}"{viewbox_attr} preserveAspectRatio="none">{body}</svg>'
    )


def render_svg(
    tree: Node,
    width: int,
    fonts: FontSet,
    height: int | None = None,
) -> str:
    """Lay out `tree` at `width` and return the SVG document.

    The height follows the content unless given explicitly.
    """

    engine = LayoutEngine(fonts)
    root = engine.layout(tree, width, fixed_width=width, fixed_height=height)
    document_height = height if height is not None else math.ceil(root.height)

    writer = SvgWriter(fonts)
    writer.write(root)
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" '
        'xmlns:xlink="http://www.w3.org/1999/xlink" '
        f'width="{width}" height="{document_height}" '
        f'viewBox="0 0 {width} {document_height}">'
        f'{"".join(writer.parts)}</svg>'
    )

