import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from gitcard.charts import PALETTE
from gitcard.charts import build_activity_chart
from gitcard.charts import build_doughnut_chart
from gitcard.charts import round_half_up
from gitcard.charts import top_categories
from gitcard.models import CardStats
from gitcard.models import RenderContext
from gitcard.render.layout import Node
from gitcard.render.layout import box
from gitcard.render.layout import image
from gitcard.render.layout import text
from gitcard.text import format_compact
from gitcard.text import format_number
from gitcard.text import normalize_renderable_text
from gitcard.text import truncate

CARD_WIDTH = 832
HALF_CARD_WIDTH = 404
LOWER_PANEL_HEIGHT = 309
CARD_PADDING = 32

REPO_LABEL_MAX_CHARS = 14
LANGUAGE_LABEL_MAX_CHARS = 16
TOP_REPOSITORIES = 5
BAR_AREA_HEIGHT = 210
BAR_AREA_PADDING_TOP = 24
BAR_MAX_WIDTH = 40
BAR_MIN_PERCENT = 25

ACTIVITY_IMAGE_HEIGHT = 110
ACTIVITY_AXIS_WIDTH = 28
ACTIVITY_AXIS_GAP = 8
ACTIVITY_IMAGE_WIDTH = CARD_WIDTH - 2 * CARD_PADDING - ACTIVITY_AXIS_GAP - ACTIVITY_AXIS_WIDTH

BORDER_COLOR = "#f3f4f6"
MUTED_COLOR = "#9ca3af"
TITLE_COLOR = "#1f2937"

EMPTY_LANGUAGES_TEXT = "No language data available"
EMPTY_REPOSITORIES_TEXT = "No starred repositories"


class UnknownSectionError(Exception):
    """Raised for a section id that has no builder."""


@dataclass(frozen=True)
class SectionDefinition:
    id: str
    label: str
    width: int


SECTION_DEFINITIONS: tuple[SectionDefinition, ...] = (
    SectionDefinition("header", "Header", CARD_WIDTH),
    SectionDefinition("stats", "Stats", CARD_WIDTH),
    SectionDefinition("activity", "Contribution Activity", CARD_WIDTH),
    SectionDefinition("languages", "Language Distribution", HALF_CARD_WIDTH),
    SectionDefinition("repositories", "Most Starred Repositories", HALF_CARD_WIDTH),
)


def get_section_definition(section_id: str) -> SectionDefinition | None:
    for section in SECTION_DEFINITIONS:
        if section.id == section_id:
            return section
    return None


def card_style(**overrides: Any) -> dict[str, Any]:
    return {
        "background": "#ffffff",
        "radius": 32,
        "border": BORDER_COLOR,
        "padding": CARD_PADDING,
        **overrides,
    }


def _title(label: str, font_size: int = 14, margin_bottom: int = 24) -> Node:
    return text(
        label,
        {
            "font_size": font_size,
            "font_weight": 500,
            "color": TITLE_COLOR,
            "letter_spacing": 0.02,
            "margin_bottom": margin_bottom,
        },
    )


def _empty_state(label: str, font_size: int, height: int | None = None) -> Node:
    style: dict[str, Any] = {"align": "center", "justify": "center"}
    if height is None:
        style["grow"] = 1
    else:
        style["height"] = height
    return box(style, text(label, {"font_size": font_size, "color": MUTED_COLOR}))


def build_header_section(profile: dict[str, Any], avatar_uri: str | None) -> Node:
    display_name = normalize_renderable_text(profile.get("name") or profile.get("login")) or "Unknown"
    login = normalize_renderable_text(profile.get("login"))
    bio = normalize_renderable_text(profile.get("bio"))
    company = normalize_renderable_text(profile.get("company"))
    location = normalize_renderable_text(profile.get("location"))
    twitter = normalize_renderable_text(profile.get("twitter_username"))

    if avatar_uri:
        avatar = image(avatar_uri, 96, 96, {"radius": 48, "border": BORDER_COLOR})
    else:
        avatar = box(
            {"width": 96, "height": 96, "radius": 48, "background": BORDER_COLOR}
        )

    meta_style = {"font_size": 12, "color": "#6b7280", "font_weight": 300}

    return box(
        card_style(),
        box(
            {"direction": "row", "align": "center", "justify": "between", "gap": 24},
            box(
                {"direction": "row", "align": "center", "gap": 24, "grow": 1, "max_width": 500},
                avatar,
                box(
                    {"grow": 1},
                    text(
                        display_name,
                        {"font_size": 30, "font_weight": 500, "color": "#111827", "letter_spacing": -0.025},
                    ),
                    text(
                        f"@{login}",
                        {"font_size": 14, "color": MUTED_COLOR, "font_weight": 300, "margin_top": 4},
                    ) if login else None,
                    text(
                        bio,
                        {
                            "font_size": 14,
                            "color": "#6b7280",
                            "font_weight": 300,
                            "margin_top": 12,
                            "line_height": 1.6,
                            "max_width": 360,
                            "wrap": True,
                        },
                    ) if bio else None,
                ),
            ),
            box(
                {
                    "gap": 10,
                    "border_left": BORDER_COLOR,
                    "padding": (0, 0, 0, 24),
                    "width": 204,
                    "align": "start",
                },
                text(company, meta_style) if company else None,
                text(location, meta_style) if location else None,
                text(f"@{twitter}", meta_style) if twitter else None,
            ),
        ),
    )


def build_stats_section(
    profile: dict[str, Any], repos: list[dict[str, Any]], stats: CardStats
) -> Node:
    cells = [
        ("Contributions", stats.commits_last_year),
        ("Total Stars", stats.total_stars),
        ("Repositories", len(repos)),
        ("Followers", profile.get("followers", 0)),
    ]

    return box(
        card_style(),
        box(
            {"direction": "row", "gap": 16},
            [
                box(
                    {
                        "grow": 1,
                        "padding": (0, 8),
                        "border_right": BORDER_COLOR if index < len(cells) - 1 else None,
                    },
                    text(
                        label,
                        {
                            "font_size": 11,
                            "font_weight": 500,
                            "color": MUTED_COLOR,
                            "letter_spacing": 0.08,
                            "uppercase": True,
                            "margin_bottom": 10,
                        },
                    ),
                    text(
                        format_number(value),
                        {"font_size": 34, "font_weight": 300, "color": TITLE_COLOR, "letter_spacing": -0.025},
                    ),
                )
                for index, (label, value) in enumerate(cells)
            ],
        ),
    )


def build_activity_section(context: RenderContext) -> Node:
    chart = build_activity_chart(context.activity_series)
    axis_label = {"font_size": 10, "color": MUTED_COLOR}

    return box(
        card_style(),
        box(
            {"direction": "row", "align": "center", "justify": "between", "margin_bottom": 12},
            text(
                "Contribution Activity",
                {"font_size": 14, "font_weight": 500, "color": TITLE_COLOR, "letter_spacing": 0.02},
            ),
            text(
                "Last 365 Days",
                {"font_size": 10, "color": MUTED_COLOR, "letter_spacing": 0.1, "uppercase": True},
            ),
        ),
        box(
            {"direction": "row", "align": "start", "gap": ACTIVITY_AXIS_GAP},
            box(
                {"grow": 1},
                image(chart.uri, ACTIVITY_IMAGE_WIDTH, ACTIVITY_IMAGE_HEIGHT),
                box(
                    {"direction": "row", "align": "center", "justify": "between", "margin_top": 6, "padding": (0, 2)},
                    [text(label, axis_label) for label in chart.x_labels],
                ),
            ),
            box(
                {
                    "width": ACTIVITY_AXIS_WIDTH,
                    "height": ACTIVITY_IMAGE_HEIGHT,
                    "justify": "between",
                    "align": "start",
                    "padding": (2, 0),
                },
                [text(str(value), axis_label) for value in chart.y_labels],
            ),
        ),
    )


def build_languages_section(context: RenderContext) -> Node:
    lang_counts = context.stats.lang_counts
    entries = top_categories(lang_counts)
    doughnut = build_doughnut_chart(lang_counts)

    if doughnut is None:
        body = _empty_state(EMPTY_LANGUAGES_TEXT, 14)
    else:
        legend = [
            box(
                {"direction": "row", "align": "center", "justify": "between"},
                box(
                    {"direction": "row", "align": "center", "gap": 8},
                    box({"width": 8, "height": 8, "radius": 4, "background": PALETTE[index % len(PALETTE)]}),
                    text(
                        truncate(normalize_renderable_text(name) or "Unknown", LANGUAGE_LABEL_MAX_CHARS),
                        {"font_size": 13, "color": "#4b5563"},
                    ),
                ),
                text(
                    f"{round_half_up(value / doughnut.total * 100)}%",
                    {"font_size": 13, "color": MUTED_COLOR, "font_weight": 300},
                ),
            )
            for index, (name, value) in enumerate(entries)
        ]
        body = box(
            {"grow": 1, "align": "center", "justify": "center"},
            box(
                {"direction": "row", "align": "center", "justify": "center", "gap": 26},
                box(
                    {"width": 144, "height": 144},
                    image(doughnut.uri, 144, 144),
                    box(
                        {
                            "position": "absolute",
                            "top": 0,
                            "left": 0,
                            "width": 144,
                            "height": 144,
                            "align": "center",
                            "justify": "center",
                        },
                        text(str(doughnut.total), {"font_size": 24, "font_weight": 300, "color": TITLE_COLOR}),
                        text(
                            "Repos",
                            {
                                "font_size": 10,
                                "font_weight": 500,
                                "color": MUTED_COLOR,
                                "letter_spacing": 0.08,
                                "uppercase": True,
                            },
                        ),
                    ),
                ),
                box({"width": 160, "gap": 10}, legend),
            ),
        )

    return box(
        card_style(height=LOWER_PANEL_HEIGHT),
        _title("Language Distribution"),
        body,
    )


def top_starred_repositories(repos: list[dict[str, Any]]) -> list[dict[str, Any]]:
    starred = [repo for repo in repos if (repo.get("stargazers_count") or 0) > 0]
    starred.sort(key=lambda repo: repo["stargazers_count"], reverse=True)
    return starred[:TOP_REPOSITORIES]


def bar_height_percent(stars: int, max_stars: int) -> float:
    """Bar height on a log10 scale, never below the minimum visible height."""

    max_log = math.log10(max_stars or 1) or 1
    log_stars = math.log10(stars or 1)
    return max(log_stars / max_log * 100, BAR_MIN_PERCENT)


def build_repositories_section(repos: list[dict[str, Any]]) -> Node:
    top_repos = top_starred_repositories(repos)

    if not top_repos:
        return box(
            card_style(height=LOWER_PANEL_HEIGHT),
            _title("Most Starred Repositories", font_size=16),
            _empty_state(EMPTY_REPOSITORIES_TEXT, 15, height=170),
        )

    max_stars = max(repo["stargazers_count"] for repo in top_repos)
    bar_area = BAR_AREA_HEIGHT - BAR_AREA_PADDING_TOP

    columns = []
    for repo in top_repos:
        stars = repo["stargazers_count"]
        bar_height = bar_area * bar_height_percent(stars, max_stars) / 100
        label = truncate(normalize_renderable_text(repo.get("name")) or "repo", REPO_LABEL_MAX_CHARS)
        columns.append(
            box(
                {"grow": 1, "height": bar_area, "align": "center", "justify": "end"},
                text(
                    format_compact(stars),
                    {"font_size": 12, "color": "#6b7280", "font_weight": 500, "margin_bottom": 6},
                ),
                box(
                    {
                        "width": BAR_MAX_WIDTH,
                        "height": bar_height,
                        "background": BORDER_COLOR,
                        "radius": (12, 12, 0, 0),
                        "align": "center",
                        "justify": "center",
                        "clip": True,
                    },
                    text(
                        label,
                        {
                            "font_size": 10,
                            "color": "#6b7280",
                            "font_weight": 600,
                            "line_height": 1,
                            "rotate": -90,
                        },
                    ),
                ),
            )
        )

    return box(
        card_style(height=LOWER_PANEL_HEIGHT),
        _title("Most Starred Repositories", font_size=16, margin_bottom=16),
        box(
            {
                "direction": "row",
                "align": "end",
                "justify": "between",
                "gap": 8,
                "height": BAR_AREA_HEIGHT,
                "padding": (BAR_AREA_PADDING_TOP, 0, 0, 0),
            },
            columns,
        ),
    )


SECTION_BUILDERS: dict[str, Callable[[RenderContext], Node]] = {
    "header": lambda context: build_header_section(context.profile, context.avatar_uri),
    "stats": lambda context: build_stats_section(context.profile, context.repos, context.stats),
    "activity": build_activity_section,
    "languages": build_languages_section,
    "repositories": lambda context: build_repositories_section(context.repos),
}


def build_section(section_id: str, context: RenderContext) -> Node:
    """Build the layout tree of one named section."""

    builder = SECTION_BUILDERS.get(section_id)
    if builder is None:
        raise UnknownSectionError(f"Unknown section: {section_id}")
    return builder(context)
