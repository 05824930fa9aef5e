"""Chart models: contribution series aggregation and SVG geometry.

Everything here is a pure function of its inputs, so rendering the same data
twice produces byte-identical SVG documents.
"""

import math
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from datetime import timedelta
from urllib.parse import quote

from gitcard.models import ContributionDay
from gitcard.models import WeeklyBucket

PALETTE: tuple[str, ...] = (
    "#DBD4DC",
    "#C9D3C0",
    "#EFD9CC",
    "#D4E4F1",
    "#EBD8DC",
    "#D5D5D7",
    "#F6EBC8",
)

ACTIVITY_WIDTH = 760
ACTIVITY_HEIGHT = 110
ACTIVITY_PADDING_X = 10
ACTIVITY_PADDING_Y = 8
ACTIVITY_LABEL_COUNT = 6
LINE_COLOR = "#9ca3af"
GRID_COLOR = "#f3f4f6"

DOUGHNUT_RADIUS = 42
DOUGHNUT_SIZE = 144
DOUGHNUT_STROKE = 6
DOUGHNUT_TOP_N = 5

MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class ActivityChart:
    buckets: list[WeeklyBucket]
    points: list[Point]
    max_count: int
    line_path: str
    area_path: str
    x_labels: list[str]
    svg: str

    @property
    def y_labels(self) -> list[int]:
        return [self.max_count, round_half_up(self.max_count / 2), 0]

    @property
    def uri(self) -> str:
        return svg_data_uri(self.svg)


@dataclass(frozen=True)
class DoughnutSegment:
    name: str
    count: int
    fraction: float
    dash_length: float
    dash_offset: float
    color: str


@dataclass(frozen=True)
class DoughnutChart:
    segments: list[DoughnutSegment]
    total: int
    circumference: float
    svg: str

    @property
    def uri(self) -> str:
        return svg_data_uri(self.svg)


def fmt(value: float) -> str:
    """Serialize a coordinate with a fixed precision and no trailing zeros."""

    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in {"", "-0"} else text


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def svg_data_uri(svg: str) -> str:
    return f"data:image/svg+xml,{quote(svg, safe='')}"


def build_daily_series(
    from_day: date,
    to_day: date,
    counts_by_date: Mapping[date, int] | None = None,
) -> list[ContributionDay]:
    """Build a gap-free series with one entry per day from `from_day` to `to_day`."""

    counts_by_date = counts_by_date or {}
    series: list[ContributionDay] = []
    current_day = from_day
    while current_day <= to_day:
        count = max(int(counts_by_date.get(current_day, 0)), 0)
        series.append(ContributionDay(date=current_day, count=count))
        current_day += timedelta(days=1)
    return series


def aggregate_weekly(series: Sequence[ContributionDay]) -> list[WeeklyBucket]:
    """Sum consecutive groups of 7 days, starting at the first entry."""

    buckets: list[WeeklyBucket] = []
    for start in range(0, len(series), 7):
        week = series[start:start + 7]
        buckets.append(
            WeeklyBucket(date=week[0].date, count=sum(day.count for day in week))
        )
    return buckets


def chart_points(
    buckets: Sequence[WeeklyBucket],
    width: float = ACTIVITY_WIDTH,
    height: float = ACTIVITY_HEIGHT,
) -> tuple[list[Point], int]:
    """Place buckets on the drawing area; higher counts sit higher on the chart."""

    graph_width = width - 2 * ACTIVITY_PADDING_X
    graph_height = height - 2 * ACTIVITY_PADDING_Y
    max_count = max([bucket.count for bucket in buckets] + [1])
    divisor = max(len(buckets) - 1, 1)

    points = [
        Point(
            x=ACTIVITY_PADDING_X + (index / divisor) * graph_width,
            y=ACTIVITY_PADDING_Y
            + graph_height
            - (bucket.count / max_count) * graph_height,
        )
        for index, bucket in enumerate(buckets)
    ]
    return points, max_count


def smooth_line_path(points: Sequence[Point]) -> str:
    """Join points with cubic segments whose control points share the midpoint x."""

    if not points:
        return ""

    parts = [f"M {fmt(points[0].x)} {fmt(points[0].y)}"]
    for previous, current in zip(points, points[1:]):
        xc = fmt((previous.x + current.x) / 2)
        parts.append(
            f"C {xc} {fmt(previous.y)}, {xc} {fmt(current.y)}, "
            f"{fmt(current.x)} {fmt(current.y)}"
        )
    return " ".join(parts)


def area_path(
    line_path: str,
    width: float = ACTIVITY_WIDTH,
    height: float = ACTIVITY_HEIGHT,
) -> str:
    if not line_path:
        return ""

    right = fmt(width - ACTIVITY_PADDING_X)
    left = fmt(ACTIVITY_PADDING_X)
    baseline = fmt(height - ACTIVITY_PADDING_Y)
    return f"{line_path} L {right} {baseline} L {left} {baseline} Z"


def month_labels(buckets: Sequence[WeeklyBucket]) -> list[str]:
    labels: list[str] = []
    for i in range(ACTIVITY_LABEL_COUNT):
        index = (i * (len(buckets) - 1)) // (ACTIVITY_LABEL_COUNT - 1)
        if 0 <= index < len(buckets):
            labels.append(MONTH_ABBR[buckets[index].date.month - 1])
        else:
            labels.append("")
    return labels


def build_activity_chart(series: Sequence[ContributionDay]) -> ActivityChart:
    """Build the weekly area/line chart for a daily contribution series."""

    buckets = aggregate_weekly(series)
    points, max_count = chart_points(buckets)
    line = smooth_line_path(points)
    area = area_path(line)

    graph_width = ACTIVITY_WIDTH - 2 * ACTIVITY_PADDING_X
    graph_height = ACTIVITY_HEIGHT - 2 * ACTIVITY_PADDING_Y
    grid = "".join(
        f'<line x1="{ACTIVITY_PADDING_X}" y1="{fmt(y)}" '
        f'x2="{ACTIVITY_PADDING_X + graph_width}" y2="{fmt(y)}" '
        f'stroke="{GRID_COLOR}" stroke-width="1"/>'
        for y in (
            ACTIVITY_PADDING_Y + graph_height - ratio * graph_height
            for ratio in (0, 0.5, 1)
        )
    )

    body = [
        '<defs><linearGradient id="gradientArea" x1="0" y1="0" x2="0" y2="1">'
        f'<stop offset="0%" stop-color="{LINE_COLOR}" stop-opacity="0.15"/>'
        f'<stop offset="100%" stop-color="{LINE_COLOR}" stop-opacity="0"/>'
        "</linearGradient></defs>",
        grid,
    ]
    if area:
        body.append(f'<path d="{area}" fill="url(#gradientArea)"/>')
    if line:
        body.append(
            f'<path d="{line}" fill="none" stroke="{LINE_COLOR}" stroke-width="1.5" '
            'stroke-linecap="round" stroke-linejoin="round"/>'
        )

    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" '
        f'viewBox="0 0 {ACTIVITY_WIDTH} {ACTIVITY_HEIGHT}" '
        f'width="{ACTIVITY_WIDTH}" height="{ACTIVITY_HEIGHT}">'
        f'{"".join(body)}</svg>'
    )

    return ActivityChart(
        buckets=buckets,
        points=points,
        max_count=max_count,
        line_path=line,
        area_path=area,
        x_labels=month_labels(buckets),
        svg=svg,
    )


def top_categories(
    counts: Mapping[str, int], limit: int = DOUGHNUT_TOP_N
) -> list[tuple[str, int]]:
    """Return the `limit` largest categories; ties keep their original order."""

    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]


def doughnut_segments(counts: Mapping[str, int]) -> list[DoughnutSegment]:
    """Compute dash-array arcs for the top categories.

    Fractions are relative to the top-5 subtotal, so they always sum to 1.
    """

    entries = top_categories(counts)
    total = sum(value for _, value in entries)
    if total <= 0:
        return []

    circumference = 2 * math.pi * DOUGHNUT_RADIUS
    cumulative = 0.0
    segments: list[DoughnutSegment] = []
    for index, (name, value) in enumerate(entries):
        fraction = value / total
        segments.append(
            DoughnutSegment(
                name=name,
                count=value,
                fraction=fraction,
                dash_length=fraction * circumference,
                dash_offset=-(cumulative * circumference),
                color=PALETTE[index % len(PALETTE)],
            )
        )
        cumulative += fraction
    return segments


def build_doughnut_chart(counts: Mapping[str, int]) -> DoughnutChart | None:
    """Build the doughnut SVG, or None when there is nothing to draw."""

    segments = doughnut_segments(counts)
    if not segments:
        return None

    circumference = 2 * math.pi * DOUGHNUT_RADIUS
    circles = "".join(
        f'<circle cx="50" cy="50" r="{DOUGHNUT_RADIUS}" fill="none" '
        f'stroke="{segment.color}" stroke-width="{DOUGHNUT_STROKE}" '
        f'stroke-dasharray="{fmt(segment.dash_length)} {fmt(circumference)}" '
        f'stroke-dashoffset="{fmt(segment.dash_offset)}" stroke-linecap="round"/>'
        for segment in segments
    )
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100" '
        f'width="{DOUGHNUT_SIZE}" height="{DOUGHNUT_SIZE}">'
        '<g transform="rotate(-90 50 50)">'
        f'<circle cx="50" cy="50" r="{DOUGHNUT_RADIUS}" fill="none" '
        f'stroke="{GRID_COLOR}" stroke-width="{DOUGHNUT_STROKE}"/>'
        f"{circles}</g></svg>"
    )

    return DoughnutChart(
        segments=segments,
        total=sum(segment.count for segment in segments),
        circumference=circumference,
        svg=svg,
    )
