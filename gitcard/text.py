import re
import unicodedata

ELLIPSIS = "…"

_LONE_SURROGATE_RE = re.compile("[\ud800-\udfff]")
_CONTROL_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_JOINER_RE = re.compile("[\u200d\ufe0e\ufe0f]")
_WHITESPACE_RE = re.compile(r"[\s\ufeff]+")

# Extended_Pictographic blocks that matter for profile text.
_PICTOGRAPHIC_RANGES: tuple[tuple[int, int], ...] = (
    (0x00A9, 0x00A9),
    (0x00AE, 0x00AE),
    (0x203C, 0x203C),
    (0x2049, 0x2049),
    (0x2122, 0x2122),
    (0x2139, 0x2139),
    (0x2194, 0x2199),
    (0x21A9, 0x21AA),
    (0x231A, 0x231B),
    (0x2328, 0x2328),
    (0x2388, 0x2388),
    (0x23CF, 0x23CF),
    (0x23E9, 0x23F3),
    (0x23F8, 0x23FA),
    (0x24C2, 0x24C2),
    (0x25AA, 0x25AB),
    (0x25B6, 0x25B6),
    (0x25C0, 0x25C0),
    (0x25FB, 0x25FE),
    (0x2600, 0x27BF),
    (0x2934, 0x2935),
    (0x2B05, 0x2B07),
    (0x2B1B, 0x2B1C),
    (0x2B50, 0x2B50),
    (0x2B55, 0x2B55),
    (0x3030, 0x3030),
    (0x303D, 0x303D),
    (0x3297, 0x3297),
    (0x3299, 0x3299),
    (0x1F000, 0x1FAFF),
    (0x1FC00, 0x1FFFD),
)

_COMPACT_UNITS: tuple[tuple[int, str], ...] = (
    (1_000_000_000_000, "T"),
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)


def is_pictographic(char: str) -> bool:
    """Return True when the character is an emoji-style pictograph."""

    code_point = ord(char)
    return any(start <= code_point <= end for start, end in _PICTOGRAPHIC_RANGES)


def normalize_renderable_text(value: object) -> str:
    """Clean free text so the layout engine only sees glyphs it can draw.

    Lone surrogates become U+FFFD, control characters and pictographs become
    spaces, joiners and variation selectors are dropped and whitespace runs
    collapse to a single space.
    """

    if value is None:
        return ""

    text = _LONE_SURROGATE_RE.sub("\ufffd", str(value))
    text = unicodedata.normalize("NFC", text)
    text = _CONTROL_RE.sub(" ", text)
    text = _JOINER_RE.sub("", text)
    text = "".join(" " if is_pictographic(char) else char for char in text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def format_number(value: object) -> str:
    """Format integers with grouped digits; sentinels pass through unchanged."""

    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value:,}"
    return str(value)


def format_compact(value: object) -> str:
    """Format integers in short compact notation, e.g. 1234 -> 1.2K."""

    if not isinstance(value, int) or isinstance(value, bool):
        return str(value)

    sign = "-" if value < 0 else ""
    magnitude = abs(value)

    for index, (unit, suffix) in enumerate(_COMPACT_UNITS):
        if magnitude < unit:
            continue

        scaled = magnitude / unit
        rounded = round(scaled, 1) if scaled < 10 else float(round(scaled))
        # 999_950 rounds to 1000K, which reads as 1M.
        if rounded >= 1000 and index > 0:
            larger_unit, larger_suffix = _COMPACT_UNITS[index - 1]
            return f"{sign}{_trim_decimal(round(magnitude / larger_unit, 1))}{larger_suffix}"
        return f"{sign}{_trim_decimal(rounded)}{suffix}"

    return f"{sign}{magnitude}"


def truncate(label: str, max_chars: int) -> str:
    """Cut a label to `max_chars` characters, ending with an ellipsis."""

    if len(label) <= max_chars:
        return label
    return f"{label[: max_chars - 1]}{ELLIPSIS}"


def _trim_decimal(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return f"{value:.1f}"
