from dataclasses import dataclass
from dataclasses import field
from datetime import date
from typing import Any
from typing import Generic
from typing import TypeVar

T = TypeVar("T")

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Degraded(Generic[T]):
    """A sub-fetch that failed and was replaced by a fallback value."""

    fallback: T
    reason: str

    @property
    def value(self) -> T:
        return self.fallback


FetchResult = Ok[T] | Degraded[T]


@dataclass(frozen=True)
class ContributionDay:
    date: date
    count: int


@dataclass(frozen=True)
class WeeklyBucket:
    date: date
    count: int


@dataclass(frozen=True)
class CardStats:
    total_stars: int = 0
    total_forks: int = 0
    lang_counts: dict[str, int] = field(default_factory=dict)
    commits_last_year: int | str = NOT_AVAILABLE
    prs_last_year: int | str = NOT_AVAILABLE
    issues_last_year: int | str = NOT_AVAILABLE


@dataclass(frozen=True)
class CardData:
    profile: dict[str, Any]
    repos: list[dict[str, Any]]
    stats: CardStats
    activity_series: list[ContributionDay]


@dataclass(frozen=True)
class RenderContext:
    profile: dict[str, Any]
    repos: list[dict[str, Any]]
    stats: CardStats
    activity_series: list[ContributionDay]
    avatar_uri: str | None = None
