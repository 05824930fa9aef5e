from datetime import date
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel

from gitcard.models import CardData


class ContributionDaySchema(BaseModel):
    """Single day of the contribution series."""

    date: date
    count: int = Field(ge=0)


class CardStatsSchema(BaseModel):
    """Aggregated statistics; search counts may be the `N/A` sentinel."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_stars: int
    total_forks: int
    lang_counts: dict[str, int]
    commits_last_year: int | str
    prs_last_year: int | str
    issues_last_year: int | str


class CardManifest(BaseModel):
    """Everything fetched for a user, as served by the JSON endpoints."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: str
    profile: dict[str, Any]
    repos: list[dict[str, Any]]
    stats: CardStatsSchema
    activity_series: list[ContributionDaySchema]

    @classmethod
    def from_card_data(cls, username: str, data: CardData) -> "CardManifest":
        return cls(
            username=username,
            profile=data.profile,
            repos=data.repos,
            stats=CardStatsSchema(
                total_stars=data.stats.total_stars,
                total_forks=data.stats.total_forks,
                lang_counts=data.stats.lang_counts,
                commits_last_year=data.stats.commits_last_year,
                prs_last_year=data.stats.prs_last_year,
                issues_last_year=data.stats.issues_last_year,
            ),
            activity_series=[
                ContributionDaySchema(date=day.date, count=day.count)
                for day in data.activity_series
            ],
        )


class PanelLink(BaseModel):
    id: str
    label: str
    url: str


class PanelsManifest(BaseModel):
    username: str
    panels: list[PanelLink]
