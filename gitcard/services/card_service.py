import asyncio
import logging
from collections.abc import Awaitable
from datetime import UTC
from datetime import datetime
from datetime import time
from datetime import timedelta
from typing import Any
from typing import TypeVar

import httpx

from gitcard.charts import build_daily_series
from gitcard.clients.github_client import create_github_client
from gitcard.clients.github_client import fetch_contribution_counts
from gitcard.clients.github_client import fetch_image_data_uri
from gitcard.clients.github_client import fetch_repos
from gitcard.clients.github_client import fetch_search_count
from gitcard.clients.github_client import fetch_user
from gitcard.models import NOT_AVAILABLE
from gitcard.models import CardData
from gitcard.models import CardStats
from gitcard.models import ContributionDay
from gitcard.models import Degraded
from gitcard.models import FetchResult
from gitcard.models import Ok
from gitcard.models import RenderContext
from gitcard.settings import Settings

logger = logging.getLogger(__name__)

ACTIVITY_WINDOW_DAYS = 365

T = TypeVar("T")


class UserNotFoundError(Exception):
    """Raised when GitHub reports that the requested user does not exist."""


class GitHubAPIError(Exception):
    """Raised when the profile lookup fails for reasons other than a 404."""


def activity_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the trailing 365-day window, whole UTC days on both ends."""

    today = (now or datetime.now(UTC)).astimezone(UTC).date()
    to_datetime = datetime.combine(today, time(23, 59, 59, 999000), tzinfo=UTC)
    from_day = today - timedelta(days=ACTIVITY_WINDOW_DAYS - 1)
    from_datetime = datetime.combine(from_day, time(0, 0), tzinfo=UTC)
    return from_datetime, to_datetime


async def _recover(
    awaitable: Awaitable[T], fallback: T, label: str
) -> FetchResult[T]:
    try:
        return Ok(await awaitable)
    except (httpx.HTTPError, ValueError) as exc:
        return Degraded(fallback, f"{label}: {exc}")


async def fetch_profile(client: httpx.AsyncClient, username: str) -> dict[str, Any]:
    """Fetch the profile; the only lookup whose failure aborts the request."""

    try:
        return await fetch_user(client, username)
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 404:
            raise UserNotFoundError(username) from exc
        raise GitHubAPIError("GitHub API Error") from exc
    except Exception as exc:
        raise GitHubAPIError("GitHub API Error") from exc


async def fetch_repos_result(
    client: httpx.AsyncClient, username: str
) -> FetchResult[list[dict[str, Any]]]:
    return await _recover(fetch_repos(client, username), [], "repositories")


async def fetch_search_result(
    client: httpx.AsyncClient, kind: str, query: str
) -> FetchResult[int | str]:
    return await _recover(
        fetch_search_count(client, kind, query), NOT_AVAILABLE, f"search {query!r}"
    )


async def fetch_contribution_series_result(
    client: httpx.AsyncClient,
    username: str,
    from_datetime: datetime,
    to_datetime: datetime,
    token: str | None,
    graphql_url: str,
) -> FetchResult[list[ContributionDay]]:
    """Fetch the contribution calendar, falling back to a zero-filled series."""

    from_day = from_datetime.date()
    to_day = to_datetime.date()
    fallback = build_daily_series(from_day, to_day)

    if not token:
        return Degraded(fallback, "contribution calendar: no GitHub token configured")

    result = await _recover(
        fetch_contribution_counts(client, username, from_datetime, to_datetime, graphql_url),
        None,
        "contribution calendar",
    )
    if isinstance(result, Degraded):
        return Degraded(fallback, result.reason)
    return Ok(build_daily_series(from_day, to_day, result.value))


async def fetch_avatar_result(
    client: httpx.AsyncClient, avatar_url: str | None
) -> FetchResult[str | None]:
    if not avatar_url:
        return Degraded(None, "avatar: profile has no avatar_url")
    return await _recover(fetch_image_data_uri(client, avatar_url), None, "avatar")


def summarize_stats(
    repos: list[dict[str, Any]],
    commits_last_year: int | str,
    prs_last_year: int | str,
    issues_last_year: int | str,
) -> CardStats:
    """Aggregate stars, forks and per-language counts of non-fork repositories."""

    lang_counts: dict[str, int] = {}
    for repo in repos:
        language = repo.get("language")
        if language and not repo.get("fork"):
            lang_counts[language] = lang_counts.get(language, 0) + 1

    return CardStats(
        total_stars=sum(repo.get("stargazers_count") or 0 for repo in repos),
        total_forks=sum(repo.get("forks_count") or 0 for repo in repos),
        lang_counts=lang_counts,
        commits_last_year=commits_last_year,
        prs_last_year=prs_last_year,
        issues_last_year=issues_last_year,
    )


def log_degraded(username: str, *results: FetchResult[Any]) -> None:
    for result in results:
        if isinstance(result, Degraded):
            logger.warning("Degraded data for %s: %s", username, result.reason)


async def fetch_card_data(
    username: str,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> CardData:
    """Fetch profile, repositories, search counts and the contribution series."""

    settings = settings or Settings()
    if client is None:
        async with create_github_client(settings) as owned_client:
            return await fetch_card_data(username, settings, owned_client)

    profile = await fetch_profile(client, username)

    from_datetime, to_datetime = activity_window()
    since = from_datetime.date().isoformat()

    repos, commits, prs, issues, series = await asyncio.gather(
        fetch_repos_result(client, username),
        fetch_search_result(client, "commits", f"author:{username} committer-date:>{since}"),
        fetch_search_result(client, "issues", f"author:{username} type:pr created:>{since}"),
        fetch_search_result(client, "issues", f"author:{username} type:issue created:>{since}"),
        fetch_contribution_series_result(
            client,
            username,
            from_datetime,
            to_datetime,
            settings.token,
            settings.github_graphql_url,
        ),
    )
    log_degraded(username, repos, commits, prs, issues, series)

    return CardData(
        profile=profile,
        repos=repos.value,
        stats=summarize_stats(repos.value, commits.value, prs.value, issues.value),
        activity_series=series.value,
    )


async def create_render_context(
    username: str, settings: Settings | None = None
) -> RenderContext:
    """Fetch card data plus the inlined avatar needed for rendering."""

    settings = settings or Settings()
    async with create_github_client(settings) as client:
        data = await fetch_card_data(username, settings, client)
        avatar = await fetch_avatar_result(client, data.profile.get("avatar_url"))
    log_degraded(username, avatar)

    return RenderContext(
        profile=data.profile,
        repos=data.repos,
        stats=data.stats,
        activity_series=data.activity_series,
        avatar_uri=avatar.value,
    )
