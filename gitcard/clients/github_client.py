import base64
from collections.abc import Mapping
from datetime import date
from datetime import datetime
from typing import Any

import httpx

from gitcard.settings import Settings

CONTRIBUTION_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      contributionCalendar {
        weeks {
          contributionDays {
            date
            contributionCount
          }
        }
      }
    }
  }
}
"""


def build_headers(token: str | None, user_agent: str) -> dict[str, str]:
    headers = {
        "User-Agent": user_agent,
        "Accept": "application/vnd.github+json",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def create_github_client(settings: Settings) -> httpx.AsyncClient:
    """Create an async client preconfigured for the GitHub REST API."""

    return httpx.AsyncClient(
        base_url=settings.github_api_url,
        headers=build_headers(settings.token, settings.user_agent),
        timeout=settings.http_timeout_seconds,
    )


async def fetch_user(client: httpx.AsyncClient, username: str) -> dict[str, Any]:
    """Fetch the public profile of `username` from GitHub REST API."""

    response = await client.get(f"/users/{username}")
    response.raise_for_status()

    payload: Any = response.json()
    if not isinstance(payload, Mapping):
        raise ValueError("GitHub user response is invalid")
    return dict(payload)


async def fetch_repos(client: httpx.AsyncClient, username: str) -> list[dict[str, Any]]:
    """Fetch up to 100 public repositories, most recently pushed first."""

    response = await client.get(
        f"/users/{username}/repos",
        params={"per_page": 100, "sort": "pushed"},
    )
    response.raise_for_status()

    payload: Any = response.json()
    if not isinstance(payload, list):
        raise ValueError("GitHub repository response is invalid")
    return [dict(item) for item in payload if isinstance(item, Mapping)]


async def fetch_search_count(client: httpx.AsyncClient, kind: str, query: str) -> int:
    """Return `total_count` of a search query; `kind` is `commits` or `issues`."""

    response = await client.get(f"/search/{kind}", params={"q": query})
    response.raise_for_status()

    payload: Any = response.json()
    total_count = payload.get("total_count") if isinstance(payload, Mapping) else None
    if not isinstance(total_count, int):
        raise ValueError("GitHub search response is missing total_count")
    return total_count


async def fetch_contribution_counts(
    client: httpx.AsyncClient,
    username: str,
    from_datetime: datetime,
    to_datetime: datetime,
    graphql_url: str,
) -> dict[date, int]:
    """Fetch daily contribution counts for a user from GitHub GraphQL API."""

    if "Authorization" not in client.headers:
        raise ValueError("GITHUB_TOKEN is required for GraphQL requests")

    variables = {
        "login": username,
        "from": from_datetime.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "to": to_datetime.strftime("%Y-%m-%dT%H:%M:%SZ"),
    }

    response = await client.post(
        graphql_url,
        json={"query": CONTRIBUTION_QUERY, "variables": variables},
        headers={"Content-Type": "application/json"},
    )
    response.raise_for_status()

    payload = response.json()
    if not isinstance(payload, Mapping):
        raise ValueError("GitHub GraphQL response is invalid")

    errors = payload.get("errors")
    if errors:
        message = None
        if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
            message = errors[0].get("message")
        raise ValueError(message or "GitHub GraphQL returned errors")

    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise ValueError("GitHub GraphQL data is missing")

    user = data.get("user")
    if not isinstance(user, Mapping):
        raise ValueError("GitHub user not found")

    collection = user.get("contributionsCollection")
    if not isinstance(collection, Mapping):
        raise ValueError("GitHub contributionsCollection is missing")

    calendar = collection.get("contributionCalendar")
    if not isinstance(calendar, Mapping):
        raise ValueError("GitHub contributionCalendar is missing")

    weeks = calendar.get("weeks")
    if not isinstance(weeks, list):
        raise ValueError("GitHub contribution weeks are missing")

    counts: dict[date, int] = {}
    for week in weeks:
        if not isinstance(week, Mapping):
            continue
        contribution_days = week.get("contributionDays")
        if not isinstance(contribution_days, list):
            continue
        for item in contribution_days:
            if not isinstance(item, Mapping):
                continue
            raw_date = item.get("date")
            raw_count = item.get("contributionCount")
            if not isinstance(raw_date, str) or not isinstance(raw_count, int):
                continue
            try:
                counts[date.fromisoformat(raw_date)] = raw_count
            except ValueError:
                continue

    return counts


async def fetch_image_data_uri(client: httpx.AsyncClient, url: str) -> str:
    """Download an image and inline it as a base64 `data:` URI.

    The GitHub token is only sent when the image lives on the API host.
    """

    request = client.build_request("GET", url)
    if request.url.host != client.base_url.host:
        request.headers.pop("Authorization", None)

    response = await client.send(request, follow_redirects=True)
    response.raise_for_status()

    content_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
    encoded = base64.b64encode(response.content).decode("ascii")
    return f"data:{content_type or 'image/png'};base64,{encoded}"
