import pytest
from conftest import make_context
from conftest import make_profile
from conftest import make_repo
from fastapi.testclient import TestClient

from gitcard.main import create_app
from gitcard.models import NOT_AVAILABLE
from gitcard.models import CardData
from gitcard.models import CardStats
from gitcard.services.card_service import GitHubAPIError
from gitcard.services.card_service import UserNotFoundError
from gitcard.services.render_service import RenderedSection

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


def make_card_data() -> CardData:
    context = make_context()
    return CardData(
        profile=make_profile(name="Jane <Doe>"),
        repos=[make_repo("hello-world", 1500)],
        stats=CardStats(
            total_stars=1500,
            total_forks=1,
            lang_counts={"Python": 1},
            commits_last_year=321,
            prs_last_year=NOT_AVAILABLE,
            issues_last_year=3,
        ),
        activity_series=context.activity_series,
    )


@pytest.fixture
def client(monkeypatch) -> TestClient:
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "100")
    return TestClient(create_app())


@pytest.fixture
def fake_card_data(monkeypatch) -> list[str]:
    calls: list[str] = []

    async def fake_fetch_card_data(username: str) -> CardData:
        calls.append(username)
        return make_card_data()

    monkeypatch.setattr("gitcard.api.routes.card.fetch_card_data", fake_fetch_card_data)
    return calls


@pytest.fixture
def fake_renderer(monkeypatch) -> list[str]:
    rendered: list[str] = []

    async def fake_create_render_context(username: str):
        return make_context()

    async def fake_render_image(section_id: str, context) -> RenderedSection:
        rendered.append(section_id)
        return RenderedSection(id=section_id, label=section_id, width=1664, height=400, png=PNG_BYTES)

    monkeypatch.setattr("gitcard.api.routes.card.create_render_context", fake_create_render_context)
    monkeypatch.setattr("gitcard.api.routes.card.render_image", fake_render_image)
    return rendered


def test_health_live(client: TestClient) -> None:
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_missing_username_is_rejected(client: TestClient) -> None:
    response = client.get("/api/card/")

    assert response.status_code == 400
    assert response.json() == {"error": "Missing username"}


def test_section_image_is_served_with_edge_cache_headers(
    client: TestClient, fake_renderer: list[str]
) -> None:
    """Browsers always revalidate while the CDN keeps images for a day."""

    response = client.get("/api/card/octocat/stats.png")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content == PNG_BYTES
    assert response.headers["Cache-Control"] == "public, max-age=0, must-revalidate"
    assert response.headers["CDN-Cache-Control"] == "public, max-age=86400, stale-while-revalidate=86400"
    assert response.headers["Vercel-CDN-Cache-Control"] == response.headers["CDN-Cache-Control"]
    assert fake_renderer == ["stats"]


@pytest.mark.parametrize("section_file", ["panels.png", "full.png", "languages"])
def test_composite_and_extensionless_sections(
    client: TestClient, fake_renderer: list[str], section_file: str
) -> None:
    response = client.get(f"/api/card/octocat/{section_file}")

    assert response.status_code == 200
    assert fake_renderer == [section_file.removesuffix(".png")]


def test_unknown_section_lists_available_sections(
    client: TestClient, fake_renderer: list[str]
) -> None:
    response = client.get("/api/card/octocat/unknown.png")

    assert response.status_code == 404
    assert response.json() == {
        "error": "Unknown section id",
        "availableSections": [
            "header",
            "stats",
            "activity",
            "languages",
            "repositories",
            "panels",
            "full",
        ],
    }
    assert fake_renderer == []


def test_section_for_missing_user_returns_404(client: TestClient, monkeypatch) -> None:
    async def missing_user(username: str):
        raise UserNotFoundError(username)

    monkeypatch.setattr("gitcard.api.routes.card.create_render_context", missing_user)

    response = client.get("/api/card/ghost/stats.png")

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


def test_render_failure_returns_500(client: TestClient, monkeypatch) -> None:
    async def fake_create_render_context(username: str):
        return make_context()

    async def broken_render_image(section_id: str, context):
        raise RuntimeError("cairo exploded")

    monkeypatch.setattr("gitcard.api.routes.card.create_render_context", fake_create_render_context)
    monkeypatch.setattr("gitcard.api.routes.card.render_image", broken_render_image)

    response = client.get("/api/card/octocat/activity.png")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to generate section image."}


def test_card_page_escapes_profile_text(client: TestClient, fake_card_data: list[str]) -> None:
    response = client.get("/api/card/octocat", headers={"host": "cards.example.com"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Jane &lt;Doe&gt;" in response.text
    assert "Jane <Doe>" not in response.text
    assert "http://cards.example.com/api/card/octocat/activity.png?v=14" in response.text
    assert response.headers["CDN-Cache-Control"] == "public, max-age=900, stale-while-revalidate=900"
    assert fake_card_data == ["octocat"]


def test_card_json_manifest_uses_camel_case(client: TestClient, fake_card_data: list[str]) -> None:
    response = client.get("/api/card/octocat", params={"format": "json"})

    body = response.json()
    assert response.status_code == 200
    assert body["username"] == "octocat"
    assert body["stats"]["totalStars"] == 1500
    assert body["stats"]["prsLastYear"] == NOT_AVAILABLE
    assert len(body["activitySeries"]) == 365
    assert body["activitySeries"][0] == {"date": "2025-01-01", "count": 0}


def test_activity_data_returns_manifest(client: TestClient, fake_card_data: list[str]) -> None:
    response = client.get("/api/card/octocat/activity-data")

    assert response.status_code == 200
    assert response.json()["stats"]["langCounts"] == {"Python": 1}


def test_card_for_missing_user_returns_404(client: TestClient, monkeypatch) -> None:
    async def missing_user(username: str):
        raise UserNotFoundError(username)

    monkeypatch.setattr("gitcard.api.routes.card.fetch_card_data", missing_user)

    response = client.get("/api/card/ghost")

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


def test_card_upstream_failure_returns_500(client: TestClient, monkeypatch) -> None:
    async def upstream_failure(username: str):
        raise GitHubAPIError("GitHub API Error")

    monkeypatch.setattr("gitcard.api.routes.card.fetch_card_data", upstream_failure)

    response = client.get("/api/card/octocat")

    assert response.status_code == 500
    assert response.json()["error"].startswith("Failed to generate card page.")


def test_panels_json_lists_panel_urls(client: TestClient) -> None:
    response = client.get(
        "/api/card/octocat/panels",
        params={"format": "json"},
        headers={"host": "cards.example.com", "x-forwarded-proto": "https"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "username": "octocat",
        "panels": [
            {"id": "stats", "label": "Stats", "url": "https://cards.example.com/api/card/octocat/stats.png"},
            {
                "id": "activity",
                "label": "Contribution Activity",
                "url": "https://cards.example.com/api/card/octocat/activity.png",
            },
            {
                "id": "languages",
                "label": "Language Distribution",
                "url": "https://cards.example.com/api/card/octocat/languages.png",
            },
            {
                "id": "repositories",
                "label": "Most Starred Repositories",
                "url": "https://cards.example.com/api/card/octocat/repositories.png",
            },
        ],
    }


def test_panels_page_embeds_versioned_images(client: TestClient) -> None:
    response = client.get("/api/card/octocat/panels", headers={"host": "cards.example.com"})

    assert response.status_code == 200
    assert "repositories.png?v=14" in response.text
    assert "header.png" not in response.text
