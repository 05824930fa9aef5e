import logging
from urllib.parse import quote

from fastapi import APIRouter
from fastapi import Query
from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.responses import JSONResponse
from fastapi.responses import Response

from gitcard.api.pages import render_card_page
from gitcard.api.pages import render_panels_page
from gitcard.api.schemas.card import CardManifest
from gitcard.api.schemas.card import PanelLink
from gitcard.api.schemas.card import PanelsManifest
from gitcard.core.errors import CardAPIError
from gitcard.models import CardData
from gitcard.sections import SECTION_DEFINITIONS
from gitcard.services.card_service import GitHubAPIError
from gitcard.services.card_service import UserNotFoundError
from gitcard.services.card_service import create_render_context
from gitcard.services.card_service import fetch_card_data
from gitcard.services.render_service import COMPOSITE_SECTION_IDS
from gitcard.services.render_service import render_image

logger = logging.getLogger(__name__)

SECTION_TTL_SECONDS = 86400
SECTION_STALE_SECONDS = 86400
MANIFEST_TTL_SECONDS = 900
MANIFEST_STALE_SECONDS = 900

AVAILABLE_SECTIONS = [section.id for section in SECTION_DEFINITIONS] + list(COMPOSITE_SECTION_IDS)

router = APIRouter(prefix="/api/card")


def cache_headers(ttl_seconds: int, stale_seconds: int) -> dict[str, str]:
    """Browser revalidates every time; the CDN keeps the response for `ttl_seconds`."""

    edge_policy = f"public, max-age={ttl_seconds}, stale-while-revalidate={stale_seconds}"
    return {
        "Cache-Control": "public, max-age=0, must-revalidate",
        "CDN-Cache-Control": edge_policy,
        "Vercel-CDN-Cache-Control": edge_policy,
    }


def request_origin(request: Request) -> str:
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or request.url.netloc
    forwarded_proto = request.headers.get("x-forwarded-proto")
    proto = forwarded_proto.split(",")[0].strip() if forwarded_proto else request.url.scheme
    return f"{proto}://{host}"


def card_base_url(request: Request, username: str) -> str:
    return f"{request_origin(request)}/api/card/{quote(username, safe='')}"


def require_username(username: str) -> str:
    username = username.strip()
    if not username:
        raise CardAPIError(status_code=400, error="Missing username")
    return username


async def load_card_data(username: str, failure_message: str) -> CardData:
    try:
        return await fetch_card_data(username)
    except UserNotFoundError as exc:
        raise CardAPIError(status_code=404, error="User not found") from exc
    except GitHubAPIError as exc:
        logger.exception("GitHub lookup failed for %s", username)
        raise CardAPIError(status_code=500, error=failure_message) from exc


def manifest_response(username: str, data: CardData) -> JSONResponse:
    manifest = CardManifest.from_card_data(username, data)
    return JSONResponse(
        content=manifest.model_dump(mode="json", by_alias=True),
        headers=cache_headers(MANIFEST_TTL_SECONDS, MANIFEST_STALE_SECONDS),
    )


@router.get("/")
async def missing_username() -> None:
    """Reject requests that do not name a user."""

    raise CardAPIError(status_code=400, error="Missing username")


@router.get("/{username}")
async def get_card(
    username: str,
    request: Request,
    response_format: str = Query(default="", alias="format"),
) -> Response:
    """Return the HTML card page, or the JSON manifest with `?format=json`."""

    username = require_username(username)
    data = await load_card_data(
        username,
        "Failed to generate card page. User may not exist or rate limits exceeded.",
    )

    if response_format.lower() == "json":
        return manifest_response(username, data)

    return HTMLResponse(
        content=render_card_page(username, data, card_base_url(request, username)),
        headers=cache_headers(MANIFEST_TTL_SECONDS, MANIFEST_STALE_SECONDS),
    )


@router.get("/{username}/panels")
async def get_panels(
    username: str,
    request: Request,
    response_format: str = Query(default="", alias="format"),
) -> Response:
    """Return the panel page, or the list of panel image URLs with `?format=json`."""

    username = require_username(username)
    base_url = card_base_url(request, username)
    headers = cache_headers(MANIFEST_TTL_SECONDS, MANIFEST_STALE_SECONDS)

    if response_format.lower() == "json":
        manifest = PanelsManifest(
            username=username,
            panels=[
                PanelLink(id=section.id, label=section.label, url=f"{base_url}/{section.id}.png")
                for section in SECTION_DEFINITIONS
                if section.id != "header"
            ],
        )
        return JSONResponse(content=manifest.model_dump(mode="json"), headers=headers)

    return HTMLResponse(content=render_panels_page(username, base_url), headers=headers)


@router.get("/{username}/activity-data")
async def get_activity_data(username: str) -> JSONResponse:
    """Return the fetched profile, repositories, stats and activity series."""

    username = require_username(username)
    data = await load_card_data(username, "Failed to fetch activity data.")
    return manifest_response(username, data)


@router.get("/{username}/{section_file}")
async def get_section_image(username: str, section_file: str) -> Response:
    """Render one section, or a composite of several, as a PNG image."""

    username = require_username(username)
    section_id = section_file.removesuffix(".png")
    if not section_id:
        raise CardAPIError(status_code=400, error="Missing username or section id")

    if section_id not in AVAILABLE_SECTIONS:
        raise CardAPIError(
            status_code=404,
            error="Unknown section id",
            extra={"availableSections": AVAILABLE_SECTIONS},
        )

    try:
        context = await create_render_context(username)
        rendered = await render_image(section_id, context)
    except UserNotFoundError as exc:
        raise CardAPIError(status_code=404, error="User not found") from exc
    except Exception as exc:
        logger.exception("Error generating section %s for %s", section_id, username)
        raise CardAPIError(status_code=500, error="Failed to generate section image.") from exc

    return Response(
        content=rendered.png,
        media_type="image/png",
        headers=cache_headers(SECTION_TTL_SECONDS, SECTION_STALE_SECONDS),
    )
