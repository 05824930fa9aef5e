from fastapi import FastAPI

from gitcard.api.routes.card import router as card_router
from gitcard.api.routes.health import router as health_router
from gitcard.core.errors import CardAPIError
from gitcard.core.errors import card_api_error_handler
from gitcard.core.middleware import ImageRateLimitMiddleware
from gitcard.core.observability import configure_logging
from gitcard.core.observability import init_sentry
from gitcard.settings import Settings


def create_app() -> FastAPI:
    settings = Settings()
    configure_logging(settings)
    init_sentry(settings)

    app = FastAPI(title="gitcard")
    app.add_middleware(
        ImageRateLimitMiddleware,
        requests_per_window=settings.rate_limit_per_minute,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_exception_handler(CardAPIError, card_api_error_handler)
    app.include_router(health_router)
    app.include_router(card_router)
    return app


app = create_app()
