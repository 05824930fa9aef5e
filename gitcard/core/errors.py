from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class CardAPIError(Exception):
    """Error surfaced to clients as a JSON `{"error": ...}` body."""

    def __init__(
        self,
        status_code: int,
        error: str,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.extra = extra or {}


async def card_api_error_handler(request: Request, exc: CardAPIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, **exc.extra},
    )
