"""API key authentication middleware."""

import secrets
from collections.abc import Awaitable, Callable, Iterable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

API_KEY_HEADER = "X-API-Key"

PUBLIC_PREFIXES: tuple[str, ...] = ("/api/v1/health/",)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Requires a matching ``X-API-Key`` header outside the public prefixes.

    Probes and CORS preflight requests pass without a key. Rejections use
    the same ``{"detail": ...}`` body as the API's own errors.
    """

    def __init__(
        self,
        app: Callable[..., Awaitable[Response]],
        api_key: str,
        public_prefixes: Iterable[str] = PUBLIC_PREFIXES,
    ) -> None:
        """Initialize middleware with API key.

        Args:
            app: ASGI application.
            api_key: Expected API key value.
            public_prefixes: Path prefixes served without a key.
        """
        super().__init__(app)  # type: ignore[arg-type]
        self._api_key = api_key
        self._public_prefixes = tuple(public_prefixes)

    def is_public(self, request: Request) -> bool:
        """Whether a request may skip the key check."""
        return request.method == "OPTIONS" or request.url.path.startswith(self._public_prefixes)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Reject requests that carry no key or the wrong one."""
        if self.is_public(request):
            return await call_next(request)

        provided = request.headers.get(API_KEY_HEADER, "")
        if not provided:
            detail = f"Missing {API_KEY_HEADER} header"
        elif not secrets.compare_digest(provided, self._api_key):
            detail = "Invalid API key"
        else:
            return await call_next(request)

        logger.warning("api_key_rejected", path=request.url.path, reason=detail)
        return JSONResponse(status_code=401, content={"detail": detail})
