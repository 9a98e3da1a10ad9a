"""Custom CORS middleware for handling different origin policies."""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"


class CustomCORSMiddleware(BaseHTTPMiddleware):
    """Allows any origin on the tracking endpoints embedded in customer sites."""

    def __init__(self, app, restricted_origins: list, tracking_paths: list = None):
        super().__init__(app)
        self.restricted_origins = restricted_origins
        self.tracking_paths = tracking_paths or []

    async def dispatch(self, request: Request, call_next):
        """Handle CORS based on the endpoint."""
        is_tracking_endpoint = any(request.url.path.startswith(path) for path in self.tracking_paths)

        if is_tracking_endpoint:
            return await self._handle_open_cors(request, call_next)

        return await self._handle_restricted_cors(request, call_next)

    def _preflight(self, origin: str) -> StarletteResponse:
        response = StarletteResponse()
        if origin:
            response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        response.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
        response.headers["Access-Control-Max-Age"] = "600"
        return response

    async def _handle_open_cors(self, request: Request, call_next):
        """Handle CORS for tracking endpoints - echo whatever origin calls."""
        origin = request.headers.get("origin")

        if request.method == "OPTIONS":
            return self._preflight(origin)

        response = await call_next(request)

        if origin:
            response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

        return response

    async def _handle_restricted_cors(self, request: Request, call_next):
        """Handle CORS for restricted endpoints."""
        origin = request.headers.get("origin")

        # Allow same-origin requests (no origin header or same host)
        if not origin or origin == str(request.base_url).rstrip('/'):
            return await call_next(request)

        if origin not in self.restricted_origins:
            return StarletteResponse(
                content="Disallowed CORS origin",
                status_code=400,
                headers={"Content-Type": "text/plain"}
            )

        if request.method == "OPTIONS":
            return self._preflight(origin)

        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

        return response
