from typing import Callable, List, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from schooldata.config import settings

logger = structlog.get_logger()


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware to enforce authentication for all routes except those explicitly excluded.
    """

    def __init__(
        self,
        app: ASGIApp,
        public_paths: Optional[List[str]] = None,
        public_path_prefixes: Optional[List[str]] = None,
    ):
        """
        Initialize the auth middleware.

        Args:
            app: The ASGI app
            public_paths: List of exact paths that are publicly accessible
            public_path_prefixes: List of path prefixes that are publicly accessible
        """
        super().__init__(app)
        prefix = settings.API_PREFIX
        self.public_paths = public_paths or [
            "/docs",
            "/redoc",
            f"{prefix}/openapi.json",
            f"{prefix}/auth/login",
            f"{prefix}/auth/logout",
            f"{prefix}/health",
        ]

        self.public_path_prefixes = public_path_prefixes or [
            "/docs/",
            "/redoc/",
        ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip authentication for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path

        if path in self.public_paths:
            return await call_next(request)

        for prefix in self.public_path_prefixes:
            if path.startswith(prefix):
                return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            logger.info("Rejected unauthenticated request", path=path, method=request.method)
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={
                    "error": {
                        "code": "AUTHENTICATION_ERROR",
                        "message": "No token provided",
                    }
                },
            )

        # The token itself is validated by the endpoint's dependency
        return await call_next(request)


def setup_auth_middleware(app: FastAPI):
    """
    Set up the authentication middleware for the application.

    Args:
        app: The FastAPI application
    """
    app.add_middleware(AuthMiddleware)
