"""
CAS authentication middleware for casguard

Provides Starlette middleware that enforces CAS authentication on configured
path prefixes, each with its own enforcement mode.
"""

import logging
from typing import Dict, Iterable, Optional

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .authenticator import CASAuthenticator
from .decision import EnforcementMode

logger = logging.getLogger(__name__)

# Routes that never require authentication
PUBLIC_ROUTES = {
    '/health',
    '/docs',
    '/openapi.json',
    '/favicon.ico'
}


def is_public_route(path: str, public_routes: Iterable[str] = PUBLIC_ROUTES) -> bool:
    """
    Check if route is public (doesn't require authentication)

    Args:
        path: Request path
        public_routes: Exact paths that are public

    Returns:
        True if route is public
    """
    if path in public_routes:
        return True

    # CAS endpoints handle their own authentication
    if path.startswith('/auth/'):
        return True

    if path.startswith('/static/'):
        return True

    return False


class CASMiddleware(BaseHTTPMiddleware):
    """
    Starlette middleware for CAS authentication

    Must be wrapped by SessionMiddleware, i.e. added to the app before it.
    """

    def __init__(
        self,
        app,
        authenticator: CASAuthenticator,
        protected_routes: Dict[str, EnforcementMode],
        public_routes: Optional[Iterable[str]] = None
    ):
        """
        Initialize CAS middleware

        Args:
            app: ASGI application
            authenticator: CAS authenticator shared by all requests
            protected_routes: Path prefix -> enforcement mode
            public_routes: Exact paths that skip authentication
        """
        super().__init__(app)
        self.authenticator = authenticator
        self.public_routes = set(public_routes) if public_routes is not None else set(PUBLIC_ROUTES)

        # Longest prefix first so the most specific rule wins
        self.protected_routes = dict(
            sorted(
                ((prefix, EnforcementMode(mode)) for prefix, mode in protected_routes.items()),
                key=lambda item: len(item[0]),
                reverse=True
            )
        )

        logger.info(f"Initialized CAS middleware for routes: {list(self.protected_routes)}")

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if is_public_route(path, self.public_routes):
            return await call_next(request)

        mode = self.mode_for(path)
        if mode is None:
            return await call_next(request)

        try:
            response = await self.authenticator.handle(request, mode)
        except Exception as e:
            logger.error(f"CAS middleware error on {path}: {e}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Authentication system error", "detail": str(e)}
            )

        if response is not None:
            logger.debug(f"CAS {mode.value} intercepted {path} with {response.status_code}")
            return response

        marker = self.authenticator.get_user(request)
        request.state.user = marker
        request.state.authenticated = marker is not None

        return await call_next(request)

    def mode_for(self, path: str) -> Optional[EnforcementMode]:
        """
        Find the enforcement mode for a path

        Returns:
            The mode of the longest matching prefix, None if unprotected
        """
        for prefix, mode in self.protected_routes.items():
            if prefix == '/' or path == prefix or path.startswith(prefix.rstrip('/') + '/'):
                return mode
        return None
