"""
Request-level CAS authentication for casguard

FastAPI dependencies for routes that need the CAS user. The authenticator is
looked up on ``app.state.cas_authenticator``, which CASAuthManager.install sets.
"""

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status

from .authenticator import CASAuthenticator
from .decision import Deny, EnforcementMode, RedirectTo, RedirectToLogin
from .session_gateway import AuthenticationMarker

logger = logging.getLogger(__name__)


def get_authenticator(request: Request) -> CASAuthenticator:
    """Get the CAS authenticator from app state"""
    authenticator = getattr(request.app.state, 'cas_authenticator', None)
    if authenticator is None:
        logger.error("CAS authenticator requested but not installed on the app")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication system not initialized"
        )
    return authenticator


async def get_current_user_optional(
    request: Request,
    authenticator: CASAuthenticator = Depends(get_authenticator)
) -> Optional[AuthenticationMarker]:
    """
    Get current CAS user if authenticated, None otherwise
    """
    return authenticator.get_user(request)


async def get_current_user(
    request: Request,
    current_user: Optional[AuthenticationMarker] = Depends(get_current_user_optional)
) -> AuthenticationMarker:
    """
    Get current CAS user

    Raises HTTPException 401 if the session is not authenticated
    """
    if current_user is None:
        logger.info(f"Unauthorized access attempt to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return current_user


def enforce(mode: EnforcementMode) -> Callable:
    """
    Create a dependency that runs the full CAS flow for a route

    Redirects are raised as HTTPException with a Location header so they
    short-circuit the route like the middleware does.

    Args:
        mode: Enforcement mode for the route

    Returns:
        Dependency returning the authenticated user
    """
    async def cas_enforcer(
        request: Request,
        authenticator: CASAuthenticator = Depends(get_authenticator)
    ) -> AuthenticationMarker:
        action = await authenticator.resolve(request, mode)

        if isinstance(action, (RedirectToLogin, RedirectTo)):
            raise HTTPException(
                status_code=status.HTTP_302_FOUND,
                detail="Redirecting",
                headers={"Location": action.url}
            )

        if isinstance(action, Deny):
            detail = "Authentication required" if action.error is None else str(action.error)
            raise HTTPException(status_code=action.status_code, detail=detail)

        current_user = authenticator.get_user(request)
        if current_user is None:
            logger.warning(f"CAS allowed {request.url.path} without an authenticated session")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required"
            )
        return current_user

    return cas_enforcer


def require_attribute(name: str, value: str) -> Callable:
    """
    Create a dependency that requires a CAS attribute value

    Multi-valued attributes match when any value is equal.
    """
    async def attribute_checker(current_user: AuthenticationMarker = Depends(get_current_user)) -> AuthenticationMarker:
        attributes = current_user.attributes or {}
        actual = attributes.get(name)
        values = actual if isinstance(actual, list) else [actual]

        if value not in values:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required {name}: {value}"
            )

        return current_user

    return attribute_checker
