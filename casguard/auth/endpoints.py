"""
CAS authentication endpoints for casguard

Provides login, logout, user info, AJAX ticket validation and health endpoints.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from .authenticator import CASAuthenticator
from .exceptions import TransportError
from .request_auth import get_current_user
from .session_gateway import AuthenticationMarker

logger = logging.getLogger(__name__)


# Response models
class UserInfoResponse(BaseModel):
    """Current user information"""
    user: str
    attributes: Dict[str, Any] = {}
    authenticated: bool = True


class TicketValidationRequest(BaseModel):
    """AJAX ticket validation request"""
    ticket: str
    service: Optional[str] = None


class TicketValidationResponse(BaseModel):
    """Outcome of an AJAX ticket validation"""
    success: bool
    user: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None


class AuthHealthResponse(BaseModel):
    """Authentication system health"""
    status: str
    cas: Dict[str, Any]
    message: Optional[str] = None


def create_cas_router(authenticator: CASAuthenticator) -> APIRouter:
    """
    Create CAS authentication router

    The CAS service_url should point at ``/auth/login`` so the ticket comes
    back to the login endpoint.

    Args:
        authenticator: CAS authenticator

    Returns:
        Configured FastAPI router
    """
    router = APIRouter(tags=["authentication"])

    @router.get("/auth/login")
    async def login(request: Request):
        """
        Authenticate through CAS and return to the original page
        """
        logger.info("🔐 AUTH ENDPOINT: /auth/login")

        response = await authenticator.bounce_redirect(request)
        if response is not None:
            return response

        # Dev mode lets the request through without a redirect target
        target = authenticator.gateway.consume_return_target(request.session) or '/'
        return RedirectResponse(url=target, status_code=status.HTTP_302_FOUND)

    @router.get("/auth/logout")
    async def logout(request: Request):
        """
        Logout current user and redirect to the CAS logout
        """
        logger.info("🔐 AUTH ENDPOINT: /auth/logout")
        return await authenticator.logout(request)

    @router.get("/auth/user", response_model=UserInfoResponse)
    async def get_current_user_info(current_user: AuthenticationMarker = Depends(get_current_user)):
        """
        Get current CAS user information
        """
        return UserInfoResponse(
            user=current_user.principal,
            attributes=current_user.attributes or {}
        )

    @router.post("/auth/validate", response_model=TicketValidationResponse)
    async def validate_ticket(payload: TicketValidationRequest):
        """
        Validate a service ticket for an AJAX client

        The session is not modified.
        """
        logger.info("🔐 AUTH ENDPOINT: /auth/validate")

        try:
            outcome = await authenticator.validate_ticket(payload.ticket, payload.service)
        except TransportError as e:
            logger.error(f"CAS server unreachable during AJAX validation: {e}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"CAS server unavailable: {e}"
            )

        if outcome.ok:
            return TicketValidationResponse(
                success=True,
                user=outcome.principal,
                attributes=outcome.attributes
            )

        logger.warning(f"AJAX ticket validation failed: {outcome.error}")
        return TicketValidationResponse(
            success=False,
            error=type(outcome.error).__name__,
            code=outcome.code,
            description=outcome.description
        )

    @router.get("/auth/health", response_model=AuthHealthResponse)
    async def auth_health_check():
        """
        Authentication system health check
        """
        try:
            cas_health = await authenticator.health_check()
            message = None
            overall_status = "healthy"
            if cas_health["client"].get("client_closed"):
                overall_status = "degraded"
                message = "CAS HTTP client is closed"

            return AuthHealthResponse(status=overall_status, cas=cas_health, message=message)

        except Exception as e:
            logger.error(f"Auth health check failed: {e}")
            return AuthHealthResponse(
                status="error",
                cas={"error": str(e)},
                message=f"Health check failed: {str(e)}"
            )

    return router
