"""
CAS request handling for casguard

CASAuthenticator drives one request through the decision engine, performs the
ticket validation round-trip when the engine asks for it, and turns the final
Action into a Starlette response.
"""

import logging
from typing import Any, Dict, Optional

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette import status

from .config import CASConfig
from .decision import (
    Action,
    Allow,
    AuthDecisionEngine,
    Deny,
    EnforcementMode,
    RedirectTo,
    RedirectToLogin,
    RequestContext,
    ValidateTicket,
)
from .exceptions import TransportError
from .protocol_client import ProtocolClient
from .session_gateway import AuthenticationMarker, SessionGateway
from .ticket_validator import TicketValidator, ValidationOutcome

logger = logging.getLogger(__name__)


class CASAuthenticator:
    """
    Enforces CAS authentication on Starlette/FastAPI requests

    All components share the same immutable CASConfig. The session is taken
    from ``request.session``, so Starlette's SessionMiddleware (or another
    middleware populating ``scope["session"]``) must wrap the application.
    """

    def __init__(
        self,
        config: CASConfig,
        gateway: Optional[SessionGateway] = None,
        client: Optional[ProtocolClient] = None
    ):
        """
        Initialize CAS authenticator

        Args:
            config: CAS configuration
            gateway: Session gateway (built from config when omitted)
            client: CAS protocol client (built from config when omitted)
        """
        self.config = config
        self.gateway = gateway or SessionGateway(config)
        self.client = client or ProtocolClient(config, TicketValidator())
        self.engine = AuthDecisionEngine(config, self.gateway)

        logger.info(f"CAS url: {config.cas_url} (protocol {config.cas_version})")
        if config.is_dev_mode:
            logger.warning(f"CAS dev mode is enabled, every session is {config.dev_mode_user!r}")

    def build_context(self, request: Request) -> RequestContext:
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        return RequestContext(
            query=dict(request.query_params),
            path=path,
            session=request.session
        )

    async def resolve(self, request: Request, mode: EnforcementMode) -> Action:
        """
        Decide the final action for a request, validating a ticket if needed

        Args:
            request: Incoming request
            mode: Enforcement mode

        Returns:
            Allow, RedirectToLogin, RedirectTo or Deny
        """
        context = self.build_context(request)
        action = self.engine.decide(context, mode)

        if isinstance(action, ValidateTicket):
            try:
                outcome = await self.client.validate(action.ticket, self.config.service_url)
            except TransportError as e:
                return self.engine.fail(e)
            return self.engine.commit(context, mode, outcome)

        return action

    async def handle(self, request: Request, mode: EnforcementMode) -> Optional[Response]:
        """
        Handle a request with CAS authentication

        Returns:
            None when the request may proceed, otherwise the response to send
        """
        action = await self.resolve(request, mode)
        return self.to_response(action)

    async def bounce(self, request: Request) -> Optional[Response]:
        """Redirect unauthenticated requests to the CAS login"""
        return await self.handle(request, EnforcementMode.BOUNCE)

    async def bounce_redirect(self, request: Request) -> Optional[Response]:
        """Like bounce, but authenticated users are sent on to their return target"""
        return await self.handle(request, EnforcementMode.BOUNCE_REDIRECT)

    async def block(self, request: Request) -> Optional[Response]:
        """Answer unauthenticated requests with 401"""
        return await self.handle(request, EnforcementMode.BLOCK)

    async def logout(self, request: Request) -> RedirectResponse:
        """
        Logout the current CAS user and redirect to the CAS logout
        """
        marker = self.gateway.get_marker(request.session)
        self.gateway.clear_marker(request.session)

        if marker:
            logger.info(f"Logged out CAS user: {marker.principal}")

        return RedirectResponse(url=self.gateway.build_logout_url(), status_code=status.HTTP_302_FOUND)

    async def validate_ticket(self, ticket: str, service_url: Optional[str] = None) -> ValidationOutcome:
        """
        Validate a ticket without touching any session (AJAX flow)

        Raises:
            TransportError: If the CAS server cannot be reached
        """
        return await self.client.validate(ticket, service_url or self.config.service_url)

    def get_user(self, request: Request) -> Optional[AuthenticationMarker]:
        return self.gateway.get_marker(request.session)

    def to_response(self, action: Action) -> Optional[Response]:
        if isinstance(action, Allow):
            return None

        if isinstance(action, (RedirectToLogin, RedirectTo)):
            return RedirectResponse(url=action.url, status_code=status.HTTP_302_FOUND)

        if isinstance(action, Deny):
            content: Dict[str, Any] = {"error": "Authentication required"}
            if action.error is not None:
                content["error"] = "CAS authentication failed"
                content["message"] = str(action.error)
                code = getattr(action.error, 'code', None)
                if code:
                    content["code"] = code
            return JSONResponse(status_code=action.status_code, content=content)

        raise TypeError(f"Unexpected CAS action: {action!r}")

    async def health_check(self) -> Dict[str, Any]:
        return {
            "cas_url": self.config.cas_url,
            "cas_version": self.config.cas_version,
            "service_url": self.config.service_url,
            "dev_mode": self.config.is_dev_mode,
            "client": await self.client.health_check()
        }

    async def cleanup(self) -> None:
        await self.client.cleanup()
