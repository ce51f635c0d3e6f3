"""
Per-request CAS authentication decisions

AuthDecisionEngine maps the state of a request (session marker, query
parameters, dev mode) and an enforcement mode onto the next Action. It never
performs I/O: when a ticket has to be validated it says so with
ValidateTicket and the caller feeds the outcome back through commit().
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Union

from .config import CASConfig
from .exceptions import CASError
from .session_gateway import Session, SessionGateway
from .ticket_validator import ValidationOutcome

logger = logging.getLogger(__name__)

TICKET_PARAM = 'ticket'
RETURN_TO_PARAM = 'returnTo'
REDIRECT_TO_PARAM = 'redirectTo'

# Where BOUNCE_REDIRECT sends an authenticated user with nowhere else to go
DEFAULT_RETURN_TARGET = '/'


def is_local_target(target: Optional[str]) -> bool:
    """True for same-origin paths such as ``/app/reports?year=2024``"""
    if not target or not target.startswith('/'):
        return False
    return not target.startswith(('//', '/\\'))


class EnforcementMode(str, Enum):
    """What happens to a request that is not authenticated yet"""
    BOUNCE = "bounce"
    BOUNCE_REDIRECT = "bounce_redirect"
    BLOCK = "block"


@dataclass
class RequestContext:
    """
    The parts of an inbound request the engine looks at

    Attributes:
        query: Query (or form) parameters
        path: Original request path, including the query string
        session: Mutable session owned by the host framework
    """
    query: Mapping[str, str]
    path: str
    session: Session = field(repr=False)

    @property
    def ticket(self) -> Optional[str]:
        return self.query.get(TICKET_PARAM) or None

    @property
    def return_to(self) -> Optional[str]:
        return self._local(RETURN_TO_PARAM)

    @property
    def explicit_target(self) -> Optional[str]:
        """Caller-supplied post-login destination, off-site targets are ignored"""
        return self._local(REDIRECT_TO_PARAM) or self.return_to

    def _local(self, name: str) -> Optional[str]:
        target = self.query.get(name)
        return target if is_local_target(target) else None


@dataclass(frozen=True)
class Allow:
    """Let the request through to the application"""


@dataclass(frozen=True)
class RedirectToLogin:
    url: str


@dataclass(frozen=True)
class RedirectTo:
    url: str


@dataclass(frozen=True)
class Deny:
    status_code: int = 401
    error: Optional[CASError] = None


@dataclass(frozen=True)
class ValidateTicket:
    ticket: str


Action = Union[Allow, RedirectToLogin, RedirectTo, Deny, ValidateTicket]


class AuthDecisionEngine:
    """
    Decides the next step for a request under a given enforcement mode
    """

    def __init__(self, config: CASConfig, gateway: SessionGateway):
        self.config = config
        self.gateway = gateway

    def decide(self, context: RequestContext, mode: EnforcementMode) -> Action:
        """
        Decide what to do with a request

        Rules are checked in order and the first match wins:
        authenticated session, dev mode, BLOCK, ticket present, login redirect.

        Args:
            context: Request state
            mode: Enforcement mode of the protected route

        Returns:
            The next Action
        """
        session = context.session

        if self.gateway.is_authenticated(session):
            return self._authenticated(context, mode)

        if self.config.is_dev_mode:
            self.gateway.write_marker(session, self.config.dev_mode_user, self.config.dev_mode_info)
            logger.debug(f"Dev mode: session set to {self.config.dev_mode_user!r}")
            if context.explicit_target:
                return RedirectTo(context.explicit_target)
            return Allow()

        if mode is EnforcementMode.BLOCK:
            logger.debug(f"Blocking unauthenticated request to {context.path}")
            return Deny(401)

        ticket = context.ticket
        if ticket:
            return ValidateTicket(ticket)

        self.gateway.stash_return_target(session, context.return_to or context.path)
        return RedirectToLogin(self.gateway.build_login_url())

    def commit(self, context: RequestContext, mode: EnforcementMode, outcome: ValidationOutcome) -> Action:
        """
        Apply the result of a ticket validation

        On success the session is marked authenticated and the request
        continues as an authenticated one. On failure nothing is written and
        the request is denied.
        """
        if not outcome.ok:
            return self.fail(outcome.error)

        self.gateway.write_marker(context.session, outcome.principal, outcome.attributes)
        logger.info(f"CAS ticket validated for user: {outcome.principal}")
        return self._authenticated(context, mode)

    def fail(self, error: CASError) -> Deny:
        """Turn a classified validation error into a denial"""
        logger.warning(f"CAS ticket validation failed: {type(error).__name__}: {error}")
        return Deny(401, error=error)

    def _authenticated(self, context: RequestContext, mode: EnforcementMode) -> Action:
        if mode is EnforcementMode.BOUNCE_REDIRECT:
            target = (
                context.explicit_target
                or self.gateway.consume_return_target(context.session)
                or DEFAULT_RETURN_TARGET
            )
            return RedirectTo(target)
        return Allow()

