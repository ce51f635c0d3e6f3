"""
CAS authentication module for casguard

Server-side enforcement of CAS 1.0/2.0/3.0 single-sign-on for FastAPI and
Starlette applications.
"""

from .config import CASConfig
from .exceptions import (
    CASError,
    ConfigurationError,
    MalformedResponse,
    AuthenticationRejected,
    TransportError
)
from .ticket_validator import TicketValidator, ValidationSuccess, ValidationFailure, ValidationOutcome
from .session_gateway import SessionGateway, AuthenticationMarker
from .protocol_client import ProtocolClient
from .decision import (
    AuthDecisionEngine,
    EnforcementMode,
    RequestContext,
    Allow,
    RedirectToLogin,
    RedirectTo,
    Deny,
    ValidateTicket
)
from .authenticator import CASAuthenticator
from .middleware import CASMiddleware
from .auth_manager import CASAuthManager
from .request_auth import (
    get_current_user,
    get_current_user_optional,
    enforce,
    require_attribute
)

__all__ = [
    'CASConfig',
    'CASError',
    'ConfigurationError',
    'MalformedResponse',
    'AuthenticationRejected',
    'TransportError',
    'TicketValidator',
    'ValidationSuccess',
    'ValidationFailure',
    'ValidationOutcome',
    'SessionGateway',
    'AuthenticationMarker',
    'ProtocolClient',
    'AuthDecisionEngine',
    'EnforcementMode',
    'RequestContext',
    'Allow',
    'RedirectToLogin',
    'RedirectTo',
    'Deny',
    'ValidateTicket',
    'CASAuthenticator',
    'CASMiddleware',
    'CASAuthManager',
    'get_current_user',
    'get_current_user_optional',
    'enforce',
    'require_attribute'
]
