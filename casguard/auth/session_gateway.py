"""
Session access for casguard

Reads and writes the CAS authentication marker, the user attributes and the
post-login return target in the session supplied by the host framework
(Starlette's SessionMiddleware in practice). Also builds the CAS login and
logout redirect targets.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional
from urllib.parse import urlencode

from .config import CASConfig

logger = logging.getLogger(__name__)

Session = MutableMapping[str, Any]


@dataclass(frozen=True)
class AuthenticationMarker:
    """Read view of an authenticated session"""
    principal: str
    attributes: Optional[Dict[str, Any]] = None


class SessionGateway:
    """
    Stores CAS state in an externally owned session mapping
    """

    def __init__(self, config: CASConfig):
        """
        Args:
            config: CAS configuration naming the session keys
        """
        self.config = config

    def is_authenticated(self, session: Session) -> bool:
        return bool(session.get(self.config.session_name))

    def get_marker(self, session: Session) -> Optional[AuthenticationMarker]:
        """
        Get the authentication marker from the session

        Returns:
            AuthenticationMarker if the session is authenticated, None otherwise
        """
        principal = session.get(self.config.session_name)
        if not principal:
            return None

        attributes = None
        if self.config.session_info:
            attributes = session.get(self.config.session_info)

        return AuthenticationMarker(principal=principal, attributes=attributes)

    def write_marker(self, session: Session, principal: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        """
        Mark the session as authenticated

        Attributes are only stored when a session_info key is configured,
        which the config only allows for CAS 2.0/3.0.
        """
        session[self.config.session_name] = principal
        if self.config.session_info and attributes:
            # Session values must be plain JSON-serializable data
            session[self.config.session_info] = dict(attributes)

        logger.debug(f"Session authenticated as {principal}")

    def clear_marker(self, session: Session) -> None:
        """
        Remove CAS state from the session (logout)

        With destroy_session configured the whole session is discarded.
        A failure to destroy is logged and not raised so the redirect to the
        CAS logout still happens.
        """
        if self.config.destroy_session:
            try:
                session.clear()
                logger.debug("Session destroyed on logout")
            except Exception as e:
                logger.error(f"Failed to destroy session on logout: {e}")
            return

        session.pop(self.config.session_name, None)
        if self.config.session_info:
            session.pop(self.config.session_info, None)

    def stash_return_target(self, session: Session, target: str) -> None:
        session[self.config.return_to_key] = target

    def consume_return_target(self, session: Session) -> Optional[str]:
        """Return the stashed return target and clear it"""
        return session.pop(self.config.return_to_key, None)

    def build_login_url(self) -> str:
        """
        Build the CAS login redirect target

        Returns:
            {cas_url}/login?service=...&renew=true|false
        """
        query = {
            'service': self.config.service_url,
            'renew': 'true' if self.config.renew else 'false'
        }
        return f"{self.config.cas_url}/login?{urlencode(query)}"

    def build_logout_url(self) -> str:
        return f"{self.config.cas_url}/logout"
