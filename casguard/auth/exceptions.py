"""
CAS error taxonomy

Every failure the CAS layer can report derives from CASError so callers can
catch the whole family in one place.
"""

from typing import Optional


class CASError(Exception):
    """Base class for CAS authentication errors"""
    pass


class ConfigurationError(CASError, ValueError):
    """Invalid CAS configuration. Raised at construction time."""
    pass


class MalformedResponse(CASError):
    """The CAS server returned a body that could not be understood"""

    def __init__(self, message: str = "Response from CAS server was bad."):
        super().__init__(message)


class AuthenticationRejected(CASError):
    """The CAS server explicitly refused the service ticket"""

    def __init__(
        self,
        message: str = "CAS authentication failed.",
        code: Optional[str] = None,
        description: Optional[str] = None
    ):
        super().__init__(message)
        self.code = code
        self.description = description

    def __str__(self) -> str:
        message = super().__str__()
        if self.code:
            return f"{message} ({self.code})"
        return message


class TransportError(CASError):
    """Network failure, timeout or non-success status talking to the CAS server"""
    pass
