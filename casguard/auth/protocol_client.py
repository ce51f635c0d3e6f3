"""
CAS protocol client for casguard

Issues the outbound ticket validation request to the CAS server and hands the
response body to the TicketValidator.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config import CASConfig
from .exceptions import TransportError
from .ticket_validator import TicketValidator, ValidationOutcome

logger = logging.getLogger(__name__)


class ProtocolClient:
    """
    Talks to the CAS server validation endpoint
    """

    def __init__(
        self,
        config: CASConfig,
        validator: Optional[TicketValidator] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize CAS protocol client

        Args:
            config: CAS configuration
            validator: Response parser (a new TicketValidator by default)
            http_client: Shared HTTP client. One bounded by the configured
                validation timeout is created when omitted.
        """
        self.config = config
        self.validator = validator or TicketValidator()

        # HTTP client for CAS validation requests
        self._http_client = http_client or httpx.AsyncClient(timeout=config.validation_timeout)

        logger.info(f"Initialized CAS {config.cas_version} client for: {config.validation_url}")

    async def fetch_validation(self, ticket: str, service_url: str) -> str:
        """
        Ask the CAS server to validate a service ticket

        Args:
            ticket: Service ticket from the login redirect
            service_url: Service URL the ticket was issued for

        Returns:
            Raw response body

        Raises:
            TransportError: On network failure, timeout or non-success status
        """
        params = {
            'service': service_url,
            'ticket': ticket
        }

        logger.debug(f"Requesting ticket validation from: {self.config.validation_url}")

        try:
            response = await self._http_client.get(
                self.config.validation_url,
                params=params,
                timeout=self.config.validation_timeout
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TransportError(f"CAS validation timed out after {self.config.validation_timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(f"CAS validation failed: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"CAS validation request failed: {e}") from e

        return response.text

    async def validate(self, ticket: str, service_url: str) -> ValidationOutcome:
        """
        Validate a service ticket end to end

        A TransportError propagates straight to the caller; the validator is
        only consulted once a body has been received.
        """
        body = await self.fetch_validation(ticket, service_url)
        return self.validator.validate(self.config.cas_version, body)

    async def health_check(self) -> Dict[str, Any]:
        """
        Health check for the CAS client

        Returns:
            Configured endpoint information
        """
        return {
            "cas_url": self.config.cas_url,
            "cas_version": self.config.cas_version,
            "validation_url": self.config.validation_url,
            "timeout": self.config.validation_timeout,
            "client_closed": self._http_client.is_closed
        }

    async def cleanup(self) -> None:
        """Clean up resources"""
        await self._http_client.aclose()
