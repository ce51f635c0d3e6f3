"""
CAS authentication manager for casguard

Centralizes initialization of the CAS components and their installation on a
FastAPI application.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI

from .authenticator import CASAuthenticator
from .config import CASConfig
from .decision import EnforcementMode
from .endpoints import create_cas_router
from .exceptions import ConfigurationError
from .middleware import CASMiddleware

logger = logging.getLogger(__name__)

DEFAULT_PROTECTED_ROUTES = {
    '/app': EnforcementMode.BOUNCE,
    '/api': EnforcementMode.BLOCK,
}


class CASAuthManager:
    """
    Manages the CAS authentication components of one application
    """

    def __init__(self):
        """Initialize authentication manager"""
        self.cas_config: Optional[CASConfig] = None
        self.authenticator: Optional[CASAuthenticator] = None
        self._initialized = False

    def initialize(self, config_path: Optional[str] = None, cas_config: Optional[CASConfig] = None) -> bool:
        """
        Initialize the CAS components

        Args:
            config_path: Optional path to cas-config.yaml
            cas_config: Ready-made configuration, takes precedence over config_path

        Returns:
            True once initialized

        Raises:
            RuntimeError: If the configuration is missing or invalid
        """
        try:
            logger.info("🔐 Initializing CAS authentication...")

            self.cas_config = cas_config or CASConfig.load_from_file(config_path)
            self.authenticator = CASAuthenticator(self.cas_config)

            self._initialized = True
            logger.info(f"🔐 CAS authentication initialized (protocol {self.cas_config.cas_version})")
            return True

        except FileNotFoundError as e:
            logger.error(f"CAS config not found: {e}")
            raise RuntimeError(f"CAS authentication requires cas-config.yaml. File not found: {e}") from e
        except ConfigurationError as e:
            logger.error(f"Invalid CAS configuration: {e}")
            raise RuntimeError(f"CAS authentication initialization failed: {e}") from e

    def install(self, app: FastAPI, protected_routes: Optional[Dict[str, EnforcementMode]] = None) -> None:
        """
        Install CAS middleware, router and app state

        SessionMiddleware has to be added after this call so it wraps the
        CAS middleware.

        Args:
            app: FastAPI application instance
            protected_routes: Path prefix -> enforcement mode

        Raises:
            RuntimeError: If not initialized
        """
        if not self._initialized:
            raise RuntimeError("CASAuthManager not initialized. Call initialize() first.")

        routes = protected_routes if protected_routes is not None else DEFAULT_PROTECTED_ROUTES

        app.state.cas_authenticator = self.authenticator
        app.state.cas_config = self.cas_config
        app.add_middleware(CASMiddleware, authenticator=self.authenticator, protected_routes=routes)
        app.include_router(create_cas_router(self.authenticator))

        logger.info("CAS middleware and router installed")

    async def health_check(self) -> Dict[str, Any]:
        """
        Get health status of the CAS authentication system
        """
        if not self._initialized:
            return {
                "status": "not_initialized",
                "message": "CASAuthManager not initialized"
            }

        try:
            return {
                "status": "enabled",
                "cas": await self.authenticator.health_check()
            }
        except Exception as e:
            return {"status": "error", "error": str(e)}

    async def cleanup(self) -> None:
        """Clean up authentication resources"""
        if self.authenticator:
            await self.authenticator.cleanup()

        logger.info("CAS authentication cleaned up")

    @property
    def is_initialized(self) -> bool:
        return self._initialized
