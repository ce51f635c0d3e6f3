import logging
from typing import Dict, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from starlette.middleware.sessions import SessionMiddleware

from ..auth import CASAuthManager, CASConfig, EnforcementMode, get_current_user
from ..auth.session_gateway import AuthenticationMarker
from .config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(
    cas_config: Optional[CASConfig] = None,
    protected_routes: Optional[Dict[str, EnforcementMode]] = None,
    settings: Optional[Settings] = None
) -> FastAPI:
    load_dotenv()
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = FastAPI(
        title="casguard",
        description="CAS single-sign-on enforcement",
        version="0.1.0"
    )

    # Configuration errors are fatal: the app must not start without CAS
    auth_manager = CASAuthManager()
    auth_manager.initialize(settings.CAS_CONFIG_PATH, cas_config=cas_config)
    auth_manager.install(app, protected_routes)
    app.state.auth_manager = auth_manager

    # Added last so the session wraps the CAS middleware
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret(),
        session_cookie=settings.SESSION_COOKIE,
        max_age=settings.SESSION_MAX_AGE,
        https_only=settings.SESSION_HTTPS_ONLY,
        same_site="lax"
    )

    @app.on_event("shutdown")
    async def cleanup_auth():
        """Clean up authentication resources"""
        try:
            await auth_manager.cleanup()
        except Exception as e:
            logger.error(f"Error cleaning up authentication: {e}")

    @app.get("/health")
    async def health():
        return {"status": "ok", "auth": await auth_manager.health_check()}

    @app.get("/app")
    async def app_home(current_user: AuthenticationMarker = Depends(get_current_user)):
        return {"message": f"Hello, {current_user.principal}", "attributes": current_user.attributes or {}}

    @app.get("/api/me")
    async def api_me(current_user: AuthenticationMarker = Depends(get_current_user)):
        return {"user": current_user.principal, "attributes": current_user.attributes or {}}

    return app
