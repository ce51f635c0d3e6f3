"""
Per-request CAS decision tests
"""

from urllib.parse import urlencode

import pytest

from casguard.auth.config import CASConfig
from casguard.auth.decision import (
    Allow,
    AuthDecisionEngine,
    Deny,
    EnforcementMode,
    RedirectTo,
    RedirectToLogin,
    RequestContext,
    ValidateTicket,
)
from casguard.auth.exceptions import AuthenticationRejected, MalformedResponse, TransportError
from casguard.auth.session_gateway import SessionGateway
from casguard.auth.ticket_validator import ValidationFailure, ValidationSuccess

CAS_URL = "https://cas.example.edu/cas"
SERVICE_URL = "http://localhost:8787/auth/login"
LOGIN_URL = f"{CAS_URL}/login?" + urlencode({"service": SERVICE_URL, "renew": "false"})

ALL_MODES = list(EnforcementMode)


def make_engine(**overrides) -> AuthDecisionEngine:
    options = {"cas_url": CAS_URL, "service_url": SERVICE_URL, "session_info": "cas_userinfo"}
    options.update(overrides)
    config = CASConfig(**options)
    return AuthDecisionEngine(config, SessionGateway(config))


def context(session=None, path="/app/page", **query) -> RequestContext:
    return RequestContext(query=query, path=path, session={} if session is None else session)


class TestAuthenticatedSession:

    @pytest.mark.parametrize("mode", [EnforcementMode.BOUNCE, EnforcementMode.BLOCK])
    def test_allow_is_idempotent(self, mode):
        engine = make_engine()
        session = {"cas_user": "alice", "cas_return_to": "/app/page"}
        snapshot = dict(session)

        for _ in range(3):
            assert engine.decide(context(session), mode) == Allow()

        assert session == snapshot

    def test_bounce_redirect_uses_stashed_target(self):
        engine = make_engine()
        session = {"cas_user": "alice", "cas_return_to": "/app/reports"}

        action = engine.decide(context(session), EnforcementMode.BOUNCE_REDIRECT)

        assert action == RedirectTo("/app/reports")
        assert "cas_return_to" not in session

    def test_bounce_redirect_prefers_explicit_target(self):
        engine = make_engine()
        session = {"cas_user": "alice", "cas_return_to": "/app/reports"}

        action = engine.decide(context(session, redirectTo="/app/explicit"), EnforcementMode.BOUNCE_REDIRECT)

        assert action == RedirectTo("/app/explicit")

    def test_bounce_redirect_accepts_return_to(self):
        engine = make_engine()

        action = engine.decide(context({"cas_user": "alice"}, returnTo="/back"), EnforcementMode.BOUNCE_REDIRECT)

        assert action == RedirectTo("/back")

    @pytest.mark.parametrize("target", ["https://evil.example.com/", "//evil.example.com", "/\\evil.example.com", "javascript:alert(1)"])
    def test_bounce_redirect_ignores_off_site_targets(self, target):
        engine = make_engine()
        session = {"cas_user": "alice", "cas_return_to": "/app/reports"}

        action = engine.decide(context(session, redirectTo=target, returnTo=target), EnforcementMode.BOUNCE_REDIRECT)

        assert action == RedirectTo("/app/reports")

    def test_bounce_redirect_without_target_goes_home(self):
        engine = make_engine()

        action = engine.decide(context({"cas_user": "alice"}), EnforcementMode.BOUNCE_REDIRECT)

        assert action == RedirectTo("/")

    def test_authenticated_session_ignores_ticket(self):
        engine = make_engine()

        action = engine.decide(context({"cas_user": "alice"}, ticket="ST-1"), EnforcementMode.BOUNCE)

        assert action == Allow()


class TestDevMode:

    @pytest.fixture
    def engine(self):
        return make_engine(is_dev_mode=True, dev_mode_user="developer", dev_mode_info={"mail": "dev@example.edu"})

    @pytest.mark.parametrize("mode", ALL_MODES)
    def test_dev_identity_is_written(self, engine, mode):
        session = {}

        action = engine.decide(context(session), mode)

        assert action == Allow()
        assert session == {"cas_user": "developer", "cas_userinfo": {"mail": "dev@example.edu"}}

    def test_dev_mode_redirects_to_return_to(self, engine):
        session = {}

        action = engine.decide(context(session, returnTo="/app/next"), EnforcementMode.BOUNCE)

        assert action == RedirectTo("/app/next")
        assert session["cas_user"] == "developer"

    def test_dev_mode_beats_block(self, engine):
        assert engine.decide(context(), EnforcementMode.BLOCK) == Allow()


class TestUnauthenticated:

    def test_block_denies(self):
        engine = make_engine()
        session = {}

        action = engine.decide(context(session, ticket="ST-1"), EnforcementMode.BLOCK)

        assert action == Deny(401)
        assert session == {}

    @pytest.mark.parametrize("mode", [EnforcementMode.BOUNCE, EnforcementMode.BOUNCE_REDIRECT])
    def test_ticket_requests_validation(self, mode):
        engine = make_engine()
        session = {}

        action = engine.decide(context(session, ticket="ST-42"), mode)

        assert action == ValidateTicket("ST-42")
        assert session == {}

    def test_bounce_redirects_to_login_and_stashes_path(self):
        engine = make_engine()
        session = {}

        action = engine.decide(context(session, path="/app/page"), EnforcementMode.BOUNCE)

        assert action == RedirectToLogin(LOGIN_URL)
        assert session["cas_return_to"] == "/app/page"

    def test_explicit_return_to_is_stashed(self):
        engine = make_engine()
        session = {}

        engine.decide(context(session, path="/auth/login?returnTo=/app/x", returnTo="/app/x"), EnforcementMode.BOUNCE_REDIRECT)

        assert session["cas_return_to"] == "/app/x"

    def test_renew_is_forwarded(self):
        engine = make_engine(renew=True)

        action = engine.decide(context(), EnforcementMode.BOUNCE)

        assert action.url.endswith("renew=true")


class TestCommit:

    def test_success_marks_session_and_allows(self):
        engine = make_engine()
        session = {}
        outcome = ValidationSuccess("alice", {"mail": "alice@example.edu"})

        action = engine.commit(context(session, ticket="T123"), EnforcementMode.BOUNCE, outcome)

        assert action == Allow()
        assert session == {"cas_user": "alice", "cas_userinfo": {"mail": "alice@example.edu"}}

    def test_success_under_bounce_redirect_returns_to_target(self):
        engine = make_engine()
        session = {"cas_return_to": "/app/reports"}

        action = engine.commit(context(session, ticket="T123"), EnforcementMode.BOUNCE_REDIRECT, ValidationSuccess("alice"))

        assert action == RedirectTo("/app/reports")
        assert session == {"cas_user": "alice"}

    @pytest.mark.parametrize("error", [AuthenticationRejected(code="INVALID_TICKET"), MalformedResponse()])
    def test_failure_denies_without_writing(self, error):
        engine = make_engine()
        session = {"cas_return_to": "/app/page"}

        action = engine.commit(context(session, ticket="T123"), EnforcementMode.BOUNCE, ValidationFailure(error))

        assert action == Deny(401, error=error)
        assert session == {"cas_return_to": "/app/page"}

    def test_transport_failure_denies(self):
        engine = make_engine()
        error = TransportError("timed out")

        assert engine.fail(error) == Deny(401, error=error)


class TestRedirectTargets:

    def test_off_site_return_to_is_not_stashed(self):
        engine = make_engine()
        session = {}

        engine.decide(context(session, path="/app/page", returnTo="https://evil.example.com/"), EnforcementMode.BOUNCE)

        assert session["cas_return_to"] == "/app/page"

    def test_dev_mode_ignores_off_site_target(self):
        engine = make_engine(is_dev_mode=True, dev_mode_user="developer")

        assert engine.decide(context(redirectTo="//evil.example.com"), EnforcementMode.BOUNCE) == Allow()
