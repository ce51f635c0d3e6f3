"""
Session gateway tests: marker storage, logout and CAS redirect targets
"""

import logging
from urllib.parse import parse_qs, urlparse

import pytest

from casguard.auth.config import CASConfig
from casguard.auth.session_gateway import AuthenticationMarker, SessionGateway

CAS_URL = "https://cas.example.edu/cas"
SERVICE_URL = "http://localhost:8787/auth/login"


def make_gateway(**overrides) -> SessionGateway:
    options = {"cas_url": CAS_URL, "service_url": SERVICE_URL, "session_info": "cas_userinfo"}
    options.update(overrides)
    return SessionGateway(CASConfig(**options))


class FailingSession(dict):
    """Session whose backend refuses to be destroyed"""

    def clear(self):
        raise RuntimeError("session store unavailable")


class TestSessionGateway:

    def test_write_and_read_marker(self):
        gateway = make_gateway()
        session = {}

        gateway.write_marker(session, "alice", {"mail": "alice@example.edu"})

        assert gateway.is_authenticated(session)
        assert session == {"cas_user": "alice", "cas_userinfo": {"mail": "alice@example.edu"}}
        assert gateway.get_marker(session) == AuthenticationMarker("alice", {"mail": "alice@example.edu"})

    def test_empty_attributes_are_not_stored(self):
        gateway = make_gateway()
        session = {}

        gateway.write_marker(session, "alice", {})

        assert session == {"cas_user": "alice"}

    def test_attributes_not_stored_without_session_info(self):
        gateway = make_gateway(session_info=None)
        session = {}

        gateway.write_marker(session, "alice", {"mail": "alice@example.edu"})

        assert session == {"cas_user": "alice"}
        assert gateway.get_marker(session).attributes is None

    def test_attributes_not_stored_for_cas1(self):
        gateway = make_gateway(cas_version='1.0')
        session = {}

        gateway.write_marker(session, "alice", {"mail": "alice@example.edu"})

        assert session == {"cas_user": "alice"}

    def test_unauthenticated_session(self):
        gateway = make_gateway()

        assert not gateway.is_authenticated({})
        assert not gateway.is_authenticated({"cas_user": ""})
        assert gateway.get_marker({"other": "value"}) is None

    def test_clear_marker_keeps_other_keys(self):
        gateway = make_gateway()
        session = {"cas_user": "alice", "cas_userinfo": {"mail": "a"}, "cart": [1, 2]}

        gateway.clear_marker(session)

        assert session == {"cart": [1, 2]}

    def test_clear_marker_destroys_session(self):
        gateway = make_gateway(destroy_session=True)
        session = {"cas_user": "alice", "cart": [1, 2]}

        gateway.clear_marker(session)

        assert session == {}

    def test_destroy_failure_is_logged_not_raised(self, caplog):
        gateway = make_gateway(destroy_session=True)
        session = FailingSession(cas_user="alice")

        with caplog.at_level(logging.ERROR):
            gateway.clear_marker(session)

        assert "Failed to destroy session" in caplog.text

    def test_return_target_is_consumed_once(self):
        gateway = make_gateway()
        session = {}

        gateway.stash_return_target(session, "/app/reports?year=2024")

        assert gateway.consume_return_target(session) == "/app/reports?year=2024"
        assert gateway.consume_return_target(session) is None
        assert session == {}

    @pytest.mark.parametrize("renew,expected", [(False, "false"), (True, "true")])
    def test_login_url(self, renew, expected):
        gateway = make_gateway(renew=renew)

        url = gateway.build_login_url()
        parsed = urlparse(url)

        assert url.startswith(f"{CAS_URL}/login?")
        assert parse_qs(parsed.query) == {"service": [SERVICE_URL], "renew": [expected]}

    def test_logout_url(self):
        assert make_gateway(cas_url=CAS_URL + "/").build_logout_url() == f"{CAS_URL}/logout"
