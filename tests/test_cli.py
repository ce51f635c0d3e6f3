"""
casguard command line tests
"""

import os
import tempfile
from unittest.mock import AsyncMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from casguard.auth.exceptions import AuthenticationRejected, TransportError
from casguard.auth.ticket_validator import ValidationFailure, ValidationSuccess
from casguard.cmd.cas import app

runner = CliRunner()


@pytest.fixture
def config_file():
    config_data = {
        "cas": {
            "cas_url": "https://cas.example.edu/cas",
            "service_url": "http://localhost:8787/auth/login",
        }
    }

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(config_data, f)

    yield f.name
    os.unlink(f.name)


def mock_client(outcome=None, error=None):
    client = AsyncMock()
    if error is not None:
        client.validate.side_effect = error
    else:
        client.validate.return_value = outcome
    return client


class TestCLI:

    def test_check_config(self, config_file):
        result = runner.invoke(app, ["check-config", "--config", config_file])

        assert result.exit_code == 0
        assert "p3/serviceValidate" in result.output

    def test_missing_config(self):
        result = runner.invoke(app, ["check-config", "--config", "/nonexistent/cas-config.yaml"])

        assert result.exit_code == 1
        assert "No CAS configuration found" in result.output

    def test_login_url(self, config_file):
        result = runner.invoke(app, ["login-url", "-c", config_file])

        assert result.exit_code == 0
        assert "https://cas.example.edu/cas/logout" in result.output

    def test_validate_ticket_success(self, config_file):
        client = mock_client(ValidationSuccess("alice", {"memberof": ["staff", "admins"]}))

        with patch('casguard.cmd.cas.ProtocolClient', return_value=client):
            result = runner.invoke(app, ["validate-ticket", "ST-1", "-c", config_file])

        assert result.exit_code == 0
        assert "alice" in result.output
        client.validate.assert_awaited_once_with("ST-1", "http://localhost:8787/auth/login")
        client.cleanup.assert_awaited_once()

    def test_validate_ticket_rejected(self, config_file):
        error = AuthenticationRejected(code="INVALID_TICKET", description="Ticket ST-1 not recognized")
        client = mock_client(ValidationFailure(error))

        with patch('casguard.cmd.cas.ProtocolClient', return_value=client):
            result = runner.invoke(app, ["validate-ticket", "ST-1", "-c", config_file])

        assert result.exit_code == 1
        assert "not recognized" in result.output

    def test_validate_ticket_unreachable(self, config_file):
        client = mock_client(error=TransportError("CAS validation timed out after 10.0s"))

        with patch('casguard.cmd.cas.ProtocolClient', return_value=client):
            result = runner.invoke(app, ["validate-ticket", "ST-1", "--service", "http://spa/", "-c", config_file])

        assert result.exit_code == 2
        client.validate.assert_awaited_once_with("ST-1", "http://spa/")
        client.cleanup.assert_awaited_once()
