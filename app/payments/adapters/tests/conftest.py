"""
Pytest fixtures for Transfeera adapter tests.

No network access: the requests.Session is a MagicMock and responses are
built with make_response().

Sections:
    - Response Helpers
    - Session and Token Fixtures
"""

import json

import pytest
import requests

from payments.adapters import TransfeeraAdapter


# =============================================================================
# Response Helpers
# =============================================================================


def make_response(status_code=200, json_body=None, reason=""):
    """
    Build a requests.Response with a JSON body.

    Args:
        status_code: HTTP status
        json_body: Body to serialize (None for an empty body)
        reason: HTTP reason phrase
    """
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = json.dumps(json_body).encode() if json_body is not None else b""
    response.headers["Content-Type"] = "application/json"
    return response


# =============================================================================
# Session and Token Fixtures
# =============================================================================


@pytest.fixture
def session(mocker):
    """Mocked requests.Session."""
    return mocker.MagicMock(spec=requests.Session)


@pytest.fixture
def token_manager(mocker):
    """Token manager that always hands out "test-token"."""
    manager = mocker.MagicMock()
    manager.get_valid_token.return_value = "test-token"
    return manager


@pytest.fixture
def sleep(mocker):
    """Replacement for time.sleep recording backoff delays."""
    return mocker.MagicMock()


@pytest.fixture
def adapter(session, token_manager, sleep):
    """TransfeeraAdapter wired to the mocked session, two retries."""
    return TransfeeraAdapter(
        token_manager=token_manager,
        session=session,
        api_url="https://api.test/",
        timeout=5,
        max_retries=2,
        sleep=sleep,
    )
