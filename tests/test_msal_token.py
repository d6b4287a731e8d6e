from types import SimpleNamespace

import pytest

from utils import msal_token


def _mode(**overrides):
    settings = dict(
        authority="https://login.microsoftonline.com/",
        tenant_id="tenant",
        client_id="client",
        client_secret="secret",
        scope="3db474b9-6a0c-4840-96ac-1fceb342124f/.default",
    )
    settings.update(overrides)
    return SimpleNamespace(**settings)


@pytest.fixture(autouse=True)
def fresh_cache(monkeypatch):
    monkeypatch.setattr(msal_token, "_MSAL_APPS", {})


def _fake_msal(monkeypatch, result):
    created = []

    class FakeApp:
        def __init__(self, client_id, authority=None, client_credential=None):
            created.append((client_id, authority, client_credential))

        def acquire_token_for_client(self, scopes):
            assert scopes == ["3db474b9-6a0c-4840-96ac-1fceb342124f/.default"]
            return result

    monkeypatch.setattr(msal_token.msal, "ConfidentialClientApplication", FakeApp)
    return created


def test_missing_app_registration():
    token, error, description = msal_token.get_access_token(_mode(client_secret=None))
    assert token is None
    assert error == "invalid_client"
    assert "AZURE_CLIENT_SECRET" in description


def test_access_token_is_returned_and_app_cached(monkeypatch):
    created = _fake_msal(monkeypatch, {"access_token": "abc"})
    assert msal_token.get_access_token(_mode()) == ("abc", None, None)
    assert msal_token.get_access_token(_mode()) == ("abc", None, None)
    assert created == [("client", "https://login.microsoftonline.com/tenant", "secret")]


def test_token_error_is_passed_through(monkeypatch):
    _fake_msal(monkeypatch, {"error": "invalid_client", "error_description": "bad secret"})
    assert msal_token.get_access_token(_mode()) == (None, "invalid_client", "bad secret")
