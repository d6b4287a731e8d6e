import json

import fakeredis
import pytest
import requests

from main import create_app
from utils import msal_token

API_KEY = "test-api-key"


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self.text = body if isinstance(body, str) else json.dumps(body)

    def json(self):
        return json.loads(self.text)


@pytest.fixture
def red():
    return fakeredis.FakeRedis()


@pytest.fixture
def app(monkeypatch, red):
    monkeypatch.setenv("MYENV", "local")
    monkeypatch.setenv("API-KEY", API_KEY)
    monkeypatch.setenv("VERIFIEDID_DID_AUTHORITY", "did:web:verifier.example.com")
    monkeypatch.setenv("VERIFIEDID_CREDENTIAL_TYPE", "VerifiedEmployee")
    monkeypatch.setenv("VERIFIEDID_CREDENTIAL_MANIFEST", "https://example.com/manifest")
    monkeypatch.delenv("VERIFIEDID_USE_FACE_CHECK", raising=False)
    monkeypatch.delenv("VERIFIEDID_ISSUANCE_PIN_CODE_LENGTH", raising=False)
    app = create_app({"TESTING": True, "REDIS": red})
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions["correlation_store"]


@pytest.fixture
def request_service(monkeypatch):
    """
    Stand-in for the Verified ID request service. Set .status_code / .body
    before calling the initiation endpoints; posted payloads land in .calls.
    """
    class Service:
        status_code = 201
        body = {
            "requestId": "5a0d6b41-5b1c-4c53-a5c2-5cc0a1b2c3d4",
            "url": "openid-vc://?request_uri=https://verifiedid.did.msidentity.com/v1.0/request",
            "expiry": 1700000000,
        }
        calls = []

    service = Service()

    def fake_post(url, headers=None, data=None, timeout=None):
        service.calls.append({"url": url, "headers": headers, "payload": json.loads(data), "timeout": timeout})
        return FakeResponse(service.status_code, service.body)

    monkeypatch.setattr(msal_token, "get_access_token", lambda mode: ("access-token", None, None))
    monkeypatch.setattr(requests, "post", fake_post)
    return service


@pytest.fixture
def api_headers():
    return {"api-key": API_KEY}
