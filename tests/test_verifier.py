import uuid

import requests

from utils import msal_token
from tests.conftest import FakeResponse, API_KEY


TEMPLATE = """// presentation request template
{
  "registration": {"clientName": "Contoso", "purpose": "Check employment"},
  "includeReceipt": true,
  "requestedCredentials": [
    {"type": "ContosoEmployee", "acceptedIssuers": ["did:web:contoso.com"]}
  ]
}"""


def test_presentation_request_registers_state(client, store, request_service):
    resp = client.get("/api/verifier/presentation-request", base_url="http://verifier.example.com")
    assert resp.status_code == 200
    body = resp.get_json()
    state = body["id"]
    uuid.UUID(state)
    assert body["url"].startswith("openid-vc://")
    assert resp.headers["Access-Control-Allow-Origin"] == "*"

    assert store.get(state) == {
        "status": "request_created",
        "message": "Waiting for QR code to be scanned",
        "expiry": 1700000000,
    }

    call = request_service.calls[0]
    assert call["url"].endswith("createPresentationRequest")
    assert call["headers"]["Authorization"] == "Bearer access-token"
    assert call["timeout"]
    payload = call["payload"]
    assert payload["callback"] == {
        "url": "https://verifier.example.com/api/verifier/presentationcallback",
        "state": state,
        "headers": {"api-key": API_KEY},
    }
    assert payload["authority"] == "did:web:verifier.example.com"
    assert payload["requestedCredentials"][0]["type"] == "VerifiedEmployee"


def test_each_request_gets_a_fresh_state(client, request_service):
    first = client.get("/api/verifier/presentation-request").get_json()["id"]
    second = client.get("/api/verifier/presentation-request").get_json()["id"]
    assert first != second


def test_original_host_header_drives_callback_url(client, request_service):
    client.get("/api/verifier/presentation-request", headers={"x-original-host": "public.example.org"})
    url = request_service.calls[0]["payload"]["callback"]["url"]
    assert url == "https://public.example.org/api/verifier/presentationcallback"


def test_request_service_error_stores_nothing(client, red, request_service):
    request_service.status_code = 400
    request_service.body = {"error": {"code": "badRequest", "message": "bad authority"}}
    resp = client.get("/api/verifier/presentation-request")
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "400"
    assert "bad authority" in body["error_description"]
    assert "400" in body["error_description"]
    assert body["request"]["callback"]["state"]
    assert red.keys("*_request_state") == []


def test_request_service_unreachable(client, red, request_service, monkeypatch):
    def boom(*args, **kwargs):
        raise requests.exceptions.ConnectTimeout("timed out")

    monkeypatch.setattr(requests, "post", boom)
    resp = client.get("/api/verifier/presentation-request")
    assert resp.status_code == 400
    assert resp.get_json()["error_description"] == "Exception: timed out"
    assert red.keys("*_request_state") == []


def test_access_token_failure(client, red, request_service, monkeypatch):
    monkeypatch.setattr(msal_token, "get_access_token",
                        lambda mode: (None, "invalid_client", "AADSTS7000215: Invalid client secret"))
    resp = client.get("/api/verifier/presentation-request")
    assert resp.status_code == 400
    assert resp.get_json() == {
        "error": "invalid_client",
        "error_description": "AADSTS7000215: Invalid client secret",
    }
    assert request_service.calls == []
    assert red.keys("*_request_state") == []


def test_face_check_query(client, request_service):
    client.get("/api/verifier/presentation-request?faceCheck=1&photoClaimName=portrait")
    payload = request_service.calls[0]["payload"]
    validation = payload["requestedCredentials"][0]["configuration"]["validation"]
    assert validation["faceCheck"]["sourcePhotoClaimName"] == "portrait"
    assert payload["includeReceipt"] is False


def test_constraint_and_type_query(client, request_service):
    client.get("/api/verifier/presentation-request", query_string={
        "credentialType": "TrueIdentity",
        "constraintName": "country",
        "constraintValue": "FR;BE",
        "constraintOp": "value",
    })
    requested = request_service.calls[0]["payload"]["requestedCredentials"][0]
    assert requested["type"] == "TrueIdentity"
    assert requested["constraints"] == [{"claimName": "country", "values": ["FR", "BE"]}]


def test_bad_constraint_operator(client, request_service):
    resp = client.get("/api/verifier/presentation-request", query_string={
        "constraintName": "country", "constraintValue": "FR", "constraintOp": "endsWith",
    })
    assert resp.status_code == 400
    assert request_service.calls == []


def test_template_drives_presentation_request(client, request_service):
    resp = client.post("/api/verifier/load-template", data=TEMPLATE, content_type="text/plain")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "template loaded"}

    details = client.get("/api/verifier/get-presentation-details").get_json()
    assert details["type"] == "ContosoEmployee"
    assert details["clientName"] == "Contoso"
    assert details["acceptedIssuers"] == ["did:web:contoso.com"]

    state = client.get("/api/verifier/presentation-request").get_json()["id"]
    payload = request_service.calls[0]["payload"]
    assert payload["requestedCredentials"][0]["type"] == "ContosoEmployee"
    assert payload["authority"] == "did:web:verifier.example.com"
    assert payload["callback"]["state"] == state
    assert payload["callback"]["headers"] == {"api-key": API_KEY}

    client.delete("/api/verifier/load-template")
    details = client.get("/api/verifier/get-presentation-details").get_json()
    assert details["type"] == "VerifiedEmployee"


def test_invalid_template_is_rejected(client):
    resp = client.post("/api/verifier/load-template", data='{"registration": {}}', content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json()["error_description"] == "Template is not a presentation request"


def test_template_link(client, monkeypatch):
    seen = []

    def fake_get(url, timeout=None):
        seen.append(url)
        return FakeResponse(200, TEMPLATE)

    monkeypatch.setattr(requests, "get", fake_get)
    resp = client.post("/api/verifier/load-template?template=https://example.com/template.json")
    assert resp.status_code == 200
    assert seen == ["https://example.com/template.json"]
    assert client.get("/api/verifier/get-presentation-details").get_json()["type"] == "ContosoEmployee"


def test_template_link_must_be_https(client):
    resp = client.post("/api/verifier/load-template?template=file:///etc/passwd")
    assert resp.status_code == 400
