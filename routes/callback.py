# callback.py
# =============================================================================
# CALLBACK RECONCILIATION AND STATUS POLLING
# =============================================================================
# The Verified ID request service calls us back while the user interacts with
# the wallet. Every callback carries the `state` we generated when the request
# was created (see routes/verifier.py and routes/issuer.py), which is the key
# of the request state record in Redis.
#
#   browser  --GET presentation-request-->  us  --POST createPresentationRequest-->  Verified ID
#   Verified ID  --POST presentationcallback (api-key, state)-->  us   (1..N times)
#   browser  --GET request-status?id=state-->  us                      (polling)
#
# A callback only moves an existing record forward, it never creates one. The
# record keeps the last callback body only, and its TTL is refreshed on every
# callback write (never on a poll).
#
# The HTTP surface of this module is mounted by apis/verified_id_api.py.

import hmac
import logging

import redis
from flask import request, current_app, Response

from utils.request_state import (
    CallbackError, CallbackEvent, FlowKind, selfie_event,
    REQUEST_CREATED, REQUEST_RETRIEVED, REQUEST_NOT_CREATED,
    ISSUANCE_ERROR, ISSUANCE_SUCCESSFUL,
    PRESENTATION_ERROR, PRESENTATION_VERIFIED, SELFIE_TAKEN, TERMINAL_STATUSES,
)

logging.basicConfig(level=logging.INFO)

IMAGE_PREFIX = "data:image/jpeg;base64,"
BASE64_MARKER = ";base64,"


def manage_error(error_description, status_code=400, extra=None):
    body = {"error": str(status_code), "error_description": error_description}
    if extra:
        body.update(extra)
    return body, status_code


def _api_key_ok(req):
    expected = current_app.config["MODE"].api_key
    got = req.headers.get("api-key") or ""
    # no configured key means no callback is accepted
    return bool(expected) and hmac.compare_digest(got.encode(), expected.encode())


def handle_request_callback(kind: FlowKind, body=None):
    """
    Reconcile one callback of the given flow kind with its request state.
    body defaults to the raw body of the current request.
    """
    if kind.requires_api_key and not _api_key_ok(request):
        logging.warning("api-key wrong or missing on %s callback", kind.value)
        return manage_error("api-key wrong or missing", status_code=401)

    if body is None:
        body = request.get_data(as_text=True)
    logging.debug("%s callback = %s", kind.value, body)

    try:
        event = CallbackEvent.from_json(body)
    except CallbackError as e:
        logging.warning("invalid %s callback: %s", kind.value, e)
        return manage_error(str(e))

    logging.info("%s callback for state %s: %s", kind.value, event.state, event.request_status)
    if event.request_status not in kind.allowed_statuses:
        logging.warning("unknown request status %s for %s", event.request_status, kind.value)
        return manage_error(f"Unknown request status '{event.request_status}'")

    def merge(record):
        record["status"] = event.request_status
        record["callback"] = body
        return record

    store = current_app.extensions["correlation_store"]
    try:
        record = store.update(event.state, merge)
    except redis.RedisError as e:
        logging.exception("state store unavailable")
        return manage_error(f"State store error: {e}")
    if record is None:
        logging.warning("callback for unknown or expired state %s", event.state)
        return manage_error(f"Invalid state '{event.state}'")

    if event.request_status in TERMINAL_STATUSES:
        logging.info("request %s completed with %s", event.state, event.request_status)
    else:
        logging.info("state %s is now %s", event.state, event.request_status)
    return Response(status=200)


def issuance_callback():
    return handle_request_callback(FlowKind.ISSUANCE)


def presentation_callback():
    return handle_request_callback(FlowKind.PRESENTATION)


def set_selfie(id):
    """The browser posts the selfie as a data URL, it is reconciled as a callback."""
    body = request.get_data(as_text=True)
    idx = body.find(BASE64_MARKER)
    if idx == -1:
        return manage_error(f"Image must be {IMAGE_PREFIX}")
    photo = body[idx + len(BASE64_MARKER):]
    return handle_request_callback(FlowKind.SELFIE, selfie_event(id, photo))


def _project(record):
    """Return (ok, payload) for a stored request state record."""
    status = record.get("status")

    if status == REQUEST_CREATED:
        return True, {"status": status, "message": "Waiting to scan QR code"}
    if status == REQUEST_RETRIEVED:
        return True, {"status": status, "message": "QR code is scanned. Waiting for user action..."}
    if status == ISSUANCE_SUCCESSFUL:
        return True, {"status": status, "message": "Issuance successful"}

    if status not in (ISSUANCE_ERROR, PRESENTATION_ERROR, PRESENTATION_VERIFIED, SELFIE_TAKEN):
        return False, {"status": "error", "message": f"Invalid requestStatus '{status}'"}

    event = CallbackEvent.from_json(record.get("callback"))

    if status == ISSUANCE_ERROR:
        return True, {"status": status, "message": "Issuance failed: " + event.error_message()}
    if status == PRESENTATION_ERROR:
        return True, {"status": status, "message": "Presentation failed: " + event.error_message()}
    if status == SELFIE_TAKEN:
        return True, {"status": status, "message": "Selfie taken", "photo": event.photo}

    vc = event.first_credential()
    payload = {
        "status": status,
        "message": "Presentation verified",
        "type": vc.type[-1] if vc.type else None,
        "claims": vc.claims,
        "subject": event.subject,
        "payload": event.verified_credentials_data,
    }
    if isinstance(vc.expiration_date, str) and vc.expiration_date.strip():
        payload["expirationDate"] = vc.expiration_date
    if isinstance(vc.issuance_date, str) and vc.issuance_date.strip():
        payload["issuanceDate"] = vc.issuance_date
    return True, payload


def poll_request_status(state):
    """Return (ok, payload) for a correlation token."""
    if not state:
        return False, {"status": "error", "message": "Missing argument 'id'"}
    record = current_app.extensions["correlation_store"].get(state)
    if record is None:
        return False, {"status": REQUEST_NOT_CREATED, "message": "No data"}
    try:
        return _project(record)
    except CallbackError as e:
        logging.warning("stored callback for %s cannot be read: %s", state, e)
        return False, {"status": "error", "message": str(e)}


def request_status():
    state = request.args.get("id")
    try:
        ok, payload = poll_request_status(state)
    except Exception as e:
        logging.exception("request status failed")
        return manage_error(str(e))
    if not ok:
        return manage_error(payload["message"], extra={"status": payload["status"]})
    return payload, 200, {"Access-Control-Allow-Origin": "*"}
