# request_service.py
# Calls to the Verified ID request service shared by the verifier and the
# issuer: acquire the access token, POST the request, and on success create
# the request state record that callbacks and polling will use.
import json
import logging

import requests
from flask import current_app, request

from utils import msal_token
from utils.request_state import new_state_record

logging.basicConfig(level=logging.INFO)


def manage_error(error, error_description, **extra):
    body = {"error": error, "error_description": error_description}
    body.update(extra)
    return body, 400


def request_host_url():
    """Public https base URL of this service, as seen by the request service."""
    original_host = request.headers.get("x-original-host")
    if original_host:
        return f"https://{original_host}/"
    return request.host_url.replace("http://", "https://", 1)


def create_request(operation, payload, state, extra=None):
    """
    POST payload to <api_endpoint><operation> and register the state.
    Returns a (body, status, headers) tuple for the browser.
    """
    mode = current_app.config["MODE"]

    # The request service is an authenticated API, we need a bearer token
    access_token, error, error_description = msal_token.get_access_token(mode)
    if not access_token:
        logging.error("failed to acquire access token: %s : %s", error, error_description)
        return manage_error(error, error_description)

    url = mode.api_endpoint + operation
    logging.info("request service payload = %s", json.dumps(payload))
    headers = {
        "Content-Type": "application/json",
        "Authorization": "Bearer " + access_token,
    }
    try:
        r = requests.post(url, headers=headers, data=json.dumps(payload), timeout=mode.api_timeout)
    except requests.exceptions.RequestException as e:
        logging.error("request service call failed: %s", e)
        return manage_error("400", "Exception: " + str(e))

    if r.status_code not in (200, 201):
        logging.error("Verified ID API error %s: %s", r.status_code, r.text)
        return manage_error(
            "400",
            f"Verified ID API error response: {r.status_code} {r.text}",
            request=payload,
        )

    try:
        resp = r.json()
    except ValueError:
        logging.error("Verified ID API response is not JSON: %s", r.text)
        return manage_error("400", "Verified ID API response is not JSON: " + r.text)
    logging.info("successfully called %s", operation)

    store = current_app.extensions["correlation_store"]
    store.put(state, new_state_record(resp.get("expiry")))

    resp["id"] = state
    if extra:
        resp.update(extra)
    return resp, 200, {"Access-Control-Allow-Origin": "*"}
