# issuer.py
# Issuance side: createIssuanceRequest with the configured manifest, optional
# claims posted by the UI and an optional PIN code shown to the user.
import logging
import uuid

from flask import request, current_app, jsonify

from routes.request_service import create_request, request_host_url
from utils import request_builder

logging.basicConfig(level=logging.INFO)


def init_app(app):
    app.add_url_rule('/api/issuer/issuance-request', view_func=issuance_request, methods=['GET', 'POST'])
    app.add_url_rule('/api/issuer/get-manifest', view_func=get_manifest, methods=['GET'])
    return


def issuance_request():
    """ Called from the UI to initiate the issuance of a verifiable credential """
    mode = current_app.config["MODE"]
    state = str(uuid.uuid4())
    callback_url = request_host_url() + request_builder.ISSUANCE_CALLBACK_PATH

    claims = None
    if request.method == "POST":
        claims = request.get_json(silent=True)
        if claims is not None and not isinstance(claims, dict):
            return jsonify({"error": "400", "error_description": "claims must be a JSON object"}), 400

    pin = None
    if mode.issuance_pin_code_length > 0:
        pin = request_builder.generate_pin(mode.issuance_pin_code_length)

    payload = request_builder.build_issuance_request(mode, callback_url, state, claims=claims, pin=pin)
    try:
        return create_request("createIssuanceRequest", payload, state, extra={"pin": pin} if pin else None)
    except Exception as e:
        logging.exception("issuance request failed")
        return jsonify({"error": "400", "error_description": "Exception: " + str(e)}), 400


def get_manifest():
    mode = current_app.config["MODE"]
    return jsonify({
        "manifest": mode.credential_manifest,
        "type": mode.credential_type,
        "DidAuthority": mode.did_authority,
    })
