# verifier.py
# Presentation side: build the presentation request from configuration, from
# the template loaded in the session, and from the query string, then hand it
# to the request service.
import logging
import uuid

import requests
from flask import request, current_app, session, jsonify

from routes.request_service import create_request, request_host_url
from utils import request_builder
from utils.request_builder import TemplateError

logging.basicConfig(level=logging.INFO)

TEMPLATE_SESSION_KEY = "presentationRequestTemplate"


def init_app(app):
    app.add_url_rule('/api/verifier/presentation-request', view_func=presentation_request, methods=['GET'])
    app.add_url_rule('/api/verifier/get-presentation-details', view_func=get_presentation_details, methods=['GET'])
    app.add_url_rule('/api/verifier/load-template', view_func=load_template, methods=['POST'])
    app.add_url_rule('/api/verifier/load-template', view_func=clear_template, methods=['DELETE'])
    return


def _is_true(value):
    return bool(value) and value.strip().lower() in ("1", "true")


def _session_template():
    template = session.get(TEMPLATE_SESSION_KEY)
    if not template:
        return None
    try:
        return request_builder.parse_template(template)
    except TemplateError:
        logging.warning("template in session is no more valid, ignored")
        session.pop(TEMPLATE_SESSION_KEY, None)
        return None


def _build_presentation_request(state, args):
    mode = current_app.config["MODE"]
    callback_url = request_host_url() + request_builder.PRESENTATION_CALLBACK_PATH

    template = _session_template()
    if template:
        payload = request_builder.apply_template(template, mode.did_authority, callback_url, state, mode.api_key)
    else:
        payload = request_builder.build_presentation_request(
            mode, callback_url, state, credential_type=args.get("credentialType")
        )

    use_face_check = _is_true(args.get("faceCheck")) or mode.use_face_check
    if use_face_check and not request_builder.has_face_check(payload):
        photo_claim_name = args.get("photoClaimName") or mode.photo_claim_name
        request_builder.add_face_check(payload, None, photo_claim_name)

    constraint_name = args.get("constraintName")
    constraint_value = args.get("constraintValue")
    if constraint_name and constraint_value:
        request_builder.add_constraint(
            payload, constraint_name, constraint_value, args.get("constraintOp") or "value"
        )
    return payload


def presentation_request():
    """ Called from the UI to initiate the presentation of a verifiable credential """
    state = str(uuid.uuid4())
    try:
        payload = _build_presentation_request(state, request.args)
    except TemplateError as e:
        return jsonify({"error": "400", "error_description": str(e)}), 400
    try:
        return create_request("createPresentationRequest", payload, state)
    except Exception as e:
        logging.exception("presentation request failed")
        return jsonify({"error": "400", "error_description": "Exception: " + str(e)}), 400


def get_presentation_details():
    mode = current_app.config["MODE"]
    template = _session_template()
    if template is None:
        template = request_builder.build_presentation_request(mode, "", "")
    return jsonify(request_builder.presentation_details(template, mode.did_authority))


def _fetch_template(link):
    mode = current_app.config["MODE"]
    if not link.startswith("https://"):
        raise TemplateError(f"Template link must be https: {link}")
    try:
        r = requests.get(link, timeout=mode.api_timeout)
    except requests.exceptions.RequestException as e:
        raise TemplateError(f"Error getting template link: {link}. {e}")
    if r.status_code != 200:
        raise TemplateError(f"{r.status_code} - Template link not found: {link}")
    return r.text


def load_template():
    """
    The UI passes a template for the presentation request so we can request
    other credentials. Either the JSON body or ?template=https://...
    """
    link = request.args.get("template")
    try:
        text = _fetch_template(link) if link else request.get_data(as_text=True)
        template = request_builder.parse_template(text)
    except TemplateError as e:
        logging.warning("template rejected: %s", e)
        return jsonify({"error": "400", "error_description": str(e)}), 400
    session[TEMPLATE_SESSION_KEY] = request_builder.strip_comment_lines(text)
    logging.info("presentation template loaded for type %s", template["requestedCredentials"][0]["type"])
    return jsonify({"status": "template loaded"})


def clear_template():
    session.pop(TEMPLATE_SESSION_KEY, None)
    return jsonify({"status": "template removed"})
