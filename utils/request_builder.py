# request_builder.py
# Payloads posted to the Verified ID request service
# (createPresentationRequest / createIssuanceRequest).
# Everything here is plain data transformation: no I/O, no Redis.
from __future__ import annotations

import copy
import json
import secrets
from typing import Any, Dict, List, Optional

PRESENTATION_CALLBACK_PATH = "api/verifier/presentationcallback"
ISSUANCE_CALLBACK_PATH = "api/issuer/issuecallback"

DEFAULT_MATCH_CONFIDENCE_THRESHOLD = 70
CONSTRAINT_OPS = ("value", "contains", "startsWith")


class TemplateError(ValueError):
    pass


def _callback(callback_url: str, state: str, api_key: Optional[str]) -> Dict[str, Any]:
    return {
        "url": callback_url,
        "state": state,
        "headers": {"api-key": api_key or ""},
    }


def _registration(client_name: str, purpose: Optional[str] = None) -> Dict[str, Any]:
    registration = {"clientName": client_name}
    if purpose:
        registration["purpose"] = purpose
    return registration


def add_requested_credential(
    request: Dict[str, Any],
    credential_type: str,
    accepted_issuers: Optional[List[str]] = None,
    allow_revoked: bool = False,
    validate_linked_domain: bool = True,
) -> Dict[str, Any]:
    request.setdefault("requestedCredentials", []).append({
        "type": credential_type,
        "acceptedIssuers": list(accepted_issuers or []),
        "configuration": {
            "validation": {
                "allowRevoked": allow_revoked,
                "validateLinkedDomain": validate_linked_domain,
            }
        },
    })
    return request


def build_presentation_request(mode, callback_url: str, state: str, credential_type: Optional[str] = None) -> Dict[str, Any]:
    request = {
        "authority": mode.did_authority,
        "includeQRCode": mode.include_qrcode,
        "registration": _registration(mode.client_name, mode.purpose),
        "callback": _callback(callback_url, state, mode.api_key),
        "includeReceipt": mode.include_receipt,
        "requestedCredentials": [],
    }
    add_requested_credential(
        request,
        credential_type or mode.credential_type,
        allow_revoked=True,
        validate_linked_domain=False,
    )
    return request


def has_face_check(request: Dict[str, Any]) -> bool:
    for requested in request.get("requestedCredentials") or []:
        validation = (requested.get("configuration") or {}).get("validation") or {}
        if validation.get("faceCheck") is not None:
            return True
    return False


def add_face_check(
    request: Dict[str, Any],
    credential_type: Optional[str] = None,
    source_photo_claim_name: str = "photo",
    match_confidence_threshold: int = DEFAULT_MATCH_CONFIDENCE_THRESHOLD,
) -> Dict[str, Any]:
    """Ask for a liveness check against the photo claim of the credential."""
    for requested in request.get("requestedCredentials") or []:
        if credential_type is None or requested.get("type") == credential_type:
            validation = requested.setdefault("configuration", {}).setdefault("validation", {})
            validation["faceCheck"] = {
                "sourcePhotoClaimName": source_photo_claim_name or "photo",
                "matchConfidenceThreshold": match_confidence_threshold,
            }
            # receipt is not supported with faceCheck
            request["includeReceipt"] = False
    return request


def add_constraint(request: Dict[str, Any], claim_name: str, value: str, op: str = "value") -> Dict[str, Any]:
    """
    Constrain the first requested credential on one claim.
    op "value" takes a ';' separated list of accepted values.
    """
    if op not in CONSTRAINT_OPS:
        raise TemplateError(f"Unsupported constraint operator '{op}'")
    constraint = {"claimName": claim_name}
    if op == "value":
        constraint["values"] = [v for v in value.split(";") if v]
    else:
        constraint[op] = value
    requested = request.get("requestedCredentials") or []
    if not requested:
        raise TemplateError("Presentation request has no requestedCredentials")
    requested[0]["constraints"] = [constraint]
    return request


def strip_comment_lines(text: str) -> str:
    return "\n".join(
        line for line in text.splitlines()
        if not line.lstrip().startswith("//")
    )


def parse_template(text: str) -> Dict[str, Any]:
    """
    Load a presentation request template. Lines starting with // are comments.
    Raises TemplateError if this is not a presentation request.
    """
    try:
        template = json.loads(strip_comment_lines(text))
    except ValueError as e:
        raise TemplateError(f"Template is not valid JSON: {e}")
    if not isinstance(template, dict):
        raise TemplateError("Template must be a JSON object")
    requested = template.get("requestedCredentials")
    if not isinstance(requested, list) or not requested or not isinstance(requested[0], dict):
        raise TemplateError("Template is not a presentation request")
    if not requested[0].get("type"):
        raise TemplateError("Template does not have a credential type")
    return template


def apply_template(template: Dict[str, Any], authority: str, callback_url: str, state: str, api_key: Optional[str]) -> Dict[str, Any]:
    """Overlay authority and callback on a copy of a presentation template."""
    request = copy.deepcopy(template)
    request["authority"] = authority
    request["callback"] = _callback(callback_url, state, api_key)
    return request


def presentation_details(request: Dict[str, Any], authority: str) -> Dict[str, Any]:
    requested = (request.get("requestedCredentials") or [{}])[0]
    registration = request.get("registration") or {}
    return {
        "clientName": registration.get("clientName"),
        "purpose": registration.get("purpose"),
        "DidAuthority": authority,
        "type": requested.get("type"),
        "acceptedIssuers": requested.get("acceptedIssuers") or [],
    }


def generate_pin(length: int) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def build_issuance_request(
    mode,
    callback_url: str,
    state: str,
    claims: Optional[Dict[str, Any]] = None,
    pin: Optional[str] = None,
) -> Dict[str, Any]:
    request = {
        "authority": mode.did_authority,
        "includeQRCode": mode.include_qrcode,
        "registration": _registration(mode.client_name, mode.purpose),
        "callback": _callback(callback_url, state, mode.api_key),
        "type": mode.credential_type,
        "manifest": mode.credential_manifest,
    }
    if pin:
        request["pin"] = {"value": pin, "length": len(pin)}
    if claims:
        request["claims"] = claims
    return request
