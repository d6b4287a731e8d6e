# request_state.py
# Shared model of a Verified ID request: flow kinds, status values, the state
# record kept in the correlation store and the callback event sent by the
# request service.
from __future__ import annotations

import json
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


REQUEST_CREATED = "request_created"
REQUEST_RETRIEVED = "request_retrieved"
REQUEST_NOT_CREATED = "request_not_created"
PRESENTATION_VERIFIED = "presentation_verified"
PRESENTATION_ERROR = "presentation_error"
ISSUANCE_SUCCESSFUL = "issuance_successful"
ISSUANCE_ERROR = "issuance_error"
SELFIE_TAKEN = "selfie_taken"

TERMINAL_STATUSES = {
    PRESENTATION_VERIFIED, PRESENTATION_ERROR,
    ISSUANCE_SUCCESSFUL, ISSUANCE_ERROR,
    SELFIE_TAKEN,
}


class CallbackError(Exception):
    pass


class FlowKind(enum.Enum):
    PRESENTATION = "presentation"
    ISSUANCE = "issuance"
    SELFIE = "selfie"

    @property
    def allowed_statuses(self) -> tuple:
        return _ALLOWED_STATUSES[self]

    @property
    def requires_api_key(self) -> bool:
        # selfie callbacks are built locally from the browser upload
        return self is not FlowKind.SELFIE


_ALLOWED_STATUSES = {
    FlowKind.PRESENTATION: (REQUEST_RETRIEVED, PRESENTATION_VERIFIED, PRESENTATION_ERROR),
    FlowKind.ISSUANCE: (REQUEST_RETRIEVED, ISSUANCE_SUCCESSFUL, ISSUANCE_ERROR),
    FlowKind.SELFIE: (SELFIE_TAKEN,),
}


def new_state_record(expiry=None) -> Dict[str, Any]:
    record = {
        "status": REQUEST_CREATED,
        "message": "Waiting for QR code to be scanned",
    }
    if expiry is not None:
        record["expiry"] = expiry
    return record


def _member(data: Dict[str, Any], name: str):
    """Lookup tolerant to PascalCase members (RequestStatus == requestStatus)."""
    if name in data:
        return data[name]
    return data.get(name[:1].upper() + name[1:])


@dataclass
class EventError:
    code: Optional[str] = None
    message: Optional[str] = None


@dataclass
class CredentialData:
    issuer: Optional[str] = None
    type: List[str] = field(default_factory=list)
    claims: Dict[str, Any] = field(default_factory=dict)
    expiration_date: Optional[str] = None
    issuance_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialData":
        if not isinstance(data, dict):
            raise CallbackError("verifiedCredentialsData entries must be objects")
        vc_type = _member(data, "type") or []
        if isinstance(vc_type, str):
            vc_type = [vc_type]
        return cls(
            issuer=_member(data, "issuer"),
            type=list(vc_type),
            claims=_member(data, "claims") or {},
            expiration_date=_member(data, "expirationDate"),
            issuance_date=_member(data, "issuanceDate"),
        )


@dataclass
class CallbackEvent:
    request_id: Optional[str] = None
    request_status: Optional[str] = None
    state: Optional[str] = None
    subject: Optional[str] = None
    error: Optional[EventError] = None
    verified_credentials_data: List[Dict[str, Any]] = field(default_factory=list)
    photo: Optional[str] = None

    @classmethod
    def from_json(cls, body) -> "CallbackEvent":
        """
        Parse the body of a callback. Raises CallbackError when the body is not
        a JSON object or misses requestStatus / state.
        """
        try:
            data = json.loads(body) if isinstance(body, (str, bytes, bytearray)) else body
        except ValueError as e:
            raise CallbackError(f"Callback body is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise CallbackError("Callback body must be a JSON object")

        request_status = _member(data, "requestStatus")
        state = _member(data, "state")
        if not isinstance(request_status, str) or not request_status:
            raise CallbackError("Callback is missing requestStatus")
        if not isinstance(state, str) or not state:
            raise CallbackError("Callback is missing state")

        error = _member(data, "error")
        if isinstance(error, dict):
            error = EventError(code=_member(error, "code"), message=_member(error, "message"))
        else:
            error = None

        vcs = _member(data, "verifiedCredentialsData")
        if vcs is None:
            vcs = []
        elif not isinstance(vcs, list):
            raise CallbackError("verifiedCredentialsData must be an array")

        return cls(
            request_id=_member(data, "requestId"),
            request_status=request_status,
            state=state,
            subject=_member(data, "subject"),
            error=error,
            verified_credentials_data=vcs,
            photo=_member(data, "photo"),
        )

    def first_credential(self) -> CredentialData:
        if not self.verified_credentials_data:
            raise CallbackError("Callback has no verifiedCredentialsData")
        return CredentialData.from_dict(self.verified_credentials_data[0])

    def error_message(self) -> str:
        if self.error is None or self.error.message is None:
            raise CallbackError("Callback has no error message")
        return self.error.message


def selfie_event(identifier: str, photo: str) -> str:
    """Callback body synthesized for a selfie uploaded by the browser."""
    return json.dumps({
        "requestId": identifier,
        "state": identifier,
        "requestStatus": SELFIE_TAKEN,
        "photo": photo,
    })
