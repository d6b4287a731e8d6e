# apis/verified_id_api.py
from flask import Blueprint
from flask_restx import Api, Namespace, Resource, fields

from routes.callback import (
    issuance_callback, presentation_callback, set_selfie, request_status,
)

# Routes are /api/<endpoint>, the Api itself is bound per app in init_app
ns = Namespace("request", path="/", description="Request state callbacks and polling")

# ------------------------------------------------------------
# Models
# ------------------------------------------------------------
error_model = ns.model("Error", {
    "error": fields.String(example="400"),
    "error_description": fields.String(example="Invalid state '8b1f...'"),
})

callback_error = ns.model("CallbackError", {
    "code": fields.String(example="request_cancelled"),
    "message": fields.String(example="The request was cancelled by the user"),
})

callback_event = ns.model("CallbackEvent", {
    "requestId": fields.String,
    "requestStatus": fields.String(required=True, example="presentation_verified"),
    "state": fields.String(required=True, description="Correlation id returned by the request endpoints"),
    "subject": fields.String,
    "error": fields.Nested(callback_error),
    "verifiedCredentialsData": fields.List(fields.Raw),
    "receipt": fields.Raw,
})

status_response = ns.model("RequestStatus", {
    "status": fields.String(example="request_retrieved"),
    "message": fields.String(example="QR code is scanned. Waiting for user action..."),
    "type": fields.String,
    "claims": fields.Raw,
    "subject": fields.String,
    "payload": fields.List(fields.Raw),
    "expirationDate": fields.String,
    "issuanceDate": fields.String,
    "photo": fields.String,
})

# ------------------------------------------------------------
# Parsers
# ------------------------------------------------------------
callback_parser = ns.parser()
callback_parser.add_argument("api-key", location="headers",
                            help="Shared secret set in the callback headers of the request.")

status_parser = ns.parser()
status_parser.add_argument("id", location="args",
                          help="Correlation id returned by presentation-request or issuance-request.")

# ------------------------------------------------------------
# Resources
# ------------------------------------------------------------
@ns.route("/verifier/presentationcallback")
class PresentationCallback(Resource):
    @ns.expect(callback_parser, callback_event)
    @ns.response(200, "Request state updated")
    @ns.response(400, "Bad request", model=error_model)
    @ns.response(401, "Unauthorized", model=error_model)
    def post(self):
        return presentation_callback()


@ns.route("/issuer/issuecallback")
class IssuanceCallback(Resource):
    @ns.expect(callback_parser, callback_event)
    @ns.response(200, "Request state updated")
    @ns.response(400, "Bad request", model=error_model)
    @ns.response(401, "Unauthorized", model=error_model)
    def post(self):
        return issuance_callback()


@ns.route("/issuer/selfie/<string:id>")
class Selfie(Resource):
    @ns.doc(consumes=["text/plain"], params={"id": "Correlation id of the request"})
    @ns.response(200, "Selfie stored")
    @ns.response(400, "Bad request", model=error_model)
    def post(self, id):
        return set_selfie(id)


@ns.route("/request-status")
class RequestStatus(Resource):
    @ns.expect(status_parser)
    @ns.response(200, "Current status", model=status_response)
    @ns.response(400, "Unknown request or invalid state", model=error_model)
    def get(self):
        return request_status()


def init_app(app):
    # Mount the callback and polling endpoints under /api
    bp = Blueprint("verified_id_api", __name__, url_prefix="/api")

    # Bind RESTX to the blueprint; Swagger UI at /api/swagger
    api_verified_id = Api(
        bp,
        version="1.0",
        title="Verified ID callback API",
        description="Callbacks of the Verified ID request service and request status polling.",
        doc="/swagger",
    )
    api_verified_id.add_namespace(ns)
    app.register_blueprint(bp)
