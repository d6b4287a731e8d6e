import logging
import os

from flask import current_app, send_file, jsonify

logging.basicConfig(level=logging.INFO)

DID_DOCUMENTS = {
    "did.json": "did.json",
    "did-configuration.json": "did-configuration.json",
}


def init_app(app):
    app.add_url_rule('/.well-known/<document>', view_func=well_known_document, methods=['GET'])
    return


def well_known_document(document):
    fname = DID_DOCUMENTS.get(document)
    if not fname:
        return jsonify({"error": "404", "error_description": "Not found"}), 404
    path = os.path.join(current_app.config["MODE"].resources_path, fname)
    if not os.path.isfile(path):
        logging.warning("%s is missing in %s", fname, current_app.config["MODE"].resources_path)
        return jsonify({"error": "404", "error_description": f"{fname} not found"}), 404
    return send_file(os.path.abspath(path), mimetype="application/json")
