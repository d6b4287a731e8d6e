import os
import logging
from datetime import timedelta

from flask import Flask, jsonify
from flask_session import Session
import redis
import env

from werkzeug.middleware.proxy_fix import ProxyFix

from utils.correlation_store import CorrelationStore

# Routes / APIs
from routes import verifier, issuer, did
from apis import verified_id_api


def create_app(test_config=None) -> Flask:
    """Application factory: configure, wire dependencies, register routes/APIs."""
    # Base Flask app
    app = Flask(__name__, static_folder="static", static_url_path="/static")

    @app.get("/ping")
    def ping():
        return "pong"

    # ---- Logging (basic) ----
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    # ---- Environment / Mode ----
    # Environment variables are set in gunicornconf.py
    myenv = os.getenv("MYENV", "local")
    mode = env.currentMode(myenv)  # object with .server, .port, Verified ID settings

    # ---- Security / secrets ----
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "change-me-in-prod")

    # ---- Sessions (server-side via Redis) ----
    app.config.update(
        SESSION_PERMANENT=True,
        SESSION_COOKIE_NAME="verifiedid",
        SESSION_TYPE="redis",
        PERMANENT_SESSION_LIFETIME=timedelta(minutes=int(os.getenv("SESSION_MINUTES", "30"))),
    )

    # ---- App-wide config values (shared deps) ----
    app.config["MODE"] = mode
    if test_config:
        app.config.update(test_config)

    # Redis init, unless injected by test_config
    if app.config.get("REDIS") is None:
        app.config["REDIS"] = redis.Redis.from_url(os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    red = app.config["REDIS"]
    app.config["SESSION_REDIS"] = red

    # ---- Init extensions bound to app ----
    Session(app)

    # Request state of every presentation/issuance, keyed by the callback state
    app.extensions["correlation_store"] = CorrelationStore(red, app.config["MODE"].cache_expires_in_seconds)

    # ---- Register routes / APIs ----
    verifier.init_app(app)
    issuer.init_app(app)
    did.init_app(app)
    verified_id_api.init_app(app)

    # ---- Error handlers ----
    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({"error": "404", "error_description": "Not found"}), 404

    @app.errorhandler(500)
    def error_500(e):
        logging.error("500 Internal error: %s", e)
        return jsonify({"error": "500", "error_description": "Internal error"}), 500

    return app


def create_wsgi_app():
    """Entry point for gunicorn behind a reverse proxy."""
    app = create_app()
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)
    return app


# ---- Dev entrypoint: `python main.py` ----
if __name__ == "__main__":
    app = create_app()
    mode = app.config["MODE"]
    logging.info("Starting Flask dev server at %s:%s (env: %s)", mode.IP, mode.port, os.getenv("MYENV", "local"))
    app.run(host=mode.IP, port=mode.port, debug=os.getenv("FLASK_DEBUG", "1") == "1", threaded=True)
