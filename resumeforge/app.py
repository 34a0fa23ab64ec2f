# app.py
from __future__ import annotations
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, request
from flask_cors import CORS
from flask_talisman import Talisman

# --- Load env BEFORE importing config (so config sees env) ---
load_dotenv(Path.cwd() / ".env")

from resumeforge.config import DevConfig, ProdConfig, validate_required_secrets
from resumeforge.ai import ai_bp
from resumeforge.auth import init_auth
from resumeforge.errors import register_error_handlers
from resumeforge.extensions import EXTENSION_KEY
from resumeforge.payments import payment_bp
from resumeforge.users import user_bp

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO"):
    root = logging.getLogger()
    if not any(getattr(h, "_resumeforge", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._resumeforge = True
        root.addHandler(handler)
    root.setLevel(level.upper())


def _security_headers(app: Flask):
    if app.config.get("DEBUG") or app.config.get("TESTING"):
        # Dev: do not force HTTPS
        Talisman(
            app,
            force_https=False,
            content_security_policy={"default-src": ["'none'"], "frame-ancestors": ["'none'"]},
            session_cookie_secure=False,
            frame_options="DENY",
            referrer_policy="strict-origin-when-cross-origin",
        )
    else:
        # Prod: strict CSP + HTTPS
        Talisman(
            app,
            force_https=True,
            content_security_policy={"default-src": ["'none'"], "frame-ancestors": ["'none'"]},
            session_cookie_secure=True,
            frame_options="DENY",
            referrer_policy="strict-origin-when-cross-origin",
        )


def create_app(config_object=None, services=None) -> Flask:
    """Build the app. ``services`` defaults to real Mongo/OpenAI/Firebase/Stripe clients."""
    app = Flask(__name__)
    if config_object is None:
        config_object = ProdConfig if os.getenv("ENV") == "prod" else DevConfig
        validate_required_secrets()  # raises only when ENV=prod and secrets missing
    app.config.from_object(config_object)
    app.url_map.strict_slashes = False
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    CORS(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
        supports_credentials=True,
        allow_headers=["Authorization", "Content-Type"],
        methods=["GET", "POST", "OPTIONS"],
    )
    _security_headers(app)
    init_auth(app)
    register_error_handlers(app)

    if services is None:
        from resumeforge.services import build_services
        services = build_services(app.config)
    app.extensions[EXTENSION_KEY] = services

    app.register_blueprint(ai_bp, url_prefix="/api/v1/ai")
    app.register_blueprint(user_bp, url_prefix="/api/v1/user")
    app.register_blueprint(payment_bp, url_prefix="/api/v1/payment")

    @app.before_request
    def _log_request():
        logger.info("%s %s", request.method, request.path)

    @app.get("/")
    def home():
        return "Hello, world!"

    return app


def main():
    app = create_app()
    port = int(os.getenv("PORT", "3000"))
    app.run(host="0.0.0.0", port=port, debug=app.config.get("DEBUG", False))


if __name__ == "__main__":
    main()
