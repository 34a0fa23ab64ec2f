# auth.py
from __future__ import annotations
import logging
from functools import wraps
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth as fb_auth
from firebase_admin import credentials
from firebase_admin.exceptions import FirebaseError
from flask import g, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from resumeforge.errors import APIError, Forbidden, Unauthorized
from resumeforge.extensions import get_services

logger = logging.getLogger(__name__)

# rate limiter; will be bound to app in init_auth()
limiter = Limiter(key_func=get_remote_address)

FIREBASE_APP_NAME = "resumeforge"


class FirebaseVerifier:
    """Verifies Firebase ID tokens with a service-account app.

    The firebase_admin app is created on first use so the process can start
    (and tests can run) without credentials.
    """

    def __init__(self, project_id: str, client_email: str, private_key: str):
        self._cert = {
            "type": "service_account",
            "project_id": project_id,
            "client_email": client_email,
            "private_key": private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }
        self._app: Optional[firebase_admin.App] = None

    @classmethod
    def from_config(cls, config) -> "FirebaseVerifier":
        return cls(
            config.get("FIREBASE_PROJECT_ID", ""),
            config.get("FIREBASE_CLIENT_EMAIL", ""),
            config.get("FIREBASE_PRIVATE_KEY", ""),
        )

    def _get_app(self) -> firebase_admin.App:
        if self._app is None:
            try:
                self._app = firebase_admin.get_app(FIREBASE_APP_NAME)
            except ValueError:
                self._app = firebase_admin.initialize_app(
                    credentials.Certificate(self._cert), name=FIREBASE_APP_NAME
                )
                logger.info("Firebase Admin initialized successfully")
        return self._app

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            app = self._get_app()
        except (ValueError, OSError, FirebaseError) as e:
            logger.error("Failed to initialize Firebase Admin: %s", e)
            raise APIError("Failed to authenticate user", 500)
        try:
            return fb_auth.verify_id_token(token, app=app)
        except fb_auth.ExpiredIdTokenError:
            raise Unauthorized("Token expired")
        except (fb_auth.InvalidIdTokenError, fb_auth.UserDisabledError, ValueError):
            raise Unauthorized("Invalid token")
        except FirebaseError as e:
            logger.error("Failed to authenticate user: %s", e)
            raise APIError("Failed to authenticate user", 500)


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise Unauthorized("No token provided or invalid format")
    token = header[len("Bearer "):].strip()
    if not token:
        raise Unauthorized("No token provided or invalid format")
    return token


def firebase_required(require_verified: bool = False):
    """Authenticate the request with a Firebase ID token.

    Sets g.firebase_id, g.firebase_email and g.email_verified. With
    require_verified, callers whose email is not verified get 403.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            claims = get_services().verifier.verify(_bearer_token())
            g.firebase_id = claims.get("uid") or claims.get("sub")
            g.firebase_email = claims.get("email")
            g.email_verified = bool(claims.get("email_verified"))
            if not g.firebase_id:
                raise Unauthorized("Invalid token")
            if require_verified and not g.email_verified:
                raise Forbidden("Email not verified")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def init_auth(app):
    """
    Call once from create_app():
        from resumeforge.auth import init_auth
        init_auth(app)
    """
    app.config.setdefault("RATELIMIT_DEFAULT", "200 per hour")
    limiter.init_app(app)
