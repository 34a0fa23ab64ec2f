# errors.py
from __future__ import annotations
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Error that maps directly onto an HTTP response."""

    status = 500

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class BadRequest(APIError):
    status = 400

class Unauthorized(APIError):
    status = 401

class Forbidden(APIError):
    status = 403

class NotFound(APIError):
    status = 404

class Conflict(APIError):
    status = 409

class UpstreamError(APIError):
    status = 502


class RenderError(Exception):
    """The LaTeX compiler did not produce a PDF."""


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(err: APIError):
        if err.status >= 500:
            logger.error("%s: %s", type(err).__name__, err.message)
        return jsonify({"message": err.message}), err.status

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        return jsonify({"message": err.description or err.name}), err.code

    @app.errorhandler(Exception)
    def _unexpected(err: Exception):
        logger.exception("Unhandled error")
        return jsonify({"message": "Server Error"}), 500
