# users.py
from __future__ import annotations
import io
import logging
import mimetypes
import re

from flask import Blueprint, current_app, g, jsonify, request, send_file
from openai import OpenAIError
from werkzeug.utils import secure_filename

from resumeforge.auth import firebase_required, limiter
from resumeforge.errors import BadRequest, NotFound
from resumeforge.extensions import get_services

logger = logging.getLogger(__name__)

user_bp = Blueprint("user", __name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

def allowed_file(filename: str) -> bool:
    exts = current_app.config["ALLOWED_EXTS"]
    return "." in filename and filename.rsplit(".", 1)[-1].lower() in exts

def _current_user():
    user = get_services().users.find_by_firebase_id(g.firebase_id)
    if not user:
        raise NotFound("User not found")
    return user


@user_bp.post("/create")
@firebase_required()
@limiter.limit("5/minute")
def create_user():
    """
    Request: { "email": "..." }   (Authorization: Bearer <firebase id token>)
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    if not email:
        raise BadRequest("email is required")
    if not EMAIL_RE.match(email):
        raise BadRequest("invalid email format")

    users = get_services().users
    if users.find_by_email(email) or users.find_by_firebase_id(g.firebase_id):
        return jsonify({"message": "User already exists"}), 409
    users.create_user(g.firebase_id, email)
    return jsonify({"message": "User created successfully"}), 201


@user_bp.get("/me")
@firebase_required()
def me():
    user = _current_user()
    end = user.get("subscription_end")
    if user.get("resume_text"):
        resume = "text"
    elif user.get("resume_file_id"):
        resume = "file"
    else:
        resume = None
    return jsonify({
        "email": user["email"],
        "credits": int(user.get("credits") or 0),
        "membership": user.get("membership") or "free",
        "subscription_status": user.get("subscription_status") or "inactive",
        "subscription_end": end.isoformat() if end else None,
        "resume": resume,
        "has_optimized_resume": bool(user.get("optimized_resume_id")),
    })


@user_bp.post("/upload_resume")
@user_bp.post("/upload-resume")
@firebase_required()
@limiter.limit("30/minute")
def upload_resume():
    """Store a resume: multipart ``file`` or JSON ``{"text": ...}``.

    Either form replaces whatever the user had before; a previous model-side
    file handle is released.
    """
    services = get_services()
    user = _current_user()

    f = request.files.get("file")
    if f is None:
        data = request.get_json(silent=True) or {}
        text = (data.get("text") or "").strip()
        if not text:
            raise BadRequest("No resume uploaded")
        _release_model_file(user)
        services.users.set_resume_text(user["_id"], text)
        _release_previous_upload(user)
        return jsonify({"message": "Resume uploaded successfully", "resume_id": None})

    if not f.filename:
        raise BadRequest("empty filename")
    if not allowed_file(f.filename):
        raise BadRequest("extension not allowed")
    raw_bytes = f.read()
    if not raw_bytes:
        raise BadRequest("empty file")

    filename = secure_filename(f.filename)
    mime = f.mimetype or mimetypes.guess_type(filename)[0] or "application/octet-stream"
    file_id = services.storage.save_resume(user, raw_bytes, filename, mime)

    _release_model_file(user)
    try:
        openai_file_id = services.llm.upload_file(raw_bytes, filename)
    except OpenAIError as e:
        # the optimizer uploads it again on demand
        logger.error("Failed to register resume with OpenAI: %s", e)
        openai_file_id = None
    services.users.set_resume_file(user["_id"], file_id, filename, openai_file_id)
    _release_previous_upload(user)
    return jsonify({"message": "Resume uploaded successfully", "resume_id": str(file_id)})

def _release_model_file(user):
    if user.get("openai_file_id"):
        get_services().llm.delete_file(user["openai_file_id"])

def _release_previous_upload(user):
    if user.get("resume_file_id"):
        get_services().storage.delete_resume(user["resume_file_id"])


def _send(stored, download_name: str):
    return send_file(
        io.BytesIO(stored.data),
        mimetype=stored.content_type,
        as_attachment=True,
        download_name=download_name,
    )

@user_bp.get("/retrieve_resume")
@firebase_required()
def retrieve_resume():
    user = _current_user()
    if not user.get("resume_file_id"):
        raise NotFound("Resume not found")
    stored = get_services().storage.open_resume(user["resume_file_id"])
    return _send(stored, stored.metadata.get("originalFilename") or stored.filename)

@user_bp.get("/retrieve_optimized")
@firebase_required()
def retrieve_optimized():
    user = _current_user()
    if not user.get("optimized_resume_id"):
        raise NotFound("Optimized resume not found")
    stored = get_services().storage.open_optimized(user["optimized_resume_id"])
    stem = (stored.metadata.get("originalFilename") or "resume").rsplit(".", 1)[0]
    return _send(stored, f"{stem}-optimized.pdf")
