# ai.py
from __future__ import annotations
import logging

from flask import Blueprint, g, jsonify, request

from resumeforge.auth import firebase_required, limiter
from resumeforge.errors import BadRequest, Forbidden, NotFound
from resumeforge.extensions import get_services
from resumeforge.models import serialize_edits
from resumeforge.user_store import can_optimize

logger = logging.getLogger(__name__)

ai_bp = Blueprint("ai", __name__)


def _load_request():
    """Shared gatekeeping for the AI routes: body, user, credits."""
    data = request.get_json(silent=True) or {}
    job_description = (data.get("job_description") or "").strip()
    if not job_description:
        raise BadRequest("Missing details in body")

    user = get_services().users.find_by_firebase_id(g.firebase_id)
    if not user:
        raise NotFound("User not found")
    if not can_optimize(user):
        logger.info("Not enough credits for user %s", user["_id"])
        raise Forbidden("Not enough credits")
    return user, job_description


@ai_bp.post("/optimize")
@firebase_required(require_verified=True)
@limiter.limit("10/minute")
def optimize():
    """
    Request: { "job_description": "..." }
    Response: { "message": "...", "changes_accumulated": [...], "optimized_resume_id": "..." | null }
    """
    user, job_description = _load_request()
    result = get_services().optimizer.optimize(user, job_description)
    return jsonify({
        "message": "Resume optimized successfully",
        "changes_accumulated": serialize_edits(result.edits),
        "optimized_resume_id": result.optimized_resume_id,
    })


@ai_bp.post("/ats")
@firebase_required(require_verified=True)
@limiter.limit("20/minute")
def ats():
    user, job_description = _load_request()
    report = get_services().optimizer.score_ats(user, job_description)
    return jsonify({"message": report.model_dump()})
