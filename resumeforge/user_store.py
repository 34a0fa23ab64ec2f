# user_store.py
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from resumeforge.errors import Conflict

logger = logging.getLogger(__name__)

FREE_PLAN = "free"

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _as_utc(value: datetime) -> datetime:
    # Mongo hands back naive datetimes unless the client is tz_aware
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

def has_unlimited_plan(user: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """Paid members optimize without spending credits while their plan runs."""
    if (user.get("membership") or FREE_PLAN) == FREE_PLAN:
        return False
    status = user.get("subscription_status")
    if status == "active":
        return True
    if status == "cancelled":
        end = user.get("subscription_end")
        return end is None or _as_utc(end) > (now or _utcnow())
    return False

def can_optimize(user: Dict[str, Any]) -> bool:
    return has_unlimited_plan(user) or int(user.get("credits") or 0) >= 1


class UserStore:
    """Users and memberships in MongoDB."""

    def __init__(self, db: Database, default_credits: int = 3):
        self.db = db
        self.users = db.users
        self.memberships = db.memberships
        self.default_credits = default_credits

    def ensure_indexes(self):
        self.users.create_index([("email", ASCENDING)], unique=True, name="uniq_email")
        self.users.create_index([("firebase_id", ASCENDING)], unique=True, name="uniq_firebase_id")
        self.users.create_index([("subscription_id", ASCENDING)], name="users_subscription")
        self.memberships.create_index([("name", ASCENDING)], unique=True, name="uniq_membership")

    # -------- lookups --------
    def find_by_firebase_id(self, firebase_id: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"firebase_id": firebase_id})

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"email": (email or "").lower().strip()})

    def find_by_subscription_id(self, subscription_id: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"subscription_id": subscription_id})

    def find_membership(self, name: str) -> Optional[Dict[str, Any]]:
        return self.memberships.find_one({"name": name})

    # -------- users --------
    def create_user(self, firebase_id: str, email: str) -> Dict[str, Any]:
        now = _utcnow()
        doc = {
            "firebase_id": firebase_id,
            "email": (email or "").lower().strip(),
            "resume_file_id": None,
            "resume_filename": None,
            "openai_file_id": None,
            "resume_text": None,
            "optimized_resume_id": None,
            "credits": self.default_credits,
            "membership": FREE_PLAN,
            "subscription_status": "inactive",
            "subscription_id": None,
            "subscription_end": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            res = self.users.insert_one(doc)
        except DuplicateKeyError:
            raise Conflict("User already exists")
        doc["_id"] = res.inserted_id
        return doc

    def _set(self, user_id: ObjectId, fields: Dict[str, Any]):
        self.users.update_one({"_id": user_id}, {"$set": {**fields, "updated_at": _utcnow()}})

    # -------- resume source (only one representation at a time) --------
    def set_resume_file(self, user_id: ObjectId, file_id: ObjectId, filename: str,
                        openai_file_id: Optional[str] = None):
        self._set(user_id, {
            "resume_file_id": file_id,
            "resume_filename": filename,
            "openai_file_id": openai_file_id,
            "resume_text": None,
        })

    def set_resume_text(self, user_id: ObjectId, text: str):
        self._set(user_id, {
            "resume_text": text,
            "resume_file_id": None,
            "resume_filename": None,
            "openai_file_id": None,
        })

    def claim_openai_file(self, user_id: ObjectId, openai_file_id: str) -> bool:
        """Detach the stored model-side handle for one run. False if another run took it."""
        res = self.users.update_one(
            {"_id": user_id, "openai_file_id": openai_file_id},
            {"$set": {"openai_file_id": None, "updated_at": _utcnow()}},
        )
        return res.modified_count == 1

    def set_optimized_resume(self, user_id: ObjectId, file_id: ObjectId):
        self._set(user_id, {"optimized_resume_id": file_id})

    # -------- credits --------
    def consume_credit(self, user_id: ObjectId) -> bool:
        """Take one credit if any are left. Returns False when none were."""
        doc = self.users.find_one_and_update(
            {"_id": user_id, "credits": {"$gt": 0}},
            {"$inc": {"credits": -1}, "$set": {"updated_at": _utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return doc is not None

    def add_credits(self, user_id: ObjectId, credits: int):
        self.users.update_one(
            {"_id": user_id},
            {"$inc": {"credits": int(credits)}, "$set": {"updated_at": _utcnow()}},
        )

    # -------- subscriptions --------
    def activate_subscription(self, user_id: ObjectId, plan: str, subscription_id: Optional[str]):
        self._set(user_id, {
            "membership": plan,
            "subscription_status": "active",
            "subscription_id": subscription_id,
            "subscription_end": None,
        })

    def cancel_subscription(self, user_id: ObjectId, ends_at: Optional[datetime]):
        self._set(user_id, {"subscription_status": "cancelled", "subscription_end": ends_at})

    def end_subscription(self, user_id: ObjectId):
        self._set(user_id, {
            "membership": FREE_PLAN,
            "subscription_status": "inactive",
            "subscription_id": None,
            "subscription_end": None,
        })
