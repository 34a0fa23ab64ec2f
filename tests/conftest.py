"""Shared test fixtures."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from bson import ObjectId

from resumeforge.app import create_app
from resumeforge.config import TestConfig
from resumeforge.errors import Conflict, NotFound, Unauthorized
from resumeforge.llm_client import LLMClient
from resumeforge.pipeline import ResumeOptimizer
from resumeforge.renderer import LatexRenderer
from resumeforge.services import Services
from resumeforge.storage import StoredFile
from resumeforge.user_store import FREE_PLAN

AUTH = {"Authorization": "Bearer good-token"}


class FakeUserStore:
    """In-memory stand-in for UserStore with the same method surface."""

    def __init__(self, default_credits: int = 3):
        self.default_credits = default_credits
        self.docs: dict = {}
        self.memberships: dict = {}

    # lookups
    def _find(self, **query):
        for doc in self.docs.values():
            if all(doc.get(k) == v for k, v in query.items()):
                return copy.deepcopy(doc)
        return None

    def find_by_firebase_id(self, firebase_id):
        return self._find(firebase_id=firebase_id)

    def find_by_email(self, email):
        return self._find(email=(email or "").lower().strip())

    def find_by_subscription_id(self, subscription_id):
        return self._find(subscription_id=subscription_id) if subscription_id else None

    def find_membership(self, name):
        return copy.deepcopy(self.memberships.get(name))

    # writes
    def create_user(self, firebase_id, email, **overrides):
        if self.find_by_email(email) or self.find_by_firebase_id(firebase_id):
            raise Conflict("User already exists")
        doc = {
            "_id": ObjectId(),
            "firebase_id": firebase_id,
            "email": email.lower(),
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
        }
        doc.update(overrides)
        self.docs[doc["_id"]] = doc
        return copy.deepcopy(doc)

    def get(self, user_id):
        return self.docs[user_id]

    def _set(self, user_id, fields):
        self.docs[user_id].update(fields)

    def set_resume_file(self, user_id, file_id, filename, openai_file_id=None):
        self._set(user_id, {"resume_file_id": file_id, "resume_filename": filename,
                            "openai_file_id": openai_file_id, "resume_text": None})

    def set_resume_text(self, user_id, text):
        self._set(user_id, {"resume_text": text, "resume_file_id": None,
                            "resume_filename": None, "openai_file_id": None})

    def claim_openai_file(self, user_id, openai_file_id):
        doc = self.docs[user_id]
        if doc["openai_file_id"] != openai_file_id:
            return False
        doc["openai_file_id"] = None
        return True

    def set_optimized_resume(self, user_id, file_id):
        self._set(user_id, {"optimized_resume_id": file_id})

    def consume_credit(self, user_id):
        doc = self.docs[user_id]
        if doc["credits"] > 0:
            doc["credits"] -= 1
            return True
        return False

    def add_credits(self, user_id, credits):
        self.docs[user_id]["credits"] += int(credits)

    def activate_subscription(self, user_id, plan, subscription_id):
        self._set(user_id, {"membership": plan, "subscription_status": "active",
                            "subscription_id": subscription_id, "subscription_end": None})

    def cancel_subscription(self, user_id, ends_at):
        self._set(user_id, {"subscription_status": "cancelled", "subscription_end": ends_at})

    def end_subscription(self, user_id):
        self._set(user_id, {"membership": FREE_PLAN, "subscription_status": "inactive",
                            "subscription_id": None, "subscription_end": None})


class FakeStorage:
    def __init__(self):
        self.resumes: dict = {}
        self.optimized: dict = {}

    def _put(self, bucket, data, filename, content_type, metadata):
        file_id = ObjectId()
        bucket[file_id] = StoredFile(file_id, filename, content_type, data, metadata)
        return file_id

    def save_resume(self, user, data, filename, content_type):
        return self._put(self.resumes, data, f"{user['_id']}-{filename}", content_type,
                         {"userId": user["_id"], "originalFilename": filename})

    def save_optimized(self, user, data, original_filename):
        return self._put(self.optimized, data, "optimized.pdf", "application/pdf",
                         {"userId": user["_id"], "originalFilename": original_filename,
                          "createdAt": datetime.now(timezone.utc)})

    def delete_resume(self, file_id):
        return self.resumes.pop(file_id, None) is not None

    def open_resume(self, file_id):
        if file_id not in self.resumes:
            raise NotFound("Resume not found")
        return self.resumes[file_id]

    def open_optimized(self, file_id):
        if file_id not in self.optimized:
            raise NotFound("Optimized resume not found")
        return self.optimized[file_id]


class FakeVerifier:
    TOKENS = {
        "good-token": {"uid": "fb-1", "email": "jane@example.com", "email_verified": True},
        "other-token": {"uid": "fb-2", "email": "sam@example.com", "email_verified": True},
        "unverified-token": {"uid": "fb-3", "email": "new@example.com", "email_verified": False},
    }

    def verify(self, token):
        if token == "expired-token":
            raise Unauthorized("Token expired")
        if token not in self.TOKENS:
            raise Unauthorized("Invalid token")
        return dict(self.TOKENS[token])


@pytest.fixture
def user_store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def mock_llm() -> LLMClient:
    llm = MagicMock(spec=LLMClient)
    llm.upload_file.return_value = "file-abc"
    llm.delete_file.return_value = True
    return llm


@pytest.fixture
def mock_renderer() -> LatexRenderer:
    renderer = MagicMock(spec=LatexRenderer)
    renderer.render.return_value = b"%PDF-1.4 fake"
    return renderer


@pytest.fixture
def optimizer(user_store, storage, mock_llm, mock_renderer) -> ResumeOptimizer:
    return ResumeOptimizer(user_store, storage, mock_llm, mock_renderer, max_links=5)


@pytest.fixture
def payments():
    gateway = MagicMock()
    gateway.create_checkout_session.return_value = {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}
    return gateway


@pytest.fixture
def services(user_store, storage, mock_llm, payments, optimizer) -> Services:
    return Services(
        users=user_store,
        storage=storage,
        llm=mock_llm,
        verifier=FakeVerifier(),
        payments=payments,
        optimizer=optimizer,
    )


@pytest.fixture
def app(services):
    return create_app(TestConfig, services=services)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def jane(user_store) -> dict:
    """Registered free-tier user matching the good-token identity."""
    return user_store.create_user("fb-1", "jane@example.com")


@pytest.fixture
def sample_resume_text() -> str:
    return """Jane Doe
Austin, TX | 512-555-0100 | jane@example.com | https://github.com/janedoe

Work Experience
Acme Corp, Software Engineer
- Built REST APIs in Python serving 2M requests per day
- Cut CI build time 40% by caching Docker layers

Skills
Python, TypeScript, SQL, Docker
"""


@pytest.fixture
def sample_jd_text() -> str:
    return """Backend Engineer

We are looking for a backend engineer with Python, Kubernetes and AWS experience.
You will design REST APIs, own CI/CD pipelines and operate microservices on Kubernetes.
"""
