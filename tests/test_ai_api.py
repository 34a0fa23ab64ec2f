"""Tests for the /api/v1/ai routes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from conftest import AUTH
from resumeforge.models import ATSReport, EditPair
from resumeforge.pipeline import OptimizationResult


@pytest.fixture
def stub_optimizer(services):
    """Replace the real optimizer so route tests only exercise gatekeeping."""
    optimizer = MagicMock()
    optimizer.optimize.return_value = OptimizationResult(
        edits=[EditPair(section="Skills", old_text="Python", new_text="Python, Kubernetes")],
        optimized_resume_id="65f000000000000000000001",
    )
    optimizer.score_ats.return_value = ATSReport(score=81, matched_keywords=["Python"], missing_keywords=["AWS"])
    services.optimizer = optimizer
    return optimizer


class TestOptimize:
    def test_success(self, client, jane, stub_optimizer):
        resp = client.post("/api/v1/ai/optimize", json={"job_description": "Python role"}, headers=AUTH)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"] == "Resume optimized successfully"
        assert body["changes_accumulated"] == [
            {"section": "Skills", "old_text": "Python", "new_text": "Python, Kubernetes"}
        ]
        assert body["optimized_resume_id"] == "65f000000000000000000001"
        called_user, called_jd = stub_optimizer.optimize.call_args.args
        assert called_user["firebase_id"] == "fb-1"
        assert called_jd == "Python role"

    def test_missing_job_description(self, client, jane, stub_optimizer):
        resp = client.post("/api/v1/ai/optimize", json={}, headers=AUTH)
        assert resp.status_code == 400
        stub_optimizer.optimize.assert_not_called()

    def test_unknown_user(self, client, stub_optimizer):
        resp = client.post("/api/v1/ai/optimize", json={"job_description": "jd"}, headers=AUTH)
        assert resp.status_code == 404

    def test_unverified_email(self, client, user_store, stub_optimizer):
        user_store.create_user("fb-3", "new@example.com")
        resp = client.post("/api/v1/ai/optimize", json={"job_description": "jd"},
                           headers={"Authorization": "Bearer unverified-token"})
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Email not verified"

    def test_free_user_without_credits_is_rejected(self, client, user_store, stub_optimizer):
        user_store.create_user("fb-1", "jane@example.com", credits=0)

        resp = client.post("/api/v1/ai/optimize", json={"job_description": "jd"}, headers=AUTH)

        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Not enough credits"
        stub_optimizer.optimize.assert_not_called()

    @pytest.mark.parametrize("credits", [0, 5])
    def test_member_succeeds_regardless_of_credits(self, client, user_store, stub_optimizer, credits):
        user_store.create_user("fb-1", "jane@example.com", credits=credits,
                               membership="pro", subscription_status="active")

        resp = client.post("/api/v1/ai/optimize", json={"job_description": "jd"}, headers=AUTH)

        assert resp.status_code == 200

    def test_cancelled_member_keeps_access_until_period_end(self, client, user_store, stub_optimizer):
        user_store.create_user("fb-1", "jane@example.com", credits=0, membership="pro",
                               subscription_status="cancelled",
                               subscription_end=datetime.now(timezone.utc) + timedelta(days=3))
        resp = client.post("/api/v1/ai/optimize", json={"job_description": "jd"}, headers=AUTH)
        assert resp.status_code == 200

    def test_lapsed_member_without_credits_is_rejected(self, client, user_store, stub_optimizer):
        user_store.create_user("fb-1", "jane@example.com", credits=0, membership="pro",
                               subscription_status="cancelled",
                               subscription_end=datetime.now(timezone.utc) - timedelta(days=1))
        resp = client.post("/api/v1/ai/optimize", json={"job_description": "jd"}, headers=AUTH)
        assert resp.status_code == 403

    def test_end_to_end_with_text_resume(self, client, user_store, mock_llm, sample_resume_text):
        """Real optimizer, mocked model: the full request path for a text resume."""
        user_store.create_user("fb-1", "jane@example.com", resume_text=sample_resume_text)
        mock_llm.complete_json.side_effect = [
            {"name": "Jane Doe", "location": "Austin, TX", "phone": "512-555-0100",
             "email": "jane@example.com", "links": [], "sections": ["Skills"]},
            {"changes": [["Python, TypeScript, SQL, Docker", "Python, TypeScript, SQL, Docker, AWS"]]},
        ]
        mock_llm.complete_text.return_value = r"\documentclass{article}\begin{document}x\end{document}"

        resp = client.post("/api/v1/ai/optimize", json={"job_description": "AWS role"}, headers=AUTH)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["changes_accumulated"][0]["new_text"] == "Python, TypeScript, SQL, Docker, AWS"
        assert body["optimized_resume_id"] is not None
        assert user_store.find_by_firebase_id("fb-1")["credits"] == 2

    def test_upstream_failure_is_502(self, client, user_store, mock_llm, sample_resume_text):
        user_store.create_user("fb-1", "jane@example.com", resume_text=sample_resume_text)
        mock_llm.complete_json.return_value = None

        resp = client.post("/api/v1/ai/optimize", json={"job_description": "jd"}, headers=AUTH)

        assert resp.status_code == 502
        assert user_store.find_by_firebase_id("fb-1")["credits"] == 3


class TestATS:
    def test_returns_report(self, client, jane, stub_optimizer):
        resp = client.post("/api/v1/ai/ats", json={"job_description": "jd"}, headers=AUTH)

        assert resp.status_code == 200
        assert resp.get_json() == {
            "message": {"score": 81, "matched_keywords": ["Python"], "missing_keywords": ["AWS"]}
        }

    def test_no_credits(self, client, user_store, stub_optimizer):
        user_store.create_user("fb-1", "jane@example.com", credits=0)
        resp = client.post("/api/v1/ai/ats", json={"job_description": "jd"}, headers=AUTH)
        assert resp.status_code == 403
