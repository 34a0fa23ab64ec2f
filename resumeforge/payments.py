# payments.py
from __future__ import annotations
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from flask import Blueprint, current_app, g, jsonify, request

from resumeforge.auth import firebase_required, limiter
from resumeforge.errors import BadRequest, NotFound
from resumeforge.extensions import get_services

logger = logging.getLogger(__name__)

payment_bp = Blueprint("payment", __name__)


class StripeGateway:
    """The few Stripe calls the billing routes need."""

    def __init__(self, api_key: str, webhook_secret: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    @classmethod
    def from_config(cls, config) -> "StripeGateway":
        return cls(config.get("STRIPE_SECRET_KEY", ""), config.get("STRIPE_WEBHOOK_SECRET", ""))

    def create_checkout_session(self, **params) -> Dict[str, Any]:
        session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        return {"id": session.id, "url": getattr(session, "url", None)}

    def cancel_at_period_end(self, subscription_id: str) -> Optional[datetime]:
        sub = stripe.Subscription.modify(subscription_id, cancel_at_period_end=True, api_key=self.api_key)
        ends = getattr(sub, "cancel_at", None) or getattr(sub, "current_period_end", None)
        return datetime.fromtimestamp(ends, tz=timezone.utc) if ends else None

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """Verify the signature, then hand back the event as plain JSON."""
        stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        return json.loads(payload)


def _json_body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}

def _current_user() -> Dict[str, Any]:
    user = get_services().users.find_by_firebase_id(g.firebase_id)
    if not user:
        raise NotFound("User not found")
    return user

def _redirects() -> Dict[str, str]:
    base = current_app.config["FRONTEND_URL"].rstrip("/")
    return {"success_url": f"{base}/profile", "cancel_url": f"{base}/"}


@payment_bp.post("/create_payment")
@firebase_required()
def create_payment():
    """
    Request: { "membership": "<credit pack name>" }
    Response: { "session_id": "...", "url": "..." }
    """
    name = (_json_body().get("membership") or "").strip()
    if not name:
        raise BadRequest("membership is required")
    services = get_services()
    user = _current_user()
    pack = services.users.find_membership(name)
    if not pack:
        raise NotFound("Membership not found")

    try:
        session = services.payments.create_checkout_session(
            mode="payment",
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "unit_amount": int(round(float(pack["cost"]) * 100)),
                    "product_data": {"name": f"{pack['name']} ({int(pack['credits'])} credits)"},
                },
                "quantity": 1,
            }],
            metadata={
                "firebase_id": user["firebase_id"],
                "membership": pack["name"],
                "credits": str(int(pack["credits"])),
            },
            **_redirects(),
        )
    except stripe.StripeError as err:
        logger.error("Failed to create payment session: %s", err)
        return jsonify({"message": str(err)}), 400
    return jsonify({"session_id": session["id"], "url": session["url"]})


@payment_bp.post("/create_subscription")
@firebase_required()
def create_subscription():
    name = (_json_body().get("membership") or "").strip()
    if not name:
        raise BadRequest("membership is required")
    services = get_services()
    user = _current_user()
    plan = services.users.find_membership(name)
    if not plan or not plan.get("stripe_price_id"):
        raise NotFound("Membership or Stripe Price ID not found")

    try:
        session = services.payments.create_checkout_session(
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{"price": plan["stripe_price_id"], "quantity": 1}],
            metadata={"firebase_id": user["firebase_id"], "membership": plan["name"]},
            subscription_data={"metadata": {"firebase_id": user["firebase_id"], "membership": plan["name"]}},
            **_redirects(),
        )
    except stripe.StripeError as err:
        logger.error("Failed to create subscription session: %s", err)
        return jsonify({"message": str(err)}), 400
    return jsonify({"session_id": session["id"], "url": session["url"]})


@payment_bp.post("/cancel_subscription")
@firebase_required()
def cancel_subscription():
    services = get_services()
    user = _current_user()
    sub_id = user.get("subscription_id")
    if not sub_id or user.get("subscription_status") != "active":
        raise NotFound("No active subscription")
    try:
        ends_at = services.payments.cancel_at_period_end(sub_id)
    except stripe.StripeError as err:
        logger.error("Failed to cancel subscription %s: %s", sub_id, err)
        return jsonify({"message": str(err)}), 400
    services.users.cancel_subscription(user["_id"], ends_at)
    return jsonify({
        "message": "Subscription cancelled",
        "subscription_end": ends_at.isoformat() if ends_at else None,
    })


# ------------------------------
# Webhook
# ------------------------------
def _handle_checkout_session(session: Dict[str, Any]):
    users = get_services().users
    metadata = session.get("metadata") or {}
    user = users.find_by_firebase_id(metadata.get("firebase_id") or "")
    if not user:
        raise NotFound("User not found")

    mode = session.get("mode")
    if mode == "payment":
        credits = int(metadata.get("credits") or 0)
        if credits <= 0:
            pack = users.find_membership(metadata.get("membership") or "")
            credits = int(pack["credits"]) if pack else 0
        users.add_credits(user["_id"], credits)
        logger.info("Added %d credits to user %s", credits, user["_id"])
    elif mode == "subscription":
        plan = metadata.get("membership")
        if not plan or not users.find_membership(plan):
            raise NotFound("Membership not found")
        users.activate_subscription(user["_id"], plan, session.get("subscription"))
        logger.info("Activated %s subscription for user %s", plan, user["_id"])
    else:
        logger.info("Ignoring checkout session in mode %r", mode)

def _handle_subscription_deleted(subscription: Dict[str, Any]):
    users = get_services().users
    user = users.find_by_subscription_id(subscription.get("id") or "")
    if not user:
        logger.warning("No user for deleted subscription %s", subscription.get("id"))
        return
    users.end_subscription(user["_id"])
    logger.info("Subscription ended for user %s", user["_id"])

EVENT_HANDLERS = {
    "checkout.session.completed": _handle_checkout_session,
    "customer.subscription.deleted": _handle_subscription_deleted,
}


@payment_bp.post("/webhook")
@limiter.exempt
def webhook():
    logger.info("Webhook received")
    payload = request.get_data()
    signature = request.headers.get("Stripe-Signature", "")
    try:
        event = get_services().payments.construct_event(payload, signature)
    except (ValueError, stripe.SignatureVerificationError) as err:
        logger.error("Failed to construct event: %s", err)
        return jsonify({"message": f"Webhook error: {err}"}), 400

    handler = EVENT_HANDLERS.get(event.get("type"))
    if handler:
        handler(event.get("data", {}).get("object", {}))
    return jsonify({"received": True})
