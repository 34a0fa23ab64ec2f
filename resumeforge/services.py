# services.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any

from pymongo import MongoClient

from resumeforge.auth import FirebaseVerifier
from resumeforge.llm_client import LLMClient
from resumeforge.payments import StripeGateway
from resumeforge.pipeline import ResumeOptimizer
from resumeforge.renderer import LatexRenderer
from resumeforge.storage import ResumeStorage
from resumeforge.user_store import UserStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide collaborators, built once at startup."""

    users: UserStore
    storage: ResumeStorage
    llm: Any
    verifier: Any
    payments: Any
    optimizer: ResumeOptimizer


def build_services(config) -> Services:
    client = MongoClient(config["MONGO_URI"], serverSelectionTimeoutMS=5000)
    db = client[config["MONGO_DB"]]
    users = UserStore(db, default_credits=config["DEFAULT_CREDITS"])
    users.ensure_indexes()
    storage = ResumeStorage(db)
    llm = LLMClient.from_config(config)
    optimizer = ResumeOptimizer(
        users, storage, llm, LatexRenderer.from_config(config),
        mode=config["EDIT_MODE"],
        max_links=config["MAX_LINKS"],
        max_workers=config["EDIT_WORKERS"],
    )
    logger.info("MongoDB connected to %s", config["MONGO_DB"])
    return Services(
        users=users,
        storage=storage,
        llm=llm,
        verifier=FirebaseVerifier.from_config(config),
        payments=StripeGateway.from_config(config),
        optimizer=optimizer,
    )
