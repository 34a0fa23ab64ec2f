# config.py
import os

def _csv_env(name: str, default: str = "") -> list[str]:
    val = os.getenv(name, default)
    # split only if non-empty; strip whitespace
    return [x.strip() for x in val.split(",") if x.strip()] if val else []

def _bool_env(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")

class BaseConfig:
    DEBUG = False
    TESTING = False
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10 MB
    PREFERRED_URL_SCHEME = "https"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Mongo
    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB = os.getenv("MONGO_DB", "resumeforge")

    # Firebase service account
    FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
    FIREBASE_CLIENT_EMAIL = os.getenv("FIREBASE_CLIENT_EMAIL", "")
    FIREBASE_PRIVATE_KEY = (os.getenv("FIREBASE_PRIVATE_KEY") or "").replace("\\n", "\n")

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")

    # OpenAI
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")
    OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "120"))

    # Frontend / CORS
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3001")
    CORS_ORIGINS = _csv_env("CORS_ORIGINS") or [FRONTEND_URL]

    # Optimization pipeline
    EDIT_MODE = os.getenv("EDIT_MODE", "per_section")  # or "whole_document"
    EDIT_WORKERS = int(os.getenv("EDIT_WORKERS", "6"))
    DEFAULT_CREDITS = int(os.getenv("DEFAULT_CREDITS", "3"))
    MAX_LINKS = int(os.getenv("MAX_LINKS", "5"))

    # LaTeX renderer
    LATEX_COMMAND = os.getenv("LATEX_COMMAND", "pdflatex")
    LATEX_TIMEOUT = float(os.getenv("LATEX_TIMEOUT", "60"))
    LATEX_STRICT = _bool_env("LATEX_STRICT", False)
    LATEX_WORKDIR = os.getenv("LATEX_WORKDIR", "")  # empty -> system temp dir

    # Rate limits
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "200 per hour")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Uploads
    ALLOWED_EXTS = {"pdf", "txt", "doc", "docx"}

class DevConfig(BaseConfig):
    DEBUG = True

class ProdConfig(BaseConfig):
    pass

class TestConfig(BaseConfig):
    TESTING = True
    RATELIMIT_ENABLED = False
    STRIPE_WEBHOOK_SECRET = "whsec_test"
    FRONTEND_URL = "http://localhost:3001"
    EDIT_MODE = "per_section"
    DEFAULT_CREDITS = 3

REQUIRED_PROD_SECRETS = (
    "MONGO_URI",
    "FIREBASE_PROJECT_ID",
    "FIREBASE_CLIENT_EMAIL",
    "FIREBASE_PRIVATE_KEY",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "OPENAI_API_KEY",
)

def validate_required_secrets():
    if os.getenv("ENV") == "prod":
        missing = [name for name in REQUIRED_PROD_SECRETS if not os.getenv(name)]
        if missing:
            raise RuntimeError(f"{', '.join(missing)} must be set in production")
