from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv


# Load backend/.env if it exists so local environment variables (e.g. ADMIN_TOKEN)
# are available without needing to export them manually.
BASE_DIR = Path(__file__).resolve().parents[2]
env_path = BASE_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _int_env(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except Exception:
        return default


def _bool_env(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    PROJECT_NAME = "Contact Intake API"
    API_PREFIX = "/api"

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./db/contacts.db")

    # Empty means the admin gate rejects every request.
    ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

    UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
    UPLOAD_URL_PREFIX = "/uploads"
    MAX_UPLOAD_BYTES = _int_env("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)
    ALLOWED_UPLOAD_TYPES = {
        "image/jpeg": "jpeg",
        "image/png": "png",
        "image/webp": "webp",
    }

    LEGACY_JSON_PATH = os.getenv("LEGACY_JSON_PATH", "./data/contacts.json")

    _cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5500,http://127.0.0.1:5500")
    CORS_ORIGINS = [o.strip() for o in _cors_origins.split(",") if o.strip()]

    RATE_LIMIT_PER_MINUTE = _int_env("RATE_LIMIT_PER_MINUTE", 60)
    TRUST_PROXY_HEADERS = _bool_env("TRUST_PROXY_HEADERS", False)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
