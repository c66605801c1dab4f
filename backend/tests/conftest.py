import os
from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.logging import setup_logging
from app.main import create_app

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def admin_token() -> str:
    return ADMIN_TOKEN


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    setup_logging("INFO")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway database and upload directory."""
    s = Settings()
    s.DATABASE_URL = f"sqlite:///{tmp_path / 'db' / 'contacts.db'}"
    s.UPLOAD_DIR = str(tmp_path / "uploads")
    s.LEGACY_JSON_PATH = str(tmp_path / "data" / "contacts.json")
    s.ADMIN_TOKEN = ADMIN_TOKEN
    s.RATE_LIMIT_PER_MINUTE = 0
    s.CORS_ORIGINS = ["http://localhost:5500"]
    return s


@pytest.fixture
def app(app_settings) -> Iterator[FastAPI]:
    application = create_app(app_settings, configure_logging=False)
    yield application
    application.state.context.dispose()


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db_session(client, app) -> Iterator[Session]:
    with app.state.context.session() as session:
        yield session


@pytest.fixture
def upload_files(app_settings):
    def _list() -> list[str]:
        if not os.path.isdir(app_settings.UPLOAD_DIR):
            return []
        return sorted(os.listdir(app_settings.UPLOAD_DIR))

    return _list


@pytest.fixture
def valid_form() -> dict:
    return {"name": "Jo", "email": "jo@example.com", "message": "Hi there"}
