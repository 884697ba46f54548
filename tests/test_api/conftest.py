"""
API fixtures: the FastAPI app wired to the per-test database and seeded from
the repository's identity seed (config/identity_seed.yaml).
"""
from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from uniadmin.db.init_db import init_db
from uniadmin.db.session import get_db
from uniadmin.main import create_app
from uniadmin.settings import Settings, get_settings

SEED_PATH = Path(__file__).resolve().parents[2] / "config" / "identity_seed.yaml"

PASSWORDS = {
    "admin@uni.example": "admin-change-me",
    "officer@uni.example": "officer-change-me",
    "head.eng@uni.example": "head-change-me",
    "staff.eng@uni.example": "staff-change-me",
    "staff.sci@uni.example": "staff-change-me",
}


@pytest.fixture
def api_settings():
    return Settings(
        jwt_access_secret="api-test-access-secret-0123456789",
        jwt_refresh_secret="api-test-refresh-secret-0123456789",
        expose_denied_action=True,
        bcrypt_rounds=4,
    )


@pytest.fixture
def app(engine, session_factory, api_settings):
    init_db(engine, session_factory, SEED_PATH, bcrypt_rounds=4)
    app = create_app(api_settings, init_database=False)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: api_settings
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(client):
    """Log a seeded user in; returns (auth headers, token pair JSON)."""

    def _login(email: str) -> tuple[dict[str, str], dict]:
        response = client.post("/auth/login", json={"email": email, "password": PASSWORDS[email]})
        assert response.status_code == 200, response.text
        tokens = response.json()
        return {"Authorization": f"Bearer {tokens['access_token']}"}, tokens

    return _login


@pytest.fixture
def headers(login):
    """Auth headers by short name: admin, officer, head, staff, sci."""

    emails = {
        "admin": "admin@uni.example",
        "officer": "officer@uni.example",
        "head": "head.eng@uni.example",
        "staff": "staff.eng@uni.example",
        "sci": "staff.sci@uni.example",
    }
    return {name: login(email)[0] for name, email in emails.items()}
