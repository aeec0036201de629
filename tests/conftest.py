"""Shared fixtures for the Maven test suite."""

from pathlib import Path

import pytest

from maven.config import Config, ENV_OVERRIDES
from maven.server import create_app


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real deployment settings out of the tests."""
    for name in list(ENV_OVERRIDES) + ["MAVEN_CONFIG"]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "maven.db")


@pytest.fixture()
def config(tmp_path: Path, db_path: str) -> Config:
    return Config(
        db_path=db_path,
        avatar_dir=str(tmp_path / "avatars"),
        secret_key="test-secret",
        stripe_secret_key="sk_test_123",
        stripe_price_id="price_123",
    )


@pytest.fixture()
def app(config: Config):
    app = create_app(config)
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def signed_in_client(client):
    r = client.post("/api/auth/sign-up", json={
        "email": "ada@example.com",
        "password": "hunter22",
        "full_name": "Ada Lovelace",
    })
    assert r.status_code == 201
    return client
