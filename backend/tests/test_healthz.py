from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from oneminute.config import Settings, get_settings
from oneminute.db.session import dispose_engine
from oneminute.main import app
from oneminute.services import build_services, reset_services, set_services


@pytest.fixture
def client(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ONEMINUTE_DATABASE_URL", "sqlite://")
    get_settings.cache_clear()
    dispose_engine()
    set_services(build_services(Settings.model_validate({}), data_dir=tmp_path))
    with TestClient(app) as test_client:
        yield test_client
    reset_services()
    dispose_engine()
    get_settings.cache_clear()


def test_database_health_endpoint_success(client: TestClient) -> None:
    response = client.get("/healthz/database")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["pool"]["backend"] == "sqlite"
    assert "persistence_mode" in payload


def test_database_health_endpoint_failure(client: TestClient, monkeypatch) -> None:
    def raise_runtime_error():
        raise RuntimeError("missing database url")

    monkeypatch.setattr("oneminute.main.get_engine", raise_runtime_error)
    response = client.get("/healthz/database")
    assert response.status_code == 503
    assert response.json()["detail"] == "missing database url"
