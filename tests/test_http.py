"""Tests del transport HTTP (FastAPI TestClient)."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from device_manager.errors import LockTimeout, PersistenceError, ProvisioningError
from device_manager.main import create_app

from tests.conftest import ASSET_ID, ENGINE_ID, LINKED_DEVICE_ID, T0


@pytest.fixture
def client(manager):
    with TestClient(create_app(manager)) as client:
        yield client


# =============================================================================
# PAYLOADS
# =============================================================================

class TestPayloadEndpoint:

    def test_valid_payload(self, client):
        response = client.post(
            "/payloads/DummyTemp",
            params={"uuid": "payload-http-1"},
            json={"deviceEUI": "linked1", "register55": 42.2, "measuredAt": T0},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["uuid"] == "payload-http-1"
        assert body["ingestions"] == [{
            "device_id": LINKED_DEVICE_ID,
            "asset_id": ASSET_ID,
            "state": "done",
            "measures": 1,
            "history_measure_names": ["temperatureExt"],
            "history_metadata_names": [],
        }]

    def test_invalid_payload_returns_no_ingestions(self, client):
        response = client.post("/payloads/DummyTemp", json={"deviceEUI": "linked1", "invalid": True})

        assert response.status_code == 200
        assert response.json()["ingestions"] == []

    def test_unknown_model_is_404(self, client):
        response = client.post("/payloads/Unknown", json={"deviceEUI": "x"})

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_empty_payload_is_400(self, client):
        response = client.post("/payloads/DummyTemp", json={})

        assert response.status_code == 400

    def test_provisioning_error_is_403(self, manager, client):
        with patch.object(
            manager.payload_service, "_get_or_provision",
            AsyncMock(side_effect=ProvisioningError("off")),
        ):
            response = client.post("/payloads/DummyTemp", json={"deviceEUI": "new1", "register55": 1.0})

        assert response.status_code == 403

    def test_lock_timeout_is_503_with_retry_after(self, manager, client):
        with patch.object(
            manager.payload_service, "receive",
            AsyncMock(side_effect=LockTimeout("measure:ingest:DummyTemp-linked1", 2.0)),
        ):
            response = client.post("/payloads/DummyTemp", json={"deviceEUI": "linked1"})

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"

    def test_persistence_error_is_500(self, manager, client):
        with patch.object(
            manager.payload_service, "receive",
            AsyncMock(side_effect=PersistenceError("measures", None, "disk full")),
        ):
            response = client.post("/payloads/DummyTemp", json={"deviceEUI": "linked1"})

        assert response.status_code == 500
        assert response.json()["message"] == "Cannot save measures: disk full"


# =============================================================================
# MEDIDAS DE ASSET
# =============================================================================

class TestAssetMeasureEndpoint:

    def test_register_measure(self, client):
        response = client.post(
            f"/engines/{ENGINE_ID}/assets/{ASSET_ID}/measures",
            headers={"X-User-Id": "user-1"},
            json={"name": "temperatureExt", "type": "temperature", "values": {"temperature": 3.3}, "measuredAt": T0},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == ASSET_ID
        assert body["measures"]["temperatureExt"]["values"] == {"temperature": 3.3}

    def test_schema_violation_is_400(self, client):
        response = client.post(
            f"/engines/{ENGINE_ID}/assets/{ASSET_ID}/measures",
            json={"name": "temperatureExt", "type": "temperature", "values": {"temperature": "hot"}},
        )

        assert response.status_code == 400

    def test_missing_asset_is_404(self, client):
        response = client.post(
            f"/engines/{ENGINE_ID}/assets/Container-gone/measures",
            json={"name": "t", "type": "temperature", "values": {"temperature": 1.0}},
        )

        assert response.status_code == 404

    def test_malformed_body_is_422(self, client):
        response = client.post(f"/engines/{ENGINE_ID}/assets/{ASSET_ID}/measures", json={"name": "t"})

        assert response.status_code == 422


# =============================================================================
# HEALTH Y MÉTRICAS
# =============================================================================

class TestOperationalEndpoints:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_metrics(self, client):
        client.post("/payloads/DummyTemp", json={"deviceEUI": "linked1", "register55": 1.0})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "device_manager_ingestions_total" in response.text
        assert "device_manager_payloads_received_total" in response.text
