"""Fixtures compartidas.

Dataset mínimo de un tenant (engine) con:
- DummyTemp-linked1: device vinculado a Container-linked1
  (temperature → temperatureExt)
- DummyTemp-unlinked1: device sin engine ni asset
- Container-linked1: asset con metadata weight y trailer.capacity
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from device_manager.config import DeviceManagerConfig
from device_manager.core.domain import Asset, Device, HistoryEvent
from device_manager.decoders import Decoder, DecoderMeasure
from device_manager.errors import ValidationError
from device_manager.history import HistorySink
from device_manager.locks import KeyedLockManager
from device_manager.plugin import DeviceManager
from device_manager.storage import InMemoryDocumentStore

ENGINE_ID = "engine-ayse"
LINKED_DEVICE_ID = "DummyTemp-linked1"
UNLINKED_DEVICE_ID = "DummyTemp-unlinked1"
ASSET_ID = "Container-linked1"

T0 = 1706688000000


# =============================================================================
# HELPERS
# =============================================================================

def temperature(value: float, measured_at: int, name: str = "temperature") -> Dict[str, Any]:
    """Medida decodificada de temperatura (formato decoder)."""
    return {
        "measureName": name,
        "type": "temperature",
        "measuredAt": measured_at,
        "values": {"temperature": value},
    }


def battery(value: int, measured_at: int) -> Dict[str, Any]:
    return {
        "measureName": "battery",
        "type": "battery",
        "measuredAt": measured_at,
        "values": {"battery": value},
    }


def device_document(
    reference: str,
    engine_id: Optional[str] = None,
    asset_id: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "model": "DummyTemp",
        "reference": reference,
        "metadata": {},
        "measures": {},
        "engineId": engine_id,
        "assetId": asset_id,
    }


def asset_document(linked_devices: Optional[List[dict]] = None) -> Dict[str, Any]:
    return {
        "model": "Container",
        "reference": "linked1",
        "metadata": {"weight": 10, "trailer": {"capacity": 1024}},
        "measures": {},
        "linkedDevices": linked_devices if linked_devices is not None else [
            {
                "deviceId": LINKED_DEVICE_ID,
                "measureNames": [{"device": "temperature", "asset": "temperatureExt"}],
            }
        ],
    }


class DummyTempDecoder(Decoder):
    """Decoder de prueba: {"deviceEUI", "register55", "batteryLevel"?, "metadata"?}."""

    device_model = "DummyTemp"
    measures = (
        DecoderMeasure(name="temperature", type="temperature"),
        DecoderMeasure(name="battery", type="battery"),
    )

    async def validate(self, payload):
        if "deviceEUI" not in payload:
            raise ValidationError('Invalid payload: missing "deviceEUI"')
        return not payload.get("invalid", False)

    async def decode(self, decoded_payload, payload):
        reference = payload["deviceEUI"]
        measured_at = payload.get("measuredAt", T0)

        decoded_payload.add_measurement(
            reference, "temperature", {"temperature": payload["register55"]}, measured_at,
        )
        if "batteryLevel" in payload:
            decoded_payload.add_measurement(
                reference, "battery", {"battery": int(payload["batteryLevel"] * 100)}, measured_at,
            )
        if "metadata" in payload:
            decoded_payload.add_metadata(reference, payload["metadata"])
        return decoded_payload


class RecordingHistorySink(HistorySink):
    """Sink en memoria que guarda los eventos recibidos."""

    def __init__(self) -> None:
        self.events: List[HistoryEvent] = []
        self.assets: List[Asset] = []

    async def add(self, event: HistoryEvent, asset: Asset) -> None:
        self.events.append(event)
        self.assets.append(asset)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def config() -> DeviceManagerConfig:
    return DeviceManagerConfig(lock_timeout_seconds=2.0)


@pytest.fixture
def store(config) -> InMemoryDocumentStore:
    """Store sembrado con el dataset del tenant."""
    store = InMemoryDocumentStore()

    linked = device_document("linked1", ENGINE_ID, ASSET_ID)
    store.put(config.admin_index, config.devices_collection, LINKED_DEVICE_ID, linked)
    store.put(ENGINE_ID, config.devices_collection, LINKED_DEVICE_ID, linked)

    store.put(
        config.admin_index, config.devices_collection, UNLINKED_DEVICE_ID,
        device_document("unlinked1"),
    )
    store.put(ENGINE_ID, config.assets_collection, ASSET_ID, asset_document())
    return store


@pytest.fixture
def history_sink() -> RecordingHistorySink:
    return RecordingHistorySink()


@pytest.fixture
def manager(config, store, history_sink) -> DeviceManager:
    manager = DeviceManager(
        config=config,
        store=store,
        locks=KeyedLockManager(timeout_seconds=config.lock_timeout_seconds),
        history_sink=history_sink,
    )
    manager.register_decoder(DummyTempDecoder())
    return manager


@pytest.fixture
def service(manager):
    return manager.measure_service


@pytest.fixture
def linked_device() -> Device:
    return Device.from_document(LINKED_DEVICE_ID, device_document("linked1", ENGINE_ID, ASSET_ID))


@pytest.fixture
def unlinked_device() -> Device:
    return Device.from_document(UNLINKED_DEVICE_ID, device_document("unlinked1"))
