"""Tests del historial de assets: diff de metadata, evento y sinks."""

from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY

from device_manager.config import DeviceManagerConfig
from device_manager.core.domain import (
    Asset,
    AssetMeasureContext,
    HistoryEvent,
    MeasureOrigin,
    MeasureRecord,
)
from device_manager.history import (
    DocumentHistorySink,
    HistoryEmitter,
    build_history_event,
    compare_metadata,
    updated_asset_measure_names,
)
from device_manager.storage import InMemoryDocumentStore

from tests.conftest import ASSET_ID, ENGINE_ID, T0, RecordingHistorySink, asset_document


def _record(asset_name=None) -> MeasureRecord:
    return MeasureRecord(
        type="temperature",
        measured_at=T0,
        values={"temperature": 20.0},
        origin=MeasureOrigin(id="DummyTemp-linked1", measure_name="temperature"),
        asset=AssetMeasureContext(id=ASSET_ID, measure_name=asset_name),
    )


@pytest.fixture
def asset() -> Asset:
    return Asset.from_document(ASSET_ID, asset_document())


# =============================================================================
# DIFF DE METADATA
# =============================================================================

class TestCompareMetadata:

    def test_no_changes(self):
        assert compare_metadata({"weight": 1}, {"weight": 1}) == []

    def test_changed_top_level_key(self):
        assert compare_metadata({"weight": 1, "color": "red"}, {"weight": 2, "color": "red"}) == ["weight"]

    def test_nested_change_uses_dot_path(self):
        before = {"weight": 10, "trailer": {"capacity": 1024}}
        after = {"weight": 42042, "trailer": {"capacity": 2048}}

        assert compare_metadata(before, after) == ["weight", "trailer.capacity"]

    def test_added_and_removed_keys(self):
        assert compare_metadata({"a": 1}, {"b": 2}) == ["a", "b"]

    def test_dict_replaced_by_scalar(self):
        assert compare_metadata({"trailer": {"capacity": 1}}, {"trailer": None}) == ["trailer"]

    def test_list_values_compared_by_equality(self):
        assert compare_metadata({"tags": [1, 2]}, {"tags": [1, 2]}) == []
        assert compare_metadata({"tags": [1, 2]}, {"tags": [2, 1]}) == ["tags"]


# =============================================================================
# EVENTO
# =============================================================================

class TestHistoryEvent:

    def test_measure_names_skip_unmapped_and_duplicates(self):
        records = [_record("temperatureExt"), _record(None), _record("temperatureExt"), _record("position")]

        assert updated_asset_measure_names(records) == ["temperatureExt", "position"]

    def test_metadata_omitted_when_unchanged(self):
        event = build_history_event(
            ENGINE_ID, ASSET_ID, [_record("temperatureExt")], {"weight": 1}, {"weight": 1}, timestamp=T0,
        )

        assert event.to_dict() == {
            "assetId": ASSET_ID,
            "engineId": ENGINE_ID,
            "timestamp": T0,
            "name": "measure",
            "measure": {"names": ["temperatureExt"]},
        }
        assert event.has_metadata_changes is False

    def test_metadata_names_present_when_changed(self):
        event = build_history_event(
            ENGINE_ID, ASSET_ID, [], {"weight": 1}, {"weight": 2}, timestamp=T0,
        )

        data = event.to_dict()
        assert data["metadata"] == {"names": ["weight"]}
        assert data["measure"] == {"names": []}
        assert HistoryEvent.from_dict(data) == event


# =============================================================================
# EMISOR Y SINKS
# =============================================================================

class TestHistoryEmitter:

    @pytest.mark.asyncio
    async def test_emit_sends_event_to_sink(self, asset):
        sink = RecordingHistorySink()
        emitter = HistoryEmitter(sink)
        asset.metadata["weight"] = 42042

        event = await emitter.emit(ENGINE_ID, asset, [_record("temperatureExt")], {"weight": 10, "trailer": {"capacity": 1024}})

        assert sink.events == [event]
        assert event.metadata_names == ["weight"]
        assert event.measure_names == ["temperatureExt"]
        assert emitter.stats == {"dispatched": 1, "failed": 0}

    @pytest.mark.asyncio
    async def test_sink_failure_is_counted_not_raised(self, asset):
        sink = RecordingHistorySink()
        sink.add = AsyncMock(side_effect=RuntimeError("sink down"))
        emitter = HistoryEmitter(sink)
        before = REGISTRY.get_sample_value("device_manager_history_dispatch_failures_total")

        event = await emitter.emit(ENGINE_ID, asset, [_record("temperatureExt")], dict(asset.metadata))

        assert event.measure_names == ["temperatureExt"]
        assert emitter.stats == {"dispatched": 0, "failed": 1}
        assert REGISTRY.get_sample_value("device_manager_history_dispatch_failures_total") == before + 1

    @pytest.mark.asyncio
    async def test_without_sink_only_builds_event(self, asset):
        event = await HistoryEmitter(None).emit(ENGINE_ID, asset, [], dict(asset.metadata))

        assert event.asset_id == ASSET_ID
        assert event.measure_names == []


class TestDocumentHistorySink:

    @pytest.mark.asyncio
    async def test_writes_history_document_in_engine(self, asset):
        config = DeviceManagerConfig()
        store = InMemoryDocumentStore()
        sink = DocumentHistorySink(store, config)
        event = build_history_event(ENGINE_ID, ASSET_ID, [_record("temperatureExt")], {}, {}, timestamp=T0)

        await sink.add(event, asset)

        documents = store.all(ENGINE_ID, config.assets_history_collection)
        assert len(documents) == 1
        source = documents[0].source
        assert source["id"] == ASSET_ID
        assert source["event"]["measure"]["names"] == ["temperatureExt"]
        assert source["asset"]["model"] == "Container"
        assert source["historizedAt"] == T0
