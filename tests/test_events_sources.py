"""Tests for batching/events.py and batching/sources.py."""

import json
import logging
import tempfile
from pathlib import Path

import pytest

from batching import (
    CompositeEventSink,
    InMemoryEventSink,
    InMemoryItemSource,
    ItemSourceError,
    JsonlEventSink,
    JsonlItemSource,
    LoggingEventSink,
)
from batching.events import EventSink
from batching.sources import matches_filters
from core.types import BatchItem


class TestEventSinks:
    """Tests for the event sink implementations."""

    def test_in_memory_preserves_order(self):
        """Events should be kept in emission order."""
        sink = InMemoryEventSink()
        sink.emit("batch:created", {"batchId": "b1"})
        sink.emit("batch:progress", {"batchId": "b1", "progress": 0.5})
        sink.emit("batch:created", {"batchId": "b2"})
        assert sink.types("b1") == ["batch:created", "batch:progress"]
        assert sink.of_type("batch:progress")[0]["progress"] == 0.5

    def test_logging_sink(self, caplog):
        """LoggingEventSink should log the event type and batch id."""
        with caplog.at_level(logging.INFO, logger="batching.events"):
            LoggingEventSink().emit("batch:completed", {"batchId": "b1", "progress": 1.0})
        assert "batch:completed" in caplog.text
        assert "b1" in caplog.text

    def test_jsonl_sink_appends(self):
        """JsonlEventSink should write one JSON line per event."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "logs" / "events.jsonl"
            sink = JsonlEventSink(path)
            sink.emit("batch:created", {"batchId": "b1"})
            sink.emit("batch:failed", {"batchId": "b1", "error": "boom"})

            lines = [json.loads(line) for line in path.read_text().splitlines()]
            assert [line["type"] for line in lines] == ["batch:created", "batch:failed"]
            assert lines[1]["error"] == "boom"
            assert "timestamp" in lines[0]

    def test_composite_isolates_failures(self):
        """A failing sink should not stop delivery to the others."""

        class BrokenSink(EventSink):
            def emit(self, event_type, payload):
                raise RuntimeError("down")

        memory = InMemoryEventSink()
        CompositeEventSink(BrokenSink(), memory).emit("batch:created", {"batchId": "b1"})
        assert memory.types() == ["batch:created"]


class TestMatchesFilters:
    """Tests for filter matching."""

    def test_equality(self):
        """Scalar filters should require equal values."""
        assert matches_filters({"a": 1, "b": 2}, {"a": 1})
        assert not matches_filters({"a": 1}, {"a": 2})

    def test_membership(self):
        """List filters should match any member."""
        assert matches_filters({"area": "sales"}, {"area": ["sales", "ops"]})
        assert not matches_filters({"area": "hr"}, {"area": ["sales", "ops"]})

    def test_missing_field(self):
        """Missing fields should never match."""
        assert not matches_filters({}, {"a": None})


class TestInMemoryItemSource:
    """Tests for InMemoryItemSource."""

    def test_accepts_dicts_and_items(self):
        """Both BatchItems and dicts with an id should be accepted."""
        source = InMemoryItemSource(
            [BatchItem("n1", {"x": 1}), {"id": "n2", "input": {"x": 2}}, {"nodeId": "n3", "x": 3}]
        )
        items = source.list_items({})
        assert [i.node_id for i in items] == ["n1", "n2", "n3"]
        assert items[1].input == {"x": 2}
        assert items[2].input == {"nodeId": "n3", "x": 3}

    def test_filters_on_input(self):
        """Filters should apply to the item input."""
        source = InMemoryItemSource([BatchItem("n1", {"t": "a"}), BatchItem("n2", {"t": "b"})])
        assert [i.node_id for i in source.list_items({"t": "b"})] == ["n2"]

    def test_rejects_item_without_id(self):
        """Dicts without an id should raise."""
        with pytest.raises(ValueError, match="no id"):
            InMemoryItemSource([{"x": 1}])


class TestJsonlItemSource:
    """Tests for JsonlItemSource."""

    def test_reads_and_filters(self):
        """Lines with ids should become items; filters apply to line fields."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "items.jsonl"
            path.write_text(
                "\n".join(
                    [
                        json.dumps({"node_id": "n1", "table": "orders", "input": {"t": "o"}}),
                        json.dumps({"node_id": "n2", "table": "users"}),
                        json.dumps({"table": "no-id"}),
                        "{broken",
                    ]
                )
            )
            source = JsonlItemSource(path)
            assert [i.node_id for i in source.list_items({})] == ["n1", "n2"]

            (item,) = source.list_items({"table": "orders"})
            assert item.input == {"t": "o"}

    def test_missing_file_raises(self):
        """A missing file should raise ItemSourceError."""
        with pytest.raises(ItemSourceError, match="not found"):
            JsonlItemSource("/nonexistent/items.jsonl").list_items({})
