"""Unit tests for conversation_loom.persistence.serializer."""
from __future__ import annotations

import json

import pytest
import yaml

from conversation_loom.graph.models import GraphSnapshot, InheritanceMode
from conversation_loom.graph.store import ConversationGraph
from conversation_loom.persistence.serializer import (
    GraphSerializer,
    SchemaVersionError,
    compute_checksum,
)


@pytest.fixture()
def snapshot() -> GraphSnapshot:
    graph = ConversationGraph(graph_id="g-test")
    root = graph.create_root(title="Root ✓")
    graph.append_message(root.id, "user", "Question?")
    graph.append_message(root.id, "assistant", "```py\nprint('hi')\n```")
    a = graph.create_branch(root.id, 1)
    b = graph.create_branch(root.id, 0, InheritanceMode.SUMMARY, summary_text="Short.")
    graph.create_merge_node([a.id, b.id], synthesis_prompt="Join")
    graph.set_selected([root.id])
    return graph.snapshot()


@pytest.fixture()
def serializer() -> GraphSerializer:
    return GraphSerializer()


class TestChecksum:
    def test_is_sha256_hex(self, snapshot: GraphSnapshot) -> None:
        checksum = compute_checksum(snapshot)
        assert len(checksum) == 64
        int(checksum, 16)

    def test_ignores_existing_checksum(self, snapshot: GraphSnapshot) -> None:
        first = compute_checksum(snapshot)
        snapshot.checksum = "something else"
        assert compute_checksum(snapshot) == first

    def test_changes_with_content(self, snapshot: GraphSnapshot) -> None:
        first = compute_checksum(snapshot)
        snapshot.nodes[0].metadata.title = "Different"
        assert compute_checksum(snapshot) != first


class TestJson:
    def test_round_trip(self, serializer: GraphSerializer, snapshot: GraphSnapshot) -> None:
        restored = serializer.from_json(serializer.to_json(snapshot))
        assert restored == snapshot

    def test_embeds_version_and_checksum(
        self, serializer: GraphSerializer, snapshot: GraphSnapshot
    ) -> None:
        data = json.loads(serializer.to_json(snapshot))
        assert data["schema_version"] == "1.0"
        assert data["checksum"] == compute_checksum(snapshot)

    def test_tampering_detected(self, serializer: GraphSerializer, snapshot: GraphSnapshot) -> None:
        data = json.loads(serializer.to_json(snapshot))
        data["nodes"][0]["metadata"]["title"] = "tampered"
        with pytest.raises(ValueError, match="Checksum mismatch"):
            serializer.from_json(json.dumps(data))

    def test_tampering_ignored_without_validation(self, snapshot: GraphSnapshot) -> None:
        data = json.loads(GraphSerializer().to_json(snapshot))
        data["nodes"][0]["metadata"]["title"] = "tampered"
        restored = GraphSerializer(validate_checksum=False).from_json(json.dumps(data))
        assert restored.nodes[0].metadata.title == "tampered"

    def test_missing_checksum_accepted(self, serializer: GraphSerializer) -> None:
        raw = json.dumps({"graph_id": "g", "schema_version": "1.0"})
        assert serializer.from_json(raw).graph_id == "g"

    def test_unsupported_version(self, serializer: GraphSerializer) -> None:
        with pytest.raises(SchemaVersionError, match="9.9"):
            serializer.from_json(json.dumps({"schema_version": "9.9"}))

    def test_missing_version(self, serializer: GraphSerializer) -> None:
        with pytest.raises(SchemaVersionError):
            serializer.from_json("{}")

    def test_non_object_rejected(self, serializer: GraphSerializer) -> None:
        with pytest.raises(ValueError, match="mapping"):
            serializer.from_json("[1, 2]")

    def test_malformed_json(self, serializer: GraphSerializer) -> None:
        with pytest.raises(json.JSONDecodeError):
            serializer.from_json("{not json")


class TestYaml:
    def test_round_trip(self, serializer: GraphSerializer, snapshot: GraphSnapshot) -> None:
        restored = serializer.from_yaml(serializer.to_yaml(snapshot))
        assert restored == snapshot

    def test_is_plain_yaml_mapping(
        self, serializer: GraphSerializer, snapshot: GraphSnapshot
    ) -> None:
        data = yaml.safe_load(serializer.to_yaml(snapshot))
        assert data["graph_id"] == "g-test"
        assert len(data["nodes"]) == 4

    def test_format_dispatch(self, serializer: GraphSerializer, snapshot: GraphSnapshot) -> None:
        raw = serializer.serialize(snapshot, "yaml")
        assert not raw.lstrip().startswith("{")
        assert serializer.deserialize(raw, "yaml") == snapshot

    def test_restored_snapshot_rebuilds_graph(
        self, serializer: GraphSerializer, snapshot: GraphSnapshot
    ) -> None:
        graph = ConversationGraph.from_snapshot(serializer.from_yaml(serializer.to_yaml(snapshot)))
        assert len(graph) == 4
        graph.check_integrity()
