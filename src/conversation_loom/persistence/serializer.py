"""Graph snapshot serialization with schema versioning.

Supports JSON and YAML round-trips.  Every document embeds a
``schema_version`` and a SHA-256 ``checksum`` of its canonical JSON form so
readers can reject unknown versions and detect tampering.

Classes
-------
- SchemaVersionError  — unsupported ``schema_version`` on load
- GraphSerializer     — GraphSnapshot <-> JSON / YAML

Functions
---------
- compute_checksum    — SHA-256 of a snapshot's canonical JSON
"""
from __future__ import annotations

import hashlib
import json
from typing import Literal

import yaml

from conversation_loom.errors import LoomError
from conversation_loom.graph.models import GraphSnapshot

SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({GraphSnapshot.SCHEMA_VERSION})

SerializationFormat = Literal["json", "yaml"]


class SchemaVersionError(LoomError, ValueError):
    """Raised when a serialised document uses an unsupported schema version."""

    def __init__(self, version: str) -> None:
        self.version = version
        supported = ", ".join(sorted(SUPPORTED_SCHEMA_VERSIONS))
        super().__init__(
            f"Unsupported schema version {version!r}. Supported versions: {supported}"
        )


def compute_checksum(snapshot: GraphSnapshot) -> str:
    """Return the 64-character hex SHA-256 of ``snapshot`` without its checksum."""
    canonical = snapshot.model_dump(mode="json", exclude={"checksum"})
    canonical_json = json.dumps(canonical, sort_keys=True)
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


class GraphSerializer:
    """Serialize and deserialize ``GraphSnapshot`` documents.

    Parameters
    ----------
    validate_checksum:
        When True (default), loading verifies the embedded checksum and
        raises ``ValueError`` on mismatch.  Documents without a checksum
        are accepted.
    """

    def __init__(self, validate_checksum: bool = True) -> None:
        self.validate_checksum = validate_checksum

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def to_json(self, snapshot: GraphSnapshot, *, indent: int = 2) -> str:
        """Serialise ``snapshot`` to JSON, embedding a fresh checksum."""
        snapshot.checksum = compute_checksum(snapshot)
        return json.dumps(snapshot.model_dump(mode="json"), indent=indent)

    def from_json(self, raw: str) -> GraphSnapshot:
        """Deserialize a snapshot from JSON.

        Raises
        ------
        SchemaVersionError
            If ``schema_version`` is not supported.
        ValueError
            If the checksum does not match or the payload is not an object.
        json.JSONDecodeError
            If ``raw`` is not valid JSON.
        """
        return self._deserialize(json.loads(raw))

    # ------------------------------------------------------------------
    # YAML
    # ------------------------------------------------------------------

    def to_yaml(self, snapshot: GraphSnapshot) -> str:
        """Serialise ``snapshot`` to YAML, embedding a fresh checksum."""
        snapshot.checksum = compute_checksum(snapshot)
        return yaml.dump(
            snapshot.model_dump(mode="json"),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=True,
        )

    def from_yaml(self, raw: str) -> GraphSnapshot:
        """Deserialize a snapshot from YAML.  Raises like :meth:`from_json`."""
        return self._deserialize(yaml.safe_load(raw))

    # ------------------------------------------------------------------
    # Format dispatch
    # ------------------------------------------------------------------

    def serialize(self, snapshot: GraphSnapshot, format: SerializationFormat = "json") -> str:
        if format == "yaml":
            return self.to_yaml(snapshot)
        return self.to_json(snapshot)

    def deserialize(self, raw: str, format: SerializationFormat = "json") -> GraphSnapshot:
        if format == "yaml":
            return self.from_yaml(raw)
        return self.from_json(raw)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _deserialize(self, data: object) -> GraphSnapshot:
        if not isinstance(data, dict):
            raise ValueError("Serialized graph must be a mapping at the top level.")
        version = str(data.get("schema_version", ""))
        if version not in SUPPORTED_SCHEMA_VERSIONS:
            raise SchemaVersionError(version)

        snapshot = GraphSnapshot.model_validate(data)

        if self.validate_checksum and snapshot.checksum:
            computed = compute_checksum(snapshot)
            if snapshot.checksum != computed:
                raise ValueError(
                    f"Checksum mismatch for graph {snapshot.graph_id!r}: "
                    f"stored={snapshot.checksum!r} computed={computed!r}"
                )
        return snapshot
