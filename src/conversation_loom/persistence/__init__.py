"""Persistence subpackage.

Public surface
--------------
- GraphSerializer     — schema-versioned, checksummed JSON/YAML codec
- SchemaVersionError  — unsupported schema version on load
- compute_checksum    — SHA-256 of a snapshot's canonical JSON
- GraphRepository     — save/load/list/delete graphs over a backend
- GraphNotFoundError  — requested graph id is not stored
- AutoSaver           — debounced save-on-change subscriber
"""
from __future__ import annotations

from conversation_loom.persistence.autosave import AutoSaver
from conversation_loom.persistence.repository import GraphNotFoundError, GraphRepository
from conversation_loom.persistence.serializer import (
    GraphSerializer,
    SchemaVersionError,
    compute_checksum,
)

__all__ = [
    "AutoSaver",
    "GraphNotFoundError",
    "GraphRepository",
    "GraphSerializer",
    "SchemaVersionError",
    "compute_checksum",
]
