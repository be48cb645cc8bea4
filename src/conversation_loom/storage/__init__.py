"""Storage backend subpackage.

Every backend implements the ``StorageBackend`` ABC and keeps a serialised
snapshot plus a ``StoredGraph`` record per graph id.

Public surface
--------------
- StorageBackend    — abstract base class
- StoredGraph       — per-graph catalogue record
- InMemoryBackend   — in-process dict (useful for testing)
- FilesystemBackend — one JSON file per graph
- SQLiteBackend     — rows in a local SQLite database
"""
from __future__ import annotations

from conversation_loom.storage.base import StorageBackend, StoredGraph
from conversation_loom.storage.filesystem import FilesystemBackend
from conversation_loom.storage.memory import InMemoryBackend
from conversation_loom.storage.sqlite import SQLiteBackend

__all__ = [
    "FilesystemBackend",
    "InMemoryBackend",
    "SQLiteBackend",
    "StorageBackend",
    "StoredGraph",
]
