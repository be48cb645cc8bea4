"""Debounced auto-save of a conversation graph.

``AutoSaver`` subscribes to a ``ConversationGraph`` and writes the latest
snapshot through a ``GraphRepository`` once changes have been quiet for
``delay`` seconds.  Saving happens on a timer thread; the snapshot itself
is taken on the thread that mutated the graph, so the timer never reads
live store state.

A failed save is logged and dropped.  It never rolls back the in-memory
graph.

Classes
-------
- AutoSaver  — debounced persistence subscriber
"""
from __future__ import annotations

import logging
import threading

from conversation_loom.graph.models import GraphSnapshot
from conversation_loom.graph.store import ConversationGraph, GraphEvent
from conversation_loom.persistence.repository import GraphRepository

logger = logging.getLogger(__name__)


class AutoSaver:
    """Persist ``graph`` shortly after it stops changing.

    Parameters
    ----------
    graph:
        The graph to watch.
    repository:
        Where snapshots are written.
    delay:
        Quiet period in seconds before a save.  ``0`` saves on every
        change, synchronously.

    Example
    -------
    ::

        with AutoSaver(graph, GraphRepository(FilesystemBackend()), delay=0.5):
            graph.create_root(title="Notes")
    """

    def __init__(
        self,
        graph: ConversationGraph,
        repository: GraphRepository,
        delay: float = 1.0,
    ) -> None:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay!r}.")
        self._graph = graph
        self._repository = repository
        self._delay = delay
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: GraphSnapshot | None = None
        self._save_count = 0
        self._failure_count = 0
        self._unsubscribe = graph.subscribe(self._on_change)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def save_count(self) -> int:
        """Number of successful saves."""
        return self._save_count

    @property
    def failure_count(self) -> int:
        """Number of saves that raised."""
        return self._failure_count

    @property
    def pending(self) -> bool:
        """True while a change is waiting to be written."""
        with self._lock:
            return self._pending is not None

    # ------------------------------------------------------------------
    # Subscriber
    # ------------------------------------------------------------------

    def _on_change(self, event: GraphEvent) -> None:
        snapshot = self._graph.snapshot()
        if self._delay == 0:
            with self._lock:
                self._pending = snapshot
            self._write_pending()
            return
        with self._lock:
            self._pending = snapshot
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._delay, self._write_pending)
            self._timer.daemon = True
            self._timer.start()
        logger.debug("AutoSaver: scheduled save after %s", event.kind.value)

    def _write_pending(self) -> None:
        # _on_change only ever takes _lock; the repository write holds
        # _write_lock so writes land in the order snapshots were taken.
        with self._write_lock:
            with self._lock:
                snapshot = self._pending
                self._pending = None
            if snapshot is None:
                return
            try:
                self._repository.save_snapshot(snapshot)
            except Exception:  # noqa: BLE001
                self._failure_count += 1
                logger.exception("AutoSaver: failed to save graph %r", snapshot.graph_id)
                return
            self._save_count += 1

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Write any pending change now, on the calling thread."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._write_pending()

    def cancel(self) -> None:
        """Drop any pending change without writing it."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None

    def close(self) -> None:
        """Flush pending changes and stop watching the graph."""
        self._unsubscribe()
        self.flush()

    def __enter__(self) -> "AutoSaver":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"AutoSaver(graph_id={self._graph.graph_id!r}, delay={self._delay!r}, "
            f"saves={self._save_count})"
        )
