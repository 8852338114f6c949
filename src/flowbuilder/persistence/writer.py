"""Single-writer, strictly ordered persistence of graph commits.

Every GraphStore commit is submitted here with an increasing sequence
number. The durable state must converge on the newest snapshot and never
fall back to an older one, so writes are serialized:

- Synchronous mode writes each snapshot before ``submit`` returns.
- Background mode hands snapshots to one worker thread through a FIFO
  queue. When several snapshots are waiting, only the newest is written;
  older pending snapshots are superseded and skipped.

Storage errors are logged with the commit number and do not reach the
caller. Retrying is left to the adapter.
"""

from __future__ import annotations

import queue
import threading
from typing import TYPE_CHECKING

from flowbuilder.observability.logging import get_logger
from flowbuilder.persistence.protocol import PersistedState

if TYPE_CHECKING:
    from flowbuilder.graph.models import FlowGraph
    from flowbuilder.persistence.protocol import PersistenceAdapter

log = get_logger(__name__)

_Item = tuple[int, PersistedState] | None


class OrderedWriter:
    """Persist graph snapshots in commit order.

    Attributes:
        adapter: Storage the snapshots are written to.
        background: Whether writes happen on a worker thread.
    """

    def __init__(self, adapter: PersistenceAdapter, *, background: bool = False) -> None:
        self.adapter = adapter
        self.background = background
        self._submitted = 0
        self._last_written = 0
        self._failures = 0
        self._closed = False
        self._queue: queue.Queue[_Item] = queue.Queue()
        self._thread: threading.Thread | None = None
        if background:
            self._thread = threading.Thread(
                target=self._run, name="flowbuilder-writer", daemon=True
            )
            self._thread.start()

    @property
    def last_submitted(self) -> int:
        """Sequence number of the newest submitted commit."""
        return self._submitted

    @property
    def last_written(self) -> int:
        """Sequence number of the newest commit that reached storage."""
        return self._last_written

    @property
    def failures(self) -> int:
        return self._failures

    def submit(self, graph: FlowGraph) -> int:
        """Queue *graph* for persistence.

        Args:
            graph: Snapshot produced by a commit.

        Returns:
            The sequence number assigned to this commit.
        """
        self._submitted += 1
        seq = self._submitted
        state = PersistedState.from_graph(graph)
        if self._thread is not None and not self._closed:
            self._queue.put((seq, state))
        else:
            self._write(seq, state)
        return seq

    def flush(self) -> None:
        """Block until every submitted snapshot has been handled."""
        if self._thread is not None and not self._closed:
            self._queue.join()

    def close(self, *, close_adapter: bool = True) -> None:
        """Flush pending writes and stop the worker.

        Args:
            close_adapter: Also close the underlying adapter.
        """
        if self._closed:
            return
        self.flush()
        self._closed = True
        if self._thread is not None:
            self._queue.put(None)
            self._thread.join()
            self._thread = None
        if close_adapter:
            self.adapter.close()

    def _write(self, seq: int, state: PersistedState) -> None:
        if seq <= self._last_written:
            log.debug("stale_commit_skipped", commit=seq, last_written=self._last_written)
            return
        try:
            state.write_to(self.adapter)
        except Exception as e:
            self._failures += 1
            log.error("persist_failed", commit=seq, error=str(e), error_type=type(e).__name__)
            return
        self._last_written = seq
        log.debug("commit_persisted", commit=seq)

    def _run(self) -> None:
        while True:
            batch = [self._queue.get()]
            while True:
                try:
                    batch.append(self._queue.get_nowait())
                except queue.Empty:
                    break

            pending = [item for item in batch if item is not None]
            if len(pending) > 1:
                log.debug("commits_coalesced", skipped=[seq for seq, _ in pending[:-1]])
            if pending:
                self._write(*pending[-1])

            for _ in batch:
                self._queue.task_done()
            if any(item is None for item in batch):
                return
