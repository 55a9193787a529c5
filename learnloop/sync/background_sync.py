"""
Background record sync for Learn sessions.

Receives mutated TermRecords from the scheduler and writes them to a
RecordStore on a background thread:
- push() only enqueues, so grading never waits on storage
- failed writes are retried, then logged and dropped
- flush() waits for the queue to drain (used at session teardown)

Storage failures never reach the scheduler; the in-memory session stays
the source of truth until it ends.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from learnloop.core.ports import RecordStore
from learnloop.core.terms import TermRecord


@dataclass
class SyncStatus:
    """Current sync status."""

    is_running: bool = False
    stored: int = 0
    retried: int = 0
    dropped: int = 0
    last_stored_at: datetime | None = None
    error_message: str | None = None

    @property
    def last_sync_success(self) -> bool:
        return self.error_message is None


@dataclass(frozen=True)
class _RecordJob:
    record: TermRecord


@dataclass(frozen=True)
class _RoundJob:
    set_id: str
    round_number: int


_STOP = object()


@dataclass
class BackgroundRecordSync:
    """
    Fire-and-forget persistence adapter.

    Usage:
        sync = BackgroundRecordSync(store=store, user_id="u1")
        sync.start()
        sync.push(record)
        # ... session runs ...
        sync.flush(timeout=10)
        sync.stop()
    """

    store: RecordStore
    user_id: str
    max_retries: int = 3
    retry_delay_seconds: float = 1.0

    # Internal state
    _status: SyncStatus = field(default_factory=SyncStatus)
    _queue: queue.Queue = field(default_factory=queue.Queue, repr=False)
    _thread: threading.Thread | None = field(default=None, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _idle: threading.Condition = field(default_factory=threading.Condition, repr=False)
    _outstanding: int = field(default=0, repr=False)
    _stopping: bool = field(default=False, repr=False)

    @property
    def status(self) -> SyncStatus:
        """Get current sync status."""
        return self._status

    @property
    def outstanding(self) -> int:
        """Jobs enqueued but not yet stored or dropped."""
        with self._idle:
            return self._outstanding

    def start(self) -> None:
        """Start the background writer thread."""
        if self._status.is_running:
            logger.warning("Background record sync already running")
            return

        self._stop_event.clear()
        self._status.is_running = True
        self._thread = threading.Thread(
            target=self._worker_loop,
            name="learn-record-sync",
            daemon=True,
        )
        self._thread.start()
        logger.debug(f"Background record sync started for user {self.user_id}")

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the writer after the jobs already queued.

        If the writer is still busy when the timeout expires the sync keeps
        running; call stop() again to wait for it.
        """
        if not self._status.is_running:
            return

        if not self._stopping:
            self._stopping = True
            self._queue.put(_STOP)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        if self._thread and self._thread.is_alive():
            logger.warning(f"Background record sync still writing after {timeout}s")
            return

        self._stop_event.set()
        self._stopping = False
        self._status.is_running = False
        logger.debug("Background record sync stopped")

    # =========================================================================
    # Producer side
    # =========================================================================

    def push(self, record: TermRecord) -> None:
        """Enqueue a mutated record. Never blocks on storage."""
        self._enqueue(_RecordJob(record))

    def push_round(self, set_id: str, round_number: int) -> None:
        """Enqueue the session's round counter for resuming later."""
        self._enqueue(_RoundJob(set_id, round_number))

    def _enqueue(self, job: _RecordJob | _RoundJob) -> None:
        with self._idle:
            self._outstanding += 1
        self._queue.put(job)

    def flush(self, timeout: float | None = None) -> bool:
        """
        Wait until every queued job is stored or dropped.

        When the worker is not running the queue is drained on the
        calling thread instead.

        Returns:
            True if the queue drained within the timeout
        """
        if not self._status.is_running:
            self._drain_inline()
            return True

        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout=timeout)

    # =========================================================================
    # Worker side
    # =========================================================================

    def _worker_loop(self) -> None:
        while True:
            job = self._queue.get()
            if job is _STOP:
                break
            self._process(job)

    def _drain_inline(self) -> None:
        while True:
            try:
                job = self._queue.get_nowait()
            except queue.Empty:
                return
            if job is not _STOP:
                self._process(job)

    def _process(self, job: _RecordJob | _RoundJob) -> None:
        try:
            self._write_with_retry(job)
        finally:
            with self._idle:
                self._outstanding -= 1
                self._idle.notify_all()

    def _write_with_retry(self, job: _RecordJob | _RoundJob) -> None:
        label = (
            f"record {job.record.term_id}"
            if isinstance(job, _RecordJob)
            else f"round {job.round_number} of set {job.set_id}"
        )

        for attempt in range(1, self.max_retries + 1):
            try:
                if isinstance(job, _RecordJob):
                    self.store.upsert(self.user_id, job.record)
                else:
                    self.store.save_round(self.user_id, job.set_id, job.round_number)
            except Exception as exc:
                self._status.error_message = str(exc)
                if attempt < self.max_retries:
                    self._status.retried += 1
                    logger.warning(
                        "Storing {} failed (attempt {}/{}): {}",
                        label,
                        attempt,
                        self.max_retries,
                        exc,
                    )
                    self._stop_event.wait(timeout=self.retry_delay_seconds)
                    continue
                self._status.dropped += 1
                logger.error("Dropping {} after {} attempts: {}", label, attempt, exc)
                return

            self._status.stored += 1
            self._status.last_stored_at = datetime.now()
            self._status.error_message = None
            return
