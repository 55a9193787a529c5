"""
Learn-mode scheduler core.

Implements the per-session state machine:
- select_next(): first unmastered term not yet shown this round
- grade(): apply the answer, recompute ranks, emit the mutated record
- advance_round(): start the next pass over unmastered terms
- reshuffle(): randomize presentation order of unmastered terms

Term states (derived from records, never stored):
UNSEEN -> ACTIVE -> MASTERED. A miss resets correctness to 0, so an
ACTIVE term can fall back to the start of its streak but never becomes
UNSEEN again. MASTERED terms leave the session for good.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from loguru import logger

from learnloop.core.errors import (
    EmptyPool,
    RoundInProgress,
    SessionComplete,
    StaleSelection,
    UnknownTerm,
)
from learnloop.core.modes import LearnModeConfig
from learnloop.core.ports import RecordSink
from learnloop.core.terms import PoolEntry, TermRecord, TermState, record_answer

from .ranking import normalize_ranks, reinsert_after_miss, reshuffle_ranks, settle_ranks

# =============================================================================
# Events and Statistics
# =============================================================================


@dataclass(frozen=True)
class GradeEvent:
    """Notification sent to the on_change callback after each grade."""

    term_id: str
    is_correct: bool
    record: TermRecord
    became_mastered: bool
    round_number: int


@dataclass(frozen=True)
class RoundSummary:
    """What happened in a finished round."""

    round_number: int
    answered: int
    correct: int
    newly_mastered: int
    remaining: int

    @property
    def incorrect(self) -> int:
        return self.answered - self.correct


@dataclass(frozen=True)
class SessionStats:
    """Snapshot of session progress."""

    round_number: int
    total: int
    mastered: int
    active: int
    unseen: int
    answered: int
    correct: int

    @property
    def remaining(self) -> int:
        return self.total - self.mastered

    @property
    def is_complete(self) -> bool:
        return self.remaining == 0

    @property
    def accuracy_percent(self) -> float:
        if self.answered == 0:
            return 0.0
        return self.correct / self.answered * 100


# =============================================================================
# Scheduler
# =============================================================================


class LearnScheduler:
    """
    Decides term by term what the learner is asked next.

    The scheduler owns the pool and round counter for one session. It is
    driven by a single writer: select_next() then grade(), repeated, with
    advance_round() between rounds.
    """

    def __init__(
        self,
        pool: list[PoolEntry],
        config: LearnModeConfig,
        sink: RecordSink | None = None,
        on_change: Callable[[GradeEvent], None] | None = None,
        rng: random.Random | None = None,
        reserved_ranks: Iterable[float] = (),
    ):
        """
        Initialize the scheduler.

        Args:
            pool: Ordered pool from build_learn_pool
            config: Session mode configuration
            sink: Receiver of mutated records (records are only kept pending if None)
            on_change: Optional callback invoked after each grade
            rng: Random source for reshuffles
            reserved_ranks: Ranks held by terms of the set outside the pool
        """
        term_ids = [e.term_id for e in pool]
        if len(set(term_ids)) != len(term_ids):
            raise ValueError("Learn pool contains duplicate term ids")

        self.config = config
        self.threshold = config.threshold()
        self.sink = sink
        self.on_change = on_change
        self.rng = rng or random.Random()

        self._reserved = frozenset(reserved_ranks)

        self._round = config.start_round
        self._selected_id: str | None = None
        # Terms already presented in the current round
        self._shown: set[str] = set()
        if config.resume_round_progress:
            self._shown = {e.term_id for e in pool if e.record.appeared_in_round == self._round}
        self._pending: dict[str, TermRecord] = {}

        self._round_answered = 0
        self._round_correct = 0
        self._round_mastered = 0
        self._answered = 0
        self._correct = 0

        if config.starred_only or config.is_review or self._reserved:
            self._pool, changed = settle_ranks(list(pool), self._reserved)
        else:
            self._pool, changed = normalize_ranks(list(pool))
        self._queue_pending(changed)

        if config.shuffle:
            self.reshuffle()

        logger.info(
            f"Learn session ready: {len(self._pool)} terms, round {self._round}, "
            f"threshold {self.threshold}"
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def round_number(self) -> int:
        return self._round

    @property
    def pool(self) -> tuple[PoolEntry, ...]:
        return tuple(self._pool)

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    def entry(self, term_id: str) -> PoolEntry:
        for entry in self._pool:
            if entry.term_id == term_id:
                return entry
        raise UnknownTerm(term_id)

    def state_of(self, term_id: str) -> TermState:
        return TermState.of(self.entry(term_id).record, self.threshold)

    def _is_active(self, entry: PoolEntry) -> bool:
        return entry.record.correctness < self.threshold

    def _is_candidate(self, entry: PoolEntry) -> bool:
        return self._is_active(entry) and entry.term_id not in self._shown

    @property
    def is_round_complete(self) -> bool:
        return not any(self._is_candidate(e) for e in self._pool)

    @property
    def is_session_complete(self) -> bool:
        return not any(self._is_active(e) for e in self._pool)

    def stats(self) -> SessionStats:
        states = [TermState.of(e.record, self.threshold) for e in self._pool]
        return SessionStats(
            round_number=self._round,
            total=len(states),
            mastered=states.count(TermState.MASTERED),
            active=states.count(TermState.ACTIVE),
            unseen=states.count(TermState.UNSEEN),
            answered=self._answered,
            correct=self._correct,
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    def select_next(self) -> PoolEntry:
        """
        Pick the next term to present.

        Repeated calls without a grade in between return the same term.

        Raises:
            EmptyPool: No unmastered term is left to present this round
        """
        for entry in self._pool:
            if self._is_candidate(entry):
                self._selected_id = entry.term_id
                return entry
        self._selected_id = None
        raise EmptyPool(self._round)

    def grade(self, term_id: str, is_correct: bool) -> TermRecord:
        """
        Grade the currently selected term.

        Args:
            term_id: Must match the last select_next() result
            is_correct: Whether the learner answered correctly

        Returns:
            The updated TermRecord

        Raises:
            StaleSelection: term_id is not the current selection
        """
        if term_id != self._selected_id:
            raise StaleSelection(term_id, self._selected_id)

        index = next(i for i, e in enumerate(self._pool) if e.term_id == term_id)
        entry = self._pool[index]
        updated = record_answer(entry.record, is_correct, self._round)

        pool = self._pool.copy()
        pool[index] = PoolEntry(entry.term, updated)
        changed: list[TermRecord] = []
        if not is_correct:
            pool, changed = reinsert_after_miss(
                pool, term_id, self.config.reinsert_offset, self._is_active, self._reserved
            )
            updated = next(e.record for e in pool if e.term_id == term_id)

        # Single assignment so the term is never left half-graded
        self._pool = pool
        self._selected_id = None
        self._shown.add(term_id)

        became_mastered = is_correct and updated.correctness >= self.threshold
        self._answered += 1
        self._round_answered += 1
        if is_correct:
            self._correct += 1
            self._round_correct += 1
        if became_mastered:
            self._round_mastered += 1

        self._queue_pending(r for r in changed if r.term_id != term_id)
        self._pending.pop(term_id, None)
        self._emit(updated)

        logger.debug(
            f"Graded {term_id}: correct={is_correct}, correctness={updated.correctness}, "
            f"misses={updated.incorrect_count}, rank={updated.studiable_rank}"
            + (" [mastered]" if became_mastered else "")
        )

        self._notify(
            GradeEvent(
                term_id=term_id,
                is_correct=is_correct,
                record=updated,
                became_mastered=became_mastered,
                round_number=self._round,
            )
        )
        return updated

    def advance_round(self) -> RoundSummary:
        """
        Finish the current round and open the next one.

        Returns:
            Summary of the round just finished

        Raises:
            RoundInProgress: Terms are still waiting to be presented
            SessionComplete: Every term is mastered; there is no next round
        """
        remaining = sum(1 for e in self._pool if self._is_candidate(e))
        if remaining:
            raise RoundInProgress(self._round, remaining)
        if self.is_session_complete:
            self.flush_pending()
            raise SessionComplete(self._round)

        summary = RoundSummary(
            round_number=self._round,
            answered=self._round_answered,
            correct=self._round_correct,
            newly_mastered=self._round_mastered,
            remaining=sum(1 for e in self._pool if self._is_active(e)),
        )

        self._round += 1
        self._selected_id = None
        self._shown.clear()
        self._round_answered = 0
        self._round_correct = 0
        self._round_mastered = 0
        self.flush_pending()

        logger.info(
            f"Round {summary.round_number} complete: {summary.correct}/{summary.answered} correct, "
            f"{summary.newly_mastered} mastered, {summary.remaining} remaining"
        )
        return summary

    def reshuffle(self) -> None:
        """
        Randomize presentation order of every unmastered term.

        Mastery state is untouched. An outstanding selection is dropped so
        the next select_next() picks from the new order.
        """
        self._pool, changed = reshuffle_ranks(self._pool, self._is_active, self.rng)
        self._selected_id = None
        self._queue_pending(changed)
        logger.debug(f"Reshuffled learn pool ({len(changed)} ranks changed)")

    # =========================================================================
    # Persistence hand-off
    # =========================================================================

    def _queue_pending(self, records) -> None:
        for record in records:
            self._pending[record.term_id] = record

    @property
    def pending(self) -> list[TermRecord]:
        """Mutated records not yet handed to the sink."""
        return list(self._pending.values())

    def flush_pending(self) -> int:
        """
        Hand every pending record to the sink.

        Returns:
            Number of records handed over
        """
        if self.sink is None or not self._pending:
            return 0
        records = list(self._pending.values())
        self._pending.clear()
        for record in records:
            self._emit(record)
        return len(records)

    def _emit(self, record: TermRecord) -> None:
        if self.sink is None:
            self._pending[record.term_id] = record
            return
        try:
            self.sink.push(record)
        except Exception as exc:
            # Sink failures are logged, never raised
            logger.error(f"Record sink rejected {record.term_id}: {exc}")

    def _notify(self, event: GradeEvent) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(event)
        except Exception as exc:
            logger.warning(f"Learn change callback failed: {exc}")
