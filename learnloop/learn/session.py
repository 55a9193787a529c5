"""
Learn session lifecycle.

Wraps the scheduler into one driver call per step and owns the explicit
start/teardown of a session:

    with open_learn_session(source, store, set_id, user_id, config) as session:
        step = session.next_step()
        ...

On close, pending records are handed to the sync adapter, the adapter is
drained and stopped, and the session state is discarded.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Union

from loguru import logger

from learnloop.core.errors import EmptyPool
from learnloop.core.modes import AnswerWith, LearnModeConfig
from learnloop.core.ports import RecordStore, TermSource
from learnloop.core.terms import PoolEntry, Term, TermRecord, TermState
from learnloop.sync.background_sync import BackgroundRecordSync

from .initializer import build_learn_pool, reserved_ranks
from .scheduler import GradeEvent, LearnScheduler, RoundSummary, SessionStats

# =============================================================================
# Steps
# =============================================================================


@dataclass(frozen=True)
class Question:
    """Present a term; the learner has to produce `answer_with`."""

    entry: PoolEntry
    answer_with: AnswerWith  # WORD or DEFINITION, never BOTH
    round_number: int
    state: TermState

    @property
    def term(self) -> Term:
        return self.entry.term

    @property
    def prompt(self) -> str:
        if self.answer_with == AnswerWith.WORD:
            return self.term.definition
        return self.term.word

    @property
    def expected(self) -> str:
        if self.answer_with == AnswerWith.WORD:
            return self.term.word
        return self.term.definition


@dataclass(frozen=True)
class RoundComplete:
    summary: RoundSummary


@dataclass(frozen=True)
class SessionFinished:
    stats: SessionStats


LearnStep = Union[Question, RoundComplete, SessionFinished]


# =============================================================================
# Session
# =============================================================================


class LearnSession:
    """
    One learner's Learn session over one study set.

    Usage:
        session = LearnSession.start(terms, records, config, sync=sync)
        step = session.next_step()
        if isinstance(step, Question):
            session.answer(step.term.id, is_correct)
        session.close()
    """

    def __init__(
        self,
        scheduler: LearnScheduler,
        sync: BackgroundRecordSync | None = None,
        set_id: str | None = None,
        flush_timeout: float = 10.0,
    ):
        self.scheduler = scheduler
        self.sync = sync
        self.set_id = set_id
        self.flush_timeout = flush_timeout
        self._closed = False

    @classmethod
    def start(
        cls,
        terms: Iterable[Term],
        records: Iterable[TermRecord],
        config: LearnModeConfig,
        sync: BackgroundRecordSync | None = None,
        set_id: str | None = None,
        on_change: Callable[[GradeEvent], None] | None = None,
        rng: random.Random | None = None,
        flush_timeout: float = 10.0,
    ) -> LearnSession:
        """
        Build the pool and scheduler for a new session.

        Raises:
            InvalidModeConfig: If the configuration cannot produce a session
        """
        terms = list(terms)
        records = list(records)
        pool = build_learn_pool(terms, records, config)
        scheduler = LearnScheduler(
            pool,
            config,
            sink=sync,
            on_change=on_change,
            rng=rng,
            reserved_ranks=reserved_ranks(terms, pool, records),
        )
        return cls(scheduler, sync=sync, set_id=set_id, flush_timeout=flush_timeout)

    def __enter__(self) -> LearnSession:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def config(self) -> LearnModeConfig:
        return self.scheduler.config

    @property
    def closed(self) -> bool:
        return self._closed

    def next_step(self) -> LearnStep:
        """
        Advance the session by one step.

        Returns:
            Question to present, RoundComplete when a round just ended,
            or SessionFinished once every term is mastered
        """
        scheduler = self.scheduler
        if scheduler.is_session_complete:
            return SessionFinished(scheduler.stats())

        try:
            entry = scheduler.select_next()
        except EmptyPool:
            summary = scheduler.advance_round()
            if self.sync is not None and self.set_id is not None:
                self.sync.push_round(self.set_id, scheduler.round_number)
            return RoundComplete(summary)

        return Question(
            entry=entry,
            answer_with=self._answer_side(entry),
            round_number=scheduler.round_number,
            state=scheduler.state_of(entry.term_id),
        )

    def _answer_side(self, entry: PoolEntry) -> AnswerWith:
        answer_with = self.config.answer_with
        if answer_with != AnswerWith.BOTH:
            return answer_with
        # Alternate sides as the streak grows
        if entry.record.correctness % 2 == 0:
            return AnswerWith.DEFINITION
        return AnswerWith.WORD

    def answer(self, term_id: str, is_correct: bool) -> TermRecord:
        """Grade the term presented by the last Question."""
        return self.scheduler.grade(term_id, is_correct)

    def reshuffle(self) -> None:
        self.scheduler.reshuffle()

    def stats(self) -> SessionStats:
        return self.scheduler.stats()

    def close(self) -> None:
        """Flush pending records, drain and stop the sync adapter."""
        if self._closed:
            return
        self._closed = True

        flushed = self.scheduler.flush_pending()
        if self.sync is not None:
            if self.set_id is not None:
                self.sync.push_round(self.set_id, self.scheduler.round_number)
            drained = self.sync.flush(timeout=self.flush_timeout)
            if not drained:
                logger.warning("Learn session closed before all records were stored")
            self.sync.stop()

        stats = self.scheduler.stats()
        logger.info(
            f"Learn session closed: {stats.mastered}/{stats.total} mastered, "
            f"{stats.answered} answers, {flushed} pending records flushed"
        )


def open_learn_session(
    source: TermSource,
    store: RecordStore,
    set_id: str,
    user_id: str,
    config: LearnModeConfig,
    resume: bool = True,
    on_change: Callable[[GradeEvent], None] | None = None,
    rng: random.Random | None = None,
    max_retries: int = 3,
    retry_delay_seconds: float = 1.0,
    flush_timeout: float = 10.0,
) -> LearnSession:
    """
    Start a session from the external collaborators.

    Args:
        source: Provides the set's terms (called once)
        store: Provides persisted records and receives mutated ones
        set_id: Study set identifier
        user_id: Learner identifier
        config: Mode configuration
        resume: Continue from the persisted round counter; otherwise start a
            fresh round 1 in which every unmastered term is asked again

    Returns:
        A started LearnSession with a running background sync
    """
    terms = source.load_terms(set_id)
    records = store.load(user_id, [t.id for t in terms])
    if resume:
        config = config.model_copy(update={"start_round": max(1, store.load_round(user_id, set_id))})
    else:
        config = config.model_copy(update={"start_round": 1, "resume_round_progress": False})

    sync = BackgroundRecordSync(
        store=store,
        user_id=user_id,
        max_retries=max_retries,
        retry_delay_seconds=retry_delay_seconds,
    )
    session = LearnSession.start(
        terms,
        records,
        config,
        sync=sync,
        set_id=set_id,
        on_change=on_change,
        rng=rng,
        flush_timeout=flush_timeout,
    )
    sync.start()
    return session
