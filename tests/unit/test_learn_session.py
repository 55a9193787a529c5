"""
Unit tests for LearnSession stepping and lifecycle.
"""

import pytest

from learnloop.core import AnswerWith, InvalidModeConfig, LearnModeConfig, TermRecord
from learnloop.delivery import JsonStudySet
from learnloop.learn import (
    LearnSession,
    Question,
    RoundComplete,
    SessionFinished,
    build_learn_pool,
    open_learn_session,
)
from learnloop.sync import BackgroundRecordSync, MemoryRecordStore


class ListSource:
    def __init__(self, terms):
        self.terms = terms
        self.calls = 0

    def load_terms(self, set_id):
        self.calls += 1
        return list(self.terms)


def run_all_correct(session):
    steps = []
    while True:
        step = session.next_step()
        steps.append(step)
        if isinstance(step, SessionFinished):
            return steps
        if isinstance(step, Question):
            session.answer(step.term.id, True)


class TestStepping:
    def test_steps_through_rounds_to_finish(self, abc_terms, threshold_two):
        session = LearnSession.start(abc_terms, [], threshold_two)
        steps = run_all_correct(session)

        kinds = [type(s).__name__ for s in steps]
        assert kinds == [
            "Question", "Question", "Question",
            "RoundComplete",
            "Question", "Question", "Question",
            "SessionFinished",
        ]
        assert steps[3].summary.round_number == 1
        assert steps[-1].stats.mastered == 3

    def test_round_complete_is_reported_once(self, abc_terms, threshold_two):
        session = LearnSession.start(abc_terms, [], threshold_two)
        for _ in range(3):
            step = session.next_step()
            session.answer(step.term.id, False)

        assert isinstance(session.next_step(), RoundComplete)
        step = session.next_step()
        assert isinstance(step, Question)
        assert step.round_number == 2

    def test_empty_pool_finishes_immediately(self, abc_terms):
        config = LearnModeConfig(starred_only=True, starred_term_ids=frozenset({"Z"}))
        session = LearnSession.start(abc_terms, [], config)

        step = session.next_step()
        assert isinstance(step, SessionFinished)
        assert step.stats.total == 0

    def test_question_sides(self, abc_terms):
        config = LearnModeConfig(answer_with=AnswerWith.WORD)
        step = LearnSession.start(abc_terms, [], config).next_step()

        assert step.prompt == "definition-A"
        assert step.expected == "word-A"

    def test_both_alternates_with_streak(self, abc_terms):
        config = LearnModeConfig(answer_with=AnswerWith.BOTH, mastery_threshold=3)
        session = LearnSession.start(abc_terms, [TermRecord(term_id="B", correctness=1)], config)

        first = session.next_step()
        assert first.answer_with == AnswerWith.DEFINITION
        session.answer(first.term.id, True)

        second = session.next_step()
        assert second.term.id == "B"
        assert second.answer_with == AnswerWith.WORD

    def test_starred_without_stars_is_rejected_at_start(self, abc_terms):
        config = LearnModeConfig(starred_only=True)
        with pytest.raises(InvalidModeConfig):
            LearnSession.start(abc_terms, [], config)


class TestLifecycle:
    def test_close_flushes_pending_records_and_round(self, abc_terms, threshold_two):
        store = MemoryRecordStore()
        sync = BackgroundRecordSync(store=store, user_id="u1")
        session = LearnSession.start(abc_terms, [], threshold_two, sync=sync, set_id="set-1")

        step = session.next_step()
        session.answer(step.term.id, False)
        session.close()

        assert store.get("u1", "A").incorrect_count == 1
        # Untouched terms still get their normalized rank stored
        assert store.get("u1", "C").studiable_rank == 3.0
        assert store.load_round("u1", "set-1") == 1
        assert session.closed

    def test_close_is_idempotent(self, abc_terms, threshold_two):
        session = LearnSession.start(abc_terms, [], threshold_two)
        session.close()
        session.close()
        assert session.closed

    def test_context_manager_closes(self, abc_terms, threshold_two):
        store = MemoryRecordStore()
        sync = BackgroundRecordSync(store=store, user_id="u1")
        with LearnSession.start(abc_terms, [], threshold_two, sync=sync) as session:
            step = session.next_step()
            session.answer(step.term.id, True)

        assert store.get("u1", "A").correctness == 1


class TestOpenLearnSession:
    def test_loads_terms_and_records_once(self, abc_terms, threshold_two):
        store = MemoryRecordStore()
        store.upsert("u1", TermRecord(term_id="B", correctness=2, appeared_in_round=1))
        source = ListSource(abc_terms)

        with open_learn_session(source, store, "set-1", "u1", threshold_two) as session:
            assert source.calls == 1
            assert session.stats().mastered == 1

    def test_resumes_persisted_round(self, abc_terms, threshold_two):
        store = MemoryRecordStore()
        store.save_round("u1", "set-1", 3)

        with open_learn_session(ListSource(abc_terms), store, "set-1", "u1", threshold_two) as session:
            assert session.scheduler.round_number == 3

        fresh = open_learn_session(ListSource(abc_terms), store, "set-1", "u1", threshold_two, resume=False)
        assert fresh.scheduler.round_number == 1
        fresh.close()

    def test_background_sync_stores_progress(self, sample_set_file, threshold_two):
        source, study_set = JsonStudySet.from_file(sample_set_file)
        store = MemoryRecordStore()

        session = open_learn_session(source, store, study_set.id, "u1", threshold_two)
        run_all_correct(session)
        session.close()

        assert not session.sync.status.is_running
        for term in study_set.terms:
            assert store.get("u1", term.id).correctness == 2
        assert store.load_round("u1", study_set.id) == 2

    def test_invalid_config_surfaces_before_any_selection(self, abc_terms):
        config = LearnModeConfig(starred_only=True, starred_term_ids=frozenset())
        with pytest.raises(InvalidModeConfig):
            open_learn_session(ListSource(abc_terms), MemoryRecordStore(), "set-1", "u1", config)


def answer_questions(session, count, is_correct=True):
    """Answer `count` questions, stepping over round boundaries."""
    answered = 0
    while answered < count:
        step = session.next_step()
        if isinstance(step, SessionFinished):
            return
        if isinstance(step, Question):
            session.answer(step.term.id, is_correct(step.term.id) if callable(is_correct) else is_correct)
            answered += 1


class TestSubsetSessions:
    def persisted_ranks(self, store, terms):
        return {r.term_id: r.studiable_rank for r in store.load("u1", [t.id for t in terms])}

    def test_starred_session_keeps_set_order(self, term_factory):
        terms = term_factory(*"ABCDE")
        store = MemoryRecordStore()
        config = LearnModeConfig(mastery_threshold=3)

        with open_learn_session(ListSource(terms), store, "set-1", "u1", config) as session:
            answer_questions(session, 5)

        starred = config.model_copy(
            update={"starred_only": True, "starred_term_ids": frozenset({"B", "D"})}
        )
        with open_learn_session(ListSource(terms), store, "set-1", "u1", starred) as session:
            answer_questions(session, 4)

        ranks = self.persisted_ranks(store, terms)
        assert len(set(ranks.values())) == 5
        next_pool = build_learn_pool(terms, store.load("u1", [t.id for t in terms]), config)
        assert [e.term_id for e in next_pool] == list("ABCDE")

    def test_starred_session_adds_ranks_after_the_set(self, term_factory):
        terms = term_factory(*"ABCDE")
        store = MemoryRecordStore()
        config = LearnModeConfig(mastery_threshold=3)

        starred = config.model_copy(
            update={"starred_only": True, "starred_term_ids": frozenset({"D"})}
        )
        for term_id, rank in (("A", 1.0), ("B", 2.0), ("C", 3.0)):
            store.upsert("u1", TermRecord(term_id=term_id, studiable_rank=rank))
        with open_learn_session(ListSource(terms), store, "set-1", "u1", starred) as session:
            answer_questions(session, 1)

        assert self.persisted_ranks(store, terms)["D"] == 4.0

    def test_review_session_with_misses_keeps_ranks_unique(self, term_factory):
        terms = term_factory(*"ABCDE")
        store = MemoryRecordStore()
        config = LearnModeConfig(mastery_threshold=3, reinsert_offset=1)

        with open_learn_session(ListSource(terms), store, "set-1", "u1", config) as session:
            answer_questions(session, 5, is_correct=lambda term_id: term_id not in {"B", "D"})

        review = config.model_copy(update={"learn_mode": "review"})
        with open_learn_session(ListSource(terms), store, "set-1", "u1", review, resume=False) as session:
            assert session.stats().total == 2
            answer_questions(session, 4, is_correct=False)

        ranks = self.persisted_ranks(store, terms)
        assert len(ranks) == 5
        assert len(set(ranks.values())) == 5


class TestFreshStart:
    def test_fresh_start_asks_terms_from_abandoned_round(self, abc_terms, threshold_two):
        store = MemoryRecordStore()

        with open_learn_session(ListSource(abc_terms), store, "set-1", "u1", threshold_two) as session:
            answer_questions(session, 1)

        with open_learn_session(
            ListSource(abc_terms), store, "set-1", "u1", threshold_two, resume=False
        ) as session:
            step = session.next_step()
            assert step.term.id == "A"
            assert step.round_number == 1

    def test_resume_skips_terms_from_same_round(self, abc_terms, threshold_two):
        store = MemoryRecordStore()

        with open_learn_session(ListSource(abc_terms), store, "set-1", "u1", threshold_two) as session:
            answer_questions(session, 1)

        with open_learn_session(ListSource(abc_terms), store, "set-1", "u1", threshold_two) as session:
            assert session.next_step().term.id == "B"
