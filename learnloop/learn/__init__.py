"""
Learn Module - the adaptive Learn-mode scheduler.

Provides:
- build_learn_pool: session initializer
- LearnScheduler: selection, grading and round progression
- ranking helpers: rank normalization, miss reinsertion, reshuffle
- LearnSession: step-by-step driver with explicit start/teardown
"""

from learnloop.learn.initializer import build_learn_pool, reserved_ranks, validate_mode_config
from learnloop.learn.scheduler import GradeEvent, LearnScheduler, RoundSummary, SessionStats
from learnloop.learn.session import (
    LearnSession,
    LearnStep,
    Question,
    RoundComplete,
    SessionFinished,
    open_learn_session,
)

__all__ = [
    "build_learn_pool",
    "validate_mode_config",
    "reserved_ranks",
    "LearnScheduler",
    "GradeEvent",
    "RoundSummary",
    "SessionStats",
    "LearnSession",
    "LearnStep",
    "Question",
    "RoundComplete",
    "SessionFinished",
    "open_learn_session",
]
