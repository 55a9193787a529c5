"""
Core Module - Shared Learn-mode domain models.

Components:
- terms: Term, TermRecord, TermState, PoolEntry and the answer transition
- modes: LearnModeConfig and its enums
- errors: Learn-mode error kinds
"""

from learnloop.core.errors import (
    EmptyPool,
    InvalidModeConfig,
    LearnError,
    RoundInProgress,
    SessionComplete,
    StaleSelection,
    UnknownTerm,
)
from learnloop.core.modes import AnswerMode, AnswerWith, LearnMode, LearnModeConfig
from learnloop.core.terms import LEARN_MODE, PoolEntry, Term, TermRecord, TermState, record_answer

__all__ = [
    # Models
    "Term",
    "TermRecord",
    "TermState",
    "PoolEntry",
    "LEARN_MODE",
    "record_answer",
    # Modes
    "LearnMode",
    "AnswerMode",
    "AnswerWith",
    "LearnModeConfig",
    # Errors
    "LearnError",
    "EmptyPool",
    "StaleSelection",
    "InvalidModeConfig",
    "UnknownTerm",
    "RoundInProgress",
    "SessionComplete",
]
