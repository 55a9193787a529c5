"""
Term and TermRecord models.

A Term is the read-only content unit owned by a study set. A TermRecord is
the per-user mastery state for one term in one study mode. Records are
frozen: every transition returns a new record, so snapshots handed to the
persistence layer can never change underneath it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

LEARN_MODE = "learn"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class Term:
    """A single word/definition study unit."""

    id: str
    word: str
    definition: str
    rank: int

    @classmethod
    def from_dict(cls, data: dict) -> Term:
        """Create a Term from a study-set JSON entry."""
        return cls(
            id=str(data["id"]),
            word=data["word"],
            definition=data["definition"],
            rank=int(data["rank"]),
        )


@dataclass(frozen=True)
class TermRecord:
    """Per-user study state for a single term."""

    term_id: str
    correctness: int = 0  # Mastery counter, reset on a miss
    incorrect_count: int = 0  # Total misses, never decreases
    appeared_in_round: int | None = None
    studiable_rank: float | None = None
    mode: str = LEARN_MODE

    def __post_init__(self) -> None:
        if self.correctness < 0:
            raise ValueError(f"correctness must be >= 0, got {self.correctness}")
        if self.incorrect_count < 0:
            raise ValueError(f"incorrect_count must be >= 0, got {self.incorrect_count}")

    @classmethod
    def fresh(cls, term_id: str) -> TermRecord:
        """Record for a term the learner has never studied."""
        return cls(term_id=term_id)

    @classmethod
    def from_dict(cls, data: dict) -> TermRecord:
        rank = data.get("studiable_rank")
        return cls(
            term_id=str(data["term_id"]),
            correctness=int(data.get("correctness") or 0),
            incorrect_count=int(data.get("incorrect_count") or 0),
            appeared_in_round=data.get("appeared_in_round"),
            studiable_rank=float(rank) if rank is not None else None,
            mode=data.get("mode") or LEARN_MODE,
        )

    def to_dict(self) -> dict:
        return {
            "term_id": self.term_id,
            "correctness": self.correctness,
            "incorrect_count": self.incorrect_count,
            "appeared_in_round": self.appeared_in_round,
            "studiable_rank": self.studiable_rank,
            "mode": self.mode,
        }

    @property
    def has_appeared(self) -> bool:
        return self.appeared_in_round is not None

    def with_rank(self, rank: float) -> TermRecord:
        return replace(self, studiable_rank=rank)


class TermState(str, Enum):
    """Derived study state of a term, never stored."""

    UNSEEN = "unseen"
    ACTIVE = "active"
    MASTERED = "mastered"

    @classmethod
    def of(cls, record: TermRecord, threshold: int) -> TermState:
        # Mastery wins over "unseen": a resumed record may already be at threshold.
        if record.correctness >= threshold:
            return cls.MASTERED
        if not record.has_appeared:
            return cls.UNSEEN
        return cls.ACTIVE


@dataclass(frozen=True)
class PoolEntry:
    """A term paired with its current record inside a learn pool."""

    term: Term
    record: TermRecord

    @property
    def term_id(self) -> str:
        return self.term.id


# =============================================================================
# Transitions
# =============================================================================


def record_answer(record: TermRecord, is_correct: bool, round_number: int) -> TermRecord:
    """
    Apply one graded answer to a record.

    A correct answer adds one to correctness. A miss forfeits all
    accumulated correctness and counts towards incorrect_count.

    Args:
        record: Record before the answer
        is_correct: Whether the learner answered correctly
        round_number: Round in which the term was presented

    Returns:
        New TermRecord; the input is left untouched
    """
    if is_correct:
        return replace(
            record,
            correctness=record.correctness + 1,
            appeared_in_round=round_number,
        )
    return replace(
        record,
        correctness=0,
        incorrect_count=record.incorrect_count + 1,
        appeared_in_round=round_number,
    )
