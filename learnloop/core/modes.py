"""
Learn-mode configuration.

Mode flags (review pass, starred-only, shuffle, answer mode) are passed into
a session as one immutable value instead of being read from ambient
preference state. Changing any of them means starting a new session.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidModeConfig


class LearnMode(str, Enum):
    """Which pool the session studies."""

    LEARN = "learn"  # Every term in the set
    REVIEW = "review"  # Only previously missed terms, worst first


class AnswerMode(str, Enum):
    """How the learner answers a question."""

    MULTIPLE_CHOICE = "multiple_choice"
    WRITTEN = "written"


class AnswerWith(str, Enum):
    """Which side of the term the learner has to produce."""

    WORD = "word"
    DEFINITION = "definition"
    BOTH = "both"


DEFAULT_MASTERY_THRESHOLDS: dict[AnswerMode, int] = {
    AnswerMode.MULTIPLE_CHOICE: 2,
    AnswerMode.WRITTEN: 3,
}

DEFAULT_REINSERT_OFFSET = 3


class LearnModeConfig(BaseModel):
    """Immutable configuration for one Learn session."""

    model_config = ConfigDict(frozen=True)

    learn_mode: LearnMode = LearnMode.LEARN
    answer_mode: AnswerMode = AnswerMode.MULTIPLE_CHOICE
    answer_with: AnswerWith = AnswerWith.DEFINITION
    starred_only: bool = False
    starred_term_ids: frozenset[str] = frozenset()
    shuffle: bool = False

    # Explicit threshold wins over the per-answer-mode table
    mastery_threshold: int | None = Field(default=None, ge=1)
    mastery_thresholds: dict[AnswerMode, int] = Field(
        default_factory=lambda: dict(DEFAULT_MASTERY_THRESHOLDS)
    )

    # How many active terms a missed term is pushed behind
    reinsert_offset: int = Field(default=DEFAULT_REINSERT_OFFSET, ge=1)

    # Round to resume at (persisted round counter of a previous session)
    start_round: int = Field(default=1, ge=1)
    # Skip terms whose record shows them already presented in start_round
    resume_round_progress: bool = True

    @field_validator("mastery_thresholds")
    @classmethod
    def _thresholds_positive(cls, value: dict[AnswerMode, int]) -> dict[AnswerMode, int]:
        for mode, threshold in value.items():
            if threshold < 1:
                raise ValueError(f"mastery threshold for {mode.value} must be >= 1")
        return value

    @classmethod
    def parse(cls, data: dict[str, Any]) -> LearnModeConfig:
        """
        Build a config from loose input (CLI options, stored preferences).

        Raises:
            InvalidModeConfig: If any field fails validation
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidModeConfig(str(exc)) from exc

    @property
    def is_review(self) -> bool:
        return self.learn_mode == LearnMode.REVIEW

    def threshold(self) -> int:
        """Correctness count at which a term is retired for the session."""
        if self.mastery_threshold is not None:
            return self.mastery_threshold
        try:
            return self.mastery_thresholds[self.answer_mode]
        except KeyError:
            raise InvalidModeConfig(
                f"No mastery threshold configured for answer mode {self.answer_mode.value}"
            ) from None
