"""
Answer checking for the terminal Learn driver.

Multiple choice offers the expected answer plus distractors drawn from the
same side of other terms; written answers are compared after
case/whitespace normalization.
"""

from __future__ import annotations

import random
import re

from learnloop.core.modes import AnswerWith
from learnloop.core.terms import Term

MAX_CHOICES = 4

_WHITESPACE = re.compile(r"\s+")


def normalize_answer(text: str) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", text.strip()).casefold()


def is_written_correct(answer: str, expected: str) -> bool:
    return bool(answer.strip()) and normalize_answer(answer) == normalize_answer(expected)


def side_of(term: Term, answer_with: AnswerWith) -> str:
    return term.word if answer_with == AnswerWith.WORD else term.definition


def build_choices(
    term: Term,
    answer_with: AnswerWith,
    all_terms: list[Term],
    rng: random.Random | None = None,
    max_choices: int = MAX_CHOICES,
) -> list[str]:
    """
    Build shuffled multiple-choice options for a term.

    Args:
        term: The term being asked
        answer_with: Side the learner must produce (WORD or DEFINITION)
        all_terms: Every term in the set (distractor source)
        rng: Random source
        max_choices: Upper bound on options, including the answer

    Returns:
        Options containing the expected answer exactly once
    """
    rng = rng or random.Random()
    expected = side_of(term, answer_with)

    distractors: list[str] = []
    seen = {normalize_answer(expected)}
    for other in all_terms:
        if other.id == term.id:
            continue
        text = side_of(other, answer_with)
        key = normalize_answer(text)
        if key in seen:
            continue
        seen.add(key)
        distractors.append(text)

    options = rng.sample(distractors, min(len(distractors), max_choices - 1))
    options.append(expected)
    rng.shuffle(options)
    return options
