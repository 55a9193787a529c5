"""
Learn-mode error kinds.

All scheduler errors are local, synchronous and recoverable by the caller.
EmptyPool and SessionComplete are control-flow signals rather than
failures; callers should branch on them instead of reporting them.
"""

from __future__ import annotations


class LearnError(Exception):
    """Base class for every Learn-mode error."""


class EmptyPool(LearnError):
    """No unseen or active term is left in the current round."""

    def __init__(self, round_number: int):
        self.round_number = round_number
        super().__init__(f"No term left to present in round {round_number}")


class StaleSelection(LearnError):
    """A term was graded without being the current selection."""

    def __init__(self, term_id: str, selected_id: str | None):
        self.term_id = term_id
        self.selected_id = selected_id
        super().__init__(
            f"Cannot grade {term_id!r}: current selection is {selected_id!r}"
        )


class InvalidModeConfig(LearnError):
    """The mode configuration cannot produce a study session."""


class UnknownTerm(LearnError):
    """The term id is not part of the session pool."""

    def __init__(self, term_id: str):
        self.term_id = term_id
        super().__init__(f"Term {term_id!r} is not in the learn pool")


class RoundInProgress(LearnError):
    """advance_round() was called while terms remain in the current round."""

    def __init__(self, round_number: int, remaining: int):
        self.round_number = round_number
        self.remaining = remaining
        super().__init__(
            f"Round {round_number} still has {remaining} term(s) to present"
        )


class SessionComplete(LearnError):
    """Every term in the pool is mastered; there is no next round."""

    def __init__(self, round_number: int):
        self.round_number = round_number
        super().__init__(f"Session complete after round {round_number}")
