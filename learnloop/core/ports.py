"""
Collaborator interfaces consumed by the Learn scheduler.

- TermSource: read-only study-set content
- RecordStore: durable per-user TermRecords, keyed by (user, term, mode)
- RecordSink: receives mutated records; must not block the caller
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from .terms import LEARN_MODE, Term, TermRecord


@runtime_checkable
class TermSource(Protocol):
    """Provides every term of a study set."""

    def load_terms(self, set_id: str) -> list[Term]: ...


@runtime_checkable
class RecordStore(Protocol):
    """Durable storage for TermRecords and the resumable round counter."""

    def load(
        self, user_id: str, term_ids: Iterable[str], mode: str = LEARN_MODE
    ) -> list[TermRecord]: ...

    def upsert(self, user_id: str, record: TermRecord) -> None: ...

    def load_round(self, user_id: str, set_id: str) -> int: ...

    def save_round(self, user_id: str, set_id: str, round_number: int) -> None: ...

    def reset(self, user_id: str, term_ids: Iterable[str], mode: str = LEARN_MODE) -> int: ...

    def reset_round(self, user_id: str, set_id: str) -> None: ...


@runtime_checkable
class RecordSink(Protocol):
    """Fire-and-forget receiver of mutated records."""

    def push(self, record: TermRecord) -> None: ...
