"""
Session initializer: builds the initial learn pool.

Merges the set's terms with whatever Learn records were persisted for the
learner, orders them by established study order, then applies the
starred-only and review filters from the mode configuration.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import cmp_to_key

from loguru import logger

from learnloop.core.errors import InvalidModeConfig
from learnloop.core.modes import LearnModeConfig
from learnloop.core.terms import LEARN_MODE, PoolEntry, Term, TermRecord


def compare_entries(a: PoolEntry, b: PoolEntry) -> int:
    """
    Order two entries for a fresh pool.

    Uses studiable_rank when both records carry one, falling back to the
    author's term rank otherwise.
    """
    ra, rb = a.record.studiable_rank, b.record.studiable_rank
    if ra is not None and rb is not None:
        return (ra > rb) - (ra < rb)
    return (a.term.rank > b.term.rank) - (a.term.rank < b.term.rank)


def validate_mode_config(config: LearnModeConfig) -> None:
    """
    Reject configurations that can never produce a session.

    Raises:
        InvalidModeConfig: starred_only without starred terms, or no
            mastery threshold for the answer mode
    """
    if config.starred_only and not config.starred_term_ids:
        raise InvalidModeConfig("starred_only is set but no terms are starred")
    config.threshold()


def build_learn_pool(
    terms: Iterable[Term],
    records: Iterable[TermRecord],
    config: LearnModeConfig,
) -> list[PoolEntry]:
    """
    Build the ordered pool for a new Learn session.

    Args:
        terms: Every term of the study set
        records: Previously persisted records (possibly empty or partial)
        config: Session mode configuration

    Returns:
        Ordered list of PoolEntry; may be empty, which callers must treat as
        "nothing to study"

    Raises:
        InvalidModeConfig: See validate_mode_config
        ValueError: If two terms share an id
    """
    validate_mode_config(config)

    terms = list(terms)
    term_ids = [t.id for t in terms]
    if len(set(term_ids)) != len(term_ids):
        raise ValueError("Study set contains duplicate term ids")

    known = set(term_ids)
    by_term: dict[str, TermRecord] = {}
    for record in records:
        if record.mode != LEARN_MODE:
            continue
        if record.term_id not in known:
            logger.debug(f"Ignoring record for unknown term {record.term_id}")
            continue
        by_term[record.term_id] = record

    # 1. Synthesize a record for every term
    pool = [PoolEntry(term, by_term.get(term.id) or TermRecord.fresh(term.id)) for term in terms]

    # 2. Established study order, falling back to author order
    pool.sort(key=cmp_to_key(compare_entries))

    # 3. Starred filter
    if config.starred_only:
        pool = [e for e in pool if e.term_id in config.starred_term_ids]

    # 4. Review pass: missed terms only, worst first
    if config.is_review:
        pool = [e for e in pool if e.record.incorrect_count > 0]
        pool.sort(key=lambda e: e.record.incorrect_count, reverse=True)

    logger.debug(
        f"Learn pool built: {len(pool)}/{len(terms)} terms "
        f"(mode={config.learn_mode.value}, starred_only={config.starred_only})"
    )
    return pool


def reserved_ranks(
    terms: Iterable[Term], pool: list[PoolEntry], records: Iterable[TermRecord]
) -> frozenset[float]:
    """Ranks held by Learn records of the set's terms left out of the pool."""
    outside = {t.id for t in terms} - {e.term_id for e in pool}
    return frozenset(
        r.studiable_rank
        for r in records
        if r.mode == LEARN_MODE and r.term_id in outside and r.studiable_rank is not None
    )
