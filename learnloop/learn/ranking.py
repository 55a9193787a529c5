"""
Rank recomputation for the learn pool.

studiable_rank is the tie-break ordering signal the scheduler owns. These
helpers keep it unique and totally ordered while:
- normalizing a freshly built pool to ranks 1.0 .. n
- fitting a starred or review subset into the slots it already holds
- pushing a missed term a few active positions deeper
- reshuffling the not-yet-mastered terms

Each helper is pure: it returns the reordered pool plus the records whose
rank changed, and never touches correctness, incorrect_count or
appeared_in_round.
"""

from __future__ import annotations

import random
from collections.abc import Callable

from loguru import logger

from learnloop.core.terms import PoolEntry, TermRecord

RankChange = tuple[list[PoolEntry], list[TermRecord]]


def _sorted_by_rank(pool: list[PoolEntry]) -> list[PoolEntry]:
    return sorted(pool, key=lambda e: e.record.studiable_rank)


def normalize_ranks(pool: list[PoolEntry]) -> RankChange:
    """
    Assign ranks 1.0 .. n following the current pool order.

    Entries already holding the rank of their position are left as they are.
    """
    result: list[PoolEntry] = []
    changed: list[TermRecord] = []
    for position, entry in enumerate(pool, start=1):
        rank = float(position)
        if entry.record.studiable_rank != rank:
            entry = PoolEntry(entry.term, entry.record.with_rank(rank))
            changed.append(entry.record)
        result.append(entry)
    return result, changed


def settle_ranks(pool: list[PoolEntry], reserved: frozenset[float] = frozenset()) -> RankChange:
    """
    Fit a partial pool into the rank slots it already holds.

    Used when the session studies a subset of the set (starred or review),
    so ranks held by terms outside the session stay untouched. Slots are
    handed out in pool order; a slot shared with a reserved rank or with
    another entry is given up, and missing slots are appended after the
    highest rank known for the set.

    Args:
        pool: Pool in presentation order
        reserved: Ranks held by terms of the set outside the pool

    Returns:
        (pool ordered by rank, records whose rank changed)
    """
    held = [e.record.studiable_rank for e in pool if e.record.studiable_rank is not None]
    slots = sorted(set(held) - reserved)
    ceiling = max([*held, *reserved], default=0.0)
    while len(slots) < len(pool):
        ceiling += 1.0
        slots.append(ceiling)

    result: list[PoolEntry] = []
    changed: list[TermRecord] = []
    for entry, rank in zip(pool, slots):
        if entry.record.studiable_rank != rank:
            entry = PoolEntry(entry.term, entry.record.with_rank(rank))
            changed.append(entry.record)
        result.append(entry)
    return result, changed


def reinsert_after_miss(
    pool: list[PoolEntry],
    term_id: str,
    offset: int,
    is_active: Callable[[PoolEntry], bool],
    reserved: frozenset[float] = frozenset(),
) -> RankChange:
    """
    Move a missed term `offset` active positions deeper into the queue.

    The term is never placed ahead of where it was and, when another active
    term exists, always lands behind at least one of them. Only the missed
    term's rank changes unless float precision forces a full renumbering.

    Args:
        pool: Pool ordered by studiable_rank, every rank set
        term_id: The term that was just graded incorrect
        offset: Active positions to push the term back (>= 1)
        is_active: Predicate for entries still eligible for selection
        reserved: Ranks held by terms of the set outside the pool

    Returns:
        (pool ordered by rank, records whose rank changed)
    """
    index = next(i for i, e in enumerate(pool) if e.term_id == term_id)
    missed = pool[index]
    rest = pool[:index] + pool[index + 1 :]

    active = [e for e in pool if is_active(e) or e.term_id == term_id]
    others = [e for e in active if e.term_id != term_id]
    if not others:
        return pool, []

    position = next(i for i, e in enumerate(active) if e.term_id == term_id)
    if position >= len(others):
        # Already behind every other active term
        return pool, []
    target = min(position + offset, len(others))
    anchor = others[target - 1]

    # Insert directly after the anchor in full pool order (mastered entries included)
    anchor_index = next(i for i, e in enumerate(rest) if e.term_id == anchor.term_id)
    low = anchor.record.studiable_rank
    above = [r for r in reserved if r > low]
    if anchor_index + 1 < len(rest):
        above.append(rest[anchor_index + 1].record.studiable_rank)
    if above:
        high = min(above)
        new_rank = (low + high) / 2
        fits = low < new_rank < high
    else:
        new_rank = low + 1.0
        fits = new_rank > low

    if fits:
        moved = PoolEntry(missed.term, missed.record.with_rank(new_rank))
        reordered = rest[: anchor_index + 1] + [moved] + rest[anchor_index + 1 :]
        return reordered, [moved.record]

    logger.debug(f"Rank space exhausted near {low}; renumbering {len(pool)} terms")
    reordered = rest[: anchor_index + 1] + [missed] + rest[anchor_index + 1 :]
    if reserved:
        return settle_ranks(reordered, reserved)
    return normalize_ranks(reordered)


def reshuffle_ranks(
    pool: list[PoolEntry],
    is_active: Callable[[PoolEntry], bool],
    rng: random.Random | None = None,
) -> RankChange:
    """
    Randomize the order of every active/unseen term.

    The active terms trade the rank slots they already hold, so mastered
    terms keep their ranks and uniqueness is preserved.

    Args:
        pool: Pool ordered by studiable_rank, every rank set
        is_active: Predicate for entries still eligible for selection
        rng: Random source (a fresh random.Random if None)

    Returns:
        (pool ordered by rank, records whose rank changed)
    """
    rng = rng or random.Random()
    active = [e for e in pool if is_active(e)]
    slots = sorted(e.record.studiable_rank for e in active)
    shuffled = active.copy()
    rng.shuffle(shuffled)

    replaced: dict[str, PoolEntry] = {}
    changed: list[TermRecord] = []
    for entry, rank in zip(shuffled, slots):
        if entry.record.studiable_rank != rank:
            entry = PoolEntry(entry.term, entry.record.with_rank(rank))
            changed.append(entry.record)
        replaced[entry.term_id] = entry

    result = [replaced.get(e.term_id, e) for e in pool]
    return _sorted_by_rank(result), changed
