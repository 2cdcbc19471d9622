"""Carried-over transaction removal across overlapping statement windows.

Rolling exports overlap: the same booking shows up in two files. Two
transactions are the same booking when they agree on date, amount, currency
and reference. A booking without a reference is identified by its
(whitespace-normalized) description instead, so its text may not change
between exports.

Matching is by multiplicity, not by presence. Inside one statement every
transaction is kept, even exact repeats (two identical coffees on one day are
two bookings). Across statements a key is kept as many times as the largest
count any single statement shows for it. Near-duplicates, i.e. same date and
amount but a different reference (or, without references, a different
description), are always kept.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from .logging_setup import get_logger
from .models import Batch, Transaction

logger = get_logger("advanzia2csv.duplicates")

DuplicateKey = tuple[object, ...]


def duplicate_key(tx: Transaction) -> DuplicateKey:
    """Identity of a booking for carried-over detection."""

    if tx.reference:
        return (tx.date, tx.amount, tx.currency, "reference", tx.reference)
    description = " ".join(tx.description.split())
    return (tx.date, tx.amount, tx.currency, "description", description)


def merge_batches(batches: Iterable[Batch], *, sort_by_date: bool = False) -> Batch:
    """Concatenate batches in order, dropping carried-over transactions.

    Parameters
    ----------
    batches:
        Batches in the order their statements should be read (oldest first
        keeps the earliest file's copy of each booking).
    sort_by_date:
        Stable-sort the merged transactions by date for deterministic output
        when windows interleave.
    """

    kept: list[Transaction] = []
    kept_counts: Counter[DuplicateKey] = Counter()
    sources: list[str] = []
    dropped = 0

    for batch in batches:
        batch_counts: Counter[DuplicateKey] = Counter()
        for tx in batch.transactions:
            key = duplicate_key(tx)
            batch_counts[key] += 1
            if batch_counts[key] > kept_counts[key]:
                kept.append(tx)
            else:
                dropped += 1
        kept_counts |= batch_counts
        sources.extend(batch.sources or ((batch.source,) if batch.source else ()))

    if dropped:
        logger.info("dropped %d carried-over transaction(s)", dropped)

    merged = Batch(transactions=tuple(kept), sources=tuple(sources))
    return merged.sorted_by_date() if sort_by_date else merged


__all__ = ["duplicate_key", "merge_batches"]
