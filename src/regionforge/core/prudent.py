"""Prudent merging of interval collections from independent sources.

Prudent merging never absorbs one interval into another. Where an
accumulator interval overlaps an incoming interval the pair is split
into up to three pieces:

1. the part covered only by the accumulator interval,
2. the part covered by both (always present for overlapping pairs),
3. the part covered only by the incoming interval.

Every piece records its provenance in ``category`` so the number of
positions unique to each source, and shared by both, can be read off the
result. Adjacent (meeting) intervals stay separate and an EQUALS pair
becomes a single overlap piece.

Merging multiple sources is a fold: source 2 onto source 1, then
source 3 onto that result and so on. Order matters because provenance
labels accumulate in processing order.

Example:
    >>> from regionforge.core.prudent import merge_into
    >>> merged = merge_into(acc, inc)
    >>> [(iv.start, iv.end, iv.category) for iv in merged]
    [(10, 15, 'accumulator'), (15, 20, 'overlap'), (20, 25, 'incoming')]
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Sequence

import attrs

from regionforge.core.consolidate import consolidate
from regionforge.core.intervals import (
    Interval,
    IntervalCollection,
    IntervalSet,
    OrderingError,
    Relationship,
    SequenceMismatchError,
    UnsortedCollectionError,
    classify,
    shared_attributes,
)

logger = logging.getLogger(__name__)


class MergeInvariantError(ValueError):
    """Raised when merged piece lengths do not add up to the input lengths."""

    pass


class Provenance(Enum):
    """Which side(s) a merged piece came from."""

    ACCUMULATOR = "accumulator"
    INCOMING = "incoming"
    OVERLAP = "overlap"


# (provenance, accumulator interval or None, incoming interval or None) -> category
Labeler = Callable[[Provenance, "Interval | None", "Interval | None"], "str | None"]

OVERLAP_JOINER = "+"


def provenance_labeler(
    provenance: Provenance,
    acc: Interval | None,
    inc: Interval | None,
) -> str | None:
    """Label every piece with the name of its provenance."""
    return provenance.value


def accumulating_labeler(
    provenance: Provenance,
    acc: Interval | None,
    inc: Interval | None,
) -> str | None:
    """Keep source categories and join them for overlap pieces.

    Folding files 0, 1 and 2 this way yields categories such as ``"0"``,
    ``"0+1"`` or ``"0+1+2"``.
    """
    if provenance is Provenance.ACCUMULATOR:
        return acc.category if acc is not None else None
    if provenance is Provenance.INCOMING:
        return inc.category if inc is not None else None

    acc_label = acc.category if acc is not None else None
    inc_label = inc.category if inc is not None else None
    if acc_label is None or inc_label is None:
        return acc_label or inc_label
    if acc_label == inc_label:
        return acc_label
    return f"{acc_label}{OVERLAP_JOINER}{inc_label}"


@attrs.define(slots=True)
class MergeSummary:
    """Position counts by provenance for one prudent merge."""

    seqid: str
    accumulator_only: int = 0
    incoming_only: int = 0
    overlap: int = 0
    accumulator_total: int = 0
    incoming_total: int = 0

    @property
    def balanced(self) -> bool:
        """Exclusive pieces plus the overlap counted once per side match the inputs."""
        produced = self.accumulator_only + self.incoming_only + 2 * self.overlap
        return produced == self.accumulator_total + self.incoming_total


# =============================================================================
# Validation
# =============================================================================


def _check_mergeable(collection: IntervalCollection, role: str) -> None:
    if not collection.sorted:
        raise UnsortedCollectionError(
            f"{role} collection for sequence {collection.seqid} is not sorted"
        )
    for prev, current in zip(collection, collection.intervals[1:]):
        relationship = classify(prev, current)
        if relationship not in (Relationship.PRECEDES, Relationship.MEETS):
            raise OrderingError(
                f"{role} collection for sequence {collection.seqid} must be consolidated "
                f"before merging: {prev.describe()} vs {current.describe()} "
                f"({relationship.name})"
            )


# =============================================================================
# Merge
# =============================================================================


def _piece(
    template: Interval,
    start: int,
    end: int,
    provenance: Provenance,
    acc: Interval | None,
    inc: Interval | None,
    labeler: Labeler,
) -> Interval:
    return Interval(
        seqid=template.seqid,
        start=start,
        end=end,
        category=labeler(provenance, acc, inc),
        score=template.score,
        attributes=dict(template.attributes),
    )


def _overlap_piece(
    acc: Interval,
    inc: Interval,
    start: int,
    end: int,
    labeler: Labeler,
) -> Interval:
    return Interval(
        seqid=acc.seqid,
        start=start,
        end=end,
        category=labeler(Provenance.OVERLAP, acc, inc),
        score=acc.score if acc.score == inc.score else None,
        attributes=shared_attributes(acc.attributes, inc.attributes),
    )


def merge_into(
    accumulator: IntervalCollection,
    incoming: IntervalCollection,
    labeler: Labeler = provenance_labeler,
) -> IntervalCollection:
    """Prudently merge an incoming collection onto an accumulator.

    Both collections must be for the same sequence, sorted, and free of
    internal overlaps (consolidate them first). Neither input is modified;
    the result holds new intervals only.

    Args:
        accumulator: Collection built up from earlier sources.
        incoming: Collection from the next source.
        labeler: Produces the category of each piece.

    Returns:
        New sorted collection of merged pieces.

    Raises:
        SequenceMismatchError: If the collections are for different sequences.
        UnsortedCollectionError: If either collection is not sorted.
        OrderingError: If either collection contains overlapping intervals.
        MergeInvariantError: If the merged lengths do not balance.
    """
    merged, summary = merge_with_summary(accumulator, incoming, labeler)
    return merged


def merge_with_summary(
    accumulator: IntervalCollection,
    incoming: IntervalCollection,
    labeler: Labeler = provenance_labeler,
) -> tuple[IntervalCollection, MergeSummary]:
    """Like ``merge_into`` but also returns the per-provenance position counts."""
    if accumulator.seqid != incoming.seqid:
        raise SequenceMismatchError(
            f"Cannot merge collection for {incoming.seqid} onto collection for {accumulator.seqid}"
        )
    _check_mergeable(accumulator, "Accumulator")
    _check_mergeable(incoming, "Incoming")

    summary = MergeSummary(
        seqid=accumulator.seqid,
        accumulator_total=accumulator.sum_lengths(),
        incoming_total=incoming.sum_lengths(),
    )
    pieces: list[Interval] = []

    def emit_exclusive(source: Interval, start: int, end: int, provenance: Provenance) -> None:
        if provenance is Provenance.ACCUMULATOR:
            pieces.append(_piece(source, start, end, provenance, source, None, labeler))
            summary.accumulator_only += end - start
        else:
            pieces.append(_piece(source, start, end, provenance, None, source, labeler))
            summary.incoming_only += end - start

    acc_list = accumulator.intervals
    inc_list = incoming.intervals
    i = j = 0
    # Unconsumed remainder of the current interval on each side
    acc_start = acc_list[0].start if acc_list else 0
    inc_start = inc_list[0].start if inc_list else 0

    while i < len(acc_list) and j < len(inc_list):
        acc, inc = acc_list[i], inc_list[j]
        a_lo, a_hi = acc_start, acc.end
        b_lo, b_hi = inc_start, inc.end

        if a_hi <= b_lo:
            emit_exclusive(acc, a_lo, a_hi, Provenance.ACCUMULATOR)
            i += 1
            if i < len(acc_list):
                acc_start = acc_list[i].start
            continue
        if b_hi <= a_lo:
            emit_exclusive(inc, b_lo, b_hi, Provenance.INCOMING)
            j += 1
            if j < len(inc_list):
                inc_start = inc_list[j].start
            continue

        lo = max(a_lo, b_lo)
        hi = min(a_hi, b_hi)
        if a_lo < lo:
            emit_exclusive(acc, a_lo, lo, Provenance.ACCUMULATOR)
        elif b_lo < lo:
            emit_exclusive(inc, b_lo, lo, Provenance.INCOMING)
        pieces.append(_overlap_piece(acc, inc, lo, hi, labeler))
        summary.overlap += hi - lo

        if a_hi > hi:
            acc_start = hi
        else:
            i += 1
            if i < len(acc_list):
                acc_start = acc_list[i].start
        if b_hi > hi:
            inc_start = hi
        else:
            j += 1
            if j < len(inc_list):
                inc_start = inc_list[j].start

    while i < len(acc_list):
        emit_exclusive(acc_list[i], acc_start, acc_list[i].end, Provenance.ACCUMULATOR)
        i += 1
        if i < len(acc_list):
            acc_start = acc_list[i].start
    while j < len(inc_list):
        emit_exclusive(inc_list[j], inc_start, inc_list[j].end, Provenance.INCOMING)
        j += 1
        if j < len(inc_list):
            inc_start = inc_list[j].start

    if not summary.balanced:
        raise MergeInvariantError(
            f"Prudent merge of {summary.seqid} does not balance: "
            f"{summary.accumulator_only} + {summary.incoming_only} + 2 x {summary.overlap} "
            f"!= {summary.accumulator_total} + {summary.incoming_total}"
        )

    merged = IntervalCollection(accumulator.seqid)
    merged.replace(pieces, sorted=True)
    return merged, summary


# =============================================================================
# Multi-source folding
# =============================================================================


def relabel(collection: IntervalCollection, category: str | None) -> IntervalCollection:
    """Copy a collection, setting every interval's category."""
    out = IntervalCollection(collection.seqid)
    out.replace(
        [attrs.evolve(iv, category=category, attributes=dict(iv.attributes)) for iv in collection],
        sorted=collection.sorted,
    )
    return out


def prepare_collection(collection: IntervalCollection) -> int:
    """Sort and consolidate a collection ahead of prudent merging.

    Returns:
        Number of consolidation merges performed.
    """
    collection.sort()
    return consolidate(collection)


def merge_sets(
    sets: Sequence[IntervalSet],
    labels: Sequence[str] | None = None,
) -> IntervalSet:
    """Fold interval sets together in order using prudent merging.

    Each set is sorted and consolidated per sequence, its intervals are
    relabelled with the set's label, and it is merged onto the result of
    the sets before it. Sequences present on only one side are carried
    over unchanged. The input sets are not modified.

    Args:
        sets: Interval sets in processing order.
        labels: One label per set. Defaults to "0", "1", ...

    Returns:
        The merged interval set.
    """
    if labels is None:
        labels = [str(i) for i in range(len(sets))]
    if len(labels) != len(sets):
        raise ValueError(f"Expected {len(sets)} labels, got {len(labels)}")

    result = IntervalSet("merged")
    for label, iset in zip(labels, sets):
        for coll in iset:
            coll = coll.copy()
            n_merged = prepare_collection(coll)
            if n_merged:
                logger.info(f"  consolidated {n_merged} intervals in {coll.seqid} of set {label}")
            incoming = relabel(coll, label)
            if coll.seqid not in result:
                result.set_collection(incoming)
                continue
            merged, summary = merge_with_summary(
                result[coll.seqid], incoming, labeler=accumulating_labeler
            )
            logger.debug(
                f"  {coll.seqid}: {summary.accumulator_only} accumulator-only, "
                f"{summary.incoming_only} incoming-only, {summary.overlap} shared positions"
            )
            result.set_collection(merged)
    return result
