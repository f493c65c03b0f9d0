"""Genomic interval model and Allen relationship classification.

This module provides the value types shared by every other part of
RegionForge:

- ``Interval``: an immutable half-open range on one sequence
- ``Relationship``: the 13 Allen relationships between two intervals
- ``IntervalCollection``: intervals for one sequence plus a sorted flag
- ``IntervalSet``: collections keyed by sequence, in first-seen order

All coordinates are half-open: ``start`` is inside the interval and
``end`` is the first position past it.

Example:
    >>> from regionforge.core.intervals import Interval, classify
    >>> a = Interval("chr1", 10, 20)
    >>> b = Interval("chr1", 15, 25)
    >>> classify(a, b)
    <Relationship.OVERLAPS: 3>
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Iterator

import attrs

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class InvalidIntervalError(ValueError):
    """Raised when an interval does not satisfy start < end."""

    pass


class UnsortedCollectionError(ValueError):
    """Raised when an operation needs a sorted collection and gets an unsorted one."""

    pass


class OrderingError(ValueError):
    """Raised when two intervals are found in an order a sorted collection forbids."""

    pass


class SequenceMismatchError(ValueError):
    """Raised when intervals or collections from different sequences are combined."""

    pass


# =============================================================================
# Interval
# =============================================================================


def _check_extent(instance: Interval, attribute: attrs.Attribute, value: int) -> None:
    if value <= instance.start:
        raise InvalidIntervalError(
            f"Interval end must be greater than start: "
            f"{instance.seqid}:{instance.start}-{value}"
        )


@attrs.frozen(slots=True)
class Interval:
    """A half-open interval on a single sequence.

    Attributes:
        seqid: Sequence (chromosome/contig) identifier.
        start: Start position (inclusive).
        end: End position (exclusive).
        category: Feature category, e.g. GFF3 type. None means missing.
        score: Numeric score. None means missing.
        attributes: Ordered key/value annotations.
    """

    seqid: str
    start: int
    end: int = attrs.field(validator=_check_extent)
    category: str | None = None
    score: float | None = None
    attributes: dict[str, str] = attrs.field(factory=dict, eq=False, hash=False)

    @property
    def length(self) -> int:
        """Number of positions covered."""
        return self.end - self.start

    def __str__(self) -> str:
        return f"{self.seqid}:{self.start}-{self.end}"

    def describe(self) -> str:
        """Long form used in error messages."""
        category = self.category if self.category is not None else "."
        return f"{self.seqid}:[{self.start},{self.end}) {category}"


# =============================================================================
# Allen Relationships
# =============================================================================


class Relationship(Enum):
    """Positional relationship of interval A to interval B.

    The numbering follows Allen (1983) as laid out in the merge help text:
    1 is "A precedes B" through to 13, "A is preceded by B".
    """

    INDETERMINATE = 0
    PRECEDES = 1
    MEETS = 2
    OVERLAPS = 3
    STARTS = 4
    FINISHES = 5
    CONTAINS = 6
    EQUALS = 7
    IS_CONTAINED_BY = 8
    IS_FINISHED_BY = 9
    IS_STARTED_BY = 10
    IS_OVERLAPPED_BY = 11
    IS_MET_BY = 12
    IS_PRECEDED_BY = 13

    @property
    def converse(self) -> Relationship:
        """Relationship of B to A when this is the relationship of A to B."""
        return _CONVERSES[self]

    @property
    def is_disjoint(self) -> bool:
        """True when the two intervals share no position."""
        return self in DISJOINT_RELATIONSHIPS


_CONVERSES = {
    Relationship.INDETERMINATE: Relationship.INDETERMINATE,
    Relationship.PRECEDES: Relationship.IS_PRECEDED_BY,
    Relationship.MEETS: Relationship.IS_MET_BY,
    Relationship.OVERLAPS: Relationship.IS_OVERLAPPED_BY,
    Relationship.STARTS: Relationship.IS_STARTED_BY,
    Relationship.FINISHES: Relationship.IS_FINISHED_BY,
    Relationship.CONTAINS: Relationship.IS_CONTAINED_BY,
    Relationship.EQUALS: Relationship.EQUALS,
    Relationship.IS_CONTAINED_BY: Relationship.CONTAINS,
    Relationship.IS_FINISHED_BY: Relationship.FINISHES,
    Relationship.IS_STARTED_BY: Relationship.STARTS,
    Relationship.IS_OVERLAPPED_BY: Relationship.OVERLAPS,
    Relationship.IS_MET_BY: Relationship.MEETS,
    Relationship.IS_PRECEDED_BY: Relationship.PRECEDES,
}

DISJOINT_RELATIONSHIPS = frozenset(
    {
        Relationship.PRECEDES,
        Relationship.MEETS,
        Relationship.IS_MET_BY,
        Relationship.IS_PRECEDED_BY,
    }
)

# B starts strictly before A
B_STARTS_FIRST = frozenset(
    {
        Relationship.FINISHES,
        Relationship.IS_CONTAINED_BY,
        Relationship.IS_OVERLAPPED_BY,
        Relationship.IS_MET_BY,
        Relationship.IS_PRECEDED_BY,
    }
)


def classify(a: Interval, b: Interval) -> Relationship:
    """Classify the Allen relationship of interval A to interval B.

    Both intervals are treated as half-open, so ``[0,10)`` meets
    ``[10,20)`` rather than overlapping it.

    Args:
        a: First interval.
        b: Second interval.

    Returns:
        The relationship of A to B. INDETERMINATE is only returned for
        malformed input (start >= end) or intervals on different sequences.
    """
    if a.seqid != b.seqid or a.start >= a.end or b.start >= b.end:
        return Relationship.INDETERMINATE

    if a.end < b.start:
        return Relationship.PRECEDES
    if a.end == b.start:
        return Relationship.MEETS
    if b.end < a.start:
        return Relationship.IS_PRECEDED_BY
    if b.end == a.start:
        return Relationship.IS_MET_BY

    # The intervals share at least one position from here on
    if a.start == b.start:
        if a.end == b.end:
            return Relationship.EQUALS
        return Relationship.STARTS if a.end < b.end else Relationship.IS_STARTED_BY
    if a.end == b.end:
        return Relationship.FINISHES if a.start > b.start else Relationship.IS_FINISHED_BY
    if a.start < b.start:
        return Relationship.CONTAINS if a.end > b.end else Relationship.OVERLAPS
    return Relationship.IS_CONTAINED_BY if a.end < b.end else Relationship.IS_OVERLAPPED_BY


# =============================================================================
# Merging of a single pair
# =============================================================================


def shared_attributes(a: dict[str, str], b: dict[str, str]) -> dict[str, str]:
    """Keep only attributes present with identical values in both mappings."""
    return {key: value for key, value in a.items() if key in b and b[key] == value}


def merge_pair(a: Interval, b: Interval) -> Interval:
    """Merge two intervals into one spanning both.

    The relationship between the intervals is not checked; callers decide
    when merging is appropriate. Category and score survive only when both
    intervals agree, otherwise they become missing (None).

    Raises:
        SequenceMismatchError: If the intervals are on different sequences.
    """
    if a.seqid != b.seqid:
        raise SequenceMismatchError(
            f"Cannot merge intervals on different sequences: {a.describe()} vs {b.describe()}"
        )
    return Interval(
        seqid=a.seqid,
        start=min(a.start, b.start),
        end=max(a.end, b.end),
        category=a.category if a.category == b.category else None,
        score=a.score if a.score == b.score else None,
        attributes=shared_attributes(a.attributes, b.attributes),
    )


# =============================================================================
# Collections
# =============================================================================


class IntervalCollection:
    """An ordered list of intervals belonging to one sequence.

    The ``sorted`` flag is never inferred: adding intervals clears it and
    only ``sort()`` or ``check_sorted()`` set it again. Sorted order is by
    start, then end; ties keep their insertion order.

    Attributes:
        seqid: Sequence all intervals belong to.
        sorted: Whether the intervals are known to be in sorted order.

    Example:
        >>> coll = IntervalCollection("chr1")
        >>> coll.add(Interval("chr1", 50, 60))
        >>> coll.add(Interval("chr1", 10, 20))
        >>> coll.sort()
        True
        >>> [iv.start for iv in coll]
        [10, 50]
    """

    def __init__(
        self,
        seqid: str,
        intervals: Iterable[Interval] | None = None,
        sorted: bool = False,
    ) -> None:
        self.seqid = seqid
        self._intervals: list[Interval] = []
        self.sorted = False
        if intervals is not None:
            self.extend(intervals)
        self.sorted = sorted if self._intervals else True

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self._intervals)

    def __getitem__(self, index: int) -> Interval:
        return self._intervals[index]

    def __repr__(self) -> str:
        return (
            f"IntervalCollection(seqid={self.seqid!r}, "
            f"n={len(self._intervals)}, sorted={self.sorted})"
        )

    @property
    def intervals(self) -> list[Interval]:
        """Copy of the intervals in their current order."""
        return list(self._intervals)

    def add(self, interval: Interval) -> None:
        """Append an interval and invalidate the sorted flag.

        Raises:
            SequenceMismatchError: If the interval is on another sequence.
        """
        if interval.seqid != self.seqid:
            raise SequenceMismatchError(
                f"Interval {interval.describe()} does not belong to collection {self.seqid}"
            )
        self._intervals.append(interval)
        self.sorted = False

    def extend(self, intervals: Iterable[Interval]) -> None:
        """Append several intervals and invalidate the sorted flag."""
        for interval in intervals:
            self.add(interval)

    def replace(self, intervals: list[Interval], sorted: bool) -> None:
        """Swap in a new interval list, stating whether it is sorted."""
        for interval in intervals:
            if interval.seqid != self.seqid:
                raise SequenceMismatchError(
                    f"Interval {interval.describe()} does not belong to collection {self.seqid}"
                )
        self._intervals = list(intervals)
        self.sorted = sorted

    def sort(self) -> bool:
        """Sort by start then end.

        Returns:
            True if a sort was performed, False if already flagged sorted.
        """
        if self.sorted:
            return False
        self._intervals.sort(key=lambda iv: (iv.start, iv.end))
        self.sorted = True
        return True

    def check_sorted(self) -> bool:
        """Re-derive the sorted flag from the current order."""
        ivs = self._intervals
        self.sorted = all(
            (ivs[i].start, ivs[i].end) <= (ivs[i + 1].start, ivs[i + 1].end)
            for i in range(len(ivs) - 1)
        )
        return self.sorted

    def copy(self) -> IntervalCollection:
        """Shallow copy; intervals are immutable so nothing is aliased mutably."""
        return IntervalCollection(self.seqid, self._intervals, sorted=self.sorted)

    def sum_lengths(self) -> int:
        """Sum of interval lengths, counting overlapping positions repeatedly."""
        return sum(iv.length for iv in self._intervals)

    def sum_consolidated_lengths(self) -> int:
        """Number of distinct positions covered by the collection.

        Works on a sorted copy so the collection itself is left alone.
        """
        from regionforge.core.consolidate import consolidate

        work = self.copy()
        work.sort()
        consolidate(work, merge_adjacent=True)
        return work.sum_lengths()


class IntervalSet:
    """Interval collections keyed by sequence, in first-seen order.

    Example:
        >>> iset = IntervalSet.from_intervals([Interval("chr2", 0, 5), Interval("chr1", 0, 5)])
        >>> iset.seqids
        ['chr2', 'chr1']
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._collections: dict[str, IntervalCollection] = {}

    @classmethod
    def from_intervals(cls, intervals: Iterable[Interval], name: str = "") -> IntervalSet:
        """Build a set by distributing intervals to their sequences."""
        iset = cls(name)
        for interval in intervals:
            iset.add(interval)
        return iset

    def __len__(self) -> int:
        return len(self._collections)

    def __iter__(self) -> Iterator[IntervalCollection]:
        return iter(self._collections.values())

    def __contains__(self, seqid: object) -> bool:
        return seqid in self._collections

    def __getitem__(self, seqid: str) -> IntervalCollection:
        return self._collections[seqid]

    @property
    def seqids(self) -> list[str]:
        """Sequence identifiers in first-seen order."""
        return list(self._collections)

    @property
    def feature_count(self) -> int:
        """Total number of intervals across all sequences."""
        return sum(len(coll) for coll in self._collections.values())

    def add(self, interval: Interval) -> None:
        """Add an interval to the collection for its sequence."""
        coll = self._collections.get(interval.seqid)
        if coll is None:
            coll = IntervalCollection(interval.seqid)
            self._collections[interval.seqid] = coll
        coll.add(interval)

    def set_collection(self, collection: IntervalCollection) -> None:
        """Install or replace the collection for a sequence."""
        self._collections[collection.seqid] = collection

    def remove(self, seqid: str) -> IntervalCollection:
        """Drop and return the collection for a sequence."""
        return self._collections.pop(seqid)

    def intervals(self) -> Iterator[Interval]:
        """Iterate over every interval, sequence by sequence."""
        for coll in self._collections.values():
            yield from coll

    def sort(self) -> bool:
        """Sort every collection.

        Returns:
            True if any collection needed sorting.
        """
        sorted_any = False
        for coll in self._collections.values():
            if coll.sort():
                sorted_any = True
        return sorted_any
