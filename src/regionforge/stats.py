"""Tallies and summary statistics.

Counters here always iterate in sorted key order so that reports are
deterministic regardless of the order values were seen in.

Example:
    >>> from regionforge.stats import Tally
    >>> tally = Tally()
    >>> for mapq in (60, 0, 60, 3):
    ...     tally.add(mapq)
    >>> list(tally.items())
    [(0, 1), (3, 1), (60, 2)]
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Iterator

import attrs
import numpy as np

from regionforge.core.intervals import IntervalSet

logger = logging.getLogger(__name__)


# =============================================================================
# Tallies
# =============================================================================


class Tally:
    """Counter over integer keys with sorted iteration."""

    def __init__(self) -> None:
        self._counts: Counter[int] = Counter()

    def add(self, key: int, n: int = 1) -> None:
        self._counts[key] += n

    def __getitem__(self, key: int) -> int:
        return self._counts[key]

    def __len__(self) -> int:
        return len(self._counts)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def items(self) -> Iterator[tuple[int, int]]:
        """Yield ``(key, count)`` pairs in ascending key order."""
        for key in sorted(self._counts):
            yield key, self._counts[key]

    def percent(self, key: int) -> float:
        """Share of all counts held by ``key``, as a percentage."""
        total = self.total
        return 100.0 * self._counts[key] / total if total else 0.0

    def log(self, title: str, log: logging.Logger | None = None) -> None:
        """Log each key with its count and percentage."""
        log = log or logger
        log.info(title)
        for key, count in self.items():
            log.info(f"  {key}\t{count}\t{self.percent(key):.2f}%")


class HomopolymerTally:
    """Homopolymer counts by base, then by length.

    Example:
        >>> hp = HomopolymerTally()
        >>> hp.add("A", 3)
        >>> hp.add("T", 3)
        >>> hp.add("A", 5)
        >>> list(hp.rows())
        [(3, [1, 1]), (5, [1, 0])]
    """

    def __init__(self) -> None:
        self._counts: dict[str, Tally] = {}

    def add(self, base: str, length: int) -> None:
        self._counts.setdefault(base, Tally()).add(length)

    @property
    def bases(self) -> list[str]:
        return sorted(self._counts)

    @property
    def lengths(self) -> list[int]:
        found: set[int] = set()
        for tally in self._counts.values():
            found.update(key for key, _ in tally.items())
        return sorted(found)

    @property
    def total(self) -> int:
        return sum(tally.total for tally in self._counts.values())

    def count(self, base: str, length: int) -> int:
        tally = self._counts.get(base)
        return tally[length] if tally is not None else 0

    def rows(self) -> Iterator[tuple[int, list[int]]]:
        """Yield ``(length, counts)`` rows, counts in ``bases`` order."""
        bases = self.bases
        for length in self.lengths:
            yield length, [self.count(base, length) for base in bases]

    def write_tsv(self, path: Path | str) -> None:
        """Write the table with one row per length and one column per base."""
        with open(path, "w") as f:
            f.write("\t".join(["Length", *self.bases]) + "\n")
            for length, counts in self.rows():
                f.write("\t".join(str(v) for v in (length, *counts)) + "\n")


# =============================================================================
# Interval Set Statistics
# =============================================================================


@attrs.define(slots=True)
class SequenceStats:
    """Summary for the intervals of one sequence.

    Attributes:
        seqid: Sequence identifier.
        count: Number of intervals.
        sum_lengths: Summed lengths, overlaps counted repeatedly.
        consolidated_length: Distinct positions covered.
        is_sorted: Whether the intervals were in sorted order as read.
    """

    seqid: str
    count: int
    sum_lengths: int
    consolidated_length: int
    is_sorted: bool


@attrs.define(slots=True)
class CollectionStats:
    """Summary for a whole interval set."""

    sequences: list[SequenceStats] = attrs.Factory(list)
    length_percentiles: dict[int, float] = attrs.Factory(dict)

    @property
    def count(self) -> int:
        return sum(s.count for s in self.sequences)

    @property
    def sum_lengths(self) -> int:
        return sum(s.sum_lengths for s in self.sequences)

    @property
    def consolidated_length(self) -> int:
        return sum(s.consolidated_length for s in self.sequences)

    def log(self, log: logging.Logger | None = None) -> None:
        log = log or logger
        log.info(f"Total number of features: {self.count}")
        log.info("Sequences:")
        log.info("  Name\tCount\tSumIntvl\tConsIntvl\tIsSorted")
        for s in self.sequences:
            log.info(
                f"  {s.seqid}\t{s.count}\t{s.sum_lengths}\t{s.consolidated_length}\t{s.is_sorted}"
            )
        log.info(f"  Totals\t{self.count}\t{self.sum_lengths}\t{self.consolidated_length}")


PERCENTILES = (5, 25, 50, 75, 95)


def collection_stats(iset: IntervalSet) -> CollectionStats:
    """Per-sequence counts and lengths for an interval set.

    The set itself is not modified; sortedness is checked on copies.
    """
    stats = CollectionStats()
    lengths: list[int] = []
    for coll in iset:
        work = coll.copy()
        is_sorted = work.check_sorted()
        stats.sequences.append(
            SequenceStats(
                seqid=coll.seqid,
                count=len(coll),
                sum_lengths=coll.sum_lengths(),
                consolidated_length=coll.sum_consolidated_lengths(),
                is_sorted=is_sorted,
            )
        )
        lengths.extend(iv.length for iv in coll)

    if lengths:
        values = np.percentile(np.asarray(lengths), PERCENTILES)
        stats.length_percentiles = {p: float(v) for p, v in zip(PERCENTILES, values)}
    return stats
