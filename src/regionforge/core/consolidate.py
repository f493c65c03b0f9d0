"""Simple merging of a sorted interval collection.

Consolidation walks a sorted collection once, keeping a list of
"keepers". Each interval is compared with the last keeper: disjoint
intervals become new keepers, overlapping ones are merged into the
keeper. Immediately adjacent intervals (MEETS) are kept apart unless
``merge_adjacent`` is set.

The walk relies on the collection being sorted. It never sorts on the
caller's behalf; an interval that starts before the last keeper means
the sorted flag was wrong and consolidation stops with an error.

Example:
    >>> from regionforge.core.consolidate import consolidate
    >>> coll.sort()
    >>> merges = consolidate(coll)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from regionforge.core.intervals import (
    B_STARTS_FIRST,
    IntervalCollection,
    IntervalSet,
    OrderingError,
    Relationship,
    UnsortedCollectionError,
    classify,
    merge_pair,
)
from regionforge.core.selector import keep_types

logger = logging.getLogger(__name__)


def consolidate(collection: IntervalCollection, merge_adjacent: bool = False) -> int:
    """Merge overlapping intervals of a sorted collection in place.

    Args:
        collection: Sorted collection for one sequence.
        merge_adjacent: Also merge intervals that meet end-to-start.

    Returns:
        Number of merges performed. Zero for an empty collection.

    Raises:
        UnsortedCollectionError: If the collection is not flagged sorted.
        OrderingError: If an interval starts before the current keeper or
            the pair cannot be classified.
    """
    if not collection.sorted:
        raise UnsortedCollectionError(
            f"Cannot consolidate unsorted collection for sequence {collection.seqid}"
        )
    if len(collection) == 0:
        return 0

    merges = 0
    keepers = [collection[0]]
    for current in collection.intervals[1:]:
        keeper = keepers[-1]
        relationship = classify(keeper, current)

        if relationship is Relationship.INDETERMINATE:
            raise OrderingError(
                f"Cannot classify {keeper.describe()} vs {current.describe()} "
                f"in sequence {collection.seqid}"
            )
        if relationship in B_STARTS_FIRST:
            raise OrderingError(
                f"{keeper.describe()} vs {current.describe()} ({relationship.name}) "
                f"means sequence {collection.seqid} is not sorted"
            )
        if relationship is Relationship.PRECEDES or (
            relationship is Relationship.MEETS and not merge_adjacent
        ):
            keepers.append(current)
            continue

        keepers[-1] = merge_pair(keeper, current)
        merges += 1

    collection.replace(keepers, sorted=True)
    if merges:
        logger.debug(f"Consolidated {merges} intervals in {collection.seqid}")
    return merges


def consolidate_features(
    iset: IntervalSet,
    feature_types: Iterable[str] = ("exon",),
    merge_adjacent: bool = False,
) -> int:
    """Prune a set to the given feature types and consolidate each sequence.

    Duplicate features (such as an exon shared by several transcripts)
    collapse into one, and overlapping features are merged into a single
    feature spanning them.

    Returns:
        Number of merges performed across all sequences.
    """
    feature_types = list(feature_types)
    dropped = keep_types(iset, feature_types)
    logger.info(
        f"Kept {iset.feature_count} features of type {', '.join(feature_types)}, dropped {dropped}"
    )
    merges = 0
    for coll in iset:
        coll.sort()
        n = consolidate(coll, merge_adjacent=merge_adjacent)
        logger.info(f"  {coll.seqid}  kept:{len(coll)}  merged:{n}")
        merges += n
    return merges
