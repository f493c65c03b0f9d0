"""Core interval algebra and run detection for RegionForge.

This module contains the algorithms every command is built on:

- Interval model and Allen relationship classification
- Simple merging (consolidation) of a sorted collection
- Prudent merging of collections from independent sources
- Streaming run detection
- Keep/delete selection of intervals by regular expression

Example:
    >>> from regionforge.core import Interval, IntervalCollection, consolidate
    >>> coll = IntervalCollection("chr1", [Interval("chr1", 0, 10), Interval("chr1", 5, 20)])
    >>> coll.sort()
    True
    >>> consolidate(coll)
    1
"""

from regionforge.core.consolidate import consolidate, consolidate_features
from regionforge.core.intervals import (
    Interval,
    IntervalCollection,
    IntervalSet,
    InvalidIntervalError,
    OrderingError,
    Relationship,
    SequenceMismatchError,
    UnsortedCollectionError,
    classify,
    merge_pair,
)
from regionforge.core.prudent import (
    MergeInvariantError,
    Provenance,
    accumulating_labeler,
    merge_into,
    merge_sets,
    provenance_labeler,
)
from regionforge.core.runs import (
    AmbiguousRunRule,
    Direction,
    HomopolymerRule,
    Run,
    RunDetector,
    RunRule,
    ScanState,
    ThresholdRule,
    scan,
)
from regionforge.core.selector import (
    Operation,
    Selector,
    SelectorError,
    apply_selectors,
    keep_types,
    parse_selector,
    parse_selectors,
)

__all__: list[str] = [
    # Intervals
    "Interval",
    "IntervalCollection",
    "IntervalSet",
    "Relationship",
    "classify",
    "merge_pair",
    # Merging
    "consolidate",
    "consolidate_features",
    "merge_into",
    "merge_sets",
    "Provenance",
    "provenance_labeler",
    "accumulating_labeler",
    # Runs
    "Run",
    "RunDetector",
    "RunRule",
    "ScanState",
    "HomopolymerRule",
    "AmbiguousRunRule",
    "ThresholdRule",
    "Direction",
    "scan",
    # Selection
    "Selector",
    "Operation",
    "parse_selector",
    "parse_selectors",
    "apply_selectors",
    "keep_types",
    # Errors
    "InvalidIntervalError",
    "UnsortedCollectionError",
    "OrderingError",
    "SequenceMismatchError",
    "MergeInvariantError",
    "SelectorError",
]
