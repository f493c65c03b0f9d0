"""Concurrent regular-expression search over a genome.

All sequences are loaded once and shared read-only between tasks. Each
pattern is searched by its own task, which owns its match list, so no
locking is needed. Patterns are compiled before any task starts, so a
malformed pattern fails the whole search up front.

Example:
    >>> from regionforge.scan.motif import search_patterns
    >>> results = search_patterns({"chr1": "ACGTACGT"}, ["ACG"])
    >>> [(m.start, m.end) for m in results[0].matches]
    [(0, 3), (4, 7)]
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Mapping, Sequence

import attrs

from regionforge.config import MotifConfig

logger = logging.getLogger(__name__)

COLUMN_NAMES = ("Sequence", "Start", "End", "Match")


@attrs.frozen(slots=True)
class MotifMatch:
    """One match; ``end`` is one past the last matched base (0-based)."""

    seqid: str
    start: int
    end: int
    match: str


@attrs.define(slots=True)
class MotifSearch:
    """A compiled pattern and the matches found for it."""

    pattern: str
    regex: re.Pattern[str]
    matches: list[MotifMatch] = attrs.Factory(list)


def compile_patterns(patterns: Sequence[str]) -> list[MotifSearch]:
    """Compile every pattern.

    Raises:
        ValueError: If a pattern is not a valid regular expression.
    """
    searches = []
    for pattern in patterns:
        logger.info(f"Compiling regular expression for pattern: {pattern}")
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e
        searches.append(MotifSearch(pattern=pattern, regex=regex))
    return searches


def search_sequences(sequences: Mapping[str, str], search: MotifSearch) -> MotifSearch:
    """Find all non-overlapping matches of one pattern in every sequence."""
    for seqid, sequence in sequences.items():
        n = 0
        for m in search.regex.finditer(sequence):
            search.matches.append(MotifMatch(seqid, m.start(), m.end(), m.group(0)))
            n += 1
        logger.debug(
            f"  found {n} matches for pattern {search.pattern} in {seqid} ({len(sequence)} bases)"
        )
    logger.info(f"Completed genome search for: {search.pattern}")
    return search


def search_patterns(
    sequences: Mapping[str, str],
    patterns: Sequence[str],
    config: MotifConfig | None = None,
) -> list[MotifSearch]:
    """Search for several patterns at once, one task per pattern.

    Args:
        sequences: ``{seqid: sequence}``, read-only for the duration.
        patterns: Regular expressions, in report order.
        config: Worker settings; by default one worker per pattern.

    Returns:
        One ``MotifSearch`` per pattern, in the order given.

    Raises:
        ValueError: If any pattern fails to compile.
        Exception: The first error raised by any search task.
    """
    searches = compile_patterns(patterns)
    if not searches:
        return []

    workers = (config.workers if config is not None else None) or len(searches)
    logger.info(f"Searching {len(searches)} patterns with {workers} worker(s)")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures: dict[Future, MotifSearch] = {}
        for search in searches:
            future = executor.submit(search_sequences, sequences, search)
            futures[future] = search

        for future in as_completed(futures):
            try:
                future.result()
            except Exception:
                executor.shutdown(wait=False, cancel_futures=True)
                raise

    for search in searches:
        if not search.matches:
            logger.warning(f"No matches found for pattern {search.pattern}")
        else:
            logger.info(f"{len(search.matches)} matches found for pattern {search.pattern}")
    return searches


def write_motif_report(searches: Sequence[MotifSearch], path: Path | str) -> None:
    """Write one section per pattern: a banner line, column names, matches."""
    header = "\t".join(COLUMN_NAMES)
    with open(path, "w") as f:
        for search in searches:
            f.write(f"###  Pattern: {search.pattern} MatchCount: {len(search.matches)}  ###\n")
            f.write(header + "\n")
            for m in search.matches:
                f.write(f"{m.seqid}\t{m.start}\t{m.end}\t{m.match}\n")
