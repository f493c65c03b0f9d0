"""Keep or delete intervals whose fields match a regular expression.

A selector is written ``operation:subject:pattern``:

    keep:seqid:^GL
    delete:type:.*_UTR

Both operations only ever drop intervals. ``delete`` drops those whose
subject matches the pattern; ``keep`` drops those whose subject does not.
Several selectors are applied one after another in the order given, so a
series of tight ``delete`` selectors can prune a set piece by piece.

Patterns are searched anywhere in the subject (anchor them with ``^`` and
``$`` for an exact match). The colon separates the three parts and cannot
appear in any of them.

Example:
    >>> from regionforge.core.selector import apply_selectors, parse_selectors
    >>> selectors = parse_selectors(["keep:seqid:^chr", "delete:type:_UTR$"])
    >>> dropped = apply_selectors(iset, selectors)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from enum import Enum

import attrs

from regionforge.core.intervals import Interval, IntervalSet

logger = logging.getLogger(__name__)


class SelectorError(ValueError):
    """A selector string could not be parsed."""


class Operation(Enum):
    """What a selector does with matching intervals."""

    KEEP = "keep"
    DELETE = "delete"


def _type_of(interval: Interval) -> str:
    return interval.category or ""


# Interval fields a selector can test, by subject name
SUBJECTS: dict[str, Callable[[Interval], str]] = {
    "seqid": lambda interval: interval.seqid,
    "type": _type_of,
}

SEPARATOR = ":"


@attrs.frozen
class Selector:
    """One parsed ``operation:subject:pattern`` statement.

    Attributes:
        operation: Keep or delete matching intervals.
        subject: Interval field tested, one of ``SUBJECTS``.
        pattern: Compiled regular expression.
    """

    operation: Operation
    subject: str = attrs.field()
    pattern: re.Pattern[str]

    @subject.validator
    def _check_subject(self, attribute: attrs.Attribute, value: str) -> None:
        if value not in SUBJECTS:
            raise SelectorError(
                f"Unknown selector subject '{value}'; expected one of {', '.join(SUBJECTS)}"
            )

    def drops(self, interval: Interval) -> bool:
        """Whether the interval is removed by this selector."""
        matched = self.pattern.search(SUBJECTS[self.subject](interval)) is not None
        if self.operation is Operation.DELETE:
            return matched
        return not matched

    def __str__(self) -> str:
        return SEPARATOR.join((self.operation.value, self.subject, self.pattern.pattern))


def parse_selector(text: str) -> Selector:
    """Parse an ``operation:subject:pattern`` string.

    Raises:
        SelectorError: If the string does not have three non-empty parts,
            or names an unknown operation or subject, or the pattern is
            not a valid regular expression.
    """
    parts = text.split(SEPARATOR)
    if len(parts) != 3 or not all(parts):
        raise SelectorError(
            f"Invalid selector '{text}'. Expected format: operation:subject:pattern "
            "(e.g. keep:seqid:^chr)"
        )
    operation, subject, pattern = parts
    try:
        op = Operation(operation)
    except ValueError:
        raise SelectorError(
            f"Unknown selector operation '{operation}' in '{text}'; expected keep or delete"
        ) from None
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise SelectorError(f"Invalid pattern in selector '{text}': {e}") from e
    return Selector(operation=op, subject=subject, pattern=compiled)


def parse_selectors(texts: Iterable[str]) -> list[Selector]:
    """Parse several selectors, keeping their order."""
    return [parse_selector(text) for text in texts]


def apply_selector(iset: IntervalSet, selector: Selector) -> int:
    """Drop the intervals a selector rejects, in place.

    Sequences left without intervals are removed from the set. The order
    of the remaining intervals, and each collection's sorted flag, are
    unchanged.

    Returns:
        Number of intervals dropped.
    """
    dropped = 0
    for seqid in iset.seqids:
        coll = iset[seqid]
        kept = [iv for iv in coll if not selector.drops(iv)]
        dropped += len(coll) - len(kept)
        if not kept:
            iset.remove(seqid)
        elif len(kept) != len(coll):
            coll.replace(kept, sorted=coll.sorted)
    return dropped


def apply_selectors(iset: IntervalSet, selectors: Sequence[Selector]) -> int:
    """Apply selectors one after another.

    Returns:
        Total number of intervals dropped.
    """
    total = 0
    for selector in selectors:
        dropped = apply_selector(iset, selector)
        logger.info(f"  selector {selector}: dropped {dropped}, {iset.feature_count} remain")
        total += dropped
    return total


def keep_types(iset: IntervalSet, types: Iterable[str]) -> int:
    """Keep only intervals whose type is exactly one of ``types``.

    Returns:
        Number of intervals dropped.
    """
    alternatives = "|".join(re.escape(t) for t in types)
    selector = Selector(
        operation=Operation.KEEP, subject="type", pattern=re.compile(f"^(?:{alternatives})$")
    )
    return apply_selector(iset, selector)
