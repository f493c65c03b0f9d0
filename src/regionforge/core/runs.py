"""Streaming detection of contiguous runs.

A run is a stretch of consecutive positions where a per-position rule
holds. The detector is a two-state machine (idle / in run) that walks a
stream of ``(seqid, position, value)`` records once and yields each run
as soon as it closes, so memory use does not grow with the input.

A run closes when:

- the rule stops matching (the closing position is the exclusive end),
- a hard-break value is seen (the run closes and the position is skipped),
- a new sequence starts, or the input ends (the final position seen
  becomes the exclusive end).

Closed runs shorter than ``min_length`` are dropped silently.

The same machine serves homopolymers, N runs, low mapping quality and
abnormal read depth; only the ``RunRule`` differs.

Example:
    >>> from regionforge.core.runs import scan, HomopolymerRule
    >>> records = [("chr1", i, b) for i, b in enumerate("AATTTGCC")]
    >>> [(r.start, r.end) for r in scan(records, HomopolymerRule(), min_length=2)]
    [(0, 2), (2, 5)]
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Iterator, Protocol, TypeVar

import attrs

from regionforge.core.intervals import Interval

logger = logging.getLogger(__name__)

V = TypeVar("V")
V_contra = TypeVar("V_contra", contravariant=True)

Record = tuple[str, int, Any]

# Base value marking the position just past the end of a sequence
SEQUENCE_END = ""


# =============================================================================
# Rules
# =============================================================================


class RunRule(Protocol[V_contra]):
    """What makes a position part of a run.

    Attributes:
        lookback: Positions before the first matching one that belong to
            a newly opened run. A rule comparing each value with the one
            before it uses 1.
    """

    lookback: int

    def matches(self, value: V_contra, previous: V_contra | None) -> bool:
        """Whether the position holding ``value`` extends or opens a run."""
        ...

    def is_break(self, value: V_contra) -> bool:
        """Whether ``value`` force-closes any open run and is skipped."""
        ...

    def measure(self, value: V_contra) -> float:
        """Amount folded into the run total for this position."""
        ...


@attrs.define(slots=True)
class HomopolymerRule:
    """Runs of a repeated base: each base equals the one before it.

    Ambiguous bases are not breaks, so a stretch of N is a homopolymer
    like any other. Comparison is case-sensitive.
    """

    lookback: int = 1

    def matches(self, value: str, previous: str | None) -> bool:
        return previous is not None and value == previous

    def is_break(self, value: str) -> bool:
        return value == SEQUENCE_END

    def measure(self, value: str) -> float:
        return 1.0


@attrs.define(slots=True)
class AmbiguousRunRule:
    """Runs of ambiguous bases (N by default)."""

    bases: frozenset[str] = attrs.field(default=frozenset("Nn"), converter=frozenset)
    lookback: int = 0

    def matches(self, value: str, previous: str | None) -> bool:
        return value in self.bases

    def is_break(self, value: str) -> bool:
        return value == SEQUENCE_END

    def measure(self, value: str) -> float:
        return 1.0


class Direction(Enum):
    """Which side of a threshold is reported."""

    BELOW = "below"
    ABOVE = "above"


def _never(value: Any) -> bool:
    return False


@attrs.define(slots=True)
class ThresholdRule:
    """Runs of positions whose metric lies strictly beyond a threshold.

    The metric is floor-divided by ``divisor`` before the comparison, so a
    read depth summed over several BAM files is judged as a whole number of
    reads per BAM. The run total accumulates the undivided metric.

    Attributes:
        threshold: Value compared against.
        direction: Report metrics below or above the threshold.
        divisor: Normalizing divisor, at least 1.
        metric: Extracts the number from a record value.
        hard_break: Values that force-close a run and are skipped.
    """

    threshold: float
    direction: Direction = attrs.field(default=Direction.BELOW, converter=Direction)
    divisor: int = attrs.field(default=1)
    metric: Callable[[Any], float] = float
    hard_break: Callable[[Any], bool] = _never
    lookback: int = 0

    @divisor.validator
    def _check_divisor(self, attribute: attrs.Attribute, value: int) -> None:
        if value < 1:
            raise ValueError(f"divisor must be >= 1, got {value}")

    def matches(self, value: Any, previous: Any) -> bool:
        normalized = self.metric(value) // self.divisor
        if self.direction is Direction.BELOW:
            return normalized < self.threshold
        return normalized > self.threshold

    def is_break(self, value: Any) -> bool:
        return self.hard_break(value)

    def measure(self, value: Any) -> float:
        return float(self.metric(value))


# =============================================================================
# Run accumulator
# =============================================================================


class ScanState(Enum):
    """State of the run detector."""

    IDLE = "idle"
    IN_RUN = "in_run"


@attrs.define(slots=True)
class Run(Generic[V]):
    """A candidate run under construction, or a closed run once emitted.

    Attributes:
        seqid: Sequence the run lies on.
        start: First position of the run.
        end: Exclusive end, set when the run closes.
        total: Sum of the measured values folded into the run.
        count: Number of values folded in.
        payload: Value that opened the run (e.g. the repeated base).
    """

    seqid: str
    start: int
    end: int = 0
    total: float = 0.0
    count: int = 0
    payload: Any = None

    @property
    def length(self) -> int:
        """Extent of the run in positions."""
        return self.end - self.start

    @property
    def mean(self) -> float:
        """Average of the folded values; 0 for an empty run."""
        return self.total / self.count if self.count else 0.0

    def fold(self, amount: float) -> None:
        """Add one position's measurement to the run."""
        self.total += amount
        self.count += 1

    def to_interval(
        self,
        category: str | None = None,
        attributes: dict[str, str] | None = None,
    ) -> Interval:
        """Convert a closed run to an interval."""
        return Interval(
            seqid=self.seqid,
            start=self.start,
            end=self.end,
            category=category,
            attributes=dict(attributes or {}),
        )


# =============================================================================
# Detector
# =============================================================================


class RunDetector(Generic[V]):
    """Explicit state machine behind ``scan``.

    The detector holds one open run at most. Feed records with ``push``
    and flush with ``finish``; both return the run that closed, if any,
    and it passed the length filter.

    Attributes:
        rule: Decides matches, breaks and measurements.
        min_length: Shortest run that is reported.
        state: Current state.
        emitted: Number of runs reported so far.
        discarded: Number of closed runs that were too short.
    """

    def __init__(self, rule: RunRule[V], min_length: int = 1) -> None:
        if min_length < 1:
            raise ValueError(f"min_length must be >= 1, got {min_length}")
        self.rule = rule
        self.min_length = min_length
        self.state = ScanState.IDLE
        self.emitted = 0
        self.discarded = 0
        self._run: Run[V] | None = None
        self._seqid: str | None = None
        self._previous: V | None = None
        self._last_position: int | None = None

    def _close(self, end: int) -> Run[V] | None:
        run = self._run
        self._run = None
        self.state = ScanState.IDLE
        if run is None:
            return None
        run.end = end
        if run.length >= self.min_length:
            self.emitted += 1
            return run
        self.discarded += 1
        return None

    def push(self, seqid: str, position: int, value: V) -> list[Run[V]]:
        """Process one record.

        Returns:
            Runs closed by this record (at most two: one ended by a
            sequence change, one by this position).
        """
        closed: list[Run[V]] = []

        if seqid != self._seqid:
            if self.state is ScanState.IN_RUN and self._last_position is not None:
                run = self._close(self._last_position)
                if run is not None:
                    closed.append(run)
            self._seqid = seqid
            self._previous = None

        if self.rule.is_break(value):
            if self.state is ScanState.IN_RUN:
                run = self._close(position)
                if run is not None:
                    closed.append(run)
            self._previous = None
            self._last_position = position
            return closed

        if self.rule.matches(value, self._previous):
            if self.state is ScanState.IDLE:
                self._run = Run(
                    seqid=seqid,
                    start=position - self.rule.lookback,
                    payload=value,
                )
                self.state = ScanState.IN_RUN
                # Positions pulled in by lookback carry the previous value
                for _ in range(self.rule.lookback):
                    self._run.fold(
                        self.rule.measure(self._previous if self._previous is not None else value)
                    )
            assert self._run is not None
            self._run.fold(self.rule.measure(value))
        elif self.state is ScanState.IN_RUN:
            run = self._close(position)
            if run is not None:
                closed.append(run)

        self._previous = value
        self._last_position = position
        return closed

    def finish(self) -> Run[V] | None:
        """Close any run left open at the end of input."""
        if self.state is ScanState.IN_RUN and self._last_position is not None:
            return self._close(self._last_position)
        return None


def scan(
    records: Iterable[Record],
    rule: RunRule[Any],
    min_length: int = 1,
) -> Iterator[Run[Any]]:
    """Yield runs from an ordered stream of records.

    Args:
        records: ``(seqid, position, value)`` tuples, ordered by position
            within each sequence. Consumed once.
        rule: Run definition.
        min_length: Shortest run (``end - start``) to report.

    Yields:
        Closed runs, in the order they close.
    """
    detector: RunDetector[Any] = RunDetector(rule, min_length)
    for seqid, position, value in records:
        yield from detector.push(seqid, position, value)
    last = detector.finish()
    if last is not None:
        yield last
    logger.debug(
        f"Run scan finished: {detector.emitted} reported, {detector.discarded} below minimum length"
    )
