"""GFF3 file handling.

This module reads GFF3 features as ``Interval`` records and writes
intervals and scan results back out as GFF3.

Features:
    - Streaming iteration over features for large files
    - Grouping into per-sequence collections (``IntervalSet``)
    - Header lines kept for provenance in merged output
    - Streaming writer with run-provenance headers

Coordinates are converted from GFF3's 1-based inclusive convention to
0-based half-open on the way in, and back on the way out.

Example:
    >>> from regionforge.io.gff import GFF3Reader, GFF3Writer
    >>> reader = GFF3Reader("annotations.gff3")
    >>> iset = reader.read()
    >>> with GFF3Writer("out.gff3") as writer:
    ...     writer.write_header()
    ...     writer.write_intervals(iset.intervals())
"""

from __future__ import annotations

import getpass
import logging
import platform
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Iterable, Iterator

import attrs

from regionforge import __version__
from regionforge.core.intervals import Interval, IntervalSet
from regionforge.io.files import open_text

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# GFF3 column indices
COL_SEQID = 0
COL_SOURCE = 1
COL_TYPE = 2
COL_START = 3
COL_END = 4
COL_SCORE = 5
COL_STRAND = 6
COL_PHASE = 7
COL_ATTRIBUTES = 8

GFF3_COLUMNS = 9
GFF_VERSION_HEADER = "##gff-version 3"
MISSING = "."


class GFF3ParseError(ValueError):
    """Raised when a GFF3 field cannot be converted to its expected type."""

    pass


# =============================================================================
# Attribute Parsing
# =============================================================================


def parse_attributes(attr_string: str) -> dict[str, str]:
    """Parse GFF3 attribute string into dictionary.

    Args:
        attr_string: Semicolon-separated key=value pairs.

    Returns:
        Dictionary of attribute key-value pairs, in file order.
    """
    attributes: dict[str, str] = {}
    if not attr_string or attr_string == MISSING:
        return attributes

    for item in attr_string.split(";"):
        item = item.strip()
        if not item:
            continue

        if "=" in item:
            key, value = item.split("=", 1)
            # URL decode
            value = value.replace("%3B", ";").replace("%3D", "=").replace("%26", "&")
            value = value.replace("%2C", ",")
            attributes[key] = value
        else:
            attributes[item] = ""

    return attributes


def format_attributes(attributes: dict[str, str]) -> str:
    """Format attribute dictionary as GFF3 string.

    Args:
        attributes: Dictionary of attributes.

    Returns:
        Semicolon-separated key=value string.
    """
    if not attributes:
        return MISSING

    parts = []
    for key, value in attributes.items():
        # URL encode special characters
        value = str(value).replace(";", "%3B").replace("=", "%3D")
        value = value.replace("&", "%26").replace(",", "%2C")
        parts.append(f"{key}={value}")

    return ";".join(parts)


def versioned_headers(headers: Iterable[str], suffix: str) -> list[str]:
    """Tag header keys with a suffix, e.g. ``##gff-version 3`` -> ``##gff-version-0 3``.

    Lets the headers of several merged files live in one output header.
    """
    tagged = []
    for header in headers:
        if not header.startswith("##"):
            continue
        key, sep, rest = header[2:].partition(" ")
        tagged.append(f"##{key}-{suffix}{sep}{rest}")
    return tagged


def provenance_headers(invocation: Iterable[str] | None = None) -> list[str]:
    """Header lines recording who produced a file, where, when and how."""
    args = list(invocation) if invocation is not None else sys.argv
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return [
        f"##uuid {uuid.uuid4()}",
        f"##version regionforge {__version__}",
        f"##creation-date {datetime.now().isoformat(timespec='seconds')}",
        f"##created-by-user {user}",
        f"##created-on {platform.node()}",
        f"##invocation {' '.join(args)}",
    ]


# =============================================================================
# GFF3 Reader
# =============================================================================


@attrs.define(slots=True)
class GFF3ReadStats:
    """Counts gathered while reading a GFF3 file."""

    features: int = 0
    short_lines: int = 0
    headers: int = 0


class GFF3Reader:
    """Stream GFF3 features as intervals.

    Lines with fewer than 9 columns are skipped and counted. A start or
    end that is not an integer, or a score that is not a number, stops
    the read with ``GFF3ParseError``.

    Attributes:
        path: Path to the GFF3 file.
        headers: ``##`` header lines seen so far.
        stats: Feature and skipped-line counts.

    Example:
        >>> reader = GFF3Reader("annotations.gff3")
        >>> for interval in reader:
        ...     print(interval.seqid, interval.start, interval.end)
    """

    def __init__(self, gff_path: Path | str) -> None:
        """Initialize the reader.

        Args:
            gff_path: Path to GFF3 file (optionally gzipped).

        Raises:
            FileNotFoundError: If file doesn't exist.
        """
        self.path = Path(gff_path)
        if not self.path.exists():
            raise FileNotFoundError(f"GFF3 file not found: {self.path}")
        self.headers: list[str] = []
        self.stats = GFF3ReadStats()

    def _parse_line(self, line: str, line_number: int) -> Interval | None:
        """Parse a single GFF3 feature line."""
        parts = line.split("\t")
        if len(parts) < GFF3_COLUMNS:
            self.stats.short_lines += 1
            logger.debug(f"Short GFF3 line {line_number} in {self.path.name}: {line[:50]}")
            return None

        try:
            start = int(parts[COL_START]) - 1  # Convert to 0-based
            end = int(parts[COL_END])  # Keep as exclusive end
        except ValueError as e:
            raise GFF3ParseError(
                f"{self.path}:{line_number}: invalid coordinates "
                f"{parts[COL_START]!r}-{parts[COL_END]!r}"
            ) from e

        score: float | None = None
        if parts[COL_SCORE] != MISSING:
            try:
                score = float(parts[COL_SCORE])
            except ValueError as e:
                raise GFF3ParseError(
                    f"{self.path}:{line_number}: invalid score {parts[COL_SCORE]!r}"
                ) from e

        category = parts[COL_TYPE] if parts[COL_TYPE] != MISSING else None
        try:
            return Interval(
                seqid=parts[COL_SEQID],
                start=start,
                end=end,
                category=category,
                score=score,
                attributes=parse_attributes(parts[COL_ATTRIBUTES]),
            )
        except ValueError as e:
            raise GFF3ParseError(f"{self.path}:{line_number}: {e}") from e

    def __iter__(self) -> Iterator[Interval]:
        self.headers = []
        self.stats = GFF3ReadStats()
        with open_text(self.path) as f:
            for line_number, raw in enumerate(f, start=1):
                line = raw.rstrip("\r\n")
                if not line:
                    continue
                if line.startswith("##FASTA"):
                    break
                if line.startswith("##"):
                    self.headers.append(line)
                    self.stats.headers += 1
                    continue
                if line.startswith("#"):
                    continue
                interval = self._parse_line(line, line_number)
                if interval is not None:
                    self.stats.features += 1
                    yield interval

        if self.stats.short_lines:
            logger.warning(
                f"{self.stats.short_lines} lines in {self.path.name} had fewer than "
                f"{GFF3_COLUMNS} columns and were skipped"
            )

    def read(self) -> IntervalSet:
        """Read the whole file into per-sequence collections."""
        iset = IntervalSet.from_intervals(self, name=str(self.path))
        logger.info(
            f"Read {iset.feature_count} features on {len(iset)} sequences from {self.path.name}"
        )
        return iset


# =============================================================================
# GFF3 Writer
# =============================================================================


class GFF3Writer:
    """Write intervals to GFF3 as they are produced.

    Example:
        >>> with GFF3Writer("output.gff3", source="regionforge:homopolymer") as writer:
        ...     writer.write_header(["##content homopolymer regions"])
        ...     for interval in intervals:
        ...         writer.write(interval)
    """

    def __init__(
        self,
        output_path: Path | str,
        source: str = "regionforge",
    ) -> None:
        """Initialize the writer.

        Args:
            output_path: Output file path.
            source: Source field value for GFF3.
        """
        self.path = Path(output_path)
        self.source = source
        self.count = 0
        self._file: IO[str] | None = open(self.path, "w")
        self._header_written = False

    def __enter__(self) -> GFF3Writer:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    def close(self) -> None:
        """Close the output file."""
        if self._file:
            self._file.close()
            self._file = None

    def _handle(self) -> IO[str]:
        if self._file is None:
            raise ValueError(f"GFF3 writer for {self.path} is closed")
        return self._file

    def write_header(
        self,
        extra: Iterable[str] = (),
        invocation: Iterable[str] | None = None,
    ) -> None:
        """Write the GFF3 header with provenance lines.

        Args:
            extra: Additional ``##`` lines, written after the version line.
            invocation: Command line to record; defaults to ``sys.argv``.
        """
        handle = self._handle()
        handle.write(f"{GFF_VERSION_HEADER}\n")
        for line in extra:
            handle.write(f"{line}\n")
        for line in provenance_headers(invocation):
            handle.write(f"{line}\n")
        self._header_written = True

    def write(self, interval: Interval, source: str | None = None) -> None:
        """Write one interval as a GFF3 feature line."""
        if not self._header_written:
            self.write_header()
        self._handle().write(
            format_gff_line(
                interval.seqid,
                source or self.source,
                interval.category or MISSING,
                interval.start,
                interval.end,
                score=interval.score,
                attributes=interval.attributes,
            )
            + "\n"
        )
        self.count += 1

    def write_intervals(self, intervals: Iterable[Interval]) -> int:
        """Write many intervals.

        Returns:
            Number of intervals written by this call.
        """
        n = 0
        for interval in intervals:
            self.write(interval)
            n += 1
        return n


# =============================================================================
# Convenience Functions
# =============================================================================


def read_gff(path: Path | str) -> IntervalSet:
    """Read a GFF3 file into per-sequence interval collections."""
    return GFF3Reader(path).read()


def write_gff(
    intervals: Iterable[Interval],
    path: Path | str,
    source: str = "regionforge",
    headers: Iterable[str] = (),
) -> int:
    """Write intervals to a GFF3 file.

    Returns:
        Number of features written.
    """
    with GFF3Writer(path, source=source) as writer:
        writer.write_header(headers)
        return writer.write_intervals(intervals)


def format_score(score: float | None) -> str:
    """Format a score, dropping the decimal point for whole numbers."""
    if score is None:
        return MISSING
    if float(score).is_integer():
        return str(int(score))
    return f"{score:.4f}"


def format_gff_line(
    seqid: str,
    source: str,
    feature_type: str,
    start: int,
    end: int,
    score: float | None = None,
    strand: str = MISSING,
    phase: int | None = None,
    attributes: dict[str, str] | None = None,
) -> str:
    """Format a single GFF3 line.

    Args:
        seqid: Sequence identifier.
        source: Source of the annotation.
        feature_type: Type of feature.
        start: Start position (0-based).
        end: End position (0-based, exclusive).
        score: Feature score.
        strand: Strand.
        phase: CDS phase.
        attributes: Feature attributes.

    Returns:
        Formatted GFF3 line.
    """
    # Convert to 1-based for GFF3
    gff_start = start + 1
    gff_end = end

    phase_str = MISSING if phase is None else str(phase)
    attr_str = format_attributes(attributes or {})

    return (
        f"{seqid}\t{source}\t{feature_type}\t{gff_start}\t{gff_end}\t"
        f"{format_score(score)}\t{strand}\t{phase_str}\t{attr_str}"
    )
