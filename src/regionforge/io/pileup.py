"""qpileup "view 1" report handling.

A view file is tab-separated with 33 columns, one line per reference
position. The first line must be ``## `` followed by the tab-joined column
names, exactly. Every file of a batch is checked before any is scanned,
since scanning is expensive and a late failure wastes the whole run.

Only the columns needed for mapping quality and read depth are parsed.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Iterable, Iterator

import attrs

from regionforge.io.files import open_text

logger = logging.getLogger(__name__)

# =============================================================================
# Column Layout
# =============================================================================

EXPECTED_HEADER_FIELDS: tuple[str, ...] = (
    "Reference", "Position", "Ref_base",
    "A_for", "C_for", "G_for", "T_for", "N_for",
    "Aqual_for", "Cqual_for", "Gqual_for", "Tqual_for", "Nqual_for",
    "MapQual_for", "ReferenceNo_for", "NonreferenceNo_for",
    "HighNonreference_for", "LowReadCount_for",
    "A_rev", "C_rev", "G_rev", "T_rev", "N_rev",
    "Aqual_rev", "Cqual_rev", "Gqual_rev", "Tqual_rev", "Nqual_rev",
    "MapQual_rev", "ReferenceNo_rev", "NonreferenceNo_rev",
    "HighNonreference_rev", "LowReadCount_rev",
)  # fmt: skip

N_COLUMNS = len(EXPECTED_HEADER_FIELDS)

COL_REFERENCE = EXPECTED_HEADER_FIELDS.index("Reference")
COL_POSITION = EXPECTED_HEADER_FIELDS.index("Position")
COL_REF_BASE = EXPECTED_HEADER_FIELDS.index("Ref_base")
COL_MAPQUAL_FOR = EXPECTED_HEADER_FIELDS.index("MapQual_for")
COL_REFERENCE_NO_FOR = EXPECTED_HEADER_FIELDS.index("ReferenceNo_for")
COL_NONREFERENCE_NO_FOR = EXPECTED_HEADER_FIELDS.index("NonreferenceNo_for")
COL_MAPQUAL_REV = EXPECTED_HEADER_FIELDS.index("MapQual_rev")
COL_REFERENCE_NO_REV = EXPECTED_HEADER_FIELDS.index("ReferenceNo_rev")
COL_NONREFERENCE_NO_REV = EXPECTED_HEADER_FIELDS.index("NonreferenceNo_rev")

# Reference base that always ends a region
AMBIGUOUS_REF_BASE = "N"


class PileupHeaderError(ValueError):
    """Raised when a view file does not start with the expected header."""

    pass


class PileupParseError(ValueError):
    """Raised when a numeric column cannot be parsed."""

    pass


def expected_header() -> str:
    """The exact first line required of a view file."""
    return "## " + "\t".join(EXPECTED_HEADER_FIELDS)


# =============================================================================
# Header Checks
# =============================================================================


def check_file_header(path: Path | str) -> None:
    """Check that a view file starts with the expected header line.

    Raises:
        PileupHeaderError: If the first line is missing or differs.
    """
    with open_text(path) as f:
        first = f.readline().rstrip("\r\n")
    if first != expected_header():
        raise PileupHeaderError(
            f"error with columns in {path}: wanted header line not found: {expected_header()}"
        )


def check_headers(paths: Iterable[Path | str]) -> int:
    """Check every file of a batch before any is processed.

    Returns:
        Number of files checked.

    Raises:
        PileupHeaderError: On the first file with a bad header.
    """
    logger.info("Checking for required data columns in view files")
    n = 0
    for path in paths:
        check_file_header(path)
        n += 1
    logger.info(f"Number of view files checked: {n}")
    return n


# =============================================================================
# Records
# =============================================================================


def safe_ratio(numerator: float, denominator: float) -> float:
    """``numerator / denominator``, or exactly 0 when the denominator is 0."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


@attrs.frozen(slots=True)
class PileupRecord:
    """Metrics for one reference position.

    Attributes:
        reference: Reference sequence name.
        position: Position as given in the view file (1-based).
        ref_base: Reference base at the position.
        depth: Read depth summed over strands and reference/non-reference.
        mapq: Average mapping quality per read, rounded; 0 with no reads.
    """

    reference: str
    position: int
    ref_base: str
    depth: int
    mapq: int

    @property
    def is_ambiguous(self) -> bool:
        return self.ref_base == AMBIGUOUS_REF_BASE


def _int_field(fields: list[str], column: int, path: Path, line_number: int) -> int:
    try:
        return int(fields[column])
    except ValueError as e:
        raise PileupParseError(
            f"{path}:{line_number}: error converting "
            f"{EXPECTED_HEADER_FIELDS[column]}: {fields[column]!r}"
        ) from e


def parse_record(fields: list[str], path: Path, line_number: int) -> PileupRecord:
    """Build a record from the split columns of one data line.

    Raises:
        PileupParseError: If a numeric column is not an integer.
    """
    depth = (
        _int_field(fields, COL_REFERENCE_NO_FOR, path, line_number)
        + _int_field(fields, COL_NONREFERENCE_NO_FOR, path, line_number)
        + _int_field(fields, COL_REFERENCE_NO_REV, path, line_number)
        + _int_field(fields, COL_NONREFERENCE_NO_REV, path, line_number)
    )
    mapq_sum = _int_field(fields, COL_MAPQUAL_FOR, path, line_number) + _int_field(
        fields, COL_MAPQUAL_REV, path, line_number
    )
    return PileupRecord(
        reference=fields[COL_REFERENCE],
        position=_int_field(fields, COL_POSITION, path, line_number),
        ref_base=fields[COL_REF_BASE],
        depth=depth,
        # Halves round up
        mapq=math.floor(safe_ratio(mapq_sum, depth) + 0.5),
    )


class PileupReader:
    """Stream records from one view file.

    Comment lines are skipped. Lines with fewer than 33 columns are
    skipped and counted in ``short_lines``.

    Attributes:
        path: The view file.
        lines: Data lines read so far (short lines included).
        short_lines: Data lines skipped for having too few columns.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"qpileup view file not found: {self.path}")
        self.lines = 0
        self.short_lines = 0

    def __iter__(self) -> Iterator[PileupRecord]:
        self.lines = 0
        self.short_lines = 0
        with open_text(self.path) as f:
            for line_number, raw in enumerate(f, start=1):
                if raw.startswith("#"):
                    continue
                line = raw.rstrip("\r\n")
                if not line:
                    continue
                self.lines += 1
                fields = line.split("\t")
                if len(fields) < N_COLUMNS:
                    self.short_lines += 1
                    continue
                yield parse_record(fields, self.path, line_number)
