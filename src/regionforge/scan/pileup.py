"""Region scans over qpileup view files.

Two reports are built from the same machinery:

- low mapping quality: positions whose average mapq is below a threshold
- abnormal read depth: positions whose per-BAM read depth is below or
  above a threshold

View files are processed strictly in the order given, each as its own
stream; runs never span files. Every file must hold a single reference.
A reference base of ``N`` always ends a region.

View-file positions are 1-based. They are shifted to 0-based half-open
internally, so the GFF3 output reports the first and last position of
each region as they appear in the view file.
"""

from __future__ import annotations

import logging
from operator import attrgetter
from pathlib import Path
from typing import Callable, Iterator, Sequence

import attrs

from regionforge.config import LowMapqConfig, ReadDepthConfig
from regionforge.core.intervals import Interval
from regionforge.core.runs import Direction, Record, Run, ThresholdRule, scan
from regionforge.io.files import md5sum
from regionforge.io.gff import GFF3Writer
from regionforge.io.pileup import PileupReader, PileupRecord, check_headers
from regionforge.stats import Tally
from regionforge.utils.logging import ProgressLogger

logger = logging.getLogger(__name__)

LOW_MAPQ_SOURCE = "regionforge:low-mapq"
READ_DEPTH_SOURCE = "regionforge:read-depth"
REGION_TYPE = "remark"

PROGRESS_INTERVAL = 10_000_000


class MultipleReferenceError(ValueError):
    """Raised when a view file holds positions from more than one reference."""

    pass


@attrs.define(slots=True)
class PileupScanSummary:
    """Counts from a scan over one or more view files.

    Attributes:
        files: View files processed.
        lines: Data lines read.
        short_lines: Data lines skipped for having too few columns.
        regions: Regions written.
    """

    files: int = 0
    lines: int = 0
    short_lines: int = 0
    regions: int = 0


# =============================================================================
# Rules
# =============================================================================


def _is_ambiguous(record: PileupRecord) -> bool:
    return record.is_ambiguous


def low_mapq_rule(config: LowMapqConfig) -> ThresholdRule:
    """Positions whose rounded average mapq is below the threshold."""
    return ThresholdRule(
        threshold=config.threshold,
        direction=Direction.BELOW,
        metric=attrgetter("mapq"),
        hard_break=_is_ambiguous,
    )


def read_depth_rule(config: ReadDepthConfig) -> ThresholdRule:
    """Positions whose read depth per BAM is beyond the threshold."""
    return ThresholdRule(
        threshold=config.threshold,
        direction=config.direction,
        divisor=config.divisor,
        metric=attrgetter("depth"),
        hard_break=_is_ambiguous,
    )


# =============================================================================
# Record streams
# =============================================================================


def iter_view_records(
    reader: PileupReader,
    progress: ProgressLogger | None = None,
    on_record: Callable[[PileupRecord], None] | None = None,
) -> Iterator[Record]:
    """Turn a view file into 0-based run-detector records.

    Raises:
        MultipleReferenceError: If the reference changes within the file.
    """
    reference: str | None = None
    for record in reader:
        if progress is not None:
            progress.update()
        if reference is None:
            reference = record.reference
        elif record.reference != reference:
            raise MultipleReferenceError(
                f"file {reader.path} contains multiple references at position "
                f"{record.position}: {reference}, {record.reference}"
            )
        if on_record is not None:
            on_record(record)
        yield record.reference, record.position - 1, record


def _scan_files(
    files: Sequence[Path],
    rule: ThresholdRule,
    min_length: int,
    writer: GFF3Writer,
    make_interval: Callable[[Run, int], Interval],
    on_record: Callable[[PileupRecord], None] | None = None,
) -> PileupScanSummary:
    summary = PileupScanSummary()
    for path in files:
        logger.info(f"Processing file: {path}")
        logger.debug(f"  md5 {md5sum(path)}")
        reader = PileupReader(path)
        progress = ProgressLogger(logger, PROGRESS_INTERVAL, "lines processed")
        records = iter_view_records(reader, progress, on_record)
        for run in scan(records, rule, min_length):
            summary.regions += 1
            writer.write(make_interval(run, summary.regions))

        summary.files += 1
        summary.lines += reader.lines
        summary.short_lines += reader.short_lines
        if reader.short_lines:
            logger.warning(
                f"  {reader.short_lines} lines of {reader.lines} in {path.name} were short "
                f"- fewer than 33 fields"
            )
    return summary


def _view_file_headers(files: Sequence[Path]) -> list[str]:
    return [f"##qpileup-view-file {path}" for path in files]


# =============================================================================
# Reports
# =============================================================================


def find_low_mapq_regions(
    files: Sequence[Path | str],
    output: Path | str,
    config: LowMapqConfig | None = None,
) -> tuple[PileupScanSummary, Tally]:
    """Write regions of low average mapping quality to GFF3.

    Every file's header is checked before any file is scanned.

    Returns:
        The scan counts and a tally of rounded mapq over all positions.

    Raises:
        PileupHeaderError: If any file has the wrong columns.
        PileupParseError: If a numeric column cannot be parsed.
        MultipleReferenceError: If a file holds more than one reference.
    """
    config = config or LowMapqConfig()
    paths = [Path(f) for f in files]
    check_headers(paths)
    logger.info(f"  threshold {config.threshold}, region-min {config.min_length}")

    tally = Tally()

    def make_interval(run: Run, number: int) -> Interval:
        return run.to_interval(
            category=REGION_TYPE,
            attributes={
                "ID": f"lowmapq{number}",
                "length": str(run.length),
                "avgmapq": str(int(run.mean)),
            },
        )

    logger.info(f"Writing low-mapq GFF3 file: {output}")
    with GFF3Writer(output, source=LOW_MAPQ_SOURCE) as writer:
        writer.write_header(
            [
                "##content low average mapping quality report from qpileup view file(s)",
                f"##threshold {config.threshold}",
                f"##region-min {config.min_length}",
                *_view_file_headers(paths),
            ]
        )
        summary = _scan_files(
            paths,
            low_mapq_rule(config),
            config.min_length,
            writer,
            make_interval,
            on_record=lambda record: tally.add(record.mapq),
        )

    tally.log("Tally of average mapq per position:", logger)
    logger.info(f"Wrote {summary.regions} low-mapq regions")
    return summary, tally


def find_read_depth_regions(
    files: Sequence[Path | str],
    output: Path | str,
    config: ReadDepthConfig,
) -> PileupScanSummary:
    """Write regions of unusually low or high read depth to GFF3.

    Read depth at each position is divided by ``config.divisor`` (the
    number of BAM files in the pileup) before comparison.

    Raises:
        PileupHeaderError: If any file has the wrong columns.
        PileupParseError: If a numeric column cannot be parsed.
        MultipleReferenceError: If a file holds more than one reference.
        ValueError: If no direction is configured.
    """
    if config.direction is None:
        raise ValueError("A read-depth direction (above or below) is required")
    paths = [Path(f) for f in files]
    check_headers(paths)
    logger.info(
        f"  --{config.direction.value} {config.threshold}, region-min {config.min_length}, "
        f"bam-count {config.divisor}"
    )

    def make_interval(run: Run, number: int) -> Interval:
        avgdepth = run.mean / config.divisor
        return run.to_interval(
            category=REGION_TYPE,
            attributes={
                "ID": f"readdepth{number}",
                "test": config.label,
                "length": str(run.length),
                "avgdepth": str(int(avgdepth)),
            },
        )

    logger.info(f"Writing read-depth GFF3 file: {output}")
    with GFF3Writer(output, source=READ_DEPTH_SOURCE) as writer:
        writer.write_header(
            [
                f"##content regions where average read depth is {config.direction.value} "
                f"threshold - from qpileup view file(s)",
                f"##threshold {config.threshold}",
                f"##region-min {config.min_length}",
                f"##bam-count {config.divisor}",
                *_view_file_headers(paths),
            ]
        )
        summary = _scan_files(
            paths, read_depth_rule(config), config.min_length, writer, make_interval
        )

    logger.info(f"Wrote {summary.regions} read-depth regions")
    return summary
