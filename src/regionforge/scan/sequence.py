"""Genome sequence scans: homopolymers and ambiguous-base regions.

Both scans stream the genome base by base through the run detector and
write each region to GFF3 as soon as it closes.

Example:
    >>> from regionforge.scan.sequence import find_homopolymers
    >>> summary = find_homopolymers("genome.fa", "homopolymers.gff3")
    >>> summary.regions
    1532
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

import attrs

from regionforge.config import HomopolymerConfig, NRegionConfig
from regionforge.core.intervals import Interval
from regionforge.core.runs import AmbiguousRunRule, HomopolymerRule, Record, Run, scan
from regionforge.io.fasta import GenomeReader
from regionforge.io.gff import GFF3Writer
from regionforge.stats import HomopolymerTally

logger = logging.getLogger(__name__)

HOMOPOLYMER_SOURCE = "regionforge:homopolymer"
N_REGION_SOURCE = "regionforge:n-region"

# Sequence Ontology terms for the feature type column
HOMOPOLYMER_TYPE = "remark"
N_REGION_TYPE = "N_region"

COORDINATE_HEADER = "##format 1-based inclusive"


@attrs.define(slots=True)
class SequenceScanSummary:
    """Counts from one genome scan."""

    sequences: int = 0
    bases: int = 0
    regions: int = 0


# =============================================================================
# Interval builders
# =============================================================================


def homopolymer_interval(run: Run, number: int) -> Interval:
    """GFF3-ready interval for the ``number``-th homopolymer found."""
    return run.to_interval(
        category=HOMOPOLYMER_TYPE,
        attributes={
            "ID": f"hpoly{number}",
            "base": str(run.payload),
            "length": str(run.length),
        },
    )


def n_region_interval(run: Run, number: int) -> Interval:
    """GFF3-ready interval for the ``number``-th N region found."""
    return run.to_interval(
        category=N_REGION_TYPE,
        attributes={"ID": f"nregion{number}", "length": str(run.length)},
    )


# =============================================================================
# Record-level scans
# =============================================================================


def iter_homopolymers(records: Iterable[Record], min_length: int) -> Iterator[Run]:
    """Homopolymer runs of at least ``min_length`` bases."""
    return scan(records, HomopolymerRule(), min_length)


def iter_n_regions(
    records: Iterable[Record],
    min_length: int,
    bases: str = "Nn",
) -> Iterator[Run]:
    """Runs of ambiguous bases of at least ``min_length`` bases."""
    return scan(records, AmbiguousRunRule(bases=frozenset(bases)), min_length)


class _CountingRecords:
    """Pass records through while counting sequences and bases."""

    def __init__(self, records: Iterable[Record], summary: SequenceScanSummary) -> None:
        self._records = records
        self._summary = summary

    def __iter__(self) -> Iterator[Record]:
        seqid = None
        for record in self._records:
            if record[0] != seqid:
                seqid = record[0]
                self._summary.sequences += 1
            if record[2]:
                self._summary.bases += 1
            yield record


# =============================================================================
# File-level scans
# =============================================================================


def find_homopolymers(
    fasta: Path | str,
    output: Path | str,
    config: HomopolymerConfig | None = None,
) -> SequenceScanSummary:
    """Write every homopolymer of a genome to GFF3.

    Args:
        fasta: Genome FASTA file.
        output: GFF3 file to write.
        config: Scan settings; defaults apply when omitted.

    Returns:
        Scan counts.
    """
    config = config or HomopolymerConfig()
    summary = SequenceScanSummary()
    logger.info(f"Identifying homopolymers of length >= {config.min_length} in {fasta}")

    with GenomeReader(fasta) as genome, GFF3Writer(output, source=HOMOPOLYMER_SOURCE) as writer:
        writer.write_header(
            [
                "##content homopolymer regions",
                f"##min-length {config.min_length}",
                COORDINATE_HEADER,
                f"##genome {fasta}",
            ]
        )
        records = _CountingRecords(genome.iter_bases(), summary)
        for run in iter_homopolymers(records, config.min_length):
            summary.regions += 1
            writer.write(homopolymer_interval(run, summary.regions))

    logger.info(
        f"Found {summary.regions} homopolymers in {summary.sequences} sequences "
        f"({summary.bases:,} bp)"
    )
    return summary


def find_n_regions(
    fasta: Path | str,
    output: Path | str,
    config: NRegionConfig | None = None,
) -> SequenceScanSummary:
    """Write every run of ambiguous bases in a genome to GFF3."""
    config = config or NRegionConfig()
    summary = SequenceScanSummary()
    logger.info(f"Identifying N regions in {fasta}")

    with GenomeReader(fasta) as genome, GFF3Writer(output, source=N_REGION_SOURCE) as writer:
        writer.write_header(
            [
                "##content genomic N regions",
                f"##min-length {config.min_length}",
                COORDINATE_HEADER,
                f"##genome {fasta}",
            ]
        )
        records = _CountingRecords(genome.iter_bases(), summary)
        for run in iter_n_regions(records, config.min_length, config.bases):
            summary.regions += 1
            writer.write(n_region_interval(run, summary.regions))

    logger.info(f"Found {summary.regions} N regions in {summary.sequences} sequences")
    return summary


def tally_homopolymers(records: Iterable[Record]) -> HomopolymerTally:
    """Count homopolymers (two or more bases) by base and length."""
    tally = HomopolymerTally()
    for run in iter_homopolymers(records, min_length=2):
        tally.add(str(run.payload), run.length)
    return tally


def homopolymer_stats(fasta: Path | str, output: Path | str) -> HomopolymerTally:
    """Write a length-by-base table of homopolymer counts for a genome."""
    logger.info(f"Tallying homopolymers in {fasta}")
    with GenomeReader(fasta) as genome:
        tally = tally_homopolymers(genome.iter_bases())
    logger.info(f"Writing homopolymer report: {output}")
    tally.write_tsv(output)
    return tally
