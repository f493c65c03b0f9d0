"""Input/output handlers for RegionForge.

This module provides readers and writers for the file formats the
scans and merges work with:

- GFF3: interval annotations (read and written)
- FASTA: genome sequences (streamed)
- qpileup view 1: per-position pileup metrics (streamed)

Example:
    >>> from regionforge.io import read_gff, GenomeReader
    >>> iset = read_gff("annotations.gff3")
    >>> genome = GenomeReader("genome.fa")
"""

from regionforge.io.fasta import GenomeReader
from regionforge.io.files import consolidate_file_list, md5sum, open_text
from regionforge.io.gff import GFF3Reader, GFF3Writer, read_gff, write_gff
from regionforge.io.pileup import (
    PileupHeaderError,
    PileupParseError,
    PileupReader,
    check_headers,
)

__all__: list[str] = [
    "GenomeReader",
    "GFF3Reader",
    "GFF3Writer",
    "read_gff",
    "write_gff",
    "PileupReader",
    "PileupHeaderError",
    "PileupParseError",
    "check_headers",
    "consolidate_file_list",
    "md5sum",
    "open_text",
]
