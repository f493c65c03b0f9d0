"""Pytest configuration and shared fixtures for RegionForge tests.

This module contains fixtures that are shared across multiple test modules.
Fixtures are organized by category:

- FASTA fixtures: Small genomes with known runs, and random ones
- qpileup fixtures: View-file line builders and writers
- GFF3 fixtures: Annotation files for merging and statistics
"""

from pathlib import Path
from typing import Callable

import numpy as np
import pytest

from regionforge.io.pileup import EXPECTED_HEADER_FIELDS, expected_header


# =============================================================================
# FASTA Fixtures
# =============================================================================


def write_fasta(path: Path, sequences: dict[str, str], width: int = 80) -> Path:
    """Write sequences to a FASTA file with fixed-width lines."""
    with open(path, "w") as f:
        for seqid, seq in sequences.items():
            f.write(f">{seqid}\n")
            for i in range(0, len(seq), width):
                f.write(seq[i : i + width] + "\n")
    return path


@pytest.fixture
def synthetic_fasta(tmp_path: Path) -> Path:
    """Create a synthetic FASTA file for testing.

    Creates a small genome with two sequences:
    - chr1: 1000 bp
    - chr2: 500 bp
    """
    # Generate reproducible sequences
    np.random.seed(42)

    sequences = {
        "chr1": "".join(np.random.choice(list("ACGT"), 1000)),
        "chr2": "".join(np.random.choice(list("ACGT"), 500)),
    }
    return write_fasta(tmp_path / "test_genome.fa", sequences)


@pytest.fixture
def runs_fasta(tmp_path: Path) -> Path:
    """FASTA with known homopolymers and N runs.

    - chr1: AATTTGCC then 6 G, a soft-masked run and an N block
    - chr2: ends in a run of 5 A
    """
    sequences = {
        "chr1": "AATTTGCC" + "GGGGGG" + "ACaaaaT" + "NNNNN" + "ACGT",
        "chr2": "ACGTNACAAAAA",
    }
    return write_fasta(tmp_path / "runs.fa", sequences, width=5)


# =============================================================================
# qpileup Fixtures
# =============================================================================


def view_line(
    reference: str,
    position: int,
    ref_base: str = "A",
    mapq_for: int = 0,
    mapq_rev: int = 0,
    ref_for: int = 0,
    nonref_for: int = 0,
    ref_rev: int = 0,
    nonref_rev: int = 0,
) -> str:
    """Build one 33-column view-file data line; unused columns are 0."""
    values: dict[str, object] = {name: 0 for name in EXPECTED_HEADER_FIELDS}
    values.update(
        Reference=reference,
        Position=position,
        Ref_base=ref_base,
        MapQual_for=mapq_for,
        MapQual_rev=mapq_rev,
        ReferenceNo_for=ref_for,
        NonreferenceNo_for=nonref_for,
        ReferenceNo_rev=ref_rev,
        NonreferenceNo_rev=nonref_rev,
    )
    return "\t".join(str(values[name]) for name in EXPECTED_HEADER_FIELDS)


def depth_line(reference: str, position: int, depth: int, ref_base: str = "A") -> str:
    """View line with all reads counted as forward reference reads at mapq 60."""
    return view_line(reference, position, ref_base, mapq_for=60 * depth, ref_for=depth)


def mapq_line(reference: str, position: int, mapq: int, ref_base: str = "A") -> str:
    """View line with 10 reads averaging ``mapq``."""
    return view_line(reference, position, ref_base, mapq_for=10 * mapq, ref_for=10)


@pytest.fixture
def write_view(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a view file from data lines, with the expected header."""

    def _write(name: str, lines: list[str], header: str | None = None) -> Path:
        path = tmp_path / name
        with open(path, "w") as f:
            f.write((expected_header() if header is None else header) + "\n")
            for line in lines:
                f.write(line + "\n")
        return path

    return _write


@pytest.fixture
def depth_view(write_view: Callable[..., Path]) -> Path:
    """View file for chr1 with depths [50, 50, 2, 2, 2, 60] at positions 1-6."""
    depths = [50, 50, 2, 2, 2, 60]
    lines = [depth_line("chr1", i + 1, d) for i, d in enumerate(depths)]
    return write_view("depth.txt", lines)


# =============================================================================
# GFF3 Fixtures
# =============================================================================


@pytest.fixture
def gff3_a(tmp_path: Path) -> Path:
    """First annotation set: overlapping features on chr1, one on chr2."""
    gff_path = tmp_path / "a.gff3"
    content = """\
##gff-version 3
##source-file a
chr1\tsrcA\tregion\t11\t20\t.\t+\t.\tID=a1
chr1\tsrcA\tregion\t16\t30\t.\t+\t.\tID=a2
chr1\tsrcA\tregion\t101\t110\t.\t+\t.\tID=a3
chr2\tsrcA\tregion\t1\t50\t.\t.\t.\tID=a4
"""
    gff_path.write_text(content)
    return gff_path


@pytest.fixture
def gff3_b(tmp_path: Path) -> Path:
    """Second annotation set overlapping the first on chr1."""
    gff_path = tmp_path / "b.gff3"
    content = """\
##gff-version 3
chr1\tsrcB\tregion\t26\t40\t.\t-\t.\tID=b1
chr1\tsrcB\tregion\t201\t210\t.\t-\t.\tID=b2
chr3\tsrcB\tregion\t5\t9\t.\t-\t.\tID=b3
"""
    gff_path.write_text(content)
    return gff_path


@pytest.fixture
def gene_model_gff3(tmp_path: Path) -> Path:
    """Two transcripts of one gene on chr1 plus an exon on an unplaced scaffold.

    chr1 exons: 11-30 in both transcripts, 61-100 and 51-70.
    """
    gff_path = tmp_path / "genes.gff3"
    content = """\
##gff-version 3
chr1\tens\tgene\t11\t100\t.\t+\t.\tID=g1
chr1\tens\tmRNA\t11\t100\t.\t+\t.\tID=t1;Parent=g1
chr1\tens\tfive_prime_UTR\t11\t15\t.\t+\t.\tParent=t1
chr1\tens\texon\t11\t30\t.\t+\t.\tID=e1;Parent=t1
chr1\tens\texon\t61\t100\t.\t+\t.\tID=e2;Parent=t1
chr1\tens\tmRNA\t11\t70\t.\t+\t.\tID=t2;Parent=g1
chr1\tens\texon\t11\t30\t.\t+\t.\tID=e3;Parent=t2
chr1\tens\texon\t51\t70\t.\t+\t.\tID=e4;Parent=t2
GL000192.1\tens\texon\t1\t10\t.\t+\t.\tID=e5
"""
    gff_path.write_text(content)
    return gff_path


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
