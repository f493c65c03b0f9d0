"""Whole-file scans built on the run detector and pattern search.

- sequence: homopolymers and ambiguous-base regions in a genome
- pileup: low mapping quality and abnormal read depth in qpileup views
- motif: concurrent regular-expression search over a genome
"""

from regionforge.scan.motif import search_patterns, write_motif_report
from regionforge.scan.pileup import (
    MultipleReferenceError,
    PileupScanSummary,
    find_low_mapq_regions,
    find_read_depth_regions,
)
from regionforge.scan.sequence import find_homopolymers, find_n_regions, homopolymer_stats

__all__: list[str] = [
    "find_homopolymers",
    "find_n_regions",
    "homopolymer_stats",
    "find_low_mapq_regions",
    "find_read_depth_regions",
    "MultipleReferenceError",
    "PileupScanSummary",
    "search_patterns",
    "write_motif_report",
]
