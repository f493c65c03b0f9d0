"""RegionForge: interval algebra and run detection for genome annotations.

RegionForge merges GFF3 annotation sets using Allen interval
relationships and scans genomes and qpileup reports for runs such as
homopolymers, N regions, low mapping quality and unusual read depth.

Example:
    >>> import regionforge
    >>> regionforge.__version__
    '0.1.0'

Modules:
    core: Interval model, consolidation, prudent merging, run detection
    scan: Genome, pileup and motif scans built on the core
    io: GFF3, FASTA and qpileup view file handling
    stats: Tallies and per-sequence summaries
    utils: Logging
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
