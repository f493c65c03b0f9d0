"""FASTA file handling for genome scans.

This module gives windowed, forward-only access to genome sequences
stored in FASTA format, using pyfaidx for indexed reads.

Features:
    - Streaming of ``(seqid, position, base)`` records in bounded windows
    - A terminal record per sequence so open runs close at its length
    - Whole-sequence loading for pattern searches

Example:
    >>> from regionforge.io.fasta import GenomeReader
    >>> with GenomeReader("genome.fa") as genome:
    ...     for seqid, position, base in genome.iter_bases():
    ...         pass
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

import pyfaidx

from regionforge.core.runs import SEQUENCE_END, Record

logger = logging.getLogger(__name__)

# Bases read from disk at a time while streaming a sequence
DEFAULT_WINDOW = 1 << 20


class GenomeReader:
    """Indexed FASTA access using pyfaidx.

    Attributes:
        path: Path to the FASTA file.
        window: Bases fetched per read while streaming.

    Example:
        >>> genome = GenomeReader("genome.fa")
        >>> genome.sequence_lengths["chr1"]
        248956422
    """

    def __init__(self, fasta_path: Path | str, window: int = DEFAULT_WINDOW) -> None:
        """Initialize the reader.

        Args:
            fasta_path: Path to FASTA file. A .fai index is created if needed.
            window: Bases fetched per read while streaming.

        Raises:
            FileNotFoundError: If FASTA file doesn't exist.
        """
        self.path = Path(fasta_path)
        if not self.path.exists():
            raise FileNotFoundError(f"FASTA file not found: {self.path}")
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.window = window

        # Preserve case: soft-masked bases are distinct homopolymer values
        self._fasta: pyfaidx.Fasta | None = pyfaidx.Fasta(
            str(self.path),
            sequence_always_upper=False,
            rebuild=False,
        )
        self._order = list(self._fasta.keys())
        self._lengths = {seqid: len(self._fasta[seqid]) for seqid in self._order}

        logger.info(
            f"Opened FASTA: {self.path.name}, "
            f"{len(self._order)} sequences, "
            f"{self.total_length:,} bp total"
        )

    @property
    def sequence_lengths(self) -> dict[str, int]:
        """Return {seqid: length} mapping."""
        return self._lengths.copy()

    @property
    def sequence_order(self) -> list[str]:
        """Sequence names in file order."""
        return self._order.copy()

    @property
    def total_length(self) -> int:
        return sum(self._lengths.values())

    def __enter__(self) -> GenomeReader:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the FASTA file."""
        if self._fasta is not None:
            self._fasta.close()
            self._fasta = None

    def _handle(self) -> pyfaidx.Fasta:
        if self._fasta is None:
            raise RuntimeError("FASTA file not opened")
        return self._fasta

    def get_sequence(self, seqid: str, start: int = 0, end: int | None = None) -> str:
        """Get sequence for a region (0-based, half-open coordinates).

        Raises:
            KeyError: If seqid not in FASTA.
        """
        if seqid not in self._lengths:
            raise KeyError(f"Unknown sequence: {seqid}")
        if end is None:
            end = self._lengths[seqid]
        return str(self._handle()[seqid][start:end])

    def iter_windows(self, seqid: str) -> Iterator[tuple[int, str]]:
        """Yield ``(offset, chunk)`` pairs covering one sequence in order."""
        length = self._lengths[seqid]
        for offset in range(0, length, self.window):
            yield offset, self.get_sequence(seqid, offset, min(offset + self.window, length))

    def iter_bases(self) -> Iterator[Record]:
        """Stream every base of every sequence as a run-detector record.

        Each sequence ends with a ``SEQUENCE_END`` record at position
        ``len(sequence)``, which closes any open run at the sequence end.

        Yields:
            ``(seqid, position, base)`` tuples, 0-based.
        """
        for seqid in self._order:
            logger.debug(f"Scanning {seqid} ({self._lengths[seqid]:,} bp)")
            for offset, chunk in self.iter_windows(seqid):
                for i, base in enumerate(chunk):
                    yield seqid, offset + i, base
            yield seqid, self._lengths[seqid], SEQUENCE_END

    def load_sequences(self) -> dict[str, str]:
        """Read every sequence into memory, keyed by seqid in file order."""
        return {seqid: self.get_sequence(seqid) for seqid in self._order}

    def __contains__(self, seqid: str) -> bool:
        return seqid in self._lengths

    def __len__(self) -> int:
        return len(self._order)
