"""Unit tests for regionforge.io.gff module.

Tests cover:
- Attribute parsing and formatting
- GFF3Reader parsing, header capture and short-line handling
- GFF3Writer output generation and provenance headers
- Coordinate conversion (1-based GFF3 to 0-based internal)
"""

from pathlib import Path

import pytest

from regionforge.core.intervals import Interval
from regionforge.io.gff import (
    GFF3ParseError,
    GFF3Reader,
    GFF3Writer,
    format_attributes,
    format_gff_line,
    parse_attributes,
    provenance_headers,
    read_gff,
    versioned_headers,
    write_gff,
)


# =============================================================================
# Utility Function Tests
# =============================================================================


class TestParseAttributes:
    """Tests for attribute string parsing."""

    def test_simple_attributes(self) -> None:
        """Test parsing simple attribute string."""
        attrs = parse_attributes("ID=gene1;Name=TestGene")

        assert attrs["ID"] == "gene1"
        assert attrs["Name"] == "TestGene"

    def test_url_encoded_attributes(self) -> None:
        """Test parsing URL-encoded attributes."""
        attrs = parse_attributes("ID=gene1;Note=A%3Bgene")

        assert attrs["Note"] == "A;gene"

    def test_order_preserved(self) -> None:
        """Attributes keep their file order."""
        attrs = parse_attributes("b=2;a=1;c=3")
        assert list(attrs) == ["b", "a", "c"]

    def test_empty_string(self) -> None:
        """Test parsing empty attribute string."""
        assert parse_attributes("") == {}
        assert parse_attributes(".") == {}


class TestFormatAttributes:
    """Tests for attribute formatting."""

    def test_simple_format(self) -> None:
        """Test formatting simple attributes."""
        result = format_attributes({"ID": "gene1", "Name": "TestGene"})
        assert result == "ID=gene1;Name=TestGene"

    def test_special_characters_encoded(self) -> None:
        """Reserved characters are escaped."""
        assert format_attributes({"Note": "a;b=c"}) == "Note=a%3Bb%3Dc"

    def test_empty(self) -> None:
        """No attributes format as a dot."""
        assert format_attributes({}) == "."


class TestHeaders:
    """Tests for header helpers."""

    def test_versioned_headers(self) -> None:
        """Header keys gain a suffix; non-headers are dropped."""
        tagged = versioned_headers(["##gff-version 3", "##content x y", "# note"], "1")
        assert tagged == ["##gff-version-1 3", "##content-1 x y"]

    def test_provenance_headers(self) -> None:
        """Provenance lines record the run."""
        headers = provenance_headers(["regionforge", "gff3", "stats"])
        keys = [h.split(" ", 1)[0] for h in headers]
        assert keys == [
            "##uuid",
            "##version",
            "##creation-date",
            "##created-by-user",
            "##created-on",
            "##invocation",
        ]
        assert headers[-1] == "##invocation regionforge gff3 stats"


# =============================================================================
# Reader Tests
# =============================================================================


class TestGFF3Reader:
    """Tests for reading GFF3 files."""

    def test_coordinates_converted(self, gff3_a: Path) -> None:
        """GFF3 start 11, end 20 becomes [10, 20)."""
        first = next(iter(GFF3Reader(gff3_a)))
        assert (first.seqid, first.start, first.end) == ("chr1", 10, 20)
        assert first.category == "region"
        assert first.attributes == {"ID": "a1"}

    def test_read_groups_by_sequence(self, gff3_a: Path) -> None:
        """read() builds per-sequence collections."""
        iset = read_gff(gff3_a)
        assert iset.seqids == ["chr1", "chr2"]
        assert len(iset["chr1"]) == 3

    def test_headers_captured(self, gff3_a: Path) -> None:
        """## lines are kept for later use."""
        reader = GFF3Reader(gff3_a)
        list(reader)
        assert reader.headers == ["##gff-version 3", "##source-file a"]

    def test_short_lines_skipped_and_counted(self, tmp_path: Path) -> None:
        """Lines with too few columns are skipped."""
        path = tmp_path / "short.gff3"
        path.write_text("##gff-version 3\nchr1\tx\tregion\t1\t10\nchr1\tx\tregion\t1\t10\t.\t.\t.\t.\n")
        reader = GFF3Reader(path)
        features = list(reader)
        assert len(features) == 1
        assert reader.stats.short_lines == 1

    def test_bad_coordinate_is_fatal(self, tmp_path: Path) -> None:
        """A non-integer start stops the read."""
        path = tmp_path / "bad.gff3"
        path.write_text("chr1\tx\tregion\tone\t10\t.\t.\t.\t.\n")
        with pytest.raises(GFF3ParseError, match="invalid coordinates"):
            list(GFF3Reader(path))

    def test_score_parsed(self, tmp_path: Path) -> None:
        """Numeric scores are read; a dot is missing."""
        path = tmp_path / "score.gff3"
        path.write_text(
            "chr1\tx\tregion\t1\t10\t2.5\t.\t.\t.\nchr1\tx\t.\t20\t30\t.\t.\t.\t.\n"
        )
        first, second = list(GFF3Reader(path))
        assert first.score == 2.5
        assert second.score is None
        assert second.category is None

    def test_fasta_section_ends_features(self, tmp_path: Path) -> None:
        """Embedded sequences are not parsed as features."""
        path = tmp_path / "fasta.gff3"
        path.write_text("chr1\tx\tregion\t1\t10\t.\t.\t.\t.\n##FASTA\n>chr1\nACGT\n")
        assert len(list(GFF3Reader(path))) == 1

    def test_gzipped(self, tmp_path: Path) -> None:
        """Compressed files are read transparently."""
        import gzip

        path = tmp_path / "a.gff3.gz"
        with gzip.open(path, "wt") as f:
            f.write("chr1\tx\tregion\t1\t10\t.\t.\t.\t.\n")
        assert len(list(GFF3Reader(path))) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that missing file raises error."""
        with pytest.raises(FileNotFoundError):
            GFF3Reader(tmp_path / "nope.gff3")


# =============================================================================
# Writer Tests
# =============================================================================


class TestGFF3Writer:
    """Tests for writing GFF3 files."""

    def test_format_line(self) -> None:
        """Feature lines use 1-based inclusive coordinates."""
        line = format_gff_line("chr1", "src", "remark", 0, 10, attributes={"ID": "r1"})
        assert line == "chr1\tsrc\tremark\t1\t10\t.\t.\t.\tID=r1"

    def test_header_then_features(self, tmp_path: Path) -> None:
        """The version line comes first, then extras, then provenance."""
        path = tmp_path / "out.gff3"
        with GFF3Writer(path, source="test") as writer:
            writer.write_header(["##content test"], invocation=["regionforge"])
            writer.write(Interval("chr1", 4, 9, category="remark", score=3.0))
        lines = path.read_text().splitlines()
        assert lines[0] == "##gff-version 3"
        assert lines[1] == "##content test"
        assert lines[-1] == "chr1\ttest\tremark\t5\t9\t3\t.\t.\t."
        assert writer.count == 1

    def test_header_written_on_first_feature(self, tmp_path: Path) -> None:
        """Writing without a header still produces a valid file."""
        path = tmp_path / "out.gff3"
        with GFF3Writer(path) as writer:
            writer.write(Interval("chr1", 0, 1))
        assert path.read_text().startswith("##gff-version 3\n")

    def test_round_trip(self, gff3_a: Path, tmp_path: Path) -> None:
        """Reading back written intervals gives the same extents."""
        iset = read_gff(gff3_a)
        out = tmp_path / "copy.gff3"
        assert write_gff(iset.intervals(), out) == 4
        again = read_gff(out)
        assert [(iv.start, iv.end) for iv in again.intervals()] == [
            (iv.start, iv.end) for iv in iset.intervals()
        ]

    def test_closed_writer(self, tmp_path: Path) -> None:
        """Writing after close is an error."""
        writer = GFF3Writer(tmp_path / "out.gff3")
        writer.close()
        with pytest.raises(ValueError):
            writer.write(Interval("chr1", 0, 1))
