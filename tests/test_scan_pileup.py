"""Tests for regionforge.scan.pileup: low-mapq and read-depth reports."""

from pathlib import Path

import pytest

from conftest import depth_line, mapq_line, view_line
from regionforge.config import LowMapqConfig, ReadDepthConfig
from regionforge.io.pileup import PileupHeaderError
from regionforge.scan.pileup import (
    MultipleReferenceError,
    find_low_mapq_regions,
    find_read_depth_regions,
)


def feature_rows(path: Path) -> list[list[str]]:
    return [
        line.split("\t")
        for line in path.read_text().splitlines()
        if line and not line.startswith("#")
    ]


def low_depth(min_length: int = 2) -> ReadDepthConfig:
    return ReadDepthConfig(threshold=10, direction="below", min_length=min_length)


class TestReadDepth:
    """Tests for the read-depth report."""

    def test_low_depth_region(self, depth_view: Path, tmp_path: Path) -> None:
        """Three low positions form one region reported at view positions."""
        out = tmp_path / "depth.gff3"
        summary = find_read_depth_regions([depth_view], out, low_depth(min_length=3))
        (row,) = feature_rows(out)
        assert (row[0], row[3], row[4]) == ("chr1", "3", "5")
        assert row[1] == "regionforge:read-depth"
        assert row[8] == "ID=readdepth1;test=below-10;length=3;avgdepth=2"
        assert summary.regions == 1
        assert summary.lines == 6

    def test_too_short(self, depth_view: Path, tmp_path: Path) -> None:
        """Regions shorter than the minimum are dropped."""
        out = tmp_path / "depth.gff3"
        summary = find_read_depth_regions([depth_view], out, low_depth(min_length=4))
        assert summary.regions == 0
        assert feature_rows(out) == []

    def test_above_with_divisor(self, write_view, tmp_path: Path) -> None:
        """Depth is judged per BAM when several were pooled."""
        view = write_view("v.txt", [depth_line("chr1", p, d) for p, d in ((1, 50), (2, 50), (3, 2))])
        out = tmp_path / "depth.gff3"
        config = ReadDepthConfig(threshold=20, direction="above", divisor=2, min_length=2)
        find_read_depth_regions([view], out, config)
        (row,) = feature_rows(out)
        assert (row[3], row[4]) == ("1", "2")
        assert row[8] == "ID=readdepth1;test=above-20;length=2;avgdepth=25"

    def test_ambiguous_base_breaks_region(self, write_view, tmp_path: Path) -> None:
        """A reference N ends a region and is never part of one."""
        lines = [
            depth_line("chr1", 1, 2),
            depth_line("chr1", 2, 2),
            depth_line("chr1", 3, 2, ref_base="N"),
            depth_line("chr1", 4, 2),
            depth_line("chr1", 5, 2),
            depth_line("chr1", 6, 50),
        ]
        out = tmp_path / "depth.gff3"
        find_read_depth_regions([write_view("v.txt", lines)], out, low_depth())
        assert [(r[3], r[4]) for r in feature_rows(out)] == [("1", "2"), ("4", "5")]

    def test_region_open_at_end_of_file(self, write_view, tmp_path: Path) -> None:
        """A region still open at end of file ends at the last position seen."""
        lines = [depth_line("chr1", p, d) for p, d in ((1, 50), (2, 2), (3, 2), (4, 2))]
        out = tmp_path / "depth.gff3"
        find_read_depth_regions([write_view("v.txt", lines)], out, low_depth())
        rows = feature_rows(out)
        assert [(r[3], r[4]) for r in rows] == [("2", "3")]
        assert rows[0][8].endswith(";length=2;avgdepth=2")

    def test_direction_required(self, depth_view: Path, tmp_path: Path) -> None:
        """A scan without above or below is refused before anything is written."""
        out = tmp_path / "depth.gff3"
        with pytest.raises(ValueError, match="direction"):
            find_read_depth_regions([depth_view], out, ReadDepthConfig(threshold=10))
        assert not out.exists()

    def test_headers(self, depth_view: Path, tmp_path: Path) -> None:
        """The header names the settings and every view file."""
        out = tmp_path / "depth.gff3"
        find_read_depth_regions([depth_view], out, low_depth())
        text = out.read_text()
        assert "##bam-count 1\n" in text
        assert f"##qpileup-view-file {depth_view}\n" in text


class TestLowMapq:
    """Tests for the low mapping quality report."""

    def test_region_and_tally(self, write_view, tmp_path: Path) -> None:
        """Low positions form a region; every position is tallied."""
        lines = [mapq_line("chr1", p, q) for p, q in ((1, 60), (2, 5), (3, 5), (4, 60))]
        out = tmp_path / "mapq.gff3"
        summary, tally = find_low_mapq_regions(
            [write_view("v.txt", lines)], out, LowMapqConfig(threshold=10, min_length=2)
        )
        (row,) = feature_rows(out)
        assert (row[3], row[4]) == ("2", "3")
        assert row[8] == "ID=lowmapq1;length=2;avgmapq=5"
        assert summary.regions == 1
        assert list(tally.items()) == [(5, 2), (60, 2)]

    def test_zero_depth_counts_as_low(self, write_view, tmp_path: Path) -> None:
        """Positions without reads have mapq 0."""
        lines = [view_line("chr1", 1), view_line("chr1", 2), mapq_line("chr1", 3, 60)]
        out = tmp_path / "mapq.gff3"
        find_low_mapq_regions(
            [write_view("v.txt", lines)], out, LowMapqConfig(threshold=10, min_length=2)
        )
        assert [(r[3], r[4]) for r in feature_rows(out)] == [("1", "2")]

    def test_ids_numbered_across_files(self, write_view, tmp_path: Path) -> None:
        """Region numbers continue from one view file to the next."""
        lines = [mapq_line("chr1", 1, 0), mapq_line("chr1", 2, 0), mapq_line("chr1", 3, 60)]
        first = write_view("a.txt", lines)
        second = write_view("b.txt", [line.replace("chr1", "chr2") for line in lines])
        out = tmp_path / "mapq.gff3"
        summary, _ = find_low_mapq_regions(
            [first, second], out, LowMapqConfig(threshold=10, min_length=2)
        )
        ids = [r[8].split(";")[0] for r in feature_rows(out)]
        assert ids == ["ID=lowmapq1", "ID=lowmapq2"]
        assert summary.files == 2

    def test_short_lines_summarized(self, write_view, tmp_path: Path) -> None:
        """Short lines are skipped and counted."""
        lines = [mapq_line("chr1", 1, 60), "chr1\t2\tA", mapq_line("chr1", 3, 60)]
        out = tmp_path / "mapq.gff3"
        summary, _ = find_low_mapq_regions([write_view("v.txt", lines)], out)
        assert summary.short_lines == 1
        assert summary.lines == 3

    def test_multiple_references(self, write_view, tmp_path: Path) -> None:
        """A file holding two references is rejected."""
        lines = [mapq_line("chr1", 1, 0), mapq_line("chr2", 2, 0)]
        with pytest.raises(MultipleReferenceError, match="multiple references"):
            find_low_mapq_regions([write_view("v.txt", lines)], tmp_path / "out.gff3")

    def test_header_checked_before_scanning(self, write_view, tmp_path: Path) -> None:
        """A bad header anywhere stops the run before output is written."""
        good = write_view("good.txt", [mapq_line("chr1", 1, 0)])
        bad = write_view("bad.txt", [], header="## Reference\tPosition")
        out = tmp_path / "out.gff3"
        with pytest.raises(PileupHeaderError):
            find_low_mapq_regions([good, bad], out)
        assert not out.exists()
