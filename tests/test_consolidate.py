"""Unit tests for regionforge.core.consolidate."""

import pytest

from regionforge.core.consolidate import consolidate, consolidate_features
from regionforge.core.intervals import (
    Interval,
    IntervalCollection,
    IntervalSet,
    OrderingError,
    UnsortedCollectionError,
)


def collection(*spans: tuple[int, int], **kwargs) -> IntervalCollection:
    coll = IntervalCollection("chr1", [Interval("chr1", s, e, **kwargs) for s, e in spans])
    coll.sort()
    return coll


def spans(coll: IntervalCollection) -> list[tuple[int, int]]:
    return [(iv.start, iv.end) for iv in coll]


class TestConsolidate:
    """Tests for simple merging of a sorted collection."""

    def test_empty(self) -> None:
        """An empty collection needs no merges."""
        assert consolidate(IntervalCollection("chr1")) == 0

    def test_unsorted_rejected(self) -> None:
        """The sorted flag is a precondition."""
        coll = IntervalCollection("chr1", [Interval("chr1", 0, 5)])
        with pytest.raises(UnsortedCollectionError):
            consolidate(coll)

    def test_overlapping_chain(self) -> None:
        """A chain of overlaps collapses into one interval."""
        coll = collection((0, 10), (5, 15), (12, 30), (40, 50))
        assert consolidate(coll) == 2
        assert spans(coll) == [(0, 30), (40, 50)]

    def test_contained_and_equal(self) -> None:
        """Contained and equal intervals are absorbed."""
        coll = collection((0, 100), (10, 20), (10, 20), (0, 100))
        assert consolidate(coll) == 3
        assert spans(coll) == [(0, 100)]

    def test_meeting_kept_apart_by_default(self) -> None:
        """Adjacent intervals stay distinct."""
        coll = collection((0, 10), (10, 20))
        assert consolidate(coll) == 0
        assert spans(coll) == [(0, 10), (10, 20)]

    def test_meeting_merged_when_asked(self) -> None:
        """merge_adjacent joins intervals that meet."""
        coll = collection((0, 10), (10, 20))
        assert consolidate(coll, merge_adjacent=True) == 1
        assert spans(coll) == [(0, 20)]

    def test_idempotent(self) -> None:
        """A second consolidation changes nothing."""
        coll = collection((0, 10), (5, 15), (20, 30), (25, 26), (29, 40))
        consolidate(coll)
        first = spans(coll)
        assert consolidate(coll) == 0
        assert spans(coll) == first

    def test_output_sorted_and_disjoint(self) -> None:
        """Result is sorted and has no overlaps."""
        coll = collection((3, 9), (0, 4), (8, 12), (20, 22), (21, 25), (30, 31))
        consolidate(coll)
        assert coll.sorted
        result = spans(coll)
        assert result == sorted(result)
        for (_, end), (start, _) in zip(result, result[1:]):
            assert end <= start

    def test_category_survives_when_equal(self) -> None:
        """Merged intervals keep a shared category."""
        coll = collection((0, 10), (5, 15), category="repeat")
        consolidate(coll)
        assert coll[0].category == "repeat"

    def test_disordered_flag_raises_ordering_error(self) -> None:
        """An interval that starts before its keeper is reported."""
        coll = IntervalCollection(
            "chr1",
            [Interval("chr1", 50, 60), Interval("chr1", 10, 20)],
            sorted=True,
        )
        with pytest.raises(OrderingError, match="chr1"):
            consolidate(coll)


class TestConsolidateFeatures:
    """Tests for pruning a set to one feature type before merging."""

    def test_exons_from_several_transcripts(self) -> None:
        """Duplicate and overlapping exons collapse; other types are dropped."""
        iset = IntervalSet.from_intervals(
            [
                Interval("chr1", 10, 100, category="gene"),
                Interval("chr1", 60, 100, category="exon"),
                Interval("chr1", 10, 30, category="exon"),
                Interval("chr1", 10, 30, category="exon"),
                Interval("chr1", 50, 70, category="exon"),
                Interval("chr2", 0, 50, category="mRNA"),
            ]
        )
        assert consolidate_features(iset) == 2
        assert iset.seqids == ["chr1"]
        assert spans(iset["chr1"]) == [(10, 30), (50, 100)]
        assert all(iv.category == "exon" for iv in iset["chr1"])

    def test_other_types(self) -> None:
        """Any set of exact types can be kept."""
        iset = IntervalSet.from_intervals(
            [
                Interval("chr1", 0, 10, category="CDS"),
                Interval("chr1", 5, 20, category="exon"),
                Interval("chr1", 30, 40, category="CDS_like"),
            ]
        )
        assert consolidate_features(iset, ["CDS"]) == 0
        assert spans(iset["chr1"]) == [(0, 10)]
