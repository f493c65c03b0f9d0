"""Unit tests for regionforge.core.selector."""

import pytest

from regionforge.core.intervals import Interval, IntervalSet
from regionforge.core.selector import (
    Operation,
    SelectorError,
    apply_selector,
    apply_selectors,
    keep_types,
    parse_selector,
    parse_selectors,
)


@pytest.fixture
def annotations() -> IntervalSet:
    """Genes on two chromosomes and an unplaced scaffold."""
    return IntervalSet.from_intervals(
        [
            Interval("chr1", 0, 100, category="gene"),
            Interval("chr1", 0, 10, category="five_prime_UTR"),
            Interval("chr1", 10, 90, category="exon"),
            Interval("chr1", 90, 100, category="three_prime_UTR"),
            Interval("chr2", 0, 50, category="exon"),
            Interval("GL000192.1", 0, 20, category="exon"),
        ]
    )


def categories(iset: IntervalSet) -> list[tuple[str, str | None]]:
    return [(iv.seqid, iv.category) for iv in iset.intervals()]


class TestParseSelector:
    """Tests for parsing operation:subject:pattern strings."""

    def test_parse(self) -> None:
        """The three parts are split and the pattern compiled."""
        selector = parse_selector("keep:seqid:^GL")
        assert selector.operation is Operation.KEEP
        assert selector.subject == "seqid"
        assert selector.pattern.pattern == "^GL"
        assert str(selector) == "keep:seqid:^GL"

    @pytest.mark.parametrize(
        "text",
        ["keep:seqid", "keep:seqid:^GL:extra", "keep::^GL", "delete:type:"],
    )
    def test_malformed(self, text: str) -> None:
        """Anything other than three non-empty parts is rejected."""
        with pytest.raises(SelectorError, match="Invalid selector"):
            parse_selector(text)

    def test_unknown_operation(self) -> None:
        """Only keep and delete are operations."""
        with pytest.raises(SelectorError, match="operation"):
            parse_selector("drop:seqid:^GL")

    def test_unknown_subject(self) -> None:
        """Only seqid and type can be tested."""
        with pytest.raises(SelectorError, match="subject"):
            parse_selector("keep:source:ens")

    def test_bad_pattern(self) -> None:
        """An invalid regular expression is reported."""
        with pytest.raises(SelectorError, match="Invalid pattern"):
            parse_selector("keep:seqid:(")

    def test_selector_error_is_value_error(self) -> None:
        """Callers can treat selector errors as bad values."""
        with pytest.raises(ValueError):
            parse_selectors(["keep:seqid:^chr", "nonsense"])


class TestApplySelector:
    """Tests for dropping intervals with selectors."""

    def test_keep_drops_non_matching(self, annotations: IntervalSet) -> None:
        """Keep drops everything whose subject does not match."""
        dropped = apply_selector(annotations, parse_selector("keep:seqid:^chr"))
        assert dropped == 1
        assert annotations.seqids == ["chr1", "chr2"]

    def test_delete_drops_matching(self, annotations: IntervalSet) -> None:
        """Delete drops everything whose subject matches anywhere."""
        dropped = apply_selector(annotations, parse_selector("delete:type:_UTR"))
        assert dropped == 2
        assert ("chr1", "five_prime_UTR") not in categories(annotations)
        assert len(annotations["chr1"]) == 2

    def test_applied_in_order(self, annotations: IntervalSet) -> None:
        """Selectors compound, each working on what the last one kept."""
        dropped = apply_selectors(
            annotations, parse_selectors(["keep:type:^exon$", "delete:seqid:^GL"])
        )
        assert dropped == 4
        assert categories(annotations) == [("chr1", "exon"), ("chr2", "exon")]

    def test_missing_type_is_empty(self) -> None:
        """Intervals without a type only match patterns that accept an empty string."""
        iset = IntervalSet.from_intervals([Interval("chr1", 0, 10)])
        assert apply_selector(iset, parse_selector("delete:type:.")) == 0
        assert apply_selector(iset, parse_selector("keep:type:^$")) == 0
        assert iset.feature_count == 1

    def test_sorted_flag_kept(self) -> None:
        """Dropping intervals leaves the order and sorted flag alone."""
        iset = IntervalSet.from_intervals(
            [Interval("chr1", 0, 10, category="a"), Interval("chr1", 5, 15, category="b")]
        )
        iset.sort()
        apply_selector(iset, parse_selector("delete:type:^a$"))
        assert iset["chr1"].sorted is True

    def test_keep_types_is_exact(self, annotations: IntervalSet) -> None:
        """Types are compared whole, not searched."""
        keep_types(annotations, ["UTR", "exon"])
        assert {category for _, category in categories(annotations)} == {"exon"}
