"""Unit tests for regionforge.io.files."""

import gzip
import hashlib
import logging
from pathlib import Path

from regionforge.io.files import consolidate_file_list, is_gzipped, md5sum, open_text


class TestOpenText:
    """Tests for gzip-aware text opening."""

    def test_suffix_detection(self) -> None:
        """Either case of .gz marks a compressed file."""
        assert is_gzipped("a.txt.gz")
        assert is_gzipped(Path("a.txt.GZ"))
        assert not is_gzipped("a.gz.txt")

    def test_plain(self, tmp_path: Path) -> None:
        """Plain files are read as text."""
        path = tmp_path / "a.txt"
        path.write_text("one\ntwo\n")
        with open_text(path) as f:
            assert f.read() == "one\ntwo\n"

    def test_gzipped(self, tmp_path: Path) -> None:
        """Compressed files are decompressed."""
        path = tmp_path / "a.txt.gz"
        with gzip.open(path, "wt") as f:
            f.write("one\ntwo\n")
        with open_text(path) as f:
            assert [line.rstrip("\n") for line in f] == ["one", "two"]


class TestMd5sum:
    """Tests for file checksums."""

    def test_digest(self, tmp_path: Path) -> None:
        """Digest matches hashlib over the bytes."""
        path = tmp_path / "a.txt"
        path.write_bytes(b"regionforge")
        assert md5sum(path) == hashlib.md5(b"regionforge").hexdigest()


class TestConsolidateFileList:
    """Tests for combining list files and explicit files."""

    def test_list_file_first(self, tmp_path: Path) -> None:
        """Files from the list come before explicit ones."""
        a, b, c = (tmp_path / n for n in ("a", "b", "c"))
        for p in (a, b, c):
            p.write_text("")
        listing = tmp_path / "list.txt"
        listing.write_text(f"{b}\n\n{a}\n")
        assert consolidate_file_list(listing, [c]) == [b, a, c]

    def test_duplicates_dropped(self, tmp_path: Path, caplog) -> None:
        """Repeated files are processed once, with a warning."""
        a = tmp_path / "a"
        a.write_text("")
        with caplog.at_level(logging.WARNING):
            assert consolidate_file_list(None, [a, a]) == [a]
        assert "Duplicate" in caplog.text

    def test_missing_dropped(self, tmp_path: Path, caplog) -> None:
        """Missing files are skipped with a warning."""
        a = tmp_path / "a"
        a.write_text("")
        with caplog.at_level(logging.WARNING):
            result = consolidate_file_list(None, [a, tmp_path / "missing"])
        assert result == [a]
        assert "not found" in caplog.text

    def test_missing_kept_when_not_required(self, tmp_path: Path) -> None:
        """Existence checks can be turned off."""
        missing = tmp_path / "missing"
        assert consolidate_file_list(None, [missing], require_exists=False) == [missing]
