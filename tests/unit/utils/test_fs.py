"""Tests for filesystem utilities module."""

import errno
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from docgate.utils.fs import (
    clear_directory,
    directory_age,
    ensure_directory,
    format_size,
    is_within,
    move_to_unique_path,
    remove_tree,
)


class TestEnsureDirectory:
    """Tests for ensure_directory function."""

    def test_creates_nested_directories(self, tmp_path):
        """Test creating nested directories."""
        nested_dir = tmp_path / "level1" / "level2"
        assert ensure_directory(nested_dir) == nested_dir
        assert nested_dir.is_dir()

    def test_existing_directory(self, tmp_path):
        """Test with existing directory."""
        assert ensure_directory(tmp_path) == tmp_path


class TestIsWithin:
    """Tests for is_within function."""

    def test_child_and_root(self, tmp_path):
        """Test the root itself and its children are contained."""
        assert is_within(tmp_path, tmp_path)
        assert is_within(tmp_path / "a" / "b.docx", tmp_path)

    def test_traversal_escapes(self, tmp_path):
        """Test ``..`` segments are resolved before comparing."""
        assert not is_within(tmp_path / ".." / "elsewhere", tmp_path)

    def test_sibling_with_common_prefix(self, tmp_path):
        """Test a sibling sharing a name prefix is not contained."""
        assert not is_within(tmp_path.parent / f"{tmp_path.name}-other", tmp_path)

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlink_escape(self, tmp_path):
        """Test a symlink pointing outside is not contained."""
        root = tmp_path / "root"
        outside = tmp_path / "outside"
        root.mkdir()
        outside.mkdir()
        (root / "link").symlink_to(outside, target_is_directory=True)

        assert not is_within(root / "link" / "file", root)


class TestMoveToUniquePath:
    """Tests for move_to_unique_path function."""

    def test_move_creates_parent(self, tmp_path):
        """Test moving into a directory that does not exist yet."""
        src = tmp_path / "src.pdf"
        src.write_bytes(b"pdf")
        dst = tmp_path / "results" / "dst.pdf"

        assert move_to_unique_path(src, dst) == dst
        assert dst.read_bytes() == b"pdf"
        assert not src.exists()

    def test_counter_increments(self, tmp_path):
        """Test existing files are kept and the counter skips past them."""
        (tmp_path / "report.pdf").write_text("0")
        (tmp_path / "report_1.pdf").write_text("1")
        src = tmp_path / "src.pdf"
        src.write_text("new")

        result = move_to_unique_path(src, tmp_path / "report.pdf")

        assert result == tmp_path / "report_2.pdf"
        assert result.read_text() == "new"
        assert (tmp_path / "report.pdf").read_text() == "0"
        assert (tmp_path / "report_1.pdf").read_text() == "1"

    def test_concurrent_movers_get_distinct_files(self, tmp_path):
        """Test many threads moving to the same name never share a destination."""
        results = tmp_path / "results"
        sources = []
        for i in range(40):
            src = tmp_path / f"src-{i}" / "report.pdf"
            src.parent.mkdir()
            src.write_text(f"doc {i}")
            sources.append(src)

        with ThreadPoolExecutor(max_workers=16) as pool:
            target = results / "report.pdf"
            moved = list(pool.map(lambda src: move_to_unique_path(src, target), sources))

        assert len(set(moved)) == 40
        assert len(list(results.iterdir())) == 40
        for i, path in enumerate(moved):
            assert path.read_text() == f"doc {i}"

    def test_copy_fallback_without_hard_links(self, tmp_path, monkeypatch):
        """Test a filesystem refusing hard links still gets an exclusive copy."""

        def no_links(src, dst):
            raise OSError(errno.EXDEV, "Invalid cross-device link")

        monkeypatch.setattr(os, "link", no_links)
        (tmp_path / "report.pdf").write_bytes(b"earlier")
        src = tmp_path / "src.pdf"
        src.write_bytes(b"later")

        result = move_to_unique_path(src, tmp_path / "report.pdf")

        assert result == tmp_path / "report_1.pdf"
        assert result.read_bytes() == b"later"
        assert (tmp_path / "report.pdf").read_bytes() == b"earlier"
        assert not src.exists()

    def test_missing_source_leaves_nothing_behind(self, tmp_path):
        """Test a failed move does not claim the destination name."""
        dst = tmp_path / "results" / "report.pdf"

        with pytest.raises(FileNotFoundError):
            move_to_unique_path(tmp_path / "missing.pdf", dst)
        assert not dst.exists()


class TestRemoveTree:
    """Tests for remove_tree function."""

    def test_removes_tree(self, tmp_path):
        """Test nested content is removed."""
        tree = tmp_path / "tree"
        (tree / "a" / "b").mkdir(parents=True)
        (tree / "a" / "b" / "file.txt").write_text("x")

        assert remove_tree(tree) is True
        assert not tree.exists()

    def test_missing_path(self, tmp_path):
        """Test a missing path is not an error."""
        assert remove_tree(tmp_path / "missing") is False


class TestClearDirectory:
    """Tests for clear_directory function."""

    def test_empties_but_keeps_directory(self, tmp_path):
        """Test files and subdirectories are removed."""
        (tmp_path / "stale.pdf").write_bytes(b"x")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "inner.pdf").write_bytes(b"x")

        assert clear_directory(tmp_path) == 2
        assert tmp_path.is_dir()
        assert list(tmp_path.iterdir()) == []

    def test_missing_directory(self, tmp_path):
        """Test clearing a directory that does not exist."""
        assert clear_directory(tmp_path / "missing") == 0


class TestDirectoryAge:
    """Tests for directory_age function."""

    def test_age_from_mtime(self, tmp_path):
        """Test age is measured from the modification time."""
        past = time.time() - 100
        os.utime(tmp_path, (past, past))

        assert 99 <= directory_age(tmp_path, time.time()) < 110


class TestFormatSize:
    """Tests for format_size function."""

    def test_bytes(self):
        """Test formatting bytes."""
        assert format_size(500) == "500.0 B"

    def test_kilobytes(self):
        """Test formatting kilobytes."""
        assert format_size(1024) == "1.0 KB"

    def test_megabytes(self):
        """Test formatting megabytes."""
        assert format_size(1024 * 1024 * 5) == "5.0 MB"
