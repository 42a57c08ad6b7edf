"""
Tests for cp, ls, ls -d and pwd.
"""

import io
import os

import pytest

from pipeshell.commands.files import (
    copy, copy_file, copy_glob, copy_to_dir, cp_filter, ls, ls_d, ls_d_filter,
    ls_filter, pwd_filter
)
from pipeshell.core.exceptions import PathNotFoundError


def lines(*entries):
    return "".join(entry + os.linesep for entry in entries)


class TestCopy:
    """Test file copying."""

    def test_cp_filter_copies_bytes(self):
        data = bytes(range(256))
        sink = io.BytesIO()

        assert cp_filter().execute(io.BytesIO(data), sink) == 256
        assert sink.getvalue() == data

    def test_copy_file(self, glob_tree, shell_context):
        assert copy_file("D/file1", "copy", shell_context) == 4
        assert (glob_tree / "copy").read_text() == "one\n"

    def test_copy_file_missing_source(self, shell_context):
        with pytest.raises(PathNotFoundError):
            copy_file("missing", "copy", shell_context)

    def test_copy_file_directory_source(self, glob_tree, shell_context):
        with pytest.raises(PathNotFoundError):
            copy_file("D/dir1", "copy", shell_context)

    def test_copy_to_dir(self, glob_tree, shell_context):
        (glob_tree / "out").mkdir()
        copy_to_dir("D/file2", "out", shell_context)
        assert (glob_tree / "out" / "file2").read_text() == "two\n"

    def test_copy_single_into_directory(self, glob_tree, shell_context):
        (glob_tree / "out").mkdir()
        copy(["D/file1"], "out", shell_context)
        assert (glob_tree / "out" / "file1").exists()

    def test_copy_many_into_directory(self, glob_tree, shell_context):
        (glob_tree / "out").mkdir()
        total = copy(["D/file1", "D/file2"], "out", shell_context)
        assert total == 8
        assert sorted(os.listdir(glob_tree / "out")) == ["file1", "file2"]

    def test_copy_many_requires_directory(self, glob_tree, shell_context):
        with pytest.raises(PathNotFoundError, match="Directory not found"):
            copy(["D/file1", "D/file2"], "nowhere", shell_context)

    def test_copy_glob(self, glob_tree, shell_context):
        (glob_tree / "out").mkdir()
        copy_glob("D/file*", "out", shell_context)
        assert sorted(os.listdir(glob_tree / "out")) == ["file1", "file2"]


class TestList:
    """Test directory listings."""

    def test_ls_directory_sorted(self, glob_tree, shell_context):
        sink = io.StringIO()
        ls(["D"], sink, shell_context)
        assert sink.getvalue() == lines("dir1", "file1", "file2")

    def test_ls_defaults_to_current_directory(self, glob_tree, shell_context):
        shell_context.cd("D/dir1")
        sink = io.StringIO()
        ls(None, sink, shell_context)
        assert sink.getvalue() == lines("dir2", "file1")

    def test_ls_several_paths_have_headers(self, glob_tree, shell_context):
        sink = io.StringIO()
        ls(["D/dir1", "D/dir1/dir2"], sink, shell_context)
        expected = (os.linesep + "D/dir1:" + os.linesep + lines("dir2", "file1")
                    + os.linesep + "D/dir1/dir2:" + os.linesep + lines("file1"))
        assert sink.getvalue() == expected

    def test_ls_file(self, glob_tree, shell_context):
        sink = io.StringIO()
        ls(["D/file1"], sink, shell_context)
        assert sink.getvalue() == lines("D/file1")

    def test_ls_missing(self, shell_context):
        with pytest.raises(PathNotFoundError):
            ls(["missing"], io.StringIO(), shell_context)

    def test_ls_filter(self, glob_tree, shell_context):
        sink = io.StringIO()
        ls_filter(["D"], shell_context).execute(io.StringIO(), sink)
        assert sink.getvalue() == lines("dir1", "file1", "file2")

    def test_ls_d(self):
        sink = io.StringIO()
        ls_d("any/path", sink)
        ls_d_filter("other").execute(io.StringIO(), sink)
        assert sink.getvalue() == lines("any/path", "other")


class TestPwd:
    """Test pwd."""

    def test_writes_and_returns_directory(self, glob_tree, shell_context):
        shell_context.cd("D")
        sink = io.StringIO()

        result = pwd_filter(shell_context).execute(io.StringIO(), sink)

        assert result == str(glob_tree / "D")
        assert sink.getvalue() == lines(str(glob_tree / "D"))
