"""
Tests for glob expansion over a real directory tree.
"""

import os
from pathlib import Path

import pytest

from pipeshell.core.context import ShellContext
from pipeshell.core.exceptions import GlobPatternError
from pipeshell.glob.expander import GlobExpander, expand
from pipeshell.glob.pattern import compile_glob


def paths(*names):
    return [Path(name) for name in names]


class TestRelativeExpansion:
    """Test patterns relative to the context's directory."""

    def test_literal_directory(self, glob_tree, shell_context):
        assert expand("D", shell_context) == paths("D")

    def test_children(self, glob_tree, shell_context):
        assert expand("D/*", shell_context) == paths("D/dir1", "D/file1", "D/file2")

    def test_recursive(self, glob_tree, shell_context):
        assert expand("D/**", shell_context) == paths(
            "D/dir1",
            "D/dir1/dir2",
            "D/dir1/dir2/file1",
            "D/dir1/file1",
            "D/file1",
            "D/file2",
        )

    def test_recursive_file_name(self, glob_tree, shell_context):
        assert expand("D/**/file1", shell_context) == paths("D/dir1/dir2/file1", "D/dir1/file1")

    def test_character_class(self, glob_tree, shell_context):
        assert expand("D/file[2-9]", shell_context) == paths("D/file2")

    def test_no_match(self, glob_tree, shell_context):
        assert expand("D/missing*", shell_context) == []

    def test_dotfiles_matched_by_star(self, tmp_path, shell_context):
        (tmp_path / ".hidden").write_text("")
        (tmp_path / "shown").write_text("")
        assert expand("*", shell_context) == paths(".hidden", "shown")

    def test_follows_context_directory(self, glob_tree):
        context = ShellContext(cwd=glob_tree)
        context.cd("D")
        assert GlobExpander(context).expand("dir1/*") == paths("dir1/dir2", "dir1/file1")

    def test_compiled_pattern_accepted(self, glob_tree, shell_context):
        assert expand(compile_glob("D/file1"), shell_context) == paths("D/file1")

    def test_does_not_descend_unrelated_subtrees(self, glob_tree, shell_context, monkeypatch):
        (glob_tree / "other").mkdir()
        listed = []
        expander = GlobExpander(shell_context)
        original = expander._children

        def tracking(directory):
            listed.append(Path(directory).name)
            return original(directory)

        monkeypatch.setattr(expander, "_children", tracking)
        expander.expand("D/file1")

        assert "other" not in listed
        assert "dir1" not in listed

    def test_invalid_pattern(self, shell_context):
        with pytest.raises(GlobPatternError):
            expand("D/[ab", shell_context)


class TestAbsoluteExpansion:
    """Test patterns rooted at the filesystem root."""

    def test_absolute_children(self, glob_tree):
        root = glob_tree.as_posix()
        results = expand(f"{root}/D/*")
        assert results == [Path(f"{root}/D/dir1"), Path(f"{root}/D/file1"), Path(f"{root}/D/file2")]

    def test_root_itself(self):
        assert expand("/") == [Path("/")]


class TestUnreadableDirectories:
    """Test that failing directory listings are skipped."""

    def test_listing_failure_is_skipped(self, glob_tree, shell_context, monkeypatch, caplog):
        real_listdir = os.listdir

        def failing_listdir(path):
            if Path(path).name == "dir1":
                raise PermissionError("denied")
            return real_listdir(path)

        monkeypatch.setattr("pipeshell.glob.expander.os.listdir", failing_listdir)

        with caplog.at_level("WARNING"):
            results = expand("D/**", shell_context)

        assert results == paths("D/dir1", "D/file1", "D/file2")
        assert "Skipping unreadable directory" in caplog.text
