"""
Tests for wildcard pattern compilation and matching.
"""

import pytest

from pipeshell.core.exceptions import GlobPatternError
from pipeshell.glob.pattern import GlobPattern, compile_glob


class TestSegmentWildcards:
    """Test wildcards inside a single segment."""

    @pytest.mark.parametrize("pattern,path,expected", [
        ("*.txt", "notes.txt", True),
        ("*.txt", "notes.txt.bak", False),
        ("*", ".hidden", True),
        ("f?le", "file", True),
        ("f?le", "fle", False),
        ("file[12]", "file1", True),
        ("file[12]", "file3", False),
        ("file[!12]", "file3", True),
        ("file[^12]", "file1", False),
        ("[a-c]x", "bx", True),
        ("[a-c]x", "dx", False),
        ("a**b", "aXYb", True),
    ])
    def test_matches(self, pattern, path, expected):
        assert GlobPattern(pattern).matches(path) is expected

    def test_star_does_not_cross_separator(self):
        assert not GlobPattern("D/*").matches("D/dir1/file1")

    def test_escaped_wildcards_are_literal(self):
        pattern = GlobPattern(r"a\*b\?")
        assert pattern.matches("a*b?")
        assert not pattern.matches("axxb?")

    def test_regex_metacharacters_are_literal(self):
        assert GlobPattern("a.b+(c)").matches("a.b+(c)")
        assert not GlobPattern("a.b").matches("axb")

    def test_bracket_closing_first_is_member(self):
        assert GlobPattern("[]a]").matches("]")


class TestRecursiveWildcard:
    """Test the ``**`` segment."""

    def test_matches_one_or_more_segments(self):
        pattern = GlobPattern("D/**")
        assert pattern.matches("D/file1")
        assert pattern.matches("D/dir1/dir2/file1")
        assert not pattern.matches("D")

    def test_in_the_middle(self):
        pattern = GlobPattern("D/**/file1")
        assert pattern.matches("D/dir1/file1")
        assert pattern.matches("D/dir1/dir2/file1")
        assert not pattern.matches("D/file1")


class TestDescent:
    """Test subtree pruning decisions."""

    def test_may_descend_into_prefix(self):
        pattern = GlobPattern("D/dir1/*")
        assert pattern.may_descend("D")
        assert pattern.may_descend("D/dir1")
        assert not pattern.may_descend("E")
        assert not pattern.may_descend("D/dir1/file1")

    def test_recursive_always_descends(self):
        pattern = GlobPattern("D/**")
        assert pattern.may_descend("D/dir1/dir2")


class TestNormalization:
    """Test pattern text handling."""

    def test_absolute(self):
        assert GlobPattern("/etc/*").is_absolute
        assert not GlobPattern("etc/*").is_absolute

    def test_repeated_and_trailing_slashes(self):
        pattern = GlobPattern("D//dir1/")
        assert pattern.text == "D/dir1"
        assert pattern.matches("D/dir1")

    def test_root(self):
        pattern = GlobPattern("/")
        assert pattern.matches("/")
        assert pattern.may_descend("/") is False

    def test_equality_and_cache(self):
        assert GlobPattern("a/*") == GlobPattern("a//*")
        assert hash(GlobPattern("a/*")) == hash(GlobPattern("a/*"))
        assert compile_glob("x*") is compile_glob("x*")


class TestInvalidPatterns:
    """Test malformed patterns."""

    def test_unterminated_class(self):
        with pytest.raises(GlobPatternError) as exc_info:
            GlobPattern("file[12")
        assert exc_info.value.pattern == "file[12"

    def test_reversed_range(self):
        with pytest.raises(GlobPatternError):
            GlobPattern("[z-a]")
