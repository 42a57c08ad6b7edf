"""
Glob Patterns

Compiles ``/``-separated wildcard path expressions into matchers over path
strings. Within one path segment:

    *       any run of characters
    ?       any single character
    [abc]   one character from the class ([!abc] or [^abc] negates it)
    \\x      the literal character x

A segment that is exactly ``**`` matches one or more whole segments.

Besides exact matching, a compiled pattern answers whether some descendant
of a path could still match, which lets the expander prune whole subtrees.
"""

import functools
import os
import re
from typing import FrozenSet, List, Union

from pipeshell.core.exceptions import GlobPatternError


RECURSIVE_WILDCARD = "**"

_MULTIPLE_SLASHES = re.compile(r"/+")


class _Token:
    """One step of the segment automaton."""

    SEGMENT = "segment"   # exactly one segment matching the regex
    ANY = "any"           # exactly one segment of any content
    ANY_RUN = "any_run"   # zero or more segments of any content

    def __init__(self, kind: str, regex=None, source: str = ""):
        self.kind = kind
        self.regex = regex
        self.source = source

    def accepts(self, segment: str) -> bool:
        if self.kind == _Token.SEGMENT:
            return self.regex.fullmatch(segment) is not None
        return True

    def __repr__(self) -> str:
        return f"_Token({self.kind}, {self.source!r})"


def _translate_segment(segment: str, pattern: str) -> str:
    """Translate one wildcard segment into a regular expression."""
    parts = []
    i, n = 0, len(segment)
    while i < n:
        c = segment[i]
        i += 1
        if c == '*':
            while i < n and segment[i] == '*':
                i += 1
            parts.append('.*')
        elif c == '?':
            parts.append('.')
        elif c == '\\':
            if i < n:
                parts.append(re.escape(segment[i]))
                i += 1
            else:
                parts.append(re.escape('\\'))
        elif c == '[':
            cls, i = _translate_class(segment, i, pattern)
            parts.append(cls)
        else:
            parts.append(re.escape(c))
    return ''.join(parts)


def _translate_class(segment: str, start: int, pattern: str):
    """Translate a character class whose '[' precedes ``start``."""
    i, n = start, len(segment)
    negate = False
    if i < n and segment[i] in '!^':
        negate = True
        i += 1

    members = []
    first = True
    while True:
        if i >= n:
            raise GlobPatternError(f"Unterminated character class in glob: {pattern}", pattern=pattern)
        c = segment[i]
        i += 1
        if c == ']' and not first:
            break
        first = False
        if c == '\\' and i < n:
            members.append(re.escape(segment[i]))
            i += 1
        elif c == '-':
            members.append('-')
        else:
            members.append(re.escape(c))

    body = ''.join(members)
    # Leading or trailing '-' is literal in regex classes, as in globs
    return f"[{'^' if negate else ''}{body}]", i


def _split(path: str) -> List[str]:
    """Split a path string into segments; the root is a single empty segment."""
    path = _MULTIPLE_SLASHES.sub('/', path)
    if path == '/':
        return ['']
    if path.endswith('/'):
        path = path[:-1]
    return path.split('/')


class GlobPattern:
    """
    Compiled wildcard path expression.

    Attributes:
        text: The (normalized) pattern text
        is_absolute: True if the pattern is rooted at the filesystem root
    """

    def __init__(self, text: str):
        self.text = _MULTIPLE_SLASHES.sub('/', text)
        if len(self.text) > 1 and self.text.endswith('/'):
            self.text = self.text[:-1]
        self.is_absolute = self.text.startswith('/')
        self._tokens = self._compile(self.text)

    def _compile(self, text: str) -> List[_Token]:
        tokens = []
        for segment in _split(text):
            if segment == RECURSIVE_WILDCARD:
                tokens.append(_Token(_Token.ANY, source=segment))
                tokens.append(_Token(_Token.ANY_RUN, source=segment))
            else:
                try:
                    regex = re.compile(_translate_segment(segment, text), re.DOTALL)
                except re.error as e:
                    raise GlobPatternError(f"Invalid glob {text!r}: {e}", pattern=text, cause=e) from e
                tokens.append(_Token(_Token.SEGMENT, regex, segment))
        return tokens

    def _closure(self, states) -> FrozenSet[int]:
        closed = set(states)
        pending = list(states)
        while pending:
            state = pending.pop()
            if state < len(self._tokens) and self._tokens[state].kind == _Token.ANY_RUN:
                if state + 1 not in closed:
                    closed.add(state + 1)
                    pending.append(state + 1)
        return frozenset(closed)

    def _states(self, path: Union[str, os.PathLike]) -> FrozenSet[int]:
        """Automaton states reachable after consuming every segment of ``path``."""
        states = self._closure({0})
        for segment in _split(os.fspath(path)):
            following = set()
            for state in states:
                if state >= len(self._tokens):
                    continue
                token = self._tokens[state]
                if token.accepts(segment):
                    following.add(state if token.kind == _Token.ANY_RUN else state + 1)
            if not following:
                return frozenset()
            states = self._closure(following)
        return states

    def matches(self, path: Union[str, os.PathLike]) -> bool:
        """True if ``path`` matches the whole pattern."""
        return len(self._tokens) in self._states(path)

    def may_descend(self, path: Union[str, os.PathLike]) -> bool:
        """True if some descendant of ``path`` could still match."""
        end = len(self._tokens)
        return any(state < end for state in self._states(path))

    def __eq__(self, other) -> bool:
        return isinstance(other, GlobPattern) and other.text == self.text

    def __hash__(self) -> int:
        return hash(self.text)

    def __repr__(self) -> str:
        return f"GlobPattern({self.text!r})"


@functools.lru_cache(maxsize=128)
def compile_glob(text: str) -> GlobPattern:
    """
    Compile a wildcard path expression.

    Raises:
        GlobPatternError: If the pattern is malformed
    """
    return GlobPattern(text)
