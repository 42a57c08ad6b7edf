"""
Pattern Substitution

sed-style substitution over character streams. Replacement templates use the
dollar syntax common to many regex engines:

    $n        text of group n (digits are consumed while they name a group)
    ${name}   text of the named group
    \\x        the literal character x (so \\$ is a dollar sign)

Groups that did not participate in the match are replaced by nothing.
"""

import logging
import re
from typing import Any, Callable, List, Union

from pipeshell.core.exceptions import ErrorCode, ValidationError
from pipeshell.core.pipeline.interfaces import CharFilter, char_filter


logger = logging.getLogger(__name__)

PatternLike = Union[str, re.Pattern]

Replacer = Callable[[re.Match], str]


def compile_pattern(pattern: PatternLike) -> re.Pattern:
    """Compile ``pattern`` unless it already is a compiled regex."""
    if isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValidationError(
            f"Invalid regular expression {pattern!r}: {e}",
            error_code=ErrorCode.VALIDATION_INVALID_PATTERN,
            field_name="pattern",
            field_value=pattern,
            cause=e
        ) from e


def _template_error(template: str, reason: str) -> ValidationError:
    return ValidationError(
        f"Invalid replacement {template!r}: {reason}",
        error_code=ErrorCode.VALIDATION_FORMAT_ERROR,
        field_name="replacement",
        field_value=template
    )


class _GroupName:
    __slots__ = ('name',)

    def __init__(self, name: str):
        self.name = name


class _Replacement:
    """Callable expanding a parsed template against a match."""

    def __init__(self, parts: List[Union[str, int, _GroupName]]):
        self.parts = parts

    def __call__(self, match: re.Match) -> str:
        pieces = []
        for part in self.parts:
            if isinstance(part, _GroupName):
                pieces.append(match.group(part.name) or '')
            elif isinstance(part, int):
                pieces.append(match.group(part) or '')
            else:
                pieces.append(part)
        return ''.join(pieces)


def compile_replacement(template: str, pattern: re.Pattern) -> Replacer:
    """
    Compile a replacement template for ``pattern`` into a match replacer.

    Raises:
        ValidationError: If the template references a missing group or ends
            with a dangling ``$`` or ``\\``
    """
    parts: List[Union[str, int, _GroupName]] = []
    literal: List[str] = []
    i, n = 0, len(template)

    while i < n:
        c = template[i]
        i += 1
        if c == '\\':
            if i >= n:
                raise _template_error(template, "character to be escaped is missing")
            literal.append(template[i])
            i += 1
        elif c == '$':
            if i >= n:
                raise _template_error(template, "group reference is missing")
            if literal:
                parts.append(''.join(literal))
                literal = []
            if template[i] == '{':
                end = template.find('}', i)
                if end < 0:
                    raise _template_error(template, "named group reference is missing '}'")
                name = template[i + 1:end]
                if name not in pattern.groupindex:
                    raise _template_error(template, f"no group named {name!r}")
                parts.append(_GroupName(name))
                i = end + 1
            elif template[i].isdigit():
                group = int(template[i])
                i += 1
                while i < n and template[i].isdigit() and group * 10 + int(template[i]) <= pattern.groups:
                    group = group * 10 + int(template[i])
                    i += 1
                if group > pattern.groups:
                    raise _template_error(template, f"no group {group}")
                parts.append(group)
            else:
                raise _template_error(template, "illegal group reference")
        else:
            literal.append(c)

    if literal:
        parts.append(''.join(literal))
    return _Replacement(parts)


# Escapes that never match a newline; everything else alphanumeric after a
# backslash (\s, \S, \n, \x0a, \1, \Z, ...) might, or depends on context.
_LINE_SAFE_ESCAPES = frozenset("dwb")


def _escape_is_line_safe(escaped: str) -> bool:
    return not escaped.isalnum() or escaped in _LINE_SAFE_ESCAPES


def matches_within_lines(regex: re.Pattern) -> bool:
    """
    Tell whether every match of ``regex`` lies inside a single line.

    The check is conservative: anchors, lookarounds, backreferences, inline
    flags, negated classes and escapes that can match a newline all make it
    answer False. When it answers True, rewriting the input line by line
    gives the same result as rewriting it whole.
    """
    if regex.flags & re.DOTALL or not isinstance(regex.pattern, str):
        return False

    source = regex.pattern
    i, n = 0, len(source)
    while i < n:
        c = source[i]
        if c == "\\":
            if not _escape_is_line_safe(source[i + 1:i + 2]):
                return False
            i += 2
        elif c == "[":
            i += 1
            if source[i:i + 1] == "^":
                return False
            first = True
            while i < n and (first or source[i] != "]"):
                first = False
                member = source[i]
                if member == "\\":
                    if not _escape_is_line_safe(source[i + 1:i + 2]):
                        return False
                    i += 2
                elif source[i + 1:i + 2] == "-" and source[i + 2:i + 3] not in ("", "]"):
                    high = source[i + 2]
                    if high == "\\" or ord(member) <= ord("\n") <= ord(high):
                        return False
                    i += 3
                elif member == "\n":
                    return False
                else:
                    i += 1
            i += 1
        elif c in "^$\n":
            return False
        elif c == "(" and source[i + 1:i + 2] == "?":
            if not (source.startswith("(?:", i) or source.startswith("(?P<", i)):
                return False
            i += 2
        else:
            i += 1
    return True


def _substitute_lines(source: Any, regex: re.Pattern, replacer: Replacer, sink: Any, count: int) -> int:
    replaced = 0

    def rewrite(line: str) -> str:
        nonlocal replaced
        if count and replaced >= count:
            return line
        result, n = regex.subn(replacer, line, count=count - replaced if count else 0)
        replaced += n
        return result

    # Lines are rewritten without their terminator, so empty matches at a
    # line end occur once, as they would in the whole text
    pending = ""
    while True:
        piece = source.readline()
        if not piece:
            break
        pending += piece
        *lines, pending = pending.split("\n")
        for line in lines:
            sink.write(rewrite(line) + "\n")
    sink.write(rewrite(pending))
    return replaced


def _substitute(source: Any, pattern: PatternLike, replacement: str, sink: Any, count: int) -> int:
    regex = compile_pattern(pattern)
    replacer = compile_replacement(replacement, regex)
    if matches_within_lines(regex):
        replaced = _substitute_lines(source, regex, replacer, sink, count)
    else:
        # Matches may span arbitrary distances, so the input is read whole
        text = source.read()
        text, replaced = regex.subn(replacer, text, count=count)
        sink.write(text)
    logger.debug(f"Substituted {replaced} match(es) of {regex.pattern!r}")
    return replaced


def substitute_all(source: Any, pattern: PatternLike, replacement: str, sink: Any) -> int:
    """
    Replace every match of ``pattern`` in ``source``, writing to ``sink``.

    Returns:
        Number of replacements made
    """
    return _substitute(source, pattern, replacement, sink, count=0)


def substitute_first(source: Any, pattern: PatternLike, replacement: str, sink: Any) -> int:
    """
    Replace the first match of ``pattern`` only; the rest passes through.

    Returns:
        1 if a match was replaced, else 0
    """
    return _substitute(source, pattern, replacement, sink, count=1)


def substitute_all_filter(pattern: PatternLike, replacement: str) -> CharFilter[int]:
    """Character filter form of :func:`substitute_all`."""
    regex = compile_pattern(pattern)
    compile_replacement(replacement, regex)
    return char_filter(lambda source, sink: substitute_all(source, regex, replacement, sink),
                       name=f"sed s/{regex.pattern}/{replacement}/g")


def substitute_first_filter(pattern: PatternLike, replacement: str) -> CharFilter[int]:
    """Character filter form of :func:`substitute_first`."""
    regex = compile_pattern(pattern)
    compile_replacement(replacement, regex)
    return char_filter(lambda source, sink: substitute_first(source, regex, replacement, sink),
                       name=f"sed s/{regex.pattern}/{replacement}/")
