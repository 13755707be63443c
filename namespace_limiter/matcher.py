"""Compilation and evaluation of the namespace name pattern."""

from __future__ import annotations

import re

from .errors import InvalidPatternError


def compile_pattern(pattern_text: str) -> re.Pattern:
    """Compile ``pattern_text`` once at startup.

    Raises:
        InvalidPatternError: If the text is not a valid regular expression.
    """
    try:
        return re.compile(pattern_text)
    except re.error as exc:
        raise InvalidPatternError(pattern_text, str(exc)) from exc


def matches(pattern: re.Pattern, name: str) -> bool:
    # Unanchored: a matching substring anywhere in the name is enough.
    return pattern.search(name) is not None
