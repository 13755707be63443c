"""Counting of existing namespaces that match the configured pattern."""

from __future__ import annotations

import re
from typing import Iterable

from .matcher import matches


def count_matching(pattern: re.Pattern, names: Iterable[str]) -> int:
    """Return how many of ``names`` match ``pattern``."""
    return sum(1 for name in names if matches(pattern, name))
