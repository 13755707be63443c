"""
Admission decision engine for namespace creation.

A ``NamespaceLimiter`` caps how many namespaces whose names match a regex may
exist at once. Every call to ``decide`` lists the live namespaces again, counts
the matches and compares the count to the configured limit.

Known property: two concurrent creations can both be allowed even when the
second would have been denied had they been serialized, because each decision
only sees the snapshot it fetched itself. The API server remains the point of
enforcement; this engine advises at observation time only.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .counter import count_matching
from .errors import NotANamespaceError
from .store import NamespaceStore


logger = logging.getLogger(__name__)

NAMESPACE_KIND = "Namespace"
NAMESPACE_API_VERSION = "v1"


@dataclass(frozen=True)
class ResourceObject:
    """A decoded admission object of any kind."""

    kind: str
    api_version: str
    name: str


@dataclass(frozen=True)
class Namespace(ResourceObject):
    kind: str = NAMESPACE_KIND
    api_version: str = NAMESPACE_API_VERSION
    name: str = ""


def decode_object(obj: Mapping[str, Any]) -> ResourceObject:
    """Turn a raw admission ``object`` into a typed resource.

    Only core/v1 ``Namespace`` objects become ``Namespace`` instances; anything
    else is returned as a plain ``ResourceObject`` and rejected by ``decide``.
    """
    kind = obj.get("kind", "")
    api_version = obj.get("apiVersion", "")
    metadata = obj.get("metadata") or {}
    name = metadata.get("name") or ""

    if kind == NAMESPACE_KIND and api_version == NAMESPACE_API_VERSION:
        return Namespace(name=name)
    return ResourceObject(kind=kind, api_version=api_version, name=name)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    message: str


def evaluate(candidate: Namespace, names: Iterable[str], pattern: re.Pattern, limit: int) -> Decision:
    """Decide on ``candidate`` given the names of the namespaces that already exist.

    The candidate itself is not part of ``names`` and is not counted. A limit
    of N denies once N existing namespaces match, so a limit of 0 denies every
    creation.
    """
    matched = count_matching(pattern, names)

    if matched >= limit:
        logger.info(
            "namespace %s denied, currently %d namespaces match the regex", candidate.name, matched
        )
        return Decision(
            allowed=False,
            message=(
                f"too many ({matched}) namespaces matching regex {pattern.pattern!r} "
                f"(limit {limit}). {candidate.name} namespace denied"
            ),
        )

    logger.info("namespace %s is valid", candidate.name)
    return Decision(allowed=True, message="namespace is valid")


class NamespaceLimiter:
    """Binds a compiled pattern and a limit to a namespace store.

    The pattern and limit never change after construction, so one instance is
    shared by every request thread. The store must tolerate concurrent reads.
    """

    def __init__(self, pattern: re.Pattern, limit: int, store: NamespaceStore):
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")
        self.pattern = pattern
        self.limit = limit
        self.store = store

    def decide(self, candidate: ResourceObject) -> Decision:
        """Evaluate one creation request.

        Raises:
            NotANamespaceError: If ``candidate`` is not a ``Namespace``.
            SnapshotUnavailableError: If the store could not list namespaces.
        """
        if not isinstance(candidate, Namespace):
            raise NotANamespaceError(getattr(candidate, "kind", type(candidate).__name__))

        names = self.store.list_names()
        return evaluate(candidate, names, self.pattern, self.limit)
