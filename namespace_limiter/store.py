"""Sources for the list of namespaces that currently exist."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from .errors import SnapshotUnavailableError


logger = logging.getLogger(__name__)


class NamespaceStore(Protocol):
    def list_names(self) -> list[str]:
        """Return the names of all namespaces, or raise SnapshotUnavailableError."""
        ...


class KubernetesNamespaceStore:
    """Lists namespaces through the Kubernetes API.

    Only read queries are issued. The underlying ``CoreV1Api`` is shared by
    all request threads.

    Args:
        core_api: Client used for ``list_namespace`` calls.
        request_timeout: Seconds allowed for each list call, passed to the client.
        page_size: Number of namespaces requested per page.
    """

    def __init__(self, core_api: client.CoreV1Api, *, request_timeout: float | None = 10, page_size: int = 500):
        self.core_api = core_api
        self.request_timeout = request_timeout
        self.page_size = page_size

    def list_names(self) -> list[str]:
        names: list[str] = []
        continue_token = None

        while True:
            kwargs = {"limit": self.page_size, "_request_timeout": self.request_timeout}
            if continue_token:
                kwargs["_continue"] = continue_token

            try:
                page = self.core_api.list_namespace(**kwargs)
            except ApiException as exc:
                logger.error("listing namespaces failed: status=%s reason=%s", exc.status, exc.reason)
                raise SnapshotUnavailableError(
                    f"listing namespaces failed: {exc.status} {exc.reason}"
                ) from exc
            except (urllib3.exceptions.HTTPError, OSError) as exc:
                logger.error("listing namespaces failed: %s", exc)
                raise SnapshotUnavailableError(f"listing namespaces failed: {exc}") from exc
            except ValueError as exc:
                # Response body could not be deserialized into a V1NamespaceList.
                logger.error("listing namespaces returned a malformed response: %s", exc)
                raise SnapshotUnavailableError(f"malformed namespace list response: {exc}") from exc

            names.extend(_names_of(page.items or []))

            continue_token = page.metadata._continue if page.metadata else None
            if not continue_token:
                return names


def _names_of(items: Iterable[client.V1Namespace]) -> list[str]:
    names = []
    for item in items:
        if item.metadata is None or not item.metadata.name:
            raise SnapshotUnavailableError("namespace list contains an item without a name")
        names.append(item.metadata.name)
    return names


class StaticNamespaceStore:
    """A fixed set of namespace names, for tests and local runs.

    If ``error`` is given every listing raises it instead.
    """

    def __init__(self, names: Iterable[str] = (), error: Exception | None = None):
        self.names = list(names)
        self.error = error
        self.calls = 0

    def list_names(self) -> list[str]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.names)
