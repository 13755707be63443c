"""Process configuration for the namespace limiter webhook."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from kubernetes import client, config as kube_config
from kubernetes.config.config_exception import ConfigException

from .admission import FAILURE_POLICIES
from .errors import ConfigurationError
from .limiter import NamespaceLimiter
from .matcher import compile_pattern
from .store import KubernetesNamespaceStore, NamespaceStore


logger = logging.getLogger(__name__)

ENV_PREFIX = "NAMESPACE_LIMITER_"


def env_default(name: str, default=None):
    """Default for a flag, read from ``NAMESPACE_LIMITER_<NAME>``."""
    return os.environ.get(ENV_PREFIX + name.upper().replace("-", "_"), default)


def parse_listen_addr(addr: str) -> tuple[str, int]:
    """Split ``host:port``; an empty host listens on all interfaces."""
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ConfigurationError(f"invalid listen address {addr!r}, expected host:port")
    try:
        port_number = int(port)
    except ValueError:
        raise ConfigurationError(f"invalid port in listen address {addr!r}") from None
    if not 0 <= port_number <= 65535:
        raise ConfigurationError(f"port out of range in listen address {addr!r}")
    return host.strip("[]") or "0.0.0.0", port_number


@dataclass
class LimiterConfig:
    namespace_regex: str = ""
    namespace_max: int = 0
    listen_addr: str = ":8080"
    tls_cert_file: str = ""
    tls_key_file: str = ""
    failure_policy: str = "Fail"
    kubeconfig: str | None = None
    request_timeout: float = 10
    page_size: int = 500

    def validate(self) -> None:
        """Raise ConfigurationError if the service cannot start with this config."""
        if self.namespace_max < 0:
            raise ConfigurationError(f"namespace-max must be non-negative, got {self.namespace_max}")

        if self.failure_policy not in FAILURE_POLICIES:
            raise ConfigurationError(
                f"failure-policy must be one of: {', '.join(FAILURE_POLICIES)}"
            )

        if self.request_timeout <= 0:
            raise ConfigurationError("request-timeout must be positive")

        if self.page_size <= 0:
            raise ConfigurationError("page-size must be positive")

        for flag, path in (("tls-cert-file", self.tls_cert_file), ("tls-key-file", self.tls_key_file)):
            if not path:
                raise ConfigurationError(f"{flag} is required")
            if not os.path.isfile(path):
                raise ConfigurationError(f"{flag} {path!r} does not exist")

        parse_listen_addr(self.listen_addr)

    @property
    def listen_address(self) -> tuple[str, int]:
        return parse_listen_addr(self.listen_addr)


def load_core_api(kubeconfig: str | None = None) -> client.CoreV1Api:
    """Build a CoreV1Api from a kubeconfig file, or the in-cluster service account."""
    try:
        if kubeconfig:
            kube_config.load_kube_config(config_file=kubeconfig)
        else:
            kube_config.load_incluster_config()
    except ConfigException as exc:
        raise ConfigurationError(f"failed to load kubernetes client configuration: {exc}") from exc
    return client.CoreV1Api()


def build_limiter(cfg: LimiterConfig, store: NamespaceStore | None = None) -> NamespaceLimiter:
    """Compile the pattern and bind it with the limit to a namespace store.

    Raises:
        InvalidPatternError: If ``cfg.namespace_regex`` does not compile.
    """
    pattern = compile_pattern(cfg.namespace_regex)

    if store is None:
        store = KubernetesNamespaceStore(
            load_core_api(cfg.kubeconfig),
            request_timeout=cfg.request_timeout,
            page_size=cfg.page_size,
        )

    if cfg.namespace_max == 0:
        logger.warning("namespace-max is 0: every namespace matching %r will be denied", cfg.namespace_regex)

    return NamespaceLimiter(pattern, cfg.namespace_max, store)
