"""Exceptions raised by namespace-limiter."""


class NamespaceLimiterError(Exception):
    """Base class for all namespace-limiter errors."""


class ConfigurationError(NamespaceLimiterError):
    """The process cannot start with the supplied configuration."""


class InvalidPatternError(ConfigurationError):
    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"invalid regex {pattern!r}: {reason}")


class IntegrationFault(NamespaceLimiterError):
    """The transport handed the engine something it cannot evaluate.

    This is a wiring defect, never a policy outcome.
    """


class NotANamespaceError(IntegrationFault):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"not a namespace (got kind={kind!r})")


class SnapshotUnavailableError(NamespaceLimiterError):
    """Listing the existing namespaces failed, so no decision can be made."""
