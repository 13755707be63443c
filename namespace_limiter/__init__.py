"""
Kubernetes Namespace Limiter Package

This package provides a validating admission webhook that caps the number of
namespaces whose names match a regular expression.
"""

from .admission import AdmissionHandler
from .limiter import Decision, Namespace, NamespaceLimiter, evaluate
from .matcher import compile_pattern, matches
from .counter import count_matching

__all__ = [
    'AdmissionHandler',
    'Decision',
    'Namespace',
    'NamespaceLimiter',
    'compile_pattern',
    'count_matching',
    'evaluate',
    'matches',
]
