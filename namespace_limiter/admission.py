"""
AdmissionReview handling for the namespace limiter.

Decodes ``admission.k8s.io/v1`` AdmissionReview requests, runs the limiter on
namespace creations and builds the AdmissionReview response.
"""

from __future__ import annotations

import logging
from typing import Any

from prometheus_client import CollectorRegistry, Counter, generate_latest

from .errors import IntegrationFault, SnapshotUnavailableError
from .limiter import Decision, NamespaceLimiter, decode_object


logger = logging.getLogger(__name__)

FAIL = "Fail"
IGNORE = "Ignore"
FAILURE_POLICIES = (FAIL, IGNORE)


def validate_review_structure(review: Any) -> dict[str, Any]:
    """Validate the structure of an incoming AdmissionReview and return its request."""
    if not isinstance(review, dict):
        raise ValueError("AdmissionReview must be a dictionary")

    request = review.get("request")
    if not isinstance(request, dict):
        raise ValueError("AdmissionReview must contain a 'request' dictionary")

    if not request.get("uid"):
        raise ValueError("AdmissionReview request must contain a 'uid' field")

    obj = request.get("object")
    if obj is not None and not isinstance(obj, dict):
        raise ValueError("Request 'object' field must be a dictionary")

    if obj and "metadata" in obj and not isinstance(obj["metadata"], dict):
        raise ValueError("Request object 'metadata' field must be a dictionary")

    return request


class AdmissionMetrics:
    """Prometheus counters kept in a registry of their own, one per handler."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "namespace_limiter_requests",
            "Total number of admission review requests",
            registry=self.registry,
        )
        self.denials = Counter(
            "namespace_limiter_denials",
            "Total number of namespace creations denied by the limit",
            registry=self.registry,
        )
        self.errors = Counter(
            "namespace_limiter_errors",
            "Total number of admission requests that could not be evaluated",
            ["reason"],
            registry=self.registry,
        )

    def record_request(self):
        self.requests.inc()

    def record_denial(self):
        self.denials.inc()

    def record_error(self, reason: str):
        self.errors.labels(reason=reason).inc()

    def render(self) -> bytes:
        return generate_latest(self.registry)


class AdmissionHandler:
    """Turns AdmissionReview requests into AdmissionReview responses.

    Args:
        limiter: Engine deciding namespace creations.
        failure_policy: ``Fail`` denies when the namespace list cannot be
            fetched, ``Ignore`` allows with a warning.
    """

    def __init__(self, limiter: NamespaceLimiter, failure_policy: str = FAIL):
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"failure_policy must be one of: {', '.join(FAILURE_POLICIES)}")
        self.limiter = limiter
        self.failure_policy = failure_policy
        self.metrics = AdmissionMetrics()

    def process_admission_review(self, review: Any) -> dict[str, Any]:
        """Evaluate an AdmissionReview and return the response envelope.

        Raises:
            ValueError: If the review is malformed.
        """
        request = validate_review_structure(review)
        uid = request["uid"]
        self.metrics.record_request()

        operation = request.get("operation", "")
        if operation != "CREATE":
            logger.debug("operation %s on request %s is not limited", operation, uid)
            return self._response(uid, allowed=True)

        candidate = decode_object(request.get("object") or {})

        try:
            decision = self.limiter.decide(candidate)
        except IntegrationFault as exc:
            logger.error("request %s could not be evaluated: %s", uid, exc)
            self.metrics.record_error("integration")
            return self._response(uid, allowed=False, code=500, message=str(exc))
        except SnapshotUnavailableError as exc:
            self.metrics.record_error("store")
            return self._indeterminate_response(uid, candidate.name, exc)

        return self._decision_response(uid, decision)

    def _decision_response(self, uid: str, decision: Decision) -> dict[str, Any]:
        if decision.allowed:
            return self._response(uid, allowed=True, message=decision.message)

        self.metrics.record_denial()
        return self._response(uid, allowed=False, code=403, reason="Forbidden", message=decision.message)

    def _indeterminate_response(self, uid: str, name: str, exc: Exception) -> dict[str, Any]:
        message = f"unable to count existing namespaces: {exc}"
        if self.failure_policy == IGNORE:
            logger.warning("allowing namespace %s without a limit check: %s", name, exc)
            response = self._response(uid, allowed=True)
            response["response"]["warnings"] = [f"namespace limit not enforced: {message}"]
            return response

        logger.error("denying namespace %s, %s", name, message)
        return self._response(uid, allowed=False, code=500, message=message)

    @staticmethod
    def _response(
        uid: str,
        *,
        allowed: bool,
        code: int | None = None,
        reason: str | None = None,
        message: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"uid": uid, "allowed": allowed}

        status: dict[str, Any] = {}
        if code is not None:
            status["code"] = code
        if reason:
            status["reason"] = reason
        if message:
            status["message"] = message
        if status:
            body["status"] = status

        return {
            "apiVersion": "admission.k8s.io/v1",
            "kind": "AdmissionReview",
            "response": body,
        }

    def metrics_text(self) -> bytes:
        return self.metrics.render()
