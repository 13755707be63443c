"""Webhook configuration generation utilities."""

from __future__ import annotations

import re

from .admission import FAILURE_POLICIES


def _render_list(values: list[str], indent: int) -> list[str]:
    space = " " * indent
    return [f'{space}- "{value}"' if value == "" else f"{space}- {value}" for value in values]


def _webhook_name(name: str) -> str:
    webhook_name = re.sub(r"[^a-z0-9.-]", "-", name.lower()).strip("-")
    return webhook_name or "namespace-limiter"


def generate_webhook_configuration_yaml(
    *,
    url: str,
    name: str = "namespace-limiter",
    failure_policy: str = "Fail",
    ca_bundle: str | None = None,
    timeout_seconds: int = 10,
) -> str:
    """
    Generate the ValidatingWebhookConfiguration that sends namespace creations to the limiter.

    Args:
        url: Webhook URL reachable by the Kubernetes API server.
        name: metadata.name of the generated resource.
        failure_policy: Fail or Ignore; should match the server's own setting.
        ca_bundle: Optional base64-encoded CA bundle.
        timeout_seconds: How long the API server waits for a decision (1-30).
    """
    if failure_policy not in FAILURE_POLICIES:
        raise ValueError(f"failure_policy must be one of: {', '.join(FAILURE_POLICIES)}")
    if not 1 <= timeout_seconds <= 30:
        raise ValueError("timeout_seconds must be between 1 and 30")

    webhook_name = _webhook_name(name)

    lines = [
        "apiVersion: admissionregistration.k8s.io/v1",
        "kind: ValidatingWebhookConfiguration",
        "metadata:",
        f"  name: {webhook_name}",
        "webhooks:",
        f"  - name: {webhook_name}.namespace-limiter.local",
        "    admissionReviewVersions:",
        "      - v1",
        "    sideEffects: None",
        f"    failurePolicy: {failure_policy}",
        f"    timeoutSeconds: {timeout_seconds}",
        "    clientConfig:",
        f"      url: {url}",
    ]

    if ca_bundle:
        lines.append(f"      caBundle: {ca_bundle}")

    lines.extend(
        [
            "    rules:",
            "      - operations:",
            *_render_list(["CREATE"], 10),
            "        apiGroups:",
            *_render_list([""], 10),
            "        apiVersions:",
            *_render_list(["v1"], 10),
            "        resources:",
            *_render_list(["namespaces"], 10),
            "        scope: Cluster",
        ]
    )
    return "\n".join(lines) + "\n"
