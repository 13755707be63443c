"""Command line utilities for namespace-limiter."""

from __future__ import annotations

import argparse
import logging
import sys

from .admission import AdmissionHandler, FAILURE_POLICIES
from .config import LimiterConfig, build_limiter, env_default
from .errors import ConfigurationError
from .server import WebhookServer
from .webhook_config import generate_webhook_configuration_yaml


logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="namespace-limiter")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the namespace limiting admission webhook over TLS.",
    )
    serve_parser.add_argument("--tls-cert-file", default=env_default("tls-cert-file", ""), help="TLS certificate file")
    serve_parser.add_argument("--tls-key-file", default=env_default("tls-key-file", ""), help="TLS key file")
    serve_parser.add_argument(
        "--listen-addr",
        default=env_default("listen-addr", ":8080"),
        help="The address to start the server",
    )
    serve_parser.add_argument(
        "--namespace-regex",
        default=env_default("namespace-regex", ""),
        help="The namespace name regex that matches namespaces that should be limited",
    )
    serve_parser.add_argument(
        "--namespace-max",
        type=int,
        default=env_default("namespace-max", "0"),
        help="The maximum number of namespaces matching the regex that should be allowed",
    )
    serve_parser.add_argument(
        "--failure-policy",
        choices=FAILURE_POLICIES,
        default=env_default("failure-policy", "Fail"),
        help="Deny (Fail) or allow (Ignore) when existing namespaces cannot be listed",
    )
    serve_parser.add_argument(
        "--kubeconfig",
        default=env_default("kubeconfig"),
        help="Path to a kubeconfig file; the in-cluster configuration is used when omitted",
    )
    serve_parser.add_argument(
        "--request-timeout",
        type=float,
        default=env_default("request-timeout", "10"),
        help="Seconds allowed for each namespace list call",
    )
    serve_parser.add_argument(
        "--log-level",
        default=env_default("log-level", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    generate_parser = subparsers.add_parser(
        "generate-webhook",
        help="Generate the Kubernetes ValidatingWebhookConfiguration YAML.",
    )
    generate_parser.add_argument("--url", required=True, help="Webhook service URL.")
    generate_parser.add_argument(
        "--name",
        default="namespace-limiter",
        help="metadata.name of the generated webhook configuration.",
    )
    generate_parser.add_argument(
        "--failure-policy",
        choices=FAILURE_POLICIES,
        default="Fail",
        help="failurePolicy of the generated webhook.",
    )
    generate_parser.add_argument(
        "--ca-bundle",
        default=None,
        help="Optional base64-encoded CA bundle.",
    )
    return parser


def _config_from_args(args: argparse.Namespace) -> LimiterConfig:
    return LimiterConfig(
        namespace_regex=args.namespace_regex,
        namespace_max=args.namespace_max,
        listen_addr=args.listen_addr,
        tls_cert_file=args.tls_cert_file,
        tls_key_file=args.tls_key_file,
        failure_policy=args.failure_policy,
        kubeconfig=args.kubeconfig,
        request_timeout=args.request_timeout,
    )


def serve(cfg: LimiterConfig) -> int:
    try:
        cfg.validate()
        limiter = build_limiter(cfg)
        host, port = cfg.listen_address
        server = WebhookServer(
            AdmissionHandler(limiter, failure_policy=cfg.failure_policy),
            host=host,
            port=port,
            cert_file=cfg.tls_cert_file,
            key_file=cfg.tls_key_file,
        )
        server.bind()
    except ConfigurationError as e:
        print(f"namespace-limiter: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"namespace-limiter: error serving webhook: {e}", file=sys.stderr)
        return 1

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server.server_close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        logging.basicConfig(
            level=args.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        return serve(_config_from_args(args))

    if args.command == "generate-webhook":
        yaml_output = generate_webhook_configuration_yaml(
            url=args.url,
            name=args.name,
            failure_policy=args.failure_policy,
            ca_bundle=args.ca_bundle,
        )
        print(yaml_output, end="")
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
