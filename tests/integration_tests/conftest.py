"""Pytest fixtures for integration tests."""

import datetime
import ipaddress
import re

import pytest
import urllib3

from namespace_limiter.admission import AdmissionHandler
from namespace_limiter.limiter import NamespaceLimiter
from namespace_limiter.server import WebhookServer
from namespace_limiter.store import StaticNamespaceStore


@pytest.fixture(scope="session")
def webhook_certs(tmp_path_factory):
    """Generate self-signed certificates for webhook server."""
    from cryptography import x509
    from cryptography.x509.oid import NameOID
    from cryptography.hazmat.primitives import hashes
    from cryptography.hazmat.primitives.asymmetric import rsa
    from cryptography.hazmat.primitives import serialization

    cert_dir = tmp_path_factory.mktemp("certs")

    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )

    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Namespace Limiter Test"),
            x509.NameAttribute(NameOID.COMMON_NAME, "localhost"),
        ]
    )
    now = datetime.datetime.now(datetime.timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )

    key_file = cert_dir / "tls.key"
    cert_file = cert_dir / "tls.crt"

    key_file.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    cert_file.write_bytes(cert.public_bytes(serialization.Encoding.PEM))

    return {"cert_file": str(cert_file), "key_file": str(key_file)}


@pytest.fixture
def namespace_store():
    """Existing namespaces seen by the webhook; tests may change them."""
    return StaticNamespaceStore(["default", "kube-system", "team-a", "team-b"])


@pytest.fixture
def webhook_server(webhook_certs, namespace_store):
    """Start a webhook server limiting team-* namespaces to 3 on a free port."""
    limiter = NamespaceLimiter(re.compile("^team-"), 3, namespace_store)
    server = WebhookServer(
        AdmissionHandler(limiter),
        host="127.0.0.1",
        port=0,
        cert_file=webhook_certs["cert_file"],
        key_file=webhook_certs["key_file"],
    )

    # Self-signed certificate
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    server.start()
    yield server
    server.stop()
