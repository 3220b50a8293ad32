"""Test configuration and fixtures."""

import datetime
import ipaddress
import socket
import ssl
import threading
import time
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from clientcert_check.config import CheckConfig


def _write_key(key: ec.EllipticCurvePrivateKey, path: Path) -> None:
    path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )


def _issue(
    subject_cn: str,
    key: ec.EllipticCurvePrivateKey,
    issuer_cert: Optional[x509.Certificate],
    issuer_key: ec.EllipticCurvePrivateKey,
    is_ca: bool = False,
    dns_names: Optional[List[str]] = None,
    ip_addresses: Optional[List[str]] = None,
    client_auth: bool = False,
) -> x509.Certificate:
    now = datetime.datetime.now(datetime.timezone.utc)
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Check Test"),
            x509.NameAttribute(NameOID.COMMON_NAME, subject_cn),
        ]
    )
    issuer = issuer_cert.subject if issuer_cert else subject

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()),
            critical=False,
        )
    )

    if is_ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=True,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        usage = (
            ExtendedKeyUsageOID.CLIENT_AUTH
            if client_auth
            else ExtendedKeyUsageOID.SERVER_AUTH
        )
        builder = builder.add_extension(x509.ExtendedKeyUsage([usage]), critical=False)

    names: List[x509.GeneralName] = [x509.DNSName(name) for name in dns_names or []]
    names += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses or []]
    if names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(names), critical=False
        )

    return builder.sign(issuer_key, hashes.SHA256())


def _pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


@dataclass
class Pki:
    """Paths to a throwaway CA, server and client certificate set."""

    ca_cert: str
    server_cert: str
    server_key: str
    mismatched_server_cert: str
    client_cert: str
    client_key: str
    client_bundle: str
    other_client_key: str


@pytest.fixture(scope="session")
def pki(tmp_path_factory: pytest.TempPathFactory) -> Pki:
    """Generate CA, server and client certificates once per test session."""
    base = tmp_path_factory.mktemp("pki")

    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_cert = _issue("Check Test CA", ca_key, None, ca_key, is_ca=True)

    server_key = ec.generate_private_key(ec.SECP256R1())
    server_cert = _issue(
        "localhost",
        server_key,
        ca_cert,
        ca_key,
        dns_names=["localhost"],
        ip_addresses=["127.0.0.1"],
    )
    mismatched_server_cert = _issue(
        "wrong.example.org",
        server_key,
        ca_cert,
        ca_key,
        dns_names=["wrong.example.org"],
    )

    client_key = ec.generate_private_key(ec.SECP256R1())
    client_cert = _issue(
        "monitoring-client", client_key, ca_cert, ca_key, client_auth=True
    )
    other_client_key = ec.generate_private_key(ec.SECP256R1())

    paths = {
        "ca_cert": base / "ca.pem",
        "server_cert": base / "server.pem",
        "server_key": base / "server.key",
        "mismatched_server_cert": base / "server-wrong-name.pem",
        "client_cert": base / "client.pem",
        "client_key": base / "client.key",
        "client_bundle": base / "client-bundle.pem",
        "other_client_key": base / "other-client.key",
    }
    paths["ca_cert"].write_bytes(_pem(ca_cert))
    paths["server_cert"].write_bytes(_pem(server_cert))
    paths["mismatched_server_cert"].write_bytes(_pem(mismatched_server_cert))
    paths["client_cert"].write_bytes(_pem(client_cert))
    # Leaf followed by its CA, the way a chain is shipped with the client cert.
    paths["client_bundle"].write_bytes(_pem(client_cert) + _pem(ca_cert))
    _write_key(server_key, paths["server_key"])
    _write_key(client_key, paths["client_key"])
    _write_key(other_client_key, paths["other_client_key"])

    return Pki(**{name: str(path) for name, path in paths.items()})


class RecordingHandler(BaseHTTPRequestHandler):
    """Serves the configured routes and records what it was asked."""

    routes: Dict[str, tuple] = {}
    requests: List[Dict[str, str]] = []
    delay = 0.0
    trickle_interval = 0.0

    def log_message(self, format, *args):
        """Suppress default HTTP server logging."""

    def do_GET(self):
        peer_cert = self.connection.getpeercert()
        self.requests.append(
            {
                "path": self.path,
                "user_agent": self.headers.get("User-Agent", ""),
                "client_cn": _peer_common_name(peer_cert),
            }
        )

        if self.delay:
            time.sleep(self.delay)

        status, body, headers = self.routes.get(
            self.path, (404, b"not found", {"Content-Type": "text/plain"})
        )
        self.send_response(status)
        for name, value in headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()

        if not self.trickle_interval:
            self.wfile.write(body)
            return

        self.wfile.flush()
        for index in range(len(body)):
            self.wfile.write(body[index : index + 1])
            self.wfile.flush()
            time.sleep(self.trickle_interval)


def _peer_common_name(peer_cert: Optional[dict]) -> str:
    if not peer_cert:
        return ""
    for rdn in peer_cert.get("subject", ()):
        for key, value in rdn:
            if key == "commonName":
                return value
    return ""


@dataclass
class TlsServer:
    host: str
    port: int
    handler: type

    @property
    def requests(self) -> List[Dict[str, str]]:
        return self.handler.requests


@pytest.fixture
def tls_server_factory(pki: Pki) -> Iterator[Callable[..., TlsServer]]:
    """Start mutual-TLS HTTP servers on ephemeral ports; stopped after the test."""
    servers: List[ThreadingHTTPServer] = []

    def start(
        routes: Optional[Dict[str, tuple]] = None,
        require_client_cert: bool = True,
        server_cert: Optional[str] = None,
        delay: float = 0.0,
        trickle_interval: float = 0.0,
    ) -> TlsServer:
        handler = type(
            "Handler",
            (RecordingHandler,),
            {
                "routes": routes or {},
                "requests": [],
                "delay": delay,
                "trickle_interval": trickle_interval,
            },
        )

        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        context.load_cert_chain(
            certfile=server_cert or pki.server_cert, keyfile=pki.server_key
        )
        context.load_verify_locations(cafile=pki.ca_cert)
        context.verify_mode = (
            ssl.CERT_REQUIRED if require_client_cert else ssl.CERT_OPTIONAL
        )

        httpd = ThreadingHTTPServer(("127.0.0.1", 0), handler)
        httpd.daemon_threads = True
        httpd.socket = context.wrap_socket(httpd.socket, server_side=True)
        thread = threading.Thread(target=httpd.serve_forever, daemon=True)
        thread.start()
        servers.append(httpd)

        return TlsServer(host="127.0.0.1", port=httpd.server_address[1], handler=handler)

    yield start

    for httpd in servers:
        httpd.shutdown()
        httpd.server_close()


@pytest.fixture
def tls_server(tls_server_factory: Callable[..., TlsServer]) -> TlsServer:
    """A mutual-TLS server with a handful of typical endpoints."""
    return tls_server_factory(
        routes={
            "/": (200, b"<html>service is up</html>", {"Content-Type": "text/html"}),
            "/health": (
                200,
                b'{"status": "foo123bar"}',
                {"Content-Type": "application/json; charset=utf-8"},
            ),
            "/created": (201, b"created", {"Content-Type": "text/plain"}),
            "/broken": (500, b"boom", {"Content-Type": "text/plain"}),
            "/moved": (302, b"", {"Location": "/health"}),
        }
    )


@pytest.fixture
def make_config(pki: Pki) -> Callable[..., CheckConfig]:
    """Build a CheckConfig with working client credentials and CA."""

    def build(server: Optional[TlsServer] = None, **overrides) -> CheckConfig:
        values = {
            "host": server.host if server else "127.0.0.1",
            "port": str(server.port) if server else "443",
            "client_cert_path": pki.client_cert,
            "private_key_path": pki.client_key,
            "ca_cert_path": pki.ca_cert,
            "timeout_seconds": 5,
        }
        values.update(overrides)
        return CheckConfig(**values)

    return build


@pytest.fixture
def unused_port() -> int:
    """A local TCP port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
