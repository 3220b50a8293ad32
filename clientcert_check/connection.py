"""HTTPS client construction and request execution."""

import http.client
import socket
import ssl
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from . import __version__
from .config import CheckConfig
from .exceptions import TransportError

USER_AGENT = f"clientcert-check/{__version__}"
READ_CHUNK_SIZE = 64 * 1024


@dataclass
class HttpResponse:
    """A fully read HTTP response."""

    status_code: int
    reason: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    charset: Optional[str] = None
    elapsed: float = 0.0

    @property
    def status_line(self) -> str:
        return f"{self.status_code} {self.reason}".rstrip()

    @property
    def content_type(self) -> Optional[str]:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return None

    def text(self) -> str:
        """Decode the body using the response charset, falling back to UTF-8."""
        encoding = self.charset or "utf-8"
        try:
            return self.body.decode(encoding, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


def build_url(use_ssl: bool, host: str, port: str, uri: str) -> str:
    """Build the request URL; components are used as given, without escaping."""
    scheme = "https" if use_ssl else "http"
    return f"{scheme}://{host}:{port}{uri}"


def build_ssl_context(
    client_cert_path: Optional[str] = None,
    private_key_path: Optional[str] = None,
    ca_cert_path: Optional[str] = None,
    verify_hostname: bool = True,
) -> ssl.SSLContext:
    """
    Create the TLS context used for the request.

    Args:
        client_cert_path: PEM file with the client certificate, optionally
            followed by its chain
        private_key_path: PEM file with the private key; when omitted the key
            is read from the certificate file
        ca_cert_path: CA bundle replacing the system trust store
        verify_hostname: Check the server certificate against the hostname

    Returns:
        Configured SSL context

    Raises:
        OSError: If a certificate, key or CA file cannot be read
        ssl.SSLError: If a file is not valid PEM or the key does not match
    """
    context = ssl.create_default_context(cafile=ca_cert_path)

    if not verify_hostname:
        context.check_hostname = False
        if ca_cert_path is None:
            # Unsafe: nothing left to validate the server against.
            context.verify_mode = ssl.CERT_NONE

    if client_cert_path:
        context.load_cert_chain(
            certfile=client_cert_path, keyfile=private_key_path or None
        )

    return context


def deadline_socket_class(deadline: float) -> type:
    """
    Return an SSLSocket class that enforces an absolute deadline.

    Before each handshake, send and receive the socket timeout is set to the
    time left until ``deadline`` (a ``time.monotonic()`` value), so the
    whole exchange, redirects included, cannot outlive it.
    """

    class DeadlineSSLSocket(ssl.SSLSocket):
        def _arm(self) -> None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("request deadline exceeded")
            self.settimeout(remaining)

        def do_handshake(self, *args, **kwargs):
            self._arm()
            return super().do_handshake(*args, **kwargs)

        def recv_into(self, *args, **kwargs):
            self._arm()
            return super().recv_into(*args, **kwargs)

        def recv(self, *args, **kwargs):
            self._arm()
            return super().recv(*args, **kwargs)

        def sendall(self, *args, **kwargs):
            self._arm()
            return super().sendall(*args, **kwargs)

    return DeadlineSSLSocket


def build_opener(context: ssl.SSLContext) -> urllib.request.OpenerDirector:
    """Create a URL opener that uses the given TLS context and follows redirects."""
    opener = urllib.request.build_opener(urllib.request.HTTPSHandler(context=context))
    opener.addheaders = [("User-Agent", USER_AGENT)]
    return opener


def _describe_error(exc: BaseException, host: str, port: str) -> str:
    """Return a human-readable description of a transport failure."""
    if isinstance(exc, urllib.error.URLError):
        if isinstance(exc.reason, BaseException):
            exc = exc.reason
        else:
            return f"Can't connect to {host}:{port} ({exc.reason})"

    if isinstance(exc, ssl.SSLError):
        detail = getattr(exc, "verify_message", None) or exc.reason or str(exc)
        return f"SSL error talking to {host}:{port} ({detail})"
    if isinstance(exc, socket.gaierror):
        return f"Can't resolve {host} ({exc.strerror or exc})"
    if isinstance(exc, OSError) and exc.strerror:
        return f"Can't connect to {host}:{port} ({exc.strerror})"
    return f"Can't connect to {host}:{port} ({exc})"


def _describe_load_error(exc: OSError) -> str:
    if isinstance(exc, ssl.SSLError):
        return f"Can't load client certificate, key or CA file ({exc.reason or exc})"
    if exc.filename:
        return f"Can't read {exc.filename} ({exc.strerror})"
    return f"Can't load client certificate, key or CA file ({exc})"


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, urllib.error.URLError):
        exc = exc.reason  # type: ignore[assignment]
    return isinstance(exc, (socket.timeout, TimeoutError))


def _read_body(response: Any, deadline: float) -> bytes:
    chunks = []
    while True:
        if time.monotonic() >= deadline:
            raise TimeoutError("request deadline exceeded")
        chunk = response.read(READ_CHUNK_SIZE)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def fetch(config: CheckConfig) -> HttpResponse:
    """
    Issue a single GET request described by the configuration.

    Any HTTP response is returned whatever its status code; only failures
    to obtain one raise. The timeout bounds the whole exchange, from the
    TLS handshake to the last body byte.

    Args:
        config: Check configuration

    Returns:
        The response, body fully read

    Raises:
        TransportError: On DNS, connection, TLS, certificate loading or
            timeout failures
    """
    url = build_url(config.use_ssl, config.host, config.port, config.uri)
    start_time = time.monotonic()
    deadline = start_time + config.timeout_seconds

    try:
        context = build_ssl_context(
            client_cert_path=config.client_cert_path,
            private_key_path=config.private_key_path,
            ca_cert_path=config.ca_cert_path,
            verify_hostname=config.verify_hostname,
        )
    except OSError as exc:
        raise TransportError(_describe_load_error(exc)) from exc

    context.sslsocket_class = deadline_socket_class(deadline)
    opener = build_opener(context)
    try:
        try:
            response: Any = opener.open(url, timeout=config.timeout_seconds)
        except urllib.error.HTTPError as error_response:
            # Non-2xx status: still a well-formed response.
            response = error_response

        with response:
            body = _read_body(response, deadline)
            return HttpResponse(
                status_code=response.status,
                reason=response.reason or "",
                url=response.geturl(),
                headers=dict(response.headers.items()),
                body=body,
                charset=response.headers.get_content_charset(),
                elapsed=time.monotonic() - start_time,
            )
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as exc:
        if _is_timeout(exc):
            raise TransportError(
                f"Timeout after {config.timeout_seconds} seconds talking to "
                f"{config.host}:{config.port}",
                timed_out=True,
            ) from exc
        raise TransportError(_describe_error(exc, config.host, config.port)) from exc
