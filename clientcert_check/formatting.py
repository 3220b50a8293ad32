"""Verbose output formatting."""

from typing import Optional

from termcolor import colored

from .config import CheckConfig
from .connection import HttpResponse
from .exceptions import TransportError
from .parser import describe_certificate_file


class VerboseFormatter:
    """Prints the informational lines that precede the status line."""

    def __init__(self, color_output: bool = False):
        self.color_output = color_output

    def _label(self, text: str) -> str:
        return colored(text, "cyan", force_color=True) if self.color_output else text

    def _value(self, text: str, color: str = "white") -> str:
        return colored(text, color, force_color=True) if self.color_output else text

    def print_request(self, url: str) -> None:
        print(f"Requesting {self._value(url)} using client certificate...")

    def print_client_certificate(self, config: CheckConfig) -> None:
        """Print a summary of the client certificate file, if one was given."""
        if not config.client_cert_path:
            print(self._value("No client certificate configured", "yellow"))
            return

        try:
            details = describe_certificate_file(config.client_cert_path)
        except (OSError, ValueError) as exc:
            print(
                f"{self._label('Client certificate:')} "
                f"{self._value(f'unreadable ({exc})', 'yellow')}"
            )
            return

        print(
            f"{self._label('Client certificate:')} {details['subject']} "
            f"(issuer: {details['issuer']}, "
            f"chain: {details['chain_length']} certificate(s))"
        )
        print(f"  {self._label('Not Before:')} {details['not_before']}")
        print(f"  {self._label('Not After:')}  {details['not_after']}")
        print(f"  {self._label('Serial:')}     {details['serial']}")

    def print_tls_settings(self, config: CheckConfig) -> None:
        ca = config.ca_cert_path or "system default"
        verify = "yes" if config.verify_hostname else self._value("NO (unsafe)", "red")
        print(
            f"{self._label('CA file:')} {ca}  "
            f"{self._label('Verify hostname:')} {verify}  "
            f"{self._label('Timeout:')} {config.timeout_seconds}s"
        )

    def print_response(self, response: HttpResponse, url: Optional[str] = None) -> None:
        if url and response.url != url:
            print(f"{self._label('Redirected to:')} {response.url}")
        print(
            f"{self._label('Response:')} {response.status_line} "
            f"({len(response.body)} bytes in {response.elapsed:.3f} seconds)"
        )
        if response.content_type:
            print(f"  {self._label('Content-Type:')} {response.content_type}")

    def print_transport_error(self, error: TransportError) -> None:
        kind = "Timed out" if error.timed_out else "Transport error"
        print(f"{self._label(kind + ':')} {self._value(error.message, 'red')}")

    def print_status_ok(self, code: int) -> None:
        print(f"Got expected HTTP code {self._value(str(code), 'green')}")

    def print_body_match(self, pattern: str) -> None:
        print(f"HTTP body did contain expected string {self._value(pattern, 'green')}")
