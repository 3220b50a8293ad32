"""Command line interface and argument parsing."""

import argparse
import re
import sys
from typing import List, Optional

from . import __version__
from .config import (
    DEFAULT_EXPECTED_STATUS_CODE,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    DEFAULT_URI,
    CheckConfig,
)
from .exceptions import EXIT_USAGE


class UsageArgumentParser(argparse.ArgumentParser):
    """Argument parser whose errors exit with EX_USAGE; 2 is CRITICAL to Nagios."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = UsageArgumentParser(
        prog="check_http_with_clientcert",
        description=(
            "Nagios plugin to check an HTTPS service that requires an SSL "
            "client certificate."
        ),
        formatter_class=argparse.RawTextHelpFormatter,
        epilog=(
            "If the CA certificate chain must be sent along with the client "
            "certificate,\nconcatenate all certificates (PEM) into the "
            "--clientcert file.\n\n"
            "Exit codes: 0 OK, 1 WARNING, 2 CRITICAL, 3 UNKNOWN, "
            f"{EXIT_USAGE} usage error."
        ),
    )

    parser.add_argument("--host", "-H", help="Host to connect to (required)")

    parser.add_argument(
        "--port", "-p", help=f"Port (default: {DEFAULT_PORT})"
    )

    parser.add_argument(
        "--ssl",
        "-S",
        action="store_true",
        help="Use HTTPS (always on; kept for check_http compatibility)",
    )

    parser.add_argument("--uri", "-u", help=f"URI (default: {DEFAULT_URI})")

    parser.add_argument(
        "--clientcert",
        help="File containing the client certificate in PEM format",
    )

    parser.add_argument(
        "--private-key",
        "-K",
        dest="private_key",
        help="File containing the private key for the client certificate",
    )

    parser.add_argument(
        "--CAfile",
        dest="cafile",
        help="File containing the CA certificate(s) for the server certificate",
    )

    parser.add_argument(
        "--verify_hostname",
        "-V",
        type=int,
        help=(
            "Check the server certificate matches the expected hostname "
            "(default: 1).\n"
            "UNSAFE when 0: without --CAfile the server certificate is not "
            "verified at all"
        ),
    )

    parser.add_argument(
        "--expect-rc",
        "-e",
        dest="expect_rc",
        help=(
            "The expected HTTP response code "
            f"(default: {DEFAULT_EXPECTED_STATUS_CODE})"
        ),
    )

    parser.add_argument(
        "--string",
        "-s",
        help="Regular expression to expect in the HTTP body",
    )

    parser.add_argument(
        "--timeout",
        "-t",
        type=int,
        help=f"Timeout in seconds (default: {DEFAULT_TIMEOUT})",
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose")

    parser.add_argument(
        "--no-color", action="store_true", help="Disable color in verbose output"
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    return parser


def handle_version_check(args: argparse.Namespace) -> None:
    """Print the version and exit 0 when --version was given."""
    if args.version:
        print(f"clientcert-check version {__version__}")
        sys.exit(0)


def validate_args(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    """
    Validate arguments and show usage if needed.

    Args:
        args: Parsed arguments
        parser: Argument parser instance
    """
    if not args.host:
        parser.error("the --host/-H argument is required")

    if args.string:
        try:
            re.compile(args.string)
        except re.error as exc:
            parser.error(f"--string is not a valid regular expression: {exc}")

    if args.timeout is not None and args.timeout < 0:
        parser.error("--timeout must be >= 0")


def _value_or_default(value: Optional[str], default: str) -> str:
    """Treat a missing, empty or "0" value as unset."""
    if not value or value == "0":
        return default
    return value


def build_config(args: argparse.Namespace, color_output: bool = False) -> CheckConfig:
    """
    Turn parsed arguments into an immutable check configuration.

    Empty or zero values fall back to their defaults, the same way an
    unset option does.
    """
    return CheckConfig(
        host=args.host,
        port=_value_or_default(args.port, DEFAULT_PORT),
        # Plain HTTP is never selected from the command line.
        use_ssl=True,
        uri=_value_or_default(args.uri, DEFAULT_URI),
        client_cert_path=args.clientcert or None,
        private_key_path=args.private_key or None,
        ca_cert_path=args.cafile or None,
        verify_hostname=bool(args.verify_hostname)
        if args.verify_hostname is not None
        else True,
        expected_status_code=_value_or_default(
            args.expect_rc, DEFAULT_EXPECTED_STATUS_CODE
        ),
        expected_body_pattern=args.string or None,
        timeout_seconds=args.timeout or DEFAULT_TIMEOUT,
        verbose=args.verbose,
        color_output=color_output and not args.no_color,
    )


def parse_config(
    argv: Optional[List[str]] = None, color_output: bool = False
) -> CheckConfig:
    """Parse the command line into a CheckConfig, exiting on usage errors."""
    parser = create_parser()
    args = parser.parse_args(argv)

    handle_version_check(args)
    validate_args(args, parser)

    return build_config(args, color_output=color_output)
