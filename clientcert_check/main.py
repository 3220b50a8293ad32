"""Main application logic and entry point."""

import sys
from typing import List, Optional

from .cli import parse_config
from .config import CheckConfig
from .connection import build_url, fetch
from .evaluation import (
    CheckResult,
    StatusMismatch,
    Success,
    evaluate,
    from_transport_error,
)
from .exceptions import TransportError, handle_general_error, handle_keyboard_interrupt
from .formatting import VerboseFormatter


def run_check(config: CheckConfig) -> CheckResult:
    """
    Perform the request and evaluate it, printing verbose lines on the way.

    Args:
        config: Check configuration

    Returns:
        The single result of this check
    """
    formatter = VerboseFormatter(config.color_output) if config.verbose else None
    url = build_url(config.use_ssl, config.host, config.port, config.uri)

    if formatter:
        formatter.print_request(url)
        formatter.print_client_certificate(config)
        formatter.print_tls_settings(config)

    try:
        response = fetch(config)
    except TransportError as e:
        if formatter:
            formatter.print_transport_error(e)
        return from_transport_error(e)

    result = evaluate(config, response)

    if formatter:
        formatter.print_response(response, url)
        if not isinstance(result, StatusMismatch):
            formatter.print_status_ok(response.status_code)
        if isinstance(result, Success) and config.expected_body_pattern:
            formatter.print_body_match(config.expected_body_pattern)

    return result


def main(argv: Optional[List[str]] = None) -> None:
    """Main application entry point."""
    config = parse_config(argv, color_output=sys.stdout.isatty())

    try:
        result = run_check(config)
    except KeyboardInterrupt:
        sys.exit(handle_keyboard_interrupt())
    except Exception as e:
        sys.exit(handle_general_error(e, config.verbose))

    print(result.message())
    sys.exit(int(result.status))


if __name__ == "__main__":
    main()
