"""Exit codes, error types and top-level error handlers."""

import sys
import traceback
from enum import IntEnum

# sysexits.h EX_USAGE, kept apart from the Nagios status range.
EXIT_USAGE = 64


class NagiosStatus(IntEnum):
    """Plugin exit codes as consumed by Nagios-compatible schedulers."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


class TransportError(Exception):
    """Raised when no well-formed HTTP response could be obtained.

    Covers DNS failures, refused connections, TLS handshake failures,
    unreadable client certificates or keys, and timeouts.
    """

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.message = message
        self.timed_out = timed_out


def handle_keyboard_interrupt() -> int:
    """Report an interrupted check and return the UNKNOWN exit code."""
    print("HTTP UNKNOWN - check interrupted")
    return NagiosStatus.UNKNOWN


def handle_general_error(error: Exception, verbose: bool = False) -> int:
    """
    Report an unexpected exception as an UNKNOWN result.

    Args:
        error: The exception that escaped the check
        verbose: Also print the traceback to stderr

    Returns:
        The UNKNOWN exit code
    """
    print(f"HTTP UNKNOWN - {type(error).__name__}: {error}")
    if verbose:
        print("\n[VERBOSE] Exception:", file=sys.stderr)
        traceback.print_exc()
    return NagiosStatus.UNKNOWN
