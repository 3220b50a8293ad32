"""Response evaluation and check results."""

import re
from dataclasses import dataclass
from typing import Union

from .config import CheckConfig
from .connection import HttpResponse
from .exceptions import NagiosStatus, TransportError


@dataclass(frozen=True)
class TransportFailed:
    error: str

    status = NagiosStatus.CRITICAL

    def message(self) -> str:
        return f"HTTP CRITICAL - {self.error}"


@dataclass(frozen=True)
class StatusMismatch:
    expected: str
    actual: str

    status = NagiosStatus.CRITICAL

    def message(self) -> str:
        return (
            f"HTTP CRITICAL - expected HTTP code {self.expected} "
            f"but actually got {self.actual}"
        )


@dataclass(frozen=True)
class BodyMismatch:
    pattern: str

    status = NagiosStatus.CRITICAL

    def message(self) -> str:
        return (
            "HTTP CRITICAL - HTTP response did not contain expected string "
            f"{self.pattern}"
        )


@dataclass(frozen=True)
class Success:
    status_line: str

    status = NagiosStatus.OK

    def message(self) -> str:
        return f"HTTP OK: {self.status_line}"


CheckResult = Union[TransportFailed, StatusMismatch, BodyMismatch, Success]


def status_matches(expected: str, actual: int) -> bool:
    """Compare status codes as strings, so "200" matches 200 but "0200" does not."""
    return str(actual) == expected


def body_matches(pattern: str, body: str) -> bool:
    """Search the body for ``pattern``, which is a regular expression."""
    return re.search(pattern, body) is not None


def evaluate(config: CheckConfig, response: HttpResponse) -> CheckResult:
    """
    Run the status and body checks against a response.

    Args:
        config: Check configuration holding the expectations
        response: The response to evaluate

    Returns:
        StatusMismatch, BodyMismatch or Success
    """
    if not status_matches(config.expected_status_code, response.status_code):
        return StatusMismatch(
            expected=config.expected_status_code, actual=str(response.status_code)
        )

    if config.expected_body_pattern:
        if not body_matches(config.expected_body_pattern, response.text()):
            return BodyMismatch(pattern=config.expected_body_pattern)

    return Success(status_line=response.status_line)


def from_transport_error(error: TransportError) -> TransportFailed:
    return TransportFailed(error=error.message)

