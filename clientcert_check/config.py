"""Check configuration and its default values."""

from dataclasses import dataclass
from typing import Optional

DEFAULT_PORT = "443"
DEFAULT_URI = "/"
DEFAULT_EXPECTED_STATUS_CODE = "200"
DEFAULT_TIMEOUT = 10


@dataclass(frozen=True)
class CheckConfig:
    """Everything needed to run one check, built once from the command line."""

    host: str
    port: str = DEFAULT_PORT
    use_ssl: bool = True
    uri: str = DEFAULT_URI
    client_cert_path: Optional[str] = None
    private_key_path: Optional[str] = None
    ca_cert_path: Optional[str] = None
    verify_hostname: bool = True
    expected_status_code: str = DEFAULT_EXPECTED_STATUS_CODE
    expected_body_pattern: Optional[str] = None
    timeout_seconds: int = DEFAULT_TIMEOUT
    verbose: bool = False
    color_output: bool = False
