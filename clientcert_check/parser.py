"""Client certificate parsing for verbose diagnostics."""

from typing import Any, Dict, List, Optional

from cryptography import x509
from cryptography.x509.oid import NameOID


def _name_attr(name: x509.Name, oid: x509.ObjectIdentifier) -> Optional[str]:
    attrs = name.get_attributes_for_oid(oid)
    if not attrs:
        return None
    value = attrs[0].value
    return value.decode() if isinstance(value, bytes) else value


def load_pem_chain(pem_data: bytes) -> List[x509.Certificate]:
    """
    Load every certificate from PEM data, leaf first.

    Raises:
        ValueError: If the data holds no parseable certificate
    """
    return x509.load_pem_x509_certificates(pem_data)


def summarize_certificate(cert: x509.Certificate) -> Dict[str, Any]:
    """Extract the fields shown in verbose output from one certificate."""
    return {
        "subject": _name_attr(cert.subject, NameOID.COMMON_NAME)
        or cert.subject.rfc4514_string(),
        "issuer": _name_attr(cert.issuer, NameOID.ORGANIZATION_NAME)
        or _name_attr(cert.issuer, NameOID.COMMON_NAME)
        or cert.issuer.rfc4514_string(),
        "not_before": cert.not_valid_before_utc.strftime("%b %d %H:%M:%S %Y GMT"),
        "not_after": cert.not_valid_after_utc.strftime("%b %d %H:%M:%S %Y GMT"),
        "serial": format(cert.serial_number, "x"),
    }


def describe_certificate_file(path: str) -> Dict[str, Any]:
    """
    Summarize the client certificate file used for the request.

    Args:
        path: PEM file with the leaf certificate, optionally followed by
            its chain

    Returns:
        Leaf certificate summary plus ``chain_length``

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file holds no PEM certificate
    """
    with open(path, "rb") as handle:
        chain = load_pem_chain(handle.read())

    summary = summarize_certificate(chain[0])
    summary["chain_length"] = len(chain)
    return summary
