"""Client Certificate HTTP Checker - a Nagios plugin for mutual-TLS endpoints."""

__version__ = "1.0.0"

from .main import main

__all__ = ["main", "__version__"]
