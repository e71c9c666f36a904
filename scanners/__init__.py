# scanners/__init__.py
from dynaconf import Dynaconf

from .base import BaseScanner, ScanError
from .nmap_scanner import NmapScanner  # Import all concrete implementations


def get_scanner(config: Dynaconf) -> BaseScanner:
    """Scanner factory: returns an instance of the appropriate scanner class."""

    scanner_type = config.general.scanner_type  # Get scanner type from general

    if scanner_type == "nmap":
        return NmapScanner(config.nmap)  # Pass nmap config
    else:
        raise ValueError(f"Unsupported scanner type: {scanner_type}")
