# scanners/base.py
from abc import ABC, abstractmethod
from typing import Dict

from host import ObservedHost


class ScanError(Exception):
    """The scan tool could not produce a snapshot."""


class BaseScanner(ABC):
    """Abstract base class for network scan snapshot providers."""

    @abstractmethod
    def get_snapshot(self) -> Dict[str, ObservedHost]:
        """Runs one scan of the network.

        Returns:
            A dictionary keyed by IP address with one ObservedHost per host
            seen in this scan.

        Raises:
            ScanError: if the scan could not be completed.
        """
